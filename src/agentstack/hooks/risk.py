"""Risk labels for hook scripts.

Scanning hook source is done by an external scanner; the engine only
consumes its verdict through a ``RiskLabeler`` callable.
"""

from typing import Callable, Iterable

from agentstack.config.models import Hook

SAFE = "safe"
WARNING = "warning"
DANGEROUS = "dangerous"
UNKNOWN = "unknown"

RiskLabeler = Callable[[str, str], str]


def declared_risk_labeler(hooks: Iterable[Hook]) -> RiskLabeler:
    """Labeler that returns the risk level recorded in the manifest."""
    labels = {hook.name: hook.risk_level for hook in hooks if hook.risk_level}

    def label(name: str, content: str) -> str:
        return labels.get(name, UNKNOWN)

    return label
