"""Settings merge engine.

Combines an existing settings document with incoming stack settings.
Every top-level value is classified into a ``ValueKind`` and merged by the
function registered for that kind. The engine is pure: it never mutates
its inputs and never prints; ``describe_merge`` turns the structured
outcome into user-facing lines.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

PERMISSIONS_KEY = "permissions"
PERMISSION_LISTS = ("allow", "deny", "ask")


class ValueKind(str, Enum):
    SCALAR = "scalar"
    STRING_ARRAY = "string_array"
    PERMISSION_SET = "permission_set"
    NESTED_OBJECT = "nested_object"


class MergeAction(str, Enum):
    KEPT = "kept"
    ADDED = "added"
    OVERWRITTEN = "overwritten"
    MERGED = "merged"


@dataclass(frozen=True)
class FieldChange:
    """What happened to one top-level field."""

    field: str
    action: MergeAction
    conflict: bool = False  # existing and incoming values differed


@dataclass
class MergeOutcome:
    """Result of ``merge_settings``."""

    result: dict[str, Any]
    changes: list[FieldChange] = field(default_factory=list)

    def fields_with(self, action: MergeAction) -> list[str]:
        return [c.field for c in self.changes if c.action == action]

    @property
    def added(self) -> int:
        return len(self.fields_with(MergeAction.ADDED))

    @property
    def overwritten_count(self) -> int:
        return len(self.fields_with(MergeAction.OVERWRITTEN))

    @property
    def overwritten(self) -> bool:
        return self.overwritten_count > 0

    @property
    def touched_fields(self) -> list[str]:
        """Fields whose value now carries something from the incoming side."""
        return [c.field for c in self.changes if c.action != MergeAction.KEPT]

    @property
    def conflicts_kept(self) -> list[str]:
        return [
            c.field
            for c in self.changes
            if c.action == MergeAction.KEPT and c.conflict
        ]


def classify(key: str, value: Any) -> ValueKind:
    """Tag a settings value with the merge rule it receives."""
    if isinstance(value, dict):
        if key == PERMISSIONS_KEY:
            return ValueKind.PERMISSION_SET
        return ValueKind.NESTED_OBJECT
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return ValueKind.STRING_ARRAY
    return ValueKind.SCALAR


def _string_union(*lists: Any) -> list[str]:
    """Ordered union of string items; non-strings and duplicates dropped."""
    seen: list[str] = []
    for items in lists:
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, str) and item not in seen:
                seen.append(item)
    return seen


def _merge_scalar(old: Any, new: Any, overwrite: bool) -> tuple[Any, MergeAction]:
    if overwrite and old != new:
        return copy.deepcopy(new), MergeAction.OVERWRITTEN
    return copy.deepcopy(old), MergeAction.KEPT


def _merge_nested(
    old: dict[str, Any], new: dict[str, Any], overwrite: bool
) -> tuple[dict[str, Any], MergeAction]:
    # One level deep; existing sub-keys always win, whatever ``overwrite`` says.
    merged = copy.deepcopy(old)
    action = MergeAction.KEPT
    for sub_key, sub_value in new.items():
        if sub_key not in merged:
            merged[sub_key] = copy.deepcopy(sub_value)
            action = MergeAction.MERGED
    return merged, action


def _merge_permissions(
    old: dict[str, Any], new: dict[str, Any], overwrite: bool
) -> tuple[dict[str, Any], MergeAction]:
    others_old = {k: v for k, v in old.items() if k not in PERMISSION_LISTS}
    others_new = {k: v for k, v in new.items() if k not in PERMISSION_LISTS}
    merged, action = _merge_nested(others_old, others_new, overwrite)

    for list_key in PERMISSION_LISTS:
        if list_key not in old and list_key not in new:
            continue
        before = _string_union(old.get(list_key))
        combined = _string_union(before, new.get(list_key))
        if len(combined) > len(before):
            action = MergeAction.MERGED
        merged[list_key] = combined

    # Keep the original key order of the existing permission block.
    ordered = {k: merged[k] for k in old if k in merged}
    ordered.update({k: v for k, v in merged.items() if k not in ordered})
    return ordered, action


_MERGERS: dict[ValueKind, Callable[[Any, Any, bool], tuple[Any, MergeAction]]] = {
    ValueKind.SCALAR: _merge_scalar,
    ValueKind.STRING_ARRAY: _merge_scalar,
    ValueKind.PERMISSION_SET: _merge_permissions,
    ValueKind.NESTED_OBJECT: _merge_nested,
}


def merge_settings(
    existing: dict[str, Any],
    incoming: dict[str, Any],
    overwrite: bool = False,
) -> MergeOutcome:
    """Merge ``incoming`` settings into ``existing``.

    Args:
        existing: Settings already on disk.
        incoming: Settings carried by the stack.
        overwrite: Replace conflicting top-level scalars/arrays with the
            incoming value. Keys only present in ``existing`` are always
            preserved, and nested sub-keys always keep the existing value.

    Returns:
        MergeOutcome with the merged document and one FieldChange per
        incoming key.
    """
    result = copy.deepcopy(existing)
    changes: list[FieldChange] = []

    for key, new_value in incoming.items():
        if key not in existing:
            result[key] = copy.deepcopy(new_value)
            changes.append(FieldChange(key, MergeAction.ADDED))
            continue

        old_value = existing[key]
        old_kind = classify(key, old_value)
        new_kind = classify(key, new_value)
        merger = _MERGERS[new_kind] if old_kind == new_kind else _merge_scalar

        value, action = merger(old_value, new_value, overwrite)
        result[key] = value
        changes.append(FieldChange(key, action, conflict=old_value != new_value))

    return MergeOutcome(result=result, changes=changes)


def added_permissions(
    before: dict[str, Any], after: dict[str, Any]
) -> dict[str, list[str]]:
    """Permission entries present in ``after`` but not in ``before``."""
    old = before.get(PERMISSIONS_KEY)
    new = after.get(PERMISSIONS_KEY)
    old = old if isinstance(old, dict) else {}
    new = new if isinstance(new, dict) else {}
    return {
        list_key: [
            item
            for item in _string_union(new.get(list_key))
            if item not in _string_union(old.get(list_key))
        ]
        for list_key in PERMISSION_LISTS
    }


def added_subkeys(
    outcome: MergeOutcome, before: dict[str, Any]
) -> dict[str, list[str]]:
    """Sub-keys each merged nested object gained, keyed by top-level field.

    Permission lists are left out; ``added_permissions`` covers them.
    """
    added: dict[str, list[str]] = {}
    for key in outcome.fields_with(MergeAction.MERGED):
        old = before.get(key)
        new = outcome.result.get(key)
        if not isinstance(old, dict) or not isinstance(new, dict):
            continue
        keys = [
            sub_key
            for sub_key in new
            if sub_key not in old
            and not (key == PERMISSIONS_KEY and sub_key in PERMISSION_LISTS)
        ]
        if keys:
            added[key] = keys
    return added


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def describe_merge(outcome: MergeOutcome) -> list[str]:
    """Render a merge outcome as report lines."""
    lines = []
    if outcome.added:
        lines.append(f"{_plural(outcome.added, 'new field')} added")
    if outcome.overwritten:
        lines.append(
            f"{_plural(outcome.overwritten_count, 'field')} overwritten: "
            + ", ".join(outcome.fields_with(MergeAction.OVERWRITTEN))
        )
    merged = outcome.fields_with(MergeAction.MERGED)
    if merged:
        lines.append("Merged new entries into: " + ", ".join(merged))
    kept = outcome.conflicts_kept
    if kept:
        lines.append("Kept existing values for: " + ", ".join(kept))
    if not lines:
        lines.append("No new settings fields")
    return lines
