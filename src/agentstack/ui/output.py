"""Console output sink used by the engine's user-facing operations."""

from rich.console import Console


class Output:
    """Styled message sink.

    Each method prints one line. Messages are printed without rich markup
    interpretation, so paths and stack names are shown verbatim.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)

    def _print(self, message: str, style: str | None) -> None:
        self.console.print(
            message, style=style, markup=False, highlight=False, soft_wrap=True
        )

    def info(self, message: str) -> None:
        self._print(message, "cyan")

    def success(self, message: str) -> None:
        self._print(message, "green")

    def warning(self, message: str) -> None:
        self._print(message, "yellow")

    def error(self, message: str) -> None:
        self._print(message, "bold red")

    def meta(self, message: str) -> None:
        self._print(message, "dim")

    def log(self, message: str = "") -> None:
        self._print(message, None)
