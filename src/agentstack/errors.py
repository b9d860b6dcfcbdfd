"""Exception types raised by the stack engine."""

from pathlib import Path


class StackError(Exception):
    """Base class for all stack engine errors."""

    code = "STACK_ERROR"


class StackNotFoundError(StackError):
    """Raised when a stack reference does not resolve to an existing file."""

    code = "STACK_NOT_FOUND"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Stack file not found: {self.path}")


class FileSystemError(StackError):
    """Wraps an I/O failure with the operation and path that failed."""

    code = "FILESYSTEM_ERROR"

    def __init__(
        self, operation: str, path: Path | str, cause: BaseException | None = None
    ) -> None:
        self.operation = operation
        self.path = Path(path)
        self.cause = cause
        message = f"Failed to {operation} file at {self.path}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class MutuallyExclusiveOptionsError(StackError):
    """Raised before any I/O when two exclusive flags are combined."""

    code = "MUTUALLY_EXCLUSIVE_OPTIONS"
    exit_code = 1

    def __init__(self, first: str, second: str) -> None:
        self.options = (first, second)
        super().__init__(f"Cannot use both {first} and {second} flags together")


class SyncTargetError(StackError):
    """Failure scoped to one sync target; never fatal to the whole run."""

    code = "SYNC_TARGET_ERROR"

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Failed to sync to {target}: {reason}")


class UnsafePathError(StackError):
    """Raised when a component name would place a file outside its directory."""

    code = "UNSAFE_PATH"

    def __init__(self, name: str, base: Path | str) -> None:
        self.name = name
        self.base = Path(base)
        super().__init__(f"Refusing to write '{name}' outside {self.base}")
