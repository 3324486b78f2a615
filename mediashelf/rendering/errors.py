"""Exception hierarchy for rendering workers and command execution."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class RenderingError(RuntimeError):
    """Base exception raised by rendering workers."""


class CommandExecutionError(RenderingError):
    """Raised when an external command fails to execute successfully."""

    def __init__(
        self,
        command: Sequence[str] | str,
        *,
        returncode: int | None = None,
        stdout: str | bytes | None = None,
        stderr: str | bytes | None = None,
        cause: BaseException | None = None,
        timeout: bool = False,
    ) -> None:
        if isinstance(command, (str, bytes)):
            coerced: Sequence[str] = (str(command),)
        elif isinstance(command, Iterable):
            coerced = tuple(str(part) for part in command)
        else:
            coerced = (str(command),)

        self.command = coerced
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cause = cause
        self.timeout = timeout

        detail = []
        if returncode is not None:
            detail.append(f"return code {returncode}")
        if timeout:
            detail.append("timeout")
        if cause and not timeout:
            detail.append(cause.__class__.__name__)
        detail_str = f" ({', '.join(detail)})" if detail else ""
        super().__init__(f"Command execution failed{detail_str}: {' '.join(coerced)}")


class SourceUnavailable(RenderingError):
    """Raised when a source file is neither on disk nor fetchable from storage."""


class PageOutOfRange(RenderingError, ValueError):
    """Raised when a requested page is outside ``1..page_count``."""


class RenderFailure(RenderingError):
    """Raised when a worker could not produce the full artifact set for an item.

    ``units_done`` counts the units present in the cache when the failure was
    raised so callers can tell a partial set from an empty one.
    """

    def __init__(
        self,
        message: str,
        *,
        item_id: Optional[int] = None,
        units_done: int = 0,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.item_id = item_id
        self.units_done = units_done
        self.cause = cause

    @property
    def timeout(self) -> bool:
        return isinstance(self.cause, CommandExecutionError) and self.cause.timeout


__all__ = [
    "CommandExecutionError",
    "PageOutOfRange",
    "RenderFailure",
    "RenderingError",
    "SourceUnavailable",
]
