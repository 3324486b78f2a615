"""Helper utilities for running external commands consistently."""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from mediashelf import logging_manager as log_mgr

from .errors import CommandExecutionError

logger = log_mgr.logger


@dataclass(slots=True)
class CommandResult:
    """Container describing a completed command execution."""

    command: tuple[str, ...]
    returncode: int
    stdout: str | bytes | None
    stderr: str | bytes | None
    duration: float


CommandRunner = Callable[..., CommandResult]


def _coerce_command(command: Sequence[str] | str) -> tuple[str, ...]:
    if isinstance(command, (str, bytes)):
        return (str(command),)
    return tuple(str(part) for part in command)


def run_command(
    command: Sequence[str] | str,
    *,
    timeout: float | None = None,
    cwd: str | None = None,
    check: bool = True,
    **kwargs: Any,
) -> CommandResult:
    """Execute ``command`` and return a :class:`CommandResult`.

    Output is captured as text. A non-zero exit (when ``check`` is set), a
    timeout or a missing executable raise :class:`CommandExecutionError`;
    ``subprocess.run`` kills the child before the timeout propagates.
    """

    run_kwargs: dict[str, Any] = dict(kwargs)
    run_kwargs.setdefault("cwd", cwd)
    run_kwargs.setdefault("timeout", timeout)
    run_kwargs.setdefault("check", False)
    run_kwargs.setdefault("stdout", subprocess.PIPE)
    run_kwargs.setdefault("stderr", subprocess.PIPE)
    run_kwargs.setdefault("text", True)

    start = time.monotonic()
    logger.debug(
        "Executing command",
        extra={"event": "render.command.execute", "command": list(_coerce_command(command))},
    )
    try:
        completed = subprocess.run(command, **run_kwargs)
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        logger.warning(
            "Command timed out after %.3fs",
            duration,
            extra={"event": "render.command.timeout", "command": list(_coerce_command(command))},
        )
        raise CommandExecutionError(
            command, stdout=exc.stdout, stderr=exc.stderr, cause=exc, timeout=True
        ) from exc
    except FileNotFoundError as exc:
        logger.error(
            "Command executable not found",
            extra={"event": "render.command.not_found", "command": list(_coerce_command(command))},
        )
        raise CommandExecutionError(command, cause=exc) from exc
    except OSError as exc:
        logger.error(
            "Command execution failed due to OS error",
            extra={"event": "render.command.os_error", "command": list(_coerce_command(command))},
        )
        raise CommandExecutionError(command, cause=exc) from exc

    duration = time.monotonic() - start
    result = CommandResult(
        command=_coerce_command(command),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        duration=duration,
    )
    if check and completed.returncode != 0:
        logger.warning(
            "Command returned non-zero status %s",
            completed.returncode,
            extra={
                "event": "render.command.failed",
                "command": list(result.command),
                "returncode": completed.returncode,
            },
        )
        raise CommandExecutionError(
            command,
            returncode=completed.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    logger.debug(
        "Command completed successfully in %.3fs",
        duration,
        extra={"event": "render.command.success", "command": list(result.command)},
    )
    return result


__all__ = ["CommandResult", "CommandRunner", "run_command"]
