"""Fake ``pdfinfo``/``pdftoppm`` runner that writes placeholder PNGs."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from mediashelf.rendering.command_runner import CommandResult
from mediashelf.rendering.errors import CommandExecutionError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakePoppler:
    """Records invocations and emulates poppler's output naming.

    ``pdftoppm`` pads page numbers to the digit count of ``pages``; pass
    ``pad_width`` to force a different width.
    """

    def __init__(
        self,
        pages: int,
        *,
        pad_width: Optional[int] = None,
        fail_after: Optional[int] = None,
        timeout: bool = False,
        skip_pages: Sequence[int] = (),
    ) -> None:
        self.pages = pages
        self.pad_width = pad_width if pad_width is not None else len(str(pages))
        self.fail_after = fail_after
        self.timeout = timeout
        self.skip_pages = set(skip_pages)
        self.calls: List[List[str]] = []

    def render_calls(self) -> List[List[str]]:
        return [call for call in self.calls if Path(call[0]).name == "pdftoppm"]

    def info_calls(self) -> List[List[str]]:
        return [call for call in self.calls if Path(call[0]).name == "pdfinfo"]

    def __call__(self, command, *, timeout=None, check=True, **_ignored) -> CommandResult:
        args = [str(part) for part in command]
        self.calls.append(args)
        tool = Path(args[0]).name
        if tool == "pdfinfo":
            stdout = f"Title:          sample\nPages:          {self.pages}\nEncrypted:      no\n"
            return CommandResult(command=tuple(args), returncode=0, stdout=stdout, stderr="", duration=0.0)

        if self.timeout:
            raise CommandExecutionError(
                args,
                cause=subprocess.TimeoutExpired(args, timeout or 0),
                timeout=True,
            )
        first = int(args[args.index("-f") + 1])
        last = int(args[args.index("-l") + 1])
        prefix = Path(args[-1])
        written = 0
        for page in range(first, last + 1):
            if self.fail_after is not None and written >= self.fail_after:
                raise CommandExecutionError(args, returncode=1, stderr="simulated crash")
            if page in self.skip_pages:
                continue
            target = prefix.parent / f"{prefix.name}-{page:0{self.pad_width}d}.png"
            target.write_bytes(PNG_BYTES)
            written += 1
        return CommandResult(command=tuple(args), returncode=0, stdout="", stderr="", duration=0.0)
