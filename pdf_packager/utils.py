"""Utility helpers for :mod:`pdf_packager`."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable, List, Optional, Sequence, Tuple

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .exceptions import InvalidPDFError, PipelineCancelledError
from .types import PdfInfo

_LOGGER = logging.getLogger("pdf_packager")

PathLike = str | os.PathLike[str]
OutputCallback = Callable[[str], None]
Signature = Tuple[int, int]

TEMP_PREFIX = "pdf_packager"


@dataclass
class CommandResult:
    """Captured outcome of an external command."""

    returncode: int
    stdout: str
    stderr: str

    def error_output(self) -> str:
        """Return stderr, else stdout, else ``"unknown"``."""

        return self.stderr.strip() or self.stdout.strip() or "unknown"


def resolve_path(path: PathLike) -> Path:
    """Resolve *path* into an absolute :class:`~pathlib.Path`."""

    return Path(path).expanduser().resolve()


def ensure_parent_dir(path: Path) -> None:
    """Create parent directory for *path* if it does not exist."""

    path.parent.mkdir(parents=True, exist_ok=True)


def which(executables: Sequence[str]) -> str | None:
    """Return the first executable from *executables* found on ``PATH``."""

    for candidate in executables:
        found = shutil.which(candidate)
        if found:
            _LOGGER.debug("Detected external tool: %s -> %s", candidate, found)
            return found
    return None


def raise_if_cancelled(cancel_event: Optional[threading.Event]) -> None:
    """Raise :class:`PipelineCancelledError` once *cancel_event* is set."""

    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError()


def temporary_pdf_path(label: str) -> Path:
    """Return a fresh, not yet existing path in the system temp directory."""

    return Path(tempfile.gettempdir()) / f"{TEMP_PREFIX}_{label}_{uuid.uuid4().hex}.pdf"


def file_exists(path: PathLike) -> bool:
    return Path(path).is_file()


def safe_unlink(path: PathLike | None) -> None:
    """Delete *path* ignoring every error."""

    if not path:
        return
    try:
        Path(path).unlink()
    except OSError:
        pass


def file_signature(path: PathLike) -> Signature:
    """Return the ``(mtime in ms, size)`` pair used to validate cached results."""

    stat = os.stat(path)
    return int(stat.st_mtime_ns // 1_000_000), stat.st_size


def _pump(stream: IO[str], sink: List[str], callback: Optional[OutputCallback]) -> None:
    for line in iter(stream.readline, ""):
        sink.append(line)
        if callback is not None:
            callback(line)


def run_command(
    command: Sequence[str],
    *,
    on_output: Optional[OutputCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    poll_interval: float = 0.1,
) -> CommandResult:
    """Run *command* to completion capturing output.

    Parameters
    ----------
    command:
        Command and arguments to execute.
    on_output:
        Called with every stdout and stderr line as soon as it is read.
    cancel_event:
        When set while the command runs, the child is killed and
        :class:`PipelineCancelledError` is raised.

    Spawn failures propagate as :class:`OSError`. There is no timeout.
    """

    raise_if_cancelled(cancel_event)
    _LOGGER.debug("Executing command: %s", " ".join(command))

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    with subprocess.Popen(
        list(command),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    ) as process:
        readers = [
            threading.Thread(target=_pump, args=(process.stdout, stdout_lines, on_output), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, stderr_lines, on_output), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            while True:
                try:
                    process.wait(timeout=poll_interval if cancel_event is not None else None)
                    break
                except subprocess.TimeoutExpired:
                    if cancel_event is not None and cancel_event.is_set():
                        process.kill()
                        process.wait()
                        raise PipelineCancelledError()
        finally:
            for reader in readers:
                reader.join()

    result = CommandResult(
        returncode=process.returncode,
        stdout="".join(stdout_lines),
        stderr="".join(stderr_lines),
    )
    _LOGGER.debug("Command finished with exit code %s", result.returncode)
    return result


def get_pdf_info(pdf_path: PathLike) -> PdfInfo:
    """Open a finished document with :mod:`pypdf` and summarise it.

    Prepared copies only carry an owner password, so they are opened with
    an empty user password.
    """

    path = Path(pdf_path)
    if not path.is_file():
        raise InvalidPDFError(f"PDF file not found: {pdf_path}")

    try:
        reader = PdfReader(str(path))
        encrypted = reader.is_encrypted
        if encrypted and reader.decrypt("") == 0:
            raise InvalidPDFError(f"PDF requires a user password: {pdf_path}")
        metadata = reader.metadata
        return PdfInfo(
            num_pages=len(reader.pages),
            file_size=path.stat().st_size,
            is_encrypted=encrypted,
            subject=metadata.subject if metadata else None,
            title=metadata.title if metadata else None,
            author=metadata.author if metadata else None,
        )
    except PdfReadError as exc:
        raise InvalidPDFError(f"Corrupted or invalid PDF file: {pdf_path}. Error: {exc}") from exc


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500 KB")
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"
