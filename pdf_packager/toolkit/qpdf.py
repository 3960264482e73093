"""qpdf invocations used by the processing stages."""

from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ..exceptions import PageGeometryError, ToolkitError
from ..utils import CommandResult, OutputCallback, file_exists, run_command, safe_unlink
from .resolver import QpdfCommandResolver

_LOGGER = logging.getLogger("pdf_packager.toolkit")

WARNING_EXIT_ZERO = "--warning-exit-0"


class ModifyPermission(str, Enum):
    """Modification level granted by the encrypted output."""

    NONE = "none"
    ANNOTATE = "annotate"


def build_qdf_command(executable: str, source: Path, output: Path, *, remove_metadata: bool = False) -> list[str]:
    """Construct the command producing an uncompressed, editable QDF file."""

    command = [
        executable,
        WARNING_EXIT_ZERO,
        "--stream-data=uncompress",
        "--object-streams=disable",
    ]
    if remove_metadata:
        command.append("--remove-metadata")
    command.extend(["--qdf", str(source), str(output)])
    return command


def build_rebuild_command(executable: str, source: Path, output: Path) -> list[str]:
    return [executable, WARNING_EXIT_ZERO, str(source), str(output)]


def build_json_command(executable: str, source: Path) -> list[str]:
    return [executable, WARNING_EXIT_ZERO, "--json", str(source)]


def build_overlay_command(executable: str, overlay: Path, source: Path, output: Path) -> list[str]:
    return [executable, WARNING_EXIT_ZERO, "--overlay", str(overlay), "--", str(source), str(output)]


def build_optimize_command(executable: str, source: Path, output: Path) -> list[str]:
    return [
        executable,
        WARNING_EXIT_ZERO,
        "--stream-data=compress",
        "--object-streams=generate",
        "--",
        str(source),
        str(output),
    ]


def build_encrypt_command(
    executable: str,
    source: Path,
    output: Path,
    password: str,
    modify: ModifyPermission = ModifyPermission.NONE,
) -> list[str]:
    """Construct the AES-256 encryption command with an empty user password."""

    return [
        executable,
        WARNING_EXIT_ZERO,
        "--encrypt",
        "",
        password,
        "256",
        "--print=none",
        "--extract=n",
        f"--modify={ModifyPermission(modify).value}",
        "--",
        str(source),
        str(output),
    ]


class QpdfToolkit:
    """Run qpdf and turn failures into :class:`ToolkitError`."""

    def __init__(self, resolver: QpdfCommandResolver | None = None) -> None:
        self.resolver = resolver or QpdfCommandResolver()

    @property
    def executable(self) -> str:
        return self.resolver.resolve()

    def run(
        self,
        command: Sequence[str],
        *,
        on_output: Optional[OutputCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommandResult:
        try:
            return run_command(command, on_output=on_output, cancel_event=cancel_event)
        except OSError as exc:
            raise ToolkitError(
                f"Unable to start the PDF toolkit. Command: {command[0]}. Error: {exc}",
                command=command,
            ) from exc

    def _run_to_file(
        self,
        command: Sequence[str],
        output: Path,
        description: str,
        *,
        on_output: Optional[OutputCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        try:
            result = self.run(command, on_output=on_output, cancel_event=cancel_event)
        except BaseException:
            safe_unlink(output)
            raise

        if result.returncode != 0 or not file_exists(output):
            safe_unlink(output)
            raise ToolkitError(
                f"{description}. Command: {command[0]}. Error: {result.error_output()}",
                command=command,
                output=result.error_output(),
            )
        return output

    def to_qdf(
        self,
        source: Path,
        output: Path,
        *,
        remove_metadata: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        command = build_qdf_command(self.executable, source, output, remove_metadata=remove_metadata)
        return self._run_to_file(command, output, "Unable to generate the QDF version of the PDF", cancel_event=cancel_event)

    def rebuild(self, source: Path, output: Path, *, cancel_event: Optional[threading.Event] = None) -> Path:
        command = build_rebuild_command(self.executable, source, output)
        return self._run_to_file(command, output, "Unable to rebuild the PDF", cancel_event=cancel_event)

    def overlay(
        self,
        overlay: Path,
        source: Path,
        output: Path,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        command = build_overlay_command(self.executable, overlay, source, output)
        return self._run_to_file(command, output, "Unable to apply the watermark overlay", cancel_event=cancel_event)

    def optimize(self, source: Path, output: Path, *, cancel_event: Optional[threading.Event] = None) -> Path:
        command = build_optimize_command(self.executable, source, output)
        return self._run_to_file(command, output, "Unable to optimise the generated PDF", cancel_event=cancel_event)

    def encrypt(
        self,
        source: Path,
        output: Path,
        password: str,
        *,
        modify: ModifyPermission = ModifyPermission.NONE,
        on_output: Optional[OutputCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        command = build_encrypt_command(self.executable, source, output, password, modify)
        # the command line carries the owner password, errors only keep the executable
        try:
            result = self.run(command, on_output=on_output, cancel_event=cancel_event)
        except ToolkitError as exc:
            safe_unlink(output)
            raise ToolkitError(exc.message, command=[command[0]]) from exc.__cause__
        except BaseException:
            safe_unlink(output)
            raise

        if result.returncode != 0 or not file_exists(output):
            safe_unlink(output)
            raise ToolkitError(
                f"Unable to apply the restrictions. Command: {command[0]}. Error: {result.error_output()}",
                command=[command[0]],
                output=result.error_output(),
            )
        return output

    def inspect_json(self, source: Path, *, cancel_event: Optional[threading.Event] = None) -> dict[str, Any]:
        """Return the parsed ``qpdf --json`` document for *source*."""

        command = build_json_command(self.executable, source)
        result = self.run(command, cancel_event=cancel_event)
        if result.returncode != 0:
            raise ToolkitError(
                f"Unable to analyse the source PDF. Command: {command[0]}. Error: {result.error_output()}",
                command=command,
                output=result.error_output(),
            )

        try:
            payload = json.loads(result.stdout or "null")
        except json.JSONDecodeError as exc:
            raise PageGeometryError(f"Unable to parse the qpdf JSON output. Error: {exc}") from exc

        if not isinstance(payload, dict):
            raise PageGeometryError("The qpdf JSON output is not an object.")
        return payload


__all__: List[str] = [
    "ModifyPermission",
    "QpdfToolkit",
    "build_encrypt_command",
    "build_json_command",
    "build_optimize_command",
    "build_overlay_command",
    "build_qdf_command",
    "build_rebuild_command",
]
