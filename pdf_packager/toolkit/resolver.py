"""Locate the qpdf executable used by every pipeline stage."""

from __future__ import annotations

import logging
import os
import platform
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..utils import which

_LOGGER = logging.getLogger("pdf_packager.toolkit")

COMMAND_NAME = "qpdf"
ENV_OVERRIDE = "QPDF_COMMAND"
_ARCHIVE_SUFFIXES = (".zip", ".pyz", ".asar")
_PACKAGE_DIR = Path(__file__).resolve().parents[1]


def _normalized_arch() -> str:
    machine = platform.machine().lower()
    return {
        "amd64": "x64",
        "x86_64": "x64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "i386": "ia32",
        "i686": "ia32",
        "x86": "ia32",
    }.get(machine, machine)


def _is_executable(candidate: Path) -> bool:
    if not candidate.is_file():
        return False
    if sys.platform == "win32":
        return True
    return os.access(candidate, os.X_OK)


class QpdfCommandResolver:
    """Resolve the qpdf command.

    Resolution order: ``QPDF_COMMAND`` environment override, the ``PATH``,
    a binary embedded under one of the resource roots, and finally the bare
    command name. Resolution never fails; a missing binary only surfaces when
    the command is run.
    """

    def __init__(
        self,
        *,
        override: Optional[str] = None,
        resource_roots: Optional[Sequence[str | Path]] = None,
        platform_name: Optional[str] = None,
        arch: Optional[str] = None,
    ) -> None:
        self._override = override
        self._resource_roots = [Path(root) for root in resource_roots] if resource_roots else None
        self._platform = platform_name or sys.platform
        self._arch = arch or _normalized_arch()
        self._resolved: Optional[str] = None

    def resolve(self) -> str:
        if self._resolved is None:
            self._resolved = self._resolve()
            _LOGGER.debug("Using qpdf command: %s", self._resolved)
        return self._resolved

    def _resolve(self) -> str:
        override = (self._override or os.environ.get(ENV_OVERRIDE, "")).strip()
        if override:
            return override

        system_command = which([COMMAND_NAME])
        if system_command:
            return system_command

        embedded = self._resolve_embedded()
        if embedded:
            return str(embedded)

        return COMMAND_NAME

    def _resolve_embedded(self) -> Optional[Path]:
        for root in self.candidate_roots():
            for candidate in self.platform_candidates(root):
                if _is_executable(candidate):
                    return candidate
        return None

    def candidate_roots(self) -> List[Path]:
        roots: List[Path] = []

        def add(root: Optional[Path]) -> None:
            if root is None:
                return
            for expanded in _expand_archive_root(root):
                if expanded not in roots:
                    roots.append(expanded)

        if self._resource_roots is not None:
            for root in self._resource_roots:
                add(root)
            return roots

        bundle_dir = getattr(sys, "_MEIPASS", None)
        if bundle_dir:
            add(Path(bundle_dir) / "resources" / "commands")
            add(Path(bundle_dir) / "commands")
        add(_PACKAGE_DIR / "resources" / "commands")
        add(_PACKAGE_DIR.parent / "resources" / "commands")
        add(Path.cwd() / "commands")
        return roots

    def platform_candidates(self, root: Path) -> List[Path]:
        if self._platform == "win32":
            return [root / "win" / self._arch / "qpdf.exe", root / "win" / "qpdf.exe"]
        if self._platform == "darwin":
            return [root / "mac" / self._arch / COMMAND_NAME, root / "mac" / COMMAND_NAME]
        if self._platform.startswith("linux"):
            return [root / "linux" / self._arch / COMMAND_NAME, root / "linux" / COMMAND_NAME]
        return []


def _expand_archive_root(root: Path) -> Iterable[Path]:
    """Prefer the unpacked sibling of an archive component, then the root itself."""

    parts = list(root.parts)
    for index, part in enumerate(parts):
        if part.lower().endswith(_ARCHIVE_SUFFIXES):
            unpacked = Path(*parts[:index], f"{part}.unpacked", *parts[index + 1:])
            return [unpacked, root]
    return [root]
