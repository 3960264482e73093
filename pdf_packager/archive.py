"""Zip archives of prepared recipient folders."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Iterable, List, Optional
from zipfile import ZIP_DEFLATED, ZipFile

from .exceptions import ArchiveError, PipelineCancelledError
from .pipeline.base import PipelineLogger, emit
from .text import NameSanitizer
from .types import PdfPackage, ZipTarget
from .utils import ensure_parent_dir, raise_if_cancelled, safe_unlink

_LOGGER = logging.getLogger("pdf_packager.archive")

RECIPIENT_LABEL_FALLBACK = "recipient"


def build_zip_targets(
    packages: Iterable[PdfPackage],
    output_dir: str | Path,
    collection_name: str,
    fallback_name: str,
) -> List[ZipTarget]:
    """One target per distinct recipient folder, archived inside that folder.

    The archive is named ``"<collection label> - <recipient>.zip"``.
    """

    collection = collection_name.strip()
    collection_label = NameSanitizer.sanitize_for_file_name(collection, "collection")
    collection_folder = NameSanitizer.sanitize(collection, "collection") if collection else None

    targets = {}
    for package in packages:
        recipient = package.name.strip()
        if not recipient:
            continue

        recipient_dir = Path(output_dir) / NameSanitizer.sanitize(recipient, fallback_name)
        base_dir = recipient_dir / collection_folder if collection_folder else recipient_dir
        recipient_label = NameSanitizer.sanitize_for_file_name(recipient, RECIPIENT_LABEL_FALLBACK)
        zip_path = recipient_dir / f"{collection_label} - {recipient_label}.zip"
        targets[str(base_dir)] = ZipTarget(source_dir=str(base_dir), zip_path=str(zip_path), label=recipient)

    return list(targets.values())


class ZipService:
    """Create deflate-compressed archives of recipient folders."""

    def zip_all(
        self,
        targets: Iterable[ZipTarget],
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Path]:
        created: List[Path] = []
        for target in targets:
            raise_if_cancelled(cancel_event)
            archive = self.zip_directory(target, logger, cancel_event)
            if archive is not None:
                created.append(archive)
        return created

    def zip_directory(
        self,
        target: ZipTarget,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[Path]:
        """Archive ``target.source_dir`` with the folder name as archive root.

        Returns the archive path, or ``None`` when the folder holds no file.
        """

        source_dir = Path(target.source_dir)
        zip_path = Path(target.zip_path)
        label = target.label or str(source_dir)

        zip_resolved = zip_path.resolve()
        files = [path for path in self._list_files(source_dir) if path.resolve() != zip_resolved]
        if not files:
            emit(logger, f"No files to archive for {label}. Archive skipped.")
            return None

        ensure_parent_dir(zip_path)
        inside_source = source_dir.resolve() in zip_resolved.parents
        working_path = source_dir.parent / zip_path.name if inside_source else zip_path

        safe_unlink(zip_path)
        if working_path != zip_path:
            safe_unlink(working_path)

        try:
            with ZipFile(working_path, "w", compression=ZIP_DEFLATED) as archive:
                for file_path in files:
                    raise_if_cancelled(cancel_event)
                    arcname = Path(source_dir.name) / file_path.relative_to(source_dir)
                    archive.write(file_path, arcname=arcname.as_posix())
            if working_path != zip_path:
                os.replace(working_path, zip_path)
        except OSError as exc:
            safe_unlink(working_path)
            raise ArchiveError(f"Unable to create the archive for {label}: {exc}") from exc
        except PipelineCancelledError:
            safe_unlink(working_path)
            raise

        _LOGGER.debug("Archived %d files from %s into %s", len(files), source_dir, zip_path)
        emit(logger, f"Archive created: {zip_path}")
        return zip_path

    @staticmethod
    def _list_files(source_dir: Path) -> List[Path]:
        if not source_dir.is_dir():
            return []
        return sorted((path for path in source_dir.rglob("*") if path.is_file()), key=lambda path: path.as_posix().lower())
