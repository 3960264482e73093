"""Reviewer and member preparation workflows."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .archive import ZipService, build_zip_targets
from .exceptions import SourceDirectoryError
from .matcher import PdfFileMatcher, looks_like_name_reference
from .pipeline.base import PipelineLogger, emit
from .processor import PdfPackageProcessor, ProgressCallback
from .types import InventoryEntry, MemberEntry, PdfPackage, PreparationStats, ReviewerAssignment
from .utils import PathLike

_LOGGER = logging.getLogger("pdf_packager.services")

REVIEWER_FALLBACK = "reviewer"
MEMBER_FALLBACK = "member"
DEFAULT_DOCUMENT = "document.pdf"

_WHITESPACE = re.compile(r"\s+")


def _sort_key(value: str) -> tuple:
    return value.lower(), value


def _resolve_source_dir(source_dir: PathLike) -> Path:
    path = Path(source_dir).expanduser()
    if not path.is_dir():
        raise SourceDirectoryError(f"Source directory not found: {source_dir}")
    return path.resolve()


def fallback_file_name(first_name: str, last_name: str) -> str:
    """``"<last> <first>.pdf"`` for a person without a matching document."""

    parts = [value.strip() for value in (last_name, first_name) if value and value.strip()]
    if not parts:
        return DEFAULT_DOCUMENT
    return f"{_WHITESPACE.sub(' ', ' '.join(parts)).strip()}.pdf"


def fallback_file_name_from_reference(reference: str) -> str:
    normalized = _WHITESPACE.sub(" ", reference).strip()
    return f"{normalized}.pdf" if normalized else DEFAULT_DOCUMENT


def build_reviewer_packages(
    assignments: Iterable[ReviewerAssignment],
    available_files: Sequence[str],
) -> List[PdfPackage]:
    """Invert ``file -> reviewers`` assignments into one package per reviewer.

    Assignments without a ``file`` are resolved from ``first_name`` and
    ``last_name`` with :class:`PdfFileMatcher`; unmatched people fall back to
    ``"<last> <first>.pdf"`` so that they surface as missing files later on.
    Reviewers are grouped case-insensitively, keeping the first spelling seen.
    """

    matcher = PdfFileMatcher(available_files)
    names: Dict[str, str] = {}
    files_by_reviewer: Dict[str, set] = {}

    for assignment in assignments:
        reviewers = [reviewer.strip() for reviewer in assignment.reviewers if reviewer and reviewer.strip()]
        if not reviewers:
            continue

        file = (assignment.file or "").strip()
        if not file:
            first_name = assignment.first_name.strip()
            last_name = assignment.last_name.strip()
            if not first_name and not last_name:
                continue
            file = matcher.find_best_match(first_name, last_name) or fallback_file_name(first_name, last_name)

        for reviewer in reviewers:
            key = reviewer.lower()
            names.setdefault(key, reviewer)
            files_by_reviewer.setdefault(key, set()).add(file)

    packages = [
        PdfPackage(name=names[key], files=sorted(files, key=_sort_key))
        for key, files in files_by_reviewer.items()
    ]
    packages.sort(key=lambda package: _sort_key(package.name))
    return packages


class ReviewerPreparationService:
    """Prepare one folder per reviewer holding the documents they review."""

    def __init__(self, processor: PdfPackageProcessor, zip_service: Optional[ZipService] = None) -> None:
        self.processor = processor
        self.zip_service = zip_service or ZipService()

    def prepare(
        self,
        packages: Sequence[PdfPackage],
        source_dir: PathLike,
        output_dir: PathLike,
        collection_name: str = "",
        logger: Optional[PipelineLogger] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        zip_enabled: bool = True,
    ) -> PreparationStats:
        resolved_source = _resolve_source_dir(source_dir)
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        inventory = self.processor.collect_pdf_files(resolved_source, cancel_event)

        normalized: List[PdfPackage] = []
        for package in packages:
            name = package.name.strip()
            files = [file.strip() for file in package.files if file.strip()]
            if name and files:
                normalized.append(PdfPackage(name=name, files=files))

        if not normalized:
            return PreparationStats(requested_recipients=len(packages))

        def _after_file(entry: InventoryEntry, recipient: str, _restricted: bool, password: Optional[str]) -> None:
            emit(logger, f"Processed {entry.relative} for {recipient} (owner password: {password or ''})")

        stats = self.processor.prepare(
            normalized,
            resolved_source,
            output_path,
            REVIEWER_FALLBACK,
            collection_name,
            logger=logger,
            inventory=inventory,
            after_file_processed=_after_file,
            progress=progress,
            cancel_event=cancel_event,
        )

        if zip_enabled:
            targets = build_zip_targets(normalized, output_path, collection_name, REVIEWER_FALLBACK)
            self.zip_service.zip_all(targets, logger, cancel_event)

        return stats


class MemberPreparationService:
    """Prepare one folder per member; members without files receive everything."""

    def __init__(self, processor: PdfPackageProcessor, zip_service: Optional[ZipService] = None) -> None:
        self.processor = processor
        self.zip_service = zip_service or ZipService()

    def prepare(
        self,
        members: Sequence[MemberEntry],
        source_dir: PathLike,
        output_dir: PathLike,
        collection_name: str = "",
        logger: Optional[PipelineLogger] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        zip_enabled: bool = True,
    ) -> PreparationStats:
        resolved_source = _resolve_source_dir(source_dir)
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        inventory = self.processor.collect_pdf_files(resolved_source, cancel_event)
        if not inventory:
            raise SourceDirectoryError(f"No PDF files found in {source_dir}.")

        matcher = PdfFileMatcher([entry.relative for entry in inventory], cancel_event=cancel_event)
        packages: List[PdfPackage] = []

        for member in members:
            name = member.name.strip()
            if not name:
                continue

            requested = [file.strip() for file in member.files if file and file.strip()]
            if requested:
                files = resolve_requested_files(requested, inventory, matcher, logger)
            else:
                files = [entry.relative for entry in inventory]

            if not files:
                emit(logger, f"No files assigned to member {name}. Member skipped.")
                continue

            packages.append(PdfPackage(name=name, files=files))

        if not packages:
            return PreparationStats()

        stats = self.processor.prepare(
            packages,
            resolved_source,
            output_path,
            MEMBER_FALLBACK,
            collection_name,
            logger=logger,
            inventory=inventory,
            progress=progress,
            cancel_event=cancel_event,
        )

        if zip_enabled:
            targets = build_zip_targets(packages, output_path, collection_name, MEMBER_FALLBACK)
            self.zip_service.zip_all(targets, logger, cancel_event)

        return stats


def resolve_requested_files(
    requested: Iterable[str],
    inventory: Sequence[InventoryEntry],
    matcher: Optional[PdfFileMatcher] = None,
    logger: Optional[PipelineLogger] = None,
) -> List[str]:
    """Expand member file references into inventory paths.

    Each reference is tried, in order, as ``.`` (files at the root), an exact
    path, a folder prefix, a ``*`` wildcard and finally a free-text person
    name. Duplicates are dropped, first occurrence wins.
    """

    lookup = {entry.relative.lower(): entry.relative for entry in inventory}
    resolved: List[str] = []

    for reference in requested:
        trimmed = reference.strip()
        if not trimmed:
            continue

        if trimmed == ".":
            resolved.extend(entry.relative for entry in inventory if "/" not in entry.relative)
            continue

        lower = trimmed.lower()
        if lower in lookup:
            resolved.append(lookup[lower])
            continue

        folder = lower.rstrip("/") + "/"
        folder_matches = [entry.relative for entry in inventory if entry.relative.lower().startswith(folder)]
        if folder_matches:
            resolved.extend(folder_matches)
            continue

        if "*" in trimmed:
            pattern = re.compile(
                "^" + ".*".join(re.escape(part) for part in trimmed.split("*")) + "$",
                re.IGNORECASE,
            )
            matches = [entry.relative for entry in inventory if pattern.match(entry.relative)]
            if matches:
                resolved.extend(matches)
            else:
                emit(logger, f"No file matches the pattern: {trimmed}")
            continue

        if matcher is not None and looks_like_name_reference(trimmed):
            match = matcher.find_by_name_reference(trimmed)
            if match is None:
                _LOGGER.debug("No document matches the name %r", trimmed)
            resolved.append(match or fallback_file_name_from_reference(trimmed))
            continue

        emit(logger, f"File not found: {trimmed}")

    return list(dict.fromkeys(resolved))
