"""Rewrite the document information dictionary of each copy."""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import List, Optional

from ...context import ProcessingContext
from ...exceptions import MetadataPatchError
from ...text import escape_pdf_string, normalize_label
from ...toolkit import QpdfToolkit
from ...utils import raise_if_cancelled, safe_unlink, temporary_pdf_path
from ..base import PdfProcessingStage, PipelineLogger, emit

_LOGGER = logging.getLogger("pdf_packager.pipeline.metadata")

_ENCODING = "latin-1"
_TRAILER = re.compile(r"trailer\s*<<.*?>>", re.DOTALL)
_INFO_REFERENCE = re.compile(r"/Info\s+(\d+)\s+(\d+)\s+R")
_OBJECT_HEADER = re.compile(r"(?:^|\n)(\d+)\s+\d+\s+obj")
_SIZE = re.compile(r"/Size\s+(\d+)")
_TRAILER_OPEN = re.compile(r"<<\s*")
_REMOVED_ENTRIES = re.compile(
    r"/(?:Author|Producer|Title|Subject)\s*(?:\((?:\\.|[^\\)])*\)|<[0-9A-Fa-f\s]*>)\s*",
    re.IGNORECASE | re.DOTALL,
)


def build_subject(recipient: str) -> str:
    return f"Shared with {normalize_label(recipient)}"


def build_info_dictionary(subject: str, existing_body: Optional[str] = None) -> str:
    """Dictionary keeping custom entries of *existing_body* and setting ``/Subject``."""

    preserved: List[str] = []
    if existing_body:
        cleaned = _REMOVED_ENTRIES.sub("", existing_body)
        preserved = [line.strip() for line in cleaned.splitlines() if line.strip()]

    lines = ["<<"]
    lines.extend(f"  {line}" for line in preserved)
    lines.append(f"  /Subject ({escape_pdf_string(subject)})")
    lines.append(">>")
    return "\n".join(lines)


def find_max_object_id(source: str) -> int:
    return max((int(match.group(1)) for match in _OBJECT_HEADER.finditer(source)), default=0)


def _update_trailer(trailer: str, info_id: int, generation: int, max_object_id: int) -> str:
    reference = f"/Info {info_id} {generation} R"
    if _INFO_REFERENCE.search(trailer):
        updated = _INFO_REFERENCE.sub(lambda _match: reference, trailer, count=1)
    else:
        updated = _TRAILER_OPEN.sub(lambda match: f"{match.group(0)}{reference} ", trailer, count=1)

    def _fix_size(match: re.Match[str]) -> str:
        required = max(int(match.group(1)), max_object_id + 1, info_id + 1)
        return f"/Size {required}"

    return _SIZE.sub(_fix_size, updated, count=1)


def inject_info_dictionary(source: str, subject: str) -> str:
    """Return QDF text whose trailer references an Info dictionary with *subject*.

    An existing Info object is rewritten in place; otherwise a new object is
    inserted right before the trailer. ``/Size`` is raised to cover every
    object id so the rebuild accepts the file.
    """

    trailer_match = _TRAILER.search(source)
    if trailer_match is None:
        raise MetadataPatchError("Unable to locate the PDF trailer to update the metadata.")

    trailer = trailer_match.group(0)
    max_object_id = find_max_object_id(source)
    reference = _INFO_REFERENCE.search(trailer)

    if reference is not None:
        object_id = int(reference.group(1))
        generation = int(reference.group(2))
        object_pattern = re.compile(
            rf"(?:\r?\n|^){object_id}\s+{generation}\s+obj\s*<<(.*?)>>\s*endobj",
            re.DOTALL,
        )
        object_match = object_pattern.search(source)
        if object_match is None:
            raise MetadataPatchError("Unable to locate the Info object in the QDF file.")

        dictionary = build_info_dictionary(subject, object_match.group(1))
        replacement = f"\n{object_id} {generation} obj\n{dictionary}\nendobj"
        updated = source[: object_match.start()] + replacement + source[object_match.end():]
        new_trailer = _update_trailer(trailer, object_id, generation, max_object_id)
        return updated.replace(trailer, new_trailer, 1)

    new_id = max_object_id + 1
    info_object = f"\n{new_id} 0 obj\n{build_info_dictionary(subject)}\nendobj\n"
    position = trailer_match.start()
    updated = source[:position] + info_object + source[position:]
    new_trailer = _update_trailer(trailer, new_id, 0, new_id)
    return updated.replace(trailer, new_trailer, 1)


class MetadataStage(PdfProcessingStage):
    """Strip Author/Producer/Title/Subject and record the recipient in ``/Subject``."""

    name = "metadata"

    def __init__(self, toolkit: QpdfToolkit) -> None:
        self.toolkit = toolkit

    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        raise_if_cancelled(cancel_event)
        qdf_path = self.toolkit.to_qdf(
            context.working_path,
            temporary_pdf_path("meta_qdf"),
            remove_metadata=True,
            cancel_event=cancel_event,
        )
        try:
            self.apply_metadata_policy(qdf_path, context.recipient)
            raise_if_cancelled(cancel_event)
            rebuilt = self.toolkit.rebuild(qdf_path, temporary_pdf_path("metadata"), cancel_event=cancel_event)
        finally:
            safe_unlink(qdf_path)

        if context.use_default_logging:
            emit(logger, f"  → {context.relative_path}: metadata cleared and subject applied")
        return context.with_working_path(rebuilt)

    @staticmethod
    def apply_metadata_policy(qdf_path: Path, recipient: str) -> None:
        source = qdf_path.read_bytes().decode(_ENCODING)
        updated = inject_info_dictionary(source, build_subject(recipient))
        qdf_path.write_bytes(updated.encode(_ENCODING, errors="replace"))
        _LOGGER.debug("Info dictionary rewritten in %s", qdf_path)
