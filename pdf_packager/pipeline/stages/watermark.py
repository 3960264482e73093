"""Diagonal recipient watermark stamped on every page."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional

from ...context import ProcessingContext
from ...exceptions import PDFPackagerException, ToolkitError
from ...overlay import build_overlay_document, extract_page_sizes
from ...text import normalize_label
from ...toolkit import QpdfToolkit
from ...types import PageSize
from ...utils import raise_if_cancelled, safe_unlink, temporary_pdf_path
from ..base import PdfProcessingStage, PipelineLogger, SharedResourceStage, emit
from ..cache import SignatureCache

_LOGGER = logging.getLogger("pdf_packager.pipeline.watermark")


class WatermarkStage(PdfProcessingStage, SharedResourceStage):
    name = "watermark"

    def __init__(self, toolkit: QpdfToolkit) -> None:
        self.toolkit = toolkit
        self._geometry: SignatureCache[List[PageSize]] = SignatureCache("page geometry")

    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        source = context.working_path
        if not source.is_file():
            raise PDFPackagerException(f"Source PDF not found: {source}")

        label = normalize_label(context.recipient)
        pages = self.page_sizes(source, cancel_event)
        raise_if_cancelled(cancel_event)

        output = temporary_pdf_path("watermark")
        overlay_path = temporary_pdf_path("overlay")
        overlay_path.write_bytes(build_overlay_document(pages, label))
        try:
            self.toolkit.overlay(overlay_path, source, output, cancel_event=cancel_event)
        finally:
            safe_unlink(overlay_path)

        try:
            self._optimize(output, logger, cancel_event)
        except BaseException:
            safe_unlink(output)
            raise

        if context.use_default_logging:
            emit(logger, f"  → {context.relative_path}: watermark {context.recipient} applied")
        return context.with_working_path(output)

    def page_sizes(self, source: Path, cancel_event: Optional[threading.Event] = None) -> List[PageSize]:
        return self._geometry.get_or_compute(
            source,
            lambda: extract_page_sizes(self.toolkit.inspect_json(source, cancel_event=cancel_event)),
        )

    def dispose_shared_resources(self) -> None:
        self._geometry.dispose()

    def _optimize(
        self,
        path: Path,
        logger: Optional[PipelineLogger],
        cancel_event: Optional[threading.Event],
    ) -> None:
        optimized = temporary_pdf_path("optimized")
        try:
            self.toolkit.optimize(path, optimized, cancel_event=cancel_event)
        except ToolkitError as exc:
            _LOGGER.warning("Optimisation failed for %s: %s", path, exc)
            emit(logger, f"    ⚠️ Optimisation skipped, keeping the uncompressed watermark output. Detail: {exc}")
            return
        try:
            os.replace(optimized, path)
        finally:
            safe_unlink(optimized)
