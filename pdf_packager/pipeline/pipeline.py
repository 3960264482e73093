"""Ordered chain of processing stages."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

from ..context import ProcessingContext
from ..utils import raise_if_cancelled, safe_unlink
from .base import PdfProcessingStage, PipelineLogger, SharedResourceStage

_LOGGER = logging.getLogger("pdf_packager.pipeline")


class PdfProcessingPipeline:
    """Run a context through every stage, then reclaim temporary files."""

    def __init__(self, stages: Iterable[PdfProcessingStage]) -> None:
        self.stages: List[PdfProcessingStage] = list(stages)

    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        current = context
        succeeded = False
        try:
            raise_if_cancelled(cancel_event)
            for stage in self.stages:
                raise_if_cancelled(cancel_event)
                _LOGGER.debug("Running %s on %s", stage.name, current.relative_path)
                current = stage.process(current, logger, cancel_event)
                raise_if_cancelled(cancel_event)
            succeeded = True
            return current
        finally:
            self._cleanup(current, keep_working_path=succeeded)

    def dispose_shared_resources(self) -> None:
        for stage in self.stages:
            if isinstance(stage, SharedResourceStage):
                stage.dispose_shared_resources()

    @staticmethod
    def _cleanup(context: ProcessingContext, *, keep_working_path: bool) -> None:
        final_path = context.working_path if keep_working_path else None
        for path in context.temporary_paths:
            if path == final_path:
                continue
            safe_unlink(path)
