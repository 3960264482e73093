"""Contracts shared by the pipeline and its stages."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..context import ProcessingContext
from ..exceptions import PipelineCancelledError
from ..utils import raise_if_cancelled

PipelineLogger = Callable[[str], None]
"""Sink receiving user-facing progress and warning lines."""


def emit(logger: Optional[PipelineLogger], message: str) -> None:
    if logger is not None:
        logger(message)


class PdfProcessingStage(ABC):
    """One transformation applied to the working file of a context."""

    name: str = "stage"

    @abstractmethod
    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        """Return a new context whose working path holds the transformed document."""


class SharedResourceStage(ABC):
    """Stage keeping state across files that must be released at shutdown."""

    @abstractmethod
    def dispose_shared_resources(self) -> None:
        """Drop cached results and delete their backing files."""


__all__ = [
    "PdfProcessingStage",
    "PipelineCancelledError",
    "PipelineLogger",
    "SharedResourceStage",
    "emit",
    "raise_if_cancelled",
]
