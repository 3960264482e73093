"""Per-file transformation pipeline."""

from __future__ import annotations

from .base import PdfProcessingStage, PipelineLogger, SharedResourceStage
from .cache import SignatureCache
from .pipeline import PdfProcessingPipeline
from .stages import CleanStage, MetadataStage, RestrictionStage, WatermarkStage

__all__ = [
    "CleanStage",
    "MetadataStage",
    "PdfProcessingPipeline",
    "PdfProcessingStage",
    "PipelineLogger",
    "RestrictionStage",
    "SharedResourceStage",
    "SignatureCache",
    "WatermarkStage",
]
