"""Built-in processing stages."""

from __future__ import annotations

from .clean import DEFAULT_PATTERN, CleanResult, CleanStage
from .metadata import MetadataStage
from .restriction import RestrictionStage
from .watermark import WatermarkStage

__all__ = [
    "DEFAULT_PATTERN",
    "CleanResult",
    "CleanStage",
    "MetadataStage",
    "RestrictionStage",
    "WatermarkStage",
]
