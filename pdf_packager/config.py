"""Environment-driven settings and object wiring."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .archive import ZipService
from .pipeline import CleanStage, MetadataStage, PdfProcessingPipeline, RestrictionStage, WatermarkStage
from .pipeline.stages.clean import DEFAULT_PATTERN
from .processor import PdfPackageProcessor
from .services import MemberPreparationService, ReviewerPreparationService
from .toolkit import ModifyPermission, QpdfCommandResolver, QpdfToolkit

_LOGGER = logging.getLogger("pdf_packager.config")

ENV_COMMAND = "QPDF_COMMAND"
ENV_CLEAN_PATTERN = "PDF_PACKAGER_CLEAN_PATTERN"
ENV_MODIFY = "PDF_PACKAGER_MODIFY"
ENV_WORKERS = "PDF_PACKAGER_WORKERS"


@dataclass
class Settings:
    """Runtime options of the packager.

    Attributes:
        qpdf_command: Explicit qpdf executable, resolved automatically when ``None``
        clean_pattern: Regular expression of identifiers to redact
        modify: ``--modify`` permission granted by the encryption stage
        max_workers: Files processed concurrently
    """

    qpdf_command: Optional[str] = None
    clean_pattern: str = DEFAULT_PATTERN
    modify: ModifyPermission = ModifyPermission.NONE
    max_workers: int = 1

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        command = env.get(ENV_COMMAND, "").strip() or None
        pattern = env.get(ENV_CLEAN_PATTERN, "").strip() or DEFAULT_PATTERN

        modify_value = env.get(ENV_MODIFY, "").strip().lower()
        try:
            modify = ModifyPermission(modify_value) if modify_value else ModifyPermission.NONE
        except ValueError:
            _LOGGER.warning("Ignoring %s=%r; expected one of none, annotate", ENV_MODIFY, modify_value)
            modify = ModifyPermission.NONE

        workers_value = env.get(ENV_WORKERS, "").strip()
        try:
            workers = max(1, int(workers_value)) if workers_value else 1
        except ValueError:
            _LOGGER.warning("Ignoring %s=%r; expected an integer", ENV_WORKERS, workers_value)
            workers = 1

        return cls(qpdf_command=command, clean_pattern=pattern, modify=modify, max_workers=workers)


def create_toolkit(settings: Settings) -> QpdfToolkit:
    return QpdfToolkit(QpdfCommandResolver(override=settings.qpdf_command))


def create_pipeline(settings: Settings, toolkit: Optional[QpdfToolkit] = None) -> PdfProcessingPipeline:
    """Clean, watermark, metadata and restriction stages sharing one toolkit."""

    toolkit = toolkit or create_toolkit(settings)
    return PdfProcessingPipeline(
        [
            CleanStage(toolkit, settings.clean_pattern),
            WatermarkStage(toolkit),
            MetadataStage(toolkit),
            RestrictionStage(toolkit, modify=settings.modify),
        ]
    )


def create_services(
    settings: Settings,
    toolkit: Optional[QpdfToolkit] = None,
) -> Tuple[ReviewerPreparationService, MemberPreparationService]:
    processor = PdfPackageProcessor(create_pipeline(settings, toolkit), max_workers=settings.max_workers)
    zip_service = ZipService()
    return (
        ReviewerPreparationService(processor, zip_service),
        MemberPreparationService(processor, zip_service),
    )
