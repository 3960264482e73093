from __future__ import annotations

import logging

import pytest

from pdf_packager.config import Settings, create_pipeline, create_services
from pdf_packager.pipeline import CleanStage, MetadataStage, RestrictionStage, WatermarkStage
from pdf_packager.pipeline.stages.clean import DEFAULT_PATTERN
from pdf_packager.toolkit import ModifyPermission


def test_defaults_from_empty_environment() -> None:
    settings = Settings.from_env({})

    assert settings.qpdf_command is None
    assert settings.clean_pattern == DEFAULT_PATTERN
    assert settings.modify is ModifyPermission.NONE
    assert settings.max_workers == 1


def test_values_from_environment() -> None:
    settings = Settings.from_env(
        {
            "QPDF_COMMAND": " /opt/qpdf ",
            "PDF_PACKAGER_CLEAN_PATTERN": r"\d{6}",
            "PDF_PACKAGER_MODIFY": "Annotate",
            "PDF_PACKAGER_WORKERS": "4",
        }
    )

    assert settings.qpdf_command == "/opt/qpdf"
    assert settings.clean_pattern == r"\d{6}"
    assert settings.modify is ModifyPermission.ANNOTATE
    assert settings.max_workers == 4


def test_invalid_values_fall_back_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="pdf_packager.config"):
        settings = Settings.from_env({"PDF_PACKAGER_MODIFY": "all", "PDF_PACKAGER_WORKERS": "many"})

    assert settings.modify is ModifyPermission.NONE
    assert settings.max_workers == 1
    assert len(caplog.records) == 2


def test_pipeline_stage_order(toolkit) -> None:
    pipeline = create_pipeline(Settings(), toolkit)
    assert [type(stage) for stage in pipeline.stages] == [CleanStage, WatermarkStage, MetadataStage, RestrictionStage]


def test_services_share_processor(toolkit) -> None:
    reviewers, members = create_services(Settings(max_workers=3), toolkit)

    assert reviewers.processor is members.processor
    assert reviewers.processor.max_workers == 3
