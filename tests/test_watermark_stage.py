from __future__ import annotations

import dataclasses
import io
from pathlib import Path
from typing import List

import pytest
from pypdf import PdfReader

from pdf_packager.context import ProcessingContext
from pdf_packager.exceptions import ToolkitError
from pdf_packager.pipeline import WatermarkStage


@pytest.fixture()
def context(sample_pdf: Path, tmp_path: Path) -> ProcessingContext:
    return ProcessingContext(
        working_path=sample_pdf,
        relative_path="sample.pdf",
        recipient="  Élodie Durand ",
        target_directory=tmp_path / "out",
        basename="sample.pdf",
    )


def test_overlay_has_one_page_per_source_page(context, toolkit, fake_qpdf, temp_dir: Path) -> None:
    stage = WatermarkStage(toolkit)

    result = stage.process(context)

    assert result.working_path in result.temporary_paths
    assert result.working_path.exists()
    overlay = PdfReader(io.BytesIO(fake_qpdf.overlays[0]))
    assert len(overlay.pages) == 3
    assert b"(ELODIE DURAND) Tj" in fake_qpdf.overlays[0]
    assert fake_qpdf.count("optimize") == 1
    assert sorted(temp_dir.iterdir()) == [result.working_path]


def test_label_without_decomposition_is_transliterated(context, toolkit, fake_qpdf) -> None:
    WatermarkStage(toolkit).process(dataclasses.replace(context, recipient="Łukasz Øster"))

    assert b"(LUKASZ OSTER) Tj" in fake_qpdf.overlays[0]
    assert b"?" not in fake_qpdf.overlays[0]


def test_page_geometry_is_cached_per_signature(context, toolkit, fake_qpdf, pdf_factory) -> None:
    stage = WatermarkStage(toolkit)

    stage.process(context)
    stage.process(context)
    assert fake_qpdf.count("json") == 1

    pdf_factory("sample.pdf", pages=2, width=300, height=300)
    sizes = stage.page_sizes(context.working_path)

    assert fake_qpdf.count("json") == 2
    assert len(sizes) == 2
    assert sizes[0].width == 300
    stage.dispose_shared_resources()


def test_optimisation_failure_keeps_unoptimised_output(context, toolkit, fake_qpdf, temp_dir: Path) -> None:
    fake_qpdf.fail_on.add("optimize")
    messages: List[str] = []

    result = WatermarkStage(toolkit).process(context, messages.append)

    assert result.working_path.exists()
    assert any("Optimisation skipped" in message for message in messages)
    assert sorted(temp_dir.iterdir()) == [result.working_path]


def test_overlay_failure_removes_intermediate_files(context, toolkit, fake_qpdf, temp_dir: Path) -> None:
    fake_qpdf.fail_on.add("overlay")

    with pytest.raises(ToolkitError, match="watermark overlay"):
        WatermarkStage(toolkit).process(context)

    assert list(temp_dir.iterdir()) == []
