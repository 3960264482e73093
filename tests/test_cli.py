from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from pdf_packager.cli import _as_list, cli, load_members


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def test_match_prints_best_document(runner: CliRunner, pdf_factory, source_dir: Path) -> None:
    pdf_factory("people/dupont_jean.pdf")
    pdf_factory("people/martin_jean.pdf")

    result = runner.invoke(cli, ["match", str(source_dir), "Jean Dupont"])

    assert result.exit_code == 0
    assert "people/dupont_jean.pdf" in result.output


def test_match_without_result_exits_with_error(runner: CliRunner, pdf_factory, source_dir: Path) -> None:
    pdf_factory("other.pdf")

    result = runner.invoke(cli, ["match", str(source_dir), "Jean Dupont"])

    assert result.exit_code == 1
    assert "No document matches" in result.output


def test_inspect_shows_page_count(runner: CliRunner, sample_pdf: Path) -> None:
    result = runner.invoke(cli, ["inspect", str(sample_pdf)])

    assert result.exit_code == 0
    assert "Number of Pages" in result.output
    assert "Sample" in result.output


def test_reviewers_end_to_end(
    runner: CliRunner, pdf_factory, source_dir: Path, tmp_path: Path, fake_qpdf, temp_dir: Path
) -> None:
    pdf_factory("dupont_jean.pdf")
    assignments = tmp_path / "assignments.json"
    assignments.write_text(
        json.dumps([{"first_name": "Jean", "last_name": "Dupont", "reviewers": "Alice; Bob"}]),
        encoding="utf-8",
    )
    output = tmp_path / "out"

    result = runner.invoke(
        cli,
        ["--qpdf", "qpdf", "reviewers", str(source_dir), str(output), "-a", str(assignments), "-c", "Session 2024"],
    )

    assert result.exit_code == 0, result.output
    assert (output / "Alice" / "Session_2024" / "dupont_jean.pdf").exists()
    assert (output / "Bob" / "Session 2024 - Bob.zip").exists()
    assert "Preparation Summary" in result.output
    assert fake_qpdf.count("encrypt") == 2


def test_reviewers_rejects_malformed_assignments(runner: CliRunner, source_dir: Path, tmp_path: Path) -> None:
    assignments = tmp_path / "assignments.json"
    assignments.write_text(json.dumps({"file": "a.pdf"}), encoding="utf-8")

    result = runner.invoke(cli, ["reviewers", str(source_dir), str(tmp_path / "out"), "-a", str(assignments)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_members_requires_at_least_one_member(runner: CliRunner, source_dir: Path, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["members", str(source_dir), str(tmp_path / "out")])

    assert result.exit_code == 2
    assert "--member" in result.output


def test_members_with_empty_source_fails(runner: CliRunner, source_dir: Path, tmp_path: Path) -> None:
    result = runner.invoke(cli, ["members", str(source_dir), str(tmp_path / "out"), "--member", "Alice"])

    assert result.exit_code == 1
    assert "No PDF files found" in result.output


def test_list_values_accept_strings_and_lists(tmp_path: Path) -> None:
    assert _as_list("a.pdf; b.pdf\nc.pdf;") == ["a.pdf", "b.pdf", "c.pdf"]
    assert _as_list([" a.pdf ", ""]) == ["a.pdf"]
    assert _as_list(None) == []
    with pytest.raises(ValueError):
        _as_list(3)

    members = tmp_path / "members.json"
    members.write_text(json.dumps([{"name": "Alice", "files": "Reports;Jean Dupont"}, {"name": "Bob"}]), encoding="utf-8")
    loaded = load_members(members)
    assert [(member.name, member.files) for member in loaded] == [("Alice", ["Reports", "Jean Dupont"]), ("Bob", [])]
