from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from pdf_packager.context import ProcessingContext
from pdf_packager.exceptions import PipelineCancelledError, ToolkitError
from pdf_packager.pipeline import RestrictionStage
from pdf_packager.security import PasswordGenerator
from pdf_packager.toolkit import ModifyPermission
from pdf_packager.toolkit import qpdf as qpdf_module
from pdf_packager.utils import CommandResult


class FixedPasswords(PasswordGenerator):
    def generate(self, num_bytes: int = 12) -> str:
        return "owner-secret"


@pytest.fixture()
def context(sample_pdf: Path, tmp_path: Path) -> ProcessingContext:
    return ProcessingContext(
        working_path=sample_pdf,
        relative_path="sub/sample.pdf",
        recipient="Jean Dupont",
        target_directory=tmp_path / "out" / "Jean_Dupont" / "sub",
        basename="sample.pdf",
    )


def test_encrypts_into_target_path_and_returns_password(context, toolkit, fake_qpdf) -> None:
    fake_qpdf.encrypt_output = ["  qpdf: operation succeeded with warnings \n", "\n"]
    messages: List[str] = []

    result = RestrictionStage(toolkit, FixedPasswords()).process(context, messages.append)

    assert result.working_path == context.target_path
    assert result.working_path.exists()
    assert result.password == "owner-secret"
    assert result.temporary_paths == ()
    assert messages == [
        "[qpdf] qpdf: operation succeeded with warnings",
        "Processed sub/sample.pdf for Jean Dupont (owner password: owner-secret)",
    ]


def test_encrypt_command_uses_fixed_permission_profile(context, toolkit, fake_qpdf) -> None:
    RestrictionStage(toolkit, FixedPasswords(), modify="annotate").process(context)

    args = fake_qpdf.calls[0]
    assert args[:8] == ["--warning-exit-0", "--encrypt", "", "owner-secret", "256", "--print=none", "--extract=n", "--modify=annotate"]
    assert args[8] == "--"


def test_default_logging_can_be_disabled(context, toolkit, fake_qpdf) -> None:
    messages: List[str] = []

    RestrictionStage(toolkit).process(context.with_default_logging(False), messages.append)

    assert messages == []
    assert len(fake_qpdf.passwords) == 1


def test_failure_reports_error_without_password(context, toolkit, fake_qpdf) -> None:
    fake_qpdf.fail_on.add("encrypt")

    with pytest.raises(ToolkitError) as excinfo:
        RestrictionStage(toolkit, FixedPasswords(), modify=ModifyPermission.NONE).process(context)

    assert "encrypt failed" in str(excinfo.value)
    assert "owner-secret" not in " ".join(excinfo.value.command)


def test_password_generator_never_starts_with_dash(monkeypatch: pytest.MonkeyPatch) -> None:
    values = iter(["-abc", "-def", "good"])
    monkeypatch.setattr("pdf_packager.security.secrets.token_urlsafe", lambda _n: next(values))

    assert PasswordGenerator().generate() == "good"


def test_missing_encrypted_output_is_an_error(context, toolkit, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(qpdf_module, "run_command", lambda command, **kwargs: CommandResult(0, "", ""))

    with pytest.raises(ToolkitError) as excinfo:
        RestrictionStage(toolkit, FixedPasswords()).process(context)

    assert "Command: qpdf" in str(excinfo.value)
    assert "owner-secret" not in str(excinfo.value)
    assert excinfo.value.command == ["qpdf"]


def test_partial_output_is_removed_on_failure(context, toolkit, monkeypatch: pytest.MonkeyPatch) -> None:
    def partial_write(command, **kwargs):
        Path(command[-1]).parent.mkdir(parents=True, exist_ok=True)
        Path(command[-1]).write_bytes(b"%PDF-partial")
        return CommandResult(2, "", "write error")

    monkeypatch.setattr(qpdf_module, "run_command", partial_write)

    with pytest.raises(ToolkitError, match="write error"):
        RestrictionStage(toolkit, FixedPasswords()).process(context)

    assert not context.target_path.exists()


def test_partial_output_is_removed_on_cancel(context, toolkit, monkeypatch: pytest.MonkeyPatch) -> None:
    def cancelled(command, **kwargs):
        Path(command[-1]).parent.mkdir(parents=True, exist_ok=True)
        Path(command[-1]).write_bytes(b"%PDF-partial")
        raise PipelineCancelledError()

    monkeypatch.setattr(qpdf_module, "run_command", cancelled)

    with pytest.raises(PipelineCancelledError):
        RestrictionStage(toolkit, FixedPasswords()).process(context)

    assert not context.target_path.exists()


def test_spawn_failure_keeps_password_out_of_error(context, toolkit, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(command, **kwargs):
        raise FileNotFoundError("no such file")

    monkeypatch.setattr(qpdf_module, "run_command", broken)

    with pytest.raises(ToolkitError) as excinfo:
        RestrictionStage(toolkit, FixedPasswords()).process(context)

    assert excinfo.value.command == ["qpdf"]
    assert "Unable to start the PDF toolkit" in str(excinfo.value)
