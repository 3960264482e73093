from __future__ import annotations

import json
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set
import sys

import pytest
from pypdf import PdfReader, PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdf_packager.toolkit import QpdfCommandResolver, QpdfToolkit  # noqa: E402
from pdf_packager.toolkit import qpdf as qpdf_module  # noqa: E402
from pdf_packager.utils import CommandResult  # noqa: E402


class FakeQpdf:
    """Stand-in for the qpdf process: copies files and answers ``--json`` with pypdf."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.fail_on: Set[str] = set()
        self.overlays: List[bytes] = []
        self.passwords: List[str] = []
        self.encrypt_output: Sequence[str] = ()

    @staticmethod
    def operation(args: Sequence[str]) -> str:
        if "--json" in args:
            return "json"
        if "--qdf" in args:
            return "qdf"
        if "--overlay" in args:
            return "overlay"
        if "--encrypt" in args:
            return "encrypt"
        if "--stream-data=compress" in args:
            return "optimize"
        return "rebuild"

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if self.operation(call) == operation)

    def __call__(self, command, *, on_output=None, cancel_event=None) -> CommandResult:
        args = list(command[1:])
        self.calls.append(args)
        operation = self.operation(args)

        if operation in self.fail_on:
            return CommandResult(returncode=2, stdout="", stderr=f"{operation} failed")

        if operation == "json":
            return CommandResult(returncode=0, stdout=json.dumps(self.describe(Path(args[-1]))), stderr="")

        source, output = Path(args[-2]), Path(args[-1])
        if operation == "overlay":
            self.overlays.append(Path(args[args.index("--overlay") + 1]).read_bytes())
        if operation == "encrypt":
            self.passwords.append(args[args.index("--encrypt") + 2])
            for line in self.encrypt_output:
                if on_output is not None:
                    on_output(line)
        shutil.copyfile(source, output)
        return CommandResult(returncode=0, stdout="", stderr="")

    @staticmethod
    def describe(path: Path) -> dict:
        reader = PdfReader(str(path))
        pages = []
        objects = {"obj:2 0 R": {"value": {"/Type": "/Pages", "/Count": len(reader.pages)}}}
        for index, page in enumerate(reader.pages):
            reference = f"{index + 10} 0 R"
            box = [float(value) for value in page.mediabox]
            objects[f"obj:{reference}"] = {"value": {"/Type": "/Page", "/Parent": "2 0 R", "/MediaBox": box}}
            pages.append({"object": reference, "pageposfrom1": index + 1})
        return {"version": 2, "pages": pages, "qpdf": [{"jsonversion": 2}, objects]}


@pytest.fixture()
def fake_qpdf(monkeypatch: pytest.MonkeyPatch) -> FakeQpdf:
    fake = FakeQpdf()
    monkeypatch.setattr(qpdf_module, "run_command", fake)
    return fake


@pytest.fixture()
def toolkit(fake_qpdf: FakeQpdf) -> QpdfToolkit:
    return QpdfToolkit(QpdfCommandResolver(override="qpdf"))


@pytest.fixture()
def temp_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Private system temp directory so leftover intermediates can be counted."""

    directory = tmp_path / "tmp"
    directory.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(directory))
    return directory


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> Callable[..., Path]:
    def _create(relative: str, pages: int = 1, width: float = 200, height: float = 200, title: Optional[str] = None) -> Path:
        path = tmp_path / "source" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        writer = PdfWriter()
        for _ in range(pages):
            writer.add_blank_page(width=width, height=height)
        if title is not None:
            writer.add_metadata({"/Title": title, "/Author": "pdf-packager-tests"})
        with path.open("wb") as handle:
            writer.write(handle)
        return path

    return _create


@pytest.fixture()
def source_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "source"
    directory.mkdir(exist_ok=True)
    return directory


@pytest.fixture()
def sample_pdf(pdf_factory: Callable[..., Path]) -> Path:
    return pdf_factory("sample.pdf", pages=3, title="Sample")


@pytest.fixture()
def logs() -> List[str]:
    return []
