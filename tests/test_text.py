from __future__ import annotations

import pytest

from pdf_packager.text import NameSanitizer, escape_pdf_string, normalize_label, strip_diacritics


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Jean / Dupont", "Jean_Dupont"),
        ("  Marie Curie  ", "Marie_Curie"),
        ("report-v1.2", "report-v1.2"),
        ("Élodie Durand", "Élodie_Durand"),
        ("a&&b", "a_b"),
    ],
)
def test_folder_names_collapse_invalid_runs(name: str, expected: str) -> None:
    assert NameSanitizer.sanitize(name, "reviewer") == expected


def test_blank_names_use_fallback() -> None:
    assert NameSanitizer.sanitize("   ", "reviewer") == "reviewer"
    assert NameSanitizer.sanitize_for_file_name("", "collection") == "collection"


def test_file_name_keeps_spaces() -> None:
    assert NameSanitizer.sanitize_for_file_name("Session:  2024 / Q1", "collection") == "Session_ 2024 _ Q1"
    assert NameSanitizer.sanitize_for_file_name("Jean   Dupont", "recipient") == "Jean Dupont"


def test_label_is_uppercase_without_diacritics() -> None:
    assert normalize_label(" Élodie Durand ") == "ELODIE DURAND"
    assert normalize_label("") == "WATERMARK"
    assert normalize_label("Łukasz Œuvre") == "LUKASZ OEUVRE"
    assert normalize_label("Иван Петров") == "IVAN PETROV"
    assert strip_diacritics("Zoë Ångström") == "Zoe Angstrom"


def test_escape_pdf_string() -> None:
    assert escape_pdf_string("a (b) \\ c") == "a \\(b\\) \\\\ c"
