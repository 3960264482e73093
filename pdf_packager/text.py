"""Text normalisation helpers for folder names and watermark labels."""

from __future__ import annotations

import re
import unicodedata

from unidecode import unidecode

DEFAULT_LABEL = "WATERMARK"

_INVALID_FOLDER_CHARS = re.compile(r"[^\w.-]+")
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")


class NameSanitizer:
    """Turn free-text recipient names into filesystem-safe tokens."""

    @staticmethod
    def sanitize(name: str, fallback: str) -> str:
        """Replace every run of characters other than letters, digits and ``._-`` with ``_``."""

        trimmed = name.strip()
        if not trimmed:
            return fallback

        sanitized = _INVALID_FOLDER_CHARS.sub("_", trimmed)
        return sanitized or fallback

    @staticmethod
    def sanitize_for_file_name(name: str, fallback: str) -> str:
        """Keep spaces for readability, replace characters invalid in file names."""

        trimmed = name.strip()
        if not trimmed:
            return fallback

        cleaned = _INVALID_FILENAME_CHARS.sub("_", trimmed)
        cleaned = _WHITESPACE.sub(" ", cleaned).strip()
        return cleaned or fallback


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def normalize_label(recipient: str) -> str:
    """Uppercase ASCII label, ``WATERMARK`` when empty.

    Letters without a decomposition (``Ł``, ``Ø``, Cyrillic) are transliterated.
    """

    trimmed = recipient.strip()
    if not trimmed:
        return DEFAULT_LABEL
    label = unidecode(strip_diacritics(trimmed)).upper().strip()
    return _WHITESPACE.sub(" ", label) or DEFAULT_LABEL


def escape_pdf_string(value: str) -> str:
    """Escape a value for use inside a PDF literal string ``( ... )``."""

    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
