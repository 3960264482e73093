"""Redaction of sensitive identifiers inside the PDF token stream."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Pattern

from ...context import ProcessingContext
from ...toolkit import QpdfToolkit
from ...utils import raise_if_cancelled, safe_unlink, temporary_pdf_path
from ..base import PdfProcessingStage, PipelineLogger, SharedResourceStage, emit
from ..cache import SignatureCache

_LOGGER = logging.getLogger("pdf_packager.pipeline.clean")

DEFAULT_PATTERN = r"\b\d{2}[ -]?[GPAEBSNIKT][ -]?\d{2}[ -]?\d{5}[ -]?[A-Z]{3}\b"

# The same identifier written as separate string operands, e.g.
# (12)-50(G)-50(34)-50(56789)-50(ABC) in a TJ array.
SPLIT_PATTERN = re.compile(
    r"(\(\s*\d{2}\s*\))(-?\d+(?:\.\d+)?)"
    r"(\(\s*[GPAEBSNIKT]\s*\))(-?\d+(?:\.\d+)?)"
    r"(\(\s*\d{2}\s*\))(-?\d+(?:\.\d+)?)"
    r"(\(\s*\d{5}\s*\))(-?\d+(?:\.\d+)?)"
    r"(\(\s*[A-Z]{3}\s*\))"
)

_DIGIT = re.compile(r"\d")
_LETTER = re.compile(r"[A-Z]", re.IGNORECASE)

# Latin-1 maps every byte to one character, so offsets and lengths survive.
_ENCODING = "latin-1"


@dataclass(frozen=True)
class CleanResult:
    """Outcome of redacting one source file; ``path`` is ``None`` when nothing matched."""

    path: Optional[Path]
    occurrences: int = 0


def _dispose_result(result: CleanResult) -> None:
    safe_unlink(result.path)


class CleanStage(PdfProcessingStage, SharedResourceStage):
    """Mask identifiers matching a configurable pattern.

    The cleaned document is computed once per source file content and shared
    by every recipient of that file, so it is not recorded as a temporary of
    the context; the stage cache owns it.
    """

    name = "clean"

    def __init__(self, toolkit: QpdfToolkit, pattern: str = DEFAULT_PATTERN) -> None:
        self.toolkit = toolkit
        self.pattern_source = pattern
        self._pattern: Optional[Pattern[str]] = None
        self._disabled = False
        self._pattern_lock = threading.Lock()
        self._cache: SignatureCache[CleanResult] = SignatureCache("clean", dispose=_dispose_result)

    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        pattern = self._compiled_pattern(logger)
        if pattern is None:
            return context

        raise_if_cancelled(cancel_event)
        source = context.working_path
        result = self._cache.get_or_compute(
            source,
            lambda: self._clean(source, pattern, logger, cancel_event),
        )

        if result.path is None:
            return context

        if context.use_default_logging:
            emit(logger, f"  → {context.relative_path}: sensitive data redaction applied")
        return context.with_working_path(result.path, temporary=False)

    def dispose_shared_resources(self) -> None:
        self._cache.dispose()

    @property
    def disabled(self) -> bool:
        return self._disabled

    def _compiled_pattern(self, logger: Optional[PipelineLogger]) -> Optional[Pattern[str]]:
        with self._pattern_lock:
            if self._disabled:
                return None
            if self._pattern is None:
                try:
                    self._pattern = re.compile(self.pattern_source)
                except re.error as exc:
                    self._disabled = True
                    _LOGGER.warning("Invalid redaction pattern %r: %s", self.pattern_source, exc)
                    emit(logger, f"    ⚠️ Redaction pattern disabled (invalid expression: {exc})")
                    return None
            return self._pattern

    def _clean(
        self,
        source: Path,
        pattern: Pattern[str],
        logger: Optional[PipelineLogger],
        cancel_event: Optional[threading.Event],
    ) -> CleanResult:
        qdf_path = self.toolkit.to_qdf(source, temporary_pdf_path("qdf"), cancel_event=cancel_event)
        try:
            raise_if_cancelled(cancel_event)
            occurrences = self.sanitize_file(qdf_path, pattern, logger)
            if occurrences == 0:
                return CleanResult(path=None)

            rebuilt = self.toolkit.rebuild(qdf_path, temporary_pdf_path("clean"), cancel_event=cancel_event)
            return CleanResult(path=rebuilt, occurrences=occurrences)
        finally:
            safe_unlink(qdf_path)

    def sanitize_file(
        self,
        path: Path,
        pattern: Pattern[str],
        logger: Optional[PipelineLogger] = None,
    ) -> int:
        """Mask matches in place and return how many were found."""

        content = path.read_bytes().decode(_ENCODING)
        sanitized, occurrences = sanitize_content(content, pattern, logger)
        if occurrences:
            path.write_bytes(sanitized.encode(_ENCODING))
            emit(logger, f"    → {occurrences} occurrence(s) masked")
        return occurrences


def sanitize_content(
    content: str,
    pattern: Pattern[str],
    logger: Optional[PipelineLogger] = None,
) -> tuple[str, int]:
    """Mask contiguous and split identifiers in decoded QDF text.

    Every replacement keeps the byte length of the original text.
    """

    count = 0

    def _mask_contiguous(match: re.Match[str]) -> str:
        nonlocal count
        count += 1
        emit(logger, f"    → Masked sequence: {match.group(0)}")
        return "X" * len(match.group(0))

    def _mask_split(match: re.Match[str]) -> str:
        nonlocal count
        count += 1
        groups = list(match.groups())
        emit(logger, f"    → Masked split sequence: {''.join(groups)}")
        for index in (0, 4, 6):
            groups[index] = _DIGIT.sub("X", groups[index])
        for index in (2, 8):
            groups[index] = _LETTER.sub("X", groups[index])
        return "".join(groups)

    sanitized = pattern.sub(_mask_contiguous, content)
    sanitized = SPLIT_PATTERN.sub(_mask_split, sanitized)
    return sanitized, count
