"""Final stage: encrypt the copy into its target path."""

from __future__ import annotations

import threading
from typing import Optional

from ...context import ProcessingContext
from ...security import PasswordGenerator
from ...toolkit import ModifyPermission, QpdfToolkit
from ..base import PdfProcessingStage, PipelineLogger, emit

PASSWORD_BYTES = 12


class RestrictionStage(PdfProcessingStage):
    """Encrypt with a fresh owner password: no printing, no extraction."""

    name = "restriction"

    def __init__(
        self,
        toolkit: QpdfToolkit,
        password_generator: Optional[PasswordGenerator] = None,
        modify: ModifyPermission | str = ModifyPermission.NONE,
    ) -> None:
        self.toolkit = toolkit
        self.password_generator = password_generator or PasswordGenerator()
        self.modify = ModifyPermission(modify)

    def process(
        self,
        context: ProcessingContext,
        logger: Optional[PipelineLogger] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ProcessingContext:
        final_path = context.target_path
        password = self.password_generator.generate(PASSWORD_BYTES)
        final_path.parent.mkdir(parents=True, exist_ok=True)

        def _forward(line: str) -> None:
            trimmed = line.strip()
            if trimmed:
                emit(logger, f"[qpdf] {trimmed}")

        self.toolkit.encrypt(
            context.working_path,
            final_path,
            password,
            modify=self.modify,
            on_output=_forward,
            cancel_event=cancel_event,
        )

        if context.use_default_logging:
            emit(logger, f"Processed {context.relative_path} for {context.recipient} (owner password: {password})")
        return context.with_working_path(final_path, temporary=False).with_password(password)
