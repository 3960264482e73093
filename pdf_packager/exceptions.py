"""
Custom exceptions for PDF Packager.

This module defines all custom exceptions used throughout the library.
"""

from typing import Optional, Sequence


class PDFPackagerException(Exception):
    """Base exception for all PDF Packager errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF packager error occurred."


class ToolkitError(PDFPackagerException):
    """Raised when the qpdf executable cannot run or reports a failure."""

    def __init__(
        self,
        message: str = "",
        *,
        command: Optional[Sequence[str]] = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(command) if command else []
        self.output = output

    @property
    def default_message(self) -> str:
        return "The PDF toolkit reported an error."


class PageGeometryError(PDFPackagerException):
    """Raised when page dimensions cannot be derived from the toolkit output."""

    @property
    def default_message(self) -> str:
        return "Unable to determine the page dimensions of the PDF."


class MetadataPatchError(PDFPackagerException):
    """Raised when the document information dictionary cannot be rewritten."""

    @property
    def default_message(self) -> str:
        return "Unable to update the PDF metadata."


class SourceDirectoryError(PDFPackagerException):
    """Raised when the source folder is missing or holds no PDF files."""

    @property
    def default_message(self) -> str:
        return "Source directory not found."


class PipelineCancelledError(PDFPackagerException):
    """Raised when a run is stopped on request rather than by a failure."""

    @property
    def default_message(self) -> str:
        return "Pipeline stopped."


class ArchiveError(PDFPackagerException):
    """Raised when a recipient folder cannot be archived."""

    @property
    def default_message(self) -> str:
        return "Unable to create the archive."


class InvalidPDFError(PDFPackagerException):
    """Raised when a finished document cannot be opened for inspection."""

    @property
    def default_message(self) -> str:
        return "Invalid or corrupted PDF file."
