"""
PDF Packager - Prepare per-recipient copies of a folder of PDF documents.

Every copy has sensitive identifiers redacted, is stamped with a diagonal
watermark naming its recipient, has its metadata rewritten and is encrypted
with a random owner password. Documents are transformed by the external
``qpdf`` tool.

Quick Start:
    >>> from pdf_packager import Settings, PdfPackage, create_services
    >>> reviewers, members = create_services(Settings.from_env())
    >>> stats = reviewers.prepare([PdfPackage("Jean Dupont", ["report.pdf"])], "in/", "out/")

Main Classes:
    - PdfProcessingPipeline: Ordered chain of processing stages
    - PdfPackageProcessor: Runs (recipient, file) packages through the pipeline
    - ReviewerPreparationService / MemberPreparationService: End-to-end workflows
    - PdfFileMatcher: Resolve person names to document file names
    - ZipService: Archive prepared recipient folders

Exceptions:
    - PDFPackagerException: Base exception
    - ToolkitError: qpdf could not run or failed
    - PageGeometryError: Page sizes could not be determined
    - MetadataPatchError: Info dictionary could not be rewritten
    - SourceDirectoryError: Missing or empty source folder
    - PipelineCancelledError: Run stopped on request

For CLI usage, use the 'pdf-packager' command after installation.
"""

# Core classes
from pdf_packager.archive import ZipService
from pdf_packager.config import Settings, create_pipeline, create_services
from pdf_packager.context import ProcessingContext
from pdf_packager.matcher import PdfFileMatcher
from pdf_packager.pipeline import PdfProcessingPipeline
from pdf_packager.processor import PdfPackageProcessor
from pdf_packager.services import MemberPreparationService, ReviewerPreparationService, build_reviewer_packages

# Data types
from pdf_packager.types import MemberEntry, PdfPackage, PipelineProgress, PreparationStats, ReviewerAssignment

# Exceptions
from pdf_packager.exceptions import (
    PDFPackagerException,
    ToolkitError,
    PageGeometryError,
    MetadataPatchError,
    SourceDirectoryError,
    PipelineCancelledError,
)

__version__ = "1.0.0"
__author__ = "PDF Packager Contributors"
__license__ = "MIT"

__all__ = [
    # Main classes
    "PdfProcessingPipeline",
    "PdfPackageProcessor",
    "ReviewerPreparationService",
    "MemberPreparationService",
    "PdfFileMatcher",
    "ProcessingContext",
    "ZipService",
    "Settings",
    "create_pipeline",
    "create_services",
    "build_reviewer_packages",
    # Data types
    "PdfPackage",
    "MemberEntry",
    "ReviewerAssignment",
    "PreparationStats",
    "PipelineProgress",
    # Exceptions
    "PDFPackagerException",
    "ToolkitError",
    "PageGeometryError",
    "MetadataPatchError",
    "SourceDirectoryError",
    "PipelineCancelledError",
    # Version info
    "__version__",
]
