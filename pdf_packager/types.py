"""
Type definitions and dataclasses for PDF Packager.

This module defines data structures used throughout the library.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class InventoryEntry:
    """
    A PDF file found under the source root.

    Attributes:
        path: Absolute path of the file
        relative: Path relative to the source root, ``/`` separated
        relative_dir: Directory part of ``relative`` (empty at the root)
        basename: File name including the extension
    """
    path: str
    relative: str
    relative_dir: str
    basename: str


@dataclass
class PdfPackage:
    """A recipient and the relative file references it should receive."""
    name: str
    files: List[str] = field(default_factory=list)


@dataclass
class PreparationStats:
    """
    Statistics of a preparation run.

    Attributes:
        requested_recipients: Number of packages handed to the processor
        processed_recipients: Recipients with at least one processed file
        processed_files: Number of files written to the output folder
        missing_files: Requested references absent from the inventory
        failed_files: References whose processing raised an error
    """
    requested_recipients: int = 0
    processed_recipients: int = 0
    processed_files: int = 0
    missing_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)


@dataclass
class PipelineProgress:
    """Progress notification emitted while packages are processed."""
    total: int
    completed: int
    current_file: Optional[str] = None
    current_recipient: Optional[str] = None


@dataclass(frozen=True)
class PageSize:
    """Effective page size in PDF points (rotation and UserUnit applied)."""
    width: float
    height: float


@dataclass
class ReviewerAssignment:
    """
    One row of reviewer assignments.

    Either ``file`` names the document directly, or ``first_name`` and
    ``last_name`` describe the person the document is about and are resolved
    against the inventory with :class:`~pdf_packager.matcher.PdfFileMatcher`.
    """
    reviewers: List[str]
    file: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    label: Optional[str] = None


@dataclass
class MemberEntry:
    """A member and the file references (paths, folders, patterns or names) they receive."""
    name: str
    files: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ZipTarget:
    """A folder to archive and the archive path to create."""
    source_dir: str
    zip_path: str
    label: Optional[str] = None


@dataclass
class PdfInfo:
    """
    Summary of a prepared document.

    Attributes:
        num_pages: Number of pages
        file_size: File size in bytes
        is_encrypted: Whether the document carries an encryption dictionary
        subject: Document subject, ``Shared with <RECIPIENT>`` for prepared copies
        title: Document title
        author: Document author
    """
    num_pages: int
    file_size: int
    is_encrypted: bool = False
    subject: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
