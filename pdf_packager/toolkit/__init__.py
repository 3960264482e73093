"""Integration with the external qpdf toolkit."""

from __future__ import annotations

from .qpdf import ModifyPermission, QpdfToolkit
from .resolver import QpdfCommandResolver

__all__ = ["ModifyPermission", "QpdfCommandResolver", "QpdfToolkit"]
