"""Page geometry extraction and the hand-written watermark overlay document."""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import PageGeometryError
from .text import escape_pdf_string
from .types import PageSize

MAX_FONT_SIZE = 48
MIN_FONT_SIZE = 12
FONT_SIZE_STEP = 2
MAX_TEXT_WIDTH_RATIO = 0.8
# Average glyph advance as a fraction of the font size. This is not derived
# from Helvetica-Bold metrics; it only drives the font size choice.
AVERAGE_CHAR_WIDTH = 0.6
FILL_RED = 220 / 255
ROTATION_DEGREES = 45

_REFERENCE = re.compile(r"^\d+ \d+ R$")

ObjectIndex = Dict[str, Dict[str, Any]]


# --------------------------------------------------------------------------
# Geometry
# --------------------------------------------------------------------------

def build_object_index(payload: Mapping[str, Any]) -> ObjectIndex:
    """Map ``"<id> <gen> R"`` to the object entry of a ``qpdf --json`` document.

    JSON version 2 stores objects as ``obj:<id> <gen> R`` keys inside the
    ``qpdf`` sections with the dictionary under ``value``. Version 1 stores
    them directly under ``objects``; those are wrapped the same way.
    """

    objects: ObjectIndex = {}
    sections = payload.get("qpdf")
    if isinstance(sections, list):
        for section in sections:
            if not isinstance(section, dict):
                continue
            for key, value in section.items():
                if not key.startswith("obj:"):
                    continue
                objects[key[4:]] = value if isinstance(value, dict) else {}
        return objects

    legacy = payload.get("objects")
    if isinstance(legacy, dict):
        for key, value in legacy.items():
            objects[key] = {"value": value}
    return objects


def _dereference(value: Any, objects: ObjectIndex) -> Any:
    if isinstance(value, str) and _REFERENCE.match(value):
        target = objects.get(value)
        if target is not None and "value" in target:
            return target["value"]
    return value


def resolve_inherited(object_id: str, key: str, objects: ObjectIndex) -> Any:
    """Look *key* up on a page, then along its ``/Parent`` chain.

    The walk stops at the first object defining the key, at a missing or
    non-dictionary object, or at an id already visited.
    """

    visited: set[str] = set()
    current: Optional[str] = object_id

    while current and current not in visited and current in objects:
        visited.add(current)
        value = objects[current].get("value")
        if not isinstance(value, dict):
            break
        if key in value:
            return _dereference(value[key], objects)
        parent = value.get("/Parent")
        if not isinstance(parent, str):
            break
        current = parent

    return None


def _to_float(value: Any, label: str) -> float:
    if isinstance(value, bool):
        raise PageGeometryError(f"Numeric value expected for {label}, got: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise PageGeometryError(f"Numeric value expected for {label}, got: {value!r}") from None
    if not math.isfinite(number):
        raise PageGeometryError(f"Numeric value expected for {label}, got: {value!r}")
    return number


def _optional_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def calculate_page_size(media_box: Sequence[float], rotation: float, user_unit: float) -> PageSize:
    if user_unit <= 0:
        user_unit = 1.0

    x1, y1, x2, y2 = media_box
    width = abs((x2 - x1) * user_unit)
    height = abs((y2 - y1) * user_unit)

    if int(rotation) % 360 in (90, 270):
        width, height = height, width

    if width <= 0 or height <= 0:
        raise PageGeometryError("Invalid page dimensions returned by qpdf.")
    return PageSize(width=width, height=height)


def page_size_for(object_id: str, objects: ObjectIndex, page_number: int) -> PageSize:
    media_box = resolve_inherited(object_id, "/MediaBox", objects)
    if not isinstance(media_box, list) or len(media_box) != 4:
        raise PageGeometryError(f"Unable to determine the MediaBox of page {page_number}.")

    numeric = [
        _to_float(_dereference(value, objects), f"MediaBox[{index}]")
        for index, value in enumerate(media_box)
    ]
    rotation = _optional_float(resolve_inherited(object_id, "/Rotate", objects), 0.0)
    user_unit = _optional_float(resolve_inherited(object_id, "/UserUnit", objects), 1.0)
    return calculate_page_size(numeric, rotation, user_unit)


def extract_page_sizes(payload: Mapping[str, Any]) -> List[PageSize]:
    """Return the effective size of every page listed in a ``qpdf --json`` document."""

    pages = payload.get("pages")
    if not isinstance(pages, list):
        raise PageGeometryError("The qpdf JSON output has no page list.")

    objects = build_object_index(payload)
    sizes: List[PageSize] = []
    for index, page in enumerate(pages, start=1):
        if not isinstance(page, dict) or not isinstance(page.get("object"), str):
            continue
        sizes.append(page_size_for(page["object"], objects, index))

    if not sizes:
        raise PageGeometryError("Unable to read the page dimensions through qpdf.")
    return sizes


# --------------------------------------------------------------------------
# Overlay document
# --------------------------------------------------------------------------

def format_number(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def estimate_text_width(text: str, font_size: float) -> float:
    return len(text) * font_size * AVERAGE_CHAR_WIDTH


def resolve_font_size(text: str, page_width: float) -> int:
    """Largest size in [12, 48] (steps of 2) whose estimated width fits 80% of the page."""

    font_size = MAX_FONT_SIZE
    max_width = page_width * MAX_TEXT_WIDTH_RATIO
    while font_size > MIN_FONT_SIZE and estimate_text_width(text, font_size) > max_width:
        font_size -= FONT_SIZE_STEP
    return max(font_size, MIN_FONT_SIZE)


def build_page_content(width: float, height: float, font_size: float, text: str) -> str:
    half_text_width = estimate_text_width(text, font_size) / 2
    baseline_offset = font_size * 0.3
    angle = math.radians(ROTATION_DEGREES)
    cos = math.cos(angle)
    sin = math.sin(angle)

    lines = [
        "q",
        "/GS1 gs",
        f"{format_number(FILL_RED)} 0 0 rg",
        f"1 0 0 1 {format_number(width / 2)} {format_number(height / 2)} cm",
        f"{format_number(cos)} {format_number(sin)} {format_number(-sin)} {format_number(cos)} 0 0 cm",
        "BT",
        f"/F1 {format_number(font_size)} Tf",
        f"{format_number(-half_text_width)} {format_number(-baseline_offset)} Td",
        f"({escape_pdf_string(text)}) Tj",
        "ET",
        "Q",
    ]
    return "\n".join(lines) + "\n"


def _encode(text: str) -> bytes:
    return text.encode("latin-1", errors="replace")


def build_overlay_document(pages: Sequence[PageSize], text: str) -> bytes:
    """Write a minimal PDF with one watermark page per entry of *pages*.

    Object 1 is the catalog, object 2 the page tree, objects 3 and 4 the
    shared font and graphics state, followed by a content stream and a page
    object for every page.
    """

    if not pages:
        raise PageGeometryError("No page detected to build the watermark.")

    objects: Dict[int, bytes] = {1: b"", 2: b""}

    def add_object(content: bytes) -> int:
        object_id = len(objects) + 1
        objects[object_id] = content
        return object_id

    font_id = add_object(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold >>")
    gstate_id = add_object(b"<< /Type /ExtGState /ca 0.2 /CA 0.2 /BM /Multiply >>")

    kids: List[str] = []
    for page in pages:
        font_size = resolve_font_size(text, page.width)
        stream = _encode(build_page_content(page.width, page.height, font_size, text))
        content_id = add_object(
            b"<< /Length " + str(len(stream)).encode("ascii") + b" >>\nstream\n" + stream + b"endstream"
        )
        page_id = add_object(
            (
                f"<< /Type /Page /Parent 2 0 R "
                f"/MediaBox [0 0 {format_number(page.width)} {format_number(page.height)}] "
                f"/Resources << /Font << /F1 {font_id} 0 R >> /ExtGState << /GS1 {gstate_id} 0 R >> >> "
                f"/Contents {content_id} 0 R >>"
            ).encode("ascii")
        )
        kids.append(f"{page_id} 0 R")

    objects[1] = b"<< /Type /Catalog /Pages 2 0 R >>"
    objects[2] = f"<< /Type /Pages /Count {len(kids)} /Kids [{' '.join(kids)}] >>".encode("ascii")

    document = bytearray(b"%PDF-1.4\n")
    offsets: Dict[int, int] = {}
    for object_id in sorted(objects):
        offsets[object_id] = len(document)
        document += f"{object_id} 0 obj\n".encode("ascii") + objects[object_id] + b"\nendobj\n"

    size = len(objects) + 1
    xref_offset = len(document)
    document += f"xref\n0 {size}\n".encode("ascii")
    document += b"0000000000 65535 f \n"
    for object_id in sorted(objects):
        document += f"{offsets[object_id]:010d} 00000 n \n".encode("ascii")
    document += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("ascii")
    return bytes(document)
