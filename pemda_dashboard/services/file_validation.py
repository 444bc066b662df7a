"""Upload validation: magic-byte sniffing, size limits and filename sanitizing.

The client-declared content type is never trusted for what gets stored;
the stored MIME type is always the one detected from the leading bytes.
"""

import os
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..exceptions import ValidationError

PDF = "application/pdf"
JPEG = "image/jpeg"
PNG = "image/png"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC = "application/msword"

# Checked in order; the first prefix match wins. DOCX is a ZIP container.
MAGIC_BYTES: dict[str, bytes] = {
    PDF: bytes([0x25, 0x50, 0x44, 0x46]),
    JPEG: bytes([0xFF, 0xD8, 0xFF]),
    PNG: bytes([0x89, 0x50, 0x4E, 0x47]),
    DOCX: bytes([0x50, 0x4B, 0x03, 0x04]),
    DOC: bytes([0xD0, 0xCF, 0x11, 0xE0]),
}

_MB = 1024 * 1024

SIZE_LIMITS: dict[str, int] = {
    PDF: 10 * _MB,
    DOC: 10 * _MB,
    DOCX: 10 * _MB,
    JPEG: 5 * _MB,
    PNG: 5 * _MB,
    "image/jpg": 5 * _MB,
}
DEFAULT_SIZE_LIMIT = 5 * _MB

MAX_FILENAME_LENGTH = 255

_UNSAFE_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_LEADING_DOTS = re.compile(r'^\.+')


def detect_mime_type(data: bytes) -> Optional[str]:
    """Return the MIME type whose signature prefixes *data*, or None."""
    for mime_type, signature in MAGIC_BYTES.items():
        if data[:len(signature)] == signature:
            return mime_type
    return None


def size_limit_for(declared_mime: Optional[str]) -> int:
    return SIZE_LIMITS.get(declared_mime or "", DEFAULT_SIZE_LIMIT)


def validate_upload(data: Optional[bytes], declared_mime: Optional[str]) -> str:
    """Validate an uploaded file and return its detected MIME type.

    The size limit is looked up by the declared type (what the browser
    claims), the stored type by the magic bytes.

    Raises:
        ValidationError: empty upload, too large, or unrecognised content.
    """
    if not data:
        raise ValidationError("No file uploaded", field="file")

    limit = size_limit_for(declared_mime)
    if len(data) > limit:
        raise ValidationError(f"File size exceeds limit of {limit // _MB}MB", field="file")

    detected = detect_mime_type(data)
    if detected is None:
        raise ValidationError(
            "Invalid file type. Allowed types: PDF, DOC, DOCX, JPG, PNG", field="file"
        )
    return detected


def sanitize_filename(filename: Optional[str]) -> str:
    """Strip path components and unsafe characters from a client filename."""
    if not filename:
        return "unnamed"

    name = filename.replace("/", "").replace("\\", "")
    name = name.replace("..", "")
    name = _UNSAFE_CHARS.sub("", name)
    name = _LEADING_DOTS.sub("", name)
    name = name.strip()

    if not name:
        return "unnamed"

    if len(name) > MAX_FILENAME_LENGTH:
        base, ext = os.path.splitext(name)
        name = base[:MAX_FILENAME_LENGTH - len(ext)] + ext

    return name


def format_bytes(size: Optional[int]) -> str:
    """Human-readable size: ``0 Bytes``, ``1.5 KB``, ``2 MB``."""
    if not size:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1

    # Ties round up: 1.125 KB shows as 1.13 KB.
    rounded = Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{float(rounded):g} {units[index]}"
