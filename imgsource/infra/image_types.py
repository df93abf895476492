# imgsource/infra/image_types.py
"""Content-Type detection for fetched image bytes (the upstream header is not trusted)."""
from __future__ import annotations

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Magic bytes for format detection
MAGIC_BYTES = {
    b'\xff\xd8\xff': "image/jpeg",
    b'\x89PNG\r\n\x1a\n': "image/png",
    b'GIF87a': "image/gif",
    b'GIF89a': "image/gif",
    b'BM': "image/bmp",
    b'II*\x00': "image/tiff",
    b'MM\x00*': "image/tiff",
}

# ISO-BMFF brands (bytes 8..12 after the ftyp box marker)
FTYP_BRANDS = {
    b'avif': "image/avif",
    b'avis': "image/avif",
    b'heic': "image/heic",
    b'heix': "image/heic",
    b'heif': "image/heif",
    b'mif1': "image/heif",
}


def detect_content_type(data: bytes) -> str:
    """
    Detect image MIME type from magic bytes.
    Falls back to ``application/octet-stream``.
    """
    for magic, content_type in MAGIC_BYTES.items():
        if data.startswith(magic):
            return content_type

    # WebP (RIFF....WEBP)
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return "image/webp"

    if data[4:8] == b'ftyp':
        brand = FTYP_BRANDS.get(data[8:12])
        if brand:
            return brand

    head = data[:512].lstrip().lower()
    if head.startswith(b'<svg') or (head.startswith(b'<?xml') and b'<svg' in head):
        return "image/svg+xml"

    return DEFAULT_CONTENT_TYPE
