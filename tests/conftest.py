"""Shared fixtures for rainarea tests."""

import io
import struct
import zlib
from datetime import UTC, datetime

import pytest
from PIL import Image

from rainarea.services.timeslot import TimeSlotResolver

# 2024-12-15 12:02 in Singapore, i.e. slot 202412151200
FIXED_NOW = datetime(2024, 12, 15, 4, 2, 30, tzinfo=UTC)
FIXED_SLOT = 202412151200


def _make_png(width: int = 4, height: int = 2, pixels: dict | None = None) -> bytes:
    """Build an RGBA PNG; unspecified pixels are fully transparent."""
    img = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    for (x, y), color in (pixels or {}).items():
        img.putpixel((x, y), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    crc = zlib.crc32(chunk_type + data).to_bytes(4, "big")
    return len(data).to_bytes(4, "big") + chunk_type + data + crc


def _make_oversized_png(width: int = 30000, height: int = 30000) -> bytes:
    """Well-formed PNG whose header declares a huge RGBA image."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00"))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture()
def make_png():
    """Factory for in-memory PNG images."""
    return _make_png


@pytest.fixture()
def oversized_png():
    """PNG bytes that trip Pillow's decompression bomb guard."""
    return _make_oversized_png()


@pytest.fixture()
def resolver():
    """Resolver pinned to FIXED_NOW."""
    return TimeSlotResolver(clock=lambda: FIXED_NOW)
