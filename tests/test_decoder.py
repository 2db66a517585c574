"""Tests for PNG decoding."""

import io
import zlib

import pytest
from PIL import Image

from rainarea.errors import DecodeError
from rainarea.services.decoder import decode_png


def _corrupt_chunk_crc(data: bytes, chunk_type: bytes) -> bytes:
    """Flip the CRC of the first chunk of the given type."""
    start = data.index(chunk_type) - 4
    length = int.from_bytes(data[start : start + 4], "big")
    crc_at = start + 8 + length
    crc = int.from_bytes(data[crc_at : crc_at + 4], "big") ^ 0xFFFFFFFF
    return data[:crc_at] + crc.to_bytes(4, "big") + data[crc_at + 4 :]


class TestDecodePng:
    """Test decoding valid and malformed PNG data."""

    def test_decodes_rgba_png(self, make_png):
        """Pixels come back as RGBA in row-major order."""
        data = make_png(3, 2, {(0, 0): (0x40, 0xFF, 0xFD, 255), (2, 1): (1, 2, 3, 128)})
        image = decode_png(data)
        assert (image.width, image.height) == (3, 2)
        assert len(image.rgba) == 3 * 2 * 4
        assert image.pixel(0, 0) == (0x40, 0xFF, 0xFD, 255)
        assert image.pixel(2, 1) == (1, 2, 3, 128)
        assert image.pixel(1, 0)[3] == 0

    def test_palette_png_converted_to_rgba(self):
        """Paletted images with transparency are expanded to RGBA."""
        img = Image.new("P", (2, 1))
        img.putpalette([0, 0, 0, 0xF9, 0x3D, 0xF5] + [0] * (256 * 3 - 6))
        img.putpixel((1, 0), 1)
        buf = io.BytesIO()
        img.save(buf, format="PNG", transparency=0)

        image = decode_png(buf.getvalue())
        assert image.pixel(0, 0)[3] == 0
        assert image.pixel(1, 0) == (0xF9, 0x3D, 0xF5, 255)

    def test_rejects_non_png(self):
        """HTML error pages are not images."""
        with pytest.raises(DecodeError, match="signature"):
            decode_png(b"<html>not found</html>")

    def test_rejects_empty(self):
        """Empty bodies are rejected."""
        with pytest.raises(DecodeError):
            decode_png(b"")

    def test_rejects_other_image_formats(self):
        """A GIF is not accepted even though Pillow could read it."""
        buf = io.BytesIO()
        Image.new("RGB", (1, 1)).save(buf, format="GIF")
        with pytest.raises(DecodeError):
            decode_png(buf.getvalue())

    def test_rejects_truncated_png(self, make_png):
        """A PNG cut off mid-stream fails closed."""
        data = make_png(64, 64, {(x, x): (255, 0, 0, 255) for x in range(64)})
        with pytest.raises(DecodeError):
            decode_png(data[: len(data) // 2])

    def test_rejects_bad_header_crc(self, make_png):
        """A corrupt IHDR checksum is a structural error."""
        data = _corrupt_chunk_crc(make_png(2, 2), b"IHDR")
        with pytest.raises(DecodeError):
            decode_png(data)

    def test_accepts_bad_image_data_crc(self, make_png):
        """An IDAT checksum mismatch is tolerated when the pixels decode."""
        original = make_png(2, 2, {(1, 1): (0x40, 0xFF, 0xFD, 255)})
        data = _corrupt_chunk_crc(original, b"IDAT")
        assert data != original
        image = decode_png(data)
        assert image.pixel(1, 1) == (0x40, 0xFF, 0xFD, 255)

    def test_rejects_corrupt_image_data(self, make_png):
        """Garbage in the compressed stream fails closed."""
        data = make_png(8, 8)
        start = data.index(b"IDAT") - 4
        length = int.from_bytes(data[start : start + 4], "big")
        garbage = b"\xff" * length
        chunk = b"IDAT" + garbage
        crc = zlib.crc32(chunk).to_bytes(4, "big")
        corrupted = data[: start + 4] + chunk + crc + data[start + 12 + length :]
        with pytest.raises(DecodeError):
            decode_png(corrupted)

    def test_rejects_oversized_dimensions(self, oversized_png):
        """A header declaring 30000x30000 pixels fails as DecodeError, not a Pillow error."""
        with pytest.raises(DecodeError, match="PNG decode failed"):
            decode_png(oversized_png)
