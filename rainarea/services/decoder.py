"""PNG decoding for radar images."""

import io
import logging

from PIL import Image, UnidentifiedImageError

from rainarea.errors import DecodeError
from rainarea.models import DecodedImage

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def decode_png(data: bytes) -> DecodedImage:
    """Decode PNG bytes into an RGBA pixel buffer.

    Anything that is not a structurally valid PNG raises ``DecodeError``:
    a bad signature or header checksum, truncated or corrupt image data, and
    declared dimensions large enough to trip Pillow's decompression bomb
    guard.

    Image data checksums are accepted as-is. Pillow does not verify IDAT
    CRCs, and upstream mirrors occasionally serve images whose IDAT CRC is
    wrong but whose pixels decode fine; those images are served rather than
    treated as missing.
    """
    if not data or not data.startswith(PNG_SIGNATURE):
        raise DecodeError("Invalid PNG signature")

    try:
        with Image.open(io.BytesIO(data), formats=["PNG"]) as img:
            img.load()
            mode = img.mode
            rgba = img.convert("RGBA")
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        SyntaxError,
        OSError,
        ValueError,
        EOFError,
    ) as e:
        raise DecodeError(f"PNG decode failed: {e}") from e

    width, height = rgba.size
    if width <= 0 or height <= 0:
        raise DecodeError(f"PNG has invalid dimensions {width}x{height}")

    logger.debug(f"Decoded PNG {width}x{height} (mode {mode})")
    return DecodedImage(width=width, height=height, rgba=rgba.tobytes())
