"""Compact text encoding of intensity grids.

One line per row, one character per cell: 0 is a space and intensity ``v`` is
``chr(v + 33)``. Intensities are clamped to ``MAX_ENCODED_INTENSITY`` so every
character stays in printable ASCII (``"`` to ``~``); with the 30-color palette
this merges the two heaviest bands (97 and 100) into ``~``.

Trailing spaces are stripped from every line, so an all-zero row becomes an
empty line and the width of a row is only recoverable up to its last
non-zero cell.
"""

from collections.abc import Sequence

ENCODING_OFFSET = 33
MAX_ENCODED_INTENSITY = ord("~") - ENCODING_OFFSET


def encode_cell(value: int) -> str:
    if value <= 0:
        return " "
    return chr(min(value, MAX_ENCODED_INTENSITY) + ENCODING_OFFSET)


def encode_grid(grid: Sequence[Sequence[int]]) -> str:
    return "\n".join("".join(encode_cell(v) for v in row).rstrip(" ") for row in grid)


def decode_row_widths(text: str) -> list[int]:
    """Length of every encoded line (trimmed rows report their last non-zero cell)."""
    return [len(line) for line in text.split("\n")]
