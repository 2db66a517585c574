"""Radar reflectivity palette.

The published rain-area images use 30 colors, from light cyan (lightest rain)
to magenta (heaviest). A pixel's intensity is the 1-based position of its
nearest palette color scaled to 1-100. The order is the meaning: never sort
this list, and bump ``PALETTE_VERSION`` if it ever changes.
"""

import math
from functools import lru_cache

PALETTE_VERSION = 1

INTENSITY_COLORS = (
    "#40FFFD",
    "#3BEEEC",
    "#32D0D2",
    "#2CB9BD",
    "#229698",
    "#1C827D",
    "#1B8742",
    "#229F44",
    "#27B240",
    "#2CC53B",
    "#30D43E",
    "#38EF46",
    "#3BFB49",
    "#59FA61",
    "#FEFB63",
    "#FDFA53",
    "#FDEB50",
    "#FDD74A",
    "#FCC344",
    "#FAB03F",
    "#FAA23D",
    "#FB8938",
    "#FB7133",
    "#F94C2D",
    "#F9282A",
    "#DD1423",
    "#BE0F1D",
    "#B21867",
    "#D028A6",
    "#F93DF5",
)


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    value = color.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


class IntensityPalette:
    """Maps pixel colors to 0-100 intensities against a fixed ordered palette."""

    def __init__(self, colors: tuple[str, ...] = INTENSITY_COLORS):
        if not colors:
            raise ValueError("palette must contain at least one color")
        self.colors = tuple(colors)
        self._rgb = tuple(hex_to_rgb(c) for c in self.colors)
        self.size = len(self._rgb)
        # Bound per instance so each palette has its own memo table
        self.nearest_index = lru_cache(maxsize=4096)(self._nearest_index)

    def _nearest_index(self, r: int, g: int, b: int) -> int:
        """Index of the closest palette color by Euclidean RGB distance (first wins on ties)."""
        best_index = 0
        best_distance = None
        for index, (pr, pg, pb) in enumerate(self._rgb):
            distance = (r - pr) ** 2 + (g - pg) ** 2 + (b - pb) ** 2
            if best_distance is None or distance < best_distance:
                best_index = index
                best_distance = distance
        return best_index

    def intensity_for_index(self, index: int) -> int:
        return math.ceil((index + 1) / self.size * 100)

    def classify(self, r: int, g: int, b: int, a: int = 255) -> int:
        """Intensity for a pixel; fully transparent pixels are always 0."""
        if a == 0:
            return 0
        return self.intensity_for_index(self.nearest_index(r, g, b))
