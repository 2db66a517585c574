"""Coverage statistics and intensity grid extraction."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from rainarea.models import DecodedImage
from rainarea.services.palette import IntensityPalette

logger = logging.getLogger(__name__)


def round2(value: float) -> float:
    """Round to 2 decimals, halves away from zero."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round2(count / total * 100)


class CoverageMask:
    """Region of interest: for every image row, the set of included columns."""

    def __init__(self, rows: list[list[int]] | None = None):
        self.rows: tuple[frozenset[int], ...] = tuple(frozenset(r) for r in rows or [])
        self.total_cells = sum(len(r) for r in self.rows)

    @classmethod
    def empty(cls) -> CoverageMask:
        return cls()

    @classmethod
    def from_file(cls, path: str | Path) -> CoverageMask:
        """Load a mask from a JSON array of per-row column index arrays."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list) or not all(isinstance(r, list) for r in data):
            raise ValueError(f"Coverage mask {path} must be a JSON array of arrays")
        mask = cls(data)
        logger.info(f"Loaded coverage mask from {path}: {len(mask.rows)} rows, {mask.total_cells} cells")
        return mask

    def row(self, y: int) -> frozenset[int]:
        if y < len(self.rows):
            return self.rows[y]
        return frozenset()


@dataclass(frozen=True)
class CoverageResult:
    grid: list[list[int]]
    coverage_all: float
    coverage_region: float


def analyze(image: DecodedImage, mask: CoverageMask, palette: IntensityPalette) -> CoverageResult:
    """Classify every pixel once and accumulate global and region coverage."""
    width, height, data = image.width, image.height, image.rgba
    if mask.rows and len(mask.rows) != height:
        logger.warning(
            f"Coverage mask has {len(mask.rows)} rows but image is {width}x{height}"
        )

    grid: list[list[int]] = []
    coverage_count = 0
    region_count = 0
    classify = palette.classify

    for y in range(height):
        mask_row = mask.row(y)
        row: list[int] = []
        offset = y * width * 4
        for x in range(width):
            idx = offset + x * 4
            intensity = classify(data[idx], data[idx + 1], data[idx + 2], data[idx + 3])
            row.append(intensity)
            if intensity > 0:
                coverage_count += 1
                if x in mask_row:
                    region_count += 1
        grid.append(row)

    return CoverageResult(
        grid=grid,
        coverage_all=percentage(coverage_count, width * height),
        coverage_region=percentage(region_count, mask.total_cells),
    )
