"""In-memory radar data models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DecodedImage:
    """A decoded PNG as a flat RGBA buffer (4 bytes per pixel, row-major)."""

    width: int
    height: int
    rgba: bytes = field(repr=False)

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        idx = (y * self.width + x) * 4
        return (
            self.rgba[idx],
            self.rgba[idx + 1],
            self.rgba[idx + 2],
            self.rgba[idx + 3],
        )


@dataclass(frozen=True)
class FetchResult:
    """Image bytes returned by a mirror (or replayed from the byte cache)."""

    url: str
    body: bytes = field(repr=False)
    replayed: bool = False


@dataclass(frozen=True)
class Snapshot:
    """Decoded and analysed radar image for one time slot."""

    slot: int
    width: int
    height: int
    coverage_all: float
    coverage_region: float
    radar: str = field(repr=False)
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "id": str(self.slot),
            "dt": self.slot,
            "width": self.width,
            "height": self.height,
            "coverage_percentage": {
                "all": self.coverage_all,
                "sg": self.coverage_region,
            },
            "radar": self.radar,
        }


class SnapshotState(str, enum.Enum):
    """How a snapshot was obtained for a request."""

    CACHED = "cached"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class Resolution:
    """A snapshot plus the path taken to produce it."""

    snapshot: Snapshot
    state: SnapshotState
