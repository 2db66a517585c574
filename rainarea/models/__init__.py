"""Radar data models."""

from rainarea.models.radar import DecodedImage, FetchResult, Resolution, Snapshot, SnapshotState

__all__ = [
    "DecodedImage",
    "FetchResult",
    "Resolution",
    "Snapshot",
    "SnapshotState",
]
