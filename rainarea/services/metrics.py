"""Prometheus counters for radar acquisition."""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

fetch_attempts = Counter(
    "rainarea_fetch_attempts_total",
    "Upstream fetch attempts by mirror and outcome",
    ["mirror", "outcome"],
    registry=registry,
)
byte_cache_replays = Counter(
    "rainarea_byte_cache_replays_total",
    "Image bodies replayed from the last-known-good byte cache after fetch failures",
    registry=registry,
)
snapshots_served = Counter(
    "rainarea_snapshots_served_total",
    "Snapshots served by resolution state",
    ["state"],
    registry=registry,
)
fallback_steps = Counter(
    "rainarea_fallback_steps_total",
    "Backward slot steps taken while searching for an older snapshot",
    registry=registry,
)
resolution_failures = Counter(
    "rainarea_resolution_failures_total",
    "Requests that ended without a snapshot, by error type",
    ["error"],
    registry=registry,
)
