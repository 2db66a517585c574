"""Snapshot cache and current-slot resolution with backward fallback.

A request for the current slot goes through these states:

1. Cache hit for the current slot: served from cache.
2. Cache miss: fetch, decode and analyse the current slot within
   ``current_slot_timeout``; on success the snapshot is cached and served
   fresh.
3. On failure or timeout, walk back one 5-minute slot at a time, up to
   ``fallback_steps`` slots. Each step checks the cache first and otherwise
   races all mirrors. The first hit is served stale.
4. If every step fails, ``FallbackExhausted`` is raised.

The whole walk is bounded by ``request_timeout``. Explicit slots skip the
walk: a miss triggers one sequential fetch with retries and failure is final.
"""

import asyncio
import logging
from collections import OrderedDict

from rainarea.collectors.mirrors import MirrorFetcher
from rainarea.errors import FallbackExhausted, RainAreaError, RequestTimeout
from rainarea.models import FetchResult, Resolution, Snapshot, SnapshotState
from rainarea.services import metrics
from rainarea.services.coverage import CoverageMask, analyze
from rainarea.services.decoder import decode_png
from rainarea.services.grid import encode_grid
from rainarea.services.palette import IntensityPalette
from rainarea.services.timeslot import SLOT_MINUTES, TimeSlotResolver, shift_slot

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Decoded snapshots keyed by slot, bounded LRU."""

    def __init__(self, capacity: int = 288):
        self.capacity = capacity
        self._items: OrderedDict[int, Snapshot] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, slot: int) -> Snapshot | None:
        snapshot = self._items.get(slot)
        if snapshot is None:
            self.misses += 1
            return None
        self.hits += 1
        self._items.move_to_end(slot)
        return snapshot

    def put(self, snapshot: Snapshot) -> None:
        self._items[snapshot.slot] = snapshot
        self._items.move_to_end(snapshot.slot)
        while len(self._items) > self.capacity:
            evicted, _ = self._items.popitem(last=False)
            logger.debug(f"Evicted snapshot {evicted}")

    def __contains__(self, slot: int) -> bool:
        return slot in self._items

    def __len__(self) -> int:
        return len(self._items)


class RainAreaService:
    """Resolves radar snapshots for the current or an explicit slot."""

    def __init__(
        self,
        fetcher: MirrorFetcher,
        mask: CoverageMask | None = None,
        resolver: TimeSlotResolver | None = None,
        palette: IntensityPalette | None = None,
        cache: SnapshotCache | None = None,
        explicit_retries: int = 2,
        current_slot_timeout: float = 5.0,
        request_timeout: float = 30.0,
        fallback_steps: int = 12,
    ):
        self.fetcher = fetcher
        self.mask = mask or CoverageMask.empty()
        self.resolver = resolver or TimeSlotResolver()
        self.palette = palette or IntensityPalette()
        self.cache = cache if cache is not None else SnapshotCache()
        self.explicit_retries = explicit_retries
        self.current_slot_timeout = current_slot_timeout
        self.request_timeout = request_timeout
        self.fallback_steps = fallback_steps
        self._inflight: dict[tuple[int, bool, int], asyncio.Task] = {}

    @property
    def inflight(self) -> int:
        """Number of slot loads currently running."""
        return len(self._inflight)

    def build_snapshot(self, slot: int, fetched: FetchResult) -> Snapshot:
        """Decode, classify and encode fetched bytes (CPU-bound, no awaits)."""
        image = decode_png(fetched.body)
        result = analyze(image, self.mask, self.palette)
        return Snapshot(
            slot=slot,
            width=image.width,
            height=image.height,
            coverage_all=result.coverage_all,
            coverage_region=result.coverage_region,
            radar=encode_grid(result.grid),
            replayed=fetched.replayed,
        )

    async def _load(self, slot: int, racing: bool, retries: int) -> Snapshot:
        if racing:
            fetched = await self.fetcher.race(slot)
        else:
            fetched = await self.fetcher.fetch(slot, retries=retries)
        snapshot = self.build_snapshot(slot, fetched)
        self.cache.put(snapshot)
        logger.info(
            f"Built snapshot {slot} {snapshot.width}x{snapshot.height} "
            f"coverage all={snapshot.coverage_all}% region={snapshot.coverage_region}%"
            + (" from replayed bytes" if snapshot.replayed else "")
        )
        return snapshot

    async def _load_once(self, slot: int, racing: bool = False, retries: int = 0) -> Snapshot:
        """Load a slot, sharing one in-flight task between concurrent callers.

        Callers are shielded from each other: a caller that times out stops
        waiting, but the load keeps running and still fills the cache.
        """
        key = (slot, racing, retries)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(slot, racing, retries), name=f"load-{slot}")
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._finish_load(key, t))
        else:
            logger.debug(f"Joining in-flight load for {slot}")
        return await asyncio.shield(task)

    def _finish_load(self, key: tuple[int, bool, int], task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the exception so abandoned loads are not reported as unhandled
        if not task.cancelled():
            task.exception()

    def _served(self, snapshot: Snapshot, state: SnapshotState) -> Resolution:
        metrics.snapshots_served.labels(state=state.value).inc()
        return Resolution(snapshot=snapshot, state=state)

    async def get_current(self) -> Resolution:
        """Newest available snapshot, falling back to older slots."""
        slot = self.resolver.current_slot()
        cached = self.cache.get(slot)
        if cached is not None:
            logger.info(f"Serving cached snapshot {slot}")
            return self._served(cached, SnapshotState.CACHED)

        try:
            async with asyncio.timeout(self.request_timeout):
                return await self._resolve_current(slot)
        except TimeoutError:
            metrics.resolution_failures.labels(error="RequestTimeout").inc()
            raise RequestTimeout(
                f"Timeout: no radar image for {slot} within {self.request_timeout}s"
            ) from None
        except RainAreaError as e:
            metrics.resolution_failures.labels(error=type(e).__name__).inc()
            raise

    async def _resolve_current(self, slot: int) -> Resolution:
        try:
            async with asyncio.timeout(self.current_slot_timeout):
                snapshot = await self._load_once(slot)
            return self._served(snapshot, SnapshotState.FRESH)
        except TimeoutError:
            logger.warning(f"Current slot {slot} timed out after {self.current_slot_timeout}s")
        except RainAreaError as e:
            logger.warning(f"Current slot {slot} unavailable: {e}")
        return await self._walk_back(slot)

    async def _walk_back(self, slot: int) -> Resolution:
        for step in range(1, self.fallback_steps + 1):
            candidate = shift_slot(slot, -SLOT_MINUTES * step)
            metrics.fallback_steps.inc()
            logger.info(f"Step back {step}/{self.fallback_steps}: {candidate}")

            cached = self.cache.get(candidate)
            if cached is not None:
                logger.info(f"Serving cached snapshot {candidate} for {slot}")
                return self._served(cached, SnapshotState.STALE)

            try:
                snapshot = await self._load_once(candidate, racing=True)
            except RainAreaError as e:
                logger.info(f"Step back {candidate} failed: {e}")
                continue
            return self._served(snapshot, SnapshotState.STALE)

        raise FallbackExhausted(
            f"No radar image found for {slot} or the "
            f"{self.fallback_steps * SLOT_MINUTES} minutes before it"
        )

    async def get_slot(self, slot: int) -> Resolution:
        """Snapshot for an explicit slot; one sequential fetch on a miss, no fallback."""
        cached = self.cache.get(slot)
        if cached is not None:
            logger.info(f"Serving cached snapshot {slot}")
            return self._served(cached, SnapshotState.CACHED)

        try:
            async with asyncio.timeout(self.request_timeout):
                snapshot = await self._load_once(slot, retries=self.explicit_retries)
        except TimeoutError:
            metrics.resolution_failures.labels(error="RequestTimeout").inc()
            raise RequestTimeout(
                f"Timeout: no radar image for {slot} within {self.request_timeout}s"
            ) from None
        except RainAreaError as e:
            metrics.resolution_failures.labels(error=type(e).__name__).inc()
            raise
        return self._served(snapshot, SnapshotState.FRESH)
