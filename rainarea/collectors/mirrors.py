"""Radar image collector for the upstream mirrors.

Mirrors are tried as an ordered list of strategies. In sequential mode each
mirror gets ``1 + retries`` attempts before the next one is tried; in racing
mode every mirror is requested once, concurrently, and the first success
wins. Every attempt runs under a hard ``asyncio.timeout`` so a hung
connection is cancelled rather than left to the client's read timeout.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass

import httpx

from rainarea.config import DEFAULT_RETRY_STATUS_CODES
from rainarea.errors import (
    FetchContentTypeError,
    FetchError,
    FetchHTTPError,
    FetchNetworkError,
    FetchTimeout,
)
from rainarea.models import FetchResult
from rainarea.services import metrics

logger = logging.getLogger(__name__)

PNG_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class MirrorStrategy:
    """One upstream mirror and the delay between its retries."""

    name: str
    url_template: str
    retry_delay: float = 0.5

    def url_for(self, slot: int) -> str:
        return self.url_template.format(slot=slot)


class ByteCache:
    """Last known-good image body per URL, bounded LRU."""

    def __init__(self, capacity: int = 64):
        self.capacity = capacity
        self._items: OrderedDict[str, bytes] = OrderedDict()

    def get(self, url: str) -> bytes | None:
        body = self._items.get(url)
        if body is not None:
            self._items.move_to_end(url)
        return body

    def put(self, url: str, body: bytes) -> None:
        if self.capacity <= 0:
            return
        self._items[url] = body
        self._items.move_to_end(url)
        while len(self._items) > self.capacity:
            self._items.popitem(last=False)

    def __len__(self) -> int:
        return len(self._items)


class MirrorFetcher:
    """Fetches radar PNG bytes for a slot from a list of mirrors."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        mirror_urls: list[str],
        attempt_timeout: float = 2.0,
        retry_delay: float = 0.5,
        retry_status_codes: list[int] | None = None,
        byte_cache: ByteCache | None = None,
        user_agent: str | None = None,
    ):
        if not mirror_urls:
            raise ValueError("at least one mirror URL is required")
        self.client = client
        self.mirrors = [
            MirrorStrategy(name=f"mirror{i}", url_template=url, retry_delay=retry_delay)
            for i, url in enumerate(mirror_urls)
        ]
        self.attempt_timeout = attempt_timeout
        if retry_status_codes is None:
            retry_status_codes = DEFAULT_RETRY_STATUS_CODES
        self.retry_status_codes = frozenset(retry_status_codes)
        self.byte_cache = byte_cache if byte_cache is not None else ByteCache()
        self.user_agent = user_agent

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": PNG_CONTENT_TYPE}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    async def _attempt(self, mirror: MirrorStrategy, url: str) -> bytes:
        """Single GET with a hard timeout; returns the PNG body or raises FetchError."""
        try:
            async with asyncio.timeout(self.attempt_timeout):
                response = await self.client.get(
                    url, headers=self._get_headers(), follow_redirects=False
                )
        except TimeoutError:
            metrics.fetch_attempts.labels(mirror=mirror.name, outcome="timeout").inc()
            raise FetchTimeout(f"Timeout after {self.attempt_timeout}s", url=url) from None
        except httpx.TimeoutException as e:
            metrics.fetch_attempts.labels(mirror=mirror.name, outcome="timeout").inc()
            raise FetchTimeout(f"Timeout: {e}", url=url) from e
        except httpx.TransportError as e:
            metrics.fetch_attempts.labels(mirror=mirror.name, outcome="network").inc()
            raise FetchNetworkError(f"Network error: {e}", url=url) from e

        if not response.is_success:
            metrics.fetch_attempts.labels(mirror=mirror.name, outcome=str(response.status_code)).inc()
            raise FetchHTTPError(response.status_code, url=url)

        content_type = response.headers.get("content-type")
        if not content_type or PNG_CONTENT_TYPE not in content_type.lower():
            metrics.fetch_attempts.labels(mirror=mirror.name, outcome="content_type").inc()
            raise FetchContentTypeError(content_type, url=url)

        metrics.fetch_attempts.labels(mirror=mirror.name, outcome="ok").inc()
        body = response.content
        self.byte_cache.put(url, body)
        return body

    def _is_retryable(self, error: FetchError) -> bool:
        if isinstance(error, FetchHTTPError):
            return error.status in self.retry_status_codes
        return isinstance(error, FetchNetworkError)

    async def _fetch_mirror(self, mirror: MirrorStrategy, slot: int, retries: int) -> FetchResult:
        """Try one mirror up to ``1 + retries`` times."""
        url = mirror.url_for(slot)
        attempts_left = retries
        while True:
            try:
                body = await self._attempt(mirror, url)
                return FetchResult(url=url, body=body)
            except FetchError as e:
                if attempts_left > 0 and self._is_retryable(e):
                    logger.info(f"Retry {url}: {e}, {attempts_left} left")
                    attempts_left -= 1
                    await asyncio.sleep(mirror.retry_delay)
                    continue
                raise

    def _replay(self, slot: int) -> FetchResult | None:
        for mirror in self.mirrors:
            url = mirror.url_for(slot)
            body = self.byte_cache.get(url)
            if body is not None:
                metrics.byte_cache_replays.inc()
                logger.warning(f"Replaying last known-good bytes for {url} (not a fresh fetch)")
                return FetchResult(url=url, body=body, replayed=True)
        return None

    async def fetch(self, slot: int, retries: int = 0) -> FetchResult:
        """Sequential mode: mirrors in order, each retried on transient failures.

        When every mirror fails, previously fetched bytes for the same URL are
        replayed if available; otherwise the last mirror's error is raised.
        """
        last_error: FetchError | None = None
        for index, mirror in enumerate(self.mirrors):
            url = mirror.url_for(slot)
            logger.info(f"Fetching {slot} from {mirror.name}: {url}")
            try:
                return await self._fetch_mirror(mirror, slot, retries)
            except FetchError as e:
                last_error = e
                if index + 1 < len(self.mirrors):
                    logger.info(f"{mirror.name} failed for {slot} ({e}), trying next mirror")
                else:
                    logger.warning(f"{mirror.name} failed for {slot}: {e}")

        replayed = self._replay(slot)
        if replayed is not None:
            return replayed
        raise last_error

    async def race(self, slot: int) -> FetchResult:
        """Racing mode: request every mirror at once, first success wins.

        No retries and no replay. Losing tasks are cancelled and their errors
        are consumed so they never reach the caller.
        """
        tasks = {
            asyncio.create_task(self._fetch_mirror(mirror, slot, retries=0), name=mirror.name)
            for mirror in self.mirrors
        }
        pending = set(tasks)
        errors: list[FetchError] = []
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    error = task.exception()
                    if error is None:
                        result = task.result()
                        logger.info(f"Race for {slot} won by {task.get_name()}: {result.url}")
                        return result
                    if not isinstance(error, FetchError):
                        raise error
                    errors.append(error)
        finally:
            for task in pending:
                task.cancel()
            # Losers that finished in the same batch as the winner still hold errors
            for task in tasks:
                task.add_done_callback(_consume_result)

        # Every mirror failed; report the first error
        raise errors[0]


def _consume_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
