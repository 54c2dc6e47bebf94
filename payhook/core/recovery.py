"""Recovery of events the webhook endpoint never recorded.

A recovery run lists a window of historical events from the upstream source
and replays every event that has no dedupe record through the same
validate-then-dispatch path as live delivery. Runs are strictly sequential,
oldest first, so the ordering check stays meaningful.

Per run::

    Idle -> Scanning(page|chunk) -> per event: skipped | replayed | failed
         -> Scanning(next) -> Completed | Aborted (upstream fetch error)

Per-event failures never abort a run. An upstream fetch failure always
does. No checkpoint is persisted: a crashed run restarts from its start.
"""

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from payhook.core.config import Profile
from payhook.core.event import WebhookEvent
from payhook.core.logging import get_logger
from payhook.core.processor import WebhookProcessor
from payhook.core.validator import WebhookValidationError
from payhook.source.base import EventPage, EventSource
from payhook.store.base import EventStore
from payhook.store.keys import KeyScheme


class RecoveryMode(Enum):
    SIMPLE = "simple"
    CHUNKED = "chunked"


@dataclass
class RecoveryStats:
    """Counters for one recovery run."""

    total_events: int = 0
    missing_events: int = 0
    replayed_events: int = 0
    failed_replays: int = 0
    processed_chunks: int = 0
    skipped_chunks: int = 0
    pages_fetched: int = 0
    truncated_pages: int = 0

    def as_dict(self) -> dict[str, int]:
        """camelCase view for JSON responses and logs."""
        return {
            "".join(w if i == 0 else w.title() for i, w in enumerate(k.split("_"))): v
            for k, v in asdict(self).items()
        }


class RecoveryEngine:
    """Finds and replays missing events over a time window.

    Args:
        source: Upstream event source.
        store: Event store holding the dedupe records.
        processor: The validate-then-dispatch pipeline.
        config: Effective profile (page size, chunk size, page cap).
        keys: Key scheme; defaults to the profile's namespace.
        clock: Returns the current epoch time, used when no end is given.
    """

    def __init__(
        self,
        source: EventSource,
        store: EventStore,
        processor: WebhookProcessor,
        config: Profile,
        keys: KeyScheme | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.store = store
        self.processor = processor
        self.config = config
        self.keys = keys or KeyScheme(config.namespace)
        self._clock = clock
        self._log = get_logger("payhook.recovery")

    def _resolve_window(self, start: int, end: int | None) -> tuple[int, int]:
        if end is None:
            end = int(self._clock())
        if start < 0:
            raise ValueError(f"start must be a non-negative epoch, got {start}")
        if start > end:
            raise ValueError(f"start ({start}) is after end ({end})")
        return start, end

    def chunk_windows(self, start: int, end: int) -> list[tuple[int, int]]:
        """Split ``[start, end]`` into inclusive, non-overlapping windows.

        Each window spans ``chunk_size`` seconds; the last one ends at
        ``end``. Upstream queries are inclusive at both ends, so interior
        windows stop one second before the next window starts.
        """
        if start == end:
            return [(start, end)]
        size = self.config.chunk_size
        windows = []
        for chunk_start in range(start, end, size):
            chunk_end = min(chunk_start + size, end)
            windows.append((chunk_start, chunk_end if chunk_end == end else chunk_end - 1))
        return windows

    async def run(
        self, mode: RecoveryMode, start: int, end: int | None = None, **options: Any
    ) -> RecoveryStats:
        if mode is RecoveryMode.SIMPLE:
            return await self.detect_and_replay(start, end)
        return await self.detect_and_replay_in_chunks(start, end, **options)

    async def detect_and_replay(self, start: int, end: int | None = None) -> RecoveryStats:
        """Replay missing events from a single upstream page over the window."""
        start, end = self._resolve_window(start, end)
        stats = RecoveryStats()
        try:
            page = await self._fetch(start, end, stats)
            await self._replay_page(page, stats, {"window": [start, end]})
        except Exception as e:
            self._log.error(
                f"Recovery failed: {e}",
                extra={"error": str(e), "stats": stats.as_dict(), "window": [start, end]},
            )
            raise

        self._log.info(
            "Recovery completed",
            extra={"stats": stats.as_dict(), "window": [start, end]},
        )
        return stats

    async def detect_and_replay_in_chunks(
        self,
        start: int,
        end: int | None = None,
        *,
        source: str = "automated",
        max_pages: int | None = None,
    ) -> RecoveryStats:
        """Replay missing events chunk by chunk, oldest chunk first.

        Args:
            start: Window start, epoch seconds.
            end: Window end, epoch seconds. Defaults to now.
            source: Who triggered the run, for the logs.
            max_pages: Cap on upstream pages for the whole run. Chunks past
                the cap are counted as skipped. Defaults to the profile's
                ``max_pages``.
        """
        start, end = self._resolve_window(start, end)
        max_pages = max_pages if max_pages is not None else self.config.max_pages
        if max_pages <= 0:
            raise ValueError(f"max_pages must be positive, got {max_pages}")

        windows = self.chunk_windows(start, end)
        stats = RecoveryStats()
        started = time.monotonic()
        run_context = {
            "window": [start, end],
            "source": source,
            "chunk_size": self.config.chunk_size,
            "total_chunks": len(windows),
            "max_pages": max_pages,
        }
        self._log.info("Starting chunked recovery", extra=run_context)

        try:
            for index, (chunk_start, chunk_end) in enumerate(windows):
                if stats.pages_fetched >= max_pages:
                    stats.skipped_chunks = len(windows) - index
                    self._log.warning(
                        f"Page cap reached, skipping {stats.skipped_chunks} chunks",
                        extra={**run_context, "next_chunk": [chunk_start, chunk_end]},
                    )
                    break

                page = await self._fetch(chunk_start, chunk_end, stats)
                await self._replay_page(
                    page,
                    stats,
                    {
                        "chunk": index + 1,
                        "total_chunks": len(windows),
                        "window": [chunk_start, chunk_end],
                    },
                )
                stats.processed_chunks += 1
                self._log.debug(
                    "Chunk processed",
                    extra={
                        "chunk": index + 1,
                        "window": [chunk_start, chunk_end],
                        "stats": stats.as_dict(),
                    },
                )
        except Exception as e:
            self._log.error(
                f"Chunked recovery failed: {e}",
                extra={**run_context, "error": str(e), "stats": stats.as_dict()},
            )
            raise

        self._log.info(
            "Recovery completed",
            extra={
                **run_context,
                "stats": stats.as_dict(),
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        return stats

    async def _fetch(self, start: int, end: int, stats: RecoveryStats) -> EventPage:
        page = await self.source.list_events(start, end, self.config.page_size)
        stats.pages_fetched += 1
        stats.total_events += len(page.events)
        if page.has_more:
            stats.truncated_pages += 1
            self._log.warning(
                "Upstream page truncated, events beyond the page size were not scanned",
                extra={"window": [start, end], "page_size": self.config.page_size},
            )
        return page

    async def _replay_page(
        self, page: EventPage, stats: RecoveryStats, where: dict[str, Any]
    ) -> None:
        for event in sorted(page.events, key=lambda e: (e.created, e.id)):
            await self._replay_event(event, stats, where)

    async def _replay_event(
        self, event: WebhookEvent, stats: RecoveryStats, where: dict[str, Any]
    ) -> None:
        context = {**event.log_context(), **where}
        try:
            recorded = await self.store.get(self.keys.event(event.id))
        except Exception as e:
            # Unreadable dedupe record: counted as missing, then failed
            stats.missing_events += 1
            self._replay_failed(stats, context, e)
            return
        if recorded is not None:
            return

        stats.missing_events += 1
        try:
            result = await self.processor.check_and_route(event)
        except Exception as e:
            self._replay_failed(stats, context, e)
            return

        if result:
            stats.replayed_events += 1
        else:
            stats.failed_replays += 1
            self._log.warning(
                "Recovery event rejected",
                extra={**context, "error_kind": result.kind.value if result.kind else None},
            )

    def _replay_failed(
        self, stats: RecoveryStats, context: dict[str, Any], error: Exception
    ) -> None:
        stats.failed_replays += 1
        self._log.error(
            f"Recovery event failed: {error}",
            extra={
                **context,
                "error": str(error),
                "error_kind": (
                    error.kind.value if isinstance(error, WebhookValidationError) else None
                ),
            },
        )
