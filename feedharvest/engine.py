"""Scroll-driven harvest loop over a live, infinitely scrolling feed.

One ``FeedHarvester`` is built per run. It owns the dedup index and the set of
permalinks already sent for expansion, and walks this state machine::

    IDLE -> RUNNING -> STOPPING -> STOPPED

While RUNNING each tick runs one collection pass over every attached feed
item, counts consecutive passes that added nothing, scrolls by a jittered
distance, writes a checkpoint whenever the record count crosses a multiple of
the checkpoint interval, then sleeps a jittered delay. The loop stops when the
feed looks exhausted, on an explicit stop, or on any unexpected error; STOPPING
always writes one final checkpoint and logs the run statistics.

Everything runs on one event loop. Passes never overlap: a pass requested
while another is in flight is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set

from feedharvest.checkpoint import CheckpointWriter
from feedharvest.config import HarvestConfig
from feedharvest.expansion import build_backend
from feedharvest.extractor import RecordExtractor
from feedharvest.records import DedupIndex, Record
from feedharvest.stats import HarvestStats, compute_stats, report

logger = logging.getLogger(__name__)


class CrawlStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class CrawlState:
    status: CrawlStatus = CrawlStatus.IDLE
    consecutive_empty_passes: int = 0  # reset whenever a pass adds a record
    total_passes_without_new_records: int = 0
    passes: int = 0
    started_at: float = field(default_factory=time.time)
    last_checkpoint_size: int = 0
    stop_reason: Optional[str] = None


class FeedHarvester:
    def __init__(
        self,
        surface,
        config: HarvestConfig,
        backend=None,
        writer: Optional[CheckpointWriter] = None,
        rng: Optional[random.Random] = None,
        log: Optional[logging.Logger] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.surface = surface
        self.config = config
        self.logger = log or logger
        self.rng = rng or random.Random(config.seed)
        self.should_stop = should_stop

        self.index = DedupIndex()
        self.visited_expansions: Set[str] = set()
        self.backend = backend if backend is not None else build_backend(config, surface.page)
        self.writer = writer or CheckpointWriter(config.output_dir, config.output_prefix, config.user)
        self.extractor = RecordExtractor(surface, self.backend, self.visited_expansions, self.logger)

        self.state = CrawlState()
        self.last_stats: Optional[HarvestStats] = None
        self._pass_in_flight = False
        self._stop_requested = asyncio.Event()
        self._stopped = asyncio.Event()

    @property
    def records(self) -> List[Record]:
        return self.index.values()

    # -------------- Control surface ----------------
    async def start(self) -> None:
        """Run the harvest until it stops. Calls on a non-idle harvester are ignored."""
        if self.state.status is not CrawlStatus.IDLE:
            self.logger.warning(f"[CRAWL] start ignored status={self.state.status.value}")
            return
        self.state.status = CrawlStatus.RUNNING
        self.state.started_at = time.time()
        self.logger.info(
            f"[CRAWL] started backend={self.backend.name} max_unchanged={self.config.max_unchanged_scrolls} "
            f"checkpoint_every={self.config.checkpoint_interval}"
        )
        try:
            while self.state.status is CrawlStatus.RUNNING:
                await self._tick()
                if self.state.status is CrawlStatus.RUNNING:
                    await self._pause(self.rng.uniform(*self.config.scroll_delay))
        except Exception:
            # Fail-stop: keep what was collected rather than risk a corrupt state.
            self.logger.exception("[CRAWL] fatal error during tick")
            self._begin_stopping("error")
        await self._finish()

    async def stop(self) -> None:
        """Stop the run; returns once the final checkpoint and report are done."""
        status = self.state.status
        if status is CrawlStatus.STOPPED:
            return
        self._begin_stopping("stop requested")
        if status is CrawlStatus.IDLE:
            await self._finish()
        else:
            await self._stopped.wait()

    # -------------- Loop ----------------
    async def _tick(self) -> None:
        if self.should_stop is not None and self.should_stop():
            self._begin_stopping("shutdown")
            return
        if self._pass_in_flight:
            self.logger.debug("[CRAWL] pass already in flight; skipping tick")
            return

        new_count = await self.collect_pass()
        st = self.state
        st.passes += 1
        if new_count > 0:
            st.consecutive_empty_passes = 0
        else:
            st.consecutive_empty_passes += 1
            st.total_passes_without_new_records += 1

        if st.status is not CrawlStatus.RUNNING:
            return
        if self.config.max_records and len(self.index) >= self.config.max_records:
            self.logger.info(f"[CRAWL] record cap reached records={len(self.index)}")
            self._begin_stopping("max_records")
            return
        if st.consecutive_empty_passes >= self.config.max_unchanged_scrolls:
            self.logger.info(f"[CRAWL] no new content after {st.consecutive_empty_passes} passes")
            self._begin_stopping("feed exhausted")
            return

        await self.surface.scroll_by(self.rng.uniform(*self.config.scroll_distance))
        self._maybe_checkpoint()

    async def _pause(self, delay: float) -> None:
        # Sleep, but wake as soon as a stop is requested.
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def _maybe_checkpoint(self) -> None:
        size = len(self.index)
        interval = self.config.checkpoint_interval
        if size // interval > self.state.last_checkpoint_size // interval:
            self.writer.write(self.index)
            self.state.last_checkpoint_size = size

    def _begin_stopping(self, reason: str) -> None:
        if self.state.status in (CrawlStatus.IDLE, CrawlStatus.RUNNING):
            self.state.status = CrawlStatus.STOPPING
            self.state.stop_reason = reason
            self._stop_requested.set()

    async def _finish(self) -> None:
        if self.state.status is not CrawlStatus.STOPPING:
            return
        try:
            self.writer.write(self.index)
            self.last_stats = compute_stats(
                self.index,
                self.state.started_at,
                expansion_attempts=len(self.visited_expansions),
                passes=self.state.passes,
            )
            report(self.last_stats, self.logger)
        finally:
            self.state.status = CrawlStatus.STOPPED
            self._stopped.set()
            self.logger.info(f"[CRAWL] stopped reason={self.state.stop_reason} records={len(self.index)}")

    # -------------- Collection pass ----------------
    async def collect_pass(self) -> int:
        """Scan every attached feed item once; return how many new records were stored."""
        if self._pass_in_flight:
            return 0
        self._pass_in_flight = True
        new_count = 0
        try:
            items = await self.surface.items()
            for item in items:
                try:
                    record = await self.extractor.extract(item)
                except Exception as e:
                    self.logger.warning(f"[ITEM-SKIP] extraction failed err={e!r}")
                    continue
                if record is None:
                    continue
                if self.index.add(record):
                    new_count += 1
                    self.logger.debug(f"[POST] #{record.index} {record.text[:50]!r}")
        except Exception:
            self.logger.exception("[PASS] failed scanning feed items")
            return 0
        finally:
            self._pass_in_flight = False
        if new_count:
            self.logger.info(f"[PASS] new={new_count} total={len(self.index)}")
        return new_count
