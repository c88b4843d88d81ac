"""Pytest configuration: asyncio marker support and in-memory feed fakes."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

import pytest

from feedharvest.config import HarvestConfig
from feedharvest.surface import ItemSnapshot


def pytest_configure(config):
    """Register the ``asyncio`` marker for asynchronous tests."""
    config.addinivalue_line(
        "markers", "asyncio: mark async test to run in event loop"
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Run functions marked with ``asyncio`` in a new event loop."""
    if pyfuncitem.get_closest_marker("asyncio"):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            testargs = {
                arg: pyfuncitem.funcargs[arg]
                for arg in pyfuncitem._fixtureinfo.argnames
            }
            loop.run_until_complete(pyfuncitem.obj(**testargs))
        finally:
            loop.close()
            asyncio.set_event_loop(None)
        return True


class FakeItem:
    """One rendered feed item."""

    def __init__(
        self,
        text: str,
        permalink: Optional[str] = None,
        timestamp: Optional[str] = None,
        truncated: bool = False,
        broken: bool = False,
    ) -> None:
        self.text = text
        self.permalink = permalink
        self.timestamp = timestamp
        self.truncated = truncated
        self.broken = broken
        self.processed = False
        self.reads = 0


class FakeSurface:
    """Feed page stand-in; each scroll mounts the next batch of items, if any."""

    def __init__(self, items: List[FakeItem], batches: Optional[List[List[FakeItem]]] = None) -> None:
        self.attached = list(items)
        self.batches = list(batches or [])
        self.scrolls: List[float] = []
        self.page = None

    async def items(self) -> List[FakeItem]:
        return list(self.attached)

    async def is_processed(self, item: FakeItem) -> bool:
        return item.processed

    async def mark_processed(self, item: FakeItem) -> None:
        item.processed = True

    async def read_item(self, item: FakeItem) -> ItemSnapshot:
        item.reads += 1
        if item.broken:
            raise RuntimeError("detached node")
        return ItemSnapshot(
            text=item.text,
            truncated=item.truncated,
            permalink=item.permalink,
            timestamp=item.timestamp,
        )

    async def scroll_by(self, distance: float) -> None:
        self.scrolls.append(distance)
        if self.batches:
            self.attached.extend(self.batches.pop(0))


class FakeBackend:
    """Expansion backend answering from a dict and recording every call."""

    name = "fake"

    def __init__(self, texts: Optional[Dict[str, str]] = None) -> None:
        self.texts = texts or {}
        self.calls: List[str] = []

    async def expand(self, permalink: str) -> Optional[str]:
        self.calls.append(permalink)
        return self.texts.get(permalink)


class FakeWriter:
    """Checkpoint writer that keeps snapshots in memory."""

    def __init__(self) -> None:
        self.snapshots: List[List[str]] = []

    def write(self, records) -> None:
        keys = [r.identity_key for r in records]
        if keys:
            self.snapshots.append(keys)


@pytest.fixture
def fast_config(tmp_path) -> HarvestConfig:
    return HarvestConfig(
        scroll_delay=(0.0, 0.0),
        scroll_distance=(150.0, 500.0),
        max_unchanged_scrolls=3,
        checkpoint_interval=50,
        output_dir=tmp_path,
        user="tester",
        seed=7,
    )
