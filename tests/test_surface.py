"""Tests for the Playwright feed adapter."""

from __future__ import annotations

import re

import pytest
from playwright.async_api import Error as PlaywrightError, async_playwright

from feedharvest.config import Selectors
from feedharvest.surface import _SNAPSHOT_JS, PROCESSED_ATTR, ItemSnapshot, PlaywrightSurface


class FakeHandle:
    """ElementHandle stand-in: returns a canned snapshot and keeps attributes."""

    def __init__(self, raw=None) -> None:
        self.raw = raw or {}
        self.attributes = {}
        self.snapshot_args = []

    async def evaluate(self, script, arg=None):
        if script == _SNAPSHOT_JS:
            self.snapshot_args.append(arg)
            return self.raw
        if "setAttribute" in script:
            self.attributes[arg] = "1"
            return None
        raise AssertionError(f"unexpected script: {script}")

    async def get_attribute(self, name):
        return self.attributes.get(name)


class FakePage:
    def __init__(self, handles) -> None:
        self.handles = handles
        self.queries = []
        self.scrolls = []

    async def query_selector_all(self, selector):
        self.queries.append(selector)
        return list(self.handles)

    async def evaluate(self, script, arg=None):
        self.scrolls.append(arg)


def test_snapshot_script_reads_only_known_selector_keys() -> None:
    used = set(re.findall(r"\bsel\.(\w+)", _SNAPSHOT_JS))
    keys = set(Selectors().as_dict())

    assert {"text", "permalink", "permalinkPattern", "timestamp", "showMore"} <= used
    assert used <= keys


def test_selector_keys_are_camel_case() -> None:
    selectors = Selectors(show_more=".more", permalink_pattern="/p/", main_post=".main")

    data = selectors.as_dict()

    assert data["showMore"] == ".more"
    assert data["permalinkPattern"] == "/p/"
    assert data["mainPost"] == ".main"


@pytest.mark.asyncio
async def test_read_item_maps_missing_values_to_defaults() -> None:
    handle = FakeHandle({"text": None, "truncated": None, "permalink": "", "timestamp": ""})
    surface = PlaywrightSurface(FakePage([handle]), Selectors())

    snap = await surface.read_item(handle)

    assert snap == ItemSnapshot(text="", truncated=False, permalink=None, timestamp=None)
    assert handle.snapshot_args == [Selectors().as_dict()]


@pytest.mark.asyncio
async def test_read_item_keeps_present_values() -> None:
    handle = FakeHandle({
        "text": "hello",
        "truncated": True,
        "permalink": "https://x.com/u/status/1",
        "timestamp": "2025-01-16T10:00:00.000Z",
    })
    surface = PlaywrightSurface(FakePage([handle]), Selectors())

    snap = await surface.read_item(handle)

    assert snap.text == "hello"
    assert snap.truncated is True
    assert snap.permalink == "https://x.com/u/status/1"
    assert snap.timestamp == "2025-01-16T10:00:00.000Z"


@pytest.mark.asyncio
async def test_processed_marker_round_trip() -> None:
    handle = FakeHandle()
    surface = PlaywrightSurface(FakePage([handle]), Selectors())

    assert await surface.is_processed(handle) is False
    await surface.mark_processed(handle)

    assert handle.attributes == {PROCESSED_ATTR: "1"}
    assert await surface.is_processed(handle) is True


@pytest.mark.asyncio
async def test_items_and_scroll_go_through_page() -> None:
    handles = [FakeHandle(), FakeHandle()]
    page = FakePage(handles)
    surface = PlaywrightSurface(page, Selectors(article="div.item"))

    assert await surface.items() == handles
    await surface.scroll_by(321.7)

    assert page.queries == ["div.item"]
    assert page.scrolls == [321]


_FEED_HTML = """
<article role="article">
  <div data-testid="tweetText">  first post  </div>
  <a href="https://x.com/someuser/status/111">2h</a>
  <time datetime="2025-01-16T10:00:00.000Z">Jan 16</time>
  <span data-testid="tweet-text-show-more-link">Show more</span>
</article>
<article role="article">
  <a role="link" href="https://x.com/someuser">profile</a>
</article>
"""


@pytest.mark.asyncio
async def test_snapshot_in_browser_falls_back_to_permalink_pattern() -> None:
    async with async_playwright() as pw:
        try:
            browser = await pw.chromium.launch()
        except PlaywrightError as exc:
            pytest.skip(f"chromium unavailable: {exc}")
        try:
            page = await browser.new_page()
            await page.set_content(_FEED_HTML)
            surface = PlaywrightSurface(page, Selectors())

            first, second = await surface.items()
            snap = await surface.read_item(first)
            empty = await surface.read_item(second)
            await surface.mark_processed(first)
            processed = [await surface.is_processed(first), await surface.is_processed(second)]
        finally:
            await browser.close()

    assert snap == ItemSnapshot(
        text="first post",
        truncated=True,
        permalink="https://x.com/someuser/status/111",
        timestamp="2025-01-16T10:00:00.000Z",
    )
    assert empty == ItemSnapshot(text="")
    assert processed == [True, False]
