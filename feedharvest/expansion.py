"""Content-expansion backends: fetch the full text of a truncated post.

Three interchangeable strategies share one contract, ``await backend.expand(permalink)``:
it returns the full text or None, never raises (cancellation aside), is
bounded by a hard deadline, and tears down every auxiliary page or frame it
creates on every exit path.

- ``new_tab``: open the permalink in a new page of the same browser context and
  poll it for the focused post's text node.
- ``iframe``: inject a zero-size iframe into the feed page, navigate it to the
  permalink and read the text node once it has loaded.
- ``fetch``: request the permalink over the context's HTTP client and parse the
  markup offline. Cheapest, but yields None for client-rendered pages.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Tuple

from playwright.async_api import Error as PlaywrightError

from feedharvest.config import HarvestConfig, Selectors
from feedharvest.parse_helpers import extract_post_text

logger = logging.getLogger(__name__)

_IFRAME_JS = """
() => {
    const frame = document.createElement('iframe');
    frame.setAttribute('aria-hidden', 'true');
    frame.style.cssText = 'width:0;height:0;border:none;position:fixed;top:-999px;left:-999px;';
    document.body.appendChild(frame);
    return frame;
}
"""


class ExpansionState(Enum):
    """Outcome of one new-tab polling run."""
    WAITING = "waiting"
    FOUND = "found"
    CLOSED = "closed"
    TIMED_OUT = "timed_out"


class ExpansionBackend:
    name = "base"

    def __init__(self, page, selectors: Selectors, timeout: float = 10.0):
        self.page = page
        self.selectors = selectors
        self.timeout = timeout

    async def expand(self, permalink: str) -> Optional[str]:
        """Return the full text behind ``permalink`` or None. Never raises."""
        try:
            text = await asyncio.wait_for(self._expand(permalink), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[EXPAND] backend={self.name} timed out after {self.timeout:.1f}s url={permalink}")
            return None
        except Exception as e:
            logger.warning(f"[EXPAND] backend={self.name} failed url={permalink} err={e!r}")
            return None
        if not text:
            logger.info(f"[EXPAND] backend={self.name} no text url={permalink}")
            return None
        logger.info(f"[EXPAND] backend={self.name} retrieved chars={len(text)} url={permalink}")
        return text

    async def _expand(self, permalink: str) -> Optional[str]:
        raise NotImplementedError

    @property
    def _timeout_ms(self) -> int:
        return int(self.timeout * 1000)


class NewTabBackend(ExpansionBackend):
    name = "new_tab"

    def __init__(
        self,
        page,
        selectors: Selectors,
        timeout: float = 10.0,
        poll_interval: float = 0.5,
        max_retries: int = 10,
        initial_delay: float = 1.0,
    ):
        super().__init__(page, selectors, timeout)
        self.poll_interval = poll_interval
        self.max_retries = max_retries
        self.initial_delay = initial_delay

    async def _expand(self, permalink: str) -> Optional[str]:
        tab = await self.page.context.new_page()
        try:
            await tab.goto(permalink, wait_until="commit", timeout=self._timeout_ms)
            await asyncio.sleep(self.initial_delay)
            state, text = await self._poll(tab)
            if state is not ExpansionState.FOUND:
                logger.info(f"[EXPAND] new_tab state={state.value} url={permalink}")
            return text
        finally:
            if not tab.is_closed():
                await tab.close()

    async def _poll(self, tab) -> Tuple[ExpansionState, Optional[str]]:
        selector = f"{self.selectors.main_post} {self.selectors.text}"
        state = ExpansionState.WAITING
        text = None
        attempts = 0
        while state is ExpansionState.WAITING:
            if tab.is_closed():
                state = ExpansionState.CLOSED
                continue
            if attempts >= self.max_retries:
                state = ExpansionState.TIMED_OUT
                continue
            try:
                node = await tab.query_selector(selector)
                if node is not None:
                    text = ((await node.text_content()) or "").strip() or None
                    if text:
                        state = ExpansionState.FOUND
                        continue
            except PlaywrightError as e:
                # Reads race the page's own navigation; the retry ceiling still applies.
                logger.debug(f"[EXPAND] new_tab transient read error attempt={attempts + 1} err={e}")
            attempts += 1
            await asyncio.sleep(self.poll_interval)
        return state, text


class IframeBackend(ExpansionBackend):
    name = "iframe"

    async def _expand(self, permalink: str) -> Optional[str]:
        handle = await self.page.evaluate_handle(_IFRAME_JS)
        try:
            element = handle.as_element()
            frame = await element.content_frame() if element is not None else None
            if frame is None:
                logger.warning(f"[EXPAND] iframe could not attach url={permalink}")
                return None
            await frame.goto(permalink, wait_until="load", timeout=self._timeout_ms)
            node = await frame.query_selector(f"{self.selectors.main_post} {self.selectors.text}")
            if node is None:
                node = await frame.query_selector(self.selectors.text)
            if node is None:
                return None
            return ((await node.text_content()) or "").strip() or None
        finally:
            await self._teardown(handle)

    async def _teardown(self, handle) -> None:
        try:
            if not self.page.is_closed():
                await handle.evaluate("el => el.remove()")
            await handle.dispose()
        except PlaywrightError as e:
            logger.debug(f"[EXPAND] iframe teardown err={e}")


class FetchBackend(ExpansionBackend):
    name = "fetch"

    async def _expand(self, permalink: str) -> Optional[str]:
        response = await self.page.context.request.get(permalink, timeout=self._timeout_ms)
        try:
            if not response.ok:
                logger.info(f"[EXPAND] fetch status={response.status} url={permalink}")
                return None
            html = await response.text()
        finally:
            await response.dispose()
        return extract_post_text(html, self.selectors)


def build_backend(config: HarvestConfig, page) -> ExpansionBackend:
    """Instantiate the backend named by ``config.expansion_backend``."""
    name = config.expansion_backend
    if name == NewTabBackend.name:
        return NewTabBackend(
            page,
            config.selectors,
            timeout=config.expansion_timeout,
            poll_interval=config.expansion_poll_interval,
            max_retries=config.expansion_max_retries,
            initial_delay=config.expansion_initial_delay,
        )
    if name == IframeBackend.name:
        return IframeBackend(page, config.selectors, timeout=config.expansion_timeout)
    if name == FetchBackend.name:
        return FetchBackend(page, config.selectors, timeout=config.expansion_timeout)
    raise ValueError(f"unknown expansion backend {name!r}")
