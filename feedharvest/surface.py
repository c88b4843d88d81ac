"""(Playwright) Read-and-scroll access to the live feed page.

The engine never touches Playwright directly; it goes through this adapter so
tests can swap in an in-memory surface exposing the same coroutines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from feedharvest.config import Selectors

PROCESSED_ATTR = "data-feedharvest-processed"

# Runs inside the page against one feed item; one round trip per item.
_SNAPSHOT_JS = """
(el, sel) => {
    const textEl = el.querySelector(sel.text);
    const text = textEl ? (textEl.textContent || '').trim() : '';
    let link = el.querySelector(sel.permalink);
    if (!link || !link.href) {
        link = Array.from(el.querySelectorAll('a')).find(a => a.href && a.href.includes(sel.permalinkPattern));
    }
    const timeEl = el.querySelector(sel.timestamp);
    return {
        text: text,
        truncated: !!el.querySelector(sel.showMore),
        permalink: link && link.href ? link.href : null,
        timestamp: timeEl ? timeEl.getAttribute('datetime') : null,
    };
}
"""


@dataclass
class ItemSnapshot:
    text: str
    truncated: bool = False
    permalink: Optional[str] = None
    timestamp: Optional[str] = None


class PlaywrightSurface:
    def __init__(self, page, selectors: Selectors):
        self.page = page
        self.selectors = selectors

    async def items(self) -> List:
        """All feed items currently attached to the document, in document order."""
        return await self.page.query_selector_all(self.selectors.article)

    async def is_processed(self, item) -> bool:
        return await item.get_attribute(PROCESSED_ATTR) is not None

    async def mark_processed(self, item) -> None:
        await item.evaluate("(el, attr) => el.setAttribute(attr, '1')", PROCESSED_ATTR)

    async def read_item(self, item) -> ItemSnapshot:
        raw = await item.evaluate(_SNAPSHOT_JS, self.selectors.as_dict())
        return ItemSnapshot(
            text=raw.get("text") or "",
            truncated=bool(raw.get("truncated")),
            permalink=raw.get("permalink") or None,
            timestamp=raw.get("timestamp") or None,
        )

    async def scroll_by(self, distance: float) -> None:
        # Smooth motion gives lazily mounted items time to render.
        await self.page.evaluate(
            "(dy) => window.scrollBy({top: dy, behavior: 'smooth'})", int(distance)
        )
