from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup

from feedharvest.config import Selectors


def extract_post_text(html: str, selectors: Selectors) -> Optional[str]:
    """Pull the primary post text out of a permalink page's raw markup.

    Looks for the text node inside the focused post first, then anywhere in
    the document. Returns None when the markup carries no text node, which is
    the normal outcome for pages that only render client-side.
    """
    if not html:
        return None
    soup = BeautifulSoup(html, "lxml")
    node = soup.select_one(f"{selectors.main_post} {selectors.text}")
    if node is None:
        node = soup.select_one(selectors.text)
    if node is None:
        return None
    # Same text the browser reports as textContent, trimmed.
    text = node.get_text().strip()
    return text or None
