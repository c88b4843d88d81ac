from __future__ import annotations

import logging
from typing import Optional, Set

from feedharvest.records import Record, identity_key

logger = logging.getLogger(__name__)


class RecordExtractor:
    """Turn one rendered feed item into a Record, expanding truncated text.

    ``visited`` is the run's set of permalinks already sent to the backend;
    a permalink is added before the attempt, so each one is tried at most
    once per run whatever the outcome.
    """

    def __init__(self, surface, backend, visited: Set[str], log: Optional[logging.Logger] = None):
        self.surface = surface
        self.backend = backend
        self.visited = visited
        self.logger = log or logger

    async def extract(self, item) -> Optional[Record]:
        if await self.surface.is_processed(item):
            return None
        snap = await self.surface.read_item(item)
        text = (snap.text or "").strip()
        if not text:
            # Not marked: the text node may still be mounting and a later pass retries it.
            return None

        if snap.truncated:
            full = await self._expand(snap.permalink)
            # Never regress to shorter content.
            if full and len(full) > len(text):
                self.logger.debug(f"[EXPAND] adopted chars={len(text)}->{len(full)} url={snap.permalink}")
                text = full

        record = Record(
            identity_key=identity_key(text, snap.permalink, snap.timestamp),
            text=text,
            permalink=snap.permalink,
            timestamp=snap.timestamp,
            is_expanded=snap.truncated,
        )
        await self.surface.mark_processed(item)
        return record

    async def _expand(self, permalink: Optional[str]) -> Optional[str]:
        if not permalink:
            self.logger.debug("[EXPAND] truncated item has no permalink; keeping snippet")
            return None
        if permalink in self.visited:
            return None
        self.visited.add(permalink)
        return await self.backend.expand(permalink)
