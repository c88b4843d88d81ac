"""Harvested records and the per-run dedup index."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

TEXT_PREFIX_LEN = 40


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def identity_key(text: str, permalink: Optional[str], timestamp: Optional[str]) -> str:
    """Derive the dedup key for a record.

    Prefers ``permalink_timestamp``; without a permalink falls back to
    ``timestamp_<first 40 chars of text>``. A missing timestamp renders as an
    empty string so the key stays stable across re-extraction.
    """
    ts = timestamp or ""
    if permalink:
        return f"{permalink}_{ts}"
    return f"{ts}_{text[:TEXT_PREFIX_LEN]}"


@dataclass
class Record:
    identity_key: str
    text: str
    permalink: Optional[str] = None
    timestamp: Optional[str] = None
    is_expanded: bool = False
    collected_at: Optional[str] = None  # assigned by DedupIndex.add
    index: int = 0  # 1-based discovery ordinal, assigned by DedupIndex.add

    @property
    def text_length(self) -> int:
        return len(self.text)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "identityKey": self.identity_key,
            "text": self.text,
            "permalink": self.permalink,
            "timestamp": self.timestamp,
            "collectedAt": self.collected_at,
            "isExpanded": self.is_expanded,
            "textLength": self.text_length,
        }


class DedupIndex:
    """Insertion-ordered ``identity_key -> Record`` map with first-write-wins semantics.

    Records are never replaced or removed, so ``len()`` only grows.
    """

    def __init__(self):
        self._records: Dict[str, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records.values())

    def get(self, key: str) -> Optional[Record]:
        return self._records.get(key)

    def add(self, record: Record) -> bool:
        """Insert ``record`` if its key is new. Returns True when inserted."""
        if record.identity_key in self._records:
            return False
        record.collected_at = utc_now_iso()
        record.index = len(self._records) + 1
        self._records[record.identity_key] = record
        return True

    def values(self) -> List[Record]:
        return list(self._records.values())
