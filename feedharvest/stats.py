from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

MIN_ELAPSED_FOR_RATE = 1e-3  # seconds; below this the rate is reported as 0


@dataclass
class HarvestStats:
    """End-of-run summary."""
    total_records: int
    elapsed_seconds: float
    expansion_attempts: int
    expanded_records: int
    passes: int = 0

    @property
    def records_per_second(self) -> float:
        if self.elapsed_seconds < MIN_ELAPSED_FOR_RATE:
            return 0.0
        return self.total_records / self.elapsed_seconds

    @property
    def minutes(self) -> int:
        return int(self.elapsed_seconds // 60)

    @property
    def seconds(self) -> int:
        return int(self.elapsed_seconds % 60)

    def summary_lines(self) -> List[str]:
        return [
            "Collection statistics",
            "==========================",
            f"Total posts collected: {self.total_records}",
            f"Time elapsed: {self.minutes}m {self.seconds}s",
            f"Collection rate: {self.records_per_second:.2f} posts/second",
            f"Expanded posts: {self.expansion_attempts} attempted, {self.expanded_records} truncated records",
            f"Collection passes: {self.passes}",
            "==========================",
        ]

    def as_event(self) -> dict:
        return {
            "event": "stats",
            "ts": int(time.time()),
            "total_records": self.total_records,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "records_per_second": round(self.records_per_second, 4),
            "expansion_attempts": self.expansion_attempts,
            "expanded_records": self.expanded_records,
            "passes": self.passes,
        }


def compute_stats(records, started_at: float, expansion_attempts: int, passes: int = 0, now: Optional[float] = None) -> HarvestStats:
    records = list(records)
    now = time.time() if now is None else now
    return HarvestStats(
        total_records=len(records),
        elapsed_seconds=max(0.0, now - started_at),
        expansion_attempts=expansion_attempts,
        expanded_records=sum(1 for r in records if r.is_expanded),
        passes=passes,
    )


def report(stats: HarvestStats, log: logging.Logger) -> None:
    for line in stats.summary_lines():
        log.info(f"[STATS] {line}")
    log.info(json.dumps(stats.as_event(), sort_keys=True))
