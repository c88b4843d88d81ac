"""Run configuration for the feed harvester.

Defaults mirror the markup of an X/Twitter timeline; every selector can be
overridden from spider arguments (``-a article_selector=...``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

EXPANSION_BACKENDS = ("new_tab", "iframe", "fetch")


@dataclass
class Selectors:
    article: str = 'article[role="article"]'  # One rendered feed item
    text: str = '[data-testid="tweetText"]'  # Primary text node inside an item
    show_more: str = '[data-testid="tweet-text-show-more-link"]'  # Truncation affordance
    permalink: str = 'a[role="link"][href*="/status/"]'  # Canonical link of the item
    main_post: str = 'article[data-testid="tweet"]'  # Focused post on a permalink page
    timestamp: str = "time"  # Element carrying a datetime attribute
    permalink_pattern: str = "/status/"  # Fallback href substring when the permalink selector misses

    def as_dict(self) -> dict:
        return {
            "article": self.article,
            "text": self.text,
            "showMore": self.show_more,
            "permalink": self.permalink,
            "mainPost": self.main_post,
            "timestamp": self.timestamp,
            "permalinkPattern": self.permalink_pattern,
        }


@dataclass
class HarvestConfig:
    selectors: Selectors = field(default_factory=Selectors)

    # --- Pacing ---
    scroll_delay: Tuple[float, float] = (1.5, 4.0)  # seconds between ticks
    scroll_distance: Tuple[float, float] = (150.0, 500.0)  # pixels per scroll
    max_unchanged_scrolls: int = 15  # consecutive empty passes before stopping
    seed: Optional[int] = None  # fixed seed for deterministic jitter

    # --- Checkpointing ---
    checkpoint_interval: int = 50  # records between periodic checkpoints
    output_dir: Path = Path("data")
    output_prefix: str = "x_posts"
    user: str = "unknown"
    max_records: int = 0  # stop once the index holds this many records (0 = unlimited)

    # --- Content expansion ---
    expansion_backend: str = "new_tab"
    expansion_timeout: float = 10.0  # hard deadline per attempt (seconds)
    expansion_poll_interval: float = 0.5
    expansion_max_retries: int = 10
    expansion_initial_delay: float = 1.0

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.scroll_delay = _check_range("scroll_delay", self.scroll_delay)
        self.scroll_distance = _check_range("scroll_distance", self.scroll_distance)
        if self.max_unchanged_scrolls < 1:
            raise ValueError("max_unchanged_scrolls must be >= 1")
        if self.checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be >= 1")
        if self.max_records < 0:
            raise ValueError("max_records must be >= 0")
        if self.expansion_backend not in EXPANSION_BACKENDS:
            raise ValueError(
                f"unknown expansion backend {self.expansion_backend!r} (expected one of {', '.join(EXPANSION_BACKENDS)})"
            )
        if self.expansion_timeout <= 0:
            raise ValueError("expansion_timeout must be > 0")
        if self.expansion_poll_interval < 0 or self.expansion_initial_delay < 0:
            raise ValueError("expansion poll interval and initial delay must be >= 0")
        if self.expansion_max_retries < 1:
            raise ValueError("expansion_max_retries must be >= 1")


def _check_range(name: str, value) -> Tuple[float, float]:
    lo, hi = (float(v) for v in value)
    if lo < 0 or hi < lo:
        raise ValueError(f"{name} must be a non-negative (min, max) range, got ({lo}, {hi})")
    return lo, hi
