"""Feed harvest spider.

Opens one feed URL in a Playwright-rendered page and hands the live page to
``FeedHarvester``, which scrolls it until the feed is exhausted or the crawl is
shut down (Ctrl-C still writes the final checkpoint and statistics).

Usage (from project root):
  scrapy crawl feed -a start_url=https://x.com/someuser -a expansion_backend=fetch
"""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlparse

import scrapy
from scrapy import Request
from scrapy_playwright.page import PageMethod

from feedharvest.config import HarvestConfig, Selectors
from feedharvest.engine import FeedHarvester
from feedharvest.surface import PlaywrightSurface


class FeedSpider(scrapy.Spider):
    name = "feed"

    custom_settings = {
        # One live page; all pacing happens inside the harvester.
        "CONCURRENT_REQUESTS": 1,
    }

    def __init__(
        self,
        start_url: str = "",                   # Feed to harvest (required)
        user: str = "",                        # Handle used in checkpoint filenames (default: first URL path segment)
        output_dir: Optional[str] = None,      # Checkpoint directory (default: HARVEST_OUTPUT_DIR setting)
        output_prefix: str = "x_posts",        # Checkpoint filename prefix
        article_selector: Optional[str] = None,
        text_selector: Optional[str] = None,
        show_more_selector: Optional[str] = None,
        permalink_selector: Optional[str] = None,
        main_post_selector: Optional[str] = None,
        timestamp_selector: Optional[str] = None,
        permalink_pattern: Optional[str] = None,
        delay_min: float = 1.5,                # Min seconds between scrolls
        delay_max: float = 4.0,                # Max seconds between scrolls
        scroll_min: float = 150,               # Min scroll distance (px)
        scroll_max: float = 500,               # Max scroll distance (px)
        max_unchanged_scrolls: int = 15,       # Consecutive empty passes before stopping
        checkpoint_interval: int = 50,         # Records between periodic checkpoints
        max_records: int = 0,                  # Stop after this many records (0 = unlimited)
        expansion_backend: str = "new_tab",    # new_tab | iframe | fetch
        expansion_timeout: float = 10.0,       # Hard deadline per expansion (seconds)
        expansion_poll_interval: float = 0.5,  # new_tab polling interval (seconds)
        expansion_max_retries: int = 10,       # new_tab polling attempts
        seed: Optional[int] = None,            # Seed for deterministic jitter (None = random)
        *args,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        if not start_url:
            raise ValueError("start_url is required (-a start_url=...)")
        self.start_url = start_url
        self.output_dir = output_dir

        defaults = Selectors()
        selectors = Selectors(
            article=article_selector or defaults.article,
            text=text_selector or defaults.text,
            show_more=show_more_selector or defaults.show_more,
            permalink=permalink_selector or defaults.permalink,
            main_post=main_post_selector or defaults.main_post,
            timestamp=timestamp_selector or defaults.timestamp,
            permalink_pattern=permalink_pattern or defaults.permalink_pattern,
        )
        self._config_kwargs = dict(
            selectors=selectors,
            scroll_delay=(float(delay_min), float(delay_max)),
            scroll_distance=(float(scroll_min), float(scroll_max)),
            max_unchanged_scrolls=int(max_unchanged_scrolls),
            checkpoint_interval=int(checkpoint_interval),
            max_records=int(max_records),
            output_prefix=output_prefix,
            user=user or _user_from_url(start_url),
            expansion_backend=expansion_backend,
            expansion_timeout=float(expansion_timeout),
            expansion_poll_interval=float(expansion_poll_interval),
            expansion_max_retries=int(expansion_max_retries),
            seed=int(seed) if seed is not None else None,
        )
        # Validate arguments up front; output_dir is resolved once settings are available.
        self.config = HarvestConfig(**self._config_kwargs)
        self.harvester: Optional[FeedHarvester] = None

    @classmethod
    def from_crawler(cls, crawler, *args, **kwargs):  # type: ignore[override]
        spider = super().from_crawler(crawler, *args, **kwargs)
        output_dir = spider.output_dir or crawler.settings.get("HARVEST_OUTPUT_DIR", "data")
        spider.config = HarvestConfig(output_dir=output_dir, **spider._config_kwargs)
        return spider

    def start_requests(self) -> Iterable[Request]:  # type: ignore[override]
        yield Request(
            self.start_url,
            callback=self.parse_feed,
            errback=self._close_page_on_error,
            meta={
                "playwright": True,
                "playwright_include_page": True,
                "playwright_context": "default",
                "playwright_page_methods": [
                    PageMethod(
                        "wait_for_selector",
                        self.config.selectors.article,
                        timeout=self.settings.getint("PLAYWRIGHT_DEFAULT_NAVIGATION_TIMEOUT", 30000),
                    ),
                ],
            },
            dont_filter=True,
        )

    async def start(self):  # Scrapy 2.13+ async entrypoint
        for r in self.start_requests():
            yield r

    async def parse_feed(self, response: scrapy.http.Response):
        page = response.meta["playwright_page"]
        surface = PlaywrightSurface(page, self.config.selectors)
        self.harvester = FeedHarvester(
            surface,
            self.config,
            log=self.logger,
            should_stop=self._shutting_down,
        )
        self.logger.info(f"[FEED] harvesting url={response.url} user={self.config.user} out={self.config.output_dir}")
        try:
            await self.harvester.start()
        finally:
            await page.close()

    async def _close_page_on_error(self, failure):
        page = failure.request.meta.get("playwright_page")
        self.logger.error(f"[FEED] failed to open feed url={failure.request.url} err={failure.value!r}")
        if page is not None:
            await page.close()

    def _shutting_down(self) -> bool:
        crawler = getattr(self, "crawler", None)
        return crawler is not None and not crawler.crawling


def _user_from_url(url: str) -> str:
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[0] if segments else "unknown"
