import os

BOT_NAME = "feedharvest"

SPIDER_MODULES = ["feedharvest.spiders"]
NEWSPIDER_MODULE = "feedharvest.spiders"

ROBOTSTXT_OBEY = False

# one page stays open for the whole run; scroll pacing lives in HarvestConfig
CONCURRENT_REQUESTS = 1
DOWNLOAD_DELAY = 0

# every request is rendered by a real browser
DOWNLOAD_HANDLERS = {
    "http": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
    "https": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
}
TWISTED_REACTOR = "twisted.internet.asyncioreactor.AsyncioSelectorReactor"

PLAYWRIGHT_BROWSER_TYPE = os.getenv("BROWSER", "chromium")

# HEADLESS=0 shows the browser window (useful when logging in by hand)
_headless = os.getenv("HEADLESS", "1").lower() in ("1", "true", "yes")

# Fixed page size; the feed lays out the same way on every run.
_viewport = {
    "width": int(os.getenv("VIEWPORT_WIDTH", "1366")),
    "height": int(os.getenv("VIEWPORT_HEIGHT", "900")),
}

# Empty USER_AGENT keeps the browser's own
_user_agent = os.getenv("USER_AGENT", "")

PLAYWRIGHT_LAUNCH_OPTIONS = {
    "headless": _headless,
    "args": ["--disable-dev-shm-usage"],
}

_default_context = {
    "viewport": _viewport,
    "locale": os.getenv("LOCALE", "en-US"),
}
if _user_agent:
    _default_context["user_agent"] = _user_agent

# Signed-in session exported with `playwright codegen --save-storage=...`
_storage_state = os.getenv("STORAGE_STATE", "")
if _storage_state and os.path.exists(_storage_state):
    _default_context["storage_state"] = _storage_state

PLAYWRIGHT_CONTEXTS = {"default": _default_context}

DEFAULT_REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
if _user_agent:
    DEFAULT_REQUEST_HEADERS["User-Agent"] = _user_agent

PLAYWRIGHT_DEFAULT_NAVIGATION_TIMEOUT = int(os.getenv("NAV_TIMEOUT_MS", "30000"))

# Checkpoint files land here unless the spider gets -a output_dir=...
HARVEST_OUTPUT_DIR = os.getenv("OUTPUT_DIR", "data")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
