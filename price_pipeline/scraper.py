import logging
import re
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .errors import SourceError
from .models import Quote
from utils.constants import (
    BLOCKED_RESOURCE_TYPES,
    BROWSER_ARGS,
    BROWSER_USER_AGENT,
    QUOTE_FIELDS,
    QUOTE_SELECTOR,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"[^\d.\-]")

_EXTRACT_JS = (
    "els => els.map(e => [e.getAttribute('data-symbol'), e.getAttribute('data-field'), e.textContent])"
)


def _to_number(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    cleaned = _NUMBER_RE.sub("", text)
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_quote_fields(items: Iterable[Sequence[Optional[str]]]) -> Dict[str, Quote]:
    """
    Turn (symbol, field, text) triples scraped from the quote page into one Quote per symbol.
    Unknown fields are ignored; unparsable numbers become None.
    """
    fields: Dict[str, Dict[str, Optional[float]]] = {}
    for item in items:
        if len(item) < 3:
            continue
        symbol, field, text = item[0], item[1], item[2]
        if not symbol:
            continue
        symbol = symbol.strip().upper()
        bucket = fields.setdefault(symbol, {"price": None, "change": None, "change_percent": None})
        key = QUOTE_FIELDS.get(field or "")
        if key is None:
            continue
        value = _to_number(text)
        # Pages may repeat a symbol's streamer in headers and tables; first parsable value wins.
        if bucket[key] is None:
            bucket[key] = value
    return {s: Quote(**v) for s, v in fields.items()}


class QuotePageScraper:
    """
    Primary quote source: renders the multi-symbol quote page in headless Chromium.

    The browser is launched lazily and shared across calls; if it disconnects the
    handle is dropped and the next call launches a new one. Every call opens its own
    context and page, which are always closed before returning. Playwright's sync API
    is bound to the thread that started it, so one scraper must only be used from a
    single thread.
    """

    def __init__(
        self,
        url_template: str,
        navigation_timeout: float = 60.0,
        selector_timeout: float = 30.0,
    ):
        self.url_template = url_template
        self.navigation_timeout_ms = int(navigation_timeout * 1000)
        self.selector_timeout_ms = int(selector_timeout * 1000)
        self._playwright = None
        self._browser = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def _on_disconnected(self, browser):
        logger.info("Browser instance disconnected")
        if self._browser is browser:
            self._browser = None

    def _get_browser(self):
        if self._browser is not None and self._browser.is_connected():
            return self._browser
        logger.info("Launching new browser instance for price worker")
        if self._playwright is None:
            self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=True,
            args=BROWSER_ARGS,
            timeout=self.navigation_timeout_ms,
        )
        self._browser.on("disconnected", self._on_disconnected)
        return self._browser

    @staticmethod
    def _route_handler(route):
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            route.abort()
        else:
            route.continue_()

    def scrape(self, tickers: Sequence[str]) -> List[Tuple[Optional[str], Optional[str], Optional[str]]]:
        url = self.url_template.format(symbols=",".join(tickers))
        with self._lock:
            context = None
            try:
                browser = self._get_browser()
                context = browser.new_context(user_agent=BROWSER_USER_AGENT)
                page = context.new_page()
                page.set_default_navigation_timeout(self.navigation_timeout_ms)
                page.route("**/*", self._route_handler)
                page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
                page.wait_for_selector(QUOTE_SELECTOR, timeout=self.selector_timeout_ms)
                return page.eval_on_selector_all(QUOTE_SELECTOR, _EXTRACT_JS)
            except PlaywrightError as e:
                raise SourceError(f"Quote page scrape failed for {','.join(tickers)}: {e}") from e
            finally:
                if context is not None:
                    try:
                        context.close()
                    except PlaywrightError as e:
                        logger.debug(f"Ignoring error while closing browser context: {e}")

    def fetch(self, tickers: Sequence[str]) -> Dict[str, Quote]:
        """Scrape the page and return parsed quotes for the requested tickers only."""
        quotes = parse_quote_fields(self.scrape(tickers))
        wanted = set(tickers)
        return {t: q for t, q in quotes.items() if t in wanted}

    def close(self):
        with self._lock:
            if self._browser is not None:
                logger.info("Closing browser instance during cleanup")
                try:
                    self._browser.close()
                except PlaywrightError as e:
                    logger.warning(f"Error closing browser: {e}")
                self._browser = None
            if self._playwright is not None:
                try:
                    self._playwright.stop()
                except PlaywrightError as e:
                    logger.warning(f"Error stopping playwright: {e}")
                self._playwright = None
