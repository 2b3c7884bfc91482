"""
Retry and fallback chain for a batch of tickers.

The chain is a bounded loop over four states:

    ATTEMPT_PRIMARY -> (retry up to max_retries) -> FALLBACK -> PLACEHOLDER -> DONE

A primary attempt that yields at least one positive price ends the primary phase.
Whatever is still missing goes to the fallback source, and whatever the fallback
cannot resolve becomes a zero-price placeholder carrying the reason. Source
failures never escape `fetch`; the result always covers every requested ticker.
"""
import enum
import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

from .errors import SourceError
from .models import PriceRecord, PriceSource, Quote
from utils.helpers import DateHelper, ListHelper, ValidationHelper

logger = logging.getLogger(__name__)

QuoteSource = Callable[[Sequence[str]], Dict[str, Quote]]


class FetchState(enum.Enum):
    ATTEMPT_PRIMARY = "attempt_primary"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"
    DONE = "done"


class SourceFetcher:
    def __init__(
        self,
        primary: QuoteSource,
        fallback: Optional[QuoteSource] = None,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], object] = DateHelper.utc_now,
        resources: Sequence[object] = (),
    ):
        self.primary = primary
        self.fallback = fallback
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.clock = clock
        self._resources = list(resources)

    @classmethod
    def from_config(cls, config, sleep: Callable[[float], None] = time.sleep) -> "SourceFetcher":
        # Imported here so the fetcher can be built with fake sources without Playwright.
        from .downloader import download_quotes
        from .scraper import QuotePageScraper

        scraper = QuotePageScraper(
            config.quote_page_url,
            navigation_timeout=config.navigation_timeout,
            selector_timeout=config.selector_timeout,
        )

        def fallback(tickers):
            return download_quotes(tickers, timeout=config.fallback_timeout)

        return cls(
            primary=scraper.fetch,
            fallback=fallback,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            sleep=sleep,
            resources=[scraper],
        )

    @staticmethod
    def _call(source: QuoteSource, tickers: List[str], label: str) -> Dict[str, Quote]:
        try:
            return source(tickers) or {}
        except SourceError as e:
            logger.warning(f"{label} failed: {e}")
        except Exception as e:
            logger.error(f"{label} raised unexpectedly: {e}", exc_info=True)
        return {}

    def _stamp(self, quotes: Dict[str, Quote], tickers: List[str], source: PriceSource) -> Dict[str, PriceRecord]:
        now = self.clock()
        out = {}
        for t in tickers:
            q = quotes.get(t)
            if q is None or not ValidationHelper.is_positive_price(q.price):
                continue
            out[t] = PriceRecord(
                ticker=t,
                price=float(q.price),
                price_change=q.change,
                price_change_percent=q.change_percent,
                updated_at=now,
                source=source,
            )
        return out

    def fetch(self, tickers: Sequence[str]) -> Dict[str, PriceRecord]:
        requested = ListHelper.remove_duplicates_preserve_order(t.strip().upper() for t in tickers if t and t.strip())
        if not requested:
            return {}

        results: Dict[str, PriceRecord] = {}
        missing = list(requested)
        attempts = 0
        fallback_used = False
        state = FetchState.ATTEMPT_PRIMARY

        while state is not FetchState.DONE:
            if state is FetchState.ATTEMPT_PRIMARY:
                if attempts > 0:
                    logger.info(
                        f"Retrying primary source for {','.join(missing)} "
                        f"(retry {attempts}/{self.max_retries}) in {self.retry_delay}s"
                    )
                    self.sleep(self.retry_delay)
                else:
                    logger.info(f"Fetching data for: {','.join(missing)}")
                quotes = self._call(self.primary, missing, "Primary source")
                attempts += 1
                found = self._stamp(quotes, missing, PriceSource.PRIMARY)
                results.update(found)
                missing = [t for t in missing if t not in results]
                for t in missing:
                    logger.info(f"No valid data found for ticker: {t}")

                if found:
                    state = FetchState.FALLBACK if missing else FetchState.DONE
                elif attempts > self.max_retries:
                    logger.warning(f"Primary source gave no data after {attempts} attempts")
                    state = FetchState.FALLBACK
                else:
                    logger.info("No valid data found for any tickers in batch")

            elif state is FetchState.FALLBACK:
                if self.fallback is None:
                    state = FetchState.PLACEHOLDER
                    continue
                logger.info(f"Using fallback source for tickers: {','.join(missing)}")
                fallback_used = True
                quotes = self._call(self.fallback, missing, "Fallback source")
                results.update(self._stamp(quotes, missing, PriceSource.FALLBACK))
                missing = [t for t in missing if t not in results]
                state = FetchState.PLACEHOLDER if missing else FetchState.DONE

            elif state is FetchState.PLACEHOLDER:
                reason = f"No data from primary source after {attempts} attempt(s)"
                if fallback_used:
                    reason += " or fallback source"
                logger.warning(f"Creating placeholder data for {len(missing)} tickers: {','.join(missing)}")
                now = self.clock()
                for t in missing:
                    results[t] = PriceRecord.placeholder(t, reason, now)
                missing = []
                state = FetchState.DONE

        return {t: results[t] for t in requested}

    def close(self):
        for resource in self._resources:
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception as e:
                logger.warning(f"Error releasing {type(resource).__name__}: {e}")
