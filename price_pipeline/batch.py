import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .errors import StoreError
from .freshness import MarketSession, market_closed_reason, minutes_since, partition_by_freshness
from .models import CacheEntry
from .universe import load_universe
from utils.helpers import DateHelper, ListHelper

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    stale: int = 0
    valid: int = 0
    batches: int = 0
    written: int = 0
    placeholders: int = 0
    failed_batches: int = 0


class BatchProcessor:
    """
    One refresh pass over the ticker universe.

    run() is a no-op when updates are disabled, when the market is closed, or when
    another run still holds the lock. Stale tickers are fetched batch by batch,
    sequentially, and each batch is upserted in one call.
    """

    def __init__(
        self,
        config,
        store,
        fetcher,
        cache=None,
        universe: Optional[Sequence[str]] = None,
        clock: Callable[[], object] = DateHelper.utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.cache = cache
        self.universe = list(universe) if universe is not None else load_universe(config.extra_tickers)
        self.session = MarketSession.from_config(config)
        self.clock = clock
        self.sleep = sleep
        self._enabled = threading.Event()
        if config.updates_enabled:
            self._enabled.set()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled.is_set()

    def set_enabled(self, enabled: bool):
        previous = self.enabled
        if enabled:
            self._enabled.set()
        else:
            self._enabled.clear()
        logger.info(
            f"Stock updates {'enabled' if enabled else 'disabled'} "
            f"(previous state: {'enabled' if previous else 'disabled'})"
        )

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, tickers: Optional[Sequence[str]] = None, force: bool = False) -> Optional[RunSummary]:
        """
        Refresh stale prices. Returns a RunSummary, or None when the run was skipped
        or abandoned. `force` bypasses the enabled flag and the market-hours gate,
        never the lock.
        """
        if not force:
            if not self.enabled:
                logger.info("Stock updates skipped: feature flag is disabled")
                return None
            reason = market_closed_reason(self.clock(), self.session)
            if reason is not None:
                logger.info(f"Stock updates skipped: market is closed ({reason})")
                return None

        if not self._lock.acquire(blocking=False):
            logger.info("Stock update job is already running, skipping this execution")
            return None
        try:
            logger.info("Starting stock market data update job")
            return self._process(list(tickers) if tickers else self.universe)
        except Exception as e:
            logger.error(f"Error in stock update job: {e}", exc_info=True)
            return None
        finally:
            self._lock.release()
            logger.info("Stock update job completed, lock released")

    def _process(self, tickers: List[str]) -> Optional[RunSummary]:
        summary = RunSummary()
        if not tickers:
            logger.warning("No tickers to update, skipping stock update")
            return summary
        logger.info(f"Loaded {len(tickers)} tickers")

        try:
            last_updated = self.store.last_updated(tickers)
        except StoreError as e:
            logger.error(f"Could not read current stock timestamps, abandoning run: {e}")
            return None

        now = self.clock()
        stale, valid = partition_by_freshness(tickers, last_updated, now, self.config.stale_after)
        summary.stale, summary.valid = len(stale), len(valid)

        for t in stale:
            if t in last_updated:
                logger.debug(f"Ticker {t} expired - last updated {minutes_since(last_updated[t], now)} minutes ago")
            else:
                logger.debug(f"Ticker {t} not found in database, will fetch")
        if valid:
            logger.info(f"Skipping {len(valid)} valid tickers: {', '.join(valid)}")
        if not stale:
            logger.info("All tickers are still valid, no updates needed")
            return summary

        batches = ListHelper.chunk(stale, self.config.batch_size)
        summary.batches = len(batches)
        logger.info(f"Processing {len(stale)} expired tickers in batches of {self.config.batch_size}")

        for i, batch in enumerate(batches, 1):
            logger.info(f"Processing batch {i}/{len(batches)}: {', '.join(batch)}")
            self._process_batch(batch, summary)
            if i < len(batches):
                logger.debug(f"Waiting {self.config.batch_delay}s before next batch...")
                self.sleep(self.config.batch_delay)

        logger.info(
            f"Completed batch stock update: {summary.written} written "
            f"({summary.placeholders} placeholders), {summary.failed_batches} failed batches"
        )
        return summary

    def _process_batch(self, batch: List[str], summary: RunSummary):
        records = list(self.fetcher.fetch(batch).values())
        try:
            written = self.store.upsert_prices(records)
        except StoreError as e:
            logger.error(f"Error saving stocks to database, batch abandoned: {e}")
            summary.failed_batches += 1
            return

        placeholders = sum(1 for r in records if r.is_placeholder)
        summary.written += written
        summary.placeholders += placeholders
        if placeholders:
            logger.info(f"Saved {written} stocks to database (including {placeholders} placeholders for failed fetches)")
        else:
            logger.info(f"Successfully saved {written} stocks to database")

        if self.cache is not None:
            for r in records:
                self.cache.upsert(CacheEntry.from_record(r))
