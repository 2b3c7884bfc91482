import logging
import math

from price_pipeline.freshness import is_stale
from price_pipeline.models import CacheEntry, PriceRecord, PriceSource
from utils.helpers import DateHelper

logger = logging.getLogger(__name__)


def not_available(ticker):
    """Response entry for a ticker the pipeline has no real price for yet."""
    return {
        'ticker': ticker,
        'price': None,
        'price_change': None,
        'price_change_percentage': None,
        'updated_at': None,
        'available': False,
    }


class StockService:
    """
    Serves price reads from the read-through cache.
    - get_prices: one entry per requested ticker, refreshing stale or missing ones from the store
    - list_prices: sorted, paginated view of everything cached
    - save_price: manual write-through update (store first, then cache)
    - list_posts: paginated view of the post mirror
    """

    def __init__(self, cache, store, config, universe=None, clock=DateHelper.utc_now):
        self.cache = cache
        self.store = store
        self.config = config
        self.universe = list(universe or [])
        self.clock = clock

    def _needs_refresh(self, entry, now):
        return entry is None or is_stale(entry.updated_at, now, self.config.stale_after)

    def get_prices(self, tickers, refresh=False):
        now = self.clock()
        cached = self.cache.get_many(tickers)
        to_refresh = [t for t in tickers if refresh or self._needs_refresh(cached[t], now)]
        if to_refresh:
            for entry in self.cache.refresh(to_refresh):
                cached[entry.ticker] = entry

        out = []
        for t in tickers:
            entry = cached.get(t)
            out.append(entry.to_dict() if entry is not None and entry.available else not_available(t))
        return out

    def get_price(self, ticker, refresh=False):
        return self.get_prices([ticker], refresh=refresh)[0]

    def list_prices(self, page, page_size, refresh=False):
        if refresh:
            known = {e.ticker for e in self.cache.get_all()}
            self.cache.refresh(sorted(known.union(self.universe)))
        entries = sorted(self.cache.get_all(), key=lambda e: e.ticker)
        start = (page - 1) * page_size
        return {
            'data': [e.to_dict() for e in entries[start:start + page_size]],
            'pagination': {
                'page': page,
                'pageSize': page_size,
                'total': len(entries),
                'totalPages': math.ceil(len(entries) / page_size) if entries else 0,
            },
        }

    def save_price(self, payload):
        record = PriceRecord(
            ticker=payload['ticker'].strip().upper(),
            price=float(payload['price']),
            price_change=payload.get('price_change', payload.get('priceChange')),
            price_change_percent=payload.get('price_change_percentage', payload.get('priceChangePercentage')),
            updated_at=self.clock(),
            source=PriceSource.PRIMARY,
        )
        if record.price == 0:
            record.source = PriceSource.PLACEHOLDER
            record.error = 'Manual update without a price'
        self.store.upsert_prices([record])
        entry = CacheEntry.from_record(record)
        self.cache.upsert(entry)
        logger.info(f"Manual price update for {record.ticker}: {record.price}")
        return entry.to_dict()

    def list_posts(self, page, page_size):
        posts = self.cache.get_posts()
        start = (page - 1) * page_size
        return {
            'data': [p.to_dict() for p in posts[start:start + page_size]],
            'pagination': {
                'page': page,
                'pageSize': page_size,
                'total': len(posts),
                'totalPages': math.ceil(len(posts) / page_size) if posts else 0,
            },
        }
