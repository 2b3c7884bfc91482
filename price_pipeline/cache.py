import copy
import logging
import threading
from typing import Dict, Iterable, List, Optional

from .errors import CacheInitError, StoreError
from .models import CacheEntry, CachedPost

logger = logging.getLogger(__name__)


class ReadThroughCache:
    """
    In-memory mirror of the `stocks` table plus the most recent posts.

    - initialize: bounded paged load from the store, run once; concurrent callers wait for it
    - get_all / get_by_ticker / get_many: served from memory, never touch the store
    - upsert: replace by ticker or append
    - refresh: re-read given tickers from the store and upsert the results
    - get_posts / upsert_post / remove: the post mirror

    All reads hand out copies; the backing collections are only touched under the lock.
    """

    def __init__(self, store, page_size: int = 25, max_pages: int = 10):
        self.store = store
        self.page_size = page_size
        self.max_pages = max_pages
        self._lock = threading.RLock()
        self._stocks: List[CacheEntry] = []
        self._index: Dict[str, int] = {}
        self._posts: List[CachedPost] = []
        self._initialized = False
        self._init_done: Optional[threading.Event] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self):
        with self._lock:
            if self._initialized:
                return
            if self._init_done is not None:
                pending, owner = self._init_done, False
            else:
                self._init_done = pending = threading.Event()
                owner = True

        if not owner:
            pending.wait()
            if not self._initialized:
                raise CacheInitError("Cache initialization by another caller failed")
            return

        logger.info("Initializing server cache...")
        try:
            stocks = self._load_pages(self.store.fetch_price_page, "stocks")
            posts = self._load_pages(self.store.fetch_post_page, "posts")
        except Exception as e:
            # Release waiters and clear the marker so the next call retries.
            logger.error(f"Failed to initialize server cache: {e}", exc_info=not isinstance(e, StoreError))
            with self._lock:
                self._init_done = None
            pending.set()
            raise CacheInitError(str(e)) from e

        with self._lock:
            self._stocks = [CacheEntry.from_record(r) for r in stocks]
            self._reindex()
            self._posts = posts
            self._initialized = True
            self._init_done = None
        pending.set()
        logger.info(f"Server cache initialized with {len(posts)} posts and {len(stocks)} stocks")

    def _load_pages(self, fetch_page, label: str) -> list:
        items = []
        for page in range(self.max_pages):
            rows = fetch_page(page * self.page_size, self.page_size)
            if not rows:
                break
            items.extend(rows)
            logger.debug(f"Cached {len(rows)} {label} from page {page + 1}")
            if len(rows) < self.page_size:
                break
        logger.info(f"Total cached {label}: {len(items)}")
        return items

    def _reindex(self):
        self._index = {e.ticker.upper(): i for i, e in enumerate(self._stocks)}

    # Stocks

    def get_all(self) -> List[CacheEntry]:
        with self._lock:
            return [copy.copy(e) for e in self._stocks]

    def get_by_ticker(self, ticker: str) -> Optional[CacheEntry]:
        with self._lock:
            i = self._index.get(ticker.strip().upper())
            return copy.copy(self._stocks[i]) if i is not None else None

    def get_many(self, tickers: Iterable[str]) -> Dict[str, Optional[CacheEntry]]:
        with self._lock:
            return {t: self.get_by_ticker(t) for t in tickers}

    def upsert(self, entry: CacheEntry):
        entry = copy.copy(entry)
        with self._lock:
            i = self._index.get(entry.ticker.upper())
            if i is not None:
                self._stocks[i] = entry
            else:
                self._stocks.append(entry)
                self._index[entry.ticker.upper()] = len(self._stocks) - 1

    def refresh(self, tickers: Iterable[str]) -> List[CacheEntry]:
        tickers = [t.strip().upper() for t in tickers if t and t.strip()]
        if not tickers:
            return []
        logger.info(f"Refreshing stock data for tickers: {', '.join(tickers)}")
        try:
            records = self.store.fetch_prices(tickers)
        except StoreError as e:
            logger.error(f"Error refreshing stock data: {e}")
            return []
        if not records:
            logger.info(f"No stock data found for tickers: {', '.join(tickers)}")
            return []

        refreshed = []
        for record in records:
            entry = CacheEntry.from_record(record)
            self.upsert(entry)
            refreshed.append(copy.copy(entry))
        logger.info(f"Successfully refreshed {len(refreshed)} stocks in cache")
        return refreshed

    # Posts

    def get_posts(self) -> List[CachedPost]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._posts]

    def upsert_post(self, post: CachedPost):
        post = copy.deepcopy(post)
        with self._lock:
            for i, p in enumerate(self._posts):
                if p.id == post.id:
                    self._posts[i] = post
                    return
            # newest first
            self._posts.insert(0, post)

    def remove(self, post_id: int) -> bool:
        with self._lock:
            before = len(self._posts)
            self._posts = [p for p in self._posts if p.id != post_id]
            removed = len(self._posts) < before
            remaining = len(self._posts)
        logger.info(f"Post {post_id} {'removed' if removed else 'not found'}, cache now has {remaining} posts")
        return removed

    def stats(self) -> dict:
        with self._lock:
            return {
                "initialized": self._initialized,
                "stocks": len(self._stocks),
                "posts": len(self._posts),
            }
