import logging
import threading
from typing import Optional

from .batch import BatchProcessor
from .cache import ReadThroughCache
from .config import PipelineConfig
from .db import PriceStore
from .fetcher import SourceFetcher
from .scheduler import UpdateScheduler

logger = logging.getLogger(__name__)


class PriceService:
    """
    Facade owning every piece of the price pipeline for one process.
    - initialize: warm the cache, then start the worker (once; retried after a failure)
    - cache / store / processor / scheduler: exposed for the HTTP layer and the CLI
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        store: Optional[PriceStore] = None,
        fetcher: Optional[SourceFetcher] = None,
        cache: Optional[ReadThroughCache] = None,
        processor: Optional[BatchProcessor] = None,
        scheduler: Optional[UpdateScheduler] = None,
    ):
        self.config = config or PipelineConfig.from_env()
        self.store = store or PriceStore(self.config.db_path)
        self.cache = cache or ReadThroughCache(
            self.store,
            page_size=self.config.cache_page_size,
            max_pages=self.config.cache_max_pages,
        )
        self.fetcher = fetcher or SourceFetcher.from_config(self.config)
        self.processor = processor or BatchProcessor(self.config, self.store, self.fetcher, cache=self.cache)
        self.scheduler = scheduler or UpdateScheduler(self.config, self.processor, fetcher=self.fetcher)
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, start_worker: bool = True):
        """
        Create the schema, warm the cache and start the worker.
        Concurrent callers block until the first one finishes; errors propagate and
        leave the service uninitialized so the next call retries.
        """
        with self._lock:
            if self._initialized:
                return
            logger.info("Initializing price service...")
            try:
                self.store.initialize()
                self.cache.initialize()
                if start_worker:
                    self.scheduler.start()
            except Exception as e:
                logger.error(f"Error during price service initialization: {e}")
                raise
            self._initialized = True
            logger.info("Price service initialization complete")

    def shutdown(self):
        """Stop the worker; a later initialize() starts it again."""
        self.scheduler.shutdown()
        self._initialized = False
