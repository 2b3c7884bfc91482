import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .freshness import MarketSession
from utils.constants import WEEKDAY_NAMES
from utils.helpers import DateHelper

logger = logging.getLogger(__name__)

REGULAR_JOB_ID = "regular_price_update"
MARKET_OPEN_JOB_ID = "market_open_price_update"


def session_cron_fields(session: MarketSession, interval_minutes: int) -> dict:
    """Cron fields covering every hour that overlaps the session on trading days."""
    last_hour = session.close.hour if session.close.minute else session.close.hour - 1
    return {
        "day_of_week": ",".join(WEEKDAY_NAMES[d] for d in session.trading_days),
        "hour": f"{session.open.hour}-{last_hour}" if last_hour > session.open.hour else str(session.open.hour),
        "minute": f"*/{interval_minutes}",
    }


class UpdateScheduler:
    """
    Drives the batch processor on a cron cadence.

    Two triggers are registered: every N minutes across session hours, and once at
    session open. The cron window is coarser than the session (e.g. 14:00-20:59 for
    a 14:30 open), so every firing re-checks the enabled flag and the session
    predicate. Runs execute on one dedicated worker thread so the browser handle
    held by the fetcher never changes threads; a firing while a run is pending or
    in flight is dropped.
    """

    def __init__(
        self,
        config,
        processor,
        fetcher=None,
        clock: Callable[[], object] = DateHelper.utc_now,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.config = config
        self.processor = processor
        self.fetcher = fetcher
        self.clock = clock
        self.session = MarketSession.from_config(config)
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._worker = self._new_worker()
        self._dispatch_lock = threading.Lock()
        self._pending: Optional[Future] = None
        self._started = False
        self._closed = False

    @staticmethod
    def _new_worker() -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=1, thread_name_prefix="price-worker")

    def is_enabled(self) -> bool:
        return self.processor.enabled

    def set_enabled(self, enabled: bool):
        self.processor.set_enabled(enabled)

    @property
    def job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def _dispatch(self, label: str) -> Optional[Future]:
        with self._dispatch_lock:
            if self._pending is not None and not self._pending.done():
                logger.info(f"{label}: previous stock update still running, skipping")
                return None
            self._pending = self._worker.submit(self.processor.run)
            return self._pending

    def _regular_tick(self) -> Optional[Future]:
        if not self.is_enabled():
            logger.info("Stock updates are disabled via feature flag, skipping scheduled update")
            return None
        now = self.clock()
        if not self.session.in_session(now):
            logger.info(f"Outside market hours at {DateHelper.to_iso(now)}, skipping scheduled update")
            return None
        logger.info(f"Cron triggered stock update at {DateHelper.to_iso(now)}")
        return self._dispatch("Scheduled update")

    def _market_open_tick(self) -> Optional[Future]:
        if not self.is_enabled():
            logger.info("Stock updates are disabled via feature flag, skipping market open update")
            return None
        logger.info("Market open time reached, running stock update")
        return self._dispatch("Market open update")

    def trigger_now(self) -> Optional[Future]:
        return self._dispatch("Manual update")

    def start(self) -> Optional[Future]:
        """Register both triggers, start the scheduler and kick off one run immediately."""
        if self._started:
            return None
        if self._closed:
            # A previous shutdown released the worker thread and the browser.
            self._worker = self._new_worker()
            if self._owns_scheduler:
                self.scheduler = BackgroundScheduler(timezone="UTC")
            self._closed = False
        fields = session_cron_fields(self.session, self.config.update_interval_minutes)
        self.scheduler.add_job(
            self._regular_tick,
            CronTrigger(timezone="UTC", **fields),
            id=REGULAR_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._market_open_tick,
            CronTrigger(
                day_of_week=fields["day_of_week"],
                hour=self.session.open.hour,
                minute=self.session.open.minute,
                timezone="UTC",
            ),
            id=MARKET_OPEN_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self._started = True

        logger.info(
            f"Stock worker scheduled: every {self.config.update_interval_minutes} minutes on "
            f"{fields['day_of_week']} during {self.session.open.strftime('%H:%M')}-"
            f"{self.session.close.strftime('%H:%M')} UTC, plus once at market open"
        )
        return self._dispatch("Startup update")

    def shutdown(self):
        """
        Cancel future firings. A run already in flight is not interrupted; the
        fetcher's resources are released on the worker thread once it finishes.
        start() may be called again afterwards with a fresh worker thread.
        """
        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
            logger.info("Stopped scheduled stock update jobs")
        self._started = False
        if self._closed:
            return
        self._closed = True
        if self.fetcher is not None:
            self._worker.submit(self.fetcher.close)
        self._worker.shutdown(wait=False)
