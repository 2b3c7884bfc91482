import datetime as dt
import threading
from types import SimpleNamespace

from conftest import MARKET_NOW, FakeFetcher, RecordingSleep

from price_pipeline.batch import BatchProcessor
from price_pipeline.config import PipelineConfig
from price_pipeline.data_service import PriceService
from price_pipeline.freshness import MarketSession
from price_pipeline.scheduler import (
    MARKET_OPEN_JOB_ID,
    REGULAR_JOB_ID,
    UpdateScheduler,
    session_cron_fields,
)

UTC = dt.timezone.utc


class FakeApScheduler:
    def __init__(self):
        self.jobs = []
        self.running = False

    def add_job(self, func, trigger, id, **kwargs):
        self.jobs.append(SimpleNamespace(id=id, func=func, trigger=trigger, kwargs=kwargs))

    def get_jobs(self):
        return list(self.jobs)

    def start(self):
        self.running = True

    def remove_all_jobs(self):
        self.jobs = []

    def shutdown(self, wait=True):
        self.running = False


class FakeProcessor:
    def __init__(self, gate=None):
        self.enabled = True
        self.gate = gate
        self.threads = []
        self.started = threading.Event()

    def set_enabled(self, enabled):
        self.enabled = enabled

    def run(self):
        self.threads.append(threading.current_thread().name)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        return "ran"


def make_scheduler(processor=None, now=MARKET_NOW, fetcher=None, config=None):
    config = config or PipelineConfig()
    processor = processor or FakeProcessor()
    aps = FakeApScheduler()
    sched = UpdateScheduler(config, processor, fetcher=fetcher, clock=lambda: now, scheduler=aps)
    return sched, processor, aps


def test_cron_fields_for_default_session():
    fields = session_cron_fields(MarketSession(), 15)
    assert fields == {"day_of_week": "mon,tue,wed,thu,fri", "hour": "14-20", "minute": "*/15"}


def test_cron_fields_when_close_is_not_on_the_hour():
    session = MarketSession(open=dt.time(9, 0), close=dt.time(15, 30), trading_days=(0, 2))
    assert session_cron_fields(session, 5) == {"day_of_week": "mon,wed", "hour": "9-15", "minute": "*/5"}


def test_start_registers_both_triggers_and_runs_once():
    sched, processor, aps = make_scheduler()

    future = sched.start()

    assert future.result(5) == "ran"
    assert sorted(sched.job_ids) == sorted([REGULAR_JOB_ID, MARKET_OPEN_JOB_ID])
    assert aps.running is True
    assert len(processor.threads) == 1
    # starting twice does not register again
    assert sched.start() is None
    assert len(aps.jobs) == 2
    sched.shutdown()


def test_trigger_fire_times():
    sched, _, aps = make_scheduler()
    sched.start().result(5)
    triggers = {job.id: job.trigger for job in aps.jobs}

    wednesday = dt.datetime(2025, 3, 5, 14, 31, tzinfo=UTC)
    nxt = triggers[REGULAR_JOB_ID].get_next_fire_time(None, wednesday)
    assert nxt == dt.datetime(2025, 3, 5, 14, 45, tzinfo=UTC)

    after_close = dt.datetime(2025, 3, 7, 20, 50, tzinfo=UTC)
    nxt = triggers[REGULAR_JOB_ID].get_next_fire_time(None, after_close)
    assert nxt == dt.datetime(2025, 3, 10, 14, 0, tzinfo=UTC)

    nxt = triggers[MARKET_OPEN_JOB_ID].get_next_fire_time(None, wednesday)
    assert nxt == dt.datetime(2025, 3, 6, 14, 30, tzinfo=UTC)
    sched.shutdown()


def test_regular_tick_checks_session_predicate():
    early = dt.datetime(2025, 3, 5, 14, 15, tzinfo=UTC)
    sched, processor, _ = make_scheduler(now=early)
    assert sched._regular_tick() is None
    assert processor.threads == []

    sched.clock = lambda: MARKET_NOW
    assert sched._regular_tick().result(5) == "ran"
    sched.shutdown()


def test_ticks_recheck_flag_every_time():
    sched, processor, _ = make_scheduler()
    sched.set_enabled(False)
    assert sched.is_enabled() is False
    assert sched._regular_tick() is None
    assert sched._market_open_tick() is None
    assert processor.threads == []

    sched.set_enabled(True)
    assert sched._market_open_tick().result(5) == "ran"
    sched.shutdown()


def test_firing_while_run_in_flight_is_dropped():
    gate = threading.Event()
    sched, processor, _ = make_scheduler(processor=FakeProcessor(gate=gate))

    first = sched.trigger_now()
    assert processor.started.wait(5)
    assert sched._regular_tick() is None
    assert sched._market_open_tick() is None

    gate.set()
    assert first.result(5) == "ran"
    assert len(processor.threads) == 1
    sched.shutdown()


def test_runs_and_cleanup_share_one_worker_thread():
    closed_on = []
    done = threading.Event()

    class Fetcher:
        def close(self):
            closed_on.append(threading.current_thread().name)
            done.set()

    sched, processor, aps = make_scheduler(fetcher=Fetcher())
    sched.start().result(5)
    sched.trigger_now().result(5)

    sched.shutdown()

    assert done.wait(5)
    assert aps.jobs == []
    assert aps.running is False
    assert len(set(processor.threads)) == 1
    assert closed_on == processor.threads[:1]
    # shutting down twice is harmless
    sched.shutdown()


def test_disabled_tick_causes_no_fetch_or_store_activity(config, store):
    fetcher = FakeFetcher()
    processor = BatchProcessor(config, store, fetcher, universe=["AAPL"],
                               clock=lambda: MARKET_NOW, sleep=RecordingSleep())
    sched, _, _ = make_scheduler(processor=processor, config=config)

    sched.set_enabled(False)
    assert sched.is_enabled() is False
    assert sched._regular_tick() is None

    assert fetcher.batches == []
    assert store.last_updated(["AAPL"]) == {}
    sched.shutdown()


def test_restart_after_shutdown_uses_a_fresh_worker():
    closed = threading.Semaphore(0)

    class Fetcher:
        def close(self):
            closed.release()

    sched, processor, aps = make_scheduler(fetcher=Fetcher())
    sched.start().result(5)
    sched.shutdown()
    assert closed.acquire(timeout=5)

    future = sched.start()

    assert future.result(5) == "ran"
    assert sorted(sched.job_ids) == sorted([REGULAR_JOB_ID, MARKET_OPEN_JOB_ID])
    assert aps.running is True
    assert len(processor.threads) == 2
    sched.shutdown()
    assert closed.acquire(timeout=5)


def test_price_service_can_initialize_again_after_shutdown(config, store):
    processor = FakeProcessor()
    sched, _, aps = make_scheduler(processor=processor, fetcher=FakeFetcher(), config=config)
    service = PriceService(config=config, store=store, fetcher=FakeFetcher(), processor=processor, scheduler=sched)

    service.initialize()
    assert processor.started.wait(5)
    service.shutdown()
    assert service.is_initialized is False
    assert aps.running is False

    processor.started.clear()
    service.initialize()

    assert service.is_initialized is True
    assert aps.running is True
    assert processor.started.wait(5)
    service.shutdown()
