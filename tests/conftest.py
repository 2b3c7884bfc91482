import datetime as dt
import threading

import pytest

from price_pipeline.config import PipelineConfig
from price_pipeline.db import PriceStore
from price_pipeline.models import PriceRecord, PriceSource

# Wednesday, inside the default 14:30-21:00 UTC session
MARKET_NOW = dt.datetime(2025, 3, 5, 15, 0, tzinfo=dt.timezone.utc)
# Saturday
WEEKEND_NOW = dt.datetime(2025, 3, 8, 15, 0, tzinfo=dt.timezone.utc)


class FakeSource:
    """Scripted quote source. Each call consumes one response; the last one repeats."""

    def __init__(self, *responses):
        self.responses = list(responses) or [{}]
        self.calls = []

    def __call__(self, tickers):
        self.calls.append(list(tickers))
        resp = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(resp, Exception):
            raise resp
        if callable(resp):
            return resp(tickers)
        return dict(resp)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class FakeFetcher:
    """Batch fetcher that prices every ticker at 100 and records the batches it saw."""

    def __init__(self, now=MARKET_NOW, gate=None):
        self.now = now
        self.batches = []
        self.gate = gate
        self.started = threading.Event()
        self.closed = False

    def fetch(self, tickers):
        self.batches.append(list(tickers))
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        return {
            t: PriceRecord(t, 100.0, 1.0, 1.0, self.now, PriceSource.PRIMARY)
            for t in tickers
        }

    def close(self):
        self.closed = True


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(db_path=str(tmp_path / "prices.sqlite"), batch_delay=0, retry_delay=0)


@pytest.fixture
def store(config):
    s = PriceStore(config.db_path)
    s.initialize()
    return s


def make_record(ticker, price, updated_at, source=PriceSource.PRIMARY, error=None):
    return PriceRecord(ticker, price, 0.5, 0.25, updated_at, source, error)
