"""
Staleness and market-hours rules.

Every function takes the current time as a parameter; nothing here reads the clock.
Naive datetimes are interpreted as UTC. Exchange holidays are not modelled.
"""
import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Tuple

from utils.constants import WEEKDAY_NAMES
from utils.helpers import DateHelper

STALE_AFTER = dt.timedelta(minutes=15)


@dataclass(frozen=True)
class MarketSession:
    open: dt.time = dt.time(14, 30)
    close: dt.time = dt.time(21, 0)
    trading_days: Tuple[int, ...] = (0, 1, 2, 3, 4)

    @classmethod
    def from_config(cls, config) -> "MarketSession":
        return cls(open=config.market_open, close=config.market_close, trading_days=tuple(config.trading_days))

    def in_session(self, now: dt.datetime) -> bool:
        now = DateHelper.as_utc(now)
        if now.weekday() not in self.trading_days:
            return False
        return self.open <= now.time().replace(tzinfo=None) < self.close


def is_stale(last_updated_at: Optional[dt.datetime], now: dt.datetime, stale_after: dt.timedelta = STALE_AFTER) -> bool:
    """A record is stale when it has never been written or is at least `stale_after` old."""
    if last_updated_at is None:
        return True
    return DateHelper.as_utc(now) - DateHelper.as_utc(last_updated_at) >= stale_after


def partition_by_freshness(
    tickers: Iterable[str],
    last_updated: Mapping[str, dt.datetime],
    now: dt.datetime,
    stale_after: dt.timedelta = STALE_AFTER,
) -> Tuple[List[str], List[str]]:
    """Split tickers into (stale, valid), keeping input order."""
    stale, valid = [], []
    for t in tickers:
        if is_stale(last_updated.get(t), now, stale_after):
            stale.append(t)
        else:
            valid.append(t)
    return stale, valid


def is_market_open(now: dt.datetime, session: MarketSession = MarketSession()) -> bool:
    return session.in_session(now)


def market_closed_reason(now: dt.datetime, session: MarketSession = MarketSession()) -> Optional[str]:
    """Human readable reason the market is closed at `now`, or None while it is open."""
    now = DateHelper.as_utc(now)
    if now.weekday() not in session.trading_days:
        return f"not a trading day ({WEEKDAY_NAMES[now.weekday()]})"
    t = now.time().replace(tzinfo=None)
    if t < session.open:
        return f"before market open ({session.open.strftime('%H:%M')} UTC)"
    if t >= session.close:
        return f"after market close ({session.close.strftime('%H:%M')} UTC)"
    return None


def minutes_since(last_updated_at: dt.datetime, now: dt.datetime) -> int:
    delta = DateHelper.as_utc(now) - DateHelper.as_utc(last_updated_at)
    return int(delta.total_seconds() // 60)
