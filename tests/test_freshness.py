import datetime as dt

from price_pipeline.freshness import (
    MarketSession,
    is_market_open,
    is_stale,
    market_closed_reason,
    partition_by_freshness,
)

NOW = dt.datetime(2025, 3, 5, 15, 0, tzinfo=dt.timezone.utc)
FIFTEEN = dt.timedelta(minutes=15)


def test_never_seen_ticker_is_stale():
    assert is_stale(None, NOW) is True


def test_recent_update_is_fresh():
    for minutes in (0, 1, 7, 14):
        assert is_stale(NOW - dt.timedelta(minutes=minutes), NOW) is False
    assert is_stale(NOW - FIFTEEN + dt.timedelta(seconds=1), NOW) is False


def test_boundary_is_stale():
    assert is_stale(NOW - FIFTEEN, NOW) is True


def test_old_update_is_stale():
    assert is_stale(NOW - FIFTEEN - dt.timedelta(seconds=1), NOW) is True
    assert is_stale(NOW - dt.timedelta(days=3), NOW) is True


def test_custom_threshold():
    assert is_stale(NOW - dt.timedelta(minutes=3), NOW, stale_after=dt.timedelta(minutes=2)) is True
    assert is_stale(NOW - dt.timedelta(minutes=3), NOW, stale_after=dt.timedelta(minutes=5)) is False


def test_naive_datetimes_are_utc():
    naive_now = NOW.replace(tzinfo=None)
    assert is_stale(naive_now - dt.timedelta(minutes=5), NOW) is False
    assert is_stale(NOW - dt.timedelta(minutes=5), naive_now) is False


def test_partition_keeps_order():
    last = {
        "AAPL": NOW - dt.timedelta(minutes=2),
        "TSLA": NOW - dt.timedelta(minutes=30),
    }
    stale, valid = partition_by_freshness(["MSFT", "AAPL", "TSLA", "SPY"], last, NOW)
    assert stale == ["MSFT", "TSLA", "SPY"]
    assert valid == ["AAPL"]


def test_weekend_is_closed_at_any_time():
    saturday = dt.datetime(2025, 3, 8, tzinfo=dt.timezone.utc)
    sunday = dt.datetime(2025, 3, 9, tzinfo=dt.timezone.utc)
    for day in (saturday, sunday):
        for hour in range(24):
            for minute in (0, 30, 59):
                assert is_market_open(day.replace(hour=hour, minute=minute)) is False


def test_weekday_session_window():
    wednesday = dt.datetime(2025, 3, 5, tzinfo=dt.timezone.utc)
    assert is_market_open(wednesday.replace(hour=14, minute=29)) is False
    assert is_market_open(wednesday.replace(hour=14, minute=30)) is True
    assert is_market_open(wednesday.replace(hour=20, minute=59)) is True
    assert is_market_open(wednesday.replace(hour=21, minute=0)) is False


def test_aware_times_are_converted_to_utc():
    eastern = dt.timezone(dt.timedelta(hours=-5))
    # 10:00 at UTC-5 is 15:00 UTC
    assert is_market_open(dt.datetime(2025, 3, 5, 10, 0, tzinfo=eastern)) is True
    # 09:00 at UTC-5 is 14:00 UTC
    assert is_market_open(dt.datetime(2025, 3, 5, 9, 0, tzinfo=eastern)) is False


def test_custom_session():
    session = MarketSession(open=dt.time(1, 0), close=dt.time(7, 0), trading_days=(5,))
    assert is_market_open(dt.datetime(2025, 3, 8, 2, 0), session) is True
    assert is_market_open(dt.datetime(2025, 3, 5, 2, 0), session) is False


def test_market_closed_reason():
    assert market_closed_reason(NOW) is None
    assert "not a trading day" in market_closed_reason(dt.datetime(2025, 3, 9, 15, 0))
    assert market_closed_reason(NOW.replace(hour=9)) == "before market open (14:30 UTC)"
    assert market_closed_reason(NOW.replace(hour=22)) == "after market close (21:00 UTC)"
