import datetime as dt
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DB_PATH = os.environ.get("MARKET_DB_PATH", os.path.join(os.getcwd(), "market_data.sqlite"))

QUOTE_PAGE_URL = "https://finance.yahoo.com/quotes/{symbols}/"


def _parse_clock(name: str, value: str) -> dt.time:
    try:
        hour, minute = value.strip().split(":")
        return dt.time(int(hour), int(minute))
    except ValueError:
        raise ValueError(f"{name} must look like HH:MM, got {value!r}")


def _parse_days(name: str, value: str) -> Tuple[int, ...]:
    try:
        days = tuple(sorted({int(d) for d in value.split(",") if d.strip()}))
    except ValueError:
        raise ValueError(f"{name} must be a comma separated list of weekday numbers, got {value!r}")
    if not days or any(d < 0 or d > 6 for d in days):
        raise ValueError(f"{name} weekdays must be between 0 (Mon) and 6 (Sun), got {value!r}")
    return days


def _parse_int(name: str, value: str, minimum: int = 0, maximum: Optional[int] = None) -> int:
    try:
        out = int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if out < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {out}")
    if maximum is not None and out > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {out}")
    return out


def _parse_float(name: str, value: str) -> float:
    try:
        out = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
    if out < 0:
        raise ValueError(f"{name} must not be negative, got {out}")
    return out


def _parse_bool(name: str, value: str) -> bool:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Tunables for the price refresh pipeline.
    Defaults target US equities: 14:30-21:00 UTC, Monday to Friday.
    """
    market_open: dt.time = dt.time(14, 30)
    market_close: dt.time = dt.time(21, 0)
    trading_days: Tuple[int, ...] = (0, 1, 2, 3, 4)
    stale_after: dt.timedelta = dt.timedelta(minutes=15)
    batch_size: int = 10
    batch_delay: float = 1.0
    max_retries: int = 3
    retry_delay: float = 5.0
    update_interval_minutes: int = 15
    navigation_timeout: float = 60.0
    selector_timeout: float = 30.0
    fallback_timeout: float = 30.0
    cache_page_size: int = 25
    cache_max_pages: int = 10
    quote_page_url: str = QUOTE_PAGE_URL
    db_path: str = field(default_factory=lambda: DB_PATH)
    updates_enabled: bool = True
    extra_tickers: Tuple[str, ...] = ()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ
        kwargs = {}

        def get(name):
            value = env.get(name)
            if value is None or not value.strip():
                return None
            return value

        if get("PRICE_MARKET_OPEN"):
            kwargs["market_open"] = _parse_clock("PRICE_MARKET_OPEN", env["PRICE_MARKET_OPEN"])
        if get("PRICE_MARKET_CLOSE"):
            kwargs["market_close"] = _parse_clock("PRICE_MARKET_CLOSE", env["PRICE_MARKET_CLOSE"])
        if get("PRICE_TRADING_DAYS"):
            kwargs["trading_days"] = _parse_days("PRICE_TRADING_DAYS", env["PRICE_TRADING_DAYS"])
        if get("PRICE_STALE_MINUTES"):
            kwargs["stale_after"] = dt.timedelta(
                minutes=_parse_int("PRICE_STALE_MINUTES", env["PRICE_STALE_MINUTES"], minimum=1)
            )
        if get("PRICE_BATCH_SIZE"):
            kwargs["batch_size"] = _parse_int("PRICE_BATCH_SIZE", env["PRICE_BATCH_SIZE"], minimum=1)
        if get("PRICE_BATCH_DELAY"):
            kwargs["batch_delay"] = _parse_float("PRICE_BATCH_DELAY", env["PRICE_BATCH_DELAY"])
        if get("PRICE_MAX_RETRIES"):
            kwargs["max_retries"] = _parse_int("PRICE_MAX_RETRIES", env["PRICE_MAX_RETRIES"])
        if get("PRICE_RETRY_DELAY"):
            kwargs["retry_delay"] = _parse_float("PRICE_RETRY_DELAY", env["PRICE_RETRY_DELAY"])
        if get("PRICE_UPDATE_INTERVAL_MINUTES"):
            kwargs["update_interval_minutes"] = _parse_int(
                "PRICE_UPDATE_INTERVAL_MINUTES", env["PRICE_UPDATE_INTERVAL_MINUTES"], minimum=1, maximum=59
            )
        if get("PRICE_NAVIGATION_TIMEOUT"):
            kwargs["navigation_timeout"] = _parse_float("PRICE_NAVIGATION_TIMEOUT", env["PRICE_NAVIGATION_TIMEOUT"])
        if get("PRICE_SELECTOR_TIMEOUT"):
            kwargs["selector_timeout"] = _parse_float("PRICE_SELECTOR_TIMEOUT", env["PRICE_SELECTOR_TIMEOUT"])
        if get("PRICE_FALLBACK_TIMEOUT"):
            kwargs["fallback_timeout"] = _parse_float("PRICE_FALLBACK_TIMEOUT", env["PRICE_FALLBACK_TIMEOUT"])
        if get("PRICE_CACHE_PAGE_SIZE"):
            kwargs["cache_page_size"] = _parse_int("PRICE_CACHE_PAGE_SIZE", env["PRICE_CACHE_PAGE_SIZE"], minimum=1)
        if get("PRICE_CACHE_MAX_PAGES"):
            kwargs["cache_max_pages"] = _parse_int("PRICE_CACHE_MAX_PAGES", env["PRICE_CACHE_MAX_PAGES"], minimum=1)
        if get("PRICE_QUOTE_PAGE_URL"):
            kwargs["quote_page_url"] = env["PRICE_QUOTE_PAGE_URL"].strip()
        if get("MARKET_DB_PATH"):
            kwargs["db_path"] = env["MARKET_DB_PATH"].strip()
        if get("PRICE_UPDATES_ENABLED"):
            kwargs["updates_enabled"] = _parse_bool("PRICE_UPDATES_ENABLED", env["PRICE_UPDATES_ENABLED"])
        if get("PRICE_EXTRA_TICKERS"):
            kwargs["extra_tickers"] = tuple(
                t.strip().upper() for t in env["PRICE_EXTRA_TICKERS"].split(",") if t.strip()
            )

        config = cls(**kwargs)
        if config.market_close <= config.market_open:
            raise ValueError(
                f"PRICE_MARKET_CLOSE ({config.market_close}) must be after PRICE_MARKET_OPEN ({config.market_open})"
            )
        return config
