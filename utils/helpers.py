"""General utility helper functions"""

import datetime as dt
import math
import re
from typing import List, Any, Iterable, Optional

class DateHelper:
    """Helper functions for timestamp operations"""

    @staticmethod
    def utc_now():
        """Current time as an aware UTC datetime"""
        return dt.datetime.now(dt.timezone.utc)

    @staticmethod
    def as_utc(value):
        """Treat naive datetimes as UTC and convert aware ones to UTC"""
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)

    @staticmethod
    def parse_timestamp(value) -> Optional[dt.datetime]:
        """Parse an ISO-8601 string (a trailing Z is accepted) into an aware UTC datetime"""
        if value is None:
            return None
        if isinstance(value, dt.datetime):
            return DateHelper.as_utc(value)
        text = str(value).strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return DateHelper.as_utc(dt.datetime.fromisoformat(text))
        except ValueError:
            return None

    @staticmethod
    def to_iso(value):
        if value is None:
            return None
        return DateHelper.as_utc(value).isoformat()

class ListHelper:
    """Helper functions for list operations"""
    
    @staticmethod
    def remove_duplicates_preserve_order(items: Iterable[Any]) -> List[Any]:
        """Remove duplicates from list while preserving order"""
        seen = set()
        result = []
        for item in items:
            if item not in seen:
                result.append(item)
                seen.add(item)
        return result

    @staticmethod
    def chunk(items: List[Any], size: int) -> List[List[Any]]:
        """Split items into consecutive chunks of at most `size` elements"""
        if size < 1:
            raise ValueError(f"chunk size must be positive, got {size}")
        return [items[i:i + size] for i in range(0, len(items), size)]

class ValidationHelper:
    """Helper functions for validation"""

    _TICKER_RE = re.compile(r'^\^?[A-Z0-9][A-Z0-9.\-=]*$')
    
    @staticmethod
    def is_valid_ticker(ticker):
        """Basic ticker validation"""
        if not ticker or not isinstance(ticker, str):
            return False
        t = ticker.strip().upper()
        return 0 < len(t) <= 10 and bool(ValidationHelper._TICKER_RE.match(t))

    @staticmethod
    def is_positive_price(value):
        """True for finite numbers greater than zero"""
        try:
            num_value = float(value)
        except (ValueError, TypeError):
            return False
        return math.isfinite(num_value) and num_value > 0
