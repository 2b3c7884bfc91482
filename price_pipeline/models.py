import datetime as dt
import enum
from dataclasses import dataclass, field
from typing import List, Optional

from utils.helpers import DateHelper


class PriceSource(str, enum.Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    PLACEHOLDER = "placeholder"


@dataclass
class PriceRecord:
    """
    One row of the `stocks` table.
    price == 0 marks a placeholder ("no real data yet") and always carries an error.
    """
    ticker: str
    price: float
    price_change: Optional[float]
    price_change_percent: Optional[float]
    updated_at: dt.datetime
    source: PriceSource = PriceSource.PRIMARY
    error: Optional[str] = None

    @classmethod
    def placeholder(cls, ticker: str, reason: str, now: dt.datetime) -> "PriceRecord":
        return cls(
            ticker=ticker,
            price=0.0,
            price_change=0.0,
            price_change_percent=0.0,
            updated_at=now,
            source=PriceSource.PLACEHOLDER,
            error=reason,
        )

    @property
    def is_placeholder(self) -> bool:
        return self.price == 0


@dataclass
class CacheEntry:
    ticker: str
    price: float
    price_change: Optional[float]
    price_change_percent: Optional[float]
    updated_at: Optional[dt.datetime]

    @classmethod
    def from_record(cls, record: PriceRecord) -> "CacheEntry":
        return cls(
            ticker=record.ticker,
            price=record.price,
            price_change=record.price_change,
            price_change_percent=record.price_change_percent,
            updated_at=record.updated_at,
        )

    @property
    def available(self) -> bool:
        return self.price is not None and self.price > 0

    def to_dict(self) -> dict:
        return {
            "ticker": self.ticker,
            "price": self.price,
            "price_change": self.price_change,
            "price_change_percentage": self.price_change_percent,
            "updated_at": DateHelper.to_iso(self.updated_at),
            "available": self.available,
        }


@dataclass
class CachedPost:
    id: int
    user_id: str
    content: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    likes_count: int = 0
    comments_count: int = 0
    tickers: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "created_at": DateHelper.to_iso(self.created_at),
            "updated_at": DateHelper.to_iso(self.updated_at),
            "likes_count": self.likes_count,
            "comments_count": self.comments_count,
            "tickers": list(self.tickers),
        }


@dataclass(frozen=True)
class Quote:
    """Raw quote fields as read from a source, before a record is stamped."""
    price: Optional[float]
    change: Optional[float] = None
    change_percent: Optional[float] = None
