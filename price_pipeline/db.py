import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .config import DB_PATH
from .errors import StoreError
from .models import CachedPost, PriceRecord, PriceSource
from utils.helpers import DateHelper

logger = logging.getLogger(__name__)

STOCK_COLUMNS = [
    "ticker",
    "price",
    "price_change",
    "price_change_percentage",
    "updated_at",
    "fetch_error",
    "source",
]

POST_COLUMNS = [
    "id",
    "user_id",
    "content",
    "username",
    "avatar_url",
    "created_at",
    "updated_at",
    "likes_count",
    "comments_count",
    "tickers",
]


def init_db(db_path: Optional[str] = None):
    path = db_path or DB_PATH
    Path(os.path.dirname(os.path.abspath(path))).mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        cur = conn.cursor()
        # Latest quote per ticker
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS stocks (
                ticker TEXT PRIMARY KEY,
                price REAL NOT NULL DEFAULT 0,
                price_change REAL,
                price_change_percentage REAL,
                updated_at TEXT NOT NULL,
                fetch_error TEXT,
                source TEXT DEFAULT 'primary'
            )
            """
        )
        # Feed posts mirrored by the read cache
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                content TEXT NOT NULL,
                username TEXT,
                avatar_url TEXT,
                created_at TEXT,
                updated_at TEXT,
                likes_count INTEGER DEFAULT 0,
                comments_count INTEGER DEFAULT 0,
                tickers TEXT -- comma separated
            )
            """
        )
        conn.commit()


@contextmanager
def get_conn(db_path: Optional[str] = None):
    path = db_path or DB_PATH
    conn = sqlite3.connect(path)
    try:
        yield conn
    finally:
        conn.close()


def upsert_many(
    table: str,
    columns: Iterable[str],
    rows: Iterable[Iterable],
    key_columns: Sequence[str] = ("ticker",),
    db_path: Optional[str] = None,
):
    cols = list(columns)
    placeholders = ",".join(["?"] * len(cols))
    updates = ",".join([f"{c}=excluded.{c}" for c in cols if c not in key_columns])
    sql = (
        f"INSERT INTO {table} ({','.join(cols)}) VALUES ({placeholders}) "
        f"ON CONFLICT({','.join(key_columns)}) DO UPDATE SET {updates}"
    )
    with get_conn(db_path) as conn:
        conn.executemany(sql, rows)
        conn.commit()


def fetch_df(query: str, params: tuple = (), db_path: Optional[str] = None) -> pd.DataFrame:
    with get_conn(db_path) as conn:
        return pd.read_sql_query(query, conn, params=params)


def _num(value) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def _text(value) -> Optional[str]:
    return None if value is None or pd.isna(value) else str(value)


def _row_to_record(r: dict) -> PriceRecord:
    try:
        source = PriceSource(r.get("source") or PriceSource.PRIMARY.value)
    except ValueError:
        source = PriceSource.PRIMARY
    return PriceRecord(
        ticker=r["ticker"],
        price=_num(r.get("price")) or 0.0,
        price_change=_num(r.get("price_change")),
        price_change_percent=_num(r.get("price_change_percentage")),
        updated_at=DateHelper.parse_timestamp(r.get("updated_at")),
        source=source,
        error=_text(r.get("fetch_error")),
    )


def _row_to_post(r: dict) -> CachedPost:
    tickers = _text(r.get("tickers"))
    return CachedPost(
        id=int(r["id"]),
        user_id=str(r["user_id"]),
        content=str(r["content"]),
        username=_text(r.get("username")),
        avatar_url=_text(r.get("avatar_url")),
        created_at=DateHelper.parse_timestamp(r.get("created_at")),
        updated_at=DateHelper.parse_timestamp(r.get("updated_at")),
        likes_count=int(_num(r.get("likes_count")) or 0),
        comments_count=int(_num(r.get("comments_count")) or 0),
        tickers=[t for t in tickers.split(",") if t] if tickers else [],
    )


class PriceStore:
    """
    SQLite-backed store keyed by ticker.
    Every failure is raised as StoreError so callers decide whether to retry or give up.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DB_PATH

    def initialize(self):
        try:
            init_db(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize store at {self.db_path}: {e}") from e

    def _query(self, query: str, params: tuple = ()) -> List[dict]:
        try:
            df = fetch_df(query, params, db_path=self.db_path)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise StoreError(f"Store query failed: {e}") from e
        return df.to_dict("records")

    def last_updated(self, tickers: Sequence[str]) -> Dict[str, object]:
        """Map ticker -> updated_at for the tickers that have a row."""
        if not tickers:
            return {}
        marks = ",".join(["?"] * len(tickers))
        rows = self._query(f"SELECT ticker, updated_at FROM stocks WHERE ticker IN ({marks})", tuple(tickers))
        out = {}
        for r in rows:
            ts = DateHelper.parse_timestamp(r.get("updated_at"))
            if ts is not None:
                out[r["ticker"]] = ts
        return out

    def upsert_prices(self, records: Iterable[PriceRecord]) -> int:
        rows = [
            (
                rec.ticker,
                float(rec.price or 0),
                rec.price_change,
                rec.price_change_percent,
                DateHelper.to_iso(rec.updated_at),
                rec.error,
                rec.source.value,
            )
            for rec in records
        ]
        if not rows:
            return 0
        try:
            upsert_many("stocks", STOCK_COLUMNS, rows, key_columns=("ticker",), db_path=self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert {len(rows)} stocks: {e}") from e
        return len(rows)

    def fetch_prices(self, tickers: Sequence[str]) -> List[PriceRecord]:
        if not tickers:
            return []
        marks = ",".join(["?"] * len(tickers))
        rows = self._query(f"SELECT * FROM stocks WHERE ticker IN ({marks})", tuple(tickers))
        return [_row_to_record(r) for r in rows]

    def fetch_price_page(self, offset: int, limit: int) -> List[PriceRecord]:
        rows = self._query("SELECT * FROM stocks ORDER BY ticker LIMIT ? OFFSET ?", (limit, offset))
        return [_row_to_record(r) for r in rows]

    def count_prices(self) -> int:
        rows = self._query("SELECT COUNT(*) AS n FROM stocks")
        return int(rows[0]["n"]) if rows else 0

    def upsert_post(self, post: CachedPost):
        row = (
            post.id,
            post.user_id,
            post.content,
            post.username,
            post.avatar_url,
            DateHelper.to_iso(post.created_at),
            DateHelper.to_iso(post.updated_at),
            post.likes_count,
            post.comments_count,
            ",".join(post.tickers),
        )
        try:
            upsert_many("posts", POST_COLUMNS, [row], key_columns=("id",), db_path=self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert post {post.id}: {e}") from e

    def fetch_post_page(self, offset: int, limit: int) -> List[CachedPost]:
        rows = self._query(
            "SELECT * FROM posts ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?", (limit, offset)
        )
        return [_row_to_post(r) for r in rows]

    def count_posts(self) -> int:
        rows = self._query("SELECT COUNT(*) AS n FROM posts")
        return int(rows[0]["n"]) if rows else 0
