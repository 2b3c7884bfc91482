import logging
import math
from typing import Dict, Sequence

import pandas as pd
import yfinance as yf

from .errors import SourceError
from .models import Quote

logger = logging.getLogger(__name__)


def _download_yf(tickers: Sequence[str], timeout: float) -> pd.DataFrame:
    # A few daily bars are enough to get today's price and the previous close.
    df = yf.download(
        list(tickers),
        period="5d",
        interval="1d",
        group_by="ticker",
        progress=False,
        auto_adjust=False,
        threads=False,
        timeout=timeout,
    )
    if df is None or df.empty:
        return pd.DataFrame()
    return df


def _closes_for(df: pd.DataFrame, ticker: str) -> pd.Series:
    if isinstance(df.columns, pd.MultiIndex):
        if ticker not in df.columns.get_level_values(0):
            return pd.Series(dtype=float)
        frame = df[ticker]
    else:
        frame = df
    if "Close" not in frame.columns:
        return pd.Series(dtype=float)
    return pd.to_numeric(frame["Close"], errors="coerce").dropna()


def quote_from_closes(closes: pd.Series):
    """Last close is the price; change is measured against the close before it."""
    if closes.empty:
        return None
    price = float(closes.iloc[-1])
    if not math.isfinite(price) or price <= 0:
        return None
    change = None
    change_percent = None
    if len(closes) >= 2:
        prev = float(closes.iloc[-2])
        if math.isfinite(prev) and prev > 0:
            change = round(price - prev, 4)
            change_percent = round((price - prev) / prev * 100, 4)
    return Quote(price=round(price, 4), change=change, change_percent=change_percent)


def download_quotes(tickers: Sequence[str], timeout: float = 30.0) -> Dict[str, Quote]:
    """
    Bulk quote lookup through yfinance.
    Tickers without a positive close are left out of the result.
    Raises SourceError if the download itself fails or returns nothing.
    """
    if not tickers:
        return {}
    try:
        df = _download_yf(tickers, timeout)
    except Exception as e:
        raise SourceError(f"Bulk quote download failed for {','.join(tickers)}: {e}") from e
    if df.empty:
        raise SourceError(f"Bulk quote download returned no data for {','.join(tickers)}")
    if not isinstance(df.columns, pd.MultiIndex) and len(tickers) > 1:
        raise SourceError("Bulk quote download returned a single-ticker frame for a multi-ticker request")

    out = {}
    for t in tickers:
        quote = quote_from_closes(_closes_for(df, t))
        if quote is None:
            logger.info(f"Ticker {t} not found in fallback download")
            continue
        out[t] = quote
    return out
