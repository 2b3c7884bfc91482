import logging
from typing import Iterable, List, Optional

from utils.constants import TOP_STOCKS_AND_ETFS
from utils.helpers import ListHelper, ValidationHelper

logger = logging.getLogger(__name__)


def load_universe(extra: Optional[Iterable[str]] = None) -> List[str]:
    """Return the tracked tickers: upper-cased, validated, de-duplicated, in list order."""
    candidates = [t.strip().upper() for t in TOP_STOCKS_AND_ETFS]
    if extra:
        candidates.extend(t.strip().upper() for t in extra)

    tickers = []
    for t in ListHelper.remove_duplicates_preserve_order(candidates):
        if not ValidationHelper.is_valid_ticker(t):
            logger.warning(f"Dropping invalid ticker from universe: {t!r}")
            continue
        tickers.append(t)
    return tickers
