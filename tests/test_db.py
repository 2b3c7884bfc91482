import datetime as dt

import pytest
from conftest import MARKET_NOW, make_record

from price_pipeline import db as dbmod
from price_pipeline.db import PriceStore
from price_pipeline.errors import StoreError
from price_pipeline.models import CachedPost, PriceRecord, PriceSource


def test_upsert_is_keyed_by_ticker(store):
    store.upsert_prices([make_record('AAPL', 190.0, MARKET_NOW - dt.timedelta(minutes=30))])
    store.upsert_prices([make_record('AAPL', 191.0, MARKET_NOW)])

    assert store.count_prices() == 1
    record = store.fetch_prices(['AAPL'])[0]
    assert record.price == 191.0
    assert record.updated_at == MARKET_NOW
    assert record.source is PriceSource.PRIMARY


def test_placeholder_round_trip_keeps_error(store):
    store.upsert_prices([PriceRecord.placeholder('TSLA', 'Failed to fetch after 3 retries', MARKET_NOW)])

    record = store.fetch_prices(['TSLA'])[0]

    assert record.price == 0
    assert record.is_placeholder
    assert record.source is PriceSource.PLACEHOLDER
    assert record.error == 'Failed to fetch after 3 retries'


def test_successful_upsert_clears_previous_error(store):
    store.upsert_prices([PriceRecord.placeholder('TSLA', 'timeout', MARKET_NOW)])
    store.upsert_prices([make_record('TSLA', 250.0, MARKET_NOW)])

    assert store.fetch_prices(['TSLA'])[0].error is None


def test_null_changes_are_none(store):
    store.upsert_prices([PriceRecord('SPY', 510.0, None, None, MARKET_NOW, PriceSource.FALLBACK)])

    record = store.fetch_prices(['SPY'])[0]

    assert record.price_change is None
    assert record.price_change_percent is None
    assert record.source is PriceSource.FALLBACK


def test_last_updated_only_for_known_tickers(store):
    store.upsert_prices([make_record('AAPL', 190.0, MARKET_NOW)])
    assert store.last_updated(['AAPL', 'MSFT']) == {'AAPL': MARKET_NOW}
    assert store.last_updated([]) == {}


def test_price_pages_are_sorted(store):
    store.upsert_prices([make_record(t, 1.0, MARKET_NOW) for t in ('TSLA', 'AAPL', 'MSFT')])
    assert [r.ticker for r in store.fetch_price_page(0, 2)] == ['AAPL', 'MSFT']
    assert [r.ticker for r in store.fetch_price_page(2, 2)] == ['TSLA']


def test_posts_round_trip(store):
    store.upsert_post(CachedPost(id=7, user_id='u1', content='$AAPL $TSLA', likes_count=3,
                                 tickers=['AAPL', 'TSLA'], created_at=MARKET_NOW))
    store.upsert_post(CachedPost(id=7, user_id='u1', content='edited', likes_count=4,
                                 tickers=['AAPL', 'TSLA'], created_at=MARKET_NOW))

    posts = store.fetch_post_page(0, 10)

    assert store.count_posts() == 1
    assert posts[0].content == 'edited'
    assert posts[0].likes_count == 4
    assert posts[0].tickers == ['AAPL', 'TSLA']
    assert posts[0].created_at == MARKET_NOW


def test_upsert_many_updates_non_key_columns(config, store):
    dbmod.upsert_many('stocks', ['ticker', 'price', 'updated_at'], [('QQQ', 1.0, MARKET_NOW.isoformat())],
                      db_path=config.db_path)
    dbmod.upsert_many('stocks', ['ticker', 'price', 'updated_at'], [('QQQ', 2.0, MARKET_NOW.isoformat())],
                      db_path=config.db_path)

    df = dbmod.fetch_df('SELECT ticker, price FROM stocks WHERE ticker=?', ('QQQ',), db_path=config.db_path)
    assert df.to_dict('records') == [{'ticker': 'QQQ', 'price': 2.0}]


def test_store_errors_are_wrapped(tmp_path):
    # a directory is not a database file
    broken = PriceStore(str(tmp_path))
    with pytest.raises(StoreError):
        broken.last_updated(['AAPL'])
    with pytest.raises(StoreError):
        broken.upsert_prices([make_record('AAPL', 1.0, MARKET_NOW)])


def test_missing_table_is_a_store_error(tmp_path):
    store = PriceStore(str(tmp_path / 'empty.sqlite'))
    with pytest.raises(StoreError):
        store.fetch_prices(['AAPL'])
