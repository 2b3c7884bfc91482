#!/usr/bin/env python3
"""Small CLI to run one price refresh pass against the pipeline DB.

Usage: python scripts/refresh_prices.py [TICKER ...] [--force]

--force ignores the enabled flag and market hours (the run lock still applies).
"""
import os
import sys
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from price_pipeline.batch import BatchProcessor
from price_pipeline.config import PipelineConfig
from price_pipeline.db import PriceStore
from price_pipeline.fetcher import SourceFetcher

logging.basicConfig(level=logging.INFO)

def main():
    load_dotenv()
    args = sys.argv[1:]
    force = '--force' in args
    tickers = [a.upper() for a in args if not a.startswith('--')]

    config = PipelineConfig.from_env()
    store = PriceStore(config.db_path)
    store.initialize()
    fetcher = SourceFetcher.from_config(config)
    processor = BatchProcessor(config, store, fetcher)
    try:
        summary = processor.run(tickers=tickers or None, force=force)
    finally:
        fetcher.close()

    if summary is None:
        print("Run skipped (see log for the reason)")
        sys.exit(1)
    print(
        f"stale={summary.stale} valid={summary.valid} batches={summary.batches} "
        f"written={summary.written} placeholders={summary.placeholders} failed_batches={summary.failed_batches}"
    )

if __name__ == '__main__':
    main()
