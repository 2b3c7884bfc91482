"""
Stock price refresh pipeline: keeps a SQLite `stocks` table and an in-memory
read cache current for a fixed ticker universe.

Modules:
- config: PipelineConfig, every tunable with environment overrides
- universe: the tracked tickers (validated, de-duplicated)
- freshness: staleness and market-session rules (pure functions)
- models: PriceRecord, CacheEntry, CachedPost, Quote
- db: DB initialization, CRUD helpers and the PriceStore
- scraper: primary source, headless-browser scrape of the quote page (Playwright)
- downloader: fallback source, yfinance bulk download
- fetcher: retry/fallback/placeholder chain for one batch
- batch: one refresh pass (flag, market hours, lock, batches, upserts)
- cache: read-through cache of prices and posts
- scheduler: cron triggers (every 15 min in session + at open) on APScheduler
- data_service: facade wiring everything for the web app and CLI
"""
