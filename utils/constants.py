"""Application constants and configuration"""

# Top stocks and ETFs tracked by the price worker.
# The list is kept verbatim; duplicates are removed by price_pipeline.universe.
TOP_STOCKS_AND_ETFS = [
    "AAPL", "MSFT", "AMZN", "NVDA", "GOOGL", "GOOG", "META", "TSLA", "BRK-B", "LLY",
    "V", "JPM", "UNH", "XOM", "MA", "AVGO", "PG", "HD", "CVX", "MRK",
    "ORCL", "COST", "CRM", "ABBV", "KO", "PEP", "TMO", "ACN", "WMT", "JNJ",
    "DIS", "PFE", "ADBE", "LIN", "BAC", "CMCSA", "TXN", "NEE", "UPS", "AMD",
    "LOW", "MCD", "PM", "HON", "IBM", "DHR", "SCHD", "COP", "NKE", "INTC",
    "CAT", "VZ", "TMUS", "AMGN", "BA", "SPY", "QQQ", "IWM", "DIA", "VTI",
    "VOO", "XLK", "XLE", "XLF", "XLV", "XLY", "XLP", "XLI", "XLB", "XLRE",
    "XLU", "VNQ", "IYR", "EEM", "VEA", "AGG", "TLT", "GLD", "SLV", "USO",
    "GDX", "ARKG", "ARKK", "SOXL", "TQQQ", "UPRO", "UDOW", "FNGU", "TECL", "LABU",
    "WEBL", "REMX", "CURE", "SMH", "XBI", "IBB", "MJ", "TAN", "PBW", "ICLN",
    "LIT", "KWEB", "FXI", "EWZ", "EWY", "EWC", "EWA", "EWG", "EWH", "EWI",
    "EWJ", "EWL", "EWM", "EWN", "EWO", "EWP", "EWQ", "EWS", "EWT",
    "EWU", "EWW", "EWX", "EWY", "EWZ", "VTV", "VUG", "VIG", "VYM", "VEU",
    "VXUS", "BND", "BSV", "IEF", "LQD", "HYG", "JNK", "SHV", "BIL", "SPAB",
    "MUB", "TIP", "DBC", "GSG", "PDBC", "UNG", "URA", "WOOD", "HURA", "REM",
    "PALL", "SILJ", "GDXJ", "XOP", "OIH", "KRE", "PKW", "ITA", "XAR", "DFEN",
    "PPA", "ROBO", "IHAK", "SNSR", "CLOU", "SKYY", "FDN", "XT", "SOCL", "HERO",
    "ESPO", "ARKW", "ARKQ", "ARKF", "PRNT", "IZRL", "HAIL", "DRIV", "ACES", "QCLN",
    "FAN", "CNRG", "SMOG", "GRID", "LIT", "COPX", "REMX", "SIL", "SLVP", "PPLT",
    "SIVR", "GLDM", "IAU", "PHYS", "PSLV", "SGOL", "DBE", "CRBN", "GRN", "SUSL",
    "ESGU", "VEGN", "CTEC", "YOLO", "MSOS", "TOKE", "CNBS", "MJUS", "KARS", "EVX",
    "FIVG", "ONLN", "IBUY", "FINX", "ARKX", "MOON", "BLOK", "LEGR", "BFIT", "GENE"
]

# Browser settings for the quote page scraper
BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--disable-gpu',
    '--no-first-run',
    '--no-zygote',
    '--disable-extensions',
]
BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
BLOCKED_RESOURCE_TYPES = {'image', 'stylesheet', 'font', 'media'}

# Quote page markup
QUOTE_SELECTOR = 'fin-streamer[data-symbol]'
QUOTE_FIELDS = {
    'regularMarketPrice': 'price',
    'regularMarketChange': 'change',
    'regularMarketChangePercent': 'change_percent',
}

# Weekday names used when building cron expressions
WEEKDAY_NAMES = ['mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun']

# Pagination defaults for the read API
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 250
