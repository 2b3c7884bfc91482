from utils.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from utils.helpers import ListHelper, ValidationHelper


class ValidationService:
    """
    Service for validating request data for the price API.
    - validate_toggle_payload: {"enable": bool}
    - validate_price_payload: {"ticker": str, "price": number, ...}
    - parse_tickers / parse_flag / parse_pagination: query string helpers
    Validators return an error message string if invalid, else None.
    """

    @staticmethod
    def validate_toggle_payload(payload):
        if not isinstance(payload, dict):
            return "invalid_request_body: expected a json object."
        if not isinstance(payload.get('enable'), bool):
            return 'invalid_request: "enable" must be a boolean.'
        return None

    @staticmethod
    def validate_price_payload(payload):
        """
        Validate a manual price update.

        Args:
            payload (dict): Parsed JSON body

        Returns:
            str or None: Error message if invalid, else None
        """
        if not isinstance(payload, dict):
            return "invalid_request_body: expected a json object."
        if not payload.get('ticker') or payload.get('price') is None:
            return "missing_required_fields (ticker or price)."
        if not ValidationHelper.is_valid_ticker(payload['ticker']):
            return f"invalid_ticker_symbol: {payload['ticker']}"
        for key in ('price', 'price_change', 'priceChange', 'price_change_percentage', 'priceChangePercentage'):
            value = payload.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return f"{key}_must_be_a_number."
        if payload['price'] < 0:
            return "price_must_not_be_negative."
        return None

    @staticmethod
    def parse_tickers(raw):
        """Split a comma separated query value into (valid tickers, rejected values)."""
        if not raw:
            return [], []
        valid, rejected = [], []
        for part in raw.split(','):
            t = part.strip().upper()
            if not t:
                continue
            if ValidationHelper.is_valid_ticker(t):
                valid.append(t)
            else:
                rejected.append(part.strip())
        return ListHelper.remove_duplicates_preserve_order(valid), rejected

    @staticmethod
    def parse_flag(raw):
        return str(raw or '').strip().lower() in ('1', 'true', 'yes')

    @staticmethod
    def parse_pagination(page_raw, size_raw):
        """Return (page, page_size, error)."""
        try:
            page = int(page_raw) if page_raw not in (None, '') else 1
            size = int(size_raw) if size_raw not in (None, '') else DEFAULT_PAGE_SIZE
        except (TypeError, ValueError):
            return None, None, "invalid_pagination: page and pageSize must be integers."
        if page < 1 or not (1 <= size <= MAX_PAGE_SIZE):
            return None, None, f"invalid_pagination: page >= 1 and 1 <= pageSize <= {MAX_PAGE_SIZE}."
        return page, size, None
