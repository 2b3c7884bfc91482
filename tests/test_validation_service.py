from services.validation_service import ValidationService


def test_toggle_payload():
    assert ValidationService.validate_toggle_payload({'enable': True}) is None
    assert ValidationService.validate_toggle_payload({'enable': False}) is None
    assert 'enable' in ValidationService.validate_toggle_payload({'enable': 'true'})
    assert 'enable' in ValidationService.validate_toggle_payload({'enable': 1})
    assert 'invalid_request_body' in ValidationService.validate_toggle_payload(None)


def test_price_payload_passes_valid_data():
    payload = {'ticker': 'AAPL', 'price': 190.5, 'price_change': 1.0, 'priceChangePercentage': 0.5}
    assert ValidationService.validate_price_payload(payload) is None


def test_price_payload_requires_ticker_and_price():
    assert 'missing_required_fields' in ValidationService.validate_price_payload({'ticker': 'AAPL'})
    assert 'missing_required_fields' in ValidationService.validate_price_payload({'price': 1.0})


def test_price_payload_rejects_bad_values():
    assert 'invalid_ticker_symbol' in ValidationService.validate_price_payload({'ticker': 'TOO-LONG-TICKER', 'price': 1})
    assert 'price_must_be_a_number' in ValidationService.validate_price_payload({'ticker': 'AAPL', 'price': True})
    assert 'price_change_must_be_a_number' in ValidationService.validate_price_payload(
        {'ticker': 'AAPL', 'price': 1, 'price_change': '1.0'}
    )
    assert 'price_must_not_be_negative' in ValidationService.validate_price_payload({'ticker': 'AAPL', 'price': -0.01})


def test_parse_tickers():
    assert ValidationService.parse_tickers('aapl, TSLA,,aapl') == (['AAPL', 'TSLA'], [])
    assert ValidationService.parse_tickers('AAPL,$$') == (['AAPL'], ['$$'])
    assert ValidationService.parse_tickers('') == ([], [])
    assert ValidationService.parse_tickers('BRK-B,^GSPC') == (['BRK-B', '^GSPC'], [])


def test_parse_flag():
    assert ValidationService.parse_flag('true') is True
    assert ValidationService.parse_flag('1') is True
    assert ValidationService.parse_flag('false') is False
    assert ValidationService.parse_flag(None) is False


def test_parse_pagination():
    assert ValidationService.parse_pagination(None, None) == (1, 20, None)
    assert ValidationService.parse_pagination('3', '50') == (3, 50, None)
    assert ValidationService.parse_pagination('x', '10')[2].startswith('invalid_pagination')
    assert ValidationService.parse_pagination('1', '0')[2].startswith('invalid_pagination')
    assert ValidationService.parse_pagination('1', '1000')[2].startswith('invalid_pagination')
