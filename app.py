from flask import Flask, request, jsonify
import logging
import os
from dotenv import load_dotenv
load_dotenv()  # 加载.env文件


from services.stock_service import StockService
from services.validation_service import ValidationService
from price_pipeline.data_service import PriceService
from price_pipeline.errors import PipelineError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(price_service=None, initialize=True):
    """
    Build the Flask app around one PriceService.
    With initialize=True the cache is warmed and the worker started right away;
    a failure is logged and retried lazily by the read endpoints.
    """
    app = Flask(__name__)
    service = price_service or PriceService()
    stocks = StockService(service.cache, service.store, service.config, universe=service.processor.universe)
    app.extensions['price_service'] = service

    if initialize:
        try:
            service.initialize()
        except Exception as e:
            logger.warning(f"Price service init failed: {e}")

    def not_initialized():
        return jsonify({'error': 'Server not initialized yet'}), 503

    def ensure_cache():
        """Read endpoints initialize on demand, as the worker may have failed at startup."""
        if service.is_initialized:
            return True
        try:
            service.initialize()
            return True
        except Exception as e:
            logger.error(f"Failed to initialize price service during request: {e}")
        try:
            service.cache.initialize()
            return True
        except PipelineError as e:
            logger.error(f"Failed to initialize cache during request: {e}")
            return False

    @app.route('/api/stock-updates/status', methods=['GET'])
    def stock_updates_status():
        """
        Feature flag status.
        Response: {"enabled": true/false}
        """
        if not service.is_initialized:
            return not_initialized()
        return jsonify({'enabled': service.scheduler.is_enabled()})

    @app.route('/api/stock-updates/toggle', methods=['POST'])
    def stock_updates_toggle():
        """
        Enable or disable the background price worker.
        Request: JSON {"enable": true}
        Response: {"success": true, "enabled": true}
        """
        if not service.is_initialized:
            return not_initialized()
        try:
            payload = request.get_json(silent=True)
            validation_error = ValidationService.validate_toggle_payload(payload)
            if validation_error:
                return jsonify({'error': validation_error}), 400

            service.scheduler.set_enabled(payload['enable'])
            return jsonify({'success': True, 'enabled': service.scheduler.is_enabled()})

        except Exception as e:
            logger.error(f"Error updating stock updates status: {e}", exc_info=True)
            return jsonify({'error': 'Failed to update stock updates status'}), 500

    @app.route('/api/prices', methods=['GET'])
    def get_prices():
        """
        Cached prices.
        ?ticker=AAPL          -> {"data": {...}}
        ?tickers=AAPL,TSLA    -> {"data": [{...}, {...}]}
        ?page=1&pageSize=20   -> {"data": [...], "pagination": {...}}
        ?refresh=true         -> re-read from the store before answering
        """
        if not ensure_cache():
            return not_initialized()
        try:
            refresh = ValidationService.parse_flag(request.args.get('refresh'))
            ticker = request.args.get('ticker')
            tickers_raw = request.args.get('tickers')

            if ticker:
                tickers, rejected = ValidationService.parse_tickers(ticker)
                if rejected or len(tickers) != 1:
                    return jsonify({'error': f'invalid_ticker_symbol: {ticker}'}), 400
                return jsonify({'data': stocks.get_price(tickers[0], refresh=refresh)})

            if tickers_raw is not None:
                tickers, rejected = ValidationService.parse_tickers(tickers_raw)
                if rejected:
                    return jsonify({'error': f"invalid_ticker_symbol: {', '.join(rejected)}"}), 400
                return jsonify({'data': stocks.get_prices(tickers, refresh=refresh)})

            page, page_size, validation_error = ValidationService.parse_pagination(
                request.args.get('page'), request.args.get('pageSize')
            )
            if validation_error:
                return jsonify({'error': validation_error}), 400
            return jsonify(stocks.list_prices(page, page_size, refresh=refresh))

        except Exception as e:
            logger.error(f"Error retrieving cached stocks: {e}", exc_info=True)
            return jsonify({'error': 'Failed to retrieve stocks'}), 500

    @app.route('/api/prices', methods=['POST'])
    def save_price():
        """
        Manual price update, written to the store and the cache.
        Request: JSON {"ticker": "AAPL", "price": 190.1, "price_change": 1.2, "price_change_percentage": 0.6}
        """
        if not ensure_cache():
            return not_initialized()
        try:
            payload = request.get_json(silent=True)
            validation_error = ValidationService.validate_price_payload(payload)
            if validation_error:
                return jsonify({'error': validation_error}), 400
            return jsonify({'data': stocks.save_price(payload)})

        except Exception as e:
            logger.error(f"Error updating stock: {e}", exc_info=True)
            return jsonify({'error': 'Failed to update stock'}), 500

    @app.route('/api/cached-posts', methods=['GET'])
    def get_cached_posts():
        if not ensure_cache():
            return not_initialized()
        page, page_size, validation_error = ValidationService.parse_pagination(
            request.args.get('page'), request.args.get('pageSize')
        )
        if validation_error:
            return jsonify({'error': validation_error}), 400
        return jsonify(stocks.list_posts(page, page_size))

    @app.route('/api/cached-posts/<int:post_id>', methods=['DELETE'])
    def evict_cached_post(post_id):
        if not ensure_cache():
            return not_initialized()
        removed = service.cache.remove(post_id)
        return jsonify({'success': True, 'removed': removed})

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))

    app = create_app()
    # The reloader would start a second worker process with its own scheduler.
    app.run(host="0.0.0.0", port=port, debug=False)
