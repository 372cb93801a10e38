"""
Tashkeel Review - Main Flask Application
Review service for diacritic (tashkeel) corrections on Arabic page text
"""
import time

from flask import Flask, g, jsonify, request

from config_logging import APP_NAME, VERSION, StructuredLogger, get_config, get_logger
from tashkeel_review.routes import SessionRegistry, review_blueprint
from tashkeel_review.store import ReviewStore

logger = get_logger('app')


def create_app(config=None, store=None):
    """
    Build the Flask application.

    Args:
        config: AppConfig to use (defaults to get_config())
        store: ReviewStore (or any loader+sink) backing the API;
               defaults to a ReviewStore at config.db_path
    """
    config = config or get_config()
    valid, errors = config.validate()
    if not valid:
        for error in errors:
            logger.warning(f"Configuration problem: {error}")

    app = Flask(__name__)
    app.config['REVIEW_STORE'] = store if store is not None else ReviewStore(str(config.db_path))
    app.config['SESSION_REGISTRY'] = SessionRegistry()
    app.config['MAX_CONTENT_LENGTH'] = config.max_text_length * 4 + 64 * 1024

    app.register_blueprint(review_blueprint, url_prefix='/api/review')

    @app.before_request
    def before_request():
        g.request_start = time.time()
        g.correlation_id = request.headers.get('X-Correlation-ID') or StructuredLogger.new_correlation_id()
        StructuredLogger.set_correlation_id(g.correlation_id)

    @app.after_request
    def after_request(response):
        duration_ms = (time.time() - g.get('request_start', time.time())) * 1000
        response.headers['X-Correlation-ID'] = g.get('correlation_id', '')
        logger.debug(f"{request.method} {request.path} -> {response.status_code} "
                     f"({duration_ms:.1f}ms)")
        return response

    @app.route('/api/version', methods=['GET'])
    def version():
        """Service name and version"""
        return jsonify({'success': True, 'app': APP_NAME, 'version': VERSION})

    logger.info(f"{APP_NAME} v{VERSION} ready (db={config.db_path})")
    return app


if __name__ == '__main__':
    config = get_config()
    print("=" * 60)
    print(f"  {APP_NAME} v{VERSION}")
    print(f"  Starting server at http://{config.host}:{config.port}")
    print("=" * 60)
    create_app(config).run(host=config.host, port=config.port, debug=config.debug)
