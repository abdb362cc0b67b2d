"""
LoyalLink Customer Loyalty Service
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging
from .utils.errors import error_response, bad_request, not_found, internal_error, ErrorCode
from .utils.exceptions import LoyalLinkError

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()

    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Business-ID']
    )

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Background scheduler for daily outreach (production only)
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'loyallink'}

    logger.info(f'LoyalLink app created ({config_name})')
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.visits import visits_bp
    from .api.rewards import rewards_bp
    from .api.customers import customers_bp
    from .api.businesses import businesses_bp
    from .api.outreach import outreach_bp
    from .api.notifications import notifications_bp

    app.register_blueprint(visits_bp, url_prefix='/api')
    app.register_blueprint(rewards_bp, url_prefix='/api')
    app.register_blueprint(customers_bp, url_prefix='/api')
    app.register_blueprint(businesses_bp, url_prefix='/api')
    app.register_blueprint(outreach_bp, url_prefix='/api')
    app.register_blueprint(notifications_bp, url_prefix='/api')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""

    @app.errorhandler(LoyalLinkError)
    def handle_loyallink_error(error):
        return error_response(error.message, error.code, error.status_code)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        logger.exception(f'Database error: {error}')
        return error_response('A database error occurred', ErrorCode.DATABASE_ERROR, 500, log_error=False)

    @app.errorhandler(400)
    def handle_bad_request(error):
        return bad_request('Bad request')

    @app.errorhandler(404)
    def handle_not_found(error):
        return not_found('Not found')

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(415)
    def handle_unsupported_media_type(error):
        return error_response('Request body must be JSON', ErrorCode.INVALID_REQUEST, 415, log_error=False)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        if isinstance(error, HTTPException):
            return error_response(error.description or error.name, ErrorCode.INVALID_REQUEST, error.code,
                                  log_error=False)
        logger.exception(f'Unhandled error: {error}')
        return internal_error()
