"""
Application Bootstrap - BoutArchive

Creates the Flask application, registers blueprints, and initializes
the core services needed for the download and import APIs.

Author: BoutArchive Development Team
Updated: October 18, 2026
"""

import logging
from flask import Flask, jsonify  # type: ignore

from config.config import Config
from utils.logger import setup_logger
from utils.loguru_config import setup_loguru

# Import blueprints
from api.download_management_api import download_management_bp

logger = logging.getLogger("BoutArchiveLogger")


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Setup logging
    global logger
    logger = setup_logger(
        "BoutArchiveLogger",
        app.config.get('LOG_FILE', 'boutarchive.log'),
        app.config.get('LOG_LEVEL', 'INFO'),
    )
    if app.config.get('USE_LOGURU'):
        setup_loguru(app.config.get('LOG_LEVEL', 'INFO'), app.config.get('LOG_FILE', 'boutarchive.log'))
    logger.info("Starting BoutArchive Flask application")

    # Register blueprints
    app.register_blueprint(download_management_bp, url_prefix='/api/downloads')

    # Initialize core services at startup to prevent lazy loading issues
    if not app.config.get('TESTING'):
        initialize_services(app)

    register_api_routes(app)
    register_error_handlers(app)

    logger.info("BoutArchive Flask application initialized successfully")
    return app


def initialize_services(app):
    """Create core services and start the download monitor when enabled."""
    try:
        from services.service_manager import (
            get_config_service,
            get_database_service,
            get_download_management_service,
        )

        get_database_service()
        validation = get_config_service().validate_config()
        invalid = [section for section, valid in validation.items() if not valid]
        if invalid:
            logger.warning(f"Invalid configuration sections: {', '.join(invalid)}")
        dm_service = get_download_management_service()
        logger.info("Core services initialized (database, config, download management)")

        if app.config.get('MONITOR_ENABLED') and dm_service.enabled:
            dm_service.start_monitoring()
            logger.info("Download management service monitoring started")
        else:
            logger.info("Download monitoring disabled by configuration")

    except Exception as e:
        logger.error(f"Error initializing services at startup: {e}")


def register_api_routes(app):
    """Register API routes that are not part of a blueprint"""

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        return jsonify({
            'status': 'healthy',
            'service': 'BoutArchive',
            'version': '1.0.0'
        })


def register_error_handlers(app):
    """Register error handlers"""

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    app = create_app()
    logger.info("BoutArchive Starting...")
    app.run(host='0.0.0.0', port=5000)
