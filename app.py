"""Flask main application - serves the Brochure Engine API"""

import os
import sys

# [Fix] Set environment variables as early as possible to ensure that all modules use unbuffered mode
os.environ['PYTHONIOENCODING'] = 'utf-8'
os.environ['PYTHONUTF8'] = '1'
os.environ['PYTHONUNBUFFERED'] = '1'

from pathlib import Path

from flask import Flask, jsonify
from loguru import logger

from BrochureEngine import __version__
from BrochureEngine.flask_interface import brochure_bp, initialize_brochure_engine
from BrochureEngine.utils.config import Settings, print_config, settings


def setup_logging(config: Settings, verbose: bool = False):
    """Console sink plus an appending file sink at LOG_FILE."""
    logger.remove()  # Remove default processor
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="DEBUG" if verbose else "INFO"
    )

    log_file = Path(config.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler_id = logger.add(
        str(log_file),
        level=config.LOG_LEVEL,
        enqueue=False,      # Write synchronously
        buffering=1,        # Line buffering, each line is written immediately
        encoding="utf-8",
        mode="a",
        rotation="10 MB",
        retention=5,
    )
    logger.debug(f"Added log handler (ID: {handler_id}): {log_file}")


def create_app(config: Settings = None) -> Flask:
    """Build the Flask application and register the Brochure Engine blueprint."""
    config = config or settings
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.SECRET_KEY or os.urandom(24).hex()

    if initialize_brochure_engine(config):
        logger.info("Brochure Engine initialization successful")
    else:
        logger.error("Brochure Engine initialization failed")

    app.register_blueprint(brochure_bp, url_prefix='/api/brochure')
    logger.info("Brochure Engine interface has been registered")

    @app.route('/api/health')
    def health():
        return jsonify({'success': True, 'version': __version__})

    return app


if __name__ == '__main__':
    setup_logging(settings)
    print_config(settings)
    app = create_app(settings)

    HOST = settings.HOST
    PORT = settings.PORT
    logger.info(f"The Flask server has been started, access address: http://{HOST}:{PORT}")

    try:
        app.run(host=HOST, port=PORT, debug=False, threaded=True)
    except KeyboardInterrupt:
        logger.info("\nClose application...")
        from BrochureEngine.flask_interface import session
        if session is not None:
            session.auto_save.flush()
