"""
Flask web server for the EPUB translation API
"""
import os
import sys
import logging

from flask import Flask
from flask_cors import CORS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce verbosity of werkzeug (Flask HTTP server logs)
logging.getLogger('werkzeug').setLevel(logging.WARNING)

# Reduce verbosity of httpx (one line per streamed request otherwise)
logging.getLogger('httpx').setLevel(logging.WARNING)

from epub_translator.config import (
    LLM_PROVIDER,
    default_model,
    PORT,
    HOST,
    OUTPUT_DIR,
    UPLOAD_DIR,
    default_api_key,
)
from epub_translator.api.blueprints import create_config_blueprint, create_translation_blueprint
from epub_translator.api.handlers import start_translation_job
from epub_translator.api.translation_state import get_state_manager
from epub_translator.utils.security import RateLimiter


def create_app(state_manager=None, output_dir=OUTPUT_DIR, upload_dir=UPLOAD_DIR,
               provider_factory=None, cache=None, rate_limiter=None):
    """
    Build the Flask application

    Args:
        state_manager: Job registry (defaults to the process-wide one)
        output_dir: Directory receiving translated EPUBs
        upload_dir: Directory receiving uploads
        provider_factory: Optional callable building the provider from a TranslationConfig
        cache: Optional translation cache shared by all jobs
        rate_limiter: Optional RateLimiter for new translations

    Returns:
        The configured Flask app; started worker threads are kept in
        ``app.extensions['translation_threads']``
    """
    state_manager = state_manager or get_state_manager()
    os.makedirs(output_dir, exist_ok=True)
    logger.info(f"Output folder '{output_dir}' is ready")

    app = Flask(__name__)
    CORS(app)

    threads = {}
    app.extensions['translation_threads'] = threads
    app.extensions['translation_state'] = state_manager

    def start_job_wrapper(translation_id):
        """Wrapper to inject dependencies into job starter"""
        threads[translation_id] = start_translation_job(
            translation_id, state_manager, output_dir, provider_factory, cache
        )

    app.register_blueprint(create_config_blueprint(state_manager.server_session_id))
    app.register_blueprint(create_translation_blueprint(
        state_manager, upload_dir, start_job_wrapper, rate_limiter
    ))
    return app


def validate_configuration():
    """Warn about settings that make every translation fail"""
    if LLM_PROVIDER in ('deepseek', 'mistral') and not default_api_key(LLM_PROVIDER):
        logger.warning(
            f"⚠️  No API key configured for provider '{LLM_PROVIDER}'. "
            f"Set {LLM_PROVIDER.upper()}_API_KEY in .env or send 'api_key' with each request."
        )
    if not default_model(LLM_PROVIDER):
        logger.error(f"❌ Unknown LLM_PROVIDER '{LLM_PROVIDER}'")
        raise ValueError("Configuration validation failed. See errors above.")
    logger.info("✅ Configuration validated successfully")


def start_server():
    """Validate configuration and run the development server"""
    try:
        validate_configuration()
        app = create_app(rate_limiter=RateLimiter())
    except (ValueError, OSError) as e:
        logger.error(f"Critical error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("📚 EPUB Translation API")
    logger.info(f"   Provider: {LLM_PROVIDER} | Model: {default_model(LLM_PROVIDER)}")
    logger.info(f"   Listening on http://{HOST}:{PORT}")
    logger.info("=" * 60)
    app.run(host=HOST, port=PORT, debug=False, threaded=True)


if __name__ == '__main__':
    start_server()
