"""
Configuration and health check routes
"""
import time

from flask import Blueprint, jsonify

from prompts.prompts import get_language_choices
from epub_translator import __version__
from epub_translator.config import (
    LLM_PROVIDER,
    API_ENDPOINT,
    default_model,
    DEFAULT_TARGET_LANGUAGE,
    REQUEST_TIMEOUT,
    MAX_TRANSLATION_ATTEMPTS,
    MAX_SEGMENT_SIZE,
    MAX_CONCURRENT_REQUESTS,
    MAX_CONCURRENT_FILES,
    default_api_key,
)
from epub_translator.core.llm.factory import PROVIDER_TYPES


def create_config_blueprint(server_session_id=None):
    """Create and configure the config blueprint

    Args:
        server_session_id: Server session ID from state manager (optional, generates new if not provided)
    """
    bp = Blueprint('config', __name__)

    # Used by clients to detect server restarts
    startup_time = int(server_session_id) if server_session_id else int(time.time())

    @bp.route('/api/health', methods=['GET'])
    def health_check():
        """API health check endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Translation API is running",
            "version": __version__,
            "supported_formats": ["epub"],
            "startup_time": startup_time,
            "session_id": startup_time
        })

    @bp.route('/api/languages', methods=['GET'])
    def get_languages():
        """Supported target languages"""
        return jsonify({
            "languages": get_language_choices(),
            "default": DEFAULT_TARGET_LANGUAGE
        })

    @bp.route('/api/config', methods=['GET'])
    def get_default_config():
        """Get default configuration values (API keys are never returned)"""
        return jsonify({
            "llm_provider": LLM_PROVIDER,
            "providers": list(PROVIDER_TYPES),
            "api_endpoint": API_ENDPOINT,
            "default_model": default_model(LLM_PROVIDER),
            "default_models": {provider: default_model(provider) for provider in PROVIDER_TYPES},
            "default_target_language": DEFAULT_TARGET_LANGUAGE,
            "timeout": REQUEST_TIMEOUT,
            "max_attempts": MAX_TRANSLATION_ATTEMPTS,
            "max_segment_size": MAX_SEGMENT_SIZE,
            "max_concurrent_requests": MAX_CONCURRENT_REQUESTS,
            "max_concurrent_files": MAX_CONCURRENT_FILES,
            "api_key_configured": {
                provider: bool(default_api_key(provider)) for provider in PROVIDER_TYPES
            }
        })

    return bp
