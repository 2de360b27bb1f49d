"""
Translation job routes: upload, status, interruption and download
"""
import os
import logging

from flask import Blueprint, request, jsonify, send_file

from prompts.prompts import TargetLanguage
from epub_translator.config import DEFAULT_TARGET_LANGUAGE
from epub_translator.utils.file_utils import generate_output_filename
from epub_translator.utils.security import SecureFileHandler, get_client_ip
from ..translation_state import STATUS_COMPLETED

logger = logging.getLogger(__name__)

# Optional form fields forwarded to the job configuration
_OPTIONAL_FIELDS = ('llm_provider', 'model', 'api_endpoint', 'api_key', 'max_segment_size')


def create_translation_blueprint(state_manager, upload_dir, start_job_callback, rate_limiter=None):
    """Create and configure the translation blueprint

    Args:
        state_manager: TranslationStateManager holding job state
        upload_dir: Directory receiving uploaded EPUB files
        start_job_callback: Called with the translation id to start a queued job
        rate_limiter: Optional RateLimiter applied to new translations
    """
    bp = Blueprint('translation', __name__)
    file_handler = SecureFileHandler(upload_dir)

    @bp.route('/api/translate', methods=['POST'])
    def start_translation():
        """Upload an EPUB and start translating it"""
        if rate_limiter is not None and not rate_limiter.is_allowed(get_client_ip(request)):
            return jsonify({"error": "Too many requests. Please wait before starting another translation."}), 429

        uploaded = request.files.get('file')
        if uploaded is None or not uploaded.filename:
            return jsonify({"error": "No EPUB file provided (multipart field 'file')"}), 400

        try:
            language = TargetLanguage.from_code(request.form.get('target_language', DEFAULT_TARGET_LANGUAGE))
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        validation = file_handler.validate_and_save_file(uploaded.read(), uploaded.filename)
        if not validation.is_valid:
            return jsonify({"error": validation.error_message}), 400
        for warning in validation.warnings:
            logger.warning(f"⚠️ {uploaded.filename}: {warning}")

        config = {
            'target_language': language.code,
            'file_path': str(validation.file_path),
            'input_filename': os.path.basename(uploaded.filename),
            'output_filename': generate_output_filename(uploaded.filename, language.code),
        }
        for field in _OPTIONAL_FIELDS:
            value = request.form.get(field)
            if value:
                config[field] = value

        translation_id = state_manager.create_translation(config)
        logger.info(f"📥 Queued translation {translation_id}: {config['input_filename']} → {language.display_name}")
        start_job_callback(translation_id)

        return jsonify({
            "translation_id": translation_id,
            "status": "queued",
            "output_filename": config['output_filename'],
            "warnings": validation.warnings
        }), 202

    @bp.route('/api/translation/<translation_id>', methods=['GET'])
    def get_translation_status(translation_id):
        """Status, progress and error of a job"""
        status = state_manager.get_public_status(translation_id)
        if status is None:
            return jsonify({"error": "Translation not found"}), 404
        return jsonify(status)

    @bp.route('/api/translation/<translation_id>/interrupt', methods=['POST'])
    def interrupt_translation(translation_id):
        """Request cancellation of a job (idempotent)"""
        if not state_manager.interrupt(translation_id):
            return jsonify({"error": "Translation not found"}), 404
        return jsonify({
            "translation_id": translation_id,
            "status": state_manager.get_translation_field(translation_id, 'status'),
            "message": "Interruption requested"
        })

    @bp.route('/api/translations', methods=['GET'])
    def list_translations():
        return jsonify({"translations": state_manager.get_all_translations()})

    @bp.route('/api/download/<translation_id>', methods=['GET'])
    def download_translation(translation_id):
        """Download the translated EPUB of a completed job"""
        if not state_manager.exists(translation_id):
            return jsonify({"error": "Translation not found"}), 404
        if state_manager.get_translation_field(translation_id, 'status') != STATUS_COMPLETED:
            return jsonify({"error": "Translation is not completed"}), 409

        output_filepath = state_manager.get_translation_field(translation_id, 'output_filepath')
        if not output_filepath or not os.path.exists(output_filepath):
            return jsonify({"error": "Translated file is no longer available"}), 410

        return send_file(
            os.path.abspath(output_filepath),
            mimetype='application/epub+zip',
            as_attachment=True,
            download_name=state_manager.get_translation_field(translation_id, 'output_filename')
        )

    return bp
