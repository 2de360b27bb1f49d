"""
Centralized configuration class
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("🔍 DEBUG_MODE enabled - verbose logging active")

# Get config directory (current working directory)
_config_dir = Path.cwd()
_env_file = _config_dir / '.env'

if not _env_file.exists():
    _config_logger.warning(
        "⚠️  .env configuration file not found in %s - using default settings "
        "(copy .env.example to .env to configure the translation service)", _config_dir
    )

# Load .env file if it exists
_dotenv_result = load_dotenv(_env_file)
if _debug_mode:
    _config_logger.debug(f"📁 load_dotenv() returned: {_dotenv_result}")

# LLM Provider configuration
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'deepseek')  # 'deepseek', 'openai' or 'mistral'
API_ENDPOINT = os.getenv('API_ENDPOINT', '')  # Empty = provider default endpoint
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', '')  # Empty = provider default model (applies to LLM_PROVIDER only)
DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
MISTRAL_API_KEY = os.getenv('MISTRAL_API_KEY', '')
DEEPSEEK_MODEL = os.getenv('DEEPSEEK_MODEL', 'deepseek-chat')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
MISTRAL_MODEL = os.getenv('MISTRAL_MODEL', 'mistral-large-latest')

REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '900'))

# Connection attempts per translation request (1 = no automatic retry)
MAX_TRANSLATION_ATTEMPTS = int(os.getenv('MAX_TRANSLATION_ATTEMPTS', '1'))
RETRY_DELAY = float(os.getenv('RETRY_DELAY', '2'))

# === Segmentation ===
MAX_SEGMENT_SIZE = int(os.getenv('MAX_SEGMENT_SIZE', '4000'))
"""Maximum size (characters) of one segment sent to the translation service"""

SEGMENT_BATCH_SIZE = int(os.getenv('SEGMENT_BATCH_SIZE', '5'))
"""Segments of one document dispatched together before waiting for the batch"""

BLOCK_TAGS = ('p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'section')
"""Block-level elements kept whole by the segmenter"""

# === Concurrency ===
MAX_CONCURRENT_REQUESTS = int(os.getenv('MAX_CONCURRENT_REQUESTS', '3'))
MAX_CONCURRENT_FILES = int(os.getenv('MAX_CONCURRENT_FILES', '2'))

# === Translation cache ===
TRANSLATION_CACHE_MAX_ENTRIES = int(os.getenv('TRANSLATION_CACHE_MAX_ENTRIES', '0'))
"""0 keeps every translation for the lifetime of the process"""

# === Progress ===
PROGRESS_THRESHOLD = 0.95
"""Share of a segment's progress slice reachable before its stream is finalized"""

REPACK_PROGRESS_SHARE = 1.0
"""Final percent of the progress axis reserved for archive repackaging"""

DEFAULT_TARGET_LANGUAGE = os.getenv('DEFAULT_TARGET_LANGUAGE', 'fr')

# Translation Attribution
ATTRIBUTION_ENABLED = os.getenv('ATTRIBUTION_ENABLED', 'true').lower() == 'true'
GENERATOR_NAME = "EPUB Stream Translator"

# Server configuration
HOST = os.getenv('HOST', '127.0.0.1')
PORT = int(os.getenv('PORT', '5000'))
OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'translated_files')
UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'uploads')

# Debug mode (reload after .env is loaded)
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

# Log loaded configuration in debug mode
if DEBUG_MODE or _debug_mode:
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("="*60)
    _config_logger.debug("📋 LOADED CONFIGURATION VALUES:")
    _config_logger.debug("="*60)
    _config_logger.debug(f"   LLM_PROVIDER: {LLM_PROVIDER}")
    _config_logger.debug(f"   API_ENDPOINT: {API_ENDPOINT or '(provider default)'}")
    _config_logger.debug(f"   DEFAULT_MODEL: {DEFAULT_MODEL or '(provider default)'}")
    _config_logger.debug(f"   MAX_SEGMENT_SIZE: {MAX_SEGMENT_SIZE}")
    _config_logger.debug(f"   MAX_CONCURRENT_REQUESTS: {MAX_CONCURRENT_REQUESTS}")
    _config_logger.debug(f"   MAX_CONCURRENT_FILES: {MAX_CONCURRENT_FILES}")
    _config_logger.debug(f"   DEEPSEEK_API_KEY: {'***' + DEEPSEEK_API_KEY[-4:] if DEEPSEEK_API_KEY else '(not set)'}")
    _config_logger.debug(f"   OPENAI_API_KEY: {'***' + OPENAI_API_KEY[-4:] if OPENAI_API_KEY else '(not set)'}")
    _config_logger.debug(f"   MISTRAL_API_KEY: {'***' + MISTRAL_API_KEY[-4:] if MISTRAL_API_KEY else '(not set)'}")
    _config_logger.debug("="*60)

# EPUB-specific configuration
NAMESPACES = {
    'opf': 'http://www.idpf.org/2007/opf',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'container': 'urn:oasis:names:tc:opendocument:xmlns:container',
}

TEXT_PART_MEDIA_TYPES = ('application/xhtml+xml', 'text/html')
TEXT_PART_EXTENSIONS = ('.html', '.xhtml', '.htm')


@dataclass
class TranslationConfig:
    """Unified configuration for both CLI and web interfaces"""

    target_language: str = DEFAULT_TARGET_LANGUAGE
    model: str = ''  # Empty = default_model(llm_provider), resolved on creation
    api_endpoint: str = API_ENDPOINT

    # LLM Provider settings
    llm_provider: str = LLM_PROVIDER
    api_key: Optional[str] = None

    # LLM parameters
    timeout: int = REQUEST_TIMEOUT
    max_attempts: int = MAX_TRANSLATION_ATTEMPTS
    retry_delay: float = RETRY_DELAY

    # Pipeline tuning
    max_segment_size: int = MAX_SEGMENT_SIZE
    segment_batch_size: int = SEGMENT_BATCH_SIZE
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    max_concurrent_files: int = MAX_CONCURRENT_FILES

    def __post_init__(self):
        if self.api_key is None:
            self.api_key = default_api_key(self.llm_provider)
        if not self.model:
            self.model = default_model(self.llm_provider)

    @classmethod
    def from_cli_args(cls, args) -> 'TranslationConfig':
        """Create config from CLI arguments"""
        return cls(
            target_language=args.target_lang,
            model=args.model or '',
            api_endpoint=args.api_endpoint,
            llm_provider=getattr(args, 'provider', LLM_PROVIDER),
            api_key=getattr(args, 'api_key', None) or None,
            max_segment_size=getattr(args, 'max_segment_size', MAX_SEGMENT_SIZE),
        )

    @classmethod
    def from_web_request(cls, request_data: dict) -> 'TranslationConfig':
        """
        Create config from web request data

        A client-supplied endpoint other than the configured one never
        receives the server's API keys; the request must bring its own.
        """
        api_endpoint = request_data.get('api_endpoint') or API_ENDPOINT
        api_key = request_data.get('api_key') or None
        if api_key is None and api_endpoint != API_ENDPOINT:
            api_key = ''
        return cls(
            target_language=request_data.get('target_language', DEFAULT_TARGET_LANGUAGE),
            model=request_data.get('model') or '',
            api_endpoint=api_endpoint,
            llm_provider=request_data.get('llm_provider', LLM_PROVIDER),
            api_key=api_key,
            timeout=int(request_data.get('timeout', REQUEST_TIMEOUT)),
            max_attempts=int(request_data.get('max_attempts', MAX_TRANSLATION_ATTEMPTS)),
            max_segment_size=int(request_data.get('max_segment_size', MAX_SEGMENT_SIZE)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (API key masked)"""
        return {
            'target_language': self.target_language,
            'model': self.model,
            'api_endpoint': self.api_endpoint,
            'llm_provider': self.llm_provider,
            'api_key': '***' + self.api_key[-4:] if self.api_key else '',
            'timeout': self.timeout,
            'max_attempts': self.max_attempts,
            'retry_delay': self.retry_delay,
            'max_segment_size': self.max_segment_size,
            'segment_batch_size': self.segment_batch_size,
            'max_concurrent_requests': self.max_concurrent_requests,
            'max_concurrent_files': self.max_concurrent_files,
        }


def default_api_key(provider_type: str) -> str:
    """Return the API key configured in the environment for a provider."""
    return {
        'deepseek': DEEPSEEK_API_KEY,
        'openai': OPENAI_API_KEY,
        'mistral': MISTRAL_API_KEY,
    }.get((provider_type or '').lower(), '')


def default_model(provider_type: str) -> str:
    """Return the model used when a job does not name one."""
    provider_type = (provider_type or '').lower()
    if DEFAULT_MODEL and provider_type == LLM_PROVIDER.lower():
        return DEFAULT_MODEL
    return {
        'deepseek': DEEPSEEK_MODEL,
        'openai': OPENAI_MODEL,
        'mistral': MISTRAL_MODEL,
    }.get(provider_type, '')
