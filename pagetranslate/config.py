"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional
from dotenv import load_dotenv

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

# Check for DEBUG_MODE early (before .env is loaded, check environment)
_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("DEBUG_MODE enabled - verbose logging active")

# .env is looked up in the current working directory
_env_file = Path.cwd() / '.env'
_dotenv_result = load_dotenv(_env_file)
if _debug_mode:
    _config_logger.debug(f"Looking for .env at: {_env_file.absolute()} (loaded: {_dotenv_result})")

# Load from environment variables with defaults
API_ENDPOINT = os.getenv('API_ENDPOINT', 'https://api.openai.com/v1/chat/completions')
API_KEY = os.getenv('OPENAI_API_KEY', '')
DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'gpt-4o-mini')
DEFAULT_TARGET_LANGUAGE = os.getenv('DEFAULT_TARGET_LANGUAGE', 'ja')
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '60'))

# Outbound request rate (requests per second, fractional values allowed)
REQUESTS_PER_SECOND = float(os.getenv('REQUESTS_PER_SECOND', '1'))

# Batching
MAX_CHARACTERS_PER_BATCH = int(os.getenv('MAX_CHARACTERS_PER_BATCH', '4000'))
DEFAULT_BATCH_DELIMITER = "\n---DELIMITER---\n"
"""Delimiter joining fragments of one batch request (17 characters)"""

BATCH_DELIMITER = os.getenv('BATCH_DELIMITER', DEFAULT_BATCH_DELIMITER)

DELIMITER_CORE = "---DELIMITER---"
"""Delimiter text as shown to the model in the batch prompt"""

DEFAULT_DELIMITER_SPLIT_PATTERN = r'\s*-{3,}DELIMITER-{3,}\s*'
"""Split pattern for the default delimiter, tolerant of whitespace and extra dashes"""

CHUNK_FILL_RATIO = 0.9
"""Oversized fragments are split into chunks of at most this share of the batch budget"""

# Cache
CACHE_MAX_SIZE = int(os.getenv('CACHE_MAX_SIZE', '1000'))

# Rate limiter poll interval in seconds
RATE_LIMITER_TICK = 0.01

# Debug mode (reload after .env is loaded)
DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

# Log loaded configuration in debug mode
if DEBUG_MODE or _debug_mode:
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("="*60)
    _config_logger.debug("LOADED CONFIGURATION VALUES:")
    _config_logger.debug("="*60)
    _config_logger.debug(f"   API_ENDPOINT: {API_ENDPOINT}")
    _config_logger.debug(f"   DEFAULT_MODEL: {DEFAULT_MODEL}")
    _config_logger.debug(f"   DEFAULT_TARGET_LANGUAGE: {DEFAULT_TARGET_LANGUAGE}")
    _config_logger.debug(f"   REQUESTS_PER_SECOND: {REQUESTS_PER_SECOND}")
    _config_logger.debug(f"   MAX_CHARACTERS_PER_BATCH: {MAX_CHARACTERS_PER_BATCH}")
    _config_logger.debug(f"   CACHE_MAX_SIZE: {CACHE_MAX_SIZE}")
    _config_logger.debug(f"   REQUEST_TIMEOUT: {REQUEST_TIMEOUT}")
    _config_logger.debug(f"   OPENAI_API_KEY: {'***' + API_KEY[-4:] if API_KEY else '(not set)'}")
    _config_logger.debug("="*60)

# ============================================================================
# PLACEHOLDER CONFIGURATION
# ============================================================================
# HTML tags are replaced by short angle-bracket tokens such as <p_0> and
# </strong_2> before the text is sent to the model.

TAG_PATTERN = r'<(/?[^>]+)>'
"""Regex matching one HTML tag occurrence (opening, closing or self-closing)"""

PLACEHOLDER_PATTERN = r'<\s*(/?)\s*([a-z0-9]+)_(\d+)\s*>'
"""Regex matching a placeholder, tolerating whitespace inserted by the model"""

FALLBACK_TAG_NAME = "tag"
"""Name used when a tag has no letters or digits in its name (comments, etc.)"""

# ============================================================================
# MODEL PARAMETER PROFILES
# ============================================================================
# Extra request parameters per model family. First case-insensitive substring
# match wins, so more specific patterns must come first.

BASE_REQUEST_PARAMETERS = {
    "temperature": 0.3,
    "max_tokens": 4000,
}

MODEL_PARAMETER_PROFILES = {
    "gpt-5": {
        "reasoning_effort": "minimal",
        "verbosity": "low",
    },
}

LANGUAGE_NAMES = {
    "ja": "Japanese",
    "en": "English",
    "ko": "Korean",
}


def get_language_name(language: str) -> str:
    """Expand a known language code to its English name, else return it unchanged."""
    return LANGUAGE_NAMES.get(language, language)


def get_request_parameters(model: str, profiles: Optional[Dict[str, dict]] = None) -> dict:
    """
    Build the sampling parameters sent with a completion request.

    Args:
        model: Model identifier
        profiles: Optional override for MODEL_PARAMETER_PROFILES

    Returns:
        Dictionary of request parameters for this model
    """
    if profiles is None:
        profiles = MODEL_PARAMETER_PROFILES
    parameters = dict(BASE_REQUEST_PARAMETERS)
    lowered = model.lower()
    for pattern, extra in profiles.items():
        if pattern.lower() in lowered:
            parameters.update(extra)
            break
    return parameters


@dataclass
class TranslationConfig:
    """Unified configuration for library and CLI use"""

    # Core settings
    target_language: str = DEFAULT_TARGET_LANGUAGE
    model: str = DEFAULT_MODEL
    api_endpoint: str = API_ENDPOINT
    api_key: str = API_KEY

    # Pipeline parameters
    requests_per_second: float = REQUESTS_PER_SECOND
    max_characters_per_batch: int = MAX_CHARACTERS_PER_BATCH
    batch_delimiter: str = BATCH_DELIMITER
    cache_max_size: int = CACHE_MAX_SIZE

    # LLM parameters
    timeout: int = REQUEST_TIMEOUT
    parameter_profiles: Dict[str, dict] = field(default_factory=lambda: dict(MODEL_PARAMETER_PROFILES))

    @property
    def uses_default_delimiter(self) -> bool:
        return self.batch_delimiter == DEFAULT_BATCH_DELIMITER

    def validate(self) -> None:
        """Raise ConfigurationError when a setting cannot work."""
        from pagetranslate.core.exceptions import ConfigurationError

        errors = []
        if not self.api_key:
            errors.append("OPENAI_API_KEY (api_key) is required.")
        if not self.api_endpoint:
            errors.append("API_ENDPOINT (api_endpoint) is required.")
        if not self.target_language:
            errors.append("A target language is required.")
        if self.requests_per_second <= 0:
            errors.append(f"requests_per_second must be positive, got {self.requests_per_second}.")
        if not self.batch_delimiter:
            errors.append("batch_delimiter must not be empty.")
        elif self.max_characters_per_batch <= len(self.batch_delimiter):
            errors.append(
                f"max_characters_per_batch ({self.max_characters_per_batch}) must exceed "
                f"the delimiter length ({len(self.batch_delimiter)})."
            )
        if self.cache_max_size <= 0:
            errors.append(f"cache_max_size must be positive, got {self.cache_max_size}.")

        if errors:
            bullet_list = "\n".join(f"- {message}" for message in errors)
            raise ConfigurationError("Configuration validation errors detected:\n" + bullet_list)

    @classmethod
    def from_cli_args(cls, args) -> 'TranslationConfig':
        """Create config from CLI arguments"""
        return cls(
            target_language=args.target_lang,
            model=args.model,
            api_endpoint=args.api_endpoint,
            api_key=getattr(args, 'api_key', API_KEY),
            requests_per_second=getattr(args, 'rps', REQUESTS_PER_SECOND),
            max_characters_per_batch=getattr(args, 'batch_size', MAX_CHARACTERS_PER_BATCH),
            batch_delimiter=getattr(args, 'delimiter', None) or BATCH_DELIMITER,
            timeout=getattr(args, 'timeout', REQUEST_TIMEOUT),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for display (API key masked)"""
        return {
            'target_language': self.target_language,
            'model': self.model,
            'api_endpoint': self.api_endpoint,
            'api_key': '***' + self.api_key[-4:] if self.api_key else '',
            'requests_per_second': self.requests_per_second,
            'max_characters_per_batch': self.max_characters_per_batch,
            'batch_delimiter': self.batch_delimiter,
            'cache_max_size': self.cache_max_size,
            'timeout': self.timeout,
        }
