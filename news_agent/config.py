"""
Centralized Configuration Module

Provides a single source of truth for all system configuration parameters.
Loads settings from environment variables with sensible defaults and validation.
"""

import os
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional
from urllib.parse import urlparse
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class Config:
    """
    Centralized configuration for the News Article Agent.

    All configuration parameters are loaded from environment variables
    with sensible defaults. Validation is performed on initialization.
    """

    # Ollama Settings
    ollama_base_url: str = field(default="http://localhost:11434")
    ollama_timeout: int = field(default=60)
    embedding_model: str = field(default="nomic-embed-text")
    llm_model: str = field(default="llama3.1:latest")
    llm_temperature: float = field(default=0.2)

    # Embedding Parameters
    embedding_dimension: int = field(default=768)
    max_embed_text_length: int = field(default=12000)

    # Vector Index Settings
    index_name: str = field(default="news-articles")
    index_dir: str = field(default="data/vector_index")
    index_poll_interval: float = field(default=5.0)
    upsert_max_retries: int = field(default=2)
    upsert_backoff_base: float = field(default=2.0)

    # Article Extraction Settings
    fetch_timeout: int = field(default=30)
    max_html_length: int = field(default=120000)

    # Ingestion Settings
    dedup_cache_size: int = field(default=1000)
    dedup_expiry_seconds: int = field(default=1800)
    max_workers: int = field(default=4)

    # Query Settings
    top_k_default: int = field(default=1)

    # Logging
    log_level: str = field(default="INFO")
    log_dir: str = field(default="logs")

    def __post_init__(self):
        """Load configuration from environment and validate."""
        self._load_from_environment()
        self._validate()

    def _load_from_environment(self):
        """Load configuration from environment variables."""
        # Ollama Settings
        self.ollama_base_url = self._get_env_str('OLLAMA_BASE_URL', self.ollama_base_url)
        self.ollama_timeout = self._get_env_int('OLLAMA_TIMEOUT', self.ollama_timeout)
        self.embedding_model = self._get_env_str('OLLAMA_EMBED_MODEL', self.embedding_model)
        self.llm_model = self._get_env_str('OLLAMA_LLM_MODEL', self.llm_model)
        self.llm_temperature = self._get_env_float('LLM_TEMPERATURE', self.llm_temperature)

        # Embedding Parameters
        self.embedding_dimension = self._get_env_int('EMBEDDING_DIMENSION', self.embedding_dimension)
        self.max_embed_text_length = self._get_env_int('MAX_EMBED_TEXT_LENGTH', self.max_embed_text_length)

        # Vector Index Settings
        self.index_name = self._get_env_str('VECTOR_INDEX_NAME', self.index_name)
        self.index_dir = self._get_env_path('VECTOR_INDEX_DIR', self.index_dir)
        self.index_poll_interval = self._get_env_float('INDEX_POLL_INTERVAL', self.index_poll_interval)
        self.upsert_max_retries = self._get_env_int('UPSERT_MAX_RETRIES', self.upsert_max_retries)
        self.upsert_backoff_base = self._get_env_float('UPSERT_BACKOFF_BASE', self.upsert_backoff_base)

        # Article Extraction Settings
        self.fetch_timeout = self._get_env_int('FETCH_TIMEOUT', self.fetch_timeout)
        self.max_html_length = self._get_env_int('MAX_HTML_LENGTH', self.max_html_length)

        # Ingestion Settings
        self.dedup_cache_size = self._get_env_int('DEDUP_CACHE_SIZE', self.dedup_cache_size)
        self.dedup_expiry_seconds = self._get_env_int('DEDUP_EXPIRY_SECONDS', self.dedup_expiry_seconds)
        self.max_workers = self._get_env_int('MAX_WORKERS', self.max_workers)

        # Query Settings
        self.top_k_default = self._get_env_int('TOP_K_DEFAULT', self.top_k_default)

        # Logging
        self.log_level = self._get_env_str('LOG_LEVEL', self.log_level).upper()
        self.log_dir = self._get_env_path('LOG_DIR', self.log_dir)

    def _get_env_str(self, key: str, default: str) -> str:
        """Get string value from environment."""
        value = os.getenv(key, default)
        if isinstance(value, str):
            value = value.strip()
        return value

    def _get_env_int(self, key: str, default: int) -> int:
        """Get integer value from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid integer value for {key}: '{value}'"
            )

    def _get_env_float(self, key: str, default: float) -> float:
        """Get float value from environment."""
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError:
            raise ConfigValidationError(
                f"Invalid float value for {key}: '{value}'"
            )

    def _get_env_path(self, key: str, default: str) -> str:
        """Get path value from environment with expansion."""
        value = os.getenv(key, default)
        if isinstance(value, str):
            value = value.strip()
            # Expand ~ to home directory
            value = os.path.expanduser(value)
        return value

    def _validate(self):
        """Validate configuration parameters."""
        # Validate non-empty strings
        for field_name in ('embedding_model', 'llm_model', 'index_name'):
            if not getattr(self, field_name):
                raise ConfigValidationError(f"{field_name} cannot be empty")

        # Validate positive integers
        positive_int_fields = [
            ('embedding_dimension', self.embedding_dimension),
            ('max_embed_text_length', self.max_embed_text_length),
            ('max_html_length', self.max_html_length),
            ('dedup_cache_size', self.dedup_cache_size),
            ('dedup_expiry_seconds', self.dedup_expiry_seconds),
            ('max_workers', self.max_workers),
            ('top_k_default', self.top_k_default),
        ]

        for field_name, value in positive_int_fields:
            if value <= 0:
                raise ConfigValidationError(
                    f"{field_name} must be positive, got {value}"
                )

        if self.upsert_max_retries < 0:
            raise ConfigValidationError(
                f"upsert_max_retries cannot be negative, got {self.upsert_max_retries}"
            )
        if self.upsert_backoff_base < 0 or self.index_poll_interval < 0:
            raise ConfigValidationError("Delays cannot be negative")

        # Validate timeouts (at least 1 second)
        if self.ollama_timeout < 1:
            raise ConfigValidationError(
                f"ollama_timeout must be at least 1, got {self.ollama_timeout}"
            )
        if self.fetch_timeout < 1:
            raise ConfigValidationError(
                f"fetch_timeout must be at least 1, got {self.fetch_timeout}"
            )

        if not 0.0 <= self.llm_temperature <= 2.0:
            raise ConfigValidationError(
                f"llm_temperature must be between 0 and 2, got {self.llm_temperature}"
            )

        if self.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigValidationError(f"Unknown log level: {self.log_level}")

        # Validate URL format
        parsed = urlparse(self.ollama_base_url)
        if not all([parsed.scheme, parsed.netloc]):
            raise ConfigValidationError(
                f"Invalid URL for ollama_base_url: {self.ollama_base_url}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def __repr__(self) -> str:
        """String representation of configuration."""
        items = []
        for key, value in self.to_dict().items():
            items.append(f"{key}={value!r}")
        return f"Config({', '.join(items)})"

    def update(self, **kwargs):
        """
        Update configuration values with validation.

        Args:
            **kwargs: Configuration parameters to update

        Raises:
            ConfigValidationError: If validation fails
        """
        # Store original values for rollback
        original_values = {}

        try:
            for key, value in kwargs.items():
                if not hasattr(self, key):
                    raise ConfigValidationError(f"Unknown configuration parameter: {key}")
                original_values[key] = getattr(self, key)
                setattr(self, key, value)

            self._validate()

        except Exception:
            # Rollback on validation failure
            for key, value in original_values.items():
                setattr(self, key, value)
            raise

    def get_ingestion_config(self) -> Dict[str, Any]:
        """Get ingestion-related configuration."""
        return {
            'dedup_cache_size': self.dedup_cache_size,
            'dedup_expiry_seconds': self.dedup_expiry_seconds,
            'max_workers': self.max_workers,
            'max_html_length': self.max_html_length,
            'max_embed_text_length': self.max_embed_text_length,
        }

    def get_storage_config(self) -> Dict[str, Any]:
        """Get vector-index-related configuration."""
        return {
            'index_name': self.index_name,
            'index_dir': self.index_dir,
            'embedding_dimension': self.embedding_dimension,
            'upsert_max_retries': self.upsert_max_retries,
            'upsert_backoff_base': self.upsert_backoff_base,
        }


# Singleton instance
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance (singleton pattern).

    Returns:
        Config: Global configuration instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reset_config():
    """Reset the global configuration instance."""
    global _config_instance
    _config_instance = None
