"""
Configuration management for the medical-information voice core.

Loads environment variables and provides a strongly-typed configuration object.
Validates required keys at startup.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
import structlog

from src.medinfo.retry import RetryPolicy

load_dotenv()

logger = structlog.get_logger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


@dataclass(frozen=True)
class Config:
    """Strongly-typed configuration object."""

    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    stt_model: str = "whisper-1"
    llm_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "nova"

    # Logging
    # - log_format: "json" | "console"; empty picks console at DEBUG, json otherwise
    log_level: str = "INFO"
    log_format: str = ""

    # Startup
    validate_model: bool = True

    # Product document
    # - relative paths resolve against the repository root
    product_info_path: str = "data/product-info.txt"

    # Language
    # - pivot_language is the language the reasoning stage works in
    pivot_language: str = "en"

    # Retry / timeout
    max_retries: int = 2
    retry_base_ms: int = 600
    stt_timeout_ms: int = 15_000
    llm_timeout_ms: int = 15_000
    translate_timeout_ms: int = 10_000
    tts_timeout_ms: int = 20_000

    # Stage limits
    max_history_messages: int = 20
    max_tts_chars: int = 4096
    min_audio_bytes: int = 100

    def policy_for(self, stage: str) -> RetryPolicy:
        """Build the retry policy for one of: stt, llm, translate, tts."""
        timeouts = {
            "stt": self.stt_timeout_ms,
            "llm": self.llm_timeout_ms,
            "translate": self.translate_timeout_ms,
            "tts": self.tts_timeout_ms,
        }
        if stage not in timeouts:
            raise ValueError(f"Unknown stage: {stage}")
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_base_ms / 1000.0,
            timeout=timeouts[stage] / 1000.0,
        )

    def validate(self) -> None:
        """Validate that all required configuration is present."""
        missing = []

        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.llm_model:
            missing.append("LLM_MODEL")
        if not self.stt_model:
            missing.append("STT_MODEL")
        if not self.tts_model:
            missing.append("TTS_MODEL")
        if not self.product_info_path:
            missing.append("PRODUCT_INFO_PATH")

        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}\n"
                "Please check your .env file."
            )

        if self.max_retries < 0:
            raise ConfigError(f"MAX_RETRIES must be >= 0, got {self.max_retries}")

        for key, value in (
            ("RETRY_BASE_MS", self.retry_base_ms),
            ("STT_TIMEOUT_MS", self.stt_timeout_ms),
            ("LLM_TIMEOUT_MS", self.llm_timeout_ms),
            ("TRANSLATE_TIMEOUT_MS", self.translate_timeout_ms),
            ("TTS_TIMEOUT_MS", self.tts_timeout_ms),
        ):
            if value <= 0:
                raise ConfigError(f"{key} must be > 0, got {value}")

        if self.log_format not in ("", "json", "console"):
            raise ConfigError(
                f"Invalid LOG_FORMAT '{self.log_format}'. Expected 'json' or 'console'."
            )

        # The ellipsis marker needs room inside the ceiling.
        if self.max_tts_chars <= 3:
            raise ConfigError(f"MAX_TTS_CHARS must be > 3, got {self.max_tts_chars}")

    def log_config(self) -> None:
        """Log configuration (without secrets)."""
        logger.info(
            "Configuration loaded",
            log_level=self.log_level,
            log_format=self.log_format or "auto",
            validate_model=self.validate_model,
            openai_base_url=self.openai_base_url,
            stt_model=self.stt_model,
            llm_model=self.llm_model,
            tts_model=self.tts_model,
            tts_voice=self.tts_voice,
            pivot_language=self.pivot_language,
            product_info_path=self.product_info_path,
            max_retries=self.max_retries,
            retry_base_ms=self.retry_base_ms,
            stt_timeout_ms=self.stt_timeout_ms,
            llm_timeout_ms=self.llm_timeout_ms,
            translate_timeout_ms=self.translate_timeout_ms,
            tts_timeout_ms=self.tts_timeout_ms,
            max_history_messages=self.max_history_messages,
            openai_key_set=bool(self.openai_api_key),
        )


def _get_bool(key: str, default: bool = False) -> bool:
    """Get a boolean from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _get_int(key: str, default: int) -> int:
    """Get an integer from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the application configuration.

    Uses lru_cache to ensure we only load config once.
    """
    pivot_raw = os.getenv("PIVOT_LANGUAGE", "en").strip().lower()

    config = Config(
        # OpenAI
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/"),
        stt_model=os.getenv("STT_MODEL", "whisper-1"),
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        tts_model=os.getenv("TTS_MODEL", "tts-1"),
        tts_voice=os.getenv("TTS_VOICE", "nova"),

        # Logging
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_format=os.getenv("LOG_FORMAT", "").strip().lower(),

        # Startup
        validate_model=_get_bool("VALIDATE_MODEL", True),

        # Product document
        product_info_path=os.getenv("PRODUCT_INFO_PATH", "data/product-info.txt"),

        # Language
        pivot_language=pivot_raw or "en",

        # Retry / timeout
        max_retries=_get_int("MAX_RETRIES", 2),
        retry_base_ms=_get_int("RETRY_BASE_MS", 600),
        stt_timeout_ms=_get_int("STT_TIMEOUT_MS", 15_000),
        llm_timeout_ms=_get_int("LLM_TIMEOUT_MS", 15_000),
        translate_timeout_ms=_get_int("TRANSLATE_TIMEOUT_MS", 10_000),
        tts_timeout_ms=_get_int("TTS_TIMEOUT_MS", 20_000),

        # Stage limits
        max_history_messages=_get_int("MAX_HISTORY_MESSAGES", 20),
        max_tts_chars=_get_int("MAX_TTS_CHARS", 4096),
        min_audio_bytes=_get_int("MIN_AUDIO_BYTES", 100),
    )

    return config


def init_config() -> Config:
    """
    Initialize and validate configuration.

    Call this at application startup to fail fast if config is invalid.
    """
    config = get_config()
    config.validate()
    config.log_config()
    return config
