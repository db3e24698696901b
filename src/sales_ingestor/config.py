import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_PRODUCTION_ENVIRONMENTS = {"prod", "production"}


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration loaded from environment variables."""

    # --- Required Variables ---
    processing_queue_url: str
    validation_failed_queue_url: str

    # --- Optional Variables with Defaults ---
    environment: str
    log_level: str
    sqs_batch_size: int
    incoming_prefix: str
    processed_prefix: str
    failed_prefix: str
    max_error_details: int
    consumer_delay_ms: int

    # --- Derived Properties ---
    @property
    def is_production(self) -> bool:
        return self.environment.lower() in _PRODUCTION_ENVIRONMENTS

    @property
    def consumer_delay_seconds(self) -> float:
        return self.consumer_delay_ms / 1000

    @classmethod
    def load_from_env(cls) -> "AppConfig":
        """
        Loads configuration from environment variables, performing validation and type casting.
        Fails fast with a ConfigurationError if anything is invalid.
        """
        missing = [
            name
            for name in ("PROCESSING_QUEUE_URL", "VALIDATION_FAILED_QUEUE_URL")
            if not os.getenv(name, "").strip()
        ]
        if missing:
            raise ConfigurationError(
                f"Configuration validation failed: {', '.join(missing)} required",
                context={"missing_variables": missing},
            )

        try:
            processing_queue_url = os.environ["PROCESSING_QUEUE_URL"].strip()
            validation_failed_queue_url = os.environ["VALIDATION_FAILED_QUEUE_URL"].strip()

            environment = os.getenv("ENVIRONMENT", "dev")

            # --- Handle special-case variables like log level ---
            log_level = os.getenv("LOG_LEVEL", "INFO").upper()
            allowed_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if log_level not in allowed_log_levels:
                raise ValueError(
                    f"LOG_LEVEL must be one of {allowed_log_levels}, not '{log_level}'"
                )

            # --- Handle numeric variables with validation ---
            sqs_batch_size = int(os.getenv("SQS_BATCH_SIZE", "10"))
            if sqs_batch_size <= 0:
                raise ValueError("SQS_BATCH_SIZE must be a positive integer.")

            max_error_details = int(os.getenv("MAX_ERROR_DETAILS", "50"))
            if max_error_details < 0:
                raise ValueError("MAX_ERROR_DETAILS must be a non-negative integer.")

            consumer_delay_ms = int(os.getenv("CONSUMER_DELAY_MS", "100"))
            if consumer_delay_ms < 0:
                raise ValueError("CONSUMER_DELAY_MS must be a non-negative integer.")

            # --- Handle the storage layout prefixes ---
            incoming_prefix = os.getenv("INCOMING_PREFIX", "incoming/")
            processed_prefix = os.getenv("PROCESSED_PREFIX", "processed/")
            failed_prefix = os.getenv("FAILED_PREFIX", "failed/")
            prefixes = (incoming_prefix, processed_prefix, failed_prefix)
            if not all(prefixes):
                raise ValueError("Storage prefixes must not be empty.")
            if len(set(prefixes)) != len(prefixes):
                raise ValueError(
                    "INCOMING_PREFIX, PROCESSED_PREFIX and FAILED_PREFIX must differ."
                )

        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid value for an environment variable: {e}"
            ) from e

        return cls(
            processing_queue_url=processing_queue_url,
            validation_failed_queue_url=validation_failed_queue_url,
            environment=environment,
            log_level=log_level,
            sqs_batch_size=sqs_batch_size,
            incoming_prefix=incoming_prefix,
            processed_prefix=processed_prefix,
            failed_prefix=failed_prefix,
            max_error_details=max_error_details,
            consumer_delay_ms=consumer_delay_ms,
        )


# --- Singleton Factory Function (Lazy-loaded and Cached) ---
@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """
    Loads the application configuration from environment variables.
    The result is cached using lru_cache, so the environment is only read once
    on the first call. This avoids import-time side effects.
    """
    logger.info("Loading application configuration from environment...")
    return AppConfig.load_from_env()
