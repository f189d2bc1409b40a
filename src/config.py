"""
Centralized Configuration System
Environment-aware settings for the extraction and vetting pipeline.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # OPENAI CONFIGURATION
    # ============================================
    openai_api_key: str = ""

    # ============================================
    # MODEL SELECTION (by collaborator role)
    # ============================================
    extraction_model: str = "openai:gpt-4o-mini"
    website_model: str = "openai:gpt-4o-mini"
    identity_model: str = "openai:gpt-4o-mini"

    # ============================================
    # LLM RESILIENCE
    # ============================================
    max_retries: int = 3
    retry_min_wait_seconds: int = 2
    retry_max_wait_seconds: int = 10
    llm_timeout_seconds: float = 20.0
    circuit_breaker_failure_threshold: int = 5
    circuit_breaker_recovery_timeout: float = 60.0
    circuit_breaker_half_open_max_calls: int = 1

    # ============================================
    # VALIDATOR BUDGETS (seconds)
    # ============================================
    website_timeout_seconds: float = 30.0
    identity_timeout_seconds: float = 20.0
    budget_timeout_seconds: float = 20.0

    # ============================================
    # SITE FETCHING
    # ============================================
    site_fetch_timeout_seconds: float = 15.0
    site_fetch_user_agent: str = "ProspectVetting-Analyzer/1.0 (Business Intelligence Bot)"
    site_fetch_max_chars: int = 8000  # Cleaned page text sent to the summarizer

    # ============================================
    # FRESHNESS WINDOWS
    # ============================================
    domain_cache_ttl_days: int = 30
    snapshot_freshness_hours: int = 24

    # ============================================
    # MONGODB
    # ============================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "prospect_vetting"
    mongodb_max_pool_size: int = 10
    mongodb_min_pool_size: int = 1
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
