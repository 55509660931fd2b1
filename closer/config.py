"""
Centralized Configuration System
Environment-aware settings for the decision engines and the evaluator.
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
    Loads from environment variables with sensible defaults.
    Nothing here is required: the core must run with zero configuration.
    """

    # ============================================
    # INPUT LIMITS
    # ============================================
    max_message_length: int = 2000  # Inbound text is truncated before classification

    # ============================================
    # FUNNEL & WORKSPACE
    # ============================================
    workspace_snapshot_ttl_seconds: int = 300
    revival_after_hours: float = 168.0  # One week idle parks the conversation in revival
    leader_rank: str = "Silver"

    # ============================================
    # RULE PACKS
    # ============================================
    rule_pack_version: str = "2025.12"

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
