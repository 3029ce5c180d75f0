"""
Configuration management using Pydantic Settings.
Environment-based configuration; every field can be set as ANEMONE_<FIELD>.
"""
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation and environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="ANEMONE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Anemone Agent", description="Application name")
    environment: str = Field(default="development", description="Environment: development, staging, production")

    # API
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=3001, ge=1, le=65535, description="API port")

    # Completion provider (OpenAI-compatible)
    openai_api_key: Optional[str] = Field(default=None, description="Completion provider API key")
    openai_api_url: str = Field(default="https://api.openai.com/v1", description="Completion provider base URL")
    openai_model: str = Field(default="gpt-4o", description="Chat model")
    openai_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    openai_max_tokens: int = Field(default=1000, ge=1, description="Max tokens per completion")
    openai_timeout: int = Field(default=60, ge=1, description="Provider request timeout in seconds")

    # Chain / token data
    sui_rpc_url: str = Field(default="https://fullnode.devnet.sui.io:443", description="Sui JSON-RPC endpoint")
    chain_timeout: int = Field(default=30, ge=1, description="Chain RPC timeout in seconds")
    blockberry_api_url: str = Field(default="https://api.blockberry.one", description="Blockberry REST base URL")
    blockberry_api_key: Optional[str] = Field(default=None, description="Blockberry API key")
    wallet_address: Optional[str] = Field(default=None, description="Agent wallet address recorded at startup")

    # Persistence
    db_path: str = Field(default=".anemone/agent.db", description="SQLite database path")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: json or text")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    event_log_path: str = Field(default=".anemone/agent_events.jsonl", description="Orchestration event JSONL path")
    event_log_buffer_size: int = Field(default=1000, ge=1, description="Events kept in memory")

    # Orchestration
    chat_wait_timeout_ms: int = Field(default=60000, ge=1, description="How long /chat waits for a reply")
    processing_retention_minutes: int = Field(default=30, ge=1, description="Processing status retention")
    history_rounds: int = Field(default=3, ge=0, description="Conversation rounds given to the planner")
    actionability_max_attempts: int = Field(default=3, ge=1, description="Re-prompts until a command marker appears")
    command_selection_mode: str = Field(default="structured", description="structured, marker or keyword")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production", "test"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "text"]
        if v not in allowed:
            raise ValueError(f"Log format must be one of {allowed}")
        return v

    @field_validator("command_selection_mode")
    @classmethod
    def validate_command_selection_mode(cls, v: str) -> str:
        allowed = ["structured", "marker", "keyword"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"Command selection mode must be one of {allowed}")
        return v_lower

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def processing_retention_seconds(self) -> float:
        return self.processing_retention_minutes * 60.0

    def get_log_level(self) -> int:
        """Get logging level as integer."""
        return getattr(logging, self.log_level)

    def ensure_directories(self) -> None:
        """Create parent directories for the database and event log."""
        for file_path in [self.db_path, self.event_log_path]:
            Path(file_path).parent.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
