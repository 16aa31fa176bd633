"""Configuration management for installpilot."""

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


AGENT_ENV_PREFIX: Dict[str, str] = {
    "decision_engine": "INSTALLPILOT_DECISION_ENGINE",
}


class AgentModelConfig(BaseModel):
    """Per-agent model configuration."""

    model: str
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    reasoning_level: str = Field(default="low")

    @field_validator("reasoning_level")
    @classmethod
    def validate_reasoning_level(cls, value: str) -> str:
        """Ensure reasoning level is valid."""
        allowed = {"low", "medium", "high"}
        if value not in allowed:
            raise ValueError(
                f"Invalid reasoning level: {value}. Allowed values: {sorted(allowed)}"
            )
        return value


DEFAULT_AGENT_MODELS: Dict[str, AgentModelConfig] = {
    "decision_engine": AgentModelConfig(
        model="gpt-4o",
        temperature=0.2,
        reasoning_level="low",
    ),
}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI Configuration
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_model: str = Field(
        default="gpt-4o", description="Default OpenAI model"
    )
    openai_temperature: float = Field(
        default=0.2, ge=0.0, le=2.0, description="Default temperature"
    )
    openai_max_retries: int = Field(
        default=2, ge=0, description="Maximum API retry attempts inside one request"
    )
    openai_request_timeout_seconds: int = Field(
        default=120,
        ge=5,
        description="Request timeout for OpenAI API calls in seconds",
    )
    agent_models: Dict[str, AgentModelConfig] = Field(
        default_factory=dict,
        description="Per-agent OpenAI model configuration",
    )

    # Control Loop Configuration
    loop_max_attempts: int = Field(
        default=60, ge=1, description="Attempt ceiling per control loop session"
    )
    loop_wait_backoff_seconds: float = Field(
        default=5.0, ge=0.0, description="Pause applied when the model answers 'wait'"
    )
    capture_timeout_seconds: float = Field(
        default=15.0, gt=0.0, description="Timeout for a single screen capture"
    )
    decision_timeout_seconds: float = Field(
        default=180.0, gt=0.0, description="Timeout for a single decision request"
    )
    action_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for a single input action"
    )

    # Lifecycle Configuration
    mount_timeout_seconds: float = Field(
        default=120.0, gt=0.0, description="Timeout for mount and unmount calls"
    )
    detection_timeout_seconds: float = Field(
        default=30.0, gt=0.0, description="Timeout for installed-application detection"
    )

    # Desktop Configuration
    desktop_screenshot_dir: Path = Field(
        default=Path("debug_screenshots/desktop"),
        description="Directory for desktop screenshots",
    )
    desktop_display: Optional[str] = Field(
        default=None,
        description="Override DISPLAY for desktop capture/input (e.g., ':1')",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )
    sanitize_logs: bool = Field(
        default=True, description="Redact secrets and typed text from logs"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.desktop_screenshot_dir.mkdir(parents=True, exist_ok=True)

    @model_validator(mode="after")
    def populate_agent_models(self) -> "Settings":
        """Populate agent model configurations from defaults and environment."""
        env = os.environ

        configured_models: Dict[str, AgentModelConfig] = {}
        openai_model_env_set = "OPENAI_MODEL" in env

        existing_models = self.agent_models.copy()

        for agent_name, prefix in AGENT_ENV_PREFIX.items():
            base_config = existing_models.get(agent_name, DEFAULT_AGENT_MODELS[agent_name])
            config_payload = base_config.model_dump()

            model_override = env.get(f"{prefix}_MODEL")
            if model_override:
                config_payload["model"] = model_override
            elif openai_model_env_set:
                config_payload["model"] = self.openai_model

            temperature_override = env.get(f"{prefix}_TEMPERATURE")
            if temperature_override:
                try:
                    config_payload["temperature"] = float(temperature_override)
                except ValueError as exc:
                    raise ValueError(
                        f"Invalid temperature for {agent_name}: {temperature_override}"
                    ) from exc

            reasoning_override = env.get(f"{prefix}_REASONING_LEVEL")
            if reasoning_override:
                config_payload["reasoning_level"] = reasoning_override.lower()

            configured_models[agent_name] = AgentModelConfig(**config_payload)

        for agent_name, config in existing_models.items():
            if agent_name not in configured_models:
                configured_models[agent_name] = config

        self.agent_models = configured_models
        return self

    def get_agent_model_config(self, agent_name: str) -> AgentModelConfig:
        """Return agent-specific model configuration."""
        if agent_name in self.agent_models:
            return self.agent_models[agent_name]

        return AgentModelConfig(
            model=self.openai_model,
            temperature=self.openai_temperature,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    settings = Settings()
    settings.create_directories()
    return settings
