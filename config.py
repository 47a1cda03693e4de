"""Configuration and settings for the Intent Spec compiler."""

import os
from pathlib import Path
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class ModelConfig:
    """Model configuration for the analysis stage.

    Any provider the LLMClient supports can be used; the provider is detected
    from the model name.
    """

    # Model asked to turn a reduced recording into an Intent Spec
    analysis: str = "claude-sonnet-4-5-20250929"

    @classmethod
    def all_same(cls, model: str) -> "ModelConfig":
        """Create a config using the same model for all stages."""
        return cls(analysis=model)

    @classmethod
    def cost_optimized(cls) -> "ModelConfig":
        """Create a cost-optimized config using a fast model."""
        return cls(analysis="gemini-3-flash-preview")


@dataclass
class Config:
    """Application configuration."""

    # API Keys (loaded from .env file)
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    google_api_key: str = ""

    # Storage paths
    specs_dir: Path = Path("./specs")
    logs_dir: Path = Path("./logs")

    # Analysis service settings
    models: ModelConfig = field(default_factory=ModelConfig)
    max_tokens: int = 8192
    strategy: str = "model_with_fallback"  # model | rule_based | model_with_fallback
    service_timeout: float = 90.0  # seconds
    max_service_messages: int = 8

    # Reduction limits
    max_actions: int = 100
    reduction_budget: int = 40_000  # bytes
    prompt_ceiling: int = 50_000  # bytes

    def __post_init__(self):
        """Load API keys and overrides from environment after initialization."""
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY", self.anthropic_api_key)
        self.openai_api_key = os.getenv("OPENAI_API_KEY", self.openai_api_key)
        self.google_api_key = os.getenv("GOOGLE_API_KEY", self.google_api_key)

        self.models.analysis = os.getenv("INTENT_MODEL", self.models.analysis)
        self.strategy = os.getenv("INTENT_STRATEGY", self.strategy)
        self.service_timeout = _env_float("INTENT_SERVICE_TIMEOUT", self.service_timeout)
        self.max_service_messages = _env_int("INTENT_MAX_SERVICE_MESSAGES", self.max_service_messages)

        if self.strategy not in ("model", "rule_based", "model_with_fallback"):
            raise ValueError(f"Unknown INTENT_STRATEGY: {self.strategy!r}")

    @property
    def has_api_key(self) -> bool:
        """Whether any provider key is configured."""
        return bool(self.anthropic_api_key or self.openai_api_key or self.google_api_key)

    def ensure_dirs(self) -> None:
        """Create output directories on demand."""
        self.specs_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


# Global config instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config


def update_config(**kwargs) -> Config:
    """Update configuration with new values."""
    global config
    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
    return config
