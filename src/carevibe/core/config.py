"""
Application configuration with layered loading.

Configuration precedence (highest to lowest):
1. Environment variables
2. config.yml values
3. Default values defined here

The .env file is loaded first, so anything it defines behaves like a
regular environment variable.
"""
import os
import logging
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import timezone, timedelta
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _find_project_root() -> Path:
    """Find the project root directory."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "config.example.yml").exists() or (parent / "pyproject.toml").exists():
            return parent
    return Path(os.getenv("CAREVIBE_ROOT", os.getcwd()))


def _load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load configuration from YAML file if it exists."""
    if not config_path.exists():
        logger.debug(f"Config file not found: {config_path}")
        return {}

    try:
        import yaml
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        return config
    except Exception as e:
        logger.error(f"Error loading config file {config_path}: {e}")
        return {}


def _get_nested(d: Dict, *keys, default=None):
    """Safely get a nested dictionary value."""
    for key in keys:
        if isinstance(d, dict):
            d = d.get(key, default)
        else:
            return default
    return d if d is not None else default


def _env_or_yaml(env_key: str, yaml_config: Dict, *yaml_keys, default=None):
    """Get value from environment variable, falling back to YAML config, then default."""
    env_value = os.getenv(env_key)
    if env_value is not None:
        return env_value

    yaml_value = _get_nested(yaml_config, *yaml_keys)
    if yaml_value is not None:
        return yaml_value

    return default


def _as_list(value) -> List[str]:
    """Accept either a YAML list or a comma-separated env string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


PROJECT_ROOT = _find_project_root()
YAML_CONFIG = _load_yaml_config(PROJECT_ROOT / "config.yml")

DEFAULT_FALLBACK_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.1-70b-versatile",
    "mixtral-8x7b-32768",
]


class LLMConfig(BaseModel):
    """Remote text-completion (Groq, OpenAI-compatible) configuration."""
    base_url: str = _env_or_yaml("GROQ_BASE_URL", YAML_CONFIG, "llm", "base_url", default="https://api.groq.com/openai/v1")
    api_key: str = _env_or_yaml("GROQ_API_KEY", YAML_CONFIG, "llm", "api_key", default="")
    # Preferred model, tried before the fallback list
    model_name: Optional[str] = _env_or_yaml("GROQ_MODEL", YAML_CONFIG, "llm", "model_name", default=None)
    fallback_models: List[str] = _as_list(
        _env_or_yaml("GROQ_FALLBACK_MODELS", YAML_CONFIG, "llm", "fallback_models", default=DEFAULT_FALLBACK_MODELS)
    )
    # Small model used for JSON date extraction and message classification
    utility_model: str = _env_or_yaml("GROQ_UTILITY_MODEL", YAML_CONFIG, "llm", "utility_model", default="llama-3.1-8b-instant")
    temperature: float = float(_env_or_yaml("LLM_TEMPERATURE", YAML_CONFIG, "llm", "temperature", default=0.2))
    max_tokens: int = int(_env_or_yaml("LLM_MAX_TOKENS", YAML_CONFIG, "llm", "max_tokens", default=180))
    timeout_seconds: float = float(_env_or_yaml("LLM_TIMEOUT", YAML_CONFIG, "llm", "timeout_seconds", default=12))
    fallback_timeout_seconds: float = float(
        _env_or_yaml("LLM_FALLBACK_TIMEOUT", YAML_CONFIG, "llm", "fallback_timeout_seconds", default=8)
    )

    @property
    def candidate_models(self) -> List[str]:
        """Models in the order the completion loop tries them."""
        models = [self.model_name] if self.model_name else []
        for model in self.fallback_models:
            if model not in models:
                models.append(model)
        return models


class ChatConfig(BaseModel):
    """Chat orchestration configuration."""
    max_history_messages: int = int(_get_nested(YAML_CONFIG, "chat", "max_history_messages", default=24))
    context_ttl_seconds: int = int(_env_or_yaml("CAREVIBE_CONTEXT_TTL", YAML_CONFIG, "chat", "context_ttl_seconds", default=600))
    brief_max_lines: int = int(_get_nested(YAML_CONFIG, "chat", "brief_max_lines", default=4))
    brief_max_chars: int = int(_get_nested(YAML_CONFIG, "chat", "brief_max_chars", default=450))
    anonymous_user_id: str = _get_nested(YAML_CONFIG, "chat", "anonymous_user_id", default="anonymous")
    use_model_classification: bool = _as_bool(
        _env_or_yaml("CAREVIBE_MODEL_CLASSIFICATION", YAML_CONFIG, "chat", "use_model_classification", default=True)
    )


class UserConfig(BaseModel):
    """User-specific configuration."""
    timezone_offset_hours: int = int(_env_or_yaml(
        "CAREVIBE_TIMEZONE_OFFSET", YAML_CONFIG, "user", "timezone_offset_hours", default=0
    ))
    verbosity: Optional[str] = _env_or_yaml("CAREVIBE_VERBOSITY", YAML_CONFIG, "user", "verbosity", default=None)

    @property
    def timezone(self):
        """Get user's timezone as a timezone object."""
        return timezone(timedelta(hours=self.timezone_offset_hours))


class DataConfig(BaseModel):
    """Local data files used by the CLI."""
    metrics_file: Optional[str] = _env_or_yaml("CAREVIBE_METRICS_FILE", YAML_CONFIG, "data", "metrics_file", default=None)
    demo_user_id: str = _env_or_yaml("DEMO_UID", YAML_CONFIG, "data", "demo_user_id", default="demo-shared")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = _env_or_yaml("CAREVIBE_LOG_LEVEL", YAML_CONFIG, "logging", "level", default="INFO")
    format: str = _get_nested(YAML_CONFIG, "logging", "format", default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file: Optional[str] = _env_or_yaml("CAREVIBE_LOG_FILE", YAML_CONFIG, "logging", "file", default=None)


class Settings(BaseModel):
    """
    Application settings with layered configuration.

    Configuration is loaded from (in order of precedence):
    1. Environment variables
    2. config.yml
    3. Default values
    """

    llm: LLMConfig = Field(default_factory=LLMConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def user_timezone(self):
        return self.user.timezone


settings = Settings()


def get_config_source(key: str) -> str:
    """
    Get the source of a configuration value.

    Returns 'env', 'yaml', or 'default'.
    """
    env_key = key.upper().replace(".", "_")
    if os.getenv(env_key) is not None:
        return "env"

    keys = key.split(".")
    yaml_value = _get_nested(YAML_CONFIG, *keys)
    if yaml_value is not None:
        return "yaml"

    return "default"
