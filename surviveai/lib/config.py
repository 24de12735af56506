"""Configuration loader for the model catalog, tools, and environment variables."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from surviveai.models.model_config import ModelConfig

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "qwen3:0.6b"


@dataclass
class ToolConfig:
    """Tool configuration."""

    enabled: bool
    config: dict[str, Any]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigLoader:
    """Loads and manages application configuration."""

    def __init__(self, config_dir: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_dir: Directory containing config files (default: ./config)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_dir = Path(config_dir or "config")
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

        self.models = self._load_models()
        self.tools = self._load_tools()
        self.env = self._load_env_vars()

    def _read_yaml(self, filename: str) -> dict[str, Any]:
        path = self.config_dir / filename
        if not path.exists():
            logger.warning(f"Config not found: {path}")
            return {}

        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _load_models(self) -> dict[str, ModelConfig]:
        """Load the model catalog from models.yaml."""
        data = self._read_yaml("models.yaml")

        models = {}
        for model_data in data.get("models", []):
            config = ModelConfig.from_dict(model_data)
            models[config.model_id] = config

        logger.info(f"Loaded {len(models)} model configurations")
        return models

    def _load_tools(self) -> dict[str, ToolConfig]:
        """Load tool configurations from tools.yaml."""
        data = self._read_yaml("tools.yaml")

        tools = {}
        for tool_name, tool_data in (data.get("tools") or {}).items():
            tools[tool_name] = ToolConfig(
                enabled=tool_data.get("enabled", True),
                config=tool_data.get("config", {}),
            )

        logger.info(f"Loaded {len(tools)} tool configurations")
        return tools

    def _load_env_vars(self) -> dict[str, Any]:
        """Load environment variables."""
        env_vars = {
            # Engine
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            "active_model": os.getenv("ACTIVE_MODEL", DEFAULT_MODEL_ID),
            "model_max_tokens": int(os.getenv("MODEL_MAX_TOKENS", "1024")),
            "model_context_size": int(os.getenv("MODEL_CONTEXT_SIZE", "2048")),
            "response_timeout": float(os.getenv("RESPONSE_TIMEOUT", "60")),
            # Storage
            "db_path": os.getenv("SURVIVEAI_DB_PATH", "./data/surviveai.db"),
            # Knowledge
            "knowledge_search_limit": int(os.getenv("KNOWLEDGE_SEARCH_LIMIT", "3")),
            "knowledge_data_dir": os.getenv("KNOWLEDGE_DATA_DIR"),
            "use_cached_answers": _env_bool("USE_CACHED_ANSWERS", False),
            "include_few_shot": _env_bool("INCLUDE_FEW_SHOT", False),
        }

        if env_vars["response_timeout"] <= 0:
            raise ValueError("RESPONSE_TIMEOUT must be positive")

        logger.debug("Loaded environment variables")
        return env_vars

    def get_model(self, model_id: str) -> ModelConfig | None:
        """Get model configuration by ID."""
        return self.models.get(model_id)

    def get_active_model(self) -> ModelConfig:
        """Get the configured model, falling back to a bare config when uncatalogued."""
        model_id = self.env["active_model"]
        config = self.models.get(model_id)
        if config is None:
            logger.warning(f"Model {model_id} not in catalog, using defaults")
            config = ModelConfig(
                model_id=model_id,
                model_name=model_id,
                context_size=self.env["model_context_size"],
            )
        return config

    def get_tool(self, tool_name: str) -> ToolConfig | None:
        return self.tools.get(tool_name)

    def is_tool_enabled(self, tool_name: str) -> bool:
        tool = self.tools.get(tool_name)
        return tool.enabled if tool else True

    def get_env(self, key: str, default: Any = None) -> Any:
        """Get environment variable value."""
        return self.env.get(key, default)
