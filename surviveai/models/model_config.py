"""Model catalog entries with capability flags."""

from dataclasses import dataclass
from typing import Any


@dataclass
class ModelConfig:
    """On-device model description from config/models.yaml."""

    # Identity
    model_id: str
    model_name: str
    description: str = ""
    size: str = ""

    # Ratings (1-5)
    quality: int = 3
    speed: int = 3

    # Capabilities
    supports_vision: bool = False
    supports_tool_calling: bool = False

    # Runtime
    context_size: int = 2048
    provider: str = "ollama"
    active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelConfig":
        """Build a config from a models.yaml entry.

        Args:
            data: Raw mapping for one model

        Returns:
            ModelConfig instance
        """
        return cls(
            model_id=data["model_id"],
            model_name=data.get("model_name", data["model_id"]),
            description=data.get("description", ""),
            size=data.get("size", ""),
            quality=data.get("quality", 3),
            speed=data.get("speed", 3),
            supports_vision=data.get("supports_vision", False),
            supports_tool_calling=data.get("supports_tool_calling", False),
            context_size=data.get("context_size", 2048),
            provider=data.get("provider", "ollama"),
            active=data.get("active", True),
        )
