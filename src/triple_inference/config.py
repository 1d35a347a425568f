"""
Engine configuration.

Loads environment variables (prefix TRIPLE_INFERENCE_) and an optional
.env file into typed settings.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_INHERITABLE_RELATIONS = ["HAS_PROPERTY", "CAN", "HAS_ABILITY"]


class EngineSettings(BaseSettings):
    """Inference engine settings loaded from environment variables."""

    # ----- Search bounds -----
    recursion_horizon: int = Field(
        default=10,
        ge=1,
        description="Default max_depth for transitive, composition and inheritance search.",
    )
    max_iterations: int = Field(
        default=100,
        ge=1,
        description="Default iteration bound for forward chaining.",
    )

    # ----- Strategies -----
    inheritable_relations: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INHERITABLE_RELATIONS),
        description="Relations a subject inherits from its IS_A ancestors.",
    )

    model_config = {
        "env_prefix": "TRIPLE_INFERENCE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    settings = EngineSettings()
    logger.debug(
        "Engine settings: recursion_horizon=%d max_iterations=%d",
        settings.recursion_horizon,
        settings.max_iterations,
    )
    return settings
