"""Configuration package for the mock interview engine."""
from .registry import (
    EVALUATION_KEY,
    MODEL_KEYS,
    NARRATIVE_KEY,
    NEXT_QUESTION_KEY,
    OPENING_KEY,
    bind_model,
    get_model,
)
from .routes import AppConfig, LlmRoute, load_app_registry, load_config, resolve_registry
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_app_registry",
    "load_config",
    "resolve_registry",
    "EVALUATION_KEY",
    "MODEL_KEYS",
    "NARRATIVE_KEY",
    "NEXT_QUESTION_KEY",
    "OPENING_KEY",
    "bind_model",
    "get_model",
    "Settings",
    "settings",
]
