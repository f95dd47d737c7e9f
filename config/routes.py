"""LLM route configuration loaded from ``app_config.json``."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Type

from pydantic import BaseModel, Field, model_validator


class LlmRoute(BaseModel):
    """One OpenAI-compatible chat-completions endpoint."""

    name: str
    base_url: str
    endpoint: str = "/v1/chat/completions"
    model: str
    timeout_s: float = Field(default=60.0, ge=0.1)
    max_retries: int = Field(default=2, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    enforce_json: bool = True


class AppConfig(BaseModel):
    """Route table plus the model-key to route mapping.

    ``default_route`` serves every model key that has no explicit
    ``registry`` entry.
    """

    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str] = Field(default_factory=dict)
    default_route: Optional[str] = None

    @model_validator(mode="after")
    def _check_default(self) -> "AppConfig":
        if self.default_route is not None and self.default_route not in self.llm_routes:
            raise ValueError(f"default_route '{self.default_route}' is not a configured route")
        return self

    def route_for(self, key: str) -> LlmRoute:
        route_id = self.registry.get(key, self.default_route)
        if route_id is None:
            raise KeyError(f"Registry entry missing for '{key}'")
        if route_id not in self.llm_routes:
            raise KeyError(f"Route '{route_id}' missing for '{key}'")
        return self.llm_routes[route_id]


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = path.read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_registry(
    cfg: AppConfig, schemas: Dict[str, Type[BaseModel]]
) -> Dict[str, Tuple[LlmRoute, Type[BaseModel]]]:
    """Pair each model key with its route and output schema."""

    resolved: Dict[str, Tuple[LlmRoute, Type[BaseModel]]] = {}
    for target, schema in schemas.items():
        if not issubclass(schema, BaseModel):
            raise TypeError(f"Schema for '{target}' must be BaseModel")
        resolved[target] = (cfg.route_for(target), schema)
    return resolved


def load_app_registry(
    path: Path, schemas: Dict[str, Type[BaseModel]]
) -> Dict[str, Tuple[LlmRoute, Type[BaseModel]]]:
    """Load configuration and build registry."""

    cfg = load_config(path)
    return resolve_registry(cfg, schemas)


def missing_keys(cfg: AppConfig, keys: Iterable[str]) -> list[str]:
    missing: list[str] = []
    for key in keys:
        try:
            cfg.route_for(key)
        except KeyError:
            missing.append(key)
    return missing
