"""Bind the AI turn service registry keys to configured LLM routes."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Type

from pydantic import BaseModel

from agents.types import EvaluationPlan, NarrativePlan, NextQuestionPlan, OpeningPlan
from config.registry import EVALUATION_KEY, NARRATIVE_KEY, NEXT_QUESTION_KEY, OPENING_KEY, bind_model
from config.routes import LlmRoute, load_app_registry
from llm_gateway import call

logger = logging.getLogger(__name__)

SCHEMAS: Dict[str, Type[BaseModel]] = {
    OPENING_KEY: OpeningPlan,
    NEXT_QUESTION_KEY: NextQuestionPlan,
    EVALUATION_KEY: EvaluationPlan,
    NARRATIVE_KEY: NarrativePlan,
}


def _route_caller(route: LlmRoute) -> Callable[..., Any]:
    def _call(*, prompt: str, schema: Type[BaseModel]) -> BaseModel:
        return call(prompt, schema, cfg=route)

    return _call


def bind_gateway_models(config_path: Path) -> Dict[str, str]:
    """Bind every model key to the gateway; returns ``{key: route name}``."""

    registry = load_app_registry(config_path, SCHEMAS)
    bound: Dict[str, str] = {}
    for key, (route, _schema) in registry.items():
        bind_model(key, _route_caller(route))
        bound[key] = route.name
    logger.info("Bound %d model keys from %s", len(bound), config_path)
    return bound


__all__ = ["SCHEMAS", "bind_gateway_models"]
