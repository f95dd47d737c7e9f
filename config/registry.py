"""In-memory model registry for the AI turn service."""
from typing import Any, Callable, Dict

_REGISTRY: Dict[str, Callable[..., Any]] = {}


def bind_model(key: str, fn: Callable[..., Any]) -> None:
    """Bind a callable implementation to a registry key."""
    _REGISTRY[key] = fn


def get_model(key: str) -> Callable[..., Any]:
    """Retrieve a callable from the registry.

    Raises:
        KeyError: If no callable has been bound for ``key``.
    """

    if key not in _REGISTRY:
        raise KeyError(f"Model not bound in registry: {key}")
    return _REGISTRY[key]


def is_bound(key: str) -> bool:
    return key in _REGISTRY


def unbind_all() -> None:
    _REGISTRY.clear()


OPENING_KEY = "mock_interview.opening"
NEXT_QUESTION_KEY = "mock_interview.next_question"
EVALUATION_KEY = "mock_interview.evaluate_answer"
NARRATIVE_KEY = "mock_interview.summary_narrative"

MODEL_KEYS = (OPENING_KEY, NEXT_QUESTION_KEY, EVALUATION_KEY, NARRATIVE_KEY)
