"""YAML-driven scoring policy for interview summaries."""
from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

CONFIG_PATH = os.environ.get("SCORING_POLICY", str(Path(__file__).with_name("scoring.yaml")))

CATEGORIES: Tuple[str, ...] = ("content", "logic", "communication", "understanding", "enthusiasm")

DEFAULT_POLICY: dict = {
    "version": 1,
    "weights": {
        "content": 0.25,
        "logic": 0.20,
        "communication": 0.20,
        "understanding": 0.20,
        "enthusiasm": 0.15,
    },
    "grades": [
        {"grade": "S", "min": 90, "pass_likelihood": "Very likely to pass"},
        {"grade": "A+", "min": 85, "pass_likelihood": "Likely to pass"},
        {"grade": "A", "min": 80, "pass_likelihood": "Likely to pass"},
        {"grade": "B+", "min": 75, "pass_likelihood": "Good chance of passing"},
        {"grade": "B", "min": 70, "pass_likelihood": "Could go either way"},
        {"grade": "C+", "min": 65, "pass_likelihood": "Could go either way"},
        {"grade": "C", "min": 60, "pass_likelihood": "Needs more preparation"},
        {"grade": "D", "min": 0, "pass_likelihood": "Significant preparation needed"},
    ],
    "duration": {"min_seconds": 30, "max_seconds": 180, "penalty_factor": 0.9},
    "narrative": {"max_points": 3},
}


@dataclass(frozen=True)
class GradeBand:
    grade: str
    min_score: int
    pass_likelihood: str


@dataclass(frozen=True)
class ScoringPolicy:
    """Immutable snapshot of the weights and thresholds used by the aggregator."""

    weights: Dict[str, float]
    grades: List[GradeBand]
    min_answer_seconds: float = 30.0
    max_answer_seconds: float = 180.0
    duration_penalty: float = 0.9
    max_points: int = 3
    source: str = field(default="defaults", compare=False)

    def band_for(self, total_score: int) -> GradeBand:
        for band in self.grades:
            if total_score >= band.min_score:
                return band
        return self.grades[-1]


def _load_yaml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def policy_from_dict(cfg: dict, source: str = "defaults") -> ScoringPolicy:
    """Build a policy from a raw mapping, filling gaps from the defaults."""

    weights_raw = {**DEFAULT_POLICY["weights"], **(cfg.get("weights") or {})}
    unknown = set(weights_raw) - set(CATEGORIES)
    if unknown:
        raise ValueError(f"Unknown scoring categories: {sorted(unknown)}")
    weights = {name: float(weights_raw[name]) for name in CATEGORIES}
    if any(value < 0 for value in weights.values()) or sum(weights.values()) <= 0:
        raise ValueError("Scoring weights must be non-negative and not all zero")

    grades = [
        GradeBand(
            grade=str(entry["grade"]),
            min_score=int(entry["min"]),
            pass_likelihood=str(entry.get("pass_likelihood", "")),
        )
        for entry in (cfg.get("grades") or DEFAULT_POLICY["grades"])
    ]
    grades.sort(key=lambda band: band.min_score, reverse=True)
    if not grades or grades[-1].min_score > 0:
        raise ValueError("Grade bands must cover a score of 0")

    duration = {**DEFAULT_POLICY["duration"], **(cfg.get("duration") or {})}
    narrative = {**DEFAULT_POLICY["narrative"], **(cfg.get("narrative") or {})}
    return ScoringPolicy(
        weights=weights,
        grades=grades,
        min_answer_seconds=float(duration["min_seconds"]),
        max_answer_seconds=float(duration["max_seconds"]),
        duration_penalty=float(duration["penalty_factor"]),
        max_points=int(narrative["max_points"]),
        source=source,
    )


class ScoringPolicyLoader:
    """Load the YAML policy and reload it when the file timestamp changes."""

    def __init__(self, path: str = CONFIG_PATH):
        self.path = path
        self._mtime = 0.0
        self._policy: Optional[ScoringPolicy] = None
        self.reload_if_changed(force=True)

    def reload_if_changed(self, force: bool = False) -> None:
        try:
            stat = os.stat(self.path)
            if not force and stat.st_mtime <= self._mtime:
                return
            cfg = _load_yaml(self.path)
            self._mtime = stat.st_mtime
            source = self.path
        except FileNotFoundError:
            if self._policy is not None and not force:
                return
            cfg = DEFAULT_POLICY
            self._mtime = time.time()
            source = "defaults"
        self._policy = policy_from_dict(cfg, source=source)

    def policy(self) -> ScoringPolicy:
        self.reload_if_changed()
        if self._policy is None:
            raise RuntimeError("scoring policy failed to load")
        return self._policy


_loader: Optional[ScoringPolicyLoader] = None


def scoring_policy() -> ScoringPolicy:
    """Return the current process-wide scoring policy."""

    global _loader
    if _loader is None:
        _loader = ScoringPolicyLoader()
    return _loader.policy()


__all__ = [
    "CATEGORIES",
    "DEFAULT_POLICY",
    "GradeBand",
    "ScoringPolicy",
    "ScoringPolicyLoader",
    "policy_from_dict",
    "scoring_policy",
]
