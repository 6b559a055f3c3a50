"""Configuration for the creator quality pipeline.

All thresholds and weights default to the values the scorer, detector and
validator were tuned with. A YAML file can override any subset of them::

    scoring:
      min_required_fields: 80
    duplicates:
      min_similarity: 30
      weights:
        username: 0.30
    validation:
      min_overall_score: 40
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .logging_config import get_logger

CONFIG_ENV_VAR = "CREATOR_QUALITY_CONFIG"
# Shipped beside the package in the project tree, independent of the working directory
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "quality_thresholds.yaml"

logger = get_logger("config")


def _default_optional_field_weights() -> Dict[str, int]:
    return {
        "bio": 15,
        "profile_image_url": 10,
        "location": 10,
        "website": 15,
        "is_verified": 10,
        "follower_count": 20,
        "following_count": 10,
        "metrics": 10,
    }


def _default_duplicate_weights() -> Dict[str, float]:
    return {
        "username": 0.30,
        "display_name": 0.25,
        "bio": 0.20,
        "profile_image_url": 0.15,
        "location": 0.05,
        "follower_count": 0.05,
    }


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and thresholds used by the quality scorer."""

    optional_field_weights: Dict[str, int] = field(default_factory=_default_optional_field_weights)

    completeness_required_weight: float = 0.7
    completeness_optional_weight: float = 0.3
    reliability_suspicious_weight: float = 0.6
    reliability_platform_weight: float = 0.4
    overall_completeness_weight: float = 0.4
    overall_consistency_weight: float = 0.3
    overall_reliability_weight: float = 0.3

    # Sub-scores below these values produce a recommendation
    min_required_fields: int = 80
    min_optional_fields: int = 60
    min_data_consistency: int = 70
    min_suspicious_metrics: int = 80

    # Banner thresholds keyed off the overall score
    poor_below: int = 50
    fair_below: int = 70
    excellent_from: int = 90


@dataclass(frozen=True)
class DuplicateConfig:
    """Field weights and cut-offs used by the duplicate detector."""

    weights: Dict[str, float] = field(default_factory=_default_duplicate_weights)
    min_similarity: int = 30

    high_confidence_similarity: int = 80
    medium_confidence_similarity: int = 60
    merge_similarity: int = 85
    investigate_similarity: int = 60

    display_name_penalty: int = 20
    bio_preview_length: int = 50


@dataclass(frozen=True)
class ValidationConfig:
    """Validity gate, ingestion gate and batch reporting settings."""

    min_overall_score: int = 40
    exact_duplicate_similarity: int = 95
    max_follower_count: int = 1_000_000_000
    min_username_length: int = 2
    blocked_username_terms: Tuple[str, ...] = ("test", "demo")
    max_transformations: int = 3
    common_issue_limit: int = 10


@dataclass(frozen=True)
class QualityConfig:
    """Immutable bundle of every tunable used by the pipeline."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @classmethod
    def default(cls) -> "QualityConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "QualityConfig":
        """Build a configuration, overriding defaults with ``data``."""
        data = data or {}
        return cls(
            scoring=_apply_overrides(ScoringConfig(), data.get("scoring")),
            duplicates=_apply_overrides(DuplicateConfig(), data.get("duplicates")),
            validation=_apply_overrides(ValidationConfig(), data.get("validation")),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "QualityConfig":
        """Load configuration from a YAML file; a missing file yields defaults."""
        config_path = Path(path)
        if not config_path.exists():
            logger.debug(f"Config file {config_path} not found, using defaults")
            return cls.default()

        with open(config_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}

        if not isinstance(data, Mapping):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        logger.info(f"Loaded quality config from {config_path}")
        return cls.from_dict(data)


def _apply_overrides(section: Any, overrides: Optional[Mapping[str, Any]]) -> Any:
    if not overrides:
        return section
    if not isinstance(overrides, Mapping):
        raise ValueError(f"Config section for {type(section).__name__} must be a mapping")

    known = {f.name for f in fields(section)}
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning(f"Ignoring unknown {type(section).__name__} option: {key}")
            continue
        current = getattr(section, key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            # Partial weight tables keep the defaults for unlisted fields
            merged = dict(current)
            merged.update(value)
            changes[key] = merged
        elif isinstance(current, tuple) and isinstance(value, (list, tuple)):
            changes[key] = tuple(value)
        else:
            changes[key] = value
    return replace(section, **changes)


def load_config(path: Optional[Union[str, Path]] = None) -> QualityConfig:
    """Load configuration from ``path``, ``$CREATOR_QUALITY_CONFIG`` or defaults."""
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
    return QualityConfig.from_file(path)
