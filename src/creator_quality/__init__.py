"""Creator quality package namespace."""

from importlib import import_module
from typing import Any

__all__ = [
    "Platform",
    "CanonicalRecord",
    "QualityConfig",
    "load_config",
    "DataNormalizer",
    "QualityScorer",
    "DuplicateDetector",
    "DataQualityValidator",
    "validate_creator_profile",
]


def __getattr__(name: str) -> Any:
    if name in ("Platform", "CanonicalRecord"):
        module = import_module("src.creator_quality.models")
        return getattr(module, name)
    elif name in ("QualityConfig", "load_config"):
        module = import_module("src.creator_quality.config")
        return getattr(module, name)
    elif name == "DataNormalizer":
        module = import_module("src.creator_quality.normalizer")
        return getattr(module, name)
    elif name == "QualityScorer":
        module = import_module("src.creator_quality.quality_scorer")
        return getattr(module, name)
    elif name == "DuplicateDetector":
        module = import_module("src.creator_quality.duplicate_detector")
        return getattr(module, name)
    elif name in ("DataQualityValidator", "validate_creator_profile"):
        module = import_module("src.creator_quality.validator")
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
