"""Command line runner for the creator quality pipeline.

Reads raw scraped records from a JSON file, validates them as a single
record or as a batch, and prints the report as JSON. The exit code reflects
the verdict so the runner can gate shell pipelines.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import QualityConfig, load_config
from .logging_config import get_logger, setup_logging
from .models import CanonicalRecord, Platform
from .validator import DataQualityValidator

logger = get_logger("runner")

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_USAGE = 2

CAPABILITIES = [
    "Data normalization and standardization",
    "Quality scoring (completeness, consistency, reliability)",
    "Duplicate detection and similarity analysis",
    "Ingestion gate for failed scrapes",
    "Batch processing with statistics",
]


class InputError(ValueError):
    """Raised when the runner's input files cannot be used."""


@dataclass
class RunSummary:
    """Outcome of one runner invocation."""

    mode: str
    total_profiles: int = 0
    valid_profiles: int = 0
    output: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def exit_code(self) -> int:
        """0 when every profile is valid, 1 when any is not, 2 on input errors."""
        if self.errors:
            return EXIT_USAGE
        if self.valid_profiles < self.total_profiles:
            return EXIT_INVALID
        return EXIT_VALID

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.output)
        if self.errors:
            data["errors"] = list(self.errors)
        data["exitCode"] = self.exit_code()
        return data


def load_json(path: Path) -> Any:
    """Read a JSON document, raising :class:`InputError` on failure."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise InputError(f"Input file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise InputError(f"Invalid JSON in {path}: {exc}") from exc


class QualityRunner:
    """Drives the validator from already-loaded JSON documents."""

    def __init__(self, validator: Optional[DataQualityValidator] = None) -> None:
        self.validator = validator or DataQualityValidator()

    def build_pool(self, entries: Any, default_platform: Optional[str]) -> List[CanonicalRecord]:
        """Normalize known records into canonical form for duplicate checks."""
        if not isinstance(entries, list):
            raise InputError("Existing profiles file must contain a JSON array")

        pool: List[CanonicalRecord] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                logger.warning("Skipping existing profile that is not an object")
                continue
            platform = entry.get("platform") or default_platform
            result = self.validator.normalizer.normalize(entry, platform)
            if result.record is None:
                logger.warning(f"Skipping existing profile: {'; '.join(result.issues)}")
                continue
            pool.append(result.record)

        logger.info(f"Loaded {len(pool)} existing profiles for duplicate checks")
        return pool

    def run_single(
        self,
        raw: Any,
        platform: Optional[str],
        existing: Optional[Sequence[CanonicalRecord]] = None,
    ) -> RunSummary:
        summary = RunSummary(mode="single")
        if not isinstance(raw, Mapping):
            summary.errors.append("Single mode expects a JSON object")
            return summary

        platform = platform or raw.get("platform")
        if not platform:
            summary.errors.append("Platform is required (use --platform or a 'platform' field)")
            return summary

        report = self.validator.validate_one(raw, platform, existing)
        decision = self.validator.is_data_acceptable(raw, platform)

        summary.total_profiles = 1
        summary.valid_profiles = 1 if report.is_valid else 0
        summary.output = {
            "success": True,
            "mode": "single",
            "report": report.to_dict(),
            "ingestion": decision.to_dict(),
        }
        return summary

    def run_batch(
        self,
        entries: Any,
        platform: Optional[str],
        *,
        check_duplicates: bool = True,
        max_workers: Optional[int] = None,
    ) -> RunSummary:
        summary = RunSummary(mode="batch")
        if not isinstance(entries, list):
            summary.errors.append("Batch mode expects a JSON array")
            return summary

        items = [self._batch_item(entry, platform) for entry in entries]
        batch = self.validator.validate_batch(
            items, check_duplicates=check_duplicates, max_workers=max_workers
        )

        summary.total_profiles = batch.total_profiles
        summary.valid_profiles = batch.valid_profiles
        summary.output = {
            "success": True,
            "mode": "batch",
            "report": batch.to_dict(include_reports=True),
        }
        return summary

    @staticmethod
    def _batch_item(entry: Any, default_platform: Optional[str]) -> Tuple[Any, Any]:
        if isinstance(entry, Mapping) and ("raw" in entry or "data" in entry):
            raw = entry["raw"] if "raw" in entry else entry["data"]
            return raw, entry.get("platform") or default_platform
        if isinstance(entry, Mapping):
            return entry, entry.get("platform") or default_platform
        return entry, default_platform


def describe(config: QualityConfig) -> Dict[str, Any]:
    """Service description printed by ``--info``."""
    return {
        "service": "Creator Data Quality Validation",
        "supportedPlatforms": [platform.value for platform in Platform],
        "capabilities": list(CAPABILITIES),
        "qualityThresholds": {
            "excellent": f"{config.scoring.excellent_from}-100",
            "good": f"{config.scoring.fair_below}-{config.scoring.excellent_from - 1}",
            "fair": f"{config.scoring.poor_below}-{config.scoring.fair_below - 1}",
            "poor": f"0-{config.scoring.poor_below - 1}",
        },
        "validityGate": {
            "minOverallScore": config.validation.min_overall_score,
            "exactDuplicateSimilarity": config.validation.exact_duplicate_similarity,
        },
        "duplicateWeights": dict(config.duplicates.weights),
    }


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Creator quality runner - normalizes, scores and deduplicates scraped creator profiles"
    )

    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        help="JSON file with one raw record (single mode) or an array of records (batch mode)",
    )

    parser.add_argument(
        "--platform",
        "-p",
        choices=[platform.value for platform in Platform],
        help="Platform for records that carry no 'platform' field",
    )

    parser.add_argument(
        "--mode",
        choices=["single", "batch"],
        default="single",
        help="Validate one record or a batch (default: single)",
    )

    parser.add_argument(
        "--existing",
        type=Path,
        help="JSON array of known profiles to check the single record against",
    )

    parser.add_argument(
        "--no-duplicates",
        action="store_true",
        help="Skip duplicate detection in batch mode",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Thread pool size for batch mode (default: sequential)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file overriding quality thresholds "
        "(default: $CREATOR_QUALITY_CONFIG, then config/quality_thresholds.yaml in the project)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write logs to file",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--info",
        action="store_true",
        help="Print supported platforms, capabilities and thresholds, then exit",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the creator quality runner."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        log_file=args.log_file.resolve() if args.log_file else None,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        logger.error(f"Could not load config: {exc}")
        return EXIT_USAGE

    if args.info:
        _print_json(describe(config))
        return EXIT_VALID

    if args.input is None:
        parser.print_usage(sys.stderr)
        logger.error("--input is required unless --info is given")
        return EXIT_USAGE

    runner = QualityRunner(DataQualityValidator(config))
    try:
        data = load_json(args.input)
        if args.mode == "batch":
            summary = runner.run_batch(
                data,
                args.platform,
                check_duplicates=not args.no_duplicates,
                max_workers=args.workers,
            )
        else:
            existing = None
            if args.existing:
                existing = runner.build_pool(load_json(args.existing), args.platform)
            summary = runner.run_single(data, args.platform, existing)
    except InputError as exc:
        logger.error(str(exc))
        return EXIT_USAGE

    if summary.errors:
        for error in summary.errors:
            logger.error(error)
    _print_json(summary.to_dict())

    logger.info(
        f"{summary.mode} run: {summary.valid_profiles}/{summary.total_profiles} valid, "
        f"exit code {summary.exit_code()}"
    )
    return summary.exit_code()


if __name__ == "__main__":
    sys.exit(main())
