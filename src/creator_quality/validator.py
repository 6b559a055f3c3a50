"""Validation pipeline: normalize, score, check duplicates, decide.

:class:`DataQualityValidator` is the entry point callers use. It never raises
for bad input: malformed records come back as reports with ``is_valid``
false, and unexpected failures inside the pipeline are logged and converted
into worst-case reports so one bad record cannot abort a batch.
"""

from __future__ import annotations

import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import QualityConfig
from .duplicate_detector import DuplicateDetector
from .logging_config import get_logger
from .models import (
    BatchQualityReport,
    CanonicalRecord,
    DataQualityReport,
    DuplicateMatch,
    DuplicateStats,
    IngestionDecision,
    NormalizationResult,
    NormalizationStats,
    Platform,
    QualityDistribution,
    QualityScore,
    QuickValidation,
)
from .normalizer import FOLLOWER_KEYS, METRIC_ALIASES, PROFILE_IMAGE_KEYS, DataNormalizer
from .parser_utils import first_present, parse_count, round_half_up, unique_preserve_order
from .quality_scorer import QualityScorer, build_distribution, quality_banner

logger = get_logger("validator")

BatchItem = Union[Mapping[str, Any], Tuple[Any, Union[Platform, str]]]

RECOMMEND_FIX_ERRORS = "Fix validation errors before processing"
RECOMMEND_NORMALIZATION_ISSUES = "Address data normalization issues to improve data consistency"
RECOMMEND_TOO_MANY_TRANSFORMATIONS = (
    "Review data collection process - high number of transformations needed"
)

# Batch recommendation triggers, as fractions of the batch size
POOR_RATE_LIMIT = 0.2
EXCELLENT_RATE_TARGET = 0.3
DUPLICATE_RATE_LIMIT = 0.1
LOW_AVERAGE_QUALITY = 60
HIGH_AVERAGE_QUALITY = 80

# Signature metrics the ingestion gate insists on, any one of which suffices
INGESTION_METRICS: Dict[Platform, Tuple[Tuple[str, ...], str]] = {
    Platform.INSTAGRAM: (("post_count",), "Instagram profile missing post count"),
    Platform.TIKTOK: (("video_count", "like_count"), "TikTok profile missing video or like count"),
    Platform.YOUTUBE: (("subscriber_count",), "YouTube profile missing subscriber count"),
}


def _metric_present(metrics: Mapping[str, Any], name: str) -> bool:
    _, value = first_present(metrics, METRIC_ALIASES[name])
    return bool(parse_count(value))


class DataQualityValidator:
    """Runs raw creator records through the full quality pipeline."""

    def __init__(
        self,
        config: Optional[QualityConfig] = None,
        *,
        normalizer: Optional[DataNormalizer] = None,
        scorer: Optional[QualityScorer] = None,
        detector: Optional[DuplicateDetector] = None,
    ) -> None:
        self.config = config or QualityConfig.default()
        self.normalizer = normalizer or DataNormalizer()
        self.scorer = scorer or QualityScorer(self.config.scoring)
        self.detector = detector or DuplicateDetector(self.config.duplicates)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def determine_validity(self, quality: QualityScore, duplicates: Sequence[DuplicateMatch]) -> bool:
        """Return False for low scores, critical issues or exact duplicates."""
        settings = self.config.validation
        if quality.overall < settings.min_overall_score:
            return False
        if quality.critical_issues:
            return False

        # A near-identical exact match usually means the same profile was scraped twice
        for match in duplicates:
            if (
                match.confidence == DuplicateMatch.CONFIDENCE_HIGH
                and match.similarity >= settings.exact_duplicate_similarity
                and match.has_exact_match()
            ):
                return False
        return True

    def is_data_acceptable(self, raw: Any, platform: Union[Platform, str]) -> IngestionDecision:
        """Fast pre-normalization check that rejects obviously failed scrapes."""
        settings = self.config.validation
        if not isinstance(raw, Mapping):
            return IngestionDecision(False, "Record is not a mapping")
        try:
            platform = Platform.coerce(platform)
        except ValueError as exc:
            return IngestionDecision(False, str(exc))

        username = raw.get("username")
        if not isinstance(username, str) or not username.strip():
            return IngestionDecision(False, "Missing or invalid username")

        display_names = (raw.get(key) for key in ("displayName", "display_name"))
        if not any(isinstance(name, str) and name.strip() for name in display_names):
            return IngestionDecision(False, "Missing display name")

        _, raw_followers = first_present(raw, FOLLOWER_KEYS)
        followers = parse_count(raw_followers)
        if followers is None or followers <= 0 or followers > settings.max_follower_count:
            return IngestionDecision(False, f"Invalid follower count: {raw_followers}")

        lowered = username.strip().lower()
        if len(lowered) < settings.min_username_length or any(
            term in lowered for term in settings.blocked_username_terms
        ):
            return IngestionDecision(False, "Test or invalid username detected")

        _, image = first_present(raw, PROFILE_IMAGE_KEYS)
        if not image and not raw.get("bio"):
            return IngestionDecision(False, "No profile image or bio - indicates scraping failure")

        metrics = raw.get("metrics")
        if not isinstance(metrics, Mapping):
            metrics = {}
        names, reason = INGESTION_METRICS[platform]
        if not any(_metric_present(metrics, name) for name in names):
            return IngestionDecision(False, reason)

        return IngestionDecision(True)

    def quick_validation(
        self, raw: Any, platform: Optional[Union[Platform, str]] = None
    ) -> QuickValidation:
        """Cheap estimate from required fields alone; no normalization."""
        data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        present = {
            "username": data.get("username"),
            "platform": data.get("platform") or platform,
            "displayName": data.get("displayName"),
        }
        critical = [f"Missing required field: {name}" for name, value in present.items() if not value]

        score = 100 - 25 * len(critical)
        if not data.get("followerCount"):
            score -= 10
        if not data.get("bio"):
            score -= 10
        if not data.get("profileImageUrl"):
            score -= 5

        score = max(0, score)
        return QuickValidation(
            is_valid=not critical and score >= self.config.validation.min_overall_score,
            score=score,
            critical_issues=critical,
        )

    # ------------------------------------------------------------------
    # Single record
    # ------------------------------------------------------------------

    def validate_one(
        self,
        raw: Any,
        platform: Union[Platform, str],
        existing_pool: Optional[Sequence[CanonicalRecord]] = None,
    ) -> DataQualityReport:
        """Validate one raw record, optionally against known records."""
        started = time.perf_counter()
        try:
            return self._validate(raw, platform, existing_pool or (), started)
        except Exception as exc:
            logger.exception(f"Data quality validation error: {exc}")
            return self._failure_report(raw, f"Validation error: {exc}", started)

    def _validate(
        self,
        raw: Any,
        platform: Union[Platform, str],
        existing_pool: Sequence[CanonicalRecord],
        started: float,
    ) -> DataQualityReport:
        normalization = self.normalizer.normalize(raw, platform)
        record = normalization.record
        if record is None:
            message = normalization.issues[-1] if normalization.issues else "Normalization failed"
            return self._failure_report(
                raw,
                message,
                started,
                transformations=normalization.transformations,
                issues=normalization.issues,
            )

        quality = self.scorer.score(record, platform)

        duplicates: List[DuplicateMatch] = []
        if existing_pool and record.username:
            duplicates = self.detector.find_similar(record, existing_pool)

        return DataQualityReport(
            is_valid=self.determine_validity(quality, duplicates),
            original_data=raw,
            normalized_data=record,
            transformations=list(normalization.transformations),
            normalization_issues=list(normalization.issues),
            quality=quality,
            duplicates=duplicates,
            recommendations=self._recommendations(
                normalization.transformations, normalization.issues, quality, duplicates
            ),
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    def _failure_report(
        self,
        raw: Any,
        message: str,
        started: float,
        *,
        transformations: Sequence[str] = (),
        issues: Optional[Sequence[str]] = None,
    ) -> DataQualityReport:
        return DataQualityReport(
            is_valid=False,
            original_data=raw,
            normalized_data=None,
            transformations=list(transformations),
            normalization_issues=list(issues) if issues is not None else [message],
            quality=QualityScore.failed(message),
            duplicates=[],
            recommendations=[RECOMMEND_FIX_ERRORS],
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    def _recommendations(
        self,
        transformations: Sequence[str],
        normalization_issues: Sequence[str],
        quality: QualityScore,
        duplicates: Sequence[DuplicateMatch],
    ) -> List[str]:
        advice: List[str] = []
        banner = quality_banner(quality.overall, self.config.scoring)
        if banner:
            advice.append(banner)

        if normalization_issues:
            advice.append(RECOMMEND_NORMALIZATION_ISSUES)
        if len(transformations) > self.config.validation.max_transformations:
            advice.append(RECOMMEND_TOO_MANY_TRANSFORMATIONS)

        advice.extend(quality.recommendations)

        high = sum(1 for match in duplicates if match.confidence == DuplicateMatch.CONFIDENCE_HIGH)
        medium = sum(1 for match in duplicates if match.confidence == DuplicateMatch.CONFIDENCE_MEDIUM)
        if high:
            advice.append(f"{high} high-confidence duplicate(s) found - investigate for merging")
        if medium:
            advice.append(f"{medium} potential duplicate(s) found - manual review recommended")

        return unique_preserve_order(advice)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    @staticmethod
    def _unpack_item(item: BatchItem) -> Tuple[Any, Any]:
        if isinstance(item, Mapping):
            raw = item["raw"] if "raw" in item else item["data"]
            return raw, item["platform"]
        raw, platform = item
        return raw, platform

    def _validate_item(self, item: BatchItem) -> DataQualityReport:
        started = time.perf_counter()
        try:
            raw, platform = self._unpack_item(item)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Skipping malformed batch item: {exc!r}")
            return self._failure_report(item, f"Validation error: malformed batch item ({exc!r})", started)
        return self.validate_one(raw, platform)

    def validate_batch(
        self,
        items: Iterable[BatchItem],
        check_duplicates: bool = True,
        max_workers: Optional[int] = None,
    ) -> BatchQualityReport:
        """Validate many records and cross-check them for duplicates.

        Items are ``{"raw": ..., "platform": ...}`` mappings (``"data"`` is
        accepted in place of ``"raw"``) or ``(raw, platform)`` pairs. Each
        record is normalized and scored independently, on a thread pool when
        ``max_workers`` is above one. Duplicate detection runs only once every
        canonical record exists; each report then picks up the matches that
        name it before its validity and recommendations are settled.
        """
        items = list(items)
        if max_workers and max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                reports = list(executor.map(self._validate_item, items))
        else:
            reports = [self._validate_item(item) for item in items]

        all_duplicates: List[DuplicateMatch] = []
        if check_duplicates:
            reports, all_duplicates = self._attach_duplicates(reports, max_workers)

        batch = self._batch_report(reports, all_duplicates)
        logger.info(
            f"Validated {batch.total_profiles} profiles: {batch.valid_profiles} valid, "
            f"{len(all_duplicates)} potential duplicates"
        )
        return batch

    def _attach_duplicates(
        self, reports: List[DataQualityReport], max_workers: Optional[int]
    ) -> Tuple[List[DataQualityReport], List[DuplicateMatch]]:
        positions: Dict[str, List[int]] = defaultdict(list)
        records: List[CanonicalRecord] = []
        for index, report in enumerate(reports):
            identifier = report.identifier
            if identifier is None:
                continue
            positions[identifier].append(index)
            records.append(report.normalized_data)

        if len(records) < 2:
            return reports, []

        matches = self.detector.find_duplicates(records, max_workers=max_workers)
        per_report: Dict[int, List[DuplicateMatch]] = defaultdict(list)
        for match in matches:
            for index in sorted(set(positions[match.profile1]) | set(positions[match.profile2])):
                per_report[index].append(match)

        updated = list(reports)
        for index, found in per_report.items():
            report = updated[index]
            updated[index] = replace(
                report,
                duplicates=found,
                is_valid=self.determine_validity(report.quality, found),
                recommendations=self._recommendations(
                    report.transformations, report.normalization_issues, report.quality, found
                ),
            )
        return updated, matches

    def _batch_report(
        self, reports: Sequence[DataQualityReport], duplicates: Sequence[DuplicateMatch]
    ) -> BatchQualityReport:
        if not reports:
            return BatchQualityReport(
                total_profiles=0,
                valid_profiles=0,
                average_quality=0,
                quality_distribution=QualityDistribution(),
                normalization_stats=NormalizationStats(),
                duplicate_stats=DuplicateStats(),
            )

        total = len(reports)
        average = sum(report.quality.overall for report in reports) / total
        distribution = build_distribution((report.quality.overall for report in reports), self.config.scoring)
        normalization_stats = self.normalizer.normalization_stats(
            [
                NormalizationResult(
                    record=report.normalized_data,
                    original=report.original_data,
                    transformations=report.transformations,
                    issues=report.normalization_issues,
                )
                for report in reports
            ]
        )
        duplicate_stats = self.detector.duplicate_stats(duplicates)

        issue_counts: Counter = Counter()
        for report in reports:
            issue_counts.update(f"{issue.field}: {issue.message}" for issue in report.quality.issues)
            issue_counts.update(f"Normalization: {issue}" for issue in report.normalization_issues)
        common_issues = [issue for issue, _ in issue_counts.most_common(self.config.validation.common_issue_limit)]

        return BatchQualityReport(
            total_profiles=total,
            valid_profiles=sum(1 for report in reports if report.is_valid),
            average_quality=round_half_up(average),
            quality_distribution=distribution,
            normalization_stats=normalization_stats,
            duplicate_stats=duplicate_stats,
            common_issues=common_issues,
            recommendations=self._batch_recommendations(total, average, distribution, duplicate_stats),
            duplicates=list(duplicates),
            reports=list(reports),
        )

    @staticmethod
    def _batch_recommendations(
        total: int,
        average: float,
        distribution: QualityDistribution,
        duplicate_stats: DuplicateStats,
    ) -> List[str]:
        advice: List[str] = []
        if distribution.poor > total * POOR_RATE_LIMIT:
            advice.append("High rate of poor quality data detected - review data collection process")
        if distribution.excellent < total * EXCELLENT_RATE_TARGET:
            advice.append("Consider improving data collection to achieve higher quality scores")

        if duplicate_stats.total_matches > total * DUPLICATE_RATE_LIMIT:
            advice.append("High duplicate rate detected - implement better deduplication in data collection")
        if duplicate_stats.recommend_merge:
            advice.append(
                f"{duplicate_stats.recommend_merge} profiles recommended for merging due to high similarity"
            )

        if average < LOW_AVERAGE_QUALITY:
            advice.append("Overall data quality below acceptable threshold - comprehensive review needed")
        elif average >= HIGH_AVERAGE_QUALITY:
            advice.append("Good overall data quality - minor improvements will optimize performance")
        return advice


def validate_creator_profile(
    raw: Any,
    platform: Union[Platform, str],
    existing_pool: Optional[Sequence[CanonicalRecord]] = None,
    *,
    validator: Optional[DataQualityValidator] = None,
) -> DataQualityReport:
    """Validate a single record with a shared or fresh validator."""
    validator = validator or DataQualityValidator()
    return validator.validate_one(raw, platform, existing_pool)
