"""Quality scoring for canonical creator records.

A record is scored along five independent dimensions. Each dimension is a
pure rule function returning ``(points, issues)``; the scorer composes them
into completeness, consistency and reliability scores and an overall score,
and derives recommendations from whichever dimensions fell short.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .config import ScoringConfig
from .logging_config import get_logger
from .models import (
    CanonicalRecord,
    Platform,
    PlatformMetrics,
    QualityDistribution,
    QualityIssue,
    QualityScore,
    QualityStats,
    ScoreBreakdown,
)
from .parser_utils import is_valid_url, round_half_up, unique_preserve_order

logger = get_logger("quality_scorer")

RuleResult = Tuple[int, List[QualityIssue]]

CRITICAL = QualityIssue.SEVERITY_CRITICAL
WARNING = QualityIssue.SEVERITY_WARNING
INFO = QualityIssue.SEVERITY_INFO

# Required fields
MISSING_REQUIRED_PENALTY = 25
EMPTY_REQUIRED_PENALTY = 20
INVALID_USERNAME_PENALTY = 10
LONG_USERNAME_PENALTY = 5
MAX_USERNAME_LENGTH = 30

# Optional fields
INVALID_WEBSITE_PENALTY = 5
NEGATIVE_FOLLOWERS_PENALTY = 10

# Consistency
SUSPICIOUS_FOLLOWING = 1_000
FOLLOWING_WITHOUT_FOLLOWERS_PENALTY = 15
LARGE_ACCOUNT_FOLLOWERS = 1_000_000
LARGE_ACCOUNT_NO_FOLLOWING_PENALTY = 5
VERIFIED_MIN_FOLLOWERS = 1_000
LOW_FOLLOWER_VERIFIED_PENALTY = 10
ENGAGEMENT_OUT_OF_BOUNDS_PENALTY = 15
HIGH_ENGAGEMENT_RATE = 20
HIGH_ENGAGEMENT_PENALTY = 5

# Suspicious metrics
INSTAGRAM_LIKES_TO_FOLLOWERS = 0.5
INSTAGRAM_LIKES_PENALTY = 20
TIKTOK_VIEWS_WITHOUT_FOLLOWERS = 10_000
TIKTOK_VIEWS_PENALTY = 15
YOUTUBE_VIEWS_WITHOUT_VIDEOS_PENALTY = 20

# Platform specific
PLATFORM_MISMATCH_PENALTY = 30
MISSING_SIGNATURE_METRIC_PENALTY = 10

REQUIRED_FIELDS = (
    ("username", "username"),
    ("platform", "platform"),
    ("display_name", "displayName"),
)

OPTIONAL_FIELD_LABELS = {
    "bio": "bio",
    "profile_image_url": "profileImageUrl",
    "location": "location",
    "website": "website",
    "is_verified": "isVerified",
    "follower_count": "followerCount",
    "following_count": "followingCount",
    "metrics": "metrics",
}

# platform -> (metric attribute, issue field, human description)
SIGNATURE_METRICS: Dict[Platform, Tuple[str, str, str]] = {
    Platform.INSTAGRAM: ("post_count", "metrics.postCount", "Instagram profiles should include post count"),
    Platform.TIKTOK: ("video_count", "metrics.videoCount", "TikTok profiles should include video count"),
    Platform.YOUTUBE: (
        "subscriber_count",
        "metrics.subscriberCount",
        "YouTube profiles should include subscriber count",
    ),
}

_USERNAME_RE = re.compile(r"[a-zA-Z0-9._]+")

BANNER_POOR = "Poor data quality detected - consider re-scraping or manual verification"
BANNER_FAIR = "Fair data quality - some improvements needed"
BANNER_EXCELLENT = "Excellent data quality - ready for production use"

RECOMMEND_REQUIRED = "Ensure all required fields (username, platform, displayName) are present and valid"
RECOMMEND_OPTIONAL = "Add more profile information (bio, website, location) to improve data completeness"
RECOMMEND_CONSISTENCY = (
    "Review data for logical inconsistencies (follower/following ratios, verification status)"
)
RECOMMEND_METRICS = "Verify metrics accuracy - some values appear unusually high or inconsistent"
RECOMMEND_CRITICAL = "Address critical data quality issues before processing"
RECOMMEND_NONE = "Data quality is good - no major improvements needed"


def _issue(field: str, severity: str, message: str, impact: int) -> QualityIssue:
    return QualityIssue(field=field, severity=severity, message=message, impact=impact)


def _clamp(points: int) -> int:
    return max(0, min(100, points))


def _platform_metrics(record: CanonicalRecord, platform: Platform) -> Optional[PlatformMetrics]:
    """Return the record's metrics only when they belong to ``platform``."""
    metrics = record.metrics
    if metrics is not None and metrics.platform == platform:
        return metrics
    return None


def score_required_fields(record: CanonicalRecord) -> RuleResult:
    """Username, platform and display name must be present and non-empty."""
    issues: List[QualityIssue] = []
    for attr, label in REQUIRED_FIELDS:
        value = getattr(record, attr)
        if value is None:
            issues.append(
                _issue(label, CRITICAL, f"Required field '{label}' is missing", MISSING_REQUIRED_PENALTY)
            )
        elif isinstance(value, str) and not value.strip():
            issues.append(
                _issue(label, CRITICAL, f"Required field '{label}' is empty", EMPTY_REQUIRED_PENALTY)
            )

    username = record.username
    if username:
        if not _USERNAME_RE.fullmatch(username):
            issues.append(
                _issue("username", WARNING, "Username contains invalid characters", INVALID_USERNAME_PENALTY)
            )
        if len(username) > MAX_USERNAME_LENGTH:
            issues.append(_issue("username", WARNING, "Username is too long", LONG_USERNAME_PENALTY))

    return _clamp(100 - sum(issue.impact for issue in issues)), issues


def score_optional_fields(record: CanonicalRecord, weights: Dict[str, int]) -> RuleResult:
    """Award each present optional field its weight."""
    issues: List[QualityIssue] = []
    points = 0
    for attr, weight in weights.items():
        value = getattr(record, attr, None)
        if value is None or value == "":
            continue
        points += weight
        label = OPTIONAL_FIELD_LABELS.get(attr, attr)

        if attr == "website" and not is_valid_url(value):
            issues.append(_issue(label, WARNING, "Invalid website URL format", INVALID_WEBSITE_PENALTY))
        if attr == "follower_count" and value < 0:
            issues.append(_issue(label, WARNING, "Negative follower count", NEGATIVE_FOLLOWERS_PENALTY))

    return _clamp(points - sum(issue.impact for issue in issues)), issues


def score_data_consistency(record: CanonicalRecord) -> RuleResult:
    """Check follower ratios, engagement bounds and verification plausibility."""
    issues: List[QualityIssue] = []
    followers = record.follower_count
    following = record.following_count

    if followers is not None and following is not None:
        if followers == 0 and following > SUSPICIOUS_FOLLOWING:
            issues.append(
                _issue(
                    "followingCount",
                    WARNING,
                    "High following count with zero followers is suspicious",
                    FOLLOWING_WITHOUT_FOLLOWERS_PENALTY,
                )
            )
        if followers > LARGE_ACCOUNT_FOLLOWERS and following == 0:
            issues.append(
                _issue(
                    "followingCount",
                    INFO,
                    "Large account with zero following is unusual but possible",
                    LARGE_ACCOUNT_NO_FOLLOWING_PENALTY,
                )
            )

    rate = record.metrics.engagement_rate if record.metrics is not None else None
    if rate is not None:
        if rate < 0 or rate > 100:
            issues.append(
                _issue(
                    "metrics.engagementRate",
                    WARNING,
                    f"Engagement rate {rate:g}% is outside normal bounds (0-100%)",
                    ENGAGEMENT_OUT_OF_BOUNDS_PENALTY,
                )
            )
        elif rate > HIGH_ENGAGEMENT_RATE:
            issues.append(
                _issue(
                    "metrics.engagementRate",
                    INFO,
                    f"Very high engagement rate {rate:g}% should be verified",
                    HIGH_ENGAGEMENT_PENALTY,
                )
            )

    if record.is_verified and followers is not None and followers < VERIFIED_MIN_FOLLOWERS:
        issues.append(
            _issue(
                "isVerified",
                WARNING,
                "Verified account with very low follower count is unusual",
                LOW_FOLLOWER_VERIFIED_PENALTY,
            )
        )

    return _clamp(100 - sum(issue.impact for issue in issues)), issues


def _instagram_metric_issues(metrics: PlatformMetrics, followers: int) -> List[QualityIssue]:
    likes = metrics.average_likes
    if likes is not None and followers > 0 and likes > followers * INSTAGRAM_LIKES_TO_FOLLOWERS:
        return [
            _issue(
                "metrics.averageLikes",
                WARNING,
                "Average likes exceed 50% of followers (suspicious)",
                INSTAGRAM_LIKES_PENALTY,
            )
        ]
    return []


def _tiktok_metric_issues(metrics: PlatformMetrics, followers: int) -> List[QualityIssue]:
    views = metrics.average_views
    if views is not None and followers == 0 and views > TIKTOK_VIEWS_WITHOUT_FOLLOWERS:
        return [
            _issue(
                "metrics.averageViews",
                WARNING,
                "High view count with zero followers is suspicious",
                TIKTOK_VIEWS_PENALTY,
            )
        ]
    return []


def _youtube_metric_issues(metrics: PlatformMetrics, followers: int) -> List[QualityIssue]:
    views, videos = metrics.view_count, metrics.video_count
    if views is not None and videos is not None and videos == 0 and views > 0:
        return [
            _issue(
                "metrics.viewCount",
                WARNING,
                "View count without videos is inconsistent",
                YOUTUBE_VIEWS_WITHOUT_VIDEOS_PENALTY,
            )
        ]
    return []


PLATFORM_METRIC_RULES: Dict[Platform, Callable[[PlatformMetrics, int], List[QualityIssue]]] = {
    Platform.INSTAGRAM: _instagram_metric_issues,
    Platform.TIKTOK: _tiktok_metric_issues,
    Platform.YOUTUBE: _youtube_metric_issues,
}


def score_suspicious_metrics(record: CanonicalRecord, platform: Platform) -> RuleResult:
    """Flag platform metrics that are implausible given the follower count."""
    metrics = _platform_metrics(record, platform)
    if metrics is None:
        return 100, []

    issues = PLATFORM_METRIC_RULES[platform](metrics, record.follower_count or 0)
    return _clamp(100 - sum(issue.impact for issue in issues)), issues


def score_platform_specific(record: CanonicalRecord, platform: Platform) -> RuleResult:
    """The record must belong to ``platform`` and carry its signature metric."""
    issues: List[QualityIssue] = []
    if record.platform != platform:
        issues.append(
            _issue(
                "platform",
                CRITICAL,
                f"Platform mismatch: expected {platform.value}, got {Platform(record.platform).value}",
                PLATFORM_MISMATCH_PENALTY,
            )
        )

    attr, label, message = SIGNATURE_METRICS[platform]
    metrics = _platform_metrics(record, platform)
    if metrics is None or not getattr(metrics, attr):
        issues.append(_issue(label, WARNING, message, MISSING_SIGNATURE_METRIC_PENALTY))

    return _clamp(100 - sum(issue.impact for issue in issues)), issues


def quality_banner(overall: int, config: Optional[ScoringConfig] = None) -> Optional[str]:
    """Headline recommendation for an overall score, if it warrants one."""
    config = config or ScoringConfig()
    if overall < config.poor_below:
        return BANNER_POOR
    if overall < config.fair_below:
        return BANNER_FAIR
    if overall >= config.excellent_from:
        return BANNER_EXCELLENT
    return None


def quality_bucket(overall: int, config: Optional[ScoringConfig] = None) -> str:
    """Return ``excellent``, ``good``, ``fair`` or ``poor`` for a score."""
    config = config or ScoringConfig()
    if overall >= config.excellent_from:
        return "excellent"
    if overall >= config.fair_below:
        return "good"
    if overall >= config.poor_below:
        return "fair"
    return "poor"


def build_distribution(overalls: Iterable[int], config: Optional[ScoringConfig] = None) -> QualityDistribution:
    counts = Counter(quality_bucket(overall, config) for overall in overalls)
    return QualityDistribution(
        excellent=counts["excellent"],
        good=counts["good"],
        fair=counts["fair"],
        poor=counts["poor"],
    )


class QualityScorer:
    """Scores canonical records on completeness, consistency and reliability."""

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()

    def score(self, record: CanonicalRecord, platform: Union[Platform, str]) -> QualityScore:
        """Score ``record`` as a profile from ``platform``."""
        platform = Platform.coerce(platform)
        config = self.config

        required, required_issues = score_required_fields(record)
        optional, optional_issues = score_optional_fields(record, config.optional_field_weights)
        consistency_points, consistency_issues = score_data_consistency(record)
        suspicious, suspicious_issues = score_suspicious_metrics(record, platform)
        platform_points, platform_issues = score_platform_specific(record, platform)

        breakdown = ScoreBreakdown(
            required_fields=required,
            optional_fields=optional,
            data_consistency=consistency_points,
            suspicious_metrics=suspicious,
            platform_specific=platform_points,
        )
        issues = required_issues + optional_issues + consistency_issues + suspicious_issues + platform_issues

        completeness = (
            required * config.completeness_required_weight + optional * config.completeness_optional_weight
        )
        consistency = float(consistency_points)
        reliability = (
            suspicious * config.reliability_suspicious_weight
            + platform_points * config.reliability_platform_weight
        )
        overall = round_half_up(
            completeness * config.overall_completeness_weight
            + consistency * config.overall_consistency_weight
            + reliability * config.overall_reliability_weight
        )

        logger.debug(f"Scored {record.identifier}: overall={overall}, issues={len(issues)}")

        return QualityScore(
            overall=overall,
            completeness=round_half_up(completeness),
            consistency=round_half_up(consistency),
            reliability=round_half_up(reliability),
            breakdown=breakdown,
            issues=issues,
            recommendations=self._recommendations(overall, breakdown, issues),
        )

    def _recommendations(
        self, overall: int, breakdown: ScoreBreakdown, issues: Sequence[QualityIssue]
    ) -> List[str]:
        config = self.config
        advice: List[str] = []

        if breakdown.required_fields < config.min_required_fields:
            advice.append(RECOMMEND_REQUIRED)
        if breakdown.optional_fields < config.min_optional_fields:
            advice.append(RECOMMEND_OPTIONAL)
        if breakdown.data_consistency < config.min_data_consistency:
            advice.append(RECOMMEND_CONSISTENCY)
        if breakdown.suspicious_metrics < config.min_suspicious_metrics:
            advice.append(RECOMMEND_METRICS)
        if any(issue.severity == CRITICAL for issue in issues):
            advice.append(RECOMMEND_CRITICAL)
        if not advice:
            advice.append(RECOMMEND_NONE)

        banner = quality_banner(overall, config)
        return [banner, *advice] if banner else advice

    def batch_score(
        self, items: Iterable[Tuple[CanonicalRecord, Union[Platform, str]]]
    ) -> List[QualityScore]:
        """Score ``(record, platform)`` pairs in order."""
        return [self.score(record, platform) for record, platform in items]

    def quality_stats(self, scores: Sequence[QualityScore]) -> QualityStats:
        """Average, bucket distribution, issue frequency and top recommendations."""
        if not scores:
            return QualityStats()

        common_issues: Counter = Counter(
            f"{issue.field}: {issue.message}" for score in scores for issue in score.issues
        )
        improvement_areas = unique_preserve_order(
            recommendation for score in scores for recommendation in score.recommendations
        )[:5]

        return QualityStats(
            average_score=round_half_up(sum(score.overall for score in scores) / len(scores)),
            distribution=build_distribution((score.overall for score in scores), self.config),
            common_issues=dict(common_issues.most_common()),
            improvement_areas=improvement_areas,
        )


def score_record(
    record: CanonicalRecord,
    platform: Union[Platform, str],
    *,
    scorer: Optional[QualityScorer] = None,
) -> QualityScore:
    """Score a single record with a shared or fresh scorer."""
    scorer = scorer or QualityScorer()
    return scorer.score(record, platform)
