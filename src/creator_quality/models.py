"""Data models for the creator quality pipeline.

Raw scraped records enter the pipeline as plain ``Mapping[str, Any]`` values.
Everything after the normalizer works on the frozen dataclasses defined here,
and every report type can be rendered to a JSON-ready dict with ``to_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type, Union


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class Platform(str, Enum):
    """Social platforms the pipeline knows how to normalise and score."""

    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"

    @classmethod
    def coerce(cls, value: Union["Platform", str]) -> "Platform":
        """Return the platform for an enum member or case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        supported = ", ".join(p.value for p in cls)
        raise ValueError(f"Unsupported platform {value!r} (expected one of: {supported})")


@dataclass(frozen=True)
class _MetricsBase:
    platform: ClassVar[Platform]

    def to_dict(self) -> Dict[str, Any]:
        return {
            _camel(f.name): getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class InstagramMetrics(_MetricsBase):
    platform: ClassVar[Platform] = Platform.INSTAGRAM

    post_count: Optional[int] = None
    average_likes: Optional[int] = None
    average_comments: Optional[int] = None
    engagement_rate: Optional[float] = None


@dataclass(frozen=True)
class TikTokMetrics(_MetricsBase):
    platform: ClassVar[Platform] = Platform.TIKTOK

    like_count: Optional[int] = None
    video_count: Optional[int] = None
    average_views: Optional[int] = None
    average_likes: Optional[int] = None
    engagement_rate: Optional[float] = None


@dataclass(frozen=True)
class YouTubeMetrics(_MetricsBase):
    platform: ClassVar[Platform] = Platform.YOUTUBE

    subscriber_count: Optional[int] = None
    video_count: Optional[int] = None
    view_count: Optional[int] = None
    average_views: Optional[int] = None
    average_likes: Optional[int] = None
    average_comments: Optional[int] = None
    engagement_rate: Optional[float] = None


PlatformMetrics = Union[InstagramMetrics, TikTokMetrics, YouTubeMetrics]

METRICS_BY_PLATFORM: Dict[Platform, Type[_MetricsBase]] = {
    Platform.INSTAGRAM: InstagramMetrics,
    Platform.TIKTOK: TikTokMetrics,
    Platform.YOUTUBE: YouTubeMetrics,
}


@dataclass(frozen=True)
class CanonicalRecord:
    """A normalised creator profile.

    ``username`` is ``None`` only when the raw record carried no usable
    username; the scorer reports that as a critical issue.
    """

    platform: Platform
    display_name: str
    username: Optional[str] = None
    bio: Optional[str] = None
    follower_count: Optional[int] = None
    following_count: Optional[int] = None
    is_verified: bool = False
    profile_image_url: Optional[str] = None
    website: Optional[str] = None
    location: Optional[str] = None
    metrics: Optional[PlatformMetrics] = None

    @property
    def identifier(self) -> str:
        return f"{self.platform.value}:{self.username or ''}"

    def to_dict(self) -> Dict[str, Any]:
        """Render the record with the camelCase keys scrapers use."""
        data: Dict[str, Any] = {
            "username": self.username,
            "platform": self.platform.value,
            "displayName": self.display_name,
            "bio": self.bio,
            "followerCount": self.follower_count,
            "followingCount": self.following_count,
            "isVerified": self.is_verified,
            "profileImageUrl": self.profile_image_url,
            "website": self.website,
            "location": self.location,
            "metrics": self.metrics.to_dict() if self.metrics is not None else None,
        }
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class NormalizationResult:
    """Outcome of normalising one raw record."""

    record: Optional[CanonicalRecord]
    original: Any
    transformations: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class QualityIssue:
    """A single deduction applied while scoring a record."""

    SEVERITY_CRITICAL: ClassVar[str] = "critical"
    SEVERITY_WARNING: ClassVar[str] = "warning"
    SEVERITY_INFO: ClassVar[str] = "info"

    field: str
    severity: str
    message: str
    impact: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "severity": self.severity,
            "message": self.message,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    required_fields: int = 0
    optional_fields: int = 0
    data_consistency: int = 0
    suspicious_metrics: int = 0
    platform_specific: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class QualityScore:
    """Composite quality score for one canonical record."""

    overall: int
    completeness: int
    consistency: int
    reliability: int
    breakdown: ScoreBreakdown
    issues: List[QualityIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str) -> "QualityScore":
        """Worst-case score used when the pipeline itself failed."""
        return cls(
            overall=0,
            completeness=0,
            consistency=0,
            reliability=0,
            breakdown=ScoreBreakdown(),
            issues=[
                QualityIssue(
                    field="pipeline",
                    severity=QualityIssue.SEVERITY_CRITICAL,
                    message=message,
                    impact=100,
                )
            ],
            recommendations=["Fix validation errors before processing"],
        )

    @property
    def critical_issues(self) -> List[QualityIssue]:
        return [issue for issue in self.issues if issue.severity == QualityIssue.SEVERITY_CRITICAL]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "completeness": self.completeness,
            "consistency": self.consistency,
            "reliability": self.reliability,
            "breakdown": self.breakdown.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class DuplicateReason:
    """Why a field comparison contributed to a duplicate match."""

    EXACT_MATCH: ClassVar[str] = "exact_match"
    SIMILAR_NAME: ClassVar[str] = "similar_name"
    SAME_IMAGE: ClassVar[str] = "same_image"
    SIMILAR_METRICS: ClassVar[str] = "similar_metrics"
    SAME_BIO: ClassVar[str] = "same_bio"
    SAME_LOCATION: ClassVar[str] = "same_location"

    type: str
    field: str
    similarity: int
    value1: str
    value2: str

    def swapped(self) -> "DuplicateReason":
        return DuplicateReason(self.type, self.field, self.similarity, self.value2, self.value1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "field": self.field,
            "similarity": self.similarity,
            "value1": self.value1,
            "value2": self.value2,
        }


@dataclass(frozen=True)
class DuplicateMatch:
    """A scored claim that two same-platform records are the same creator."""

    CONFIDENCE_HIGH: ClassVar[str] = "high"
    CONFIDENCE_MEDIUM: ClassVar[str] = "medium"
    CONFIDENCE_LOW: ClassVar[str] = "low"

    RECOMMEND_MERGE: ClassVar[str] = "merge"
    RECOMMEND_INVESTIGATE: ClassVar[str] = "investigate"
    RECOMMEND_KEEP_SEPARATE: ClassVar[str] = "keep_separate"

    profile1: str
    profile2: str
    similarity: int
    reasons: List[DuplicateReason]
    confidence: str
    recommendation: str

    def has_exact_match(self) -> bool:
        return any(reason.type == DuplicateReason.EXACT_MATCH for reason in self.reasons)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile1": self.profile1,
            "profile2": self.profile2,
            "similarity": self.similarity,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "confidence": self.confidence,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class DataQualityReport:
    """Full journey of one raw record through the pipeline."""

    is_valid: bool
    original_data: Any
    normalized_data: Optional[CanonicalRecord]
    transformations: List[str]
    normalization_issues: List[str]
    quality: QualityScore
    duplicates: List[DuplicateMatch] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    processing_time_ms: float = 0.0

    @property
    def identifier(self) -> Optional[str]:
        if self.normalized_data is None or not self.normalized_data.username:
            return None
        return self.normalized_data.identifier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "originalData": self.original_data if isinstance(self.original_data, Mapping) else None,
            "normalizedData": self.normalized_data.to_dict() if self.normalized_data else None,
            "normalization": {
                "transformations": list(self.transformations),
                "issues": list(self.normalization_issues),
            },
            "quality": self.quality.to_dict(),
            "duplicates": [match.to_dict() for match in self.duplicates],
            "recommendations": list(self.recommendations),
            "processingTime": round(self.processing_time_ms, 3),
        }


@dataclass(frozen=True)
class QualityDistribution:
    excellent: int = 0
    good: int = 0
    fair: int = 0
    poor: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "excellent": self.excellent,
            "good": self.good,
            "fair": self.fair,
            "poor": self.poor,
        }


@dataclass(frozen=True)
class QualityStats:
    average_score: int = 0
    distribution: QualityDistribution = field(default_factory=QualityDistribution)
    common_issues: Dict[str, int] = field(default_factory=dict)
    improvement_areas: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "averageScore": self.average_score,
            "distribution": self.distribution.to_dict(),
            "commonIssues": dict(self.common_issues),
            "improvementAreas": list(self.improvement_areas),
        }


@dataclass(frozen=True)
class NormalizationStats:
    total_transformations: int = 0
    total_issues: int = 0
    success_rate: int = 0
    common_issues: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTransformations": self.total_transformations,
            "totalIssues": self.total_issues,
            "successRate": self.success_rate,
            "commonIssues": dict(self.common_issues),
        }


@dataclass(frozen=True)
class DuplicateStats:
    total_matches: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    recommend_merge: int = 0
    common_reasons: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDuplicates": self.total_matches,
            "highConfidence": self.high_confidence,
            "mediumConfidence": self.medium_confidence,
            "lowConfidence": self.low_confidence,
            "recommendMerge": self.recommend_merge,
            "commonReasons": dict(self.common_reasons),
        }


@dataclass(frozen=True)
class BatchQualityReport:
    """Aggregate statistics over a batch of validated records."""

    total_profiles: int
    valid_profiles: int
    average_quality: int
    quality_distribution: QualityDistribution
    normalization_stats: NormalizationStats
    duplicate_stats: DuplicateStats
    common_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    duplicates: List[DuplicateMatch] = field(default_factory=list)
    reports: List[DataQualityReport] = field(default_factory=list)

    def to_dict(self, include_reports: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "totalProfiles": self.total_profiles,
            "validProfiles": self.valid_profiles,
            "averageQuality": self.average_quality,
            "qualityDistribution": self.quality_distribution.to_dict(),
            "normalizationStats": self.normalization_stats.to_dict(),
            "duplicateStats": self.duplicate_stats.to_dict(),
            "commonIssues": list(self.common_issues),
            "recommendations": list(self.recommendations),
            "duplicates": [match.to_dict() for match in self.duplicates],
        }
        if include_reports:
            data["reports"] = [report.to_dict() for report in self.reports]
        return data


@dataclass(frozen=True)
class IngestionDecision:
    """Result of the fast pre-normalization ingestion gate."""

    acceptable: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.acceptable

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"acceptable": self.acceptable}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class QuickValidation:
    is_valid: bool
    score: int
    critical_issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "score": self.score,
            "criticalIssues": list(self.critical_issues),
        }
