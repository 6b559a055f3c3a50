"""Normalization of scraped creator records.

Scrapers emit loosely shaped attribute maps whose key spelling differs per
source (``followerCount`` vs ``followers`` vs ``follower_count``) and whose
values may be numbers, ``"1.2K"``-style strings or missing entirely. The
normalizer projects such a map onto :class:`CanonicalRecord`, recording every
correction it made and every problem it hit. It never raises: malformed input
is the common case for scraped data.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .logging_config import get_logger
from .models import (
    METRICS_BY_PLATFORM,
    CanonicalRecord,
    NormalizationResult,
    NormalizationStats,
    Platform,
    PlatformMetrics,
)
from .parser_utils import (
    clean_text,
    first_present,
    normalize_url,
    parse_boolean,
    parse_count,
    parse_percentage,
    round_half_up,
)

logger = get_logger("normalizer")

MAX_USERNAME_LENGTH = 30
MAX_DISPLAY_NAME_LENGTH = 100
MAX_BIO_LENGTH = 500
MAX_LOCATION_LENGTH = 100

_INVALID_USERNAME_CHARS = re.compile(r"[^a-z0-9._]")

FOLLOWER_KEYS = ("followerCount", "followers", "follower_count")
FOLLOWING_KEYS = ("followingCount", "following", "following_count")
VERIFIED_KEYS = ("isVerified", "verified", "is_verified")
PROFILE_IMAGE_KEYS = ("profileImageUrl", "profile_image_url", "avatar")
WEBSITE_KEYS = ("website", "website_url", "external_url")

# Canonical camelCase spelling first, then the aliases scrapers use
METRIC_ALIASES: Dict[str, Tuple[str, ...]] = {
    "post_count": ("postCount", "post_count", "posts"),
    "like_count": ("likeCount", "like_count", "likes"),
    "video_count": ("videoCount", "video_count", "videos"),
    "subscriber_count": ("subscriberCount", "subscriber_count", "subscribers"),
    "view_count": ("viewCount", "view_count", "views"),
    "average_views": ("averageViews", "average_views", "avg_views"),
    "average_likes": ("averageLikes", "average_likes", "avg_likes"),
    "average_comments": ("averageComments", "average_comments", "avg_comments"),
    "engagement_rate": ("engagementRate", "engagement_rate"),
}

PERCENTAGE_METRICS = frozenset({"engagement_rate"})


def _is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class DataNormalizer:
    """Converts raw scraped attribute maps into canonical creator records."""

    def normalize(self, raw: Mapping[str, Any], platform: Union[Platform, str]) -> NormalizationResult:
        """Normalize one scraped record for ``platform``.

        Returns a result whose ``record`` is ``None`` only when normalization
        itself failed; the failure is described in ``issues``.
        """
        transformations: List[str] = []
        issues: List[str] = []

        try:
            platform = Platform.coerce(platform)
            record = self._build_record(raw, platform, transformations, issues)
        except Exception as exc:
            logger.warning(f"Normalization failed: {exc}")
            issues.append(f"Normalization error: {exc}")
            return NormalizationResult(
                record=None,
                original=raw,
                transformations=transformations,
                issues=issues,
            )

        if issues:
            logger.debug(f"Normalized {record.identifier} with {len(issues)} issue(s)")
        return NormalizationResult(
            record=record,
            original=raw,
            transformations=transformations,
            issues=issues,
        )

    def _build_record(
        self,
        raw: Mapping[str, Any],
        platform: Platform,
        transformations: List[str],
        issues: List[str],
    ) -> CanonicalRecord:
        if not isinstance(raw, Mapping):
            raise TypeError(f"raw record must be a mapping, got {type(raw).__name__}")

        username = self._normalize_username(raw.get("username"), transformations, issues)
        display_name = self._normalize_display_name(raw, username, transformations, issues)

        raw_metrics = raw.get("metrics")
        if raw_metrics is not None and not isinstance(raw_metrics, Mapping):
            issues.append("Metrics field is not a mapping")
            raw_metrics = None

        follower_count = self._normalize_count(
            raw, FOLLOWER_KEYS, "Follower count", transformations, issues, fallback=raw_metrics
        )
        following_count = self._normalize_count(
            raw, FOLLOWING_KEYS, "Following count", transformations, issues
        )

        _, verified_value = first_present(raw, VERIFIED_KEYS)

        return CanonicalRecord(
            platform=platform,
            username=username,
            display_name=display_name,
            bio=clean_text(raw.get("bio"), MAX_BIO_LENGTH),
            follower_count=follower_count,
            following_count=following_count,
            is_verified=parse_boolean(verified_value),
            profile_image_url=self._normalize_url_field(
                raw, PROFILE_IMAGE_KEYS, "Profile image URL", transformations, issues
            ),
            website=self._normalize_url_field(raw, WEBSITE_KEYS, "Website URL", transformations, issues),
            location=clean_text(raw.get("location"), MAX_LOCATION_LENGTH),
            metrics=self._normalize_metrics(raw_metrics, platform, issues) if raw_metrics else None,
        )

    def _normalize_username(
        self, value: Any, transformations: List[str], issues: List[str]
    ) -> Optional[str]:
        if not isinstance(value, str):
            issues.append("Username is missing or not a string")
            return None

        cleaned = _INVALID_USERNAME_CHARS.sub("", value.strip().lower())[:MAX_USERNAME_LENGTH]
        if cleaned != value:
            transformations.append(f'Username: "{value}" → "{cleaned}"')
        return cleaned

    def _normalize_display_name(
        self,
        raw: Mapping[str, Any],
        username: Optional[str],
        transformations: List[str],
        issues: List[str],
    ) -> str:
        for key in ("displayName", "display_name"):
            value = raw.get(key)
            if not isinstance(value, str):
                continue
            cleaned = clean_text(value, MAX_DISPLAY_NAME_LENGTH)
            if cleaned is None:
                continue
            if key != "displayName":
                transformations.append(f"Used {key} field for displayName")
            elif cleaned != value:
                transformations.append("Display name normalized")
            return cleaned

        issues.append("Display name missing, using username as fallback")
        return username or "Unknown"

    def _normalize_count(
        self,
        raw: Mapping[str, Any],
        keys: Sequence[str],
        label: str,
        transformations: List[str],
        issues: List[str],
        *,
        fallback: Optional[Mapping[str, Any]] = None,
    ) -> Optional[int]:
        key, value = first_present(raw, keys)
        source = ""
        if key is None and fallback:
            key, value = first_present(fallback, keys)
            source = " (from metrics)"
        if key is None:
            return None

        count = parse_count(value)
        if count is None:
            issues.append(f"Unparseable {label.lower()}: {value!r}")
        elif not _is_plain_int(value) or count != value or source:
            transformations.append(f'{label}{source}: "{value}" → {count}')
        return count

    def _normalize_url_field(
        self,
        raw: Mapping[str, Any],
        keys: Sequence[str],
        label: str,
        transformations: List[str],
        issues: List[str],
    ) -> Optional[str]:
        key, value = first_present(raw, keys)
        if key is None or (isinstance(value, str) and not value.strip()):
            return None

        url = normalize_url(value)
        if url is None:
            issues.append(f"Invalid {label[0].lower() + label[1:]} dropped: {value!r}")
        elif url != value:
            transformations.append(f'{label}: "{value}" → "{url}"')
        return url

    def _normalize_metrics(
        self, raw_metrics: Mapping[str, Any], platform: Platform, issues: List[str]
    ) -> Optional[PlatformMetrics]:
        metrics_cls = METRICS_BY_PLATFORM[platform]
        values: Dict[str, Any] = {}

        for metric_field in fields(metrics_cls):
            name = metric_field.name
            key, value = first_present(raw_metrics, METRIC_ALIASES[name])
            if key is None:
                continue
            parsed = parse_percentage(value) if name in PERCENTAGE_METRICS else parse_count(value)
            if parsed is None:
                issues.append(f"Unparseable metric {key}: {value!r}")
                continue
            values[name] = parsed

        if not values:
            return None
        return metrics_cls(**values)

    def batch_normalize(
        self, items: Iterable[Tuple[Mapping[str, Any], Union[Platform, str]]]
    ) -> List[NormalizationResult]:
        """Normalize ``(raw, platform)`` pairs in order."""
        return [self.normalize(raw, platform) for raw, platform in items]

    @staticmethod
    def normalization_stats(results: Sequence[NormalizationResult]) -> NormalizationStats:
        """Summarise transformations and issues over many results."""
        if not results:
            return NormalizationStats()

        common_issues: Counter = Counter()
        total_transformations = 0
        total_issues = 0
        clean = 0
        for result in results:
            total_transformations += len(result.transformations)
            total_issues += len(result.issues)
            common_issues.update(result.issues)
            if not result.issues:
                clean += 1

        return NormalizationStats(
            total_transformations=total_transformations,
            total_issues=total_issues,
            success_rate=round_half_up(clean / len(results) * 100),
            common_issues=dict(common_issues.most_common()),
        )


def normalize_record(
    raw: Mapping[str, Any],
    platform: Union[Platform, str],
    *,
    normalizer: Optional[DataNormalizer] = None,
) -> NormalizationResult:
    """Normalize a single raw record with a shared or fresh normalizer."""
    normalizer = normalizer or DataNormalizer()
    return normalizer.normalize(raw, platform)
