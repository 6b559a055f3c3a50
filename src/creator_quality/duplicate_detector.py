"""Fuzzy duplicate detection between canonical creator records.

Two records on the same platform are compared field by field. Each field
scorer returns a 0-100 similarity; the pair similarity is the weighted mean
over the fields that are present on both records and score above zero, so an
absent or rewritten bio neither helps nor hurts. Records on different
platforms are never compared.
"""

from __future__ import annotations

import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from rapidfuzz.distance import Levenshtein

from .config import DuplicateConfig
from .logging_config import get_logger
from .models import CanonicalRecord, DuplicateMatch, DuplicateReason, DuplicateStats
from .parser_utils import round_half_up

logger = get_logger("duplicate_detector")

_USERNAME_SEPARATORS = re.compile(r"[._]")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")

USERNAME_CONTAINMENT_SCALE = 80
DISPLAY_NAME_NORMALIZED_MATCH = 95
DISPLAY_NAME_CONTAINMENT = 80
IMAGE_SAME_STEM = 90
LOCATION_CONTAINMENT = 80
FOLLOWERS_CLOSE_RATIO = 0.05
FOLLOWERS_CLOSE = 90
FOLLOWERS_NEAR_RATIO = 0.2
FOLLOWERS_NEAR = 60


def edit_similarity(a: str, b: str) -> float:
    """``100 * (1 - levenshtein / max_length)``; 0 when both are empty."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return (1 - Levenshtein.distance(a, b) / longest) * 100


def username_similarity(a: str, b: str) -> int:
    clean_a = _USERNAME_SEPARATORS.sub("", a.lower())
    clean_b = _USERNAME_SEPARATORS.sub("", b.lower())
    if not clean_a or not clean_b:
        return 0
    if clean_a == clean_b:
        return 100

    if clean_a in clean_b or clean_b in clean_a:
        shorter, longer = sorted((len(clean_a), len(clean_b)))
        return round_half_up(shorter / longer * USERNAME_CONTAINMENT_SCALE)

    return max(0, round_half_up(edit_similarity(clean_a, clean_b)))


def display_name_similarity(a: str, b: str, penalty: int = 20) -> int:
    clean_a = a.lower().strip()
    clean_b = b.lower().strip()
    if not clean_a or not clean_b:
        return 0
    if clean_a == clean_b:
        return 100

    normalized_a = _PUNCTUATION.sub("", _WHITESPACE.sub(" ", clean_a))
    normalized_b = _PUNCTUATION.sub("", _WHITESPACE.sub(" ", clean_b))
    if normalized_a == normalized_b:
        return DISPLAY_NAME_NORMALIZED_MATCH
    if normalized_a and normalized_b and (normalized_a in normalized_b or normalized_b in normalized_a):
        return DISPLAY_NAME_CONTAINMENT

    # Display names diverge more than usernames before they stop being the same
    return max(0, round_half_up(edit_similarity(normalized_a, normalized_b)) - penalty)


def bio_similarity(a: str, b: str) -> int:
    clean_a = _WHITESPACE.sub(" ", a.lower().strip())
    clean_b = _WHITESPACE.sub(" ", b.lower().strip())
    if clean_a == clean_b:
        return 100

    words_a = clean_a.split(" ")
    words_b = clean_b.split(" ")
    common = sum((Counter(words_a) & Counter(words_b)).values())
    if common == 0:
        return 0
    return round_half_up(common * 2 / (len(words_a) + len(words_b)) * 100)


def _image_stem(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return ""
    return PurePosixPath(path).name.split(".")[0]


def image_similarity(a: str, b: str) -> int:
    if a == b:
        return 100
    stem_a, stem_b = _image_stem(a), _image_stem(b)
    if stem_a and stem_a == stem_b:
        return IMAGE_SAME_STEM
    return 0


def location_similarity(a: str, b: str) -> int:
    clean_a = a.lower().strip()
    clean_b = b.lower().strip()
    if clean_a == clean_b:
        return 100
    if clean_a and clean_b and (clean_a in clean_b or clean_b in clean_a):
        return LOCATION_CONTAINMENT
    return 0


def follower_similarity(a: int, b: int) -> int:
    if a == b:
        return 100
    average = (a + b) / 2
    if average == 0:
        return 100

    ratio = abs(a - b) / average
    if ratio <= FOLLOWERS_CLOSE_RATIO:
        return FOLLOWERS_CLOSE
    if ratio <= FOLLOWERS_NEAR_RATIO:
        return FOLLOWERS_NEAR
    return 0


def _text_reason_type(similarity: int, partial_type: str) -> str:
    return DuplicateReason.EXACT_MATCH if similarity == 100 else partial_type


# (record attribute, reason field, reason type for a partial match)
FIELD_RULES: Tuple[Tuple[str, str, str], ...] = (
    ("username", "username", DuplicateReason.SIMILAR_NAME),
    ("display_name", "displayName", DuplicateReason.SIMILAR_NAME),
    ("bio", "bio", DuplicateReason.SAME_BIO),
    ("profile_image_url", "profileImageUrl", DuplicateReason.SAME_IMAGE),
    ("location", "location", DuplicateReason.SAME_LOCATION),
    ("follower_count", "followerCount", DuplicateReason.SIMILAR_METRICS),
)

# Fields whose full match is reported as exact_match rather than their own type
EXACT_MATCH_FIELDS = frozenset({"username", "display_name", "bio", "location"})


class DuplicateDetector:
    """Scores how likely two same-platform records describe the same creator."""

    def __init__(self, config: Optional[DuplicateConfig] = None) -> None:
        self.config = config or DuplicateConfig()
        self._scorers: Dict[str, Callable[[Any, Any], int]] = {
            "username": username_similarity,
            "display_name": lambda a, b: display_name_similarity(a, b, self.config.display_name_penalty),
            "bio": bio_similarity,
            "profile_image_url": image_similarity,
            "location": location_similarity,
            "follower_count": follower_similarity,
        }

    def _reason_value(self, attr: str, value: Any) -> str:
        text = str(value)
        limit = self.config.bio_preview_length
        if attr == "bio" and len(text) > limit:
            return text[:limit] + "..."
        return text

    def compare(self, first: CanonicalRecord, second: CanonicalRecord) -> DuplicateMatch:
        """Score one pair without applying the similarity cut-off."""
        weights = self.config.weights
        reasons: List[DuplicateReason] = []
        weighted_total = 0.0
        weight_sum = 0.0

        for attr, label, partial_type in FIELD_RULES:
            weight = weights.get(attr, 0.0)
            value_a = getattr(first, attr)
            value_b = getattr(second, attr)
            if not weight or value_a is None or value_b is None:
                continue

            similarity = self._scorers[attr](value_a, value_b)
            if similarity <= 0:
                continue
            # Only fields with some resemblance enter the weighted mean
            weighted_total += similarity * weight
            weight_sum += weight

            reason_type = (
                _text_reason_type(similarity, partial_type) if attr in EXACT_MATCH_FIELDS else partial_type
            )
            reasons.append(
                DuplicateReason(
                    type=reason_type,
                    field=label,
                    similarity=similarity,
                    value1=self._reason_value(attr, value_a),
                    value2=self._reason_value(attr, value_b),
                )
            )

        similarity = round_half_up(weighted_total / weight_sum) if weight_sum else 0
        return DuplicateMatch(
            profile1=first.identifier,
            profile2=second.identifier,
            similarity=similarity,
            reasons=reasons,
            confidence=self._confidence(similarity, reasons),
            recommendation=self._recommendation(similarity, first, second),
        )

    def _confidence(self, similarity: int, reasons: Sequence[DuplicateReason]) -> str:
        exact = sum(1 for reason in reasons if reason.type == DuplicateReason.EXACT_MATCH)
        strong = sum(1 for reason in reasons if reason.similarity >= 90)

        if similarity >= self.config.high_confidence_similarity and (exact >= 2 or strong >= 3):
            return DuplicateMatch.CONFIDENCE_HIGH
        if similarity >= self.config.medium_confidence_similarity and (exact >= 1 or strong >= 2):
            return DuplicateMatch.CONFIDENCE_MEDIUM
        return DuplicateMatch.CONFIDENCE_LOW

    def _recommendation(self, similarity: int, first: CanonicalRecord, second: CanonicalRecord) -> str:
        if similarity >= self.config.merge_similarity:
            return DuplicateMatch.RECOMMEND_MERGE
        if similarity >= self.config.investigate_similarity:
            return DuplicateMatch.RECOMMEND_INVESTIGATE
        # Verification mismatch may be impersonation
        if first.is_verified != second.is_verified:
            return DuplicateMatch.RECOMMEND_INVESTIGATE
        return DuplicateMatch.RECOMMEND_KEEP_SEPARATE

    def _keep(self, match: DuplicateMatch) -> bool:
        return match.similarity >= self.config.min_similarity

    @staticmethod
    def _sorted(matches: List[DuplicateMatch]) -> List[DuplicateMatch]:
        return sorted(matches, key=lambda match: match.similarity, reverse=True)

    def _row_matches(self, records: Sequence[CanonicalRecord], index: int) -> List[DuplicateMatch]:
        first = records[index]
        matches: List[DuplicateMatch] = []
        for second in records[index + 1:]:
            if first.platform != second.platform:
                continue
            match = self.compare(first, second)
            if self._keep(match):
                matches.append(match)
        return matches

    def find_duplicates(
        self, records: Sequence[CanonicalRecord], max_workers: Optional[int] = None
    ) -> List[DuplicateMatch]:
        """Compare every unordered same-platform pair in ``records``.

        With ``max_workers`` above one the rows of the pair matrix are spread
        over a thread pool; the result is identical to the sequential run.
        """
        records = list(records)
        rows = range(len(records))

        if max_workers and max_workers > 1 and len(records) > 2:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                partials = list(executor.map(lambda index: self._row_matches(records, index), rows))
        else:
            partials = [self._row_matches(records, index) for index in rows]

        matches = [match for partial in partials for match in partial]
        logger.debug(f"Compared {len(records)} records, {len(matches)} potential duplicates")
        return self._sorted(matches)

    def find_similar(
        self, target: CanonicalRecord, pool: Sequence[CanonicalRecord]
    ) -> List[DuplicateMatch]:
        """Compare ``target`` against each same-platform record in ``pool``."""
        matches = []
        for candidate in pool:
            if candidate is target or candidate.platform != target.platform:
                continue
            match = self.compare(target, candidate)
            if self._keep(match):
                matches.append(match)
        return self._sorted(matches)

    @staticmethod
    def duplicate_stats(matches: Sequence[DuplicateMatch]) -> DuplicateStats:
        """Count matches per confidence tier and tally their reasons."""
        reasons: Counter = Counter(
            f"{reason.field} ({reason.type})" for match in matches for reason in match.reasons
        )
        return DuplicateStats(
            total_matches=len(matches),
            high_confidence=sum(1 for m in matches if m.confidence == DuplicateMatch.CONFIDENCE_HIGH),
            medium_confidence=sum(1 for m in matches if m.confidence == DuplicateMatch.CONFIDENCE_MEDIUM),
            low_confidence=sum(1 for m in matches if m.confidence == DuplicateMatch.CONFIDENCE_LOW),
            recommend_merge=sum(1 for m in matches if m.recommendation == DuplicateMatch.RECOMMEND_MERGE),
            common_reasons=dict(reasons.most_common()),
        )
