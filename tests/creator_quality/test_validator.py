"""Tests for the validation pipeline."""

import pytest

from src.creator_quality.models import (
    CanonicalRecord,
    DuplicateMatch,
    DuplicateReason,
    Platform,
    QualityIssue,
    QualityScore,
    ScoreBreakdown,
)
from src.creator_quality.quality_scorer import BANNER_EXCELLENT
from src.creator_quality.validator import (
    RECOMMEND_FIX_ERRORS,
    DataQualityValidator,
    validate_creator_profile,
)


@pytest.fixture
def validator():
    return DataQualityValidator()


@pytest.fixture
def clean_raw():
    return {
        "username": "Jane.Doe",
        "displayName": "Jane Doe",
        "followerCount": "12.5K",
        "bio": "Travel photographer sharing stories from the road",
        "profileImageUrl": "example.com/p.jpg",
        "metrics": {"postCount": 340},
    }


@pytest.fixture
def tiktok_raw():
    return {
        "username": "coolcreator",
        "displayName": "Cool Creator",
        "followerCount": "3M",
        "bio": "Gaming videos every day",
        "profileImageUrl": "https://cdn.example.com/c.jpg",
        "metrics": {"videoCount": 120},
    }


def make_score(overall, issues=()):
    return QualityScore(
        overall=overall,
        completeness=overall,
        consistency=overall,
        reliability=overall,
        breakdown=ScoreBreakdown(),
        issues=list(issues),
    )


def make_match(similarity, confidence, reason_type):
    return DuplicateMatch(
        profile1="instagram:a",
        profile2="instagram:b",
        similarity=similarity,
        reasons=[DuplicateReason(reason_type, "username", 100, "a", "b")],
        confidence=confidence,
        recommendation=DuplicateMatch.RECOMMEND_MERGE,
    )


def test_clean_record_is_valid(validator, clean_raw):
    """A complete Instagram scrape passes the validity gate."""
    report = validator.validate_one(clean_raw, "instagram")

    assert report.is_valid
    assert report.normalized_data.username == "jane.doe"
    assert report.normalized_data.follower_count == 12500
    assert report.normalized_data.profile_image_url == "https://example.com/p.jpg"
    assert report.quality.overall >= 70
    assert report.quality.critical_issues == []
    assert report.recommendations[0] == BANNER_EXCELLENT
    assert report.duplicates == []
    assert report.processing_time_ms >= 0


def test_validity_score_threshold(validator):
    """39 is rejected, 40 is accepted."""
    assert not validator.determine_validity(make_score(39), [])
    assert validator.determine_validity(make_score(40), [])


def test_validity_rejects_critical_issues(validator):
    critical = QualityIssue("username", QualityIssue.SEVERITY_CRITICAL, "missing", 25)
    warning = QualityIssue("website", QualityIssue.SEVERITY_WARNING, "bad url", 5)

    assert not validator.determine_validity(make_score(90, [critical]), [])
    assert validator.determine_validity(make_score(90, [warning]), [])


def test_validity_rejects_exact_duplicates_only(validator):
    score = make_score(90)
    exact = make_match(95, DuplicateMatch.CONFIDENCE_HIGH, DuplicateReason.EXACT_MATCH)
    below = make_match(94, DuplicateMatch.CONFIDENCE_HIGH, DuplicateReason.EXACT_MATCH)
    medium = make_match(99, DuplicateMatch.CONFIDENCE_MEDIUM, DuplicateReason.EXACT_MATCH)
    no_exact = make_match(99, DuplicateMatch.CONFIDENCE_HIGH, DuplicateReason.SAME_IMAGE)

    assert not validator.determine_validity(score, [exact])
    assert validator.determine_validity(score, [below, medium, no_exact])


def test_exact_duplicate_in_pool_invalidates(validator, clean_raw):
    """A re-scrape of a known profile is flagged and rejected."""
    known = CanonicalRecord(
        platform=Platform.INSTAGRAM,
        username="jane.doe",
        display_name="Jane Doe",
        profile_image_url="https://example.com/p.jpg",
    )
    report = validator.validate_one(clean_raw, "instagram", [known])

    assert not report.is_valid
    match = report.duplicates[0]
    assert match.similarity >= 95
    assert match.confidence == DuplicateMatch.CONFIDENCE_HIGH
    assert match.recommendation == DuplicateMatch.RECOMMEND_MERGE
    assert "1 high-confidence duplicate(s) found - investigate for merging" in report.recommendations


def test_rescrape_with_edited_bio_is_still_rejected(validator, clean_raw):
    """Bio and follower drift do not let a known profile back in."""
    known = CanonicalRecord(
        platform=Platform.INSTAGRAM,
        username="jane.doe",
        display_name="Jane Doe",
        bio="Now baking sourdough",
        follower_count=20000,
        profile_image_url="https://example.com/p.jpg",
    )
    report = validator.validate_one(clean_raw, "instagram", [known])

    assert report.is_valid is False
    match = report.duplicates[0]
    assert match.similarity >= 95
    assert match.confidence == DuplicateMatch.CONFIDENCE_HIGH


def test_pool_on_other_platform_is_ignored(validator, clean_raw):
    known = CanonicalRecord(platform=Platform.TIKTOK, username="jane.doe", display_name="Jane Doe")
    report = validator.validate_one(clean_raw, "instagram", [known])

    assert report.duplicates == []
    assert report.is_valid


def test_malformed_input_becomes_failure_report(validator):
    report = validator.validate_one(["not", "a", "mapping"], "instagram")

    assert not report.is_valid
    assert report.normalized_data is None
    assert report.quality.overall == 0
    assert report.quality.issues[0].field == "pipeline"
    assert report.recommendations == [RECOMMEND_FIX_ERRORS]


def test_unsupported_platform_becomes_failure_report(validator, clean_raw):
    report = validator.validate_one(clean_raw, "myspace")

    assert not report.is_valid
    assert "Unsupported platform" in report.normalization_issues[0]


def test_internal_errors_are_converted(clean_raw):
    """Unexpected exceptions never escape validate_one."""

    class ExplodingScorer:
        def score(self, record, platform):
            raise RuntimeError("boom")

    validator = DataQualityValidator(scorer=ExplodingScorer())
    report = validator.validate_one(clean_raw, "instagram")

    assert not report.is_valid
    assert report.normalization_issues == ["Validation error: boom"]
    assert report.quality.issues[0].message == "Validation error: boom"
    assert report.to_dict()["isValid"] is False


def test_normalization_advice_in_recommendations(validator):
    raw = {
        "username": "Some User!",
        "followers": "1.5K",
        "following": "2K",
        "website": "someuser.com",
        "profileImageUrl": "cdn.example.com/x.jpg",
        "metrics": {"postCount": 5},
    }
    report = validator.validate_one(raw, "instagram")

    assert "Address data normalization issues to improve data consistency" in report.recommendations
    assert "Review data collection process - high number of transformations needed" in report.recommendations


def test_ingestion_rejects_zero_followers(validator, clean_raw):
    raw = dict(clean_raw, followerCount=0)
    decision = validator.is_data_acceptable(raw, "instagram")

    assert not decision
    assert "Invalid follower count" in decision.reason


def test_ingestion_accepts_clean_record(validator, clean_raw, tiktok_raw):
    assert validator.is_data_acceptable(clean_raw, "instagram").acceptable
    assert validator.is_data_acceptable(tiktok_raw, "tiktok").acceptable


@pytest.mark.parametrize(
    "changes, platform, reason",
    [
        ({"username": None}, "instagram", "Missing or invalid username"),
        ({"displayName": ""}, "instagram", "Missing display name"),
        ({"followerCount": "2B"}, "instagram", "Invalid follower count: 2B"),
        ({"followerCount": "lots"}, "instagram", "Invalid follower count: lots"),
        ({"username": "demo_account"}, "instagram", "Test or invalid username detected"),
        ({"username": "x"}, "instagram", "Test or invalid username detected"),
        ({"bio": None, "profileImageUrl": None}, "instagram", "No profile image or bio - indicates scraping failure"),
        ({"metrics": {}}, "instagram", "Instagram profile missing post count"),
        ({"metrics": {"postCount": 5}}, "tiktok", "TikTok profile missing video or like count"),
        ({"metrics": {"postCount": 5}}, "youtube", "YouTube profile missing subscriber count"),
    ],
)
def test_ingestion_rejections(validator, clean_raw, changes, platform, reason):
    decision = validator.is_data_acceptable(dict(clean_raw, **changes), platform)

    assert not decision.acceptable
    assert decision.reason == reason


def test_ingestion_skips_blank_display_name_alias(validator, clean_raw):
    """A blank displayName falls through to display_name, as in normalization."""
    raw = dict(clean_raw, displayName="  ", display_name="Jane Doe")

    assert validator.is_data_acceptable(raw, "instagram").acceptable
    assert validator.validate_one(raw, "instagram").normalized_data.display_name == "Jane Doe"


def test_ingestion_youtube_subscribers(validator, clean_raw):
    raw = dict(clean_raw, metrics={"subscriberCount": "1.1M"})
    assert validator.is_data_acceptable(raw, "youtube").acceptable


def test_quick_validation(validator):
    with_platform = validator.quick_validation({"username": "a", "displayName": "A"}, "instagram")
    without = validator.quick_validation({"username": "a", "displayName": "A"})

    assert with_platform.is_valid
    assert with_platform.score == 75
    assert not without.is_valid
    assert without.critical_issues == ["Missing required field: platform"]
    assert without.score == 50


def test_batch_detects_duplicates(validator, clean_raw, tiktok_raw):
    """Cross-record duplicates invalidate both copies."""
    batch = validator.validate_batch(
        [
            {"raw": clean_raw, "platform": "instagram"},
            (dict(clean_raw), "instagram"),
            {"data": tiktok_raw, "platform": "tiktok"},
        ]
    )

    assert batch.total_profiles == 3
    assert batch.valid_profiles == 1
    assert batch.duplicate_stats.total_matches == 1
    assert batch.duplicate_stats.high_confidence == 1
    assert len(batch.duplicates) == 1
    assert [len(report.duplicates) for report in batch.reports] == [1, 1, 0]
    assert [report.is_valid for report in batch.reports] == [False, False, True]
    assert batch.quality_distribution.excellent == 3
    assert batch.normalization_stats.success_rate == 100
    assert "1 profiles recommended for merging due to high similarity" in batch.recommendations
    assert (
        "High duplicate rate detected - implement better deduplication in data collection"
        in batch.recommendations
    )
    assert "Good overall data quality - minor improvements will optimize performance" in batch.recommendations


def test_batch_without_duplicate_check(validator, clean_raw):
    batch = validator.validate_batch(
        [(clean_raw, "instagram"), (dict(clean_raw), "instagram")], check_duplicates=False
    )

    assert batch.valid_profiles == 2
    assert batch.duplicates == []


def test_batch_parallel_preserves_order(validator, clean_raw, tiktok_raw):
    items = [(tiktok_raw, "tiktok"), (clean_raw, "instagram"), ({"username": "solo"}, "youtube")]

    sequential = validator.validate_batch(items)
    parallel = validator.validate_batch(items, max_workers=3)

    assert [r.normalized_data for r in parallel.reports] == [r.normalized_data for r in sequential.reports]
    assert parallel.valid_profiles == sequential.valid_profiles
    assert parallel.common_issues == sequential.common_issues


def test_batch_malformed_item(validator):
    batch = validator.validate_batch([{"platform": "instagram"}])

    assert batch.total_profiles == 1
    assert batch.valid_profiles == 0
    assert batch.quality_distribution.poor == 1


def test_empty_batch(validator):
    batch = validator.validate_batch([])

    assert batch.total_profiles == 0
    assert batch.average_quality == 0
    assert batch.to_dict()["qualityDistribution"] == {"excellent": 0, "good": 0, "fair": 0, "poor": 0}


def test_batch_common_issues_limit(validator):
    items = [({"username": f"user{i}", "bio": f"<b>{i}</b>"}, "instagram") for i in range(3)]
    batch = validator.validate_batch(items, check_duplicates=False)

    assert len(batch.common_issues) <= 10
    assert "Normalization: Display name missing, using username as fallback" in batch.common_issues


def test_validate_creator_profile_helper(clean_raw):
    assert validate_creator_profile(clean_raw, "instagram").is_valid
