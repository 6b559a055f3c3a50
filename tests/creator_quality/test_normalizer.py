"""Tests for the creator record normalizer."""

import pytest

from src.creator_quality.models import InstagramMetrics, Platform, TikTokMetrics
from src.creator_quality.normalizer import DataNormalizer, normalize_record


@pytest.fixture
def normalizer():
    return DataNormalizer()


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


def test_normalize_clean_instagram_record(normalizer, clean_raw):
    """A typical scrape is projected onto the canonical record."""
    result = normalizer.normalize(clean_raw, "instagram")

    assert result.succeeded
    record = result.record
    assert record.platform is Platform.INSTAGRAM
    assert record.username == "jane.doe"
    assert record.display_name == "Jane Doe"
    assert record.follower_count == 12500
    assert record.following_count is None
    assert record.profile_image_url == "https://example.com/p.jpg"
    assert record.metrics == InstagramMetrics(post_count=340)
    assert record.is_verified is False
    assert result.issues == []
    assert 'Username: "Jane.Doe" → "jane.doe"' in result.transformations


def test_normalize_is_idempotent(normalizer, clean_raw):
    """Re-normalizing canonical output changes nothing."""
    first = normalizer.normalize(clean_raw, Platform.INSTAGRAM)
    second = normalizer.normalize(first.record.to_dict(), Platform.INSTAGRAM)

    assert second.record == first.record
    assert second.transformations == []
    assert second.issues == []


def test_username_invalid_characters_are_stripped(normalizer):
    result = normalizer.normalize({"username": "  Jane Doe!!  ", "displayName": "Jane"}, "instagram")
    assert result.record.username == "janedoe"


def test_username_is_capped(normalizer):
    result = normalizer.normalize({"username": "a" * 40, "displayName": "A"}, "tiktok")
    assert result.record.username == "a" * 30


def test_missing_username_is_an_issue(normalizer):
    result = normalizer.normalize({"username": 123, "displayName": "Numbers"}, "instagram")
    assert result.record.username is None
    assert "Username is missing or not a string" in result.issues


def test_display_name_falls_back_to_username(normalizer):
    """A missing display name is an issue, not a failure."""
    result = normalizer.normalize({"username": "solo"}, "instagram")

    assert result.record.display_name == "solo"
    assert "Display name missing, using username as fallback" in result.issues


def test_display_name_snake_case_key(normalizer):
    result = normalizer.normalize({"username": "alice", "display_name": "  Alice   Smith "}, "youtube")

    assert result.record.display_name == "Alice Smith"
    assert "Used display_name field for displayName" in result.transformations


def test_zero_followers_differs_from_missing(normalizer):
    """Zero and unknown follower counts stay distinguishable."""
    zero = normalizer.normalize({"username": "x", "displayName": "X", "followerCount": 0}, "instagram")
    missing = normalizer.normalize({"username": "x", "displayName": "X"}, "instagram")

    assert zero.record.follower_count == 0
    assert missing.record.follower_count is None


def test_unparseable_follower_count(normalizer):
    result = normalizer.normalize({"username": "x", "displayName": "X", "followerCount": "lots"}, "instagram")

    assert result.record.follower_count is None
    assert "Unparseable follower count: 'lots'" in result.issues


def test_follower_aliases_and_metrics_fallback(normalizer):
    aliased = normalizer.normalize({"username": "x", "displayName": "X", "followers": "5M"}, "instagram")
    nested = normalizer.normalize(
        {"username": "x", "displayName": "X", "metrics": {"followerCount": "1K", "postCount": 3}}, "instagram"
    )

    assert aliased.record.follower_count == 5_000_000
    assert nested.record.follower_count == 1000
    assert any("(from metrics)" in entry for entry in nested.transformations)


def test_verification_flag_variants(normalizer):
    assert normalizer.normalize({"username": "x", "verified": "Yes"}, "instagram").record.is_verified
    assert normalizer.normalize({"username": "x", "isVerified": 1}, "instagram").record.is_verified
    assert not normalizer.normalize({"username": "x", "isVerified": "nope"}, "instagram").record.is_verified


def test_invalid_url_is_dropped(normalizer):
    result = normalizer.normalize(
        {"username": "x", "displayName": "X", "profileImageUrl": "not a url", "website": "janedoe.com"},
        "instagram",
    )

    assert result.record.profile_image_url is None
    assert result.record.website == "https://janedoe.com"
    assert any(issue.startswith("Invalid profile image URL dropped") for issue in result.issues)


def test_long_bio_is_capped_silently(normalizer):
    """Truncation is not reported as a transformation."""
    result = normalizer.normalize({"username": "x", "displayName": "X", "bio": "x" * 600}, "instagram")

    assert len(result.record.bio) == 500
    assert result.transformations == []


def test_bio_markup_is_stripped(normalizer):
    result = normalizer.normalize(
        {"username": "x", "displayName": "X", "bio": "<p>Hi <b>there</b></p>"}, "instagram"
    )
    assert result.record.bio == "Hi there"


def test_tiktok_metric_aliases(normalizer):
    """Metric fields are tried under their aliases."""
    result = normalizer.normalize(
        {
            "username": "dancer",
            "displayName": "Dancer",
            "metrics": {"videos": "1.2K", "likes": "3M", "engagement_rate": "4.5%"},
        },
        "tiktok",
    )

    assert result.record.metrics == TikTokMetrics(like_count=3_000_000, video_count=1200, engagement_rate=4.5)


def test_metrics_not_a_mapping(normalizer):
    result = normalizer.normalize({"username": "x", "displayName": "X", "metrics": "lots"}, "instagram")

    assert result.record.metrics is None
    assert "Metrics field is not a mapping" in result.issues


def test_non_mapping_input_never_raises(normalizer):
    """Internal failures come back as a result with the original input."""
    raw = ["not", "a", "record"]
    result = normalizer.normalize(raw, "instagram")

    assert result.record is None
    assert result.original is raw
    assert result.issues[0].startswith("Normalization error")


def test_unsupported_platform(normalizer):
    result = normalizer.normalize({"username": "x"}, "myspace")

    assert not result.succeeded
    assert "Unsupported platform" in result.issues[0]


def test_batch_normalize_and_stats(normalizer, clean_raw):
    results = normalizer.batch_normalize([(clean_raw, "instagram"), ({"username": "solo"}, "tiktok")])
    stats = normalizer.normalization_stats(results)

    assert [r.record.username for r in results] == ["jane.doe", "solo"]
    assert stats.success_rate == 50
    assert stats.total_issues == 1
    assert stats.common_issues == {"Display name missing, using username as fallback": 1}
    assert stats.total_transformations == len(results[0].transformations)


def test_stats_for_empty_input(normalizer):
    assert normalizer.normalization_stats([]).success_rate == 0


def test_normalize_record_helper(clean_raw):
    assert normalize_record(clean_raw, "instagram").record.username == "jane.doe"
