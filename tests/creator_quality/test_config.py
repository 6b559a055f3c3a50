from pathlib import Path

import pytest

from src.creator_quality.config import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, QualityConfig, load_config
from src.creator_quality.models import QualityIssue, QualityScore, ScoreBreakdown
from src.creator_quality.validator import DataQualityValidator


def test_default_weights_are_normalised():
    config = QualityConfig.default()

    assert sum(config.scoring.optional_field_weights.values()) == 100
    assert sum(config.duplicates.weights.values()) == pytest.approx(1.0)
    assert config.validation.min_overall_score == 40
    assert config.duplicates.min_similarity == 30


def test_shipped_config_matches_defaults():
    config_path = Path(__file__).parent.parent.parent / "config" / "quality_thresholds.yaml"
    assert QualityConfig.from_file(config_path) == QualityConfig.default()


def test_overrides_from_yaml(tmp_path):
    config_path = tmp_path / "thresholds.yaml"
    config_path.write_text(
        "scoring:\n"
        "  min_required_fields: 90\n"
        "duplicates:\n"
        "  weights:\n"
        "    username: 0.5\n"
        "validation:\n"
        "  blocked_username_terms: [spam]\n"
        "  no_such_option: 1\n",
        encoding="utf-8",
    )
    config = QualityConfig.from_file(config_path)

    assert config.scoring.min_required_fields == 90
    assert config.duplicates.weights["username"] == 0.5
    # Unlisted weights keep their defaults
    assert config.duplicates.weights["display_name"] == 0.25
    assert config.validation.blocked_username_terms == ("spam",)
    assert not hasattr(config.validation, "no_such_option")


def test_missing_file_yields_defaults(tmp_path):
    assert QualityConfig.from_file(tmp_path / "absent.yaml") == QualityConfig.default()


def test_non_mapping_file_is_rejected(tmp_path):
    config_path = tmp_path / "list.yaml"
    config_path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError):
        QualityConfig.from_file(config_path)


def test_load_config_from_environment(tmp_path, monkeypatch):
    config_path = tmp_path / "env.yaml"
    config_path.write_text("validation:\n  min_overall_score: 55\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    assert load_config().validation.min_overall_score == 55


def test_validator_uses_configured_gate():
    config = QualityConfig.from_dict({"validation": {"min_overall_score": 60}})
    validator = DataQualityValidator(config)
    score = QualityScore(
        overall=55,
        completeness=55,
        consistency=55,
        reliability=55,
        breakdown=ScoreBreakdown(),
        issues=[QualityIssue("bio", QualityIssue.SEVERITY_INFO, "note", 0)],
    )

    assert not validator.determine_validity(score, [])
    assert DataQualityValidator().determine_validity(score, [])


def test_default_path_does_not_depend_on_working_directory(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)

    assert DEFAULT_CONFIG_PATH.is_absolute()
    assert DEFAULT_CONFIG_PATH.exists()
    assert DEFAULT_CONFIG_PATH == Path(__file__).resolve().parent.parent.parent / "config" / "quality_thresholds.yaml"
    assert load_config() == QualityConfig.default()


def test_blocked_terms_are_strings():
    terms = QualityConfig.default().validation.blocked_username_terms

    assert isinstance(terms, tuple)
    assert all(isinstance(term, str) for term in terms)
