"""Unit tests for environment configuration loading."""

import pytest
from pydantic import ValidationError

from dietkaro.infrastructure.config import (
    get_log_level,
    get_meal_log_backend,
    get_mongodb_database,
    get_mongodb_uri,
    load_compliance_config,
    load_validation_config,
)


class TestLoadComplianceConfig:
    """Test COMPLIANCE_* variables."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("COMPLIANCE_THRESHOLD_GREEN", raising=False)

        config = load_compliance_config(dotenv=False)

        assert config.green_min == 80
        assert config.yellow_min == 50

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPLIANCE_THRESHOLD_GREEN", "85")
        monkeypatch.setenv("COMPLIANCE_LATE_LOG_PENALTY", " 10 ")
        monkeypatch.setenv("COMPLIANCE_TREND_THRESHOLD", "2.5")

        config = load_compliance_config(dotenv=False)

        assert config.green_min == 85
        assert config.late_log_penalty == 10
        assert config.trend_hysteresis == 2.5

    def test_fallback_scores_overridable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPLIANCE_FALLBACK_EATEN_SCORE", "90")
        monkeypatch.setenv("COMPLIANCE_FALLBACK_SUBSTITUTED_SCORE", "40")

        config = load_compliance_config(dotenv=False)

        assert config.fallback_eaten_score == 90
        assert config.fallback_substituted_score == 40

    def test_blank_variable_keeps_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPLIANCE_NO_PHOTO_PENALTY", "")

        assert load_compliance_config(dotenv=False).no_photo_penalty == 15

    def test_invalid_value_fails_fast(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COMPLIANCE_THRESHOLD_YELLOW", "abc")

        with pytest.raises(ValidationError):
            load_compliance_config(dotenv=False)


class TestLoadValidationConfig:
    """Test VALIDATION_* variables."""

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VALIDATION_MAX_BATCH_SIZE", "20")
        monkeypatch.setenv("VALIDATION_CACHE_MAX_ENTRIES", "500")

        config = load_validation_config(dotenv=False)

        assert config.max_batch_size == 20
        assert config.cache_max_entries == 500
        assert config.batch_concurrency == 10


class TestConnectionSettings:
    """Test MongoDB and logging helpers."""

    def test_mongodb_uri_expands_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MONGODB_URI", "mongodb://${MONGODB_USER}:${MONGODB_PASSWORD}@db:27017")
        monkeypatch.setenv("MONGODB_USER", "svc")
        monkeypatch.setenv("MONGODB_PASSWORD", "secret")

        assert get_mongodb_uri() == "mongodb://svc:secret@db:27017"

    def test_mongodb_uri_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MONGODB_URI", raising=False)

        assert get_mongodb_uri() is None

    def test_database_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MONGODB_DATABASE", raising=False)

        assert get_mongodb_database() == "dietkaro"

    def test_meal_log_backend_normalised(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MEAL_LOG_BACKEND", " MongoDB ")

        assert get_meal_log_backend() == "mongodb"

    def test_log_level_uppercased(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert get_log_level() == "DEBUG"
