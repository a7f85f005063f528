"""Tests for settings and the technology vocabulary."""

import pytest
from pydantic import ValidationError

from devdigest.config.settings import Settings
from devdigest.config.technologies import TECHNOLOGIES, extract_technologies


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.max_total_items == 25
        assert settings.min_items_per_source == 3
        assert settings.good_enough_ratio == 0.6
        assert settings.desperate_ratio == 0.3
        assert settings.refresh_timeout_seconds == 25.0
        assert settings.parallel_refresh is False
        assert settings.dedup_window_hours == 24
        assert settings.is_production is False
        assert settings.reddit_configured is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MAX_TOTAL_ITEMS", "40")
        monkeypatch.setenv("PARALLEL_REFRESH", "true")
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings(_env_file=None)

        assert settings.max_total_items == 40
        assert settings.parallel_refresh is True
        assert settings.is_production is True

    def test_reddit_configured_needs_both_credentials(self):
        assert not Settings(_env_file=None, reddit_client_id="id").reddit_configured
        assert Settings(
            _env_file=None, reddit_client_id="id", reddit_client_secret="secret"
        ).reddit_configured

    @pytest.mark.parametrize(
        "field,value",
        [("max_total_items", 0), ("good_enough_ratio", 1.5), ("refresh_timeout_seconds", 0)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})


class TestExtractTechnologies:
    def test_vocabulary_order(self):
        text = "Deploying FastAPI and Python services on Kubernetes"

        assert extract_technologies(text) == ["Python", "Kubernetes", "API", "FastAPI"]

    def test_case_insensitive(self):
        assert extract_technologies("we moved from MONGODB to postgresql") == [
            "MongoDB",
            "PostgreSQL",
        ]

    def test_capped_at_five(self):
        text = " ".join(TECHNOLOGIES)

        assert extract_technologies(text) == list(TECHNOLOGIES[:5])

    def test_short_names_match_substrings(self):
        # "AI" inside "maintain"
        assert extract_technologies("How we maintain our docs") == ["AI"]

    def test_nothing_found(self):
        assert extract_technologies("a quiet week in gardening") == []
