"""Unit tests for settings resolution and configuration validation."""

import pytest
from pydantic import ValidationError

from bestthing.errors import ConfigurationInconsistencyWarning
from bestthing.matchup.models import Configuration
from bestthing.settings import SettingsCache, parse_settings

pytestmark = pytest.mark.unit


class TestConfiguration:
    """Tests for the Configuration model."""

    def test_defaults(self):
        config = Configuration()
        assert config.familiarity_weight == 0.2
        assert config.cooldown_period == 55
        assert config.min_comparisons_for_confidence == 30
        assert config.factor_weight_sum == pytest.approx(1.0)

    def test_is_frozen(self):
        config = Configuration()
        with pytest.raises(ValidationError):
            config.familiarity_weight = 0.9

    def test_rejects_out_of_range(self):
        with pytest.raises(ValidationError):
            Configuration(familiarity_weight=1.5)
        with pytest.raises(ValidationError):
            Configuration(cooldown_period=-1)

    def test_high_threshold_must_exceed_medium(self):
        with pytest.raises(ValidationError):
            Configuration(high_confidence_threshold=0.3, medium_confidence_threshold=0.5)

    def test_weight_drift_warns_but_is_allowed(self):
        with pytest.warns(ConfigurationInconsistencyWarning):
            config = Configuration(engagement_factor_weight=0.5)
        assert config.factor_weight_sum == pytest.approx(1.35)


class TestParseSettings:
    """Tests for parse_settings."""

    def test_empty_uses_defaults(self):
        assert parse_settings({}, environ={}) == Configuration()

    def test_settings_table_values(self):
        config = parse_settings(
            {"familiarity_weight": "0.5", "cooldown_period": "10", "diversity_filtering_enabled": "false"},
            environ={},
        )
        assert config.familiarity_weight == 0.5
        assert config.cooldown_period == 10
        assert config.diversity_filtering_enabled is False

    def test_environment_fallback(self):
        config = parse_settings({}, environ={"UPSET_THRESHOLD": "150"})
        assert config.upset_threshold == 150

    def test_settings_table_wins_over_environment(self):
        config = parse_settings({"upset_threshold": "120"}, environ={"UPSET_THRESHOLD": "150"})
        assert config.upset_threshold == 120

    def test_legacy_cooldown_variable(self):
        config = parse_settings({}, environ={"FAMILIARITY_COOLDOWN": "12"})
        assert config.cooldown_period == 12

    def test_invalid_value_falls_through(self):
        config = parse_settings(
            {"familiarity_weight": "1.7", "recency_decay_days": "soon"},
            environ={"FAMILIARITY_WEIGHT": "0.4"},
        )
        assert config.familiarity_weight == 0.4
        assert config.recency_decay_days == 30

    def test_empty_string_is_missing(self):
        config = parse_settings({"low_confidence_k": ""}, environ={})
        assert config.low_confidence_k == 32

    def test_inconsistent_thresholds_fall_back_to_defaults(self):
        config = parse_settings(
            {"high_confidence_threshold": "0.3", "cooldown_period": "12"},
            environ={},
        )
        assert config.high_confidence_threshold == 0.8
        assert config.medium_confidence_threshold == 0.33
        assert config.cooldown_period == 12

    def test_inconsistent_thresholds_from_environment(self):
        config = parse_settings(
            {"medium_confidence_threshold": "0.9"},
            environ={"HIGH_CONFIDENCE_THRESHOLD": "0.5"},
        )
        assert config.high_confidence_threshold > config.medium_confidence_threshold
        assert (config.high_confidence_threshold, config.medium_confidence_threshold) == (0.8, 0.33)


class TestSettingsCache:
    """Tests for SettingsCache."""

    async def test_caches_within_ttl(self):
        loads = []
        now = [0.0]

        async def loader():
            loads.append(1)
            return {"cooldown_period": str(len(loads))}

        cache = SettingsCache(loader, ttl_seconds=60, clock=lambda: now[0], environ={})

        first = await cache.get()
        now[0] = 30.0
        second = await cache.get()

        assert first is second
        assert len(loads) == 1

        now[0] = 61.0
        third = await cache.get()
        assert third.cooldown_period == 2

    async def test_invalidate(self):
        raw = {"upset_threshold": "100"}

        async def loader():
            return raw

        cache = SettingsCache(loader, environ={})
        assert (await cache.get()).upset_threshold == 100

        raw["upset_threshold"] = "250"
        assert (await cache.get()).upset_threshold == 100

        cache.invalidate()
        assert (await cache.get()).upset_threshold == 250

    async def test_bad_threshold_edit_still_yields_configuration(self):
        raw = {"high_confidence_threshold": "0.9"}

        async def loader():
            return raw

        cache = SettingsCache(loader, environ={})
        assert (await cache.get()).high_confidence_threshold == 0.9

        raw["high_confidence_threshold"] = "0.2"
        cache.invalidate()
        config = await cache.get()
        assert config.high_confidence_threshold == 0.8
        assert config.medium_confidence_threshold == 0.33
