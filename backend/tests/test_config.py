"""Tests for application configuration and settings.

This module contains unit tests for the Settings Pydantic model and
application configuration logic in crepuscule.core.config. It ensures
that default values, environment overrides, validation and get_settings
caching work as expected.

See Also:
    - backend/crepuscule/core/config.py for implementation under test.
"""

from __future__ import annotations

import pydantic
import pytest

from crepuscule.core import config
from crepuscule.map import models


def test_settings_defaults() -> None:
    """Test that Settings has expected default values."""
    settings = config.Settings()
    assert settings.color == (0, 0, 17)
    assert settings.opacity == 0.7
    assert settings.debug is False
    assert settings.tile_size == 512
    assert settings.refresh_interval_ms == 5000
    assert settings.swap_delay_ms == 1000
    assert settings.allow_origins == ["*"]


def test_settings_environment_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that CREPUSCULE_ environment variables override defaults."""
    monkeypatch.setenv("CREPUSCULE_OPACITY", "0.5")
    monkeypatch.setenv("CREPUSCULE_COLOR", "[10, 20, 30]")
    monkeypatch.setenv("CREPUSCULE_LIVE", "false")
    settings = config.Settings()
    assert settings.opacity == 0.5
    assert settings.color == (10, 20, 30)
    assert settings.live is False


def test_settings_rejects_out_of_range_color() -> None:
    """Test that color channels must fit in a byte."""
    with pytest.raises(pydantic.ValidationError):
        config.Settings(color=(0, 0, 300))


def test_settings_rejects_out_of_range_opacity() -> None:
    """Test that opacity must lie within [0, 1]."""
    with pytest.raises(pydantic.ValidationError):
        config.Settings(opacity=1.5)


def test_get_settings_cached() -> None:
    """Test that get_settings returns cached instance."""
    config.get_settings.cache_clear()
    settings1 = config.get_settings()
    settings2 = config.get_settings()
    assert settings1 is settings2
    config.get_settings.cache_clear()


def test_options_from_settings() -> None:
    """Test that overlay options are built from settings."""
    settings = config.Settings(color=(1, 2, 3), opacity=0.4, debug=True)
    options = models.CrepusculeOptions.from_settings(settings)
    assert options.color == (1, 2, 3)
    assert options.opacity == 0.4
    assert options.debug is True
    assert options.date is None
