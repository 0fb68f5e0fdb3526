"""Tests for the sub-solar point model in crepuscule.services.solar.

Reference values are the well-known solstice and equinox geometry: the
sub-solar latitude reaches about ±23.44° at the solstices and crosses 0°
at the equinoxes, and at 12:00 UTC the sub-solar longitude sits within a
few degrees of Greenwich (offset by the equation of time).

See Also:
    - backend/crepuscule/services/solar.py for implementation under test.
"""

from __future__ import annotations

import datetime

import pytest

from crepuscule.map import models
from crepuscule.services import solar


def _at(*args: int) -> int:
    return models.to_timestamp(datetime.datetime(*args, tzinfo=datetime.UTC))


def test_june_solstice() -> None:
    """Test the sub-solar point at noon UTC on the June solstice."""
    point = solar.subsolar_point(_at(2024, 6, 21, 12))
    assert point.latitude == pytest.approx(23.44, abs=0.3)
    assert point.longitude == pytest.approx(0.4, abs=1.0)


def test_december_solstice() -> None:
    """Test the sub-solar latitude on the December solstice."""
    point = solar.subsolar_point(_at(2023, 12, 22, 12))
    assert point.latitude == pytest.approx(-23.44, abs=0.3)


def test_march_equinox() -> None:
    """Test that the sun is over the equator at the March equinox."""
    point = solar.subsolar_point(_at(2024, 3, 20, 12))
    assert point.latitude == pytest.approx(0.0, abs=1.0)
    # The equation of time is about -7.5 minutes in late March.
    assert point.equation_of_time == pytest.approx(-7.5, abs=1.0)
    assert point.longitude == pytest.approx(1.9, abs=1.0)


def test_early_november_equation_of_time() -> None:
    """Test that the equation of time peaks near +16 minutes in November."""
    point = solar.subsolar_point(_at(2023, 11, 3, 12))
    assert point.equation_of_time == pytest.approx(16.4, abs=0.5)
    assert point.longitude == pytest.approx(-4.1, abs=0.5)


def test_longitude_moves_west_fifteen_degrees_per_hour() -> None:
    """Test that the sub-solar longitude moves 15°/h westwards."""
    first = solar.subsolar_point(_at(2024, 6, 21, 12))
    later = solar.subsolar_point(_at(2024, 6, 21, 14))
    assert first.longitude - later.longitude == pytest.approx(30.0, abs=0.1)


def test_longitude_is_normalized() -> None:
    """Test that the longitude stays within [-180, 180) around midnight UTC."""
    for hour in range(24):
        point = solar.subsolar_point(_at(2024, 1, 15, hour))
        assert -180.0 <= point.longitude < 180.0
    midnight = solar.subsolar_point(_at(2024, 1, 15, 0))
    assert abs(midnight.longitude) == pytest.approx(180.0, abs=5.0)


def test_deterministic() -> None:
    """Test that the same timestamp gives the same position."""
    assert solar.subsolar_point(1_700_000_000_000) == solar.subsolar_point(
        1_700_000_000_000
    )
