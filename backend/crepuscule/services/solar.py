"""Low-precision sub-solar point computation.

The sub-solar point is where the sun stands at the zenith. Its latitude is
the solar declination; its longitude follows from the UTC time of day
corrected by the equation of time. Both terms use the NOAA fractional-year
series, which is accurate to a fraction of a degree and plenty for drawing a
day/night terminator on a map.

Example:
    Locate the sun for a timestamp in epoch milliseconds:
        >>> from crepuscule.services import solar
        >>> point = solar.subsolar_point(1_700_000_000_000)
        >>> point.latitude < 0  # mid-November, southern summer
        True
"""

from __future__ import annotations

import dataclasses
import datetime
import math

from crepuscule.map import models


@dataclasses.dataclass(frozen=True)
class SolarPosition:
    """Solar terms for one instant.

    Attributes:
        declination: Solar declination in degrees.
        equation_of_time: Apparent minus mean solar time, in minutes.
        latitude: Latitude of the sub-solar point in degrees.
        longitude: Longitude of the sub-solar point in degrees, in
            [-180, 180).
    """

    declination: float
    equation_of_time: float
    latitude: float
    longitude: float


def _fractional_year(moment: datetime.datetime) -> float:
    """Angle in radians of ``moment`` through its year."""
    year_start = datetime.datetime(moment.year, 1, 1, tzinfo=datetime.UTC)
    next_year = datetime.datetime(moment.year + 1, 1, 1, tzinfo=datetime.UTC)
    days_in_year = (next_year - year_start).days
    day_of_year = moment.timetuple().tm_yday
    hours = moment.hour + moment.minute / 60 + moment.second / 3600
    return 2 * math.pi / days_in_year * (day_of_year - 1 + (hours - 12) / 24)


def declination(gamma: float) -> float:
    """Solar declination in degrees for fractional year ``gamma``."""
    radians = (
        0.006918
        - 0.399912 * math.cos(gamma)
        + 0.070257 * math.sin(gamma)
        - 0.006758 * math.cos(2 * gamma)
        + 0.000907 * math.sin(2 * gamma)
        - 0.002697 * math.cos(3 * gamma)
        + 0.00148 * math.sin(3 * gamma)
    )
    return math.degrees(radians)


def equation_of_time(gamma: float) -> float:
    """Equation of time in minutes for fractional year ``gamma``."""
    return 229.18 * (
        0.000075
        + 0.001868 * math.cos(gamma)
        - 0.032077 * math.sin(gamma)
        - 0.014615 * math.cos(2 * gamma)
        - 0.040849 * math.sin(2 * gamma)
    )


def subsolar_point(timestamp: models.Timestamp) -> SolarPosition:
    """Compute the solar terms and sub-solar point at ``timestamp``.

    The sun crosses the meridian whose apparent solar time is noon, so the
    sub-solar longitude is ``-15°`` per hour away from 12:00 UTC, shifted by
    the equation of time.

    Args:
        timestamp: Milliseconds since the Unix epoch.

    Returns:
        SolarPosition for that instant.
    """
    moment = models.from_timestamp(timestamp)
    gamma = _fractional_year(moment)
    decl = declination(gamma)
    eot = equation_of_time(gamma)

    utc_minutes = (
        moment.hour * 60
        + moment.minute
        + (moment.second + moment.microsecond / 1e6) / 60
    )
    longitude = -(utc_minutes + eot - 720) / 4
    longitude = (longitude + 180) % 360 - 180

    return SolarPosition(
        declination=decl,
        equation_of_time=eot,
        latitude=decl,
        longitude=longitude,
    )
