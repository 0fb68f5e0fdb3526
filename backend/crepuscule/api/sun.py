"""Sub-solar point endpoint."""

import fastapi

from crepuscule.api import deps
from crepuscule.core import clock as clock_module
from crepuscule.services import solar

router = fastapi.APIRouter(prefix="/api/sun", tags=["sun"])


@router.get("")
async def get_subsolar_point(
    timestamp: int | None = None,
    clock: clock_module.Clock = fastapi.Depends(deps.get_clock),  # noqa: B008
) -> dict[str, float | int]:
    """Return where the sun is at the zenith.

    Args:
        timestamp: Instant in epoch milliseconds; defaults to now.
        clock: Application clock (injected via FastAPI Depends).

    Returns:
        Dictionary with ``timestamp``, ``latitude``, ``longitude``,
        ``declination`` and ``equation_of_time`` (minutes).
    """
    if timestamp is None:
        timestamp = clock.now()
    position = solar.subsolar_point(timestamp)
    return {
        "timestamp": timestamp,
        "latitude": position.latitude,
        "longitude": position.longitude,
        "declination": position.declination,
        "equation_of_time": position.equation_of_time,
    }
