"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import fastapi

from crepuscule.core import clock as clock_module
from crepuscule.map import host as host_module


def get_host(request: fastapi.Request) -> host_module.InMemoryHostMap:
    """Resolve the host map created by the application factory.

    Args:
        request: Incoming request (injected by FastAPI).

    Returns:
        The application's InMemoryHostMap.
    """
    return request.app.state.host_map


def get_clock(request: fastapi.Request) -> clock_module.Clock:
    """Resolve the application's clock."""
    return request.app.state.clock
