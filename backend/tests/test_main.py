"""Tests for the FastAPI main application factory and health checks.

This module validates that:
    - The FastAPI app is correctly instantiated via main.create_app,
    - OpenAPI metadata (title, version) matches the project contract,
    - Routers are registered and the /health endpoint responds,
    - The lifespan mounts the live crossfade overlay and removes it on
      shutdown,
    - Restarting the application lifespan serves tiles from a fresh pool.

See Also:
    - backend/crepuscule/main.py for the application factory.
"""

from __future__ import annotations

from typing import cast

from fastapi import testclient

from crepuscule import main
from crepuscule.core import clock as clock_module
from crepuscule.core import config


def test_create_app() -> None:
    """Test that create_app returns a configured FastAPI instance."""
    app = main.create_app(config.Settings(live=False))
    assert app is not None
    assert app.title == "Crepuscule"
    assert app.version == "0.1.0"
    assert app.state.scheduler is None


def test_health_endpoint() -> None:
    """Test the health check endpoint returns ok status."""
    app = main.create_app(config.Settings(live=False))
    client = testclient.TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_app_includes_routers() -> None:
    """Test that all API routers are included in the app."""
    app = main.create_app(config.Settings(live=False))
    routes: list[str] = [
        cast(str, getattr(route, "path", ""))
        for route in app.routes  # type: ignore[attr-defined]
        if hasattr(route, "path")
    ]
    assert "/health" in routes
    assert "/tiles/{namespace}/{request_id}.png" in routes
    assert "/api/overlays" in routes
    assert "/api/overlays/style" in routes
    assert "/api/sun" in routes


def test_lifespan_mounts_live_overlay() -> None:
    """Test that startup mounts both buffers and shutdown removes them."""
    clock = clock_module.ManualClock(start=1_700_000_000_000)
    settings = config.Settings(live=True, opacity=0.6, tile_size=64)
    app = main.create_app(settings, clock=clock)
    host_map = app.state.host_map

    with testclient.TestClient(app) as client:
        scheduler = app.state.scheduler
        assert scheduler is not None
        assert scheduler.running is True
        overlays = client.get("/api/overlays").json()
        assert sorted(entry["opacity"] for entry in overlays) == [0.0, 0.6]

        protocol = scheduler.live_layer.identity.protocol
        response = client.get(f"/tiles/{protocol}/1-0-1-1700000000000.png")
        assert response.status_code == 200

    assert app.state.scheduler is None
    assert list(host_map.layers()) == []


def test_app_serves_tiles_after_restart() -> None:
    """Test that a second startup of one app gets a fresh tile pool."""
    clock = clock_module.ManualClock(start=1_700_000_000_000)
    settings = config.Settings(live=True, tile_size=64)
    app = main.create_app(settings, clock=clock)

    statuses = []
    for _ in range(2):
        with testclient.TestClient(app) as client:
            assert app.state.executor is not None
            protocol = app.state.scheduler.live_layer.identity.protocol
            response = client.get(f"/tiles/{protocol}/0-0-0-1700000000000.png")
            statuses.append(response.status_code)
        assert app.state.executor is None

    assert statuses == [200, 200]
