"""Tests for the tile, overlay and sun HTTP endpoints.

These tests build the application with live mode off and a ManualClock,
mount overlays on the application's host map by hand, and exercise:
    - PNG tile serving through a registered protocol namespace,
    - 400 for malformed identifiers, 404 for unknown namespaces and 204 for
      cancelled dispatches,
    - the overlay listing and MapLibre style fragment,
    - the sub-solar point endpoint.

See Also:
    - backend/crepuscule/api/tiles.py, overlays.py and sun.py.
"""

from __future__ import annotations

from concurrent import futures

import pytest
from fastapi import testclient

from crepuscule import main
from crepuscule.core import clock as clock_module
from crepuscule.core import config
from crepuscule.map import host as host_module
from crepuscule.map import models
from crepuscule.services import overlay, solar

START = 1_700_000_000_000


@pytest.fixture()
def clock() -> clock_module.ManualClock:
    return clock_module.ManualClock(start=START)


@pytest.fixture()
def pool():  # type: ignore[no-untyped-def]
    executor = futures.ThreadPoolExecutor(max_workers=2)
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture()
def app(clock: clock_module.ManualClock):  # type: ignore[no-untyped-def]
    application = main.create_app(config.Settings(live=False), clock=clock)
    application.state.host_map.mark_loaded()
    return application


@pytest.fixture()
def layer(
    app, clock: clock_module.ManualClock, pool: futures.ThreadPoolExecutor
) -> overlay.OverlayLayer:  # type: ignore[no-untyped-def]
    return overlay.OverlayLayer(
        app.state.host_map,
        models.CrepusculeOptions(opacity=0.5),
        clock=clock,
        tile_size=64,
        executor=pool,
    )


def test_tile_endpoint_serves_png(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test that a registered namespace serves PNG tiles."""
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/{layer.identity.protocol}/2-1-1-{START}.png")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")


def test_tile_endpoint_rejects_malformed(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test that an unparsable identifier is a 400."""
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/{layer.identity.protocol}/abc.png")
    assert response.status_code == 400


def test_tile_endpoint_rejects_out_of_range_timestamp(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test that a timestamp no datetime can hold is a 400."""
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/{layer.identity.protocol}/0-0-0-300000000000000.png")
    assert response.status_code == 400


def test_tile_endpoint_unknown_namespace(app) -> None:  # type: ignore[no-untyped-def]
    """Test that an unregistered namespace is a 404."""
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/nothing_here/2-1-1-{START}.png")
    assert response.status_code == 404


def test_tile_endpoint_unmounted_overlay(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test that tiles of an unmounted overlay are no longer served."""
    layer.unmount()
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/{layer.identity.protocol}/2-1-1-{START}.png")
    assert response.status_code == 404


def test_tile_endpoint_cancelled(app) -> None:  # type: ignore[no-untyped-def]
    """Test that a cancelled dispatch is answered with no content."""

    def cancelled(url: str) -> futures.Future[models.TileResult]:
        future: futures.Future[models.TileResult] = futures.Future()
        future.set_result(models.Cancelled("superseded"))
        return future

    app.state.host_map.add_protocol("empty", cancelled)
    client = testclient.TestClient(app)
    response = client.get(f"/tiles/empty/2-1-1-{START}.png")
    assert response.status_code == 204
    assert response.content == b""


def test_list_overlays(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test the overlay listing contract."""
    client = testclient.TestClient(app)
    response = client.get("/api/overlays")
    assert response.status_code == 200
    [entry] = response.json()
    assert entry["id"] == layer.identity.layer_id
    assert entry["source"] == layer.identity.source_id
    assert entry["opacity"] == 0.5
    assert entry["target_opacity"] == 0.5
    assert entry["tile_size"] == 64
    assert entry["tiles"] == [
        f"http://testserver/tiles/{layer.identity.protocol}/{{z}}-{{x}}-{{y}}-{START}.png"
    ]


def test_list_overlays_empty(app) -> None:  # type: ignore[no-untyped-def]
    """Test listing when no overlay is mounted."""
    client = testclient.TestClient(app)
    response = client.get("/api/overlays")
    assert response.status_code == 200
    assert response.json() == []


def test_overlay_style(app, layer: overlay.OverlayLayer) -> None:  # type: ignore[no-untyped-def]
    """Test the MapLibre style fragment."""
    layer.set_opacity(0.25, models.TransitionOptions(duration=300))
    client = testclient.TestClient(app)
    style = client.get("/api/overlays/style").json()

    source = style["sources"][layer.identity.source_id]
    assert source["type"] == "raster"
    assert source["tileSize"] == 64
    [style_layer] = style["layers"]
    assert style_layer["id"] == layer.identity.layer_id
    assert style_layer["source"] == layer.identity.source_id
    assert style_layer["paint"][host_module.OPACITY] == 0.25
    assert style_layer["paint"][host_module.OPACITY_TRANSITION] == {
        "duration": 300,
        "delay": 0,
    }


def test_sun_endpoint(app) -> None:  # type: ignore[no-untyped-def]
    """Test the sub-solar point for an explicit and a default timestamp."""
    client = testclient.TestClient(app)
    expected = solar.subsolar_point(START)

    explicit = client.get("/api/sun", params={"timestamp": START}).json()
    default = client.get("/api/sun").json()

    for body in (explicit, default):
        assert body["timestamp"] == START
        assert body["latitude"] == pytest.approx(expected.latitude)
        assert body["longitude"] == pytest.approx(expected.longitude)
