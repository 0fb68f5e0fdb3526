"""Host map interface and its in-memory implementation.

Overlays do not own the map they draw on. They address it through
HostMapProtocol, the handful of calls a MapLibre-style rendering library
offers: register a tile protocol, add and remove raster sources and paint
layers, change paint properties with a transition, wait for the map to load,
and force a repaint.

InMemoryHostMap implements the protocol server-side. It keeps the sources,
layers and paint properties that a browser map would hold, serves tile
fetches through the registered protocol handlers, and evaluates opacity
transitions against a clock so the effective opacity of a layer can be
sampled at any instant.

Example:
    Register a handler and fetch a tile through it:
        >>> from crepuscule.core.clock import ManualClock
        >>> from crepuscule.map.host import InMemoryHostMap
        >>> host = InMemoryHostMap(ManualClock())
        >>> host.add_protocol("demo", dispatcher.submit)
        >>> future = host.fetch("demo://2-1-1-1700000000000")
        >>> result = future.result()
"""

from __future__ import annotations

import collections
import dataclasses
from typing import TYPE_CHECKING, Any, Protocol

from crepuscule.core import errors
from crepuscule.core import log

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from concurrent import futures

    from crepuscule.core import clock as clock_module
    from crepuscule.map import models

    ProtocolHandler = Callable[[str], futures.Future[models.TileResult]]

OPACITY = "raster-opacity"
OPACITY_TRANSITION = "raster-opacity-transition"

logger = log.get_logger(__name__)


class HostMapProtocol(Protocol):
    """Protocol interface for the map library overlays render through."""

    def loaded(self) -> bool: ...

    def once(self, event: str, callback: Callable[[], None]) -> None: ...

    def add_protocol(self, namespace: str, handler: ProtocolHandler) -> None: ...

    def remove_protocol(self, namespace: str) -> None: ...

    def fetch(self, url: str) -> futures.Future[models.TileResult]: ...

    def add_source(
        self,
        source_id: str,
        tiles: list[str],
        tile_size: int,
    ) -> None: ...

    def set_source_tiles(self, source_id: str, tiles: list[str]) -> None: ...

    def remove_source(self, source_id: str) -> None: ...

    def add_layer(
        self,
        layer_id: str,
        source_id: str,
        paint: dict[str, Any],
    ) -> None: ...

    def set_paint_property(
        self,
        layer_id: str,
        name: str,
        value: Any,
    ) -> None: ...

    def remove_layer(self, layer_id: str) -> None: ...

    def trigger_repaint(self) -> None: ...


@dataclasses.dataclass
class SourceState:
    """A raster tile source as the host map holds it.

    Attributes:
        id: Source identifier.
        tiles: Tile URL templates.
        tile_size: Edge length of the tiles in pixels.
        loads: How many times the source (re)requested its tiles.
    """

    id: str
    tiles: list[str]
    tile_size: int
    loads: int = 1


@dataclasses.dataclass
class _OpacityRamp:
    start_value: float
    end_value: float
    start: int
    end: int

    def value_at(self, at: int) -> float:
        if at < self.start:
            return self.start_value
        if at >= self.end:
            return self.end_value
        progress = (at - self.start) / (self.end - self.start)
        return self.start_value + (self.end_value - self.start_value) * progress


@dataclasses.dataclass
class LayerState:
    """A raster paint layer as the host map holds it.

    Attributes:
        id: Layer identifier.
        source_id: Identifier of the source the layer draws.
        paint: Current paint properties, including transitions.
    """

    id: str
    source_id: str
    paint: dict[str, Any]
    _ramp: _OpacityRamp | None = dataclasses.field(default=None, repr=False)


class InMemoryHostMap(HostMapProtocol):
    """Server-side map state for overlays, tile serving and tests.

    The map starts unloaded; ``mark_loaded`` flips it and fires the one-shot
    ``load`` listeners. Data is lost when the process exits.
    """

    def __init__(self, clock: clock_module.Clock, loaded: bool = False) -> None:
        """Initialize an empty map.

        Args:
            clock: Time source used to evaluate paint transitions.
            loaded: Whether the map is ready immediately.
        """
        self._clock = clock
        self._loaded = loaded
        self._listeners: dict[str, list[Callable[[], None]]] = (
            collections.defaultdict(list)
        )
        self._protocols: dict[str, ProtocolHandler] = {}
        self._sources: dict[str, SourceState] = {}
        self._layers: dict[str, LayerState] = {}
        self.repaints = 0

    def loaded(self) -> bool:
        return self._loaded

    def once(self, event: str, callback: Callable[[], None]) -> None:
        self._listeners[event].append(callback)

    def mark_loaded(self) -> None:
        """Mark the map ready and notify ``load`` listeners once."""
        if self._loaded:
            return
        self._loaded = True
        listeners = self._listeners.pop("load", [])
        logger.debug("Host map loaded, notifying %d listener(s)", len(listeners))
        for callback in listeners:
            callback()

    def add_protocol(self, namespace: str, handler: ProtocolHandler) -> None:
        self._protocols[namespace] = handler

    def remove_protocol(self, namespace: str) -> None:
        self._protocols.pop(namespace, None)

    def protocols(self) -> Iterable[str]:
        """Namespaces with a registered tile handler."""
        return tuple(self._protocols)

    def fetch(self, url: str) -> futures.Future[models.TileResult]:
        """Resolve a tile URL through the handler of its namespace.

        Args:
            url: URL of the form ``{namespace}://{z}-{x}-{y}-{timestamp}``.

        Returns:
            Future resolving to the tile data or a cancellation.

        Raises:
            UnknownProtocol: If no handler is registered for the namespace.
            MalformedRequest: Propagated from the handler.
        """
        namespace, separator, _ = url.partition("://")
        handler = self._protocols.get(namespace) if separator else None
        if handler is None:
            logger.warning("Tile fetch for unregistered protocol: %s", url)
            raise errors.UnknownProtocol(f"No tile protocol for {url!r}")
        return handler(url)

    def add_source(
        self,
        source_id: str,
        tiles: list[str],
        tile_size: int,
    ) -> None:
        if source_id in self._sources:
            raise ValueError(f"Source {source_id!r} already exists")
        self._sources[source_id] = SourceState(
            id=source_id,
            tiles=list(tiles),
            tile_size=tile_size,
        )

    def get_source(self, source_id: str) -> SourceState | None:
        return self._sources.get(source_id)

    def sources(self) -> Iterable[SourceState]:
        return self._sources.values()

    def set_source_tiles(self, source_id: str, tiles: list[str]) -> None:
        source = self._require_source(source_id)
        source.tiles = list(tiles)
        source.loads += 1

    def remove_source(self, source_id: str) -> None:
        self._require_source(source_id)
        if any(layer.source_id == source_id for layer in self._layers.values()):
            raise ValueError(f"Source {source_id!r} is still used by a layer")
        del self._sources[source_id]

    def add_layer(
        self,
        layer_id: str,
        source_id: str,
        paint: dict[str, Any],
    ) -> None:
        if layer_id in self._layers:
            raise ValueError(f"Layer {layer_id!r} already exists")
        self._require_source(source_id)
        self._layers[layer_id] = LayerState(
            id=layer_id,
            source_id=source_id,
            paint=dict(paint),
        )

    def get_layer(self, layer_id: str) -> LayerState | None:
        return self._layers.get(layer_id)

    def layers(self) -> Iterable[LayerState]:
        return self._layers.values()

    def set_paint_property(
        self,
        layer_id: str,
        name: str,
        value: Any,
    ) -> None:
        layer = self._require_layer(layer_id)
        if name == OPACITY:
            now = self._clock.now()
            transition = layer.paint.get(OPACITY_TRANSITION) or {}
            start = now + int(transition.get("delay", 0))
            layer._ramp = _OpacityRamp(
                start_value=self.opacity_at(layer_id, now),
                end_value=float(value),
                start=start,
                end=start + int(transition.get("duration", 0)),
            )
        layer.paint[name] = value

    def remove_layer(self, layer_id: str) -> None:
        self._require_layer(layer_id)
        del self._layers[layer_id]

    def trigger_repaint(self) -> None:
        self.repaints += 1

    def opacity_at(self, layer_id: str, at: int | None = None) -> float:
        """Effective opacity of a layer at ``at`` (default: now).

        Opacity changes wait for the transition delay, then ramp linearly
        over the transition duration.
        """
        layer = self._require_layer(layer_id)
        if at is None:
            at = self._clock.now()
        if layer._ramp is None:
            return float(layer.paint.get(OPACITY, 1.0))
        return layer._ramp.value_at(at)

    def _require_source(self, source_id: str) -> SourceState:
        source = self._sources.get(source_id)
        if source is None:
            raise KeyError(f"Source {source_id!r} does not exist")
        return source

    def _require_layer(self, layer_id: str) -> LayerState:
        layer = self._layers.get(layer_id)
        if layer is None:
            raise KeyError(f"Layer {layer_id!r} does not exist")
        return layer
