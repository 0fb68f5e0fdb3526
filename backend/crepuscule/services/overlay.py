"""A single twilight overlay mounted on a host map.

OverlayLayer binds one raster source and one paint layer on a host map to a
tile protocol of its own. The source's tile template embeds a timestamp;
changing the date rewrites the template, which makes the host request fresh
tiles that the overlay's TileDispatcher renders for the new instant.

Lifecycle:
    UNINITIALIZED -> MOUNTED when the host map reports it is loaded.
    MOUNTED -> UNMOUNTED on ``unmount()``; this is terminal and every later
    call raises AlreadyUnmounted.

Calls made before the map is loaded only update the stored state, which is
applied when the overlay mounts.

Example:
    Mount an overlay and move it to another instant:
        >>> from crepuscule.core.clock import SystemClock
        >>> from crepuscule.map.models import CrepusculeOptions, TransitionOptions
        >>> from crepuscule.services.overlay import OverlayLayer
        >>> layer = OverlayLayer(host, CrepusculeOptions(opacity=0.5),
        ...                      clock=SystemClock())
        >>> layer.set_date(1_700_000_000_000)
        >>> layer.hide(TransitionOptions(duration=500))
        >>> layer.show()
        >>> layer.unmount()
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from crepuscule.core import errors
from crepuscule.core import log
from crepuscule.map import host as host_module
from crepuscule.map import models
from crepuscule.services import dispatcher as dispatcher_module

if TYPE_CHECKING:
    import datetime
    from concurrent import futures

    from crepuscule.core import clock as clock_module

DEFAULT_TILE_SIZE = 512
DEFAULT_FADE_DURATION_MS = 1000

logger = log.get_logger(__name__)


class LayerStatus(enum.Enum):
    """Lifecycle states of an overlay."""

    UNINITIALIZED = "uninitialized"
    MOUNTED = "mounted"
    UNMOUNTED = "unmounted"


class OverlayLayer:
    """One day/night raster layer addressed on a host map."""

    def __init__(
        self,
        host: host_module.HostMapProtocol,
        options: models.CrepusculeOptions | None = None,
        *,
        clock: clock_module.Clock,
        tile_size: int = DEFAULT_TILE_SIZE,
        fade_duration_ms: int = DEFAULT_FADE_DURATION_MS,
        executor: futures.Executor | None = None,
        identity: models.OverlayIdentity | None = None,
    ) -> None:
        """Create the overlay and mount it once the host map is loaded.

        Args:
            host: Map the overlay draws on.
            options: Color, opacity, initial date and debug flag.
            clock: Time source for ``update``.
            tile_size: Edge length of the raster tiles in pixels.
            fade_duration_ms: Opacity transition used right after mounting.
            executor: Pool that renders tiles; None renders inline.
            identity: Protocol, source and layer names; generated when None.
        """
        options = options or models.CrepusculeOptions()
        self._host = host
        self._clock = clock
        self.identity = identity or models.OverlayIdentity.generate()
        self.color = options.color
        self.debug = options.debug
        self.tile_size = tile_size
        self.fade_duration_ms = fade_duration_ms
        self._opacity = options.opacity
        self._paint_opacity = options.opacity
        self._date = (
            models.to_timestamp(options.date)
            if options.date is not None
            else clock.now()
        )
        self._dispatcher = dispatcher_module.TileDispatcher(
            color=self.color,
            tile_size=tile_size,
            debug=self.debug,
            executor=executor,
        )
        self._status = LayerStatus.UNINITIALIZED

        if host.loaded():
            self._mount()
        else:
            host.once("load", self._on_load)

    @property
    def status(self) -> LayerStatus:
        return self._status

    @property
    def mounted(self) -> bool:
        return self._status is LayerStatus.MOUNTED

    @property
    def opacity(self) -> float:
        """Opacity the layer has when shown."""
        return self._opacity

    @property
    def paint_opacity(self) -> float:
        """Opacity last requested from the host (0 while hidden)."""
        return self._paint_opacity

    @property
    def date(self) -> models.Timestamp:
        return self._date

    @property
    def dispatcher(self) -> dispatcher_module.TileDispatcher:
        return self._dispatcher

    @property
    def tile_template(self) -> str:
        return self.identity.tile_template(self._date)

    def set_opacity(
        self,
        value: float,
        options: models.TransitionOptions | None = None,
    ) -> None:
        """Set and store the opacity, optionally over a host transition.

        Args:
            value: New opacity within [0, 1].
            options: Transition duration and delay in milliseconds; both
                default to 0.

        Raises:
            AlreadyUnmounted: If the overlay was unmounted.
            ValueError: If ``value`` is outside [0, 1].
        """
        self._raise_if_unmounted()
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"opacity must be within [0, 1]: {value}")
        self._opacity = value
        self._apply_opacity(value, options)

    def hide(self, options: models.TransitionOptions | None = None) -> None:
        """Fade to transparent, keeping the stored opacity for ``show``."""
        self._raise_if_unmounted()
        self._apply_opacity(0.0, options)

    def show(self, options: models.TransitionOptions | None = None) -> None:
        """Fade back to the stored opacity."""
        self._raise_if_unmounted()
        self._apply_opacity(self._opacity, options)

    def set_date(self, date: models.Timestamp | datetime.datetime) -> None:
        """Render the overlay for another instant.

        Rewrites the timestamp embedded in the tile template and makes the
        host reload the source, so every visible tile is requested again.

        Raises:
            AlreadyUnmounted: If the overlay was unmounted.
        """
        self._raise_if_unmounted()
        self._date = models.to_timestamp(date)
        logger.debug("Overlay %s moved to %d", self.identity.tag, self._date)
        if self.mounted:
            self._host.set_source_tiles(
                self.identity.source_id,
                [self.tile_template],
            )

    def update(self) -> None:
        """Render the overlay for the current instant of the clock."""
        self._raise_if_unmounted()
        self.set_date(self._clock.now())

    def unmount(self) -> None:
        """Remove the layer, source and protocol from the host map.

        Raises:
            AlreadyUnmounted: If the overlay was already unmounted.
        """
        self._raise_if_unmounted()
        if self.mounted:
            self._host.remove_layer(self.identity.layer_id)
            self._host.remove_source(self.identity.source_id)
            self._host.remove_protocol(self.identity.protocol)
        self._status = LayerStatus.UNMOUNTED
        logger.info("Overlay %s unmounted", self.identity.tag)

    def _on_load(self) -> None:
        if self._status is LayerStatus.UNINITIALIZED:
            self._mount()

    def _mount(self) -> None:
        identity = self.identity
        self._host.add_protocol(identity.protocol, self._dispatcher.submit)
        self._host.add_source(
            identity.source_id,
            [self.tile_template],
            self.tile_size,
        )
        self._host.add_layer(
            identity.layer_id,
            identity.source_id,
            {
                host_module.OPACITY_TRANSITION: {
                    "duration": self.fade_duration_ms,
                    "delay": 0,
                },
                host_module.OPACITY: self._paint_opacity,
            },
        )
        self._status = LayerStatus.MOUNTED
        logger.info(
            "Overlay %s mounted at opacity %.2f",
            identity.tag,
            self._paint_opacity,
        )

    def _apply_opacity(
        self,
        value: float,
        options: models.TransitionOptions | None,
    ) -> None:
        self._paint_opacity = value
        if not self.mounted:
            return
        transition = (options or models.TransitionOptions()).merged_into(
            {"duration": 0, "delay": 0}
        )
        self._host.set_paint_property(
            self.identity.layer_id,
            host_module.OPACITY_TRANSITION,
            transition,
        )
        self._host.set_paint_property(
            self.identity.layer_id,
            host_module.OPACITY,
            value,
        )

    def _raise_if_unmounted(self) -> None:
        if self._status is LayerStatus.UNMOUNTED:
            raise errors.AlreadyUnmounted("overlay")
