"""Double-buffered, self-refreshing twilight overlay.

Regenerating the tiles of a visible layer makes it flash while the new tiles
stream in. CrossfadeScheduler avoids that with two overlays, A and B. Only
one is live at a time. On every tick the hidden one is moved to the current
instant while still transparent; after a grace delay, long enough for its
tiles to arrive, it fades in while the live one fades out.

Ticks never overlap: a tick that fires while the previous swap is still
waiting for its grace delay is skipped.

Example:
    Run a live overlay on a loaded map:
        >>> from crepuscule.core.clock import SystemClock
        >>> from crepuscule.services.crossfade import CrossfadeScheduler
        >>> live = CrossfadeScheduler(host, clock=SystemClock())
        >>> live.running
        True
        >>> live.stop()
        >>> live.unmount()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from crepuscule.core import errors
from crepuscule.core import log
from crepuscule.map import models
from crepuscule.services import overlay

if TYPE_CHECKING:
    from concurrent import futures

    from crepuscule.core import clock as clock_module
    from crepuscule.map import host as host_module

DEFAULT_REFRESH_INTERVAL_MS = 5000
DEFAULT_SWAP_DELAY_MS = 1000
DEBUG_COLOR_A: models.Color = (70, 0, 0)
DEBUG_COLOR_B: models.Color = (0, 0, 70)

logger = log.get_logger(__name__)


class CrossfadeScheduler:
    """Owns two overlays and periodically swaps them with a crossfade."""

    def __init__(
        self,
        host: host_module.HostMapProtocol,
        options: models.CrepusculeOptions | None = None,
        *,
        clock: clock_module.Clock,
        tile_size: int = overlay.DEFAULT_TILE_SIZE,
        refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS,
        swap_delay_ms: int = DEFAULT_SWAP_DELAY_MS,
        swap_duration_ms: int = 0,
        fade_duration_ms: int = overlay.DEFAULT_FADE_DURATION_MS,
        executor: futures.Executor | None = None,
        autostart: bool = True,
    ) -> None:
        """Create both overlays and, if asked, start once the map loads.

        Args:
            host: Map both overlays draw on.
            options: Options shared by both overlays. Layer A starts at
                ``options.opacity``, layer B at 0. With ``debug`` set, A and
                B get distinct colors.
            clock: Time source for ticks, dates and the grace delay.
            tile_size: Edge length of the raster tiles in pixels.
            refresh_interval_ms: Interval between ticks.
            swap_delay_ms: Grace delay before the swap becomes visible.
            swap_duration_ms: Opacity ramp of the swap itself.
            fade_duration_ms: Opacity transition used right after mounting.
            executor: Pool rendering tiles for both overlays.
            autostart: Call ``start`` as soon as the host map is loaded.
        """
        options = options or models.CrepusculeOptions()
        self._host = host
        self._clock = clock
        self.opacity = options.opacity
        self.refresh_interval_ms = refresh_interval_ms
        self.swap_delay_ms = swap_delay_ms
        self.swap_duration_ms = swap_duration_ms

        if options.date is None:
            options = options.with_changes(date=clock.now())
        options_a = options
        options_b = options.with_changes(opacity=0.0)
        if options.debug:
            options_a = options_a.with_changes(color=DEBUG_COLOR_A)
            options_b = options_b.with_changes(color=DEBUG_COLOR_B)

        layer_kwargs = {
            "clock": clock,
            "tile_size": tile_size,
            "fade_duration_ms": fade_duration_ms,
            "executor": executor,
        }
        self._layer_a = overlay.OverlayLayer(host, options_a, **layer_kwargs)
        self._layer_b = overlay.OverlayLayer(host, options_b, **layer_kwargs)

        self._live_is_a = True
        self._timer: clock_module.TimerHandle | None = None
        self._settle_timer: clock_module.TimerHandle | None = None
        self._unmounted = False

        if autostart:
            if host.loaded():
                self.start()
            else:
                host.once("load", self._autostart)

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def live_is_a(self) -> bool:
        return self._live_is_a

    @property
    def swap_pending(self) -> bool:
        """Whether the last swap is still inside its grace delay."""
        return self._settle_timer is not None

    @property
    def layers(self) -> tuple[overlay.OverlayLayer, overlay.OverlayLayer]:
        return self._layer_a, self._layer_b

    @property
    def live_layer(self) -> overlay.OverlayLayer:
        return self._layer_a if self._live_is_a else self._layer_b

    @property
    def hidden_layer(self) -> overlay.OverlayLayer:
        return self._layer_b if self._live_is_a else self._layer_a

    def start(self) -> None:
        """Arm the periodic tick. Does nothing if already running.

        Raises:
            AlreadyUnmounted: If the scheduler was unmounted.
        """
        self._raise_if_unmounted()
        if self.running:
            return
        self._timer = self._clock.call_later(
            self.refresh_interval_ms,
            self._on_interval,
        )
        logger.info(
            "Crossfade started, refreshing every %d ms",
            self.refresh_interval_ms,
        )

    def stop(self) -> None:
        """Disarm the periodic tick. Safe to call when already stopped."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("Crossfade stopped")

    def tick(self) -> bool:
        """Refresh the hidden overlay and schedule the swap.

        Returns:
            False if the tick was skipped because the previous swap is still
            pending, True otherwise.

        Raises:
            AlreadyUnmounted: If the scheduler was unmounted.
        """
        self._raise_if_unmounted()
        if self.swap_pending:
            logger.warning("Previous crossfade still pending, skipping tick")
            return False

        hidden = self.hidden_layer
        live = self.live_layer
        self._live_is_a = not self._live_is_a

        hidden.update()

        transition = models.TransitionOptions(
            duration=self.swap_duration_ms,
            delay=self.swap_delay_ms,
        )
        live.set_opacity(0.0, transition)
        hidden.set_opacity(self.opacity, transition)

        # Repaint even when the map is not receiving frames.
        self._host.trigger_repaint()

        self._settle_timer = self._clock.call_later(
            self.swap_delay_ms + self.swap_duration_ms,
            self._settle,
        )
        logger.debug(
            "Crossfade to layer %s at %d",
            "A" if self._live_is_a else "B",
            hidden.date,
        )
        return True

    def unmount(self) -> None:
        """Stop ticking and unmount both overlays.

        Raises:
            AlreadyUnmounted: If the scheduler was already unmounted.
        """
        self._raise_if_unmounted()
        self.stop()
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        self._layer_a.unmount()
        self._layer_b.unmount()
        self._unmounted = True

    def _autostart(self) -> None:
        if not self._unmounted:
            self.start()

    def _on_interval(self) -> None:
        self._timer = self._clock.call_later(
            self.refresh_interval_ms,
            self._on_interval,
        )
        self.tick()

    def _settle(self) -> None:
        self._settle_timer = None

    def _raise_if_unmounted(self) -> None:
        if self._unmounted:
            raise errors.AlreadyUnmounted("crossfade scheduler")
