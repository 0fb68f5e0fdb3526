"""Value types shared by the raster generator, dispatcher and overlays.

This module defines the small immutable records that flow through the
overlay core: tile coordinates in the Web-Mercator pyramid, overlay colors,
the per-instance identity used to address sources and layers on a host map,
paint transition options, overlay options, and the two possible outcomes of
a tile dispatch.

Timestamps are plain integers counting milliseconds since the Unix epoch.

Example:
    Build the options of an overlay and its identity:
        >>> from crepuscule.map.models import CrepusculeOptions, OverlayIdentity
        >>> options = CrepusculeOptions(color=(0, 0, 17), opacity=0.7)
        >>> identity = OverlayIdentity.generate()
        >>> identity.source_id.startswith("crepuscule_source_")
        True
"""

from __future__ import annotations

import dataclasses
import datetime
import uuid
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from crepuscule.core import config

Color = tuple[int, int, int]
Timestamp = int

DEFAULT_COLOR: Color = (0, 0, 17)
DEFAULT_OPACITY = 0.7


def to_timestamp(value: Timestamp | datetime.datetime) -> Timestamp:
    """Normalize a datetime or millisecond count to epoch milliseconds.

    Args:
        value: Milliseconds since the epoch, or a datetime. Naive datetimes
            are taken to be UTC.

    Returns:
        Milliseconds since 1970-01-01T00:00:00Z.
    """
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.UTC)
        return int(value.timestamp() * 1000)
    return int(value)


def from_timestamp(timestamp: Timestamp) -> datetime.datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.datetime.fromtimestamp(timestamp / 1000, tz=datetime.UTC)


def validate_color(color: tuple[int, ...] | list[int]) -> Color:
    """Return ``color`` as a 3-tuple of bytes or raise ValueError."""
    channels = tuple(int(channel) for channel in color)
    if len(channels) != 3:
        raise ValueError(f"color needs exactly 3 channels, got {len(channels)}")
    if any(channel < 0 or channel > 255 for channel in channels):
        raise ValueError(f"color channels must be within 0..255: {channels}")
    return channels  # type: ignore[return-value]


@dataclasses.dataclass(frozen=True)
class TileCoordinate:
    """Address of one tile in the power-of-two Web-Mercator pyramid.

    Attributes:
        z: Zoom level, zero or greater.
        x: Column, from 0 (west) to ``2**z - 1``.
        y: Row, from 0 (north) to ``2**z - 1``.
    """

    z: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.z < 0:
            raise ValueError(f"zoom must not be negative: {self.z}")
        size = 1 << self.z
        if not (0 <= self.x < size and 0 <= self.y < size):
            raise ValueError(
                f"tile {self.x}/{self.y} is outside zoom level {self.z}"
            )


@dataclasses.dataclass(frozen=True)
class OverlayIdentity:
    """Names one overlay instance uses on a host map.

    Every identifier embeds the same random tag so several overlays can be
    mounted on one map without their protocols, sources or layers clashing.

    Attributes:
        tag: Random instance tag.
        protocol: Namespace of the tile protocol handler (URL scheme).
        source_id: Identifier of the raster tile source.
        layer_id: Identifier of the raster paint layer.
    """

    tag: str
    protocol: str
    source_id: str
    layer_id: str

    @classmethod
    def generate(cls, tag: str | None = None) -> OverlayIdentity:
        """Create an identity from ``tag`` or a fresh random one."""
        tag = tag or uuid.uuid4().hex[:12]
        return cls(
            tag=tag,
            protocol=f"crepuscule_protocol_{tag}",
            source_id=f"crepuscule_source_{tag}",
            layer_id=f"crepuscule_layer_{tag}",
        )

    def tile_template(self, timestamp: Timestamp) -> str:
        """Tile URL template requesting rasters for ``timestamp``."""
        return f"{self.protocol}://{{z}}-{{x}}-{{y}}-{timestamp}"


@dataclasses.dataclass(frozen=True)
class TransitionOptions:
    """Paint transition forwarded verbatim to the host map.

    Attributes:
        duration: Length of the opacity ramp in milliseconds.
        delay: Wait in milliseconds before the ramp begins.
    """

    duration: int | None = None
    delay: int | None = None

    def merged_into(self, base: dict[str, int]) -> dict[str, int]:
        """Overlay the options that are set onto ``base``."""
        merged = dict(base)
        if self.duration is not None:
            merged["duration"] = self.duration
        if self.delay is not None:
            merged["delay"] = self.delay
        return merged


@dataclasses.dataclass
class CrepusculeOptions:
    """Configuration accepted by an overlay or a crossfade scheduler.

    Attributes:
        color: Overlay color; alpha is computed per pixel.
        opacity: Opacity of the layer when shown, within [0, 1].
        date: Timestamp of the first rasters; None means construction time.
        debug: Mark tile borders for diagnostics.
    """

    color: Color = DEFAULT_COLOR
    opacity: float = DEFAULT_OPACITY
    date: Timestamp | datetime.datetime | None = None
    debug: bool = False

    def __post_init__(self) -> None:
        self.color = validate_color(self.color)
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"opacity must be within [0, 1]: {self.opacity}")

    def with_changes(self, **changes: Any) -> CrepusculeOptions:
        """Return a copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_settings(cls, settings: config.Settings) -> CrepusculeOptions:
        """Build overlay options from application settings."""
        return cls(
            color=settings.color,
            opacity=settings.opacity,
            debug=settings.debug,
        )


@dataclasses.dataclass(frozen=True)
class TileData:
    """A generated raster: RGBA bytes, row-major from the top-left pixel."""

    data: bytes
    tile_size: int


@dataclasses.dataclass(frozen=True)
class Cancelled:
    """Dispatch outcome meaning the tile intentionally has no content."""

    reason: str = ""

    def cancel(self) -> None:
        """Acknowledge the cancellation; nothing is left to release."""


TileResult = TileData | Cancelled
