"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the overlay color and opacity, raster tile size, the size of the tile
generation worker pool, the crossfade cadence, CORS origins, and logging.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from crepuscule.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.opacity)

    Environment variables can override defaults:
        >>> CREPUSCULE_OPACITY=0.5
        >>> CREPUSCULE_COLOR=[10,10,40]
        >>> CREPUSCULE_REFRESH_INTERVAL_MS=10000
"""

import functools

import pydantic
import pydantic_settings

ColorTuple = tuple[int, int, int]


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables prefixed with
    ``CREPUSCULE_`` or a .env file.

    Attributes:
        color: RGB color of the night overlay, one byte per channel.
        opacity: Target opacity of the visible overlay layer.
        debug: Draw tile borders and use distinct colors for both buffers.
        tile_size: Edge length in pixels of generated raster tiles.
        tile_workers: Maximum number of threads generating tiles at once.
        live: Mount a self-refreshing crossfade overlay at startup.
        refresh_interval_ms: Interval between two crossfade ticks.
        swap_delay_ms: Grace delay left for fresh tiles before a swap.
        fade_duration_ms: Opacity transition applied when a layer mounts.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        log_level: Root logging level.
        json_logs: Emit structured JSON log lines instead of plain text.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     color=(20, 0, 40),
            ...     opacity=0.5,
            ...     refresh_interval_ms=10_000,
            ... )
    """

    color: ColorTuple = (0, 0, 17)
    opacity: float = pydantic.Field(default=0.7, ge=0.0, le=1.0)
    debug: bool = False
    tile_size: int = pydantic.Field(default=512, gt=0)
    tile_workers: int = pydantic.Field(default=4, gt=0)
    live: bool = True
    refresh_interval_ms: int = pydantic.Field(default=5000, gt=0)
    swap_delay_ms: int = pydantic.Field(default=1000, ge=0)
    fade_duration_ms: int = pydantic.Field(default=1000, ge=0)
    allow_origins: list[str] = ["*"]
    log_level: str = "INFO"
    json_logs: bool = False

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="CREPUSCULE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @pydantic.field_validator("color")
    @classmethod
    def _check_color(cls, value: ColorTuple) -> ColorTuple:
        """Reject channels that do not fit in a byte."""
        if any(channel < 0 or channel > 255 for channel in value):
            raise ValueError("color channels must be within 0..255")
        return value


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Subsequent calls return the same
    cached instance.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    return Settings()
