"""Exceptions raised by the twilight overlay core.

Three failure modes reach callers:

- MalformedRequest: a tile request identifier could not be decoded into
  ``z``, ``x``, ``y`` and a timestamp. The tile fetch fails for that tile.
- AlreadyUnmounted: an overlay or scheduler was used after ``unmount()``.
  This is terminal; the instance cannot be revived.
- UnknownProtocol: a tile URL names a protocol namespace that no overlay
  registered on the host map.

A dispatch that produces no raster is not an error and is reported with the
``Cancelled`` result from crepuscule.map.models instead.

Example:
    Handle a bad tile request:
        >>> from crepuscule.core.errors import MalformedRequest
        >>> try:
        ...     dispatcher.dispatch("abc")
        ... except MalformedRequest as e:
        ...     print(f"Rejected tile request: {e}")
"""


class CrepusculeError(RuntimeError):
    """Base class for every error raised by the overlay core."""


class MalformedRequest(CrepusculeError, ValueError):
    """Raised when a tile request identifier is absent or unparsable.

    The identifier must be the final ``/`` segment of the tile URL and have
    the form ``{z}-{x}-{y}-{timestamp}`` with four finite numeric fields.
    """


class AlreadyUnmounted(CrepusculeError):
    """Raised when an unmounted overlay or scheduler is used again."""

    def __init__(self, name: str = "overlay") -> None:
        super().__init__(
            f"This {name} was unmounted and can no longer be used."
        )


class UnknownProtocol(CrepusculeError, LookupError):
    """Raised when no tile handler is registered for a URL's namespace."""
