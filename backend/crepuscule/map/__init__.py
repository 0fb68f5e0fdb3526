"""Host map interface and overlay value types.

Re-exports HostMapProtocol and InMemoryHostMap from crepuscule.map.host so
callers have a single import location for the map abstraction.

Example:
    >>> from crepuscule.map import HostMapProtocol, InMemoryHostMap
"""

from crepuscule.map.host import HostMapProtocol, InMemoryHostMap

__all__ = ["HostMapProtocol", "InMemoryHostMap"]
