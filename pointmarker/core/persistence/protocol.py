"""
PersistenceBackend Protocol Definition.

Defines the interface a remote store must implement for the editor to
keep its points, spots, routes and areas in sync. All coordinates a
backend receives are in image space.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

POINT = "point"
SPOT = "spot"
ROUTE = "route"
AREA = "area"

KINDS = (POINT, SPOT, ROUTE, AREA)


@runtime_checkable
class PersistenceBackend(Protocol):
    """
    Asynchronous CRUD interface for persisted annotations.

    Records are plain dicts. A record returned by :meth:`find_by_key`
    carries its opaque backend reference under ``"ref"``.
    """

    async def find_by_key(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        """
        Look up a record by its natural key.

        Args:
            kind: One of ``point``, ``spot``, ``route``, ``area``
            key: Point id, spot name, ``start->end`` for routes, or the
                area name

        Returns:
            The stored record including ``"ref"``, or None
        """
        ...

    async def add(self, kind: str, data: Dict[str, Any]) -> str:
        """
        Store a new record.

        Returns:
            The backend reference of the new record
        """
        ...

    async def update(self, kind: str, ref: str, data: Dict[str, Any]) -> None:
        """Overwrite the record identified by ``ref``."""
        ...

    async def delete(self, kind: str, ref: str) -> None:
        """Delete the record identified by ``ref``."""
        ...
