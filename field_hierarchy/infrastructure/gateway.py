"""
Infrastructure layer: persistence gateway contract.

The coordinator only talks to these interfaces, so any store (Supabase over
HTTP, an in-memory fake) can be substituted without touching domain code.
Rows travel as plain dicts keyed by the store's column names.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

Record = Dict[str, Any]
Filters = Mapping[str, Any]


class TableGateway(ABC):
    """Row-level access to a single collection."""

    name: str

    @abstractmethod
    async def insert(self, record: Mapping[str, Any]) -> Record:
        """Insert a row and return it as stored (including its ``id``)."""

    @abstractmethod
    async def select_where(self, filters: Filters) -> List[Record]:
        """Return every row whose columns equal all ``filters``."""

    @abstractmethod
    async def select_one_where(self, filters: Filters) -> Optional[Record]:
        """Return the first matching row, or None."""

    @abstractmethod
    async def update(self, match: Filters, patch: Mapping[str, Any]) -> None:
        """Apply ``patch`` to every row matching ``match``."""

    @abstractmethod
    async def delete(self, match: Filters) -> None:
        """Delete every row matching ``match``."""

    @abstractmethod
    async def delete_where_in(self, field: str, values: Iterable[Any]) -> None:
        """Delete every row whose ``field`` is one of ``values``."""


class PersistenceGateway(ABC):
    """The three collections of the planning hierarchy."""

    phases: TableGateway
    blocks: TableGateway
    tasks: TableGateway

    async def close(self) -> None:
        """Release any held resources."""
