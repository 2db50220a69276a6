"""
Infrastructure layer: in-memory persistence gateway.

Used by the test suite and for running the service without a Supabase
project (``STORE_BACKEND=memory``). Each call yields to the event loop once so
concurrent coordinator operations interleave the way they would against a
remote store.
"""
import asyncio
import copy
import itertools
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from field_hierarchy.config import settings
from field_hierarchy.domain.errors import DuplicateKeyError
from field_hierarchy.infrastructure.gateway import (
    Filters,
    PersistenceGateway,
    Record,
    TableGateway,
)

logger = logging.getLogger(__name__)


def _matches(row: Record, filters: Filters) -> bool:
    return all(row.get(field) == value for field, value in filters.items())


class InMemoryTable(TableGateway):
    """A single collection held in a dict keyed by row id."""

    def __init__(self, name: str, unique_key: Optional[str] = None):
        self.name = name
        self.unique_key = unique_key
        self.rows: Dict[int, Record] = {}
        self._ids = itertools.count(1)

    def _check_unique(self, record: Mapping[str, Any], exclude_id: Optional[int] = None):
        if not self.unique_key or self.unique_key not in record:
            return
        value = record[self.unique_key]
        for row_id, row in self.rows.items():
            if row_id != exclude_id and row.get(self.unique_key) == value:
                raise DuplicateKeyError(
                    f"{self.name}.{self.unique_key} '{value}' already exists"
                )

    def seed(self, record: Mapping[str, Any]) -> Record:
        """Insert a row synchronously, bypassing the engine (test setup)."""
        self._check_unique(record)
        row = dict(record)
        row.setdefault("id", next(self._ids))
        self.rows[row["id"]] = row
        return copy.deepcopy(row)

    def find(self, **filters: Any) -> Optional[Record]:
        """Synchronous lookup of the first matching row (test inspection)."""
        for row in self.rows.values():
            if _matches(row, filters):
                return copy.deepcopy(row)
        return None

    async def insert(self, record: Mapping[str, Any]) -> Record:
        await asyncio.sleep(0)
        return self.seed(record)

    async def select_where(self, filters: Filters) -> List[Record]:
        await asyncio.sleep(0)
        return [copy.deepcopy(row) for row in self.rows.values() if _matches(row, filters)]

    async def select_one_where(self, filters: Filters) -> Optional[Record]:
        await asyncio.sleep(0)
        for row in self.rows.values():
            if _matches(row, filters):
                return copy.deepcopy(row)
        return None

    async def update(self, match: Filters, patch: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        targets = [row for row in self.rows.values() if _matches(row, match)]
        for row in targets:
            self._check_unique(patch, exclude_id=row["id"])
        for row in targets:
            row.update(patch)

    async def delete(self, match: Filters) -> None:
        await asyncio.sleep(0)
        for row_id in [i for i, row in self.rows.items() if _matches(row, match)]:
            del self.rows[row_id]

    async def delete_where_in(self, field: str, values: Iterable[Any]) -> None:
        await asyncio.sleep(0)
        value_set = set(values)
        for row_id in [i for i, row in self.rows.items() if row.get(field) in value_set]:
            del self.rows[row_id]


class InMemoryGateway(PersistenceGateway):
    """Dict-backed gateway enforcing unique natural keys like the real schema."""

    def __init__(self):
        self.phases = InMemoryTable(settings.phase_table, unique_key="Phase")
        self.blocks = InMemoryTable(settings.block_table, unique_key="Block")
        self.tasks = InMemoryTable(settings.task_table, unique_key="Task")
        logger.info("Initialized in-memory persistence gateway")
