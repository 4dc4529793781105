# sheetstore/database.py
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import RowStoreError, TableNotFound
from .models import CellUpdate, Table

# The row store is the only shared state. Everything read from it is a copy;
# everything written goes through batch_update_cells or append_rows.


def normalize_header(text: str) -> str:
    return "".join(ch for ch in (text or "").lower() if ch not in " _-")


def find_column(header: Sequence[str], column: str) -> Optional[int]:
    """Index of column in header: exact match first, then case/separator-insensitive."""
    try:
        return list(header).index(column)
    except ValueError:
        pass
    wanted = normalize_header(column)
    for i, name in enumerate(header):
        if normalize_header(name) == wanted:
            return i
    return None


def row_values(header: Sequence[str], record: Mapping[str, Any]) -> List[str]:
    """Lay a {column: value} record out in header order; unknown keys are dropped."""
    values = [""] * len(header)
    for key, value in record.items():
        idx = find_column(header, key)
        if idx is not None and value is not None:
            values[idx] = str(value)
    return values


def cell_value(header: Sequence[str], row: Sequence[str], column: str) -> str:
    idx = find_column(header, column)
    if idx is None or idx >= len(row):
        return ""
    return row[idx]


class RowStore(ABC):
    """Tabular backing store: read whole tables, batch-update cells, append rows."""

    @abstractmethod
    async def read_table(self, name: str) -> Table:
        ...

    @abstractmethod
    async def batch_update_cells(self, updates: Sequence[CellUpdate]) -> None:
        ...

    @abstractmethod
    async def append_rows(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        ...

    async def aclose(self) -> None:
        return None


class InMemoryRowStore(RowStore):
    """Process-local row store. Batches apply all-or-nothing under one lock."""

    def __init__(self, tables: Optional[Mapping[str, Table]] = None):
        self._tables: Dict[str, Table] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        for table in (tables or {}).values():
            self._tables[table.name] = table.model_copy(deep=True)

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def seed(self, name: str, header: Sequence[str], rows: Sequence[Sequence[Any]] = ()) -> None:
        self._tables[name] = Table(
            name=name,
            header=list(header),
            rows=[[("" if v is None else str(v)) for v in row] for row in rows],
        )

    def snapshot(self, name: str) -> Table:
        if name not in self._tables:
            raise TableNotFound(name)
        return self._tables[name].model_copy(deep=True)

    def records(self, name: str) -> List[Dict[str, str]]:
        table = self.snapshot(name)
        out = []
        for row in table.rows:
            padded = row + [""] * (len(table.header) - len(row))
            out.append(dict(zip(table.header, padded)))
        return out

    def reset(self) -> None:
        self._tables.clear()
        self._locks.clear()

    async def read_table(self, name: str) -> Table:
        return self.snapshot(name)

    async def batch_update_cells(self, updates: Sequence[CellUpdate]) -> None:
        async with self._get_lock("batch"):
            resolved = []
            for u in updates:
                table = self._tables.get(u.table)
                if table is None:
                    raise TableNotFound(u.table)
                col = find_column(table.header, u.column)
                if col is None:
                    raise RowStoreError(f"column {u.column!r} not in table {u.table!r}")
                if not 0 <= u.row_index < len(table.rows):
                    raise RowStoreError(f"row {u.row_index} out of range for table {u.table!r}")
                resolved.append((table, u.row_index, col, u.value))

            # nothing is written until every update has been checked
            for table, row_index, col, value in resolved:
                row = table.rows[row_index]
                if len(row) <= col:
                    row.extend([""] * (col + 1 - len(row)))
                row[col] = value

    async def append_rows(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        async with self._get_lock(f"append:{name}"):
            table = self._tables.get(name)
            if table is None:
                raise TableNotFound(name)
            table.rows.extend(row_values(table.header, r) for r in records)
