# sheetstore/sheets.py
"""
Row store backed by a Google Sheets spreadsheet (v4 values API).

Each tab is a table: row 1 is the header, data row ``i`` is sheet row
``i + 2``. Authentication is a bearer token supplied by configuration.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from .config import DEFAULT_SHEETS_API_URL, Settings
from .database import RowStore, find_column, row_values
from .errors import RowStoreError, RowStoreUnavailable, TableNotFound
from .logger import get_logger
from .models import CellUpdate, Table

logger = get_logger("sheets")


def column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def sheet_range(table: str, cells: Optional[str] = None) -> str:
    name = "'" + table.replace("'", "''") + "'"
    return f"{name}!{cells}" if cells else name


class SheetsRowStore(RowStore):
    def __init__(
        self,
        sheet_id: str,
        access_token: str,
        base_url: str = DEFAULT_SHEETS_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sheet_id = sheet_id
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{sheet_id}/",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SheetsRowStore":
        return cls(
            settings.sheet_id,
            settings.access_token,
            base_url=settings.sheets_api_url,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, path: str, table: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Sheets API %s %s failed: %s", method, path, exc)
            raise RowStoreUnavailable(f"Sheets API unreachable: {exc}") from exc

        if resp.status_code == 400 and table and "Unable to parse range" in resp.text:
            raise TableNotFound(table)
        if resp.status_code >= 400:
            logger.error("Sheets API %s %s -> %d %s", method, path, resp.status_code, resp.text)
            raise RowStoreUnavailable(f"Sheets API error {resp.status_code}: {resp.reason_phrase}")
        return resp.json() if resp.content else {}

    def _values_path(self, range_: str, suffix: str = "") -> str:
        return f"/values/{quote(range_, safe='')}{suffix}"

    async def _header(self, table: str) -> List[str]:
        data = await self._call("GET", self._values_path(sheet_range(table, "1:1")), table=table)
        values = data.get("values") or [[]]
        return [str(v) for v in values[0]]

    async def read_table(self, name: str) -> Table:
        data = await self._call(
            "GET",
            self._values_path(sheet_range(name)),
            table=name,
            params={"valueRenderOption": "FORMATTED_VALUE"},
        )
        values = data.get("values") or []
        if not values:
            return Table(name=name)
        return Table(
            name=name,
            header=[str(v) for v in values[0]],
            rows=[[str(v) for v in row] for row in values[1:]],
        )

    async def batch_update_cells(self, updates: Sequence[CellUpdate]) -> None:
        headers: Dict[str, List[str]] = {}
        data = []
        for u in updates:
            if u.table not in headers:
                headers[u.table] = await self._header(u.table)
            col = find_column(headers[u.table], u.column)
            if col is None:
                raise RowStoreError(f"column {u.column!r} not in table {u.table!r}")
            cell = f"{column_letter(col)}{u.row_index + 2}"
            data.append({"range": sheet_range(u.table, cell), "values": [[u.value]]})

        if not data:
            return
        await self._call("POST", "/values:batchUpdate", json={"valueInputOption": "RAW", "data": data})

    async def append_rows(self, name: str, records: Sequence[Mapping[str, Any]]) -> None:
        header = await self._header(name)
        if not header:
            raise RowStoreError(f"table {name!r} has no header row")
        await self._call(
            "POST",
            self._values_path(sheet_range(name), ":append"),
            table=name,
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row_values(header, r) for r in records]},
        )
