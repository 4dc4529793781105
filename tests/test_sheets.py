# tests/test_sheets.py
import asyncio
import json

import httpx
import pytest

from sheetstore.catalog import load_catalog
from sheetstore.commit import commit_stock
from sheetstore.config import Settings
from sheetstore.errors import RowStoreUnavailable, TableNotFound
from sheetstore.models import CartLine, CellUpdate
from sheetstore.seed import DEMO_PRODUCTS, DEMO_VARIANTS, ORDER_HEADER, PRODUCT_HEADER, VARIANT_HEADER
from sheetstore.sheets import SheetsRowStore, column_letter, sheet_range

PREFIX = "/v4/spreadsheets/sheet-1/"


class FakeSheet:
    """Just enough of the values API to back a SheetsRowStore."""

    def __init__(self):
        self.tabs = {
            "Products": [PRODUCT_HEADER] + [[str(c) for c in r] for r in DEMO_PRODUCTS],
            "Variants": [VARIANT_HEADER] + [[str(c) for c in r] for r in DEMO_VARIANTS],
            "Orders": [ORDER_HEADER],
        }
        self.requests = []

    @staticmethod
    def _tab(range_):
        name = range_.split("!")[0]
        return name[1:-1].replace("''", "'")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.headers["Authorization"] == "Bearer token-1"
        rest = request.url.path[len(PREFIX):]

        if rest == "values:batchUpdate":
            return httpx.Response(200, json={"totalUpdatedCells": len(json.loads(request.content)["data"])})

        range_ = rest[len("values/"):]
        append = range_.endswith(":append")
        if append:
            range_ = range_[:-len(":append")]
        name = self._tab(range_)
        if name not in self.tabs:
            return httpx.Response(400, json={"error": {"message": f"Unable to parse range: {range_}"}})

        if append:
            self.tabs[name].extend(json.loads(request.content)["values"])
            return httpx.Response(200, json={"updates": {"updatedRows": 1}})
        if range_.endswith("!1:1"):
            return httpx.Response(200, json={"range": range_, "values": [self.tabs[name][0]]})
        return httpx.Response(200, json={"range": range_, "values": self.tabs[name]})


def _store(handler):
    return SheetsRowStore("sheet-1", "token-1", base_url="https://sheets.test/v4/spreadsheets",
                          transport=httpx.MockTransport(handler))


def _run(handler, fn):
    async def go():
        store = _store(handler)
        try:
            return await fn(store)
        finally:
            await store.aclose()
    return asyncio.run(go())


def test_column_letters():
    assert [column_letter(i) for i in (0, 3, 25, 26, 27, 51, 52)] == ["A", "D", "Z", "AA", "AB", "AZ", "BA"]


def test_sheet_range_quotes_names():
    assert sheet_range("Order Items", "A2") == "'Order Items'!A2"
    assert sheet_range("Bob's") == "'Bob''s'"


def test_read_table_and_catalog():
    sheet = FakeSheet()
    catalog = _run(sheet, lambda s: load_catalog(s, Settings()))
    assert catalog.get(3).stock == 9
    assert catalog.get(1).variants[1].variant_id == "1-null-Kembang%20Legi"


def test_missing_tab_is_table_not_found():
    with pytest.raises(TableNotFound) as exc:
        _run(FakeSheet(), lambda s: s.read_table("Nope"))
    assert exc.value.table == "Nope"


def test_missing_variants_tab_falls_back():
    sheet = FakeSheet()
    del sheet.tabs["Variants"]
    catalog = _run(sheet, lambda s: load_catalog(s, Settings()))
    assert catalog.get(1).variants[0].implicit
    assert catalog.get(1).stock == 5


def test_batch_update_addresses_cells():
    sheet = FakeSheet()
    _run(sheet, lambda s: s.batch_update_cells([
        CellUpdate(table="Variants", row_index=0, column="stock", value="0"),
        CellUpdate(table="Products", row_index=2, column="Stock", value="8"),
    ]))
    body = json.loads(sheet.requests[-1].content)
    assert body["valueInputOption"] == "RAW"
    assert [(d["range"], d["values"]) for d in body["data"]] == [
        ("'Variants'!D2", [["0"]]),
        ("'Products'!I4", [["8"]]),
    ]


def test_append_rows_uses_header_order():
    sheet = FakeSheet()
    _run(sheet, lambda s: s.append_rows("Orders", [{"totalAmount": "9.00", "orderId": "ORD-1"}]))
    row = sheet.tabs["Orders"][-1]
    assert row[ORDER_HEADER.index("orderId")] == "ORD-1"
    assert row[ORDER_HEADER.index("totalAmount")] == "9.00"
    assert sheet.requests[-1].url.params["insertDataOption"] == "INSERT_ROWS"


def test_commit_through_sheets():
    sheet = FakeSheet()
    line = CartLine(product_id=3, selected_size="M", selected_color="Blue-Green", quantity=2)
    result = _run(sheet, lambda s: commit_stock(s, [line], Settings()))
    assert result.success

    [batch] = [r for r in sheet.requests if r.url.path.endswith("values:batchUpdate")]
    data = json.loads(batch.content)["data"]
    assert [(d["range"], d["values"]) for d in data] == [
        ("'Variants'!D8", [["0"]]),
        ("'Products'!I4", [["7"]]),
    ]


def test_unreachable_api():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RowStoreUnavailable):
        _run(handler, lambda s: s.read_table("Products"))


def test_server_error():
    with pytest.raises(RowStoreUnavailable):
        _run(lambda request: httpx.Response(500, text="backend error"), lambda s: s.read_table("Products"))
