# tests/test_catalog.py
import asyncio

from sheetstore.catalog import (
    build_catalog, diagnose_catalog, generate_variants, load_catalog, low_stock_variants,
    parse_axis_value, seed_missing_variants,
)
from sheetstore.database import InMemoryRowStore
from sheetstore.models import Table
from sheetstore.seed import PRODUCT_HEADER, VARIANT_HEADER


def _products(*rows):
    return Table(name="Products", header=PRODUCT_HEADER, rows=[[str(c) for c in r] for r in rows])


def _variants(*rows, header=VARIANT_HEADER):
    return Table(name="Variants", header=list(header), rows=[[str(c) for c in r] for r in rows])


def test_product_stock_is_sum_of_variants(store, settings):
    catalog = asyncio.run(load_catalog(store, settings))
    for product in catalog.products.values():
        assert product.stock == sum(v.stock for v in product.variants)
    assert catalog.get(1).stock == 5
    assert catalog.get(3).stock == 9


def test_product_without_variant_rows_gets_implicit_variant():
    catalog = build_catalog(
        _products([5, "Cap", "9.00", "", "", "", "", "", 7]),
        _variants(),
    )
    cap = catalog.get(5)
    assert len(cap.variants) == 1
    v = cap.variants[0]
    assert v.implicit
    assert v.stock == 7
    assert v.variant_id == "5-null-null"
    assert v.row_index == 0


def test_missing_variant_table_falls_back_to_product_stock(settings):
    store = InMemoryRowStore()
    store.seed(settings.products_table, PRODUCT_HEADER, [[5, "Cap", "9.00", "", "", "", "", "", 7]])
    catalog = asyncio.run(load_catalog(store, settings))
    assert catalog.get(5).stock == 7
    assert catalog.variant_stock_column is None


def test_variant_rows_override_product_stock():
    catalog = build_catalog(
        _products([1, "Shirt", "35", "", "", "", "", "Red", 99]),
        _variants([1, "null", "Red", 3, "1-null-Red"]),
    )
    assert catalog.get(1).stock == 3


def test_unknown_product_rows_are_dropped():
    catalog = build_catalog(
        _products([1, "Shirt", "35", "", "", "", "", "Red", 3]),
        _variants([1, "null", "Red", 3, ""], [42, "M", "Blue", 8, ""]),
    )
    assert list(catalog.products) == [1]
    assert catalog.variants_of(42) == []


def test_bad_stock_cells_become_zero():
    catalog = build_catalog(
        _products([1, "Shirt", "35", "", "", "", "", "Red, Blue", 3]),
        _variants([1, "", "Red", "lots", ""], [1, "", "Blue", "-4", ""]),
    )
    assert [v.stock for v in catalog.get(1).variants] == [0, 0]
    assert catalog.get(1).stock == 0


def test_integral_decimal_stock_is_accepted():
    catalog = build_catalog(_products([1, "Shirt", "35", "", "", "", "", "", "4.0"]))
    assert catalog.get(1).stock == 4


def test_bad_product_id_and_duplicates():
    catalog = build_catalog(_products(
        ["abc", "Nope", "1", "", "", "", "", "", 1],
        [1, "First", "1", "", "", "", "", "", 1],
        [1, "Second", "1", "", "", "", "", "", 1],
    ))
    assert list(catalog.products) == [1]
    assert catalog.get(1).name == "First"


def test_header_aliases():
    catalog = build_catalog(
        _products([1, "Shirt", "35", "", "", "", "", "Red", 3]),
        _variants([1, "NULL", "Red", 2, ""], header=["Product ID", "Size", "Color", "Stock", "variant_id"]),
    )
    variant = catalog.get(1).variants[0]
    assert variant.size is None
    assert variant.stock == 2
    assert catalog.variant_stock_column == "Stock"


def test_parse_axis_value():
    assert parse_axis_value("") is None
    assert parse_axis_value("Null") is None
    assert parse_axis_value("M") == "M"


def test_generate_variants_spreads_stock(store, settings):
    catalog = asyncio.run(load_catalog(store, settings))
    hoodie = catalog.get(3)
    variants = generate_variants(hoodie, 8)
    assert [v.variant_id for v in variants[:2]] == ["3-S-Navy", "3-S-Blue%2DGreen"]
    assert len(variants) == 6
    assert [v.stock for v in variants] == [2, 2, 1, 1, 1, 1]
    assert sum(v.stock for v in variants) == 8

    assert all(v.stock == 0 for v in generate_variants(hoodie))


def test_seed_missing_variants(store, settings):
    created = asyncio.run(seed_missing_variants(store, settings))
    # only the scarf declares colors without having variant rows
    assert [v.variant_id for v in created] == ["4-null-Red%20%26%20White", "4-null-Blue%20Sky"]
    assert [v.stock for v in created] == [3, 2]

    catalog = asyncio.run(load_catalog(store, settings))
    scarf = catalog.get(4)
    assert not any(v.implicit for v in scarf.variants)
    assert scarf.stock == 5

    # running it again changes nothing
    assert asyncio.run(seed_missing_variants(store, settings)) == []


def test_low_stock_variants(store, settings):
    catalog = asyncio.run(load_catalog(store, settings))
    low = [v.variant_id for v in low_stock_variants(catalog.get(3), 1)]
    assert low == ["3-S-Blue%2DGreen", "3-L-Blue%2DGreen"]


def test_diagnose_demo_catalog_is_healthy(store, settings):
    report = diagnose_catalog(store.snapshot(settings.products_table), store.snapshot(settings.variants_table))
    assert report.healthy
    assert report.product_count == 4


def test_diagnose_finds_problems():
    products = _products(
        [1, "Shirt", "35", "", "", "", "S, M", "Red", 10],
        [2, "Bag", "10", "", "", "", "", "", 1],
    )
    variants = _variants(
        [1, "S", "Red", 2, "1-S-Red"],
        [1, "S", "Red", 1, ""],
        [1, "XL", "Red", 1, "1-XL-Blue"],
        [9, "S", "Red", 1, ""],
    )
    report = diagnose_catalog(products, variants)
    assert not report.healthy
    assert report.orphan_variant_rows == [3]
    assert report.duplicate_variants == ["1-S-Red"]
    assert report.variant_id_mismatches == [{"row_index": 2, "stored": "1-XL-Blue", "expected": "1-XL-Red"}]
    assert report.missing_combinations == ["1-M-Red"]
    assert report.undeclared_variants == ["1-XL-Red"]
    assert report.stock_mismatches == [{"product_id": 1, "product_stock": 10, "variant_total": 4}]


def test_diagnose_missing_columns():
    report = diagnose_catalog(
        Table(name="Products", header=["id", "name"], rows=[["1", "x"]]),
        Table(name="Variants", header=["productId", "stock"]),
    )
    assert report.missing_product_columns == ["price", "stock"]
    assert report.missing_variant_columns == ["size", "color"]
