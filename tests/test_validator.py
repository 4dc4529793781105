# tests/test_validator.py
import asyncio

from sheetstore.catalog import load_catalog
from sheetstore.models import CartLine, FailureReason
from sheetstore.validator import validate_cart


def _catalog(store, settings):
    return asyncio.run(load_catalog(store, settings))


def test_valid_cart(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=1, selected_color="Kembang Legi", quantity=4),
        CartLine(product_id=2, quantity=7),
        CartLine(product_id=3, selected_size="M", selected_color="Navy", quantity=1),
    ])
    assert result.ok
    assert result.failures == []


def test_insufficient_stock_reports_available(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=1, selected_color="Ambonia", quantity=2),
    ])
    assert not result.ok
    [failure] = result.failures
    assert failure.reason == FailureReason.INSUFFICIENT_STOCK
    assert failure.requested == 2
    assert failure.available == 1


def test_only_the_failing_line_is_reported(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=2, quantity=1),
        CartLine(product_id=3, selected_size="L", selected_color="Navy", quantity=1),
        CartLine(product_id=3, selected_size="S", selected_color="Navy", quantity=1),
    ])
    assert not result.ok
    assert [(f.line_index, f.reason) for f in result.failures] == [(1, FailureReason.OUT_OF_STOCK)]


def test_every_failure_is_collected(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=99, quantity=1),
        CartLine(product_id=3, selected_color="Navy", quantity=1),
        CartLine(product_id=3, selected_size="XL", selected_color="Navy", quantity=1),
        CartLine(product_id=2, quantity=8),
    ])
    assert [(f.line_index, f.reason) for f in result.failures] == [
        (0, FailureReason.VARIANT_NOT_FOUND),
        (1, FailureReason.VARIANT_NOT_FOUND),
        (2, FailureReason.VARIANT_NOT_FOUND),
        (3, FailureReason.INSUFFICIENT_STOCK),
    ]
    assert result.failures[3].available == 7


def test_lines_on_the_same_variant_share_stock(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=1, selected_color="Ambonia", quantity=1),
        CartLine(product_id=1, selected_color="Ambonia", quantity=1),
    ])
    [failure] = result.failures
    assert failure.line_index == 1
    assert failure.reason == FailureReason.INSUFFICIENT_STOCK
    assert failure.available == 0


def test_implicit_variant_lines_share_product_stock(store, settings):
    result = validate_cart(_catalog(store, settings), [
        CartLine(product_id=4, selected_color="Blue Sky", quantity=3),
        CartLine(product_id=4, selected_color="Red & White", quantity=3),
    ])
    [failure] = result.failures
    assert failure.line_index == 1
    assert failure.available == 2
