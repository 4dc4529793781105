# sheetstore/catalog.py
"""
Builds the in-memory catalog from raw product and variant rows.

The variant table is authoritative for stock whenever a product has rows in
it; otherwise the product row's own stock becomes a single implicit variant.
Bad cells are normalized (logged, defaulted) rather than failing the load.
"""
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from .config import Settings, get_settings
from .database import RowStore, find_column
from .errors import TableNotFound
from .logger import get_logger
from .models import Catalog, Product, Table, Variant
from .variant_id import NULL_TOKEN, encode_variant_id

logger = get_logger("catalog")

PRODUCT_COLUMNS = ("id", "name", "price", "discount", "description", "image", "sizes", "colors", "stock")
VARIANT_COLUMNS = ("productId", "size", "color", "stock", "variantId")

REQUIRED_PRODUCT_COLUMNS = ("id", "name", "price", "stock")
REQUIRED_VARIANT_COLUMNS = ("productId", "size", "color", "stock")


# ---------------------------
# Cell parsing
# ---------------------------
def _columns(header: Sequence[str], names: Sequence[str]) -> Dict[str, Optional[int]]:
    return {name: find_column(header, name) for name in names}


def _cell(row: Sequence[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    value = row[idx]
    return "" if value is None else str(value).strip()


def _blank(row: Sequence[str]) -> bool:
    return not any(str(cell).strip() for cell in row if cell is not None)


def _parse_int(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = Decimal(raw)
    except InvalidOperation:
        return None
    if number.is_finite() and number == number.to_integral_value():
        return int(number)
    return None


def _parse_decimal(raw: str) -> Decimal:
    try:
        number = Decimal(raw) if raw else Decimal("0")
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


def _parse_stock(raw: str, where: str) -> int:
    if raw == "":
        return 0
    stock = _parse_int(raw)
    if stock is None:
        logger.warning("non-numeric stock %r at %s, using 0", raw, where)
        return 0
    if stock < 0:
        logger.warning("negative stock %d at %s, using 0", stock, where)
        return 0
    return stock


def parse_list(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()] if raw else []


def parse_axis_value(raw: str) -> Optional[str]:
    if raw == "" or raw.lower() == NULL_TOKEN:
        return None
    return raw


# ---------------------------
# Catalog build
# ---------------------------
def _product_fields(table: Table) -> Dict[int, Dict[str, Any]]:
    cols = _columns(table.header, PRODUCT_COLUMNS)
    if cols["id"] is None:
        logger.warning("table %r has no id column; no products loaded", table.name)
        return {}

    fields: Dict[int, Dict[str, Any]] = {}
    for row_index, row in enumerate(table.rows):
        if _blank(row):
            continue
        raw_id = _cell(row, cols["id"])
        product_id = _parse_int(raw_id)
        if product_id is None:
            logger.warning("skipping %s row %d: bad product id %r", table.name, row_index, raw_id)
            continue
        if product_id in fields:
            logger.warning("duplicate product id %d at %s row %d, keeping the first", product_id, table.name, row_index)
            continue
        fields[product_id] = {
            "id": product_id,
            "name": _cell(row, cols["name"]),
            "price": _parse_decimal(_cell(row, cols["price"])),
            "discount": _parse_decimal(_cell(row, cols["discount"])),
            "description": _cell(row, cols["description"]),
            "image": _cell(row, cols["image"]),
            "sizes": parse_list(_cell(row, cols["sizes"])),
            "colors": parse_list(_cell(row, cols["colors"])),
            "stock": _parse_stock(_cell(row, cols["stock"]), f"{table.name} row {row_index}"),
            "row_index": row_index,
        }
    return fields


def _variant_groups(table: Optional[Table], known: Dict[int, Any]) -> Dict[int, List[Variant]]:
    groups: Dict[int, List[Variant]] = defaultdict(list)
    if table is None:
        return groups
    cols = _columns(table.header, VARIANT_COLUMNS)
    if cols["productId"] is None:
        logger.warning("table %r has no productId column; variant rows ignored", table.name)
        return groups

    for row_index, row in enumerate(table.rows):
        if _blank(row):
            continue
        raw_id = _cell(row, cols["productId"])
        product_id = _parse_int(raw_id)
        if product_id is None or product_id not in known:
            logger.warning("dropping %s row %d: unknown product %r", table.name, row_index, raw_id)
            continue
        size = parse_axis_value(_cell(row, cols["size"]))
        color = parse_axis_value(_cell(row, cols["color"]))
        groups[product_id].append(Variant(
            product_id=product_id,
            size=size,
            color=color,
            stock=_parse_stock(_cell(row, cols["stock"]), f"{table.name} row {row_index}"),
            variant_id=encode_variant_id(product_id, size, color),
            row_index=row_index,
        ))
    return groups


def build_catalog(product_table: Table, variant_table: Optional[Table] = None) -> Catalog:
    fields = _product_fields(product_table)
    groups = _variant_groups(variant_table, fields)

    products: Dict[int, Product] = {}
    for product_id, data in fields.items():
        variants = groups.get(product_id)
        if variants:
            stock = sum(v.stock for v in variants)
        else:
            stock = data["stock"]
            variants = [Variant(
                product_id=product_id,
                stock=stock,
                variant_id=encode_variant_id(product_id),
                row_index=data["row_index"],
                implicit=True,
            )]
        products[product_id] = Product(**{**data, "stock": stock, "variants": variants})

    def _stock_header(table: Optional[Table]) -> Optional[str]:
        if table is None:
            return None
        idx = find_column(table.header, "stock")
        return None if idx is None else table.header[idx]

    return Catalog(
        products=products,
        product_stock_column=_stock_header(product_table),
        variant_stock_column=_stock_header(variant_table),
    )


async def read_tables(store: RowStore, settings: Optional[Settings] = None):
    settings = settings or get_settings()
    product_table = await store.read_table(settings.products_table)
    try:
        variant_table = await store.read_table(settings.variants_table)
    except TableNotFound:
        variant_table = None
    return product_table, variant_table


async def load_catalog(store: RowStore, settings: Optional[Settings] = None) -> Catalog:
    product_table, variant_table = await read_tables(store, settings)
    return build_catalog(product_table, variant_table)


# ---------------------------
# Variant generation
# ---------------------------
def generate_variants(product: Product, total_stock: Optional[int] = None) -> List[Variant]:
    """Every size/color combination the product declares.

    With total_stock the units are spread evenly, the first ``total % n``
    combinations taking one extra unit; without it each starts at 0.
    """
    combos = [(size, color) for size in (product.sizes or [None]) for color in (product.colors or [None])]
    share, remainder = divmod(total_stock or 0, len(combos))
    return [
        Variant(
            product_id=product.id,
            size=size,
            color=color,
            stock=share + (1 if i < remainder else 0),
            variant_id=encode_variant_id(product.id, size, color),
        )
        for i, (size, color) in enumerate(combos)
    ]


def variant_records(variants: Sequence[Variant]) -> List[Dict[str, Any]]:
    return [
        {
            "productId": v.product_id,
            "size": v.size or "",
            "color": v.color or "",
            "stock": v.stock,
            "variantId": v.variant_id,
        }
        for v in variants
    ]


async def seed_missing_variants(store: RowStore, settings: Optional[Settings] = None) -> List[Variant]:
    """Append variant rows for products that declare sizes/colors but have none yet.

    The product's current stock is split across the new rows, so its total is
    unchanged. Existing variant rows are never touched.
    """
    settings = settings or get_settings()
    catalog = await load_catalog(store, settings)
    created: List[Variant] = []
    for product in catalog.products.values():
        if not (product.sizes or product.colors):
            continue
        if not all(v.implicit for v in product.variants):
            continue
        created.extend(generate_variants(product, product.stock))

    if created:
        await store.append_rows(settings.variants_table, variant_records(created))
        logger.info("appended %d generated variant rows", len(created))
    return created


# ---------------------------
# Availability
# ---------------------------
def available_variants(product: Product) -> List[Variant]:
    return [v for v in product.variants if v.stock > 0]


def low_stock_variants(product: Product, threshold: int = 2) -> List[Variant]:
    return [v for v in product.variants if 0 < v.stock <= threshold]


def is_in_stock(product: Product) -> bool:
    return any(v.stock > 0 for v in product.variants)


# ---------------------------
# Diagnostics
# ---------------------------
class CatalogReport(BaseModel):
    product_count: int = 0
    variant_count: int = 0
    missing_product_columns: List[str] = []
    missing_variant_columns: List[str] = []
    orphan_variant_rows: List[int] = []
    duplicate_variants: List[str] = []
    variant_id_mismatches: List[Dict[str, Any]] = []
    stock_mismatches: List[Dict[str, Any]] = []
    missing_combinations: List[str] = []
    undeclared_variants: List[str] = []

    @property
    def healthy(self) -> bool:
        return not any((
            self.missing_product_columns, self.missing_variant_columns, self.orphan_variant_rows,
            self.duplicate_variants, self.variant_id_mismatches, self.stock_mismatches,
            self.missing_combinations, self.undeclared_variants,
        ))


def diagnose_catalog(product_table: Table, variant_table: Optional[Table] = None) -> CatalogReport:
    catalog = build_catalog(product_table, variant_table)
    report = CatalogReport(
        product_count=len(catalog.products),
        missing_product_columns=[c for c in REQUIRED_PRODUCT_COLUMNS if find_column(product_table.header, c) is None],
    )

    if variant_table is not None:
        report.missing_variant_columns = [
            c for c in REQUIRED_VARIANT_COLUMNS if find_column(variant_table.header, c) is None
        ]
        vcols = _columns(variant_table.header, VARIANT_COLUMNS)
        for row_index, row in enumerate(variant_table.rows):
            if _blank(row):
                continue
            product_id = _parse_int(_cell(row, vcols["productId"]))
            if product_id is None or product_id not in catalog.products:
                report.orphan_variant_rows.append(row_index)
                continue
            stored = _cell(row, vcols["variantId"])
            expected = encode_variant_id(
                product_id,
                parse_axis_value(_cell(row, vcols["size"])),
                parse_axis_value(_cell(row, vcols["color"])),
            )
            if stored and stored != expected:
                report.variant_id_mismatches.append({"row_index": row_index, "stored": stored, "expected": expected})

    stock_col = find_column(product_table.header, "stock")
    for product in catalog.products.values():
        report.variant_count += len(product.variants)
        if all(v.implicit for v in product.variants):
            continue

        seen = set()
        for v in product.variants:
            if v.variant_id in seen and v.variant_id not in report.duplicate_variants:
                report.duplicate_variants.append(v.variant_id)
            seen.add(v.variant_id)
            if (v.size is not None) != product.requires_size or (v.color is not None) != product.requires_color \
                    or (v.size is not None and v.size not in product.sizes) \
                    or (v.color is not None and v.color not in product.colors):
                report.undeclared_variants.append(v.variant_id)

        for expected in generate_variants(product):
            if expected.variant_id not in seen:
                report.missing_combinations.append(expected.variant_id)

        if stock_col is not None and product.row_index is not None:
            raw = _cell(product_table.rows[product.row_index], stock_col)
            declared = _parse_int(raw) if raw else None
            if declared is not None and declared != product.stock:
                report.stock_mismatches.append({
                    "product_id": product.id,
                    "product_stock": declared,
                    "variant_total": product.stock,
                })
    return report
