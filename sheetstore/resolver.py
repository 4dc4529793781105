# sheetstore/resolver.py
"""
Selection -> variant matching.

For each axis the product declares (non-empty sizes / colors) the selection
must name a value and it must equal the variant's value. For an axis the
product does not declare, the variant must have no value and whatever the
selection says is ignored. A declared axis left unselected never matches,
not even a variant row that happens to have no value on that axis.
"""
from typing import Optional, Union

from .models import Catalog, Product, Selection, Variant


def _axis_matches(required: bool, declared, selected: Optional[str], value: Optional[str], implicit: bool) -> bool:
    if not required:
        return value is None
    if selected is None:
        return False
    if implicit:
        # product-level stock stands in for every declared combination
        return selected in declared
    return value == selected


def matches(product: Product, variant: Variant, selection: Selection) -> bool:
    return (
        _axis_matches(product.requires_size, product.sizes, selection.size, variant.size, variant.implicit)
        and _axis_matches(product.requires_color, product.colors, selection.color, variant.color, variant.implicit)
    )


def missing_axes(product: Product, selection: Selection) -> list:
    missing = []
    if product.requires_size and selection.size is None:
        missing.append("size")
    if product.requires_color and selection.color is None:
        missing.append("color")
    return missing


def resolve_variant(
    source: Union[Catalog, Product],
    product_id: Optional[int] = None,
    selection: Optional[Selection] = None,
) -> Optional[Variant]:
    """Find the variant for a selection, or None.

    ``source`` is either a catalog (then ``product_id`` picks the product) or
    the product itself. Duplicate rows for one combination resolve to the
    first row.
    """
    selection = selection or Selection()
    if isinstance(source, Catalog):
        product = source.get(product_id)
        if product is None:
            return None
    else:
        product = source

    for variant in product.variants:
        if matches(product, variant, selection):
            return variant
    return None


def variant_stock(product: Product, selection: Selection) -> int:
    variant = resolve_variant(product, selection=selection)
    return variant.stock if variant else 0
