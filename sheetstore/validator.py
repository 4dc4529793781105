# sheetstore/validator.py
from typing import Dict, List, Optional, Sequence

from .logger import get_logger
from .models import Catalog, CartLine, FailureReason, LineFailure, ValidationResult
from .resolver import missing_axes, resolve_variant

logger = get_logger("validator")


def _failure(index: int, line: CartLine, reason: FailureReason, available: Optional[int] = None) -> LineFailure:
    return LineFailure(
        line_index=index,
        product_id=line.product_id,
        selection=line.selection,
        reason=reason,
        requested=line.quantity,
        available=available,
    )


def validate_cart(catalog: Catalog, lines: Sequence[CartLine]) -> ValidationResult:
    """Check every cart line against the catalog and collect every failure.

    Lines that land on the same variant draw from one balance in cart order,
    so two lines of 1 against a stock of 1 fail on the second line.
    """
    failures: List[LineFailure] = []
    claimed: Dict[str, int] = {}

    for index, line in enumerate(lines):
        product = catalog.get(line.product_id)
        if product is None or missing_axes(product, line.selection):
            failures.append(_failure(index, line, FailureReason.VARIANT_NOT_FOUND))
            continue

        variant = resolve_variant(product, selection=line.selection)
        if variant is None:
            failures.append(_failure(index, line, FailureReason.VARIANT_NOT_FOUND))
            continue

        if variant.stock == 0:
            failures.append(_failure(index, line, FailureReason.OUT_OF_STOCK, available=0))
            continue

        left = variant.stock - claimed.get(variant.variant_id, 0)
        if line.quantity > left:
            failures.append(_failure(index, line, FailureReason.INSUFFICIENT_STOCK, available=max(left, 0)))
            continue

        claimed[variant.variant_id] = claimed.get(variant.variant_id, 0) + line.quantity

    if failures:
        logger.debug("cart rejected: %s", ", ".join(f"line {f.line_index} {f.reason.value}" for f in failures))
    return ValidationResult(ok=not failures, failures=failures)
