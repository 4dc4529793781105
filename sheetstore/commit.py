# sheetstore/commit.py
"""
Stock commit: re-validate against a fresh read, then write every new stock
value in one batch.

The row store has no transactions or compare-and-swap. Re-reading right
before the write narrows the window in which two buyers can both take the
last unit, it does not close it. New values are always computed from the
fresh read, so a retried commit never reuses numbers from an earlier attempt.
"""
import json
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import load_catalog
from .config import Settings, get_settings
from .database import RowStore, cell_value
from .errors import IdempotencyKeyReused, PartialCommitFailure, RowStoreError, TableNotFound
from .logger import get_logger
from .models import Catalog, CartLine, CellUpdate, CommitResult, StockChange, Variant
from .resolver import resolve_variant
from .validator import validate_cart

logger = get_logger("commit")


def _lines_payload(lines: Sequence[CartLine]) -> List[Dict]:
    return [line.model_dump() for line in lines]


def _same_lines(recorded: str, lines: Sequence[CartLine]) -> bool:
    try:
        return json.loads(recorded) == _lines_payload(lines)
    except ValueError:
        # row written by hand or truncated; nothing to compare against
        logger.warning("unreadable lines in commit record: %r", recorded[:80])
        return True


def plan_stock_changes(catalog: Catalog, lines: Sequence[CartLine]) -> List[StockChange]:
    """New stock per touched variant for an already validated cart."""
    demand: Dict[str, int] = {}
    variants: Dict[str, Variant] = {}
    for index, line in enumerate(lines):
        variant = resolve_variant(catalog, line.product_id, line.selection)
        if variant is None:
            raise ValueError(f"cart line {index} does not resolve to a variant")
        variants.setdefault(variant.variant_id, variant)
        demand[variant.variant_id] = demand.get(variant.variant_id, 0) + line.quantity

    return [
        StockChange(
            product_id=variants[vid].product_id,
            variant_id=vid,
            before=variants[vid].stock,
            after=max(0, variants[vid].stock - quantity),
        )
        for vid, quantity in demand.items()
    ]


def cell_updates(catalog: Catalog, changes: Iterable[StockChange], settings: Settings) -> List[CellUpdate]:
    """Cells to write for a set of stock changes.

    Explicit variants write their own row plus the product's denormalized
    total when the product table has a stock column. Implicit variants keep
    their stock on the product row, so that cell is the only one written.
    """
    updates: List[CellUpdate] = []
    totals: Dict[int, int] = {}

    for change in changes:
        product = catalog.get(change.product_id)
        variant = next(v for v in product.variants if v.variant_id == change.variant_id)
        if variant.implicit:
            if catalog.product_stock_column is None:
                raise RowStoreError(f"table {settings.products_table!r} has no stock column")
            updates.append(CellUpdate(
                table=settings.products_table,
                row_index=product.row_index,
                column=catalog.product_stock_column,
                value=str(change.after),
            ))
            continue

        if catalog.variant_stock_column is None:
            raise RowStoreError(f"table {settings.variants_table!r} has no stock column")
        updates.append(CellUpdate(
            table=settings.variants_table,
            row_index=variant.row_index,
            column=catalog.variant_stock_column,
            value=str(change.after),
        ))
        totals[product.id] = totals.get(product.id, product.stock) - (change.before - change.after)

    if catalog.product_stock_column is not None:
        for product_id, total in totals.items():
            updates.append(CellUpdate(
                table=settings.products_table,
                row_index=catalog.get(product_id).row_index,
                column=catalog.product_stock_column,
                value=str(total),
            ))
    return updates


class StockCommitEngine:
    def __init__(self, store: RowStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    async def load_catalog(self) -> Catalog:
        return await load_catalog(self.store, self.settings)

    async def find_commit(self, commit_id: str) -> Optional[Dict[str, str]]:
        """The recorded commit row for commit_id, or None."""
        try:
            table = await self.store.read_table(self.settings.commits_table)
        except TableNotFound:
            return None
        for row in table.rows:
            if cell_value(table.header, row, "commitId") == commit_id:
                return {
                    "commitId": commit_id,
                    "committedAt": cell_value(table.header, row, "committedAt"),
                    "lines": cell_value(table.header, row, "lines"),
                }
        return None

    async def _record(self, commit_id: str, lines: Sequence[CartLine]) -> None:
        record = {
            "commitId": commit_id,
            "committedAt": datetime.now(timezone.utc).isoformat(),
            "lines": json.dumps(_lines_payload(lines)),
        }
        try:
            await self.store.append_rows(self.settings.commits_table, [record])
        except TableNotFound:
            logger.warning("no %r table; commit %s not recorded", self.settings.commits_table, commit_id)
        except RowStoreError:
            logger.exception("stock committed but commit %s could not be recorded", commit_id)

    async def commit(self, lines: Sequence[CartLine], commit_id: Optional[str] = None) -> CommitResult:
        lines = list(lines)
        if commit_id:
            recorded = await self.find_commit(commit_id)
            if recorded is not None:
                if not _same_lines(recorded["lines"], lines):
                    logger.warning("commit %s reused with a different cart, rejected", commit_id)
                    raise IdempotencyKeyReused(commit_id)
                logger.info("commit %s already applied, not decrementing again", commit_id)
                return CommitResult(success=True, commit_id=commit_id, replayed=True)

        catalog = await self.load_catalog()
        result = validate_cart(catalog, lines)
        if not result.ok:
            logger.info("commit aborted, %d line(s) failed re-validation", len(result.failures))
            return CommitResult(success=False, failures=result.failures, commit_id=commit_id)

        changes = plan_stock_changes(catalog, lines)
        updates = cell_updates(catalog, changes, self.settings)
        if updates:
            try:
                await self.store.batch_update_cells(updates)
            except RowStoreError as exc:
                logger.error("stock batch write failed: %s", exc)
                raise PartialCommitFailure("order not completed, please retry") from exc

        logger.info("committed %d stock change(s) across %d cell(s)", len(changes), len(updates))
        if commit_id:
            await self._record(commit_id, lines)
        return CommitResult(success=True, changes=changes, commit_id=commit_id)


async def commit_stock(
    store: RowStore,
    lines: Sequence[CartLine],
    settings: Optional[Settings] = None,
    commit_id: Optional[str] = None,
) -> CommitResult:
    return await StockCommitEngine(store, settings).commit(lines, commit_id=commit_id)
