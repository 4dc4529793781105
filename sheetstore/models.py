# sheetstore/models.py
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .variant_id import decode_variant_id


class Table(BaseModel):
    """A header row plus data rows, as read from the row store."""
    name: str
    header: List[str] = []
    rows: List[List[str]] = []


class CellUpdate(BaseModel):
    table: str
    row_index: int  # 0-based position among data rows (header excluded)
    column: str
    value: str


class Selection(BaseModel):
    size: Optional[str] = None
    color: Optional[str] = None


class Variant(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    size: Optional[str] = None
    color: Optional[str] = None
    stock: int = Field(default=0, ge=0)
    variant_id: str
    row_index: Optional[int] = None
    # stock lives on the product row, shared by every combination
    implicit: bool = False


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    description: str = ""
    image: str = ""
    sizes: List[str] = []
    colors: List[str] = []
    stock: int = 0
    variants: List[Variant] = []
    row_index: Optional[int] = None

    @property
    def requires_size(self) -> bool:
        return bool(self.sizes)

    @property
    def requires_color(self) -> bool:
        return bool(self.colors)


def _declared(values: List[str], value: Optional[str]) -> bool:
    return value in values if values else value is None


class Catalog(BaseModel):
    """Snapshot of every product and its variants from one read of the row store."""
    model_config = ConfigDict(frozen=True)

    products: Dict[int, Product] = {}
    # header texts as found in the store, used to address stock cells
    product_stock_column: Optional[str] = None
    variant_stock_column: Optional[str] = None

    def get(self, product_id: int) -> Optional[Product]:
        return self.products.get(product_id)

    def variants_of(self, product_id: int) -> List[Variant]:
        product = self.products.get(product_id)
        return list(product.variants) if product else []

    def find_variant(self, variant_id: str) -> Optional[Variant]:
        """Variant addressed by variant_id.

        A product without variant rows answers with its implicit variant for
        its own id and for every combination of its declared values.
        """
        key = decode_variant_id(variant_id)
        for variant in self.variants_of(key.product_id):
            if variant.size == key.size and variant.color == key.color:
                return variant
            if variant.implicit:
                product = self.products[key.product_id]
                if _declared(product.sizes, key.size) and _declared(product.colors, key.color):
                    return variant
        return None


class CartLine(BaseModel):
    product_id: int
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    quantity: int = Field(default=1, gt=0)

    @property
    def selection(self) -> Selection:
        return Selection(size=self.selected_size, color=self.selected_color)


class FailureReason(str, Enum):
    VARIANT_NOT_FOUND = "VariantNotFound"
    OUT_OF_STOCK = "OutOfStock"
    INSUFFICIENT_STOCK = "InsufficientStock"


class LineFailure(BaseModel):
    line_index: int
    product_id: int
    selection: Selection
    reason: FailureReason
    requested: int
    available: Optional[int] = None


class ValidationResult(BaseModel):
    ok: bool
    failures: List[LineFailure] = []


class StockChange(BaseModel):
    product_id: int
    variant_id: str
    before: int
    after: int


class CommitResult(BaseModel):
    success: bool
    failures: List[LineFailure] = []
    changes: List[StockChange] = []
    commit_id: Optional[str] = None
    replayed: bool = False
