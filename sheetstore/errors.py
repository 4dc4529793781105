# sheetstore/errors.py


class MalformedVariantId(ValueError):
    """Raised when a variant id cannot be split into product, size and color."""

    def __init__(self, variant_id: str, reason: str = "expected <productId>-<size>-<color>"):
        super().__init__(f"malformed variant id {variant_id!r}: {reason}")
        self.variant_id = variant_id


class RowStoreError(Exception):
    """Base class for failures talking to the backing row store."""


class RowStoreUnavailable(RowStoreError):
    pass


class TableNotFound(RowStoreError):
    def __init__(self, table: str):
        super().__init__(f"table not found: {table}")
        self.table = table


class PartialCommitFailure(RowStoreError):
    """The stock batch write failed after re-validation passed; the order was not completed."""


class IdempotencyKeyReused(ValueError):
    """An idempotency key came back with a different cart than the one it committed."""

    def __init__(self, key: str):
        super().__init__(f"idempotency key {key!r} was already used for a different cart")
        self.key = key
