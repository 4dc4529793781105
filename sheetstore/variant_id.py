# sheetstore/variant_id.py
"""
Variant identifiers.

A variant id is ``<productId>-<size>-<color>`` where an absent size or color
is the token ``null`` and present values are percent-encoded one by one, so
spaces, slashes, ampersands and hyphens inside a value never touch the
delimiter. Example: ``encode_variant_id(2, None, "Kembang Legi")`` gives
``"2-null-Kembang%20Legi"``.

Decoding splits off the first two segments and treats everything left as the
color. Ids written by older tooling left ``-`` unescaped; a raw hyphen in the
color part still decodes, a raw hyphen in the size part does not.
"""
from typing import NamedTuple, Optional
from urllib.parse import quote, unquote

from .errors import MalformedVariantId

NULL_TOKEN = "null"
DELIMITER = "-"

# same characters encodeURIComponent leaves alone, minus the delimiter
_SAFE = "_.!~*'()"


class VariantKey(NamedTuple):
    product_id: int
    size: Optional[str] = None
    color: Optional[str] = None


def _encode_part(value: Optional[str]) -> str:
    if value is None:
        return NULL_TOKEN
    if value == NULL_TOKEN:
        # a real value spelled "null" must not read back as absent
        return "%6E" + value[1:]
    return quote(value, safe=_SAFE).replace(DELIMITER, "%2D")


def _decode_part(token: str) -> Optional[str]:
    if token == NULL_TOKEN:
        return None
    return unquote(token)


def encode_variant_id(product_id: int, size: Optional[str] = None, color: Optional[str] = None) -> str:
    return DELIMITER.join((str(product_id), _encode_part(size), _encode_part(color)))


def decode_variant_id(variant_id: str) -> VariantKey:
    parts = variant_id.split(DELIMITER)
    if len(parts) < 3:
        raise MalformedVariantId(variant_id)
    try:
        product_id = int(parts[0])
    except ValueError:
        raise MalformedVariantId(variant_id, "product id is not an integer")
    encoded_color = DELIMITER.join(parts[2:])
    return VariantKey(product_id, _decode_part(parts[1]), _decode_part(encoded_color))
