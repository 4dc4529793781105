# sheetstore/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .catalog import (
    available_variants, diagnose_catalog, is_in_stock, load_catalog, low_stock_variants,
    read_tables, seed_missing_variants,
)
from .checkout import place_order, quote_cart
from .commit import commit_stock
from .config import Settings, get_settings
from .core import (
    CartIn, CheckoutIn, QuoteIn, ResolveIn,
    _make_product_dict, _make_variant_dict, close_store, get_store,
)
from .database import InMemoryRowStore, RowStore
from .errors import IdempotencyKeyReused, MalformedVariantId, PartialCommitFailure, RowStoreError, TableNotFound
from .logger import get_logger
from .models import Selection
from .resolver import resolve_variant
from .seed import seed_demo
from .validator import validate_cart

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # the Sheets backend holds an open httpx client
    await close_store()


app = FastAPI(title="sheetstore (spreadsheet-backed storefront)", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RowStoreError)
async def row_store_error(request: Request, exc: RowStoreError):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    if isinstance(exc, PartialCommitFailure):
        detail = "order not completed, please retry"
    else:
        detail = "store unavailable, please retry"
    return JSONResponse(status_code=503, content={"detail": detail})


@app.exception_handler(IdempotencyKeyReused)
async def idempotency_key_reused(request: Request, exc: IdempotencyKeyReused):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def _require_lines(payload: CartIn):
    if not payload.lines:
        raise HTTPException(status_code=400, detail="cart empty")


# ---------------------------
# Catalog endpoints
# ---------------------------
@app.get("/products")
async def list_products(
    available_only: bool = False,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    catalog = await load_catalog(store, settings)
    out = []
    for p in catalog.products.values():
        if available_only and not is_in_stock(p):
            continue
        out.append(_make_product_dict(p))
    return out


@app.get("/products/{product_id}")
async def get_product(
    product_id: int,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    catalog = await load_catalog(store, settings)
    p = catalog.get(product_id)
    if not p:
        raise HTTPException(status_code=404, detail="product not found")
    return _make_product_dict(p)


@app.get("/products/{product_id}/variants")
async def list_variants(
    product_id: int,
    available_only: bool = False,
    low_stock: bool = False,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    catalog = await load_catalog(store, settings)
    p = catalog.get(product_id)
    if not p:
        raise HTTPException(status_code=404, detail="product not found")
    if low_stock:
        variants = low_stock_variants(p, settings.low_stock_threshold)
    elif available_only:
        variants = available_variants(p)
    else:
        variants = p.variants
    return [_make_variant_dict(v) for v in variants]


@app.get("/variants/{variant_id}")
async def get_variant(
    variant_id: str,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    catalog = await load_catalog(store, settings)
    try:
        v = catalog.find_variant(variant_id)
    except MalformedVariantId as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not v:
        raise HTTPException(status_code=404, detail="variant not found")
    return _make_variant_dict(v)


@app.post("/variants/resolve")
async def resolve(
    payload: ResolveIn,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    catalog = await load_catalog(store, settings)
    if catalog.get(payload.product_id) is None:
        raise HTTPException(status_code=404, detail="product not found")
    v = resolve_variant(catalog, payload.product_id, Selection(size=payload.size, color=payload.color))
    if not v:
        raise HTTPException(status_code=404, detail="variant not found")
    return _make_variant_dict(v)


@app.post("/variants/setup", status_code=201)
async def setup_variants(
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        created = await seed_missing_variants(store, settings)
    except TableNotFound as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"created": [_make_variant_dict(v) for v in created]}


# ---------------------------
# Cart / stock endpoints
# ---------------------------
@app.post("/cart/validate")
async def cart_validate(
    payload: CartIn,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    _require_lines(payload)
    catalog = await load_catalog(store, settings)
    return validate_cart(catalog, payload.lines)


@app.post("/cart/quote")
async def cart_quote(
    payload: QuoteIn,
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    _require_lines(payload)
    catalog = await load_catalog(store, settings)
    return quote_cart(catalog, payload.lines, payload.delivery_method)


@app.post("/stock/commit")
async def stock_commit(
    payload: CartIn,
    idempotency_key: Optional[str] = Header(None),
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    _require_lines(payload)
    result = await commit_stock(store, payload.lines, settings, commit_id=idempotency_key)
    if not result.success:
        return JSONResponse(status_code=409, content=result.model_dump(mode="json"))
    return result


@app.post("/cart/checkout")
async def cart_checkout(
    payload: CheckoutIn,
    idempotency_key: Optional[str] = Header(None),
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    _require_lines(payload)
    order = await place_order(
        store,
        payload.lines,
        payload.customer,
        delivery_method=payload.delivery_method,
        channel=payload.channel,
        settings=settings,
        idempotency_key=idempotency_key,
    )
    if not order.success:
        raise HTTPException(status_code=409, detail={
            "message": "some items are unavailable",
            "failures": [f.model_dump(mode="json") for f in order.failures],
        })
    return order


# ---------------------------
# Maintenance
# ---------------------------
@app.get("/diagnostics")
async def diagnostics(
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    product_table, variant_table = await read_tables(store, settings)
    report = diagnose_catalog(product_table, variant_table)
    return {"healthy": report.healthy, **report.model_dump(mode="json")}


@app.post("/reset")
async def reset_all(
    store: RowStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if not isinstance(store, InMemoryRowStore):
        raise HTTPException(status_code=400, detail="reset is only available on the memory backend")
    seed_demo(store, settings)
    return {"status": "reset"}
