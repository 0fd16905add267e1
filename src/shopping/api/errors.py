"""HTTP mapping for cart store failures.

Domain validation and not-found errors are mapped by Protean's own FastAPI
handlers; these cover the cart store's concurrency outcomes.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from shopping.cart.store import CartStoreError, StaleCartError

logger = structlog.get_logger(__name__)


async def _stale_cart(request: Request, exc: StaleCartError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": "Cart was modified concurrently, please retry"})


async def _cart_store(request: Request, exc: CartStoreError) -> JSONResponse:
    logger.error("Cart store failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal error"})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(StaleCartError, _stale_cart)
    app.add_exception_handler(CartStoreError, _cart_store)
