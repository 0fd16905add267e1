"""Shopping cart FastAPI application.

Web server that processes cart and coupon commands synchronously via HTTP.
Each request runs inside the shopping domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay to apply.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from shopping.domain import shopping
from shopping.utils.logging import bind_request_context, clear_request_context

shopping.init()

_DOMAIN_PREFIXES = ("/cart", "/coupons")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Shopping Cart API",
    description="Cart aggregation and coupon pricing",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the shopping domain context for cart and coupon requests."""
    if not request.url.path.startswith(_DOMAIN_PREFIXES):
        # Health check, docs, etc.
        return await call_next(request)

    bind_request_context(user_id=request.headers.get("X-User-Id"), path=request.url.path)
    try:
        with shopping.domain_context():
            return await call_next(request)
    finally:
        clear_request_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from shopping.api import cart_router, coupon_router, register_error_handlers  # noqa: E402

app.include_router(cart_router)
app.include_router(coupon_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": shopping.name}})
