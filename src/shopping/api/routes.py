"""FastAPI endpoints for the Shopping domain.

The caller is identified by the ``X-User-Id`` header; authentication happens
upstream of this service.
"""

from typing import Annotated

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from shopping.api.schemas import (
    AddDesignRequest,
    AddProductRequest,
    ApplyCouponRequest,
    CartIdResponse,
    CouponIdResponse,
    CouponUsageResponse,
    CreateCouponRequest,
    RecordCouponUsageRequest,
    UpdateCartItemRequest,
    UpdateCouponRequest,
    variants_payload,
)
from shopping.cart.details import get_cart_with_details, get_item_details
from shopping.cart.items import AddDesignToCart, AddProductToCart, ClearCart, RemoveCartItem, UpdateCartItem
from shopping.cart.management import ApplyCouponToCart, DeactivateCart, RemoveCouponFromCart
from shopping.checkout.validation import validate_cart_for_checkout
from shopping.coupon.listing import get_coupon, list_active_coupons, list_coupons, lookup_coupon
from shopping.coupon.management import CreateCoupon, DeleteCoupon, RecordCouponUsage, UpdateCoupon

cart_router = APIRouter(prefix="/cart", tags=["cart"])
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])

UserId = Annotated[str, Header(alias="X-User-Id")]
Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=100)]


# --- Cart endpoints ---


@cart_router.get("")
async def get_cart(user_id: UserId) -> dict:
    return get_cart_with_details(user_id)


@cart_router.post("/regular")
async def add_product(body: AddProductRequest, user_id: UserId) -> dict:
    command = AddProductToCart(
        user_id=user_id,
        product_id=body.product_id,
        variant_quantities=variants_payload(body.variant_quantities),
        is_selected=body.is_selected,
    )
    return current_domain.process(command, asynchronous=False)


@cart_router.post("/design")
async def add_design(body: AddDesignRequest, user_id: UserId) -> dict:
    command = AddDesignToCart(
        user_id=user_id,
        design_id=body.design_id,
        variant_quantities=variants_payload(body.variant_quantities),
        is_selected=body.is_selected,
    )
    return current_domain.process(command, asynchronous=False)


@cart_router.get("/items/{item_id}")
async def get_item(item_id: str, user_id: UserId) -> dict:
    return get_item_details(user_id, item_id)


@cart_router.put("/items/{item_id}")
async def update_item(item_id: str, body: UpdateCartItemRequest, user_id: UserId) -> dict:
    command = UpdateCartItem(
        user_id=user_id,
        item_id=item_id,
        variant_quantities=variants_payload(body.variant_quantities),
        is_selected=body.is_selected,
    )
    return current_domain.process(command, asynchronous=False)


@cart_router.delete("/items/{item_id}")
async def remove_item(item_id: str, user_id: UserId) -> dict:
    command = RemoveCartItem(user_id=user_id, item_id=item_id)
    return current_domain.process(command, asynchronous=False)


@cart_router.delete("")
async def clear_cart(user_id: UserId) -> dict:
    return current_domain.process(ClearCart(user_id=user_id), asynchronous=False)


@cart_router.post("/coupon")
async def apply_coupon(body: ApplyCouponRequest, user_id: UserId) -> dict:
    command = ApplyCouponToCart(user_id=user_id, code=body.code)
    return current_domain.process(command, asynchronous=False)


@cart_router.delete("/coupon")
async def remove_coupon(user_id: UserId) -> dict:
    return current_domain.process(RemoveCouponFromCart(user_id=user_id), asynchronous=False)


@cart_router.post("/checkout/validate")
async def validate_checkout(user_id: UserId) -> dict:
    return validate_cart_for_checkout(user_id)


@cart_router.post("/deactivate", response_model=CartIdResponse)
async def deactivate_cart(user_id: UserId) -> CartIdResponse:
    cart_id = current_domain.process(DeactivateCart(user_id=user_id), asynchronous=False)
    return CartIdResponse(cart_id=cart_id)


# --- Coupon endpoints ---


@coupon_router.post("", status_code=201, response_model=CouponIdResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponIdResponse:
    command = CreateCoupon(
        code=body.code,
        name=body.name,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        start_date=body.start_date,
        end_date=body.end_date,
        usage_limit=body.usage_limit,
        user_usage_limit=body.user_usage_limit,
        category_id=body.category_id,
        image=body.image,
    )
    result = current_domain.process(command, asynchronous=False)
    return CouponIdResponse(coupon_id=result)


@coupon_router.post("/{coupon_id}/usage", response_model=CouponUsageResponse)
async def record_coupon_usage(coupon_id: str, body: RecordCouponUsageRequest) -> CouponUsageResponse:
    command = RecordCouponUsage(coupon_id=coupon_id, user_id=body.user_id)
    used_count = current_domain.process(command, asynchronous=False)
    return CouponUsageResponse(coupon_id=coupon_id, used_count=used_count)


@coupon_router.get("")
async def get_coupons(page: Page = 1, limit: Limit = 10) -> dict:
    return list_coupons(page, limit)


@coupon_router.get("/active")
async def get_active_coupons(page: Page = 1, limit: Limit = 10) -> dict:
    return list_active_coupons(page, limit)


@coupon_router.post("/apply")
async def find_coupon(body: ApplyCouponRequest) -> dict:
    return lookup_coupon(body.code)


@coupon_router.get("/{coupon_id}")
async def get_coupon_by_id(coupon_id: str) -> dict:
    return get_coupon(coupon_id)


@coupon_router.patch("/{coupon_id}")
async def update_coupon(coupon_id: str, body: UpdateCouponRequest) -> dict:
    command = UpdateCoupon(coupon_id=coupon_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return get_coupon(coupon_id)


@coupon_router.delete("/{coupon_id}", status_code=204)
async def delete_coupon(coupon_id: str) -> None:
    current_domain.process(DeleteCoupon(coupon_id=coupon_id), asynchronous=False)
