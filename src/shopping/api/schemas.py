"""Pydantic request/response schemas for the Shopping API."""

from __future__ import annotations

import json
from datetime import datetime

from pydantic import BaseModel, Field

# --- Request Schemas ---


class SizeQuantityIn(BaseModel):
    size_id: str
    quantity: int


class VariantQuantityIn(BaseModel):
    variant_id: str
    size_quantities: list[SizeQuantityIn] = Field(default_factory=list)


def variants_payload(variants: list[VariantQuantityIn] | None) -> str | None:
    """Serialize request variants to the JSON text the cart commands carry."""
    if variants is None:
        return None
    return json.dumps([v.model_dump() for v in variants])


class AddProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-tee-001",
                    "variant_quantities": [
                        {
                            "variant_id": "var-black",
                            "size_quantities": [{"size_id": "size-m", "quantity": 2}],
                        }
                    ],
                    "is_selected": True,
                }
            ]
        }
    }

    product_id: str
    variant_quantities: list[VariantQuantityIn] = Field(..., min_length=1)
    is_selected: bool = False


class AddDesignRequest(BaseModel):
    design_id: str
    variant_quantities: list[VariantQuantityIn] = Field(..., min_length=1)
    is_selected: bool = False


class UpdateCartItemRequest(BaseModel):
    """Omitted fields are left unchanged; an empty variant list is a real update."""

    variant_quantities: list[VariantQuantityIn] | None = None
    is_selected: bool | None = None


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class CreateCouponRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "SUMMER10",
                    "name": "Summer sale",
                    "discount_type": "PERCENTAGE",
                    "discount_value": 10,
                    "start_date": "2026-06-01T00:00:00Z",
                    "end_date": "2026-08-31T23:59:59Z",
                    "usage_limit": 500,
                }
            ]
        }
    }

    code: str = Field(..., max_length=50)
    name: str = Field(..., max_length=255)
    discount_type: str = Field(..., max_length=20)
    discount_value: float = Field(..., ge=0)
    start_date: datetime
    end_date: datetime
    usage_limit: int | None = Field(None, ge=0)
    user_usage_limit: int = Field(1, ge=1)
    category_id: str | None = None
    image: str | None = Field(None, max_length=500)


class UpdateCouponRequest(BaseModel):
    """Partial update: only the fields sent are changed."""

    code: str | None = Field(None, max_length=50)
    name: str | None = Field(None, max_length=255)
    discount_type: str | None = Field(None, max_length=20)
    discount_value: float | None = Field(None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool | None = None
    usage_limit: int | None = Field(None, ge=0)
    user_usage_limit: int | None = Field(None, ge=1)
    category_id: str | None = None
    image: str | None = Field(None, max_length=500)


class RecordCouponUsageRequest(BaseModel):
    user_id: str


# --- Response Schemas ---


class CouponIdResponse(BaseModel):
    coupon_id: str


class CouponUsageResponse(BaseModel):
    coupon_id: str
    used_count: int


class CartIdResponse(BaseModel):
    cart_id: str

