"""
Checkout computation routes

Stateless endpoints over the shipping and gate logic. The caller sends the
cart configuration and items it already holds; nothing is fetched from the
site here.
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from checkout_engine.modules.shipping.rate_engine import cost_for, is_rate_selectable
from checkout_engine.modules.shipping.region_matcher import Destination
from checkout_engine.modules.shipping.zone_resolver import (
    RateCandidate,
    ShippingMethod,
    candidate_rates,
    shipping_method_for,
    vendor_candidate_rates,
)
from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    QuickRegisterState,
    ShippingState,
)
from checkout_engine.schemas.vendor import Vendor
from checkout_engine.services.checkout_gate import GateReason, can_proceed
from checkout_engine.services.vendor_grouper import group_by_vendor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


class DestinationRequest(BaseModel):
    country: Optional[str] = None
    state: str = ""
    zip: str = ""


class ShippingOptionsRequest(BaseModel):
    config: CartConfig
    items: Dict[str, CartItem] = Field(default_factory=dict)
    destination: DestinationRequest


class RateOption(BaseModel):
    zone: str
    rate: str
    label: str
    type: str
    cost: Optional[int] = None
    selectable: bool
    delivery_estimate: Optional[str] = None


class VendorOptions(BaseModel):
    key: str
    display_name: str
    options: List[RateOption]


class ShippingOptionsResponse(BaseModel):
    method: ShippingMethod
    platform: List[RateOption] = Field(default_factory=list)
    vendors: List[VendorOptions] = Field(default_factory=list)


class GateRequest(BaseModel):
    config: CartConfig
    items: Dict[str, CartItem] = Field(default_factory=dict)
    shipping: ShippingState = Field(default_factory=ShippingState)
    quick_register: QuickRegisterState = Field(default_factory=QuickRegisterState)


class GateResponse(BaseModel):
    ok: bool
    reason: Optional[GateReason] = None


def _rate_option(
    candidate: RateCandidate,
    items: Dict[str, CartItem],
    vendor: Optional[Vendor] = None,
) -> RateOption:
    rate = candidate.rate
    return RateOption(
        zone=candidate.zone.key,
        rate=rate.key,
        label=rate.label,
        type=rate.type.value,
        cost=cost_for(rate, items, vendor),
        selectable=is_rate_selectable(rate, items, vendor),
        delivery_estimate=rate.delivery_estimate,
    )


@router.post("/shipping-options", response_model=ShippingOptionsResponse)
async def shipping_options(payload: ShippingOptionsRequest) -> ShippingOptionsResponse:
    """
    Rates offered for the destination, with cost and selectability.

    Platform mode lists the platform zones' rates priced over the whole cart.
    Vendor mode lists one group per vendor with shippable products, each
    priced over that vendor's items.
    """
    config = payload.config
    items = payload.items
    destination = Destination(**payload.destination.model_dump())
    vendors = group_by_vendor(items)
    method = shipping_method_for(config, vendors)

    if method == ShippingMethod.PLATFORM_RATES:
        candidates = []
        if destination.country:
            candidates = candidate_rates(
                config.shipping.zones,
                destination,
                config.shipping.shipping_rates_order,
            )
        return ShippingOptionsResponse(
            method=method,
            platform=[_rate_option(c, items) for c in candidates],
        )

    groups = [
        VendorOptions(
            key=vendor.key,
            display_name=vendor.display_name,
            options=[
                _rate_option(c, items, vendor)
                for c in vendor_candidate_rates(vendor, destination, config)
            ],
        )
        for vendor in vendors.values()
        if vendor.has_shippable_products
    ]
    logger.debug(f"[SHIPPING] Vendor options for {destination.country}: {len(groups)} vendors")
    return ShippingOptionsResponse(method=method, vendors=groups)


@router.post("/gate", response_model=GateResponse)
async def checkout_gate(payload: GateRequest) -> GateResponse:
    result = can_proceed(payload.items, payload.config, payload.shipping, payload.quick_register)
    return GateResponse(ok=result.ok, reason=result.reason)
