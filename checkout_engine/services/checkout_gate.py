"""
Checkout gate

Decides whether the checkout button may be used. Checks run in a fixed order
and the first failure is reported:

1. cart not empty
2. guest quick-register (email, verification code, terms), when the shopper
   is not signed in and guests proceed with email
3. shipping destination and rate selection, when any item ships
"""
import enum
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from checkout_engine.modules.shipping.zone_resolver import ShippingMethod, shipping_method_for
from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    GuestBehavior,
    QuickRegisterState,
    ShippingState,
)
from checkout_engine.services.vendor_grouper import group_by_vendor

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


class GateReason(str, enum.Enum):
    EMPTY_CART = "empty_cart"
    INVALID_EMAIL = "invalid_email"
    VERIFICATION_REQUIRED = "verification_required"
    TERMS_NOT_AGREED = "terms_not_agreed"
    COUNTRY_REQUIRED = "country_required"
    SHIPPING_RATE_REQUIRED = "shipping_rate_required"
    VENDOR_SHIPPING_REQUIRED = "vendor_shipping_required"


@dataclass(frozen=True)
class GateResult:
    ok: bool
    reason: Optional[GateReason] = None

    @classmethod
    def passed(cls) -> "GateResult":
        return cls(ok=True)

    @classmethod
    def blocked(cls, reason: GateReason) -> "GateResult":
        return cls(ok=False, reason=reason)


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.search(email) is not None


def is_authenticated(config: CartConfig, quick_register: QuickRegisterState) -> bool:
    return config.is_logged_in or quick_register.registered


def has_shippable_products(items: Mapping[str, CartItem]) -> bool:
    return any(item.shipping.is_shippable for item in items.values())


def is_all_vendor_shipping_selected(
    items: Mapping[str, CartItem],
    shipping: ShippingState,
) -> bool:
    """Every vendor bucket with shippable products has a zone/rate selection."""
    for vendor_key, vendor in group_by_vendor(items).items():
        if not vendor.has_shippable_products:
            continue
        if not shipping.vendors.get(vendor_key):
            return False
    return True


def _guest_check(config: CartConfig, quick_register: QuickRegisterState) -> Optional[GateReason]:
    guests = config.guest_customers
    if guests.behavior != GuestBehavior.PROCEED_WITH_EMAIL:
        return None

    if not is_valid_email(quick_register.email):
        return GateReason.INVALID_EMAIL

    if guests.requires_verification:
        code_entered = quick_register.sent_code and bool(quick_register.code.strip())
        if not (quick_register.registered or code_entered):
            return GateReason.VERIFICATION_REQUIRED

    if guests.requires_terms and not quick_register.terms_agreed:
        return GateReason.TERMS_NOT_AGREED

    return None


def _shipping_check(
    items: Mapping[str, CartItem],
    config: CartConfig,
    shipping: ShippingState,
) -> Optional[GateReason]:
    if not shipping.country:
        return GateReason.COUNTRY_REQUIRED

    method = shipping_method_for(config, group_by_vendor(items))
    if method == ShippingMethod.PLATFORM_RATES:
        if not (shipping.zone and shipping.rate):
            return GateReason.SHIPPING_RATE_REQUIRED
    elif not is_all_vendor_shipping_selected(items, shipping):
        return GateReason.VENDOR_SHIPPING_REQUIRED

    return None


def can_proceed(
    items: Mapping[str, CartItem],
    config: CartConfig,
    shipping: ShippingState,
    quick_register: QuickRegisterState,
) -> GateResult:
    if not items:
        return GateResult.blocked(GateReason.EMPTY_CART)

    if not is_authenticated(config, quick_register):
        reason = _guest_check(config, quick_register)
        if reason is not None:
            return GateResult.blocked(reason)

    if has_shippable_products(items):
        reason = _shipping_check(items, config, shipping)
        if reason is not None:
            return GateResult.blocked(reason)

    return GateResult.passed()
