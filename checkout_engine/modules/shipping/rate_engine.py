"""
Shipping cost and rate eligibility.

Platform rates are priced against the whole cart, vendor rates against the
vendor's own items. The two scopes differ on per_class: platform adds every
class surcharge to the base amount, vendor takes the single highest per-item
amount. Both behaviours are relied upon by existing shop setups.

All amounts are integer minor currency units.
"""
import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from checkout_engine.schemas.cart import CartItem
from checkout_engine.schemas.shipping import CalculationMethod, RateType, ShippingRate
from checkout_engine.schemas.vendor import Vendor

logger = logging.getLogger(__name__)

PLATFORM_DEFAULT_CALCULATION = CalculationMethod.PER_ORDER
VENDOR_DEFAULT_CALCULATION = CalculationMethod.PER_ITEM

PRICED_RATE_TYPES = frozenset({RateType.FLAT_RATE, RateType.FIXED_RATE})

Calculator = Callable[[ShippingRate, List[CartItem]], int]


def _scope(items: Mapping[str, CartItem], vendor: Optional[Vendor]) -> List[CartItem]:
    if vendor is None:
        return list(items.values())
    return [item for item in items.values() if vendor.owns(item)]


def _shippable(items: Iterable[CartItem]) -> List[CartItem]:
    return [item for item in items if item.shipping.is_shippable]


def _base_amount(rate: ShippingRate) -> int:
    return rate.amount_per_unit or 0


def _class_override(rate: ShippingRate, item: CartItem) -> Optional[int]:
    shipping_class = item.shipping.shipping_class
    if shipping_class and shipping_class in rate.shipping_classes:
        return rate.shipping_classes[shipping_class]
    return None


def _unit_amount(rate: ShippingRate, item: CartItem) -> int:
    override = _class_override(rate, item)
    return override if override is not None else _base_amount(rate)


def order_total(items: Iterable[CartItem]) -> int:
    return sum(item.pricing.total_amount for item in items)


def scope_total(items: Mapping[str, CartItem], vendor: Optional[Vendor] = None) -> int:
    """Order total used for minimum-amount checks: whole cart, or the vendor's items."""
    return order_total(_scope(items, vendor))


def rate_meets_criteria(rate: ShippingRate, order_total_for_scope: int) -> bool:
    """Free shipping with a minimum order amount is the only conditional rate."""
    if rate.has_minimum_order_requirement:
        return order_total_for_scope >= (rate.minimum_order_amount or 0)
    return True


# ==================== Calculators ====================


def _per_order(rate: ShippingRate, items: List[CartItem]) -> int:
    return _base_amount(rate)


def _per_item(rate: ShippingRate, items: List[CartItem]) -> int:
    return sum(_unit_amount(rate, item) * item.get_quantity() for item in _shippable(items))


def _platform_per_class(rate: ShippingRate, items: List[CartItem]) -> int:
    total = _base_amount(rate)
    for item in _shippable(items):
        override = _class_override(rate, item)
        if override is not None:
            total += override * item.get_quantity()
    return total


def _vendor_per_class(rate: ShippingRate, items: List[CartItem]) -> int:
    highest = _base_amount(rate)
    for item in _shippable(items):
        highest = max(highest, _unit_amount(rate, item))
    return highest


PLATFORM_CALCULATORS: Dict[CalculationMethod, Calculator] = {
    CalculationMethod.PER_ORDER: _per_order,
    CalculationMethod.PER_ITEM: _per_item,
    CalculationMethod.PER_CLASS: _platform_per_class,
}

VENDOR_CALCULATORS: Dict[CalculationMethod, Calculator] = {
    CalculationMethod.PER_ORDER: _per_order,
    CalculationMethod.PER_ITEM: _per_item,
    CalculationMethod.PER_CLASS: _vendor_per_class,
}


def cost_for(
    rate: ShippingRate,
    items: Mapping[str, CartItem],
    vendor: Optional[Vendor] = None,
) -> Optional[int]:
    """
    Shipping cost of rate for the given item scope.

    Args:
        rate: The rate being priced
        items: The full cart item map
        vendor: Price with vendor semantics over this vendor's items.
            Platform semantics over the whole cart when omitted.

    Returns:
        Cost in minor units, 0 for free shipping, or None when the rate type
        cannot be priced.
    """
    if rate.type == RateType.FREE_SHIPPING:
        return 0

    if rate.type not in PRICED_RATE_TYPES:
        logger.debug(f"[SHIPPING] Rate {rate.key!r} has unsupported type {rate.type.value!r}")
        return None

    if vendor is None:
        method = rate.calculation_method or PLATFORM_DEFAULT_CALCULATION
        calculator = PLATFORM_CALCULATORS[method]
    else:
        method = rate.calculation_method or VENDOR_DEFAULT_CALCULATION
        calculator = VENDOR_CALCULATORS[method]

    return calculator(rate, _scope(items, vendor))


def is_rate_selectable(
    rate: ShippingRate,
    items: Mapping[str, CartItem],
    vendor: Optional[Vendor] = None,
) -> bool:
    """Listed rates that fail their criteria, or cannot be priced, are not selectable."""
    if not rate_meets_criteria(rate, scope_total(items, vendor)):
        return False
    return cost_for(rate, items, vendor) is not None
