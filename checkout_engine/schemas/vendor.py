"""
Vendor buckets derived from the cart.

A bucket is owned either by the platform or by one vendor. The owner is a
closed set of two dataclasses, so callers branch with isinstance instead of
comparing against a magic "platform" string.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from checkout_engine.schemas.cart import CartItem
from checkout_engine.schemas.shipping import CountryConfig, ShippingZone

PLATFORM_KEY = "platform"


@dataclass(frozen=True)
class PlatformOwner:
    """Items sold by the marketplace operator itself."""

    @property
    def key(self) -> str:
        return PLATFORM_KEY

    @property
    def id(self) -> None:
        return None


@dataclass(frozen=True)
class VendorOwner:
    id: int

    @property
    def key(self) -> str:
        return f"vendor_{self.id}"


Owner = Union[PlatformOwner, VendorOwner]


def owner_for(vendor_id: Optional[int]) -> Owner:
    if vendor_id is None:
        return PlatformOwner()
    return VendorOwner(id=vendor_id)


@dataclass
class Vendor:
    owner: Owner
    display_name: str = ""
    items: Dict[str, CartItem] = field(default_factory=dict)
    shipping_zones: Optional[Dict[str, ShippingZone]] = None
    shipping_countries: Optional[Dict[str, CountryConfig]] = None
    shipping_rates_order: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return self.owner.key

    @property
    def id(self) -> Optional[int]:
        return self.owner.id

    @property
    def is_platform(self) -> bool:
        return isinstance(self.owner, PlatformOwner)

    @property
    def has_shippable_products(self) -> bool:
        return any(item.shipping.is_shippable for item in self.items.values())

    def owns(self, item: CartItem) -> bool:
        return item.vendor.id == self.id
