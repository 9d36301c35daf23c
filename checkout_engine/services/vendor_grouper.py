"""
Vendor grouping

Projects the cart item map onto vendor buckets. Items without a vendor id
belong to the platform bucket. Recomputed on every change, never cached.
"""
from typing import Dict, Mapping

from checkout_engine.schemas.cart import CartItem
from checkout_engine.schemas.vendor import Vendor, owner_for


def group_by_vendor(items: Mapping[str, CartItem]) -> Dict[str, Vendor]:
    """Bucket items by owner; bucket order follows first appearance in the cart."""
    vendors: Dict[str, Vendor] = {}

    for item in items.values():
        owner = owner_for(item.vendor.id)
        vendor = vendors.get(owner.key)
        if vendor is None:
            vendor = Vendor(
                owner=owner,
                display_name=item.vendor.display_name,
                shipping_zones=item.vendor.shipping_zones,
                shipping_countries=item.vendor.shipping_countries,
                shipping_rates_order=list(item.vendor.shipping_rates_order),
            )
            vendors[owner.key] = vendor
        vendor.items[item.key] = item

    return vendors


def vendors_with_shippable_products(items: Mapping[str, CartItem]) -> Dict[str, Vendor]:
    return {
        key: vendor
        for key, vendor in group_by_vendor(items).items()
        if vendor.has_shippable_products
    }
