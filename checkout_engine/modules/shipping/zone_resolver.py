"""
Candidate (zone, rate) pairs for a destination.

Rates are listed when their zone serves the destination; eligibility (minimum
order amount) is checked later, when the shopper selects a rate.
"""
import enum
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from checkout_engine.modules.shipping.region_matcher import Destination, zone_applies
from checkout_engine.schemas.cart import CartConfig
from checkout_engine.schemas.shipping import (
    ShippingRate,
    ShippingResponsibility,
    ShippingZone,
)
from checkout_engine.schemas.vendor import PlatformOwner, Vendor


class ShippingMethod(str, enum.Enum):
    PLATFORM_RATES = "platform_rates"
    VENDOR_RATES = "vendor_rates"

@dataclass(frozen=True)
class RateCandidate:
    zone: ShippingZone
    rate: ShippingRate

def _rank_lookup(preferred_order: Sequence[str]) -> Dict[str, int]:
    ranks: Dict[str, int] = {}
    for index, rate_key in enumerate(preferred_order):
        ranks.setdefault(rate_key, index)
    return ranks

def candidate_rates(
    zones: Mapping[str, ShippingZone],
    destination: Destination,
    preferred_order: Optional[Sequence[str]] = None,
) -> List[RateCandidate]:
    """
    Every (zone, rate) pair whose zone applies to destination.

    Sorted by the position of rate.key in preferred_order. Keys missing from
    preferred_order go last and keep their enumeration order.
    """
    candidates = [
        RateCandidate(zone=zone, rate=rate)
        for zone in zones.values()
        if zone_applies(zone, destination)
        for rate in zone.rates.values()
    ]

    if not preferred_order:
        return candidates

    ranks = _rank_lookup(preferred_order)
    unranked = len(ranks) + len(preferred_order)
    return sorted(candidates, key=lambda c: ranks.get(c.rate.key, unranked))

def resolve_shipping_method(
    multivendor_enabled: bool,
    responsibility: ShippingResponsibility,
    vendors: Mapping[str, Vendor],
) -> ShippingMethod:
    """Vendor rates apply only when vendors own shipping and at least one real vendor is in the cart."""
    if not multivendor_enabled or responsibility != ShippingResponsibility.VENDOR:
        return ShippingMethod.PLATFORM_RATES

    buckets = list(vendors.values())
    if len(buckets) > 1:
        return ShippingMethod.VENDOR_RATES
    if len(buckets) == 1 and not isinstance(buckets[0].owner, PlatformOwner):
        return ShippingMethod.VENDOR_RATES
    return ShippingMethod.PLATFORM_RATES

def shipping_method_for(config: CartConfig, vendors: Mapping[str, Vendor]) -> ShippingMethod:
    return resolve_shipping_method(
        config.multivendor.enabled,
        config.shipping.responsibility,
        vendors,
    )

def zones_for_vendor(
    vendor: Vendor,
    config: CartConfig,
) -> Tuple[Optional[Mapping[str, ShippingZone]], List[str]]:
    """Zones and preferred rate order for a bucket: platform settings, or the vendor's own."""
    if isinstance(vendor.owner, PlatformOwner):
        return config.shipping.zones, config.shipping.shipping_rates_order
    return vendor.shipping_zones, vendor.shipping_rates_order

def vendor_candidate_rates(
    vendor: Vendor,
    destination: Destination,
    config: CartConfig,
) -> List[RateCandidate]:
    if not vendor.has_shippable_products or not destination.country:
        return []
    zones, preferred_order = zones_for_vendor(vendor, config)
    if not zones:
        return []
    return candidate_rates(zones, destination, preferred_order)

def vendor_has_matching_rates(
    vendor: Vendor,
    destination: Destination,
    config: CartConfig,
) -> bool:
    return bool(vendor_candidate_rates(vendor, destination, config))

def find_candidate(
    candidates: Sequence[RateCandidate],
    zone_key: Optional[str],
    rate_key: Optional[str],
) -> Optional[RateCandidate]:
    for candidate in candidates:
        if candidate.zone.key == zone_key and candidate.rate.key == rate_key:
            return candidate
    return None
