"""
Zone applicability for a destination.

The same predicate serves platform zones and vendor zones.
"""
from dataclasses import dataclass
from typing import Optional

from checkout_engine.modules.shipping.zip_matcher import has_zip_rules, matches_zip_code
from checkout_engine.schemas.cart import ShippingState
from checkout_engine.schemas.shipping import ShippingRegion, ShippingZone


@dataclass(frozen=True)
class Destination:
    """Where the order ships to."""
    country: Optional[str]
    state: str = ""
    zip: str = ""

    @classmethod
    def from_shipping_state(cls, shipping: ShippingState) -> "Destination":
        return cls(country=shipping.country, state=shipping.state or "", zip=shipping.zip or "")


def _find_region(zone: ShippingZone, country: str) -> Optional[ShippingRegion]:
    for region in zone.regions:
        if region.country == country:
            return region
    return None


def zone_applies(zone: ShippingZone, destination: Destination) -> bool:
    """
    Whether zone serves destination.

    Country membership is required. When the zone lists regions, the region
    for that country must exist and its state allow-list and ZIP rules (if
    enabled) must accept the destination.
    """
    if not destination.country or destination.country not in zone.countries:
        return False

    if not zone.regions:
        return True

    region = _find_region(zone, destination.country)
    if region is None:
        return False

    if region.states and destination.state not in region.states:
        return False

    if region.zip_codes_enabled and has_zip_rules(region.zip_codes):
        if not destination.zip or not matches_zip_code(destination.zip, region.zip_codes):
            return False

    return True
