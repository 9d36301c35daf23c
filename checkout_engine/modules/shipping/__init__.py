"""
Shipping Module

- ZIP rule matching (exact, wildcard, range)
- Zone applicability for a destination
- Rate pricing under per-order / per-item / per-class policies
- Candidate rate enumeration for platform and vendor zones
"""
from checkout_engine.modules.shipping.zip_matcher import has_zip_rules, matches_zip_code
from checkout_engine.modules.shipping.region_matcher import Destination, zone_applies
from checkout_engine.modules.shipping.rate_engine import (
    cost_for,
    is_rate_selectable,
    order_total,
    rate_meets_criteria,
    scope_total,
)
from checkout_engine.modules.shipping.zone_resolver import (
    RateCandidate,
    ShippingMethod,
    candidate_rates,
    resolve_shipping_method,
    shipping_method_for,
    vendor_candidate_rates,
    vendor_has_matching_rates,
)

__all__ = [
    "has_zip_rules",
    "matches_zip_code",
    "Destination",
    "zone_applies",
    "cost_for",
    "is_rate_selectable",
    "order_total",
    "rate_meets_criteria",
    "scope_total",
    "RateCandidate",
    "ShippingMethod",
    "candidate_rates",
    "resolve_shipping_method",
    "shipping_method_for",
    "vendor_candidate_rates",
    "vendor_has_matching_rates",
]
