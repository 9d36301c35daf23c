"""
Shipping state lifecycle

- Initial destination: saved address, default country, GeoIP, first country
- Partial updates, where a country change drops every rate selection
- Platform and vendor rate selection, validated against current candidates
"""
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from pydantic import ValidationError

from checkout_engine.core.exceptions import ShippingConfigError, ShippingError
from checkout_engine.modules.shipping.rate_engine import is_rate_selectable
from checkout_engine.modules.shipping.region_matcher import Destination
from checkout_engine.modules.shipping.zone_resolver import (
    RateCandidate,
    candidate_rates,
    find_candidate,
    vendor_candidate_rates,
)
from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    ShippingSelection,
    ShippingState,
    ShippingStatus,
)
from checkout_engine.services.vendor_grouper import group_by_vendor

logger = logging.getLogger(__name__)

CountryDetector = Callable[[], Awaitable[Optional[str]]]


async def resolve_initial_shipping(
    config: CartConfig,
    detect_country: Optional[CountryDetector] = None,
) -> ShippingState:
    """
    Starting destination for a new session.

    Order of preference: saved address (when its country ships), default
    country, GeoIP-detected country, first enabled country. Only countries
    enabled for shipping are accepted. The status is always completed.
    """
    shipping = config.shipping
    enabled = shipping.countries
    saved = shipping.saved_address

    if saved is not None and saved.country and saved.country in enabled:
        return ShippingState(
            first_name=saved.first_name,
            last_name=saved.last_name,
            country=saved.country,
            state=saved.state,
            address=saved.address,
            zip=saved.zip,
            status=ShippingStatus.COMPLETED,
        )

    if shipping.default_country and shipping.default_country in enabled:
        return ShippingState(country=shipping.default_country, status=ShippingStatus.COMPLETED)

    if config.geoip_providers and detect_country is not None:
        detected = await detect_country()
        if detected and detected in enabled:
            logger.info(f"[SHIPPING] Using GeoIP country {detected}")
            return ShippingState(country=detected, status=ShippingStatus.COMPLETED)

    first_country = next(iter(enabled), None)
    return ShippingState(country=first_country, status=ShippingStatus.COMPLETED)


class ShippingStateService:
    """Holds the session's ShippingState and applies changes to it."""

    def __init__(self, config: CartConfig, state: Optional[ShippingState] = None):
        self.config = config
        self.state = state or ShippingState()

    @property
    def destination(self) -> Destination:
        return Destination.from_shipping_state(self.state)

    def apply(self, **changes: Any) -> ShippingState:
        """
        Merge changes into the state.

        Changing the country clears the platform zone/rate and every vendor
        selection, unless the same call sets them again.
        """
        unknown = set(changes) - set(ShippingState.model_fields)
        if unknown:
            raise ShippingError(
                f"Unknown shipping fields: {', '.join(sorted(unknown))}",
                code="SHIPPING_FIELD_UNKNOWN",
            )

        update = dict(changes)
        if "country" in update and update["country"] != self.state.country:
            update.setdefault("zone", None)
            update.setdefault("rate", None)
            update.setdefault("vendors", {})

        try:
            self.state = ShippingState.model_validate({**self.state.model_dump(), **update})
        except ValidationError as e:
            raise ShippingError(
                f"Invalid shipping update: {e.error_count()} error(s)",
                code="SHIPPING_UPDATE_INVALID",
                details={"errors": e.errors(include_url=False)},
            ) from e
        return self.state

    # ==================== Platform rates ====================

    def platform_candidates(self) -> List[RateCandidate]:
        return candidate_rates(
            self.config.shipping.zones,
            self.destination,
            self.config.shipping.shipping_rates_order,
        )

    def select_platform_rate(
        self,
        items: Mapping[str, CartItem],
        zone_key: str,
        rate_key: str,
    ) -> ShippingState:
        candidate = find_candidate(self.platform_candidates(), zone_key, rate_key)
        if candidate is None:
            raise ShippingConfigError(
                f"Rate {rate_key} in zone {zone_key} does not ship to {self.state.country}",
                zone_key=zone_key,
                rate_key=rate_key,
            )
        if not is_rate_selectable(candidate.rate, items):
            raise ShippingConfigError(
                f"Rate {rate_key} is not available for this order",
                zone_key=zone_key,
                rate_key=rate_key,
            )
        return self.apply(zone=zone_key, rate=rate_key)

    # ==================== Vendor rates ====================

    def select_vendor_rate(
        self,
        items: Mapping[str, CartItem],
        vendor_key: str,
        zone_key: str,
        rate_key: str,
    ) -> ShippingState:
        vendor = group_by_vendor(items).get(vendor_key)
        if vendor is None:
            raise ShippingConfigError(
                f"No items from {vendor_key} in the cart",
                zone_key=zone_key,
                rate_key=rate_key,
                details={"vendor_key": vendor_key},
            )

        candidates = vendor_candidate_rates(vendor, self.destination, self.config)
        candidate = find_candidate(candidates, zone_key, rate_key)
        if candidate is None:
            raise ShippingConfigError(
                f"Rate {rate_key} in zone {zone_key} is not offered by {vendor_key}",
                zone_key=zone_key,
                rate_key=rate_key,
                details={"vendor_key": vendor_key},
            )
        if not is_rate_selectable(candidate.rate, items, vendor):
            raise ShippingConfigError(
                f"Rate {rate_key} is not available for {vendor_key}",
                zone_key=zone_key,
                rate_key=rate_key,
                details={"vendor_key": vendor_key},
            )

        vendors = dict(self.state.vendors)
        vendors[vendor_key] = ShippingSelection(zone=zone_key, rate=rate_key)
        return self.apply(vendors=vendors)

    def clear_vendor_rate(self, vendor_key: str) -> ShippingState:
        vendors = dict(self.state.vendors)
        vendors[vendor_key] = None
        return self.apply(vendors=vendors)
