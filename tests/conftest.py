"""
Pytest configuration and fixtures for checkout engine tests.
"""
import os
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["SITE_URL"] = "https://shop.example.com"
os.environ["HTTP_MAX_RETRIES"] = "1"
os.environ["HTTP_RETRY_BASE_DELAY"] = "0"
os.environ["HTTP_RETRY_MAX_DELAY"] = "0"

from checkout_engine.schemas.cart import (  # noqa: E402
    CartConfig,
    CartItem,
    MutationResponse,
    Nonces,
    QuickRegisterState,
    ShippingState,
)
from checkout_engine.schemas.shipping import ShippingZone  # noqa: E402


def build_item(
    key: str,
    total: int = 1000,
    quantity: int = 1,
    shippable: bool = True,
    shipping_class: Optional[str] = None,
    vendor_id: Optional[int] = None,
    vendor_zones: Optional[Dict[str, Any]] = None,
    rates_order: Optional[list] = None,
    product_mode: str = "regular",
) -> CartItem:
    section = "stock" if product_mode == "regular" else "variations"
    return CartItem.model_validate({
        "key": key,
        "title": f"Item {key}",
        "currency": "USD",
        "pricing": {"total_amount": total},
        "quantity": {"enabled": True, "min": 1, "max": 10},
        "shipping": {"is_shippable": shippable, "shipping_class": shipping_class},
        "vendor": {
            "id": vendor_id,
            "display_name": f"Vendor {vendor_id}" if vendor_id else "",
            "shipping_zones": vendor_zones,
            "shipping_rates_order": rates_order or [],
        },
        "product_mode": product_mode,
        "value": {"product": {"post_id": key}, section: {"quantity": quantity}},
    })


def build_zone(
    key: str,
    countries,
    rates: Dict[str, Dict[str, Any]],
    regions: Optional[list] = None,
) -> ShippingZone:
    return ShippingZone.model_validate({
        "key": key,
        "label": key.title(),
        "countries": countries,
        "regions": regions or [],
        "rates": rates,
    })


@pytest.fixture
def make_item():
    return build_item


@pytest.fixture
def make_zone():
    return build_zone


@pytest.fixture
def us_zone() -> ShippingZone:
    return build_zone(
        "domestic",
        {"US": True},
        {
            "standard": {"label": "Standard", "type": "flat_rate", "amount_per_unit": 500},
            "express": {"label": "Express", "type": "flat_rate", "amount_per_unit": 1500},
            "free": {
                "label": "Free",
                "type": "free_shipping",
                "requirements": "minimum_order_amount",
                "minimum_order_amount": 5000,
            },
        },
    )


@pytest.fixture
def cart_config_data(us_zone) -> Dict[str, Any]:
    return {
        "is_logged_in": True,
        "currency": "USD",
        "multivendor": {"enabled": False},
        "shipping": {
            "responsibility": "platform",
            "default_country": "US",
            "countries": {"US": {"name": "United States"}, "CA": {"name": "Canada"}},
            "zones": {"domestic": us_zone.model_dump(mode="json")},
            "shipping_rates_order": ["express", "standard"],
        },
        "guest_customers": {
            "behavior": "proceed_with_email",
            "proceed_with_email": {"require_verification": False, "require_tos": False},
        },
        "geoip_providers": [],
        "recaptcha": {"enabled": False},
        "nonce": {"cart": "cart-nonce", "checkout": "checkout-nonce"},
    }


@pytest.fixture
def cart_config(cart_config_data) -> CartConfig:
    return CartConfig.model_validate(cart_config_data)


@pytest.fixture
def guest_config(cart_config_data) -> CartConfig:
    return CartConfig.model_validate({**cart_config_data, "is_logged_in": False})


@pytest.fixture
def shipping_state() -> ShippingState:
    return ShippingState(country="US", status="completed")


@pytest.fixture
def quick_register() -> QuickRegisterState:
    return QuickRegisterState()


@pytest.fixture
def mock_cart_client() -> AsyncMock:
    """Cart API client whose calls all succeed."""
    client = AsyncMock()
    client.update_quantity = AsyncMock(return_value=MutationResponse(success=True))
    client.remove_item = AsyncMock(return_value=MutationResponse(success=True))
    client.send_verification_code = AsyncMock(return_value=MutationResponse(success=True))
    client.quick_register = AsyncMock(return_value=MutationResponse(
        success=True,
        nonces=Nonces(cart="new-cart-nonce", checkout="new-checkout-nonce"),
    ))
    client.checkout = AsyncMock(return_value=MutationResponse(
        success=True,
        redirect_url="https://shop.example.com/pay/123",
    ))
    client.geocode_country = AsyncMock(return_value=None)
    return client
