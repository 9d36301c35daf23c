"""
Cart session loader

Builds the initial checkout session: configuration, the cart (regular or a
single direct-checkout item), and the starting shipping destination.

A loader can be torn down while requests are in flight. Requests are not
aborted; their results are dropped and load() returns None.
"""
import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    CheckoutSource,
    ShippingState,
)
from checkout_engine.services.cart_client import CartAPIClient
from checkout_engine.services.shipping_state import resolve_initial_shipping

logger = logging.getLogger(__name__)

CONFIG_LOAD_ERROR = "Failed to load cart configuration"


@dataclass
class CartSession:
    config: Optional[CartConfig] = None
    items: Dict[str, CartItem] = field(default_factory=dict)
    source: CheckoutSource = CheckoutSource.CART
    shipping: ShippingState = field(default_factory=ShippingState)
    error: Optional[str] = None


def decode_item_param(value: str) -> Optional[Dict[str, Any]]:
    """The _item query parameter is base64-encoded JSON."""
    try:
        decoded = json.loads(base64.b64decode(value, validate=True))
    except (binascii.Error, ValueError) as e:
        logger.warning(f"[CART] Ignoring malformed _item parameter: {e}")
        return None
    return decoded if isinstance(decoded, dict) else None


class CartSessionLoader:
    def __init__(
        self,
        client: CartAPIClient,
        query: Optional[Mapping[str, str]] = None,
        direct_cart: Optional[Dict[str, Any]] = None,
        guest_cart: Optional[Dict[str, Any]] = None,
    ):
        self.client = client
        self.query = dict(query or {})
        self.direct_cart: Dict[str, Any] = dict(direct_cart or {})
        self.guest_cart = guest_cart
        self.cancelled = False

    def teardown(self) -> None:
        self.cancelled = True

    async def load(self) -> Optional[CartSession]:
        config = await self.client.fetch_config()
        if self.cancelled:
            return None

        if config is None:
            return CartSession(error=CONFIG_LOAD_ERROR)

        checkout_item = self.query.get("checkout_item")
        if checkout_item:
            return await self._load_direct_cart(config, checkout_item)

        shipping = await resolve_initial_shipping(
            config,
            lambda: self.client.geocode_country(config.geoip_providers),
        )
        if self.cancelled:
            return None

        items = await self.client.fetch_items(
            config.nonce.cart,
            config.is_logged_in,
            guest_cart=self.guest_cart,
        )
        if self.cancelled:
            return None

        return CartSession(
            config=config,
            items=items if items is not None else {},
            source=CheckoutSource.CART,
            shipping=shipping,
        )

    async def _load_direct_cart(self, config: CartConfig, checkout_item: str) -> Optional[CartSession]:
        item_param = self.query.get("_item")
        if item_param:
            item_data = decode_item_param(item_param)
            if item_data is not None:
                self.direct_cart = {checkout_item: item_data}

        items = await self.client.fetch_direct_items(
            config.nonce.cart,
            self.direct_cart.get(checkout_item),
        )
        if self.cancelled:
            return None

        return CartSession(
            config=config,
            items=items if items is not None else {},
            source=CheckoutSource.DIRECT_CART,
        )
