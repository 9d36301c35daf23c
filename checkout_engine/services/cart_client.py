"""
Cart API client

Adapter over the site's cart endpoints:
- REST:  GET {rest_url}voxel-fse/v1/cart/config
- AJAX:  {ajax_url}?vx=1&action=<action>, form-encoded POST (GET for direct cart)

Transport failures never leave this module: they are logged and the call
returns None. A response with success=false is returned as-is so callers can
roll back and show the server message.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from checkout_engine.core.config import settings
from checkout_engine.core.exceptions import CartTransportError
from checkout_engine.core.http_client import CheckoutHTTPClient
from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    GeoIPProvider,
    MutationResponse,
)

logger = logging.getLogger(__name__)

CONFIG_ROUTE = "voxel-fse/v1/cart/config"


class CartAction:
    GET_CART_ITEMS = "products.get_cart_items"
    GET_GUEST_CART_ITEMS = "products.get_guest_cart_items"
    GET_DIRECT_CART = "products.get_direct_cart"
    UPDATE_QUANTITY = "products.update_cart_item_quantity"
    UPDATE_GUEST_QUANTITY = "products.update_guest_cart_item_quantity"
    REMOVE_ITEM = "products.remove_cart_item"
    SEND_CONFIRMATION_CODE = "products.quick_register.send_confirmation_code"
    QUICK_REGISTER = "products.quick_register.process"
    CHECKOUT = "products.checkout"


def encode_guest_cart(guest_cart: Optional[Dict[str, Any]]) -> Optional[str]:
    """Guest carts travel as a JSON string; an empty cart is not sent at all."""
    if not guest_cart:
        return None
    return json.dumps(guest_cart)


class CartAPIClient:
    """
    Cart/checkout endpoints over CheckoutHTTPClient.

    Usage:
        async with CartAPIClient() as client:
            config = await client.fetch_config()
    """

    def __init__(
        self,
        http: Optional[CheckoutHTTPClient] = None,
        rest_url: Optional[str] = None,
        ajax_url: Optional[str] = None,
        rest_nonce: Optional[str] = None,
    ):
        self.http = http or CheckoutHTTPClient()
        self.rest_url = rest_url or settings.rest_url
        self.ajax_url = ajax_url or settings.ajax_url
        self.rest_nonce = rest_nonce

    async def __aenter__(self):
        await self.http.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.http.close()

    async def close(self):
        await self.http.close()

    # ==================== Transport helpers ====================

    @staticmethod
    def _action_params(action: str, **extra: str) -> Dict[str, str]:
        params = {"vx": "1", "action": action}
        params.update(extra)
        return params

    async def _post_action(
        self,
        action: str,
        data: Dict[str, Any],
        params: Optional[Dict[str, str]] = None,
    ) -> Optional[MutationResponse]:
        query = self._action_params(action, **(params or {}))
        try:
            payload = await self.http.post_json(self.ajax_url, params=query, data=data)
            return MutationResponse.model_validate(payload)
        except CartTransportError as e:
            logger.error(f"[CART] {action} failed: {e.message}", extra={"error": e.to_dict()})
            return None
        except ValidationError as e:
            logger.error(f"[CART] {action} returned an unexpected payload: {e}")
            return None

    # ==================== Reads ====================

    async def fetch_config(self) -> Optional[CartConfig]:
        headers = {"X-WP-Nonce": self.rest_nonce} if self.rest_nonce else None
        url = f"{self.rest_url}{CONFIG_ROUTE}"
        try:
            payload = await self.http.get_json(url, headers=headers)
            return CartConfig.model_validate(payload)
        except CartTransportError as e:
            logger.error(f"[CART] Failed to fetch cart config: {e.message}", extra={"error": e.to_dict()})
            return None
        except ValidationError as e:
            logger.error(f"[CART] Cart config did not validate: {e}")
            return None

    async def fetch_items(
        self,
        nonce: str,
        is_logged_in: bool,
        guest_cart: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, CartItem]]:
        """Saved cart for signed-in shoppers, otherwise the guest cart resolved server-side."""
        action = CartAction.GET_CART_ITEMS if is_logged_in else CartAction.GET_GUEST_CART_ITEMS
        response = await self._post_action(
            action,
            {"_wpnonce": nonce, "guest_cart": encode_guest_cart(guest_cart)},
        )
        if response is None:
            return None
        if not response.success:
            logger.error(f"[CART] Failed to fetch cart items: {response.message}")
            return None
        return response.items or {}

    async def fetch_direct_items(
        self,
        nonce: str,
        item_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, CartItem]]:
        """Single-item checkout. An unknown item yields an empty cart, a transport failure None."""
        params = self._action_params(CartAction.GET_DIRECT_CART, _wpnonce=nonce)
        if item_data:
            params["item"] = json.dumps(item_data)

        try:
            payload = await self.http.get_json(self.ajax_url, params=params)
            response = MutationResponse.model_validate(payload)
        except CartTransportError as e:
            logger.error(f"[CART] Failed to fetch direct cart item: {e.message}", extra={"error": e.to_dict()})
            return None
        except ValidationError as e:
            logger.error(f"[CART] Direct cart returned an unexpected payload: {e}")
            return None

        if response.success and response.item is not None:
            return {response.item.key: response.item}

        logger.error(f"[CART] Failed to fetch direct cart item: {response.message}")
        return {}

    async def geocode_country(self, providers: List[GeoIPProvider]) -> Optional[str]:
        """First provider that answers with a string country code wins."""
        for provider in providers:
            try:
                payload = await self.http.get_json(provider.url)
            except CartTransportError as e:
                logger.warning(f"[GEOIP] Provider {provider.url} failed: {e.message}")
                continue

            country = payload.get(provider.prop) if isinstance(payload, dict) else None
            if country and isinstance(country, str):
                return country.upper()

        return None

    # ==================== Mutations ====================

    async def update_quantity(
        self,
        nonce: str,
        item_key: str,
        quantity: int,
        is_logged_in: bool,
        guest_cart: Optional[Dict[str, Any]] = None,
    ) -> Optional[MutationResponse]:
        action = CartAction.UPDATE_QUANTITY if is_logged_in else CartAction.UPDATE_GUEST_QUANTITY
        data = {
            "item_key": item_key,
            "item_quantity": quantity,
            "_wpnonce": nonce,
        }
        if not is_logged_in:
            data["guest_cart"] = encode_guest_cart(guest_cart)
        return await self._post_action(action, data)

    async def remove_item(self, nonce: str, item_key: str) -> Optional[MutationResponse]:
        return await self._post_action(
            CartAction.REMOVE_ITEM,
            {"item_key": item_key, "_wpnonce": nonce},
        )

    async def send_verification_code(self, nonce: str, email: str) -> Optional[MutationResponse]:
        return await self._post_action(
            CartAction.SEND_CONFIRMATION_CODE,
            {"email": email, "_wpnonce": nonce},
        )

    async def quick_register(
        self,
        nonce: str,
        email: str,
        confirmation_code: Optional[str] = None,
        terms_agreed: Optional[bool] = None,
        guest_cart: Optional[Dict[str, Any]] = None,
        recaptcha_token: Optional[str] = None,
    ) -> Optional[MutationResponse]:
        data: Dict[str, Any] = {
            "email": email,
            "_wpnonce": nonce,
            "_confirmation_code": confirmation_code,
            "guest_cart": encode_guest_cart(guest_cart),
            "_recaptcha": recaptcha_token,
        }
        if terms_agreed is not None:
            data["terms_agreed"] = "1" if terms_agreed else "0"
        return await self._post_action(CartAction.QUICK_REGISTER, data)

    async def checkout(self, nonce: str, payload: Dict[str, Any]) -> Optional[MutationResponse]:
        """Submit the order. items and shipping are JSON-encoded form fields."""
        data = dict(payload)
        for field in ("items", "shipping"):
            if field in data and data[field] is not None:
                data[field] = json.dumps(data[field])
        return await self._post_action(CartAction.CHECKOUT, data, params={"_wpnonce": nonce})
