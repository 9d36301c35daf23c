"""
Cart mutation coordinator

Owns the cart item map and applies quantity updates and removals
optimistically:

- update: the item is marked disabled while the request is in flight, then
  replaced by the server copy, or restored to its exact prior state
- remove: direct carts are cleared locally, guest carts are local-only,
  signed-in carts drop the item first and re-insert it at its original
  position when the server refuses

There is no per-key single flight. Two overlapping updates on one item both
run and whichever response arrives last is kept.
"""
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from checkout_engine.core.alerts import Alerter, alert_message
from checkout_engine.core.exceptions import CartRejectedError
from checkout_engine.schemas.cart import (
    CartConfig,
    CartItem,
    CheckoutSource,
    MutationResponse,
    QuickRegisterState,
)
from checkout_engine.services.cart_client import CartAPIClient

logger = logging.getLogger(__name__)

ItemsListener = Callable[[Dict[str, CartItem]], None]

UPDATE_FAILED_MESSAGE = "Failed to update quantity"
REMOVE_FAILED_MESSAGE = "Failed to remove item"


def guest_cart_payload(items: Mapping[str, CartItem]) -> Dict[str, Any]:
    """Guest endpoints take {item key: item value}."""
    return {item.key: item.value for item in items.values()}


class CartMutationCoordinator:
    """
    Single writer of the item map.

    Every write replaces self.items with a new dict and notifies on_change,
    so listeners can hold on to what they were given.
    """

    def __init__(
        self,
        client: CartAPIClient,
        config: CartConfig,
        items: Optional[Mapping[str, CartItem]] = None,
        source: CheckoutSource = CheckoutSource.CART,
        quick_register: Optional[QuickRegisterState] = None,
        alerter: Optional[Alerter] = None,
        on_change: Optional[ItemsListener] = None,
    ):
        self.client = client
        self.config = config
        self.items: Dict[str, CartItem] = dict(items or {})
        self.source = source
        self.quick_register = quick_register or QuickRegisterState()
        self.alert = alerter or Alerter()
        self.on_change = on_change

    @property
    def is_authenticated(self) -> bool:
        return self.config.is_logged_in or self.quick_register.registered

    def guest_cart_payload(self) -> Dict[str, Any]:
        return guest_cart_payload(self.items)

    def replace_items(self, items: Mapping[str, CartItem]) -> None:
        self._write(dict(items))

    def _write(self, items: Dict[str, CartItem]) -> None:
        self.items = items
        if self.on_change is not None:
            self.on_change(items)

    def _put(self, key: str, item: CartItem) -> None:
        self._write({**self.items, key: item})

    def _reject(self, action: str, key: str, response: Optional[MutationResponse], fallback: str) -> None:
        message = alert_message(response.message if response else None, fallback)
        error = CartRejectedError(message, action=action, item_key=key)
        logger.warning(f"[CART] {action} rejected for {key}: {message}", extra={"error": error.to_dict()})
        self.alert(message)

    # ==================== Quantity ====================

    async def update_quantity(self, key: str, quantity: int) -> bool:
        snapshot = self.items.get(key)
        if snapshot is None:
            logger.debug(f"[CART] Ignoring quantity update for unknown item {key}")
            return False

        self._put(key, snapshot.model_copy(update={"disabled": True}))

        authenticated = self.is_authenticated
        try:
            response = await self.client.update_quantity(
                self.config.nonce.cart,
                key,
                quantity,
                is_logged_in=authenticated,
                guest_cart=None if authenticated else self.guest_cart_payload(),
            )
        except Exception as e:
            logger.error(f"[CART] Quantity update for {key} raised: {e}", exc_info=True)
            response = None

        if response is not None and response.success and response.item is not None:
            if key in self.items:
                self._put(key, response.item)
            return True

        if key in self.items:
            self._put(key, snapshot)
        self._reject("update_quantity", key, response, UPDATE_FAILED_MESSAGE)
        return False

    # ==================== Removal ====================

    async def remove(self, key: str) -> bool:
        if key not in self.items:
            logger.debug(f"[CART] Ignoring removal of unknown item {key}")
            return False

        if self.source == CheckoutSource.DIRECT_CART:
            self._write({})
            return True

        keys = list(self.items)
        position = keys.index(key)
        snapshot = self.items[key]
        self._write({k: v for k, v in self.items.items() if k != key})

        if not self.is_authenticated:
            return True

        try:
            response = await self.client.remove_item(self.config.nonce.cart, key)
        except Exception as e:
            logger.error(f"[CART] Removal of {key} raised: {e}", exc_info=True)
            response = None

        if response is not None and response.success:
            return True

        if key not in self.items:
            entries = list(self.items.items())
            entries.insert(min(position, len(entries)), (key, snapshot))
            self._write(dict(entries))
        self._reject("remove_item", key, response, REMOVE_FAILED_MESSAGE)
        return False
