"""
Checkout submission

GuestCheckoutService drives quick-register for shoppers who proceed with an
email address: sending the confirmation code and creating the account.

CheckoutService submits the order. It evaluates the checkout gate, registers
the guest first when needed, builds the form payload and returns the payment
redirect URL.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from checkout_engine.core.alerts import Alerter, alert_message
from checkout_engine.core.exceptions import CheckoutError
from checkout_engine.modules.shipping.zone_resolver import ShippingMethod, shipping_method_for
from checkout_engine.schemas.cart import (
    CartConfig,
    GuestBehavior,
    OrderNotesState,
    QuickRegisterState,
)
from checkout_engine.services.cart_client import CartAPIClient
from checkout_engine.services.cart_coordinator import CartMutationCoordinator
from checkout_engine.services.checkout_gate import (
    GateResult,
    can_proceed,
    has_shippable_products,
    is_authenticated,
)
from checkout_engine.services.shipping_state import ShippingStateService
from checkout_engine.services.vendor_grouper import group_by_vendor

logger = logging.getLogger(__name__)

# (site key, action) -> token
RecaptchaProvider = Callable[[str, str], Awaitable[Optional[str]]]

RECAPTCHA_ACTION = "quick_register"


class GuestCheckoutService:
    def __init__(
        self,
        client: CartAPIClient,
        config: CartConfig,
        quick_register: QuickRegisterState,
        guest_cart: Optional[Callable[[], Dict[str, Any]]] = None,
        recaptcha: Optional[RecaptchaProvider] = None,
        alerter: Optional[Alerter] = None,
    ):
        self.client = client
        self.config = config
        self.state = quick_register
        self.guest_cart = guest_cart
        self.recaptcha = recaptcha
        self.alert = alerter or Alerter()

    async def send_code(self) -> bool:
        """Email a confirmation code. Ignored while a send is already running."""
        if self.state.sending_code:
            return False

        self.state.sending_code = True
        try:
            response = await self.client.send_verification_code(
                self.config.nonce.checkout,
                self.state.email,
            )
        finally:
            self.state.sending_code = False

        if response is not None and response.success:
            self.state.sent_code = True
            return True

        self.alert(alert_message(response.message if response else None, "Could not send confirmation code"))
        return False

    async def _recaptcha_token(self) -> Optional[str]:
        recaptcha = self.config.recaptcha
        if not (recaptcha.enabled and recaptcha.key) or self.recaptcha is None:
            return None
        try:
            return await self.recaptcha(recaptcha.key, RECAPTCHA_ACTION)
        except Exception as e:
            logger.error(f"[CHECKOUT] reCAPTCHA token request failed: {e}")
            return None

    async def register(self) -> bool:
        """
        Create the shopper's account.

        On success the fresh nonces replace the guest ones, the config is
        marked logged in and the registered latch is set.
        """
        guests = self.config.guest_customers
        response = await self.client.quick_register(
            self.config.nonce.checkout,
            self.state.email,
            confirmation_code=self.state.code if guests.requires_verification else None,
            terms_agreed=self.state.terms_agreed if guests.requires_terms else None,
            guest_cart=self.guest_cart() if self.guest_cart else None,
            recaptcha_token=await self._recaptcha_token(),
        )

        if response is not None and response.success and response.nonces is not None:
            self.config.nonce = response.nonces
            self.config.is_logged_in = True
            self.state.registered = True
            logger.info("[CHECKOUT] Guest registered via quick register")
            return True

        message = alert_message(response.message if response else None, "Registration failed")
        logger.warning(f"[CHECKOUT] Quick register failed: {message}")
        self.alert(message)
        return False


class CheckoutService:
    """
    Order submission for one session.

    is_processing stays set once an order has been accepted, so the same
    session cannot submit twice.
    """

    def __init__(
        self,
        client: CartAPIClient,
        config: CartConfig,
        cart: CartMutationCoordinator,
        shipping: ShippingStateService,
        quick_register: QuickRegisterState,
        order_notes: Optional[OrderNotesState] = None,
        guest: Optional[GuestCheckoutService] = None,
        alerter: Optional[Alerter] = None,
        redirect_to: str = "",
    ):
        self.client = client
        self.config = config
        self.cart = cart
        self.shipping = shipping
        self.quick_register = quick_register
        self.order_notes = order_notes or OrderNotesState()
        self.alert = alerter or Alerter()
        self.guest = guest or GuestCheckoutService(
            client,
            config,
            quick_register,
            guest_cart=cart.guest_cart_payload,
            alerter=self.alert,
        )
        self.redirect_to = redirect_to
        self.is_processing = False

    def gate(self) -> GateResult:
        return can_proceed(self.cart.items, self.config, self.shipping.state, self.quick_register)

    def _shipping_payload(self) -> Optional[Dict[str, Any]]:
        state = self.shipping.state
        if not has_shippable_products(self.cart.items) or not state.country:
            return None

        payload: Dict[str, Any] = {
            "address": {
                "first_name": state.first_name,
                "last_name": state.last_name,
                "country": state.country,
                "state": state.state,
                "address": state.address,
                "zip": state.zip,
            },
        }

        method = shipping_method_for(self.config, group_by_vendor(self.cart.items))
        if method == ShippingMethod.PLATFORM_RATES:
            if state.zone and state.rate:
                payload["method"] = {"zone": state.zone, "rate": state.rate}
        else:
            vendors = {
                key: selection.model_dump()
                for key, selection in state.vendors.items()
                if selection is not None
            }
            if vendors:
                payload["vendors"] = vendors

        return payload

    def build_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": self.cart.source.value,
            "items": [{"key": item.key, "value": item.value} for item in self.cart.items.values()],
        }
        if self.order_notes.enabled and self.order_notes.content:
            payload["order_notes"] = self.order_notes.content

        shipping = self._shipping_payload()
        if shipping is not None:
            payload["shipping"] = shipping

        payload["redirect_to"] = self.redirect_to
        return payload

    async def checkout(self) -> Optional[str]:
        """Submit the order and return the payment redirect URL, or None."""
        if self.is_processing:
            logger.debug("[CHECKOUT] Submission already in progress")
            return None

        self.is_processing = True
        redirect_url = None
        try:
            redirect_url = await self._submit()
        finally:
            if redirect_url is None:
                self.is_processing = False
        return redirect_url

    async def _submit(self) -> Optional[str]:
        result = self.gate()
        if not result.ok:
            logger.info(f"[CHECKOUT] Blocked by gate: {result.reason.value}")
            return None

        needs_registration = (
            not is_authenticated(self.config, self.quick_register)
            and self.config.guest_customers.behavior == GuestBehavior.PROCEED_WITH_EMAIL
        )
        if needs_registration and not await self.guest.register():
            return None

        response = await self.client.checkout(self.config.nonce.checkout, self.build_payload())
        if response is not None and response.success and response.redirect_url:
            logger.info(f"[CHECKOUT] Order submitted ({len(self.cart.items)} items)")
            return response.redirect_url

        error = CheckoutError(alert_message(response.message if response else None, "Checkout failed"))
        logger.error(f"[CHECKOUT] {error.message}", extra={"error": error.to_dict()})
        self.alert(error.message)
        return None
