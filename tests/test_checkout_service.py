"""
Tests for guest quick-register and checkout submission.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from checkout_engine.core.alerts import Alerter
from checkout_engine.schemas.cart import (
    CartConfig,
    CheckoutSource,
    MutationResponse,
    OrderNotesState,
    QuickRegisterState,
    ShippingSelection,
    ShippingState,
)
from checkout_engine.services.cart_coordinator import CartMutationCoordinator
from checkout_engine.services.checkout_service import CheckoutService, GuestCheckoutService
from checkout_engine.services.shipping_state import ShippingStateService


def _guest_config(cart_config_data, **proceed_with_email) -> CartConfig:
    data = {**cart_config_data, "is_logged_in": False}
    data["guest_customers"] = {
        "behavior": "proceed_with_email",
        "proceed_with_email": {"require_verification": False, "require_tos": False, **proceed_with_email},
    }
    return CartConfig.model_validate(data)


def _checkout(client, config, items, shipping=None, quick_register=None, **kwargs):
    quick_register = quick_register or QuickRegisterState()
    alert_hook = MagicMock()
    alerter = Alerter(alert_hook)
    cart = CartMutationCoordinator(
        client,
        config,
        items=items,
        source=kwargs.pop("source", CheckoutSource.CART),
        quick_register=quick_register,
        alerter=alerter,
    )
    service = CheckoutService(
        client,
        config,
        cart,
        ShippingStateService(config, shipping or ShippingState(country="US", zone="domestic", rate="standard")),
        quick_register,
        alerter=alerter,
        redirect_to="https://shop.example.com/cart",
        **kwargs,
    )
    return service, alert_hook


class TestGuestCheckout:

    @pytest.mark.asyncio
    async def test_send_code(self, mock_cart_client, guest_config):
        state = QuickRegisterState(email="shopper@example.com")
        guest = GuestCheckoutService(mock_cart_client, guest_config, state)

        assert await guest.send_code() is True
        assert state.sent_code is True
        assert state.sending_code is False
        mock_cart_client.send_verification_code.assert_awaited_once_with("checkout-nonce", "shopper@example.com")

    @pytest.mark.asyncio
    async def test_send_code_ignored_while_sending(self, mock_cart_client, guest_config):
        state = QuickRegisterState(email="shopper@example.com", sending_code=True)
        guest = GuestCheckoutService(mock_cart_client, guest_config, state)

        assert await guest.send_code() is False
        mock_cart_client.send_verification_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_code_failure_alerts(self, mock_cart_client, guest_config):
        mock_cart_client.send_verification_code.return_value = MutationResponse(success=False, message="Slow down")
        alert_hook = MagicMock()
        state = QuickRegisterState(email="shopper@example.com")
        guest = GuestCheckoutService(mock_cart_client, guest_config, state, alerter=Alerter(alert_hook))

        assert await guest.send_code() is False
        assert state.sent_code is False
        assert state.sending_code is False
        alert_hook.assert_called_once_with("Slow down")

    @pytest.mark.asyncio
    async def test_register_latches_and_updates_nonces(self, mock_cart_client, cart_config_data):
        config = _guest_config(cart_config_data, require_verification=True, require_tos=True)
        state = QuickRegisterState(email="shopper@example.com", sent_code=True, code="123456", terms_agreed=True)
        guest = GuestCheckoutService(mock_cart_client, config, state, guest_cart=lambda: {"a": {"x": 1}})

        assert await guest.register() is True
        assert state.registered is True
        assert config.is_logged_in is True
        assert config.nonce.checkout == "new-checkout-nonce"
        mock_cart_client.quick_register.assert_awaited_once_with(
            "checkout-nonce",
            "shopper@example.com",
            confirmation_code="123456",
            terms_agreed=True,
            guest_cart={"a": {"x": 1}},
            recaptcha_token=None,
        )

    @pytest.mark.asyncio
    async def test_register_omits_optional_fields(self, mock_cart_client, guest_config):
        state = QuickRegisterState(email="shopper@example.com", code="ignored")
        guest = GuestCheckoutService(mock_cart_client, guest_config, state)

        await guest.register()
        kwargs = mock_cart_client.quick_register.await_args.kwargs
        assert kwargs["confirmation_code"] is None
        assert kwargs["terms_agreed"] is None

    @pytest.mark.asyncio
    async def test_register_with_recaptcha(self, mock_cart_client, cart_config_data):
        data = {**cart_config_data, "is_logged_in": False, "recaptcha": {"enabled": True, "key": "site-key"}}
        config = CartConfig.model_validate(data)
        recaptcha = AsyncMock(return_value="captcha-token")
        guest = GuestCheckoutService(
            mock_cart_client, config, QuickRegisterState(email="shopper@example.com"), recaptcha=recaptcha,
        )

        await guest.register()
        recaptcha.assert_awaited_once_with("site-key", "quick_register")
        assert mock_cart_client.quick_register.await_args.kwargs["recaptcha_token"] == "captcha-token"

    @pytest.mark.asyncio
    async def test_register_failure(self, mock_cart_client, guest_config):
        mock_cart_client.quick_register.return_value = MutationResponse(success=False, message="Email taken")
        alert_hook = MagicMock()
        state = QuickRegisterState(email="shopper@example.com")
        guest = GuestCheckoutService(mock_cart_client, guest_config, state, alerter=Alerter(alert_hook))

        assert await guest.register() is False
        assert state.registered is False
        assert guest_config.is_logged_in is False
        alert_hook.assert_called_once_with("Email taken")


class TestCheckout:

    @pytest.mark.asyncio
    async def test_platform_checkout_payload(self, mock_cart_client, cart_config, make_item):
        item = make_item("a", quantity=2)
        service, alert_hook = _checkout(
            mock_cart_client,
            cart_config,
            {"a": item},
            order_notes=OrderNotesState(enabled=True, content="Leave at door"),
        )

        assert await service.checkout() == "https://shop.example.com/pay/123"
        nonce, payload = mock_cart_client.checkout.await_args.args
        assert nonce == "checkout-nonce"
        assert payload == {
            "source": "cart",
            "items": [{"key": "a", "value": item.value}],
            "order_notes": "Leave at door",
            "shipping": {
                "address": {
                    "first_name": "",
                    "last_name": "",
                    "country": "US",
                    "state": "",
                    "address": "",
                    "zip": "",
                },
                "method": {"zone": "domestic", "rate": "standard"},
            },
            "redirect_to": "https://shop.example.com/cart",
        }
        alert_hook.assert_not_called()

    @pytest.mark.asyncio
    async def test_vendor_checkout_payload(self, mock_cart_client, cart_config_data, make_item):
        data = {**cart_config_data, "multivendor": {"enabled": True}}
        data["shipping"] = {**cart_config_data["shipping"], "responsibility": "vendor"}
        config = CartConfig.model_validate(data)
        shipping = ShippingState(country="US", vendors={"vendor_2": ShippingSelection(zone="vz", rate="ground")})
        service, _ = _checkout(mock_cart_client, config, {"a": make_item("a", vendor_id=2)}, shipping=shipping)

        await service.checkout()
        payload = mock_cart_client.checkout.await_args.args[1]
        assert payload["shipping"]["vendors"] == {"vendor_2": {"zone": "vz", "rate": "ground"}}
        assert "method" not in payload["shipping"]

    @pytest.mark.asyncio
    async def test_unshippable_cart_sends_no_shipping(self, mock_cart_client, cart_config, make_item):
        service, _ = _checkout(mock_cart_client, cart_config, {"a": make_item("a", shippable=False)})
        await service.checkout()
        assert "shipping" not in mock_cart_client.checkout.await_args.args[1]

    @pytest.mark.asyncio
    async def test_gate_blocks_submission(self, mock_cart_client, cart_config, make_item):
        service, _ = _checkout(mock_cart_client, cart_config, {"a": make_item("a")}, shipping=ShippingState())
        assert await service.checkout() is None
        assert service.is_processing is False
        mock_cart_client.checkout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guest_registers_before_checkout(self, mock_cart_client, guest_config, make_item):
        quick_register = QuickRegisterState(email="shopper@example.com")
        service, _ = _checkout(mock_cart_client, guest_config, {"a": make_item("a")}, quick_register=quick_register)

        assert await service.checkout() is not None
        mock_cart_client.quick_register.assert_awaited_once()
        assert quick_register.registered is True
        # fresh nonce from registration is used for the order
        assert mock_cart_client.checkout.await_args.args[0] == "new-checkout-nonce"

    @pytest.mark.asyncio
    async def test_failed_registration_stops_checkout(self, mock_cart_client, guest_config, make_item):
        mock_cart_client.quick_register.return_value = MutationResponse(success=False, message="Bad code")
        quick_register = QuickRegisterState(email="shopper@example.com")
        service, _ = _checkout(mock_cart_client, guest_config, {"a": make_item("a")}, quick_register=quick_register)

        assert await service.checkout() is None
        assert service.is_processing is False
        mock_cart_client.checkout.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_checkout_alerts(self, mock_cart_client, cart_config, make_item):
        mock_cart_client.checkout.return_value = MutationResponse(success=False, message="Card declined")
        service, alert_hook = _checkout(mock_cart_client, cart_config, {"a": make_item("a")})

        assert await service.checkout() is None
        assert service.is_processing is False
        alert_hook.assert_called_once_with("Card declined")

    @pytest.mark.asyncio
    async def test_concurrent_submission_refused(self, mock_cart_client, cart_config, make_item):
        release = asyncio.Event()

        async def slow_checkout(*args):
            await release.wait()
            return MutationResponse(success=True, redirect_url="https://shop.example.com/pay/1")

        mock_cart_client.checkout.side_effect = slow_checkout
        service, _ = _checkout(mock_cart_client, cart_config, {"a": make_item("a")})

        first = asyncio.create_task(service.checkout())
        await asyncio.sleep(0)
        assert service.is_processing is True
        assert await service.checkout() is None

        release.set()
        assert await first == "https://shop.example.com/pay/1"
        assert mock_cart_client.checkout.await_count == 1
