"""
Tests for the checkout gate.
"""
import pytest

from checkout_engine.schemas.cart import CartConfig, QuickRegisterState, ShippingSelection, ShippingState
from checkout_engine.services.checkout_gate import (
    GateReason,
    can_proceed,
    is_all_vendor_shipping_selected,
    is_valid_email,
)


def _guest_config(cart_config_data, **proceed_with_email) -> CartConfig:
    data = {**cart_config_data, "is_logged_in": False}
    data["guest_customers"] = {
        "behavior": "proceed_with_email",
        "proceed_with_email": {"require_verification": False, "require_tos": False, **proceed_with_email},
    }
    return CartConfig.model_validate(data)


def _vendor_config(cart_config_data) -> CartConfig:
    data = {**cart_config_data, "multivendor": {"enabled": True}}
    data["shipping"] = {**cart_config_data["shipping"], "responsibility": "vendor"}
    return CartConfig.model_validate(data)


@pytest.fixture
def platform_shipping() -> ShippingState:
    return ShippingState(country="US", zone="domestic", rate="standard", status="completed")


class TestEmail:

    @pytest.mark.parametrize("email", ["a@b.co", "shopper@example.com", "  x@y.z  "])
    def test_valid(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["", "plain", "a@b", "@b.c", "no-at.example.com"])
    def test_invalid(self, email):
        assert not is_valid_email(email)


class TestOrdering:

    def test_empty_cart_first(self, guest_config, quick_register):
        result = can_proceed({}, guest_config, ShippingState(), quick_register)
        assert not result.ok
        assert result.reason == GateReason.EMPTY_CART

    def test_guest_checks_before_shipping(self, make_item, guest_config):
        items = {"a": make_item("a")}
        result = can_proceed(items, guest_config, ShippingState(), QuickRegisterState(email="nope"))
        assert result.reason == GateReason.INVALID_EMAIL

    def test_all_checks_pass(self, make_item, cart_config, platform_shipping, quick_register):
        result = can_proceed({"a": make_item("a")}, cart_config, platform_shipping, quick_register)
        assert result.ok
        assert result.reason is None


class TestGuestChecks:

    def test_logged_in_skips_guest_checks(self, make_item, cart_config, platform_shipping):
        result = can_proceed({"a": make_item("a")}, cart_config, platform_shipping, QuickRegisterState())
        assert result.ok

    def test_registered_guest_skips_guest_checks(self, make_item, cart_config_data, platform_shipping):
        config = _guest_config(cart_config_data, require_verification=True, require_tos=True)
        state = QuickRegisterState(registered=True)
        assert can_proceed({"a": make_item("a")}, config, platform_shipping, state).ok

    def test_redirect_to_login_behavior_not_gated(self, make_item, cart_config_data, platform_shipping):
        data = {**cart_config_data, "is_logged_in": False, "guest_customers": {"behavior": "redirect_to_login"}}
        config = CartConfig.model_validate(data)
        assert can_proceed({"a": make_item("a")}, config, platform_shipping, QuickRegisterState()).ok

    def test_verification_required(self, make_item, cart_config_data, platform_shipping):
        config = _guest_config(cart_config_data, require_verification=True)
        state = QuickRegisterState(email="shopper@example.com")
        result = can_proceed({"a": make_item("a")}, config, platform_shipping, state)
        assert result.reason == GateReason.VERIFICATION_REQUIRED

    def test_verification_needs_code_after_send(self, make_item, cart_config_data, platform_shipping):
        config = _guest_config(cart_config_data, require_verification=True)
        items = {"a": make_item("a")}

        sent_blank = QuickRegisterState(email="shopper@example.com", sent_code=True, code="  ")
        assert can_proceed(items, config, platform_shipping, sent_blank).reason == GateReason.VERIFICATION_REQUIRED

        not_sent = QuickRegisterState(email="shopper@example.com", sent_code=False, code="123456")
        assert can_proceed(items, config, platform_shipping, not_sent).reason == GateReason.VERIFICATION_REQUIRED

        entered = QuickRegisterState(email="shopper@example.com", sent_code=True, code="123456")
        assert can_proceed(items, config, platform_shipping, entered).ok

    def test_terms_required(self, make_item, cart_config_data, platform_shipping):
        config = _guest_config(cart_config_data, require_tos=True)
        items = {"a": make_item("a")}

        state = QuickRegisterState(email="shopper@example.com")
        assert can_proceed(items, config, platform_shipping, state).reason == GateReason.TERMS_NOT_AGREED

        state.terms_agreed = True
        assert can_proceed(items, config, platform_shipping, state).ok


class TestShippingChecks:

    def test_unshippable_cart_needs_no_shipping(self, make_item, cart_config):
        items = {"a": make_item("a", shippable=False)}
        assert can_proceed(items, cart_config, ShippingState(), QuickRegisterState()).ok

    def test_country_required(self, make_item, cart_config):
        result = can_proceed({"a": make_item("a")}, cart_config, ShippingState(), QuickRegisterState())
        assert result.reason == GateReason.COUNTRY_REQUIRED

    def test_platform_rate_required(self, make_item, cart_config):
        shipping = ShippingState(country="US", zone="domestic")
        result = can_proceed({"a": make_item("a")}, cart_config, shipping, QuickRegisterState())
        assert result.reason == GateReason.SHIPPING_RATE_REQUIRED

    def test_vendor_rates_required_per_shippable_vendor(self, make_item, cart_config_data):
        config = _vendor_config(cart_config_data)
        items = {
            "a": make_item("a", vendor_id=1),
            "b": make_item("b", vendor_id=2),
            "c": make_item("c", vendor_id=3, shippable=False),
        }
        shipping = ShippingState(
            country="US",
            vendors={"vendor_1": ShippingSelection(zone="z", rate="r")},
        )
        result = can_proceed(items, config, shipping, QuickRegisterState())
        assert result.reason == GateReason.VENDOR_SHIPPING_REQUIRED

        shipping.vendors["vendor_2"] = ShippingSelection(zone="z", rate="r")
        assert can_proceed(items, config, shipping, QuickRegisterState()).ok

    def test_cleared_vendor_selection_counts_as_missing(self, make_item, cart_config_data):
        config = _vendor_config(cart_config_data)
        items = {"a": make_item("a", vendor_id=1)}
        shipping = ShippingState(country="US", vendors={"vendor_1": None})
        result = can_proceed(items, config, shipping, QuickRegisterState())
        assert result.reason == GateReason.VENDOR_SHIPPING_REQUIRED


class TestVendorCompleteness:

    def test_recomputed_after_items_change(self, make_item):
        shipping = ShippingState(country="US", vendors={"vendor_1": ShippingSelection(zone="z", rate="r")})
        items = {"a": make_item("a", vendor_id=1)}
        assert is_all_vendor_shipping_selected(items, shipping)

        items["b"] = make_item("b", vendor_id=2)
        assert not is_all_vendor_shipping_selected(items, shipping)

        del items["b"]
        assert is_all_vendor_shipping_selected(items, shipping)
