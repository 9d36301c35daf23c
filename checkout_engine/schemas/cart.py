"""
Cart schemas

CartItem and CartConfig mirror the JSON served by the cart endpoints.
ShippingState, QuickRegisterState and OrderNotesState are the per-session
checkout selections.
"""
import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from checkout_engine.schemas.shipping import (
    CountryConfig,
    ShippingResponsibility,
    ShippingZone,
)


class ProductMode(str, enum.Enum):
    REGULAR = "regular"
    VARIABLE = "variable"


class CheckoutSource(str, enum.Enum):
    CART = "cart"
    DIRECT_CART = "direct_cart"


# ==================== Cart items ====================


class ItemPricing(BaseModel):
    total_amount: int = 0


class QuantitySettings(BaseModel):
    enabled: bool = False
    min: int = 1
    max: Optional[int] = None


class ItemShipping(BaseModel):
    is_shippable: bool = False
    shipping_class: Optional[str] = None

    @field_validator("shipping_class", mode="before")
    @classmethod
    def blank_class_to_none(cls, v):
        return v or None


class ItemVendor(BaseModel):
    id: Optional[int] = None
    display_name: str = ""
    shipping_zones: Optional[Dict[str, ShippingZone]] = None
    shipping_countries: Optional[Dict[str, CountryConfig]] = None
    shipping_rates_order: List[str] = Field(default_factory=list)

    @field_validator("shipping_zones", "shipping_countries", mode="before")
    @classmethod
    def empty_map_to_none(cls, v):
        # PHP serializes an empty map as []
        return v or None

    @field_validator("shipping_rates_order", mode="before")
    @classmethod
    def none_order_to_list(cls, v):
        return v or []


class CartItem(BaseModel):
    key: str
    title: str = ""
    subtitle: Optional[str] = None
    link: str = ""
    logo: str = ""
    currency: str = ""
    pricing: ItemPricing = Field(default_factory=ItemPricing)
    quantity: QuantitySettings = Field(default_factory=QuantitySettings)
    stock_id: str = ""
    shipping: ItemShipping = Field(default_factory=ItemShipping)
    vendor: ItemVendor = Field(default_factory=ItemVendor)
    product_mode: str = ProductMode.REGULAR.value
    payment_method: str = ""
    value: Dict[str, Any] = Field(default_factory=dict)
    disabled: bool = Field(default=False, alias="_disabled")

    @field_validator("value", mode="before")
    @classmethod
    def empty_value_to_dict(cls, v):
        return v or {}

    def get_quantity(self) -> int:
        """
        Ordered quantity.

        Regular products keep it under value.stock.quantity, every other mode
        under value.variations.quantity. Missing or zero means 1.
        """
        section = "stock" if self.product_mode == ProductMode.REGULAR.value else "variations"
        block = self.value.get(section)
        if not isinstance(block, dict):
            return 1
        try:
            quantity = int(block.get("quantity") or 0)
        except (TypeError, ValueError):
            return 1
        return quantity or 1

    class Config:
        populate_by_name = True


CartItems = Dict[str, CartItem]


# ==================== Cart configuration ====================


class MultivendorConfig(BaseModel):
    enabled: bool = False
    charge_type: Optional[str] = None


class SavedAddress(BaseModel):
    first_name: str = ""
    last_name: str = ""
    country: str = ""
    state: str = ""
    address: str = ""
    zip: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_blank(cls, v):
        return v or ""


class ShippingConfig(BaseModel):
    responsibility: ShippingResponsibility = ShippingResponsibility.PLATFORM
    default_country: Optional[str] = None
    saved_address: Optional[SavedAddress] = None
    countries: Dict[str, CountryConfig] = Field(default_factory=dict)
    zones: Dict[str, ShippingZone] = Field(default_factory=dict)
    shipping_rates_order: List[str] = Field(default_factory=list)

    @field_validator("countries", "zones", mode="before")
    @classmethod
    def empty_map_to_dict(cls, v):
        return v or {}

    @field_validator("shipping_rates_order", mode="before")
    @classmethod
    def none_order_to_list(cls, v):
        return v or []


class GuestBehavior(str, enum.Enum):
    REDIRECT_TO_LOGIN = "redirect_to_login"
    PROCEED_WITH_EMAIL = "proceed_with_email"


class ProceedWithEmailConfig(BaseModel):
    require_verification: bool = False
    require_tos: bool = False
    tos_text: str = ""


class GuestCustomersConfig(BaseModel):
    behavior: GuestBehavior = GuestBehavior.REDIRECT_TO_LOGIN
    proceed_with_email: Optional[ProceedWithEmailConfig] = None

    @property
    def requires_verification(self) -> bool:
        return bool(self.proceed_with_email and self.proceed_with_email.require_verification)

    @property
    def requires_terms(self) -> bool:
        return bool(self.proceed_with_email and self.proceed_with_email.require_tos)


class GeoIPProvider(BaseModel):
    url: str
    prop: str


class RecaptchaConfig(BaseModel):
    enabled: bool = False
    key: Optional[str] = None


class Nonces(BaseModel):
    cart: str = ""
    checkout: str = ""


class L10n(BaseModel):
    free: str = "Free"
    login: str = "Sign in"


class CartConfig(BaseModel):
    is_logged_in: bool = False
    currency: str = "USD"
    auth_link: str = ""
    multivendor: MultivendorConfig = Field(default_factory=MultivendorConfig)
    shipping: ShippingConfig = Field(default_factory=ShippingConfig)
    guest_customers: GuestCustomersConfig = Field(default_factory=GuestCustomersConfig)
    geoip_providers: List[GeoIPProvider] = Field(default_factory=list)
    recaptcha: RecaptchaConfig = Field(default_factory=RecaptchaConfig)
    nonce: Nonces = Field(default_factory=Nonces)
    l10n: L10n = Field(default_factory=L10n)


# ==================== Session state ====================


class ShippingStatus(str, enum.Enum):
    PENDING_SETUP = "pending_setup"
    PROCESSING = "processing"
    COMPLETED = "completed"


class ShippingSelection(BaseModel):
    zone: str
    rate: str


class ShippingState(BaseModel):
    first_name: str = ""
    last_name: str = ""
    country: Optional[str] = None
    state: str = ""
    address: str = ""
    zip: str = ""
    zone: Optional[str] = None
    rate: Optional[str] = None
    status: ShippingStatus = ShippingStatus.PENDING_SETUP
    vendors: Dict[str, Optional[ShippingSelection]] = Field(default_factory=dict)


class QuickRegisterState(BaseModel):
    email: str = ""
    sending_code: bool = False
    sent_code: bool = False
    code: str = ""
    registered: bool = False
    terms_agreed: bool = False


class OrderNotesState(BaseModel):
    enabled: bool = False
    content: str = ""


# ==================== Endpoint responses ====================


class MutationResponse(BaseModel):
    """Envelope shared by every AJAX action."""
    success: bool = False
    item: Optional[CartItem] = None
    items: Optional[Dict[str, CartItem]] = None
    message: Optional[str] = None
    nonces: Optional[Nonces] = None
    redirect_url: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def empty_items_to_dict(cls, v):
        if v is None:
            return None
        return v or {}
