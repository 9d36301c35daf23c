"""
Shipping zone and rate schemas

Zones and rates come from platform settings or from a vendor's own shipping
setup. They are immutable once parsed.
"""
import enum
import logging
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class RateType(str, enum.Enum):
    """Shipping rate kinds. Unknown wire values map to UNSUPPORTED."""
    FLAT_RATE = "flat_rate"
    FIXED_RATE = "fixed_rate"
    FREE_SHIPPING = "free_shipping"
    UNSUPPORTED = "unsupported"

    @classmethod
    def _missing_(cls, value):
        logger.warning(f"[SHIPPING] Unsupported rate type {value!r}")
        return cls.UNSUPPORTED


class CalculationMethod(str, enum.Enum):
    PER_ORDER = "per_order"
    PER_ITEM = "per_item"
    PER_CLASS = "per_class"


class RateRequirement(str, enum.Enum):
    MINIMUM_ORDER_AMOUNT = "minimum_order_amount"


class ShippingResponsibility(str, enum.Enum):
    """Who owns the zones applied to an order."""
    PLATFORM = "platform"
    VENDOR = "vendor"


class ShippingRegion(BaseModel):
    country: str
    states: List[str] = Field(default_factory=list)
    zip_codes_enabled: bool = False
    zip_codes: str = ""

    @field_validator("states", mode="before")
    @classmethod
    def none_states_to_list(cls, v):
        return v or []

    @field_validator("zip_codes", mode="before")
    @classmethod
    def none_zip_codes_to_str(cls, v):
        return v or ""

    class Config:
        frozen = True


class ShippingRate(BaseModel):
    key: str
    label: str = ""
    type: RateType = RateType.FLAT_RATE
    # None means "use the call-site default" (platform: per_order, vendor: per_item)
    calculation_method: Optional[CalculationMethod] = None
    amount_per_unit: Optional[int] = Field(default=None, ge=0)
    shipping_classes: Dict[str, int] = Field(default_factory=dict)
    requirements: Optional[RateRequirement] = None
    minimum_order_amount: Optional[int] = None
    delivery_estimate: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def parse_rate_type(cls, v):
        if v in (None, ""):
            return RateType.FLAT_RATE
        return RateType(v)

    @field_validator("calculation_method", mode="before")
    @classmethod
    def parse_calculation_method(cls, v):
        if v in (None, ""):
            return None
        try:
            return CalculationMethod(v)
        except ValueError:
            logger.warning(f"[SHIPPING] Unknown calculation method {v!r}, using call-site default")
            return None

    @field_validator("requirements", mode="before")
    @classmethod
    def blank_requirements_to_none(cls, v):
        if v in (None, "", "none"):
            return None
        return v

    @field_validator("shipping_classes", mode="before")
    @classmethod
    def parse_shipping_classes(cls, v):
        # PHP serializes an empty map as []
        if not v:
            return {}
        return v

    @field_validator("shipping_classes")
    @classmethod
    def non_negative_class_amounts(cls, v: Dict[str, int]) -> Dict[str, int]:
        for shipping_class, amount in v.items():
            if amount < 0:
                raise ValueError(f"shipping class {shipping_class!r} has a negative amount")
        return v

    @property
    def has_minimum_order_requirement(self) -> bool:
        return (
            self.type == RateType.FREE_SHIPPING
            and self.requirements == RateRequirement.MINIMUM_ORDER_AMOUNT
        )

    class Config:
        frozen = True


class ShippingZone(BaseModel):
    key: str
    label: str = ""
    countries: FrozenSet[str] = frozenset()
    regions: List[ShippingRegion] = Field(default_factory=list)
    rates: Dict[str, ShippingRate] = Field(default_factory=dict)

    @field_validator("countries", mode="before")
    @classmethod
    def parse_countries(cls, v):
        """Accepts {"US": true, "CA": false} or ["US", "CA"]."""
        if not v:
            return frozenset()
        if isinstance(v, dict):
            return frozenset(code for code, enabled in v.items() if enabled)
        return frozenset(v)

    @field_validator("regions", mode="before")
    @classmethod
    def none_regions_to_list(cls, v):
        return v or []

    @model_validator(mode="before")
    @classmethod
    def fill_rate_keys(cls, data):
        if isinstance(data, dict) and isinstance(data.get("rates"), dict):
            rates = {}
            for rate_key, rate in data["rates"].items():
                if isinstance(rate, dict) and not rate.get("key"):
                    rate = {**rate, "key": rate_key}
                rates[rate_key] = rate
            data = {**data, "rates": rates}
        elif isinstance(data, dict) and not data.get("rates"):
            data = {**data, "rates": {}}
        return data

    def get_rate(self, rate_key: Optional[str]) -> Optional[ShippingRate]:
        if rate_key is None:
            return None
        return self.rates.get(rate_key)

    class Config:
        frozen = True


ShippingZones = Dict[str, ShippingZone]


class CountryConfig(BaseModel):
    name: str = ""
    states: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    @field_validator("states", mode="before")
    @classmethod
    def empty_states_to_dict(cls, v):
        return v or {}
