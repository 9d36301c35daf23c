from checkout_engine.schemas.shipping import ShippingRate, ShippingZone, ShippingRegion, RateType, CalculationMethod
from checkout_engine.schemas.cart import CartItem, CartConfig, ShippingState, QuickRegisterState, MutationResponse
from checkout_engine.schemas.vendor import Vendor, PlatformOwner, VendorOwner
