"""
Checkout Engine Exception Hierarchy

All exceptions include code, message, and details for logging and debugging.
None of these are meant to reach the UI: the HTTP layer raises them, the
service layer logs them and falls back to an empty / None result.

Exception Hierarchy:
    CheckoutBaseError
    ├── CartError
    │   ├── CartTransportError
    │   └── CartRejectedError
    ├── ShippingError
    │   └── ShippingConfigError
    └── CheckoutError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class CheckoutBaseError(Exception):
    """
    Base exception for all checkout engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "CHECKOUT_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# CART ERRORS
# =============================================================================

class CartError(CheckoutBaseError):
    """Base exception for cart endpoint errors."""
    default_code = "CART_ERROR"


class CartTransportError(CartError):
    """Non-2xx status, empty body, malformed JSON or network failure."""
    default_code = "CART_TRANSPORT_FAILED"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "url": url,
            "status_code": status_code,
        })
        super().__init__(message, details=details, **kwargs)


class CartRejectedError(CartError):
    """The server answered with success=false."""
    default_code = "CART_REJECTED"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        item_key: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "action": action,
            "item_key": item_key,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(CheckoutBaseError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"


class ShippingConfigError(ShippingError):
    """A zone/rate selection does not exist or does not serve the destination."""
    default_code = "SHIPPING_CONFIG_INVALID"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        zone_key: Optional[str] = None,
        rate_key: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "zone_key": zone_key,
            "rate_key": rate_key,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# CHECKOUT ERRORS
# =============================================================================

class CheckoutError(CheckoutBaseError):
    """Checkout submission or guest registration failed."""
    default_code = "CHECKOUT_FAILED"
    default_severity = "P1"
