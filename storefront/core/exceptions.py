"""
Storefront Exception Hierarchy

Structured exception classes for checkout, inventory and order management.
All exceptions include code, message, and details so that API handlers can
render them and logs can carry them without leaking storage internals.

Exception Hierarchy:
    StorefrontError
    ├── CheckoutError
    │   ├── CheckoutValidationError
    │   └── OrderProcessingError
    ├── InventoryError
    │   └── OutOfStockError
    ├── PaymentError
    └── OrderError
        ├── OrderNotFoundError
        ├── InvalidOrderStatusError
        ├── OrderStatusTransitionError
        └── OrderDeletionNotAllowedError
"""
from typing import Optional, Dict, Any


class StorefrontError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
        http_status: Status code used when the error reaches the API layer
    """

    default_code: str = "STOREFRONT_ERROR"
    default_severity: str = "P2"
    http_status: int = 500

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
# CHECKOUT ERRORS
# =============================================================================

class CheckoutError(StorefrontError):
    """Base exception for checkout failures."""
    default_code = "CHECKOUT_ERROR"
    default_severity = "P2"


class CheckoutValidationError(CheckoutError):
    """
    Input rejected before any transaction begins (empty cart, bad shipping
    address, unknown payment method). Nothing has been mutated.
    """
    default_code = "CHECKOUT_VALIDATION_FAILED"
    default_severity = "P3"
    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class OrderProcessingError(CheckoutError):
    """
    Generic transaction failure. The order transaction was rolled back and
    no partial effect is observable.
    """
    default_code = "ORDER_PROCESSING_FAILED"
    default_severity = "P1"
    http_status = 500


# =============================================================================
# INVENTORY ERRORS
# =============================================================================

class InventoryError(StorefrontError):
    """Base exception for inventory-related errors."""
    default_code = "INVENTORY_ERROR"
    default_severity = "P2"
    http_status = 409


class OutOfStockError(InventoryError):
    """A product cannot cover the requested quantity."""
    default_code = "OUT_OF_STOCK"

    def __init__(
        self,
        message: str,
        product_id: Optional[int] = None,
        requested_qty: Optional[int] = None,
        available_qty: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "requested_qty": requested_qty,
            "available_qty": available_qty,
        })
        self.product_id = product_id
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# PAYMENT ERRORS
# =============================================================================

class PaymentError(StorefrontError):
    """Payment was not accepted."""
    default_code = "PAYMENT_FAILED"
    default_severity = "P1"
    http_status = 402


# =============================================================================
# ORDER ERRORS
# =============================================================================

class OrderError(StorefrontError):
    """Base exception for order management errors."""
    default_code = "ORDER_ERROR"
    http_status = 400


class OrderNotFoundError(OrderError):
    default_code = "ORDER_NOT_FOUND"
    default_severity = "P3"
    http_status = 404

    def __init__(self, order_id: int, **kwargs):
        details = kwargs.pop("details", {})
        details["order_id"] = order_id
        super().__init__(f"Order {order_id} not found", details=details, **kwargs)


class InvalidOrderStatusError(OrderError):
    """Status value outside the fixed enumeration."""
    default_code = "INVALID_ORDER_STATUS"
    default_severity = "P3"
    http_status = 400

    def __init__(self, status: Any, allowed: Optional[list] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({
            "status": status,
            "allowed": allowed or [],
        })
        super().__init__(f"Invalid order status: {status!r}", details=details, **kwargs)


class OrderStatusTransitionError(OrderError):
    default_code = "INVALID_STATUS_TRANSITION"
    default_severity = "P3"
    http_status = 409

    def __init__(self, current: str, requested: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"current_status": current, "requested_status": requested})
        super().__init__(
            f"Cannot change order status from {current} to {requested}",
            details=details,
            **kwargs
        )


class OrderDeletionNotAllowedError(OrderError):
    """Only cancelled orders may be deleted."""
    default_code = "ORDER_DELETE_FORBIDDEN"
    default_severity = "P3"
    http_status = 409

    def __init__(self, order_id: int, status: str, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"order_id": order_id, "status": status})
        super().__init__(
            "Only cancelled orders can be deleted",
            details=details,
            **kwargs
        )
