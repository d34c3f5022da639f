"""Domain errors raised by the points ledger and reservation engines."""

from __future__ import annotations

from typing import Any


class LedgerError(RuntimeError):
    """Base exception for ledger failures.

    Every subclass carries a stable ``code`` so HTTP handlers and telemetry can
    key on it without parsing messages.
    """

    code = "ledger_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidAmount(LedgerError):
    code = "invalid_amount"


class InvalidQuantity(LedgerError):
    code = "invalid_quantity"


class DuplicateOperation(LedgerError):
    """Raised when a scan token was already consumed by an earlier award."""

    code = "duplicate_operation"


class CustomerNotFound(LedgerError):
    code = "customer_not_found"


class InsufficientPoints(LedgerError):
    code = "insufficient_points"


class RewardNotFound(LedgerError):
    code = "reward_not_found"


class RewardInactive(LedgerError):
    code = "reward_inactive"


class OfferNotFound(LedgerError):
    code = "offer_not_found"


class OfferNotAvailable(LedgerError):
    """Raised when an offer is inactive or outside its sales window."""

    code = "offer_not_available"


class SoldOut(LedgerError):
    code = "sold_out"


class OrderNotFound(LedgerError):
    code = "order_not_found"


class PreorderNotFound(LedgerError):
    code = "preorder_not_found"


class ProductNotFound(LedgerError):
    code = "product_not_found"


class ProductNotAvailable(LedgerError):
    code = "product_not_available"


class InvalidStateTransition(LedgerError):
    """Raised when a pickup transition violates the one-way state machine."""

    code = "invalid_state_transition"

    def __init__(self, entity: str, current_status: str, requested_status: str) -> None:
        message = f"Cannot transition {entity} from {current_status} to {requested_status}"
        super().__init__(
            message,
            entity=entity,
            current_status=current_status,
            requested_status=requested_status,
        )
        self.current_status = current_status
        self.requested_status = requested_status


class AlreadyFulfilled(LedgerError):
    code = "already_fulfilled"


class CodeNotFound(LedgerError):
    code = "code_not_found"


class SettingsUnavailable(LedgerError):
    """Conversion rate missing or unparsable; callers fall back to the default."""

    code = "settings_unavailable"


NOT_FOUND_ERRORS: tuple[type[LedgerError], ...] = (
    CustomerNotFound,
    RewardNotFound,
    OfferNotFound,
    OrderNotFound,
    PreorderNotFound,
    ProductNotFound,
    CodeNotFound,
)

CONFLICT_ERRORS: tuple[type[LedgerError], ...] = (
    DuplicateOperation,
    AlreadyFulfilled,
    InvalidStateTransition,
    SoldOut,
    InsufficientPoints,
    RewardInactive,
    OfferNotAvailable,
    ProductNotAvailable,
)

VALIDATION_ERRORS: tuple[type[LedgerError], ...] = (InvalidAmount, InvalidQuantity)


__all__ = [
    "AlreadyFulfilled",
    "CONFLICT_ERRORS",
    "CodeNotFound",
    "CustomerNotFound",
    "DuplicateOperation",
    "InsufficientPoints",
    "InvalidAmount",
    "InvalidQuantity",
    "InvalidStateTransition",
    "LedgerError",
    "NOT_FOUND_ERRORS",
    "OfferNotAvailable",
    "OfferNotFound",
    "OrderNotFound",
    "PreorderNotFound",
    "ProductNotAvailable",
    "ProductNotFound",
    "RewardInactive",
    "RewardNotFound",
    "SettingsUnavailable",
    "SoldOut",
    "VALIDATION_ERRORS",
]
