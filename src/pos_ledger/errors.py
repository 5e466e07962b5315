"""Exception taxonomy for the ledger engine.

Every rule rejection is a local, recoverable failure raised before the store
mutates anything, so callers may surface the message and retry with corrected
input.
"""

from __future__ import annotations

from typing import Iterable, Tuple


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced product, party, shift, or transaction is unknown."""


class InsufficientStock(BusinessRuleViolation):
    """Raised in strict mode when a sale would take stock below zero."""

    def __init__(self, product_ids: Iterable[str]) -> None:
        self.product_ids: Tuple[str, ...] = tuple(product_ids)
        super().__init__(
            "Insufficient stock for: %s" % ", ".join(self.product_ids)
        )


class BelowCostUnconfirmed(BusinessRuleViolation):
    """Raised when lines priced under cost were not acknowledged by the caller."""

    def __init__(self, product_ids: Iterable[str]) -> None:
        self.product_ids: Tuple[str, ...] = tuple(product_ids)
        super().__init__(
            "Lines priced below cost require acknowledgment: %s" % ", ".join(self.product_ids)
        )


class CreditLimitExceeded(BusinessRuleViolation):
    """Raised when deferred debt would pass the credit limit without acknowledgment."""


class MissingDueDate(BusinessRuleViolation):
    """Raised for deferred payments that carry no due date."""


class ConsumerCannotDefer(BusinessRuleViolation):
    """Raised when a consumer customer attempts a deferred payment."""


class NoOpenShift(BusinessRuleViolation):
    """Raised when a sale or shift close is attempted with no open shift."""


class ShiftAlreadyOpen(BusinessRuleViolation):
    """Raised when opening a shift while another one is open."""


class ShiftNotOpen(BusinessRuleViolation):
    """Raised when recording against a shift that is not the open one."""


class DuplicateShiftOpen(BusinessRuleViolation):
    """Raised when loaded data contains more than one open shift."""


class InvalidReversal(BusinessRuleViolation):
    """Raised when a transaction cannot be returned."""


class InvalidApprovalTransition(BusinessRuleViolation):
    """Raised when approving or rejecting a transaction that is not pending."""


class DataIntegrityError(BusinessRuleViolation):
    """Raised when cached balances disagree with the replayed transaction log."""

    def __init__(self, discrepancies: Iterable[str]) -> None:
        self.discrepancies: Tuple[str, ...] = tuple(discrepancies)
        super().__init__(
            "Ledger integrity check failed: %s" % "; ".join(self.discrepancies)
        )


__all__ = [
    "BusinessRuleViolation",
    "MissingReferenceError",
    "InsufficientStock",
    "BelowCostUnconfirmed",
    "CreditLimitExceeded",
    "MissingDueDate",
    "ConsumerCannotDefer",
    "NoOpenShift",
    "ShiftAlreadyOpen",
    "ShiftNotOpen",
    "DuplicateShiftOpen",
    "InvalidReversal",
    "InvalidApprovalTransition",
    "DataIntegrityError",
]
