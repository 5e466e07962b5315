"""Typed intents accepted by the ledger operations.

Commands carry only what the caller decided. Prices, balances, and ids are
resolved against the store when the command is planned, never trusted from
the caller, with the single exception of an explicit ``unit_price`` override
on a cart line.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from .constants import CapitalMovement, PartyType, PaymentMethod


@dataclass(frozen=True)
class CartLine:
    """One product line of a sale, purchase, or quotation request.

    ``discount`` is a percentage applied to the unit sell price. For
    purchases ``unit_price`` overrides the product's cost price; for sales it
    overrides the sell price.
    """

    product_id: str
    quantity: Decimal
    discount: Decimal = Decimal("0")
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class SaleCommand:
    """User intent for creating a ``SALE`` transaction."""

    lines: Tuple[CartLine, ...]
    customer_id: str
    payment_method: PaymentMethod
    paid_amount: Optional[Decimal] = None
    invoice_id: Optional[str] = None
    is_direct_sale: bool = False
    due_date: Optional[date] = None
    below_cost_acknowledged: bool = False
    credit_limit_acknowledged: bool = False
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class PurchaseCommand:
    """User intent for creating a ``PURCHASE`` transaction."""

    lines: Tuple[CartLine, ...]
    supplier_id: str
    payment_method: PaymentMethod
    total: Optional[Decimal] = None
    due_date: Optional[date] = None
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ReturnCommand:
    """User intent for reversing a completed sale or purchase in full."""

    original_transaction_id: str
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class StockAdjustmentCommand:
    product_id: str
    quantity_diff: Decimal
    reason: str
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ExpenseCommand:
    amount: Decimal
    description: str
    category: str
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ApprovalCommand:
    """Approve or reject decision on a pending transaction."""

    transaction_id: str
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class SettlementCommand:
    party_type: PartyType
    party_id: str
    amount: Decimal
    notes: str = ""
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class CapitalCommand:
    kind: CapitalMovement
    amount: Decimal
    description: str = ""
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class OpenShiftCommand:
    start_cash: Decimal
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class CloseShiftCommand:
    counted_cash: Decimal
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class QuotationCommand:
    customer_id: str
    lines: Tuple[CartLine, ...]
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class ConvertQuotationCommand:
    """User intent for turning a pending quotation into a sale."""

    quotation_id: str
    payment_method: PaymentMethod
    paid_amount: Optional[Decimal] = None
    is_direct_sale: bool = False
    due_date: Optional[date] = None
    below_cost_acknowledged: bool = False
    credit_limit_acknowledged: bool = False
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = None
