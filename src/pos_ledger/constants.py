"""Enumerations shared across the POS ledger modules.

Centralises domain constants so that the data access layer (DAL), the ledger
rules, and the CLI rely on a single source of truth for transaction kinds,
payment methods, lifecycle states, and workbook sheet names.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "2.0.0"

DEFAULT_OPENING_BALANCE = Decimal("50000")
DEFAULT_APPROVAL_THRESHOLD = Decimal("2000")
DEFAULT_NEXT_INVOICE_NUMBER = 1001


class PaymentMethod(str, Enum):
    """Enumerate supported payment mechanisms."""

    CASH = "Cash"
    WALLET = "Wallet"
    INSTAPAY = "Instapay"
    DEFERRED = "Deferred"


class TransactionType(str, Enum):
    """Enumerate the canonical transaction types recorded in the ledger."""

    SALE = "SALE"
    PURCHASE = "PURCHASE"
    EXPENSE = "EXPENSE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    SHIFT_OPEN = "SHIFT_OPEN"
    SHIFT_CLOSE = "SHIFT_CLOSE"
    CAPITAL = "CAPITAL"
    WITHDRAWAL = "WITHDRAWAL"
    SETTLEMENT = "SETTLEMENT"


class TransactionStatus(str, Enum):
    """Approval lifecycle of a transaction."""

    COMPLETED = "completed"
    PENDING = "pending"
    REJECTED = "rejected"


class ShiftStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class QuotationStatus(str, Enum):
    PENDING = "pending"
    CONVERTED = "converted"


class CustomerType(str, Enum):
    """Consumers pay immediately; businesses may buy on deferred terms."""

    CONSUMER = "consumer"
    BUSINESS = "business"


class PartyType(str, Enum):
    """Counterparty kinds that can settle a debt."""

    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class CapitalMovement(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class UserRole(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    CASHIER = "cashier"
    STOCK_KEEPER = "stock_keeper"


class ProductUnit(str, Enum):
    PIECE = "piece"
    METER = "meter"
    BOX = "box"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    CUSTOMERS = "Customers"
    SUPPLIERS = "Suppliers"
    USERS = "Users"
    TRANSACTION_LOG = "TransactionLog"
    TRANSACTION_ITEMS = "TransactionItems"
    SHIFTS = "Shifts"
    QUOTATIONS = "Quotations"
    QUOTATION_ITEMS = "QuotationItems"
    ACTIVITY_LOG = "ActivityLog"
    SETTINGS = "Settings"


# Transaction id prefixes for every kind except sales, which use the
# business-visible invoice number.
TRANSACTION_ID_PREFIXES = {
    TransactionType.PURCHASE: "PUR",
    TransactionType.EXPENSE: "EXP",
    TransactionType.RETURN: "RET",
    TransactionType.ADJUSTMENT: "ADJ",
    TransactionType.SHIFT_OPEN: "SHO",
    TransactionType.SHIFT_CLOSE: "SHC",
    TransactionType.CAPITAL: "CAP",
    TransactionType.WITHDRAWAL: "WDR",
    TransactionType.SETTLEMENT: "SET",
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "DEFAULT_OPENING_BALANCE",
    "DEFAULT_APPROVAL_THRESHOLD",
    "DEFAULT_NEXT_INVOICE_NUMBER",
    "PaymentMethod",
    "TransactionType",
    "TransactionStatus",
    "ShiftStatus",
    "QuotationStatus",
    "CustomerType",
    "PartyType",
    "CapitalMovement",
    "UserRole",
    "ProductUnit",
    "SheetName",
    "TRANSACTION_ID_PREFIXES",
]
