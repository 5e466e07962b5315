"""In-memory ledger store.

The store exclusively owns every collection. Reads hand out immutable rows;
the only write path is :meth:`LedgerStore.apply`, which takes a fully planned
:class:`LedgerUpdate` and installs it with plain assignments after checking
that it still fits the current state. A rejected update leaves every
collection untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from . import log
from .constants import TRANSACTION_ID_PREFIXES, ShiftStatus, TransactionStatus, TransactionType
from .data_manager import (
    ActivityLogEntry,
    CustomerRow,
    LedgerDocument,
    ProductRow,
    QuotationRow,
    ShiftRow,
    StoreSettings,
    SupplierRow,
    TransactionRow,
    UserRow,
)
from .errors import BusinessRuleViolation, DuplicateShiftOpen, MissingReferenceError
from .replay import ZERO, treasury_balance


def find_open_shift(shifts: Iterable[ShiftRow]) -> Optional[ShiftRow]:
    """Return the single open shift, or ``None`` when every shift is closed.

    Raises:
        DuplicateShiftOpen: If more than one shift is open.
    """

    open_shifts = [shift for shift in shifts if shift.status == ShiftStatus.OPEN.value]
    if len(open_shifts) > 1:
        log.error(
            "Found %d open shifts: %s",
            len(open_shifts),
            ", ".join(shift.shift_id for shift in open_shifts),
        )
        raise DuplicateShiftOpen(
            "More than one open shift: %s" % ", ".join(shift.shift_id for shift in open_shifts)
        )
    return open_shifts[0] if open_shifts else None


@dataclass(frozen=True)
class LedgerUpdate:
    """Everything a single operation changes.

    ``transactions`` are appended to the log; ``replaced_transactions`` carry
    status transitions of pending entries. Row tuples are upserts keyed by
    their id. ``cash_delta`` is the change to the cached treasury balance.
    """

    action: str
    details: str
    transactions: Tuple[TransactionRow, ...] = ()
    replaced_transactions: Tuple[TransactionRow, ...] = ()
    products: Tuple[ProductRow, ...] = ()
    customers: Tuple[CustomerRow, ...] = ()
    suppliers: Tuple[SupplierRow, ...] = ()
    users: Tuple[UserRow, ...] = ()
    shifts: Tuple[ShiftRow, ...] = ()
    quotations: Tuple[QuotationRow, ...] = ()
    settings: Optional[StoreSettings] = None
    cash_delta: Decimal = ZERO
    warnings: Tuple[str, ...] = ()

    @property
    def transaction(self) -> Optional[TransactionRow]:
        """The primary transaction written or transitioned by the update."""

        if self.transactions:
            return self.transactions[0]
        if self.replaced_transactions:
            return self.replaced_transactions[0]
        return None

    @property
    def shift(self) -> Optional[ShiftRow]:
        return self.shifts[0] if self.shifts else None

    @property
    def quotation(self) -> Optional[QuotationRow]:
        return self.quotations[0] if self.quotations else None


class LedgerStore:
    """Canonical collections plus the incrementally maintained cash cache."""

    def __init__(self, document: Optional[LedgerDocument] = None) -> None:
        document = document or LedgerDocument()
        self._settings = document.settings
        self._products: Dict[str, ProductRow] = {row.product_id: row for row in document.products}
        self._customers: Dict[str, CustomerRow] = {row.customer_id: row for row in document.customers}
        self._suppliers: Dict[str, SupplierRow] = {row.supplier_id: row for row in document.suppliers}
        self._users: Dict[str, UserRow] = {row.user_id: row for row in document.users}
        self._transactions: List[TransactionRow] = list(document.transactions)
        self._transaction_index: Dict[str, int] = {
            row.transaction_id: index for index, row in enumerate(self._transactions)
        }
        self._returned: Set[str] = {
            row.linked_transaction_id
            for row in self._transactions
            if row.transaction_type == TransactionType.RETURN.value and row.linked_transaction_id
        }
        self._shifts: Dict[str, ShiftRow] = {row.shift_id: row for row in document.shifts}
        self._quotations: Dict[str, QuotationRow] = {row.quotation_id: row for row in document.quotations}
        self._activity: List[ActivityLogEntry] = list(document.activity_log)

        if len(self._transaction_index) != len(self._transactions):
            raise BusinessRuleViolation("Transaction log contains duplicate transaction ids")
        # Raises DuplicateShiftOpen when the loaded data has several open shifts.
        find_open_shift(self._shifts.values())
        self._cash = treasury_balance(self._settings.opening_balance, self._transactions)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def treasury_balance(self) -> Decimal:
        """Cached treasury cash; replay is its correctness oracle."""

        return self._cash

    def list_products(self) -> List[ProductRow]:
        return list(self._products.values())

    def list_customers(self) -> List[CustomerRow]:
        return list(self._customers.values())

    def list_suppliers(self) -> List[SupplierRow]:
        return list(self._suppliers.values())

    def list_users(self) -> List[UserRow]:
        return list(self._users.values())

    def list_transactions(self) -> List[TransactionRow]:
        return list(self._transactions)

    def list_shifts(self) -> List[ShiftRow]:
        return list(self._shifts.values())

    def list_quotations(self) -> List[QuotationRow]:
        return list(self._quotations.values())

    def list_activity(self) -> List[ActivityLogEntry]:
        return list(self._activity)

    def get_product(self, product_id: str) -> ProductRow:
        try:
            return self._products[product_id]
        except KeyError as exc:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise MissingReferenceError(f"Unknown product id: {product_id}") from exc

    def get_customer(self, customer_id: str) -> CustomerRow:
        try:
            return self._customers[customer_id]
        except KeyError as exc:
            log.warning("Customer lookup failed for id '%s'", customer_id)
            raise MissingReferenceError(f"Unknown customer id: {customer_id}") from exc

    def get_supplier(self, supplier_id: str) -> SupplierRow:
        try:
            return self._suppliers[supplier_id]
        except KeyError as exc:
            log.warning("Supplier lookup failed for id '%s'", supplier_id)
            raise MissingReferenceError(f"Unknown supplier id: {supplier_id}") from exc

    def get_user(self, user_id: str) -> UserRow:
        try:
            return self._users[user_id]
        except KeyError as exc:
            log.warning("User lookup failed for id '%s'", user_id)
            raise MissingReferenceError(f"Unknown user id: {user_id}") from exc

    def get_transaction(self, transaction_id: str) -> TransactionRow:
        try:
            return self._transactions[self._transaction_index[transaction_id]]
        except KeyError as exc:
            log.warning("Transaction lookup failed for id '%s'", transaction_id)
            raise MissingReferenceError(f"Unknown transaction id: {transaction_id}") from exc

    def get_shift(self, shift_id: str) -> ShiftRow:
        try:
            return self._shifts[shift_id]
        except KeyError as exc:
            log.warning("Shift lookup failed for id '%s'", shift_id)
            raise MissingReferenceError(f"Unknown shift id: {shift_id}") from exc

    def get_quotation(self, quotation_id: str) -> QuotationRow:
        try:
            return self._quotations[quotation_id]
        except KeyError as exc:
            log.warning("Quotation lookup failed for id '%s'", quotation_id)
            raise MissingReferenceError(f"Unknown quotation id: {quotation_id}") from exc

    def has_transaction(self, transaction_id: str) -> bool:
        return transaction_id in self._transaction_index

    def has_product(self, product_id: str) -> bool:
        return product_id in self._products

    def has_sku(self, sku: str) -> bool:
        return any(product.sku == sku for product in self._products.values())

    def has_customer(self, customer_id: str) -> bool:
        return customer_id in self._customers

    def has_supplier(self, supplier_id: str) -> bool:
        return supplier_id in self._suppliers

    def has_user(self, user_id: str) -> bool:
        return user_id in self._users

    def is_reversed(self, transaction_id: str) -> bool:
        return transaction_id in self._returned

    def open_shift(self) -> Optional[ShiftRow]:
        """The shift whose status is open, if any."""

        return find_open_shift(self._shifts.values())

    def next_transaction_id(self, transaction_type: TransactionType) -> str:
        prefix = TRANSACTION_ID_PREFIXES[transaction_type]
        return f"{prefix}-{len(self._transactions) + 1:06d}"

    def next_shift_id(self) -> str:
        return f"SH-{len(self._shifts) + 1:04d}"

    def next_quotation_id(self) -> str:
        return f"QT-{len(self._quotations) + 1:04d}"

    def next_activity_id(self) -> str:
        return f"ACT-{len(self._activity) + 1:06d}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, update: LedgerUpdate, entry: ActivityLogEntry) -> None:
        """Install ``update`` and append ``entry`` to the activity log.

        All checks run before the first assignment so a rejected update
        changes nothing.

        Raises:
            BusinessRuleViolation: If an appended transaction id is already
                taken, a replaced transaction is unknown or no longer pending,
                or the update would leave more than one shift open.
        """

        new_ids = [row.transaction_id for row in update.transactions]
        if len(set(new_ids)) != len(new_ids) or any(self.has_transaction(tid) for tid in new_ids):
            raise BusinessRuleViolation(f"Duplicate transaction id in update: {', '.join(new_ids)}")
        for row in update.replaced_transactions:
            current = self.get_transaction(row.transaction_id)
            if current.status != TransactionStatus.PENDING.value:
                raise BusinessRuleViolation(
                    f"Transaction '{row.transaction_id}' is {current.status}; only pending entries change"
                )
        if update.shifts:
            merged = dict(self._shifts)
            merged.update({row.shift_id: row for row in update.shifts})
            find_open_shift(merged.values())

        for row in update.replaced_transactions:
            self._transactions[self._transaction_index[row.transaction_id]] = row
        for row in update.transactions:
            self._transaction_index[row.transaction_id] = len(self._transactions)
            self._transactions.append(row)
            if row.transaction_type == TransactionType.RETURN.value and row.linked_transaction_id:
                self._returned.add(row.linked_transaction_id)
        for product in update.products:
            self._products[product.product_id] = product
        for customer in update.customers:
            self._customers[customer.customer_id] = customer
        for supplier in update.suppliers:
            self._suppliers[supplier.supplier_id] = supplier
        for user in update.users:
            self._users[user.user_id] = user
        for shift in update.shifts:
            self._shifts[shift.shift_id] = shift
        for quotation in update.quotations:
            self._quotations[quotation.quotation_id] = quotation
        if update.settings is not None:
            self._settings = update.settings
        self._cash += update.cash_delta
        self._activity.append(entry)

        log.debug("Applied update '%s'; treasury cache now %s", update.action, self._cash)

    def to_document(self) -> LedgerDocument:
        """Snapshot every collection for persistence."""

        return LedgerDocument(
            settings=self._settings,
            products=self.list_products(),
            customers=self.list_customers(),
            suppliers=self.list_suppliers(),
            users=self.list_users(),
            transactions=self.list_transactions(),
            shifts=self.list_shifts(),
            quotations=self.list_quotations(),
            activity_log=self.list_activity(),
        )


__all__ = ["LedgerStore", "LedgerUpdate", "find_open_shift"]
