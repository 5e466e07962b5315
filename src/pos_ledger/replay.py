"""Signed effects of each transaction kind and the from-scratch replay.

Every aggregate the store caches (product quantity, party balance, treasury
cash, shift totals) is a fold of the effects defined here over the
transaction log, starting from the opening values on each row. The rules
module applies the same effect functions incrementally, and
:func:`recompute_and_verify` checks both paths agree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from . import log
from .constants import PartyType, PaymentMethod, TransactionStatus, TransactionType
from .data_manager import (
    CustomerRow,
    ProductRow,
    ShiftRow,
    SupplierRow,
    TransactionRow,
)
from .errors import DataIntegrityError

if TYPE_CHECKING:
    from .store import LedgerStore


ZERO = Decimal("0")

_CASH_IN = {TransactionType.SALE.value, TransactionType.CAPITAL.value}
_CASH_OUT = {
    TransactionType.PURCHASE.value,
    TransactionType.EXPENSE.value,
    TransactionType.WITHDRAWAL.value,
}


@dataclass(frozen=True)
class BalanceEffect:
    """Signed change to one customer or supplier balance."""

    party_type: PartyType
    party_id: str
    delta: Decimal


@dataclass
class ReplayResult:
    """Aggregates recomputed from opening values plus the transaction log."""

    product_quantities: Dict[str, Decimal] = field(default_factory=dict)
    customer_balances: Dict[str, Decimal] = field(default_factory=dict)
    supplier_balances: Dict[str, Decimal] = field(default_factory=dict)
    treasury_balance: Decimal = ZERO
    shift_sales: Dict[str, Dict[str, Decimal]] = field(default_factory=dict)
    discrepancies: List[str] = field(default_factory=list)


def is_effective(transaction: TransactionRow) -> bool:
    """Only completed transactions move stock, balances, or cash."""

    return transaction.status == TransactionStatus.COMPLETED.value


def is_deferred(transaction: TransactionRow) -> bool:
    return transaction.payment_method == PaymentMethod.DEFERRED.value


def _returned_kind(transaction: TransactionRow) -> Optional[str]:
    """Return the type of the transaction a ``RETURN`` reverses.

    Returns record the original's type in ``category`` so the row carries
    everything needed to fold it.
    """

    if transaction.transaction_type != TransactionType.RETURN.value:
        return None
    return transaction.category


def cash_contribution(transaction: TransactionRow) -> Decimal:
    """Signed effect of ``transaction`` on treasury cash.

    Deferred, pending, and rejected transactions contribute nothing. Stock
    adjustments and shift markers never touch cash.
    """

    if not is_effective(transaction) or is_deferred(transaction):
        return ZERO

    kind = transaction.transaction_type
    if kind in _CASH_IN:
        return transaction.amount
    if kind in _CASH_OUT:
        return -transaction.amount
    if kind == TransactionType.RETURN.value:
        if _returned_kind(transaction) == TransactionType.SALE.value:
            return -transaction.amount
        return transaction.amount
    if kind == TransactionType.SETTLEMENT.value:
        if transaction.category == PartyType.CUSTOMER.value:
            return transaction.amount
        return -transaction.amount
    return ZERO


def stock_effects(transaction: TransactionRow) -> Dict[str, Decimal]:
    """Signed per-product quantity changes caused by ``transaction``.

    Direct sales, and returns of direct sales, leave inventory untouched.
    Adjustment lines already carry a signed quantity.
    """

    if not is_effective(transaction):
        return {}

    kind = transaction.transaction_type
    if kind == TransactionType.ADJUSTMENT.value:
        sign = Decimal("1")
    elif kind == TransactionType.PURCHASE.value:
        sign = Decimal("1")
    elif kind == TransactionType.SALE.value:
        sign = Decimal("-1")
    elif kind == TransactionType.RETURN.value:
        sign = Decimal("1") if _returned_kind(transaction) == TransactionType.SALE.value else Decimal("-1")
    else:
        return {}

    if transaction.is_direct_sale:
        return {}

    effects: Dict[str, Decimal] = {}
    for item in transaction.items:
        effects[item.product_id] = effects.get(item.product_id, ZERO) + sign * item.quantity
    return effects


def balance_effect(transaction: TransactionRow) -> Optional[BalanceEffect]:
    """Signed effect of ``transaction`` on a customer or supplier balance.

    Only deferred sales, purchases, and their returns touch balances, plus
    settlements, which are always cash.
    """

    if not is_effective(transaction) or transaction.related_id is None:
        return None

    kind = transaction.transaction_type
    party_id = transaction.related_id
    amount = transaction.amount

    if kind == TransactionType.SETTLEMENT.value:
        if transaction.category == PartyType.CUSTOMER.value:
            return BalanceEffect(PartyType.CUSTOMER, party_id, amount)
        return BalanceEffect(PartyType.SUPPLIER, party_id, -amount)

    if not is_deferred(transaction):
        return None

    if kind == TransactionType.SALE.value:
        return BalanceEffect(PartyType.CUSTOMER, party_id, -amount)
    if kind == TransactionType.PURCHASE.value:
        return BalanceEffect(PartyType.SUPPLIER, party_id, amount)
    if kind == TransactionType.RETURN.value:
        if _returned_kind(transaction) == TransactionType.SALE.value:
            return BalanceEffect(PartyType.CUSTOMER, party_id, amount)
        return BalanceEffect(PartyType.SUPPLIER, party_id, -amount)
    return None


def treasury_balance(opening_balance: Decimal, transactions: Iterable[TransactionRow]) -> Decimal:
    """Fold the whole log into the treasury cash balance."""

    balance = opening_balance
    for transaction in transactions:
        balance += cash_contribution(transaction)
    return balance


def replay(
    *,
    opening_balance: Decimal,
    products: Iterable[ProductRow],
    customers: Iterable[CustomerRow],
    suppliers: Iterable[SupplierRow],
    transactions: Iterable[TransactionRow],
) -> ReplayResult:
    """Recompute every cached aggregate from opening values and the log.

    References to unknown products or parties are reported in
    ``discrepancies`` rather than raised so a verification pass can list
    every problem at once.
    """

    result = ReplayResult(treasury_balance=opening_balance)
    result.product_quantities = {row.product_id: row.opening_quantity for row in products}
    result.customer_balances = {row.customer_id: row.opening_balance for row in customers}
    result.supplier_balances = {row.supplier_id: row.opening_balance for row in suppliers}

    for transaction in transactions:
        result.treasury_balance += cash_contribution(transaction)

        for product_id, delta in stock_effects(transaction).items():
            if product_id not in result.product_quantities:
                result.discrepancies.append(
                    f"transaction {transaction.transaction_id} references unknown product {product_id}"
                )
                continue
            result.product_quantities[product_id] += delta

        effect = balance_effect(transaction)
        if effect is not None:
            ledger = (
                result.customer_balances
                if effect.party_type is PartyType.CUSTOMER
                else result.supplier_balances
            )
            if effect.party_id not in ledger:
                result.discrepancies.append(
                    f"transaction {transaction.transaction_id} references unknown "
                    f"{effect.party_type.value} {effect.party_id}"
                )
            else:
                ledger[effect.party_id] += effect.delta

        if transaction.transaction_type == TransactionType.SALE.value and transaction.shift_id:
            bucket = result.shift_sales.setdefault(transaction.shift_id, {})
            bucket[transaction.payment_method] = bucket.get(transaction.payment_method, ZERO) + transaction.amount

    return result


def _compare_shift(shift: ShiftRow, replayed: Dict[str, Decimal]) -> List[str]:
    problems: List[str] = []
    expected_total = sum(replayed.values(), ZERO)
    if shift.total_sales != expected_total:
        problems.append(
            f"shift {shift.shift_id} total sales {shift.total_sales} != replayed {expected_total}"
        )
    methods = set(shift.sales_by_method) | set(replayed)
    for method in sorted(methods):
        cached = shift.sales_by_method.get(method, ZERO)
        derived = replayed.get(method, ZERO)
        if cached != derived:
            problems.append(
                f"shift {shift.shift_id} {method} sales {cached} != replayed {derived}"
            )
    return problems


def find_discrepancies(store: "LedgerStore") -> Tuple[ReplayResult, List[str]]:
    """Replay the store's log and list every cached value that disagrees."""

    result = replay(
        opening_balance=store.settings.opening_balance,
        products=store.list_products(),
        customers=store.list_customers(),
        suppliers=store.list_suppliers(),
        transactions=store.list_transactions(),
    )
    problems = list(result.discrepancies)

    for product in store.list_products():
        derived = result.product_quantities[product.product_id]
        if product.quantity != derived:
            problems.append(f"product {product.product_id} quantity {product.quantity} != replayed {derived}")
    for customer in store.list_customers():
        derived = result.customer_balances[customer.customer_id]
        if customer.balance != derived:
            problems.append(f"customer {customer.customer_id} balance {customer.balance} != replayed {derived}")
    for supplier in store.list_suppliers():
        derived = result.supplier_balances[supplier.supplier_id]
        if supplier.balance != derived:
            problems.append(f"supplier {supplier.supplier_id} balance {supplier.balance} != replayed {derived}")
    if store.treasury_balance != result.treasury_balance:
        problems.append(
            f"treasury cache {store.treasury_balance} != replayed {result.treasury_balance}"
        )
    for shift in store.list_shifts():
        problems.extend(_compare_shift(shift, result.shift_sales.get(shift.shift_id, {})))

    return result, problems


def recompute_and_verify(store: "LedgerStore") -> ReplayResult:
    """Assert the store's cached aggregates equal a full replay of its log.

    Raises:
        DataIntegrityError: Listing every drifted value when any disagree.
    """

    result, problems = find_discrepancies(store)
    if problems:
        for problem in problems:
            log.error("Ledger drift detected: %s", problem)
        raise DataIntegrityError(problems)
    log.debug("Replay verified %d transactions", len(store.list_transactions()))
    return result
