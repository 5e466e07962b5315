"""Cashier shift lifecycle.

A shift moves ``open -> closed`` exactly once. While open it accumulates
sales per payment method; on close the drawer count is compared with the
cash the ledger expects and the variance is reported, never enforced.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from . import log
from .commands import CloseShiftCommand, OpenShiftCommand
from .constants import PaymentMethod, ShiftStatus, TransactionStatus, TransactionType
from .data_manager import ShiftRow, TransactionRow, UserRow
from .errors import BusinessRuleViolation, NoOpenShift, ShiftAlreadyOpen, ShiftNotOpen
from .replay import ZERO, is_effective
from .store import LedgerStore, LedgerUpdate, find_open_shift

_DRAWER_OUTFLOWS = {TransactionType.EXPENSE.value, TransactionType.WITHDRAWAL.value}


def plan_open_shift(
    store: LedgerStore, command: OpenShiftCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Start a new shift for ``actor`` and log a ``SHIFT_OPEN`` marker.

    Raises:
        ShiftAlreadyOpen: If any shift is currently open.
    """

    current = store.open_shift()
    if current is not None:
        log.warning("Rejected shift open; shift '%s' is still open", current.shift_id)
        raise ShiftAlreadyOpen(f"Shift '{current.shift_id}' is already open")

    shift = ShiftRow(
        shift_id=store.next_shift_id(),
        user_id=actor.user_id,
        user_name=actor.full_name or actor.username,
        start_time_iso=now.isoformat(),
        start_cash=command.start_cash,
        status=ShiftStatus.OPEN.value,
    )
    marker = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.SHIFT_OPEN),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.SHIFT_OPEN.value,
        amount=command.start_cash,
        payment_method=PaymentMethod.CASH.value,
        status=TransactionStatus.COMPLETED.value,
        description=f"Shift {shift.shift_id} opened",
        shift_id=shift.shift_id,
        user_id=actor.user_id,
    )
    return LedgerUpdate(
        action="SHIFT_OPEN",
        details=f"{shift.shift_id} start cash {command.start_cash}",
        transactions=(marker,),
        shifts=(shift,),
    )


def record_sale_against_shift(
    shift: ShiftRow, amount: Decimal, payment_method: str, *, open_shift_id: Optional[str]
) -> ShiftRow:
    """Return ``shift`` with ``amount`` added to its totals.

    ``open_shift_id`` is the id of the store's currently open shift.

    Raises:
        ShiftNotOpen: If ``shift`` is closed or is not the open shift.
    """

    if shift.status != ShiftStatus.OPEN.value or shift.shift_id != open_shift_id:
        log.warning("Rejected sale against shift '%s'; open shift is '%s'", shift.shift_id, open_shift_id)
        raise ShiftNotOpen(f"Shift '{shift.shift_id}' is not open")

    by_method = dict(shift.sales_by_method)
    by_method[payment_method] = by_method.get(payment_method, ZERO) + amount
    return replace(shift, total_sales=shift.total_sales + amount, sales_by_method=by_method)


def expected_cash(shift: ShiftRow, transactions: Iterable[TransactionRow]) -> Decimal:
    """Cash the drawer should hold for ``shift``.

    Start cash, plus completed cash sales of the shift, minus completed cash
    expenses and withdrawals recorded during it.
    """

    expected = shift.start_cash
    for transaction in transactions:
        if transaction.shift_id != shift.shift_id or not is_effective(transaction):
            continue
        if transaction.payment_method != PaymentMethod.CASH.value:
            continue
        if transaction.transaction_type == TransactionType.SALE.value:
            expected += transaction.amount
        elif transaction.transaction_type in _DRAWER_OUTFLOWS:
            expected -= transaction.amount
    return expected


def shift_variance(shift: ShiftRow) -> Decimal:
    """Counted minus expected cash of a closed shift; positive means surplus."""

    if shift.end_cash is None or shift.expected_cash is None:
        raise BusinessRuleViolation(f"Shift '{shift.shift_id}' has not been closed")
    return shift.end_cash - shift.expected_cash


def plan_close_shift(
    store: LedgerStore, command: CloseShiftCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Close the open shift with the counted drawer cash.

    A variance is reported in the update's warnings, it never blocks.

    Raises:
        NoOpenShift: If no shift is open.
    """

    shift = store.open_shift()
    if shift is None:
        log.warning("Rejected shift close; no shift is open")
        raise NoOpenShift("No open shift to close")

    expected = expected_cash(shift, store.list_transactions())
    closed = replace(
        shift,
        status=ShiftStatus.CLOSED.value,
        end_time_iso=now.isoformat(),
        end_cash=command.counted_cash,
        expected_cash=expected,
    )
    variance = shift_variance(closed)
    warnings = ()
    if variance != ZERO:
        log.warning(
            "Shift '%s' closed with variance %s (expected=%s, counted=%s)",
            shift.shift_id,
            variance,
            expected,
            command.counted_cash,
        )
        warnings = (f"Cash variance {variance} on shift {shift.shift_id}",)

    marker = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.SHIFT_CLOSE),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.SHIFT_CLOSE.value,
        amount=command.counted_cash,
        payment_method=PaymentMethod.CASH.value,
        status=TransactionStatus.COMPLETED.value,
        description=f"Shift {shift.shift_id} closed; expected {expected}, variance {variance}",
        shift_id=shift.shift_id,
        user_id=actor.user_id,
    )
    return LedgerUpdate(
        action="SHIFT_CLOSE",
        details=f"{shift.shift_id} expected {expected} counted {command.counted_cash}",
        transactions=(marker,),
        shifts=(closed,),
        warnings=warnings,
    )


__all__ = [
    "find_open_shift",
    "plan_open_shift",
    "record_sale_against_shift",
    "expected_cash",
    "shift_variance",
    "plan_close_shift",
]
