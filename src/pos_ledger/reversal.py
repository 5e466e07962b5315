"""Whole-transaction returns.

A ``RETURN`` copies the original's lines, amount, party, payment method, and
direct-sale flag, and records the original's type in ``category``. The effect
functions in :mod:`pos_ledger.replay` read that type and produce the exact
negation of the original's stock, balance, and cash effects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from . import log
from .commands import ReturnCommand
from .constants import TransactionStatus, TransactionType
from .data_manager import TransactionRow, UserRow
from .errors import InvalidReversal
from .rules import propagate_effects
from .store import LedgerStore, LedgerUpdate

REVERSIBLE_TYPES = {TransactionType.SALE.value, TransactionType.PURCHASE.value}


def validate_reversal_target(store: LedgerStore, transaction: TransactionRow) -> None:
    """Confirm ``transaction`` is a completed sale or purchase not yet returned.

    Raises:
        InvalidReversal: If the transaction is of another type, is not
            completed, or already has a return.
    """
    if transaction.transaction_type not in REVERSIBLE_TYPES:
        log.error(
            "Cannot return transaction '%s' of type %s",
            transaction.transaction_id,
            transaction.transaction_type,
        )
        raise InvalidReversal(f"Only sales and purchases can be returned, not {transaction.transaction_type}")
    if transaction.status != TransactionStatus.COMPLETED.value:
        log.error("Cannot return transaction '%s' with status %s", transaction.transaction_id, transaction.status)
        raise InvalidReversal(f"Transaction '{transaction.transaction_id}' is {transaction.status}")
    if store.is_reversed(transaction.transaction_id):
        log.error("Cannot return transaction '%s' twice", transaction.transaction_id)
        raise InvalidReversal(f"Transaction '{transaction.transaction_id}' has already been returned")


def build_return_transaction(
    original: TransactionRow,
    *,
    transaction_id: str,
    timestamp: datetime,
    user_id: Optional[str],
    shift_id: Optional[str],
    notes: Optional[str],
) -> TransactionRow:
    """Create the ``RETURN`` row that negates ``original``."""
    return TransactionRow(
        transaction_id=transaction_id,
        timestamp_iso=timestamp.isoformat(),
        transaction_type=TransactionType.RETURN.value,
        amount=original.amount,
        payment_method=original.payment_method,
        status=TransactionStatus.COMPLETED.value,
        description=notes or f"Return of {original.transaction_id}",
        category=original.transaction_type,
        related_id=original.related_id,
        linked_transaction_id=original.transaction_id,
        is_direct_sale=original.is_direct_sale,
        shift_id=shift_id,
        user_id=user_id,
        items=original.items,
    )


def plan_reversal(store: LedgerStore, command: ReturnCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Plan the full return of a sale or purchase."""

    original = store.get_transaction(command.original_transaction_id)
    validate_reversal_target(store, original)

    open_shift = store.open_shift()
    transaction = build_return_transaction(
        original,
        transaction_id=store.next_transaction_id(TransactionType.RETURN),
        timestamp=now,
        user_id=actor.user_id,
        shift_id=open_shift.shift_id if open_shift is not None else None,
        notes=command.notes,
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action="RETURN",
        details=f"{transaction.transaction_id} reverses {original.transaction_id}: {original.amount}",
        transactions=(transaction,),
        products=effects.products,
        customers=effects.customers,
        suppliers=effects.suppliers,
        cash_delta=effects.cash_delta,
    )


__all__ = ["validate_reversal_target", "build_return_transaction", "plan_reversal"]
