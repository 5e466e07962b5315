"""Approval workflow for expenses above the configured threshold.

``pending -> completed`` applies the deferred cash effect at approval time;
``pending -> rejected`` never affects anything. No other transition exists.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import List

from . import log
from .commands import ApprovalCommand
from .constants import TransactionStatus
from .data_manager import TransactionRow, UserRow
from .errors import InvalidApprovalTransition
from .rules import propagate_effects, requires_approval
from .store import LedgerStore, LedgerUpdate


def pending_transactions(store: LedgerStore) -> List[TransactionRow]:
    return [row for row in store.list_transactions() if row.status == TransactionStatus.PENDING.value]


def _require_pending(transaction: TransactionRow, target: TransactionStatus) -> None:
    if transaction.status != TransactionStatus.PENDING.value:
        log.error(
            "Invalid approval transition for '%s': %s -> %s",
            transaction.transaction_id,
            transaction.status,
            target.value,
        )
        raise InvalidApprovalTransition(
            f"Transaction '{transaction.transaction_id}' is {transaction.status}, not pending"
        )


def plan_approve(store: LedgerStore, command: ApprovalCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Complete a pending transaction and release its cash effect.

    Raises:
        InvalidApprovalTransition: If the transaction is not pending.
    """

    transaction = store.get_transaction(command.transaction_id)
    _require_pending(transaction, TransactionStatus.COMPLETED)
    approved = replace(transaction, status=TransactionStatus.COMPLETED.value)
    effects = propagate_effects(store, (approved,))
    return LedgerUpdate(
        action="APPROVE",
        details=f"{transaction.transaction_id} approved by {actor.username}: {transaction.amount}",
        replaced_transactions=(approved,),
        products=effects.products,
        customers=effects.customers,
        suppliers=effects.suppliers,
        cash_delta=effects.cash_delta,
    )


def plan_reject(store: LedgerStore, command: ApprovalCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Reject a pending transaction; it never affects any balance."""

    transaction = store.get_transaction(command.transaction_id)
    _require_pending(transaction, TransactionStatus.REJECTED)
    rejected = replace(transaction, status=TransactionStatus.REJECTED.value)
    return LedgerUpdate(
        action="REJECT",
        details=f"{transaction.transaction_id} rejected by {actor.username}",
        replaced_transactions=(rejected,),
    )


__all__ = ["requires_approval", "pending_transactions", "plan_approve", "plan_reject"]
