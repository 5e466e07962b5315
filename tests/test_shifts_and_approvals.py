"""Tests for the pure shift, approval, and pricing helpers."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from pos_ledger import approvals, constants, data_manager, errors, rules, shifts
from pos_ledger.commands import ApprovalCommand
from pos_ledger.store import LedgerStore

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
ADMIN = data_manager.UserRow("U-ADMIN", "admin", "Administrator", constants.UserRole.ADMIN.value)


def _shift(status: constants.ShiftStatus = constants.ShiftStatus.OPEN) -> data_manager.ShiftRow:
    return data_manager.ShiftRow(
        shift_id="SH-0001",
        user_id="U-ADMIN",
        user_name="Administrator",
        start_time_iso=NOW.isoformat(),
        start_cash=Decimal("500"),
        status=status.value,
    )


def _txn(
    transaction_type: constants.TransactionType,
    amount: str,
    *,
    transaction_id: str,
    payment_method: constants.PaymentMethod = constants.PaymentMethod.CASH,
    status: constants.TransactionStatus = constants.TransactionStatus.COMPLETED,
    shift_id: str | None = "SH-0001",
) -> data_manager.TransactionRow:
    return data_manager.TransactionRow(
        transaction_id=transaction_id,
        timestamp_iso=NOW.isoformat(),
        transaction_type=transaction_type.value,
        amount=Decimal(amount),
        payment_method=payment_method.value,
        status=status.value,
        description="",
        shift_id=shift_id,
    )


# ---------------------------------------------------------------------------
# Shifts
# ---------------------------------------------------------------------------


def test_record_sale_against_shift_updates_method_bucket():
    """Sales add to the shift total and to their payment method bucket."""

    shift = _shift()
    for amount, method in (("65", "Cash"), ("100", "Deferred"), ("35", "Cash")):
        shift = shifts.record_sale_against_shift(shift, Decimal(amount), method, open_shift_id="SH-0001")

    assert shift.total_sales == Decimal("200")
    assert shift.sales_by_method == {"Cash": Decimal("100"), "Deferred": Decimal("100")}


def test_record_sale_against_closed_shift_raises():
    with pytest.raises(errors.ShiftNotOpen):
        shifts.record_sale_against_shift(
            _shift(constants.ShiftStatus.CLOSED), Decimal("1"), "Cash", open_shift_id="SH-0001"
        )


@pytest.mark.parametrize("open_shift_id", ["SH-0002", None])
def test_record_sale_against_shift_other_than_the_open_one_raises(open_shift_id):
    """A shift row that is not the store's open shift cannot take sales."""

    with pytest.raises(errors.ShiftNotOpen):
        shifts.record_sale_against_shift(_shift(), Decimal("1"), "Cash", open_shift_id=open_shift_id)


def test_expected_cash_counts_only_cash_movements_of_the_shift():
    """Deferred sales, pending expenses, and other shifts leave the drawer alone."""

    transactions = [
        _txn(constants.TransactionType.SALE, "65", transaction_id="1001"),
        _txn(
            constants.TransactionType.SALE,
            "150",
            transaction_id="1002",
            payment_method=constants.PaymentMethod.DEFERRED,
        ),
        _txn(constants.TransactionType.SALE, "80", transaction_id="1003", shift_id="SH-0000"),
        _txn(constants.TransactionType.EXPENSE, "20", transaction_id="EXP-000001"),
        _txn(
            constants.TransactionType.EXPENSE,
            "3000",
            transaction_id="EXP-000002",
            status=constants.TransactionStatus.PENDING,
        ),
        _txn(constants.TransactionType.WITHDRAWAL, "15", transaction_id="WDR-000001"),
    ]

    assert shifts.expected_cash(_shift(), transactions) == Decimal("530")


def test_shift_variance_requires_a_closed_shift():
    with pytest.raises(errors.BusinessRuleViolation):
        shifts.shift_variance(_shift())


def test_shift_variance_is_counted_minus_expected():
    closed = replace(
        _shift(constants.ShiftStatus.CLOSED),
        end_cash=Decimal("540"),
        expected_cash=Decimal("565"),
    )
    assert shifts.shift_variance(closed) == Decimal("-25")


# ---------------------------------------------------------------------------
# Approvals
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("amount", "expected"),
    [("1999.99", False), ("2000", False), ("2000.01", True)],
)
def test_requires_approval_is_strictly_above_threshold(amount, expected):
    assert rules.requires_approval(Decimal(amount), Decimal("2000")) is expected


def test_plan_approve_releases_cash_effect():
    """Approving a pending expense carries its cash outflow in the update."""

    pending = _txn(
        constants.TransactionType.EXPENSE,
        "3000",
        transaction_id="EXP-000001",
        status=constants.TransactionStatus.PENDING,
    )
    store = LedgerStore(data_manager.LedgerDocument(transactions=[pending]))

    update = approvals.plan_approve(store, ApprovalCommand("EXP-000001"), now=NOW, actor=ADMIN)

    (approved,) = update.replaced_transactions
    assert approved.status == constants.TransactionStatus.COMPLETED.value
    assert update.cash_delta == Decimal("-3000")
    assert approvals.pending_transactions(store) == [pending]


def test_plan_reject_has_no_effect():
    pending = _txn(
        constants.TransactionType.EXPENSE,
        "3000",
        transaction_id="EXP-000001",
        status=constants.TransactionStatus.PENDING,
    )
    store = LedgerStore(data_manager.LedgerDocument(transactions=[pending]))

    update = approvals.plan_reject(store, ApprovalCommand("EXP-000001"), now=NOW, actor=ADMIN)

    assert update.cash_delta == Decimal("0")
    assert update.products == ()


@pytest.mark.parametrize(
    "status", [constants.TransactionStatus.COMPLETED, constants.TransactionStatus.REJECTED]
)
def test_only_pending_transactions_can_be_decided(status):
    settled = _txn(constants.TransactionType.EXPENSE, "3000", transaction_id="EXP-000001", status=status)
    store = LedgerStore(data_manager.LedgerDocument(transactions=[settled]))
    with pytest.raises(errors.InvalidApprovalTransition):
        approvals.plan_approve(store, ApprovalCommand("EXP-000001"), now=NOW, actor=ADMIN)
    with pytest.raises(errors.InvalidApprovalTransition):
        approvals.plan_reject(store, ApprovalCommand("EXP-000001"), now=NOW, actor=ADMIN)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def test_price_cart_applies_discount_before_tax():
    """Tax is charged on the discounted amount and the total rounds to cents."""

    items = [
        data_manager.LineItem("P1", "Cable", Decimal("2"), Decimal("45"), Decimal("65"), Decimal("10")),
        data_manager.LineItem("P2", "Switch", Decimal("1"), Decimal("100"), Decimal("150")),
    ]

    totals = rules.price_cart(items, tax_rate=Decimal("14"))

    assert totals.subtotal == Decimal("280")
    assert totals.discount == Decimal("13")
    assert totals.net == Decimal("267")
    assert totals.tax == Decimal("37.38")
    assert totals.total == Decimal("304.38")


def test_price_cart_without_tax():
    items = [data_manager.LineItem("P1", "Cable", Decimal("3"), Decimal("45"), Decimal("65"))]
    totals = rules.price_cart(items)
    assert totals.total == Decimal("195.00")
    assert totals.tax == Decimal("0")
