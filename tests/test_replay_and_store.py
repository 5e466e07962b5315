"""Tests for the effect functions, full replay, and the store's apply contract."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from pos_ledger import constants, data_manager, errors, replay
from pos_ledger import store as store_module
from pos_ledger.store import LedgerStore, LedgerUpdate, find_open_shift


def _txn(
    transaction_type: constants.TransactionType,
    amount: str,
    *,
    payment_method: constants.PaymentMethod = constants.PaymentMethod.CASH,
    status: constants.TransactionStatus = constants.TransactionStatus.COMPLETED,
    **kwargs,
) -> data_manager.TransactionRow:
    defaults = {
        "transaction_id": f"T-{transaction_type.value}-{amount}",
        "timestamp_iso": "2026-01-01T10:00:00+00:00",
        "description": "",
    }
    defaults.update(kwargs)
    return data_manager.TransactionRow(
        transaction_type=transaction_type.value,
        amount=Decimal(amount),
        payment_method=payment_method.value,
        status=status.value,
        **defaults,
    )


def _item(quantity: str, product_id: str = "P1") -> data_manager.LineItem:
    return data_manager.LineItem(
        product_id=product_id,
        product_name="Cable",
        quantity=Decimal(quantity),
        cost_price=Decimal("45"),
        sell_price=Decimal("65"),
    )


def _product(quantity: str = "10", opening: str = "10") -> data_manager.ProductRow:
    return data_manager.ProductRow(
        product_id="P1",
        sku="P1",
        product_name="Cable",
        category="",
        unit=constants.ProductUnit.PIECE.value,
        quantity=Decimal(quantity),
        opening_quantity=Decimal(opening),
        cost_price=Decimal("45"),
        sell_price=Decimal("65"),
        min_stock_alert=Decimal("0"),
    )


def _shift(shift_id: str, status: constants.ShiftStatus = constants.ShiftStatus.OPEN) -> data_manager.ShiftRow:
    return data_manager.ShiftRow(
        shift_id=shift_id,
        user_id="U-ADMIN",
        user_name="Administrator",
        start_time_iso="2026-01-01T08:00:00+00:00",
        start_cash=Decimal("0"),
        status=status.value,
    )


def _entry(entry_id: str = "ACT-1") -> data_manager.ActivityLogEntry:
    return data_manager.ActivityLogEntry(
        entry_id=entry_id,
        timestamp_iso="2026-01-01T10:00:00+00:00",
        user_id="U-ADMIN",
        user_name="Administrator",
        action="TEST",
        details="",
    )


# ---------------------------------------------------------------------------
# Effect functions
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("transaction_type", "expected"),
    [
        (constants.TransactionType.SALE, Decimal("100")),
        (constants.TransactionType.CAPITAL, Decimal("100")),
        (constants.TransactionType.PURCHASE, Decimal("-100")),
        (constants.TransactionType.EXPENSE, Decimal("-100")),
        (constants.TransactionType.WITHDRAWAL, Decimal("-100")),
        (constants.TransactionType.ADJUSTMENT, Decimal("0")),
        (constants.TransactionType.SHIFT_OPEN, Decimal("0")),
    ],
)
def test_cash_contribution_by_type(transaction_type, expected):
    """Each completed cash transaction moves treasury in its own direction."""

    assert replay.cash_contribution(_txn(transaction_type, "100")) == expected


def test_deferred_transactions_contribute_no_cash():
    sale = _txn(constants.TransactionType.SALE, "100", payment_method=constants.PaymentMethod.DEFERRED)
    assert replay.cash_contribution(sale) == Decimal("0")


@pytest.mark.parametrize(
    "status", [constants.TransactionStatus.PENDING, constants.TransactionStatus.REJECTED]
)
def test_non_completed_transactions_have_no_effect(status):
    expense = _txn(constants.TransactionType.EXPENSE, "3000", status=status)
    assert replay.cash_contribution(expense) == Decimal("0")
    assert replay.stock_effects(expense) == {}
    assert replay.balance_effect(expense) is None


def test_return_effects_negate_the_original_sale():
    """A return's effects are the exact negation of the sale it reverses."""

    sale = _txn(
        constants.TransactionType.SALE,
        "130",
        payment_method=constants.PaymentMethod.DEFERRED,
        related_id="C-BIZ",
        items=(_item("2"),),
    )
    returned = _txn(
        constants.TransactionType.RETURN,
        "130",
        payment_method=constants.PaymentMethod.DEFERRED,
        related_id="C-BIZ",
        category=constants.TransactionType.SALE.value,
        linked_transaction_id=sale.transaction_id,
        items=sale.items,
    )

    assert replay.stock_effects(sale) == {"P1": Decimal("-2")}
    assert replay.stock_effects(returned) == {"P1": Decimal("2")}
    assert replay.balance_effect(sale).delta == -replay.balance_effect(returned).delta


def test_direct_sale_has_no_stock_effect():
    sale = _txn(constants.TransactionType.SALE, "65", items=(_item("1"),), is_direct_sale=True)
    assert replay.stock_effects(sale) == {}
    assert replay.cash_contribution(sale) == Decimal("65")


def test_adjustment_lines_are_signed():
    adjustment = _txn(constants.TransactionType.ADJUSTMENT, "135", items=(_item("-3"),))
    assert replay.stock_effects(adjustment) == {"P1": Decimal("-3")}


def test_settlement_balance_effects():
    customer = _txn(
        constants.TransactionType.SETTLEMENT,
        "50",
        category=constants.PartyType.CUSTOMER.value,
        related_id="C-BIZ",
    )
    supplier = _txn(
        constants.TransactionType.SETTLEMENT,
        "50",
        category=constants.PartyType.SUPPLIER.value,
        related_id="SUP-1",
    )
    assert replay.balance_effect(customer).delta == Decimal("50")
    assert replay.balance_effect(supplier).delta == Decimal("-50")
    assert replay.cash_contribution(customer) == Decimal("50")
    assert replay.cash_contribution(supplier) == Decimal("-50")


# ---------------------------------------------------------------------------
# Replay and verification
# ---------------------------------------------------------------------------


def test_replay_folds_log_from_opening_values():
    transactions = [
        _txn(constants.TransactionType.SALE, "65", transaction_id="1001", items=(_item("1"),), shift_id="SH-0001"),
        _txn(constants.TransactionType.PURCHASE, "225", transaction_id="PUR-2", items=(_item("5"),)),
    ]
    result = replay.replay(
        opening_balance=Decimal("50000"),
        products=[_product()],
        customers=[],
        suppliers=[],
        transactions=transactions,
    )
    assert result.treasury_balance == Decimal("49840")
    assert result.product_quantities == {"P1": Decimal("14")}
    assert result.shift_sales == {"SH-0001": {"Cash": Decimal("65")}}
    assert result.discrepancies == []


def test_replay_reports_unknown_references():
    result = replay.replay(
        opening_balance=Decimal("0"),
        products=[],
        customers=[],
        suppliers=[],
        transactions=[_txn(constants.TransactionType.SALE, "65", items=(_item("1", product_id="GONE"),))],
    )
    assert any("GONE" in problem for problem in result.discrepancies)


def test_recompute_and_verify_detects_drifted_quantity():
    """A cached quantity that disagrees with the log raises DataIntegrityError."""

    store = LedgerStore(data_manager.LedgerDocument(products=[_product(quantity="7")]))
    with pytest.raises(errors.DataIntegrityError) as excinfo:
        replay.recompute_and_verify(store)
    assert any("P1" in problem for problem in excinfo.value.discrepancies)


def test_recompute_and_verify_detects_drifted_shift_totals():
    shift = replace(_shift("SH-0001"), total_sales=Decimal("10"), sales_by_method={"Cash": Decimal("10")})
    store = LedgerStore(data_manager.LedgerDocument(shifts=[shift]))
    with pytest.raises(errors.DataIntegrityError):
        replay.recompute_and_verify(store)


def test_recompute_and_verify_accepts_consistent_store():
    sale = _txn(constants.TransactionType.SALE, "65", items=(_item("1"),))
    store = LedgerStore(data_manager.LedgerDocument(products=[_product(quantity="9")], transactions=[sale]))
    result = replay.recompute_and_verify(store)
    assert result.treasury_balance == store.treasury_balance


# ---------------------------------------------------------------------------
# Store contract
# ---------------------------------------------------------------------------


def test_find_open_shift_rejects_two_open_shifts():
    with pytest.raises(errors.DuplicateShiftOpen):
        find_open_shift([_shift("SH-0001"), _shift("SH-0002")])


def test_store_refuses_loading_two_open_shifts():
    with pytest.raises(errors.DuplicateShiftOpen):
        LedgerStore(data_manager.LedgerDocument(shifts=[_shift("SH-0001"), _shift("SH-0002")]))


def test_store_refuses_duplicate_transaction_ids():
    sale = _txn(constants.TransactionType.SALE, "65")
    with pytest.raises(errors.BusinessRuleViolation):
        LedgerStore(data_manager.LedgerDocument(transactions=[sale, sale]))


def test_apply_rejects_duplicate_id_without_mutating():
    """A rejected update leaves every collection untouched."""

    sale = _txn(constants.TransactionType.SALE, "65")
    store = LedgerStore(data_manager.LedgerDocument(transactions=[sale]))
    update = LedgerUpdate(
        action="SALE",
        details="dup",
        transactions=(sale,),
        products=(_product(),),
        cash_delta=Decimal("65"),
    )

    with pytest.raises(errors.BusinessRuleViolation):
        store.apply(update, _entry())

    assert store.list_products() == []
    assert store.list_activity() == []
    assert store.treasury_balance == Decimal("50065")


def test_apply_rejects_second_open_shift():
    store = LedgerStore(data_manager.LedgerDocument(shifts=[_shift("SH-0001")]))
    with pytest.raises(errors.DuplicateShiftOpen):
        store.apply(LedgerUpdate(action="SHIFT_OPEN", details="", shifts=(_shift("SH-0002"),)), _entry())
    assert [shift.shift_id for shift in store.list_shifts()] == ["SH-0001"]


def test_apply_only_replaces_pending_transactions():
    expense = _txn(constants.TransactionType.EXPENSE, "100")
    store = LedgerStore(data_manager.LedgerDocument(transactions=[expense]))
    rejected = replace(expense, status=constants.TransactionStatus.REJECTED.value)
    with pytest.raises(errors.BusinessRuleViolation):
        store.apply(LedgerUpdate(action="REJECT", details="", replaced_transactions=(rejected,)), _entry())


def test_next_transaction_id_uses_type_prefix():
    store = LedgerStore()
    assert store.next_transaction_id(constants.TransactionType.EXPENSE) == "EXP-000001"
    assert store.next_shift_id() == "SH-0001"
    assert store.next_quotation_id() == "QT-0001"


def test_get_unknown_product_raises_missing_reference():
    with pytest.raises(errors.MissingReferenceError):
        LedgerStore().get_product("nope")


def test_store_module_exports_only_live_names():
    """Every exported store name exists and is part of the apply contract."""

    assert sorted(store_module.__all__) == ["LedgerStore", "LedgerUpdate", "find_open_shift"]
    assert all(hasattr(store_module, name) for name in store_module.__all__)
