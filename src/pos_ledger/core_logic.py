"""Business logic layer for the POS ledger.

This module orchestrates the ledger engine. Every public operation follows
the same pipeline: resolve the acting user and timestamp, ask the rules
modules to plan a :class:`~pos_ledger.store.LedgerUpdate`, hand the update
to the store for an atomic apply, and append an activity-log entry. Nothing
touches the workbook until :func:`persist_context` writes the whole document
back through the Data Access Layer (DAL).
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from openpyxl.workbook import Workbook

from . import approvals, data_manager, log, replay, reversal, rules, shifts
from .commands import (
    ApprovalCommand,
    CapitalCommand,
    CloseShiftCommand,
    ConvertQuotationCommand,
    ExpenseCommand,
    OpenShiftCommand,
    PurchaseCommand,
    QuotationCommand,
    ReturnCommand,
    SaleCommand,
    SettlementCommand,
    StockAdjustmentCommand,
)
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    CustomerType,
    ProductUnit,
    TransactionType,
    UserRole,
)
from .errors import BusinessRuleViolation, MissingReferenceError
from .replay import ZERO
from .rules import require_nonnegative_money, require_positive_quantity
from .store import LedgerStore, LedgerUpdate


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, the workbook handle, and the live store."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    store: LedgerStore


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Resolve optional timestamps into consistent, timezone-aware values.

    Args:
        candidate (datetime | None): Caller-provided timestamp, usually sourced
            from a command object.

    Returns:
        datetime: ``candidate`` as-is when provided, otherwise the current UTC
            datetime generated via :func:`datetime.now`.
    """

    return candidate if candidate is not None else datetime.now(UTC)


def _resolve_actor(context: RuntimeContext, user_id: Optional[str]) -> data_manager.UserRow:
    """Return the acting user, falling back to the configured default user.

    Raises:
        MissingReferenceError: If neither id names a known user.
    """

    return context.store.get_user(user_id or context.settings.default_user_id)


def _commit(
    context: RuntimeContext,
    update: LedgerUpdate,
    *,
    actor: data_manager.UserRow,
    timestamp: datetime,
) -> LedgerUpdate:
    """Apply ``update`` to the store and record who did it."""

    entry = data_manager.ActivityLogEntry(
        entry_id=context.store.next_activity_id(),
        timestamp_iso=timestamp.isoformat(),
        user_id=actor.user_id,
        user_name=actor.full_name or actor.username,
        action=update.action,
        details=update.details,
    )
    context.store.apply(update, entry)
    log.info("Recorded %s: %s", update.action, update.details)
    for warning in update.warnings:
        log.warning("%s", warning)
    return update


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def build_store(workbook: Workbook) -> LedgerStore:
    """Load ``workbook`` into a store and verify it against a full replay.

    Raises:
        DataIntegrityError: If any cached balance disagrees with the log.
        DuplicateShiftOpen: If more than one shift is open.
    """
    store = LedgerStore(data_manager.load_document(workbook))
    replay.recompute_and_verify(store)
    return store


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings, the workbook, and a verified store.

    The helper forms the foundation for all business logic calls by resolving
    ``config.ini``, parsing settings, opening the Excel workbook, and loading
    every sheet into a :class:`~pos_ledger.store.LedgerStore`. The store is
    checked against a replay of its transaction log before it is handed out.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for ledger operations.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
        DataIntegrityError: When cached balances in the workbook have drifted
            from the transaction log.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    store = build_store(workbook)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook, store=store)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Validate workbook compatibility before mutating state.

    Raises:
        RuntimeError: If the schema version declared in the configuration does
            not match ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Write the store back into the workbook and save it to disk.

    Every sheet is rewritten from the store snapshot, so the saved file always
    reflects a state that passed through :meth:`LedgerStore.apply`.
    """
    data_manager.write_document(context.workbook, context.store.to_document())
    data_manager.save_workbook(
        context.workbook,
        destination=context.settings.data_file,
    )
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    Returns:
        RuntimeContext: Fresh context with a newly opened workbook and a store
            rebuilt from it.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    store = build_store(workbook)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook, store=store)


def create_backup(context: RuntimeContext, destination: Path) -> Path:
    """Save the current ledger state as a standalone workbook at ``destination``."""

    data_manager.write_document(context.workbook, context.store.to_document())
    data_manager.save_workbook(context.workbook, destination=destination)
    resolved = Path(destination).expanduser().resolve()
    log.info("Wrote backup '%s'", resolved)
    return resolved


def restore_backup(context: RuntimeContext, source: Path) -> RuntimeContext:
    """Replace the configured workbook with the backup at ``source``.

    The backup is verified before anything is overwritten; a backup whose
    balances disagree with its own log is refused.

    Raises:
        FileNotFoundError: If ``source`` does not exist.
        DataIntegrityError: If the backup fails verification.
    """
    workbook = data_manager.open_workbook(source)
    store = build_store(workbook)
    data_manager.save_workbook(workbook, destination=context.settings.data_file)
    log.info("Restored workbook '%s' from backup '%s'", context.settings.data_file, source)
    return RuntimeContext(settings=context.settings, workbook=workbook, store=store)


def verify_ledger(context: RuntimeContext) -> replay.ReplayResult:
    """Replay the log and raise :class:`DataIntegrityError` on any drift."""

    return replay.recompute_and_verify(context.store)


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


def complete_sale(context: RuntimeContext, command: SaleCommand) -> data_manager.TransactionRow:
    """Validate and record a ``SALE`` against the open shift.

    Stock falls for every line unless the sale is direct, deferred sales add
    to the customer's debt, the shift's per-method totals grow, and the next
    invoice number advances.

    Args:
        context (RuntimeContext): Runtime context holding the live store.
        command (SaleCommand): Structured sale intent.

    Returns:
        data_manager.TransactionRow: The recorded sale.

    Raises:
        NoOpenShift: If no shift is open.
        MissingDueDate: If a deferred sale carries no due date.
        ConsumerCannotDefer: If a consumer customer tries to defer.
        InsufficientStock: In strict mode when stock would go negative.
        BelowCostUnconfirmed: When lines are priced under cost without
            acknowledgment.
        CreditLimitExceeded: When deferred debt passes the credit limit
            without acknowledgment.
        MissingReferenceError: When the customer or a product is unknown.
        ValueError: When quantities, discounts, or amounts fail validation.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_sale(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def complete_purchase(context: RuntimeContext, command: PurchaseCommand) -> data_manager.TransactionRow:
    """Validate and record a ``PURCHASE``.

    Stock rises for every line. Deferred purchases add to the supplier's
    balance; any other payment method takes the total out of the treasury.

    Raises:
        MissingDueDate: If a deferred purchase carries no due date.
        MissingReferenceError: When the supplier or a product is unknown.
        ValueError: When quantities or amounts fail validation.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_purchase(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def reverse_transaction(context: RuntimeContext, command: ReturnCommand) -> data_manager.TransactionRow:
    """Record a ``RETURN`` that exactly negates a completed sale or purchase.

    Raises:
        InvalidReversal: If the target is not a completed sale or purchase, or
            was already returned.
        MissingReferenceError: When the original transaction id is unknown.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = reversal.plan_reversal(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def record_stock_adjustment(
    context: RuntimeContext, command: StockAdjustmentCommand
) -> data_manager.TransactionRow:
    """Record a signed manual stock correction; strict mode never blocks it."""

    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_adjustment(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def record_expense(context: RuntimeContext, command: ExpenseCommand) -> data_manager.TransactionRow:
    """Record an ``EXPENSE``.

    Amounts above the store's approval threshold are held as pending and do
    not touch the treasury until approved.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_expense(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def approve_expense(context: RuntimeContext, command: ApprovalCommand) -> data_manager.TransactionRow:
    """Move a pending expense to completed and apply its cash effect.

    Raises:
        InvalidApprovalTransition: If the transaction is not pending.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = approvals.plan_approve(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def reject_expense(context: RuntimeContext, command: ApprovalCommand) -> data_manager.TransactionRow:
    """Move a pending expense to rejected; it never affects any balance.

    Raises:
        InvalidApprovalTransition: If the transaction is not pending.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = approvals.plan_reject(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def settle_debt(context: RuntimeContext, command: SettlementCommand) -> data_manager.TransactionRow:
    """Record a cash payment from a customer or to a supplier."""

    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_settlement(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def record_capital_movement(context: RuntimeContext, command: CapitalCommand) -> data_manager.TransactionRow:
    """Record an owner deposit or withdrawal of treasury cash."""

    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_capital(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


def open_shift(context: RuntimeContext, command: OpenShiftCommand) -> data_manager.ShiftRow:
    """Open a cashier shift for the acting user.

    Raises:
        ShiftAlreadyOpen: If another shift is open.
        ValueError: If the start cash is negative.
    """
    require_nonnegative_money(command.start_cash)
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = shifts.plan_open_shift(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).shift


def close_shift(context: RuntimeContext, command: CloseShiftCommand) -> data_manager.ShiftRow:
    """Close the open shift with the counted drawer cash.

    The returned shift carries ``expected_cash`` and ``end_cash``; use
    :func:`pos_ledger.shifts.shift_variance` for the difference. A variance
    is logged as a warning and never blocks the close.

    Raises:
        NoOpenShift: If no shift is open.
    """
    require_nonnegative_money(command.counted_cash)
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = shifts.plan_close_shift(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).shift


def create_quotation(context: RuntimeContext, command: QuotationCommand) -> data_manager.QuotationRow:
    """Snapshot a priced quote; no stock, balance, or cash moves."""

    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_quotation(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).quotation


def convert_quotation(context: RuntimeContext, command: ConvertQuotationCommand) -> data_manager.TransactionRow:
    """Turn a pending quotation into a sale and mark it converted.

    The sale follows every rule of :func:`complete_sale`; the quotation and
    the sale are committed together or not at all.

    Raises:
        BusinessRuleViolation: If the quotation was already converted.
    """
    timestamp = _resolve_timestamp(command.timestamp)
    actor = _resolve_actor(context, command.user_id)
    update = rules.plan_convert_quotation(context.store, command, now=timestamp, actor=actor)
    return _commit(context, update, actor=actor, timestamp=timestamp).transaction


# ---------------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------------


_PRODUCT_LOCKED_FIELDS = {"product_id", "quantity", "opening_quantity"}


def add_product(
    context: RuntimeContext,
    *,
    product_id: str,
    product_name: str,
    sell_price: Decimal,
    cost_price: Decimal = ZERO,
    sku: Optional[str] = None,
    category: str = "",
    unit: str = ProductUnit.PIECE.value,
    quantity: Decimal = ZERO,
    min_stock_alert: Decimal = ZERO,
    user_id: Optional[str] = None,
) -> data_manager.ProductRow:
    """Register a new product whose opening quantity is ``quantity``.

    Raises:
        BusinessRuleViolation: If the product id or SKU is already taken.
        ValueError: If a price or quantity is negative.
    """
    store = context.store
    sku = sku or product_id
    if store.has_product(product_id):
        log.warning("Rejected duplicate product id '%s'", product_id)
        raise BusinessRuleViolation(f"Product '{product_id}' already exists")
    if store.has_sku(sku):
        log.warning("Rejected duplicate SKU '%s'", sku)
        raise BusinessRuleViolation(f"SKU '{sku}' is already in use")
    require_nonnegative_money(sell_price)
    require_nonnegative_money(cost_price)
    require_nonnegative_money(quantity)
    require_nonnegative_money(min_stock_alert)
    unit = ProductUnit(unit).value

    product = data_manager.ProductRow(
        product_id=product_id,
        sku=sku,
        product_name=product_name,
        category=category,
        unit=unit,
        quantity=quantity,
        opening_quantity=quantity,
        cost_price=cost_price,
        sell_price=sell_price,
        min_stock_alert=min_stock_alert,
    )
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, user_id)
    update = LedgerUpdate(
        action="ADD_PRODUCT",
        details=f"{product_id} {product_name} (opening quantity {quantity})",
        products=(product,),
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return product


def update_product(
    context: RuntimeContext,
    product_id: str,
    *,
    user_id: Optional[str] = None,
    **changes: Any,
) -> data_manager.ProductRow:
    """Edit descriptive or price fields of a product.

    Quantities change only through ledger transactions, so ``quantity`` and
    ``opening_quantity`` are refused here.

    Raises:
        BusinessRuleViolation: If a locked field or a taken SKU is requested.
        ValueError: If a field name is unknown or a price is negative.
    """
    store = context.store
    product = store.get_product(product_id)
    known = {f.name for f in fields(data_manager.ProductRow)}
    locked = _PRODUCT_LOCKED_FIELDS.intersection(changes)
    if locked:
        log.warning("Rejected edit of locked product fields %s on '%s'", sorted(locked), product_id)
        raise BusinessRuleViolation(
            "Use a stock adjustment to change %s" % ", ".join(sorted(locked))
        )
    unknown = set(changes) - known
    if unknown:
        raise ValueError("Unknown product fields: %s" % ", ".join(sorted(unknown)))
    for price_field in ("cost_price", "sell_price", "min_stock_alert"):
        if price_field in changes:
            require_nonnegative_money(changes[price_field])
    if "sku" in changes and changes["sku"] != product.sku and store.has_sku(changes["sku"]):
        log.warning("Rejected duplicate SKU '%s'", changes["sku"])
        raise BusinessRuleViolation(f"SKU '{changes['sku']}' is already in use")

    updated = replace(product, **changes)
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, user_id)
    update = LedgerUpdate(
        action="UPDATE_PRODUCT",
        details=f"{product_id}: " + ", ".join(f"{key}={value}" for key, value in sorted(changes.items())),
        products=(updated,),
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return updated


def add_customer(
    context: RuntimeContext,
    *,
    customer_id: str,
    customer_name: str,
    phone: str = "",
    customer_type: CustomerType = CustomerType.CONSUMER,
    opening_balance: Decimal = ZERO,
    credit_limit: Decimal = ZERO,
    user_id: Optional[str] = None,
) -> data_manager.CustomerRow:
    """Register a customer; a negative ``opening_balance`` is debt they owe."""

    if context.store.has_customer(customer_id):
        log.warning("Rejected duplicate customer id '%s'", customer_id)
        raise BusinessRuleViolation(f"Customer '{customer_id}' already exists")
    require_nonnegative_money(credit_limit)
    customer = data_manager.CustomerRow(
        customer_id=customer_id,
        customer_name=customer_name,
        phone=phone,
        customer_type=CustomerType(customer_type).value,
        balance=opening_balance,
        opening_balance=opening_balance,
        credit_limit=credit_limit,
    )
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, user_id)
    update = LedgerUpdate(
        action="ADD_CUSTOMER",
        details=f"{customer_id} {customer_name} ({customer.customer_type})",
        customers=(customer,),
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return customer


def add_supplier(
    context: RuntimeContext,
    *,
    supplier_id: str,
    supplier_name: str,
    phone: str = "",
    opening_balance: Decimal = ZERO,
    user_id: Optional[str] = None,
) -> data_manager.SupplierRow:
    """Register a supplier; a positive ``opening_balance`` is what we owe them."""

    if context.store.has_supplier(supplier_id):
        log.warning("Rejected duplicate supplier id '%s'", supplier_id)
        raise BusinessRuleViolation(f"Supplier '{supplier_id}' already exists")
    supplier = data_manager.SupplierRow(
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        phone=phone,
        balance=opening_balance,
        opening_balance=opening_balance,
    )
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, user_id)
    update = LedgerUpdate(
        action="ADD_SUPPLIER",
        details=f"{supplier_id} {supplier_name}",
        suppliers=(supplier,),
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return supplier


def add_user(
    context: RuntimeContext,
    *,
    user_id: str,
    username: str,
    full_name: str,
    role: UserRole,
    acting_user_id: Optional[str] = None,
) -> data_manager.UserRow:
    if context.store.has_user(user_id):
        log.warning("Rejected duplicate user id '%s'", user_id)
        raise BusinessRuleViolation(f"User '{user_id}' already exists")
    user = data_manager.UserRow(
        user_id=user_id,
        username=username,
        full_name=full_name,
        role=UserRole(role).value,
    )
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, acting_user_id)
    update = LedgerUpdate(
        action="ADD_USER",
        details=f"{user_id} {username} ({user.role})",
        users=(user,),
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return user


def update_settings(
    context: RuntimeContext,
    *,
    user_id: Optional[str] = None,
    **changes: Any,
) -> data_manager.StoreSettings:
    """Change store settings.

    Changing ``opening_balance`` moves the treasury by the difference, which
    keeps the cached balance equal to its replay.

    Raises:
        ValueError: If a field name is unknown or a money value is negative.
    """
    current = context.store.settings
    known = {f.name for f in fields(data_manager.StoreSettings)}
    unknown = set(changes) - known
    if unknown:
        raise ValueError("Unknown settings: %s" % ", ".join(sorted(unknown)))
    for money_field in ("opening_balance", "tax_rate", "approval_threshold"):
        if money_field in changes:
            require_nonnegative_money(changes[money_field])

    updated = replace(current, **changes)
    timestamp = _resolve_timestamp(None)
    actor = _resolve_actor(context, user_id)
    update = LedgerUpdate(
        action="UPDATE_SETTINGS",
        details=", ".join(f"{key}={value}" for key, value in sorted(changes.items())),
        settings=updated,
        cash_delta=updated.opening_balance - current.opening_balance,
    )
    _commit(context, update, actor=actor, timestamp=timestamp)
    return updated


# ---------------------------------------------------------------------------
# Queries and reports
# ---------------------------------------------------------------------------


def list_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    return context.store.list_products()


def list_transactions(context: RuntimeContext) -> List[data_manager.TransactionRow]:
    return context.store.list_transactions()


def get_product(context: RuntimeContext, product_id: str) -> data_manager.ProductRow:
    """Return a product row or raise :class:`MissingReferenceError`."""

    return context.store.get_product(product_id)


def get_transaction(context: RuntimeContext, transaction_id: str) -> data_manager.TransactionRow:
    return context.store.get_transaction(transaction_id)


def calculate_inventory(context: RuntimeContext) -> Dict[str, Decimal]:
    """Return the on-hand quantity of every product keyed by ``ProductID``."""

    inventory = {product.product_id: product.quantity for product in context.store.list_products()}
    log.debug("Calculated inventory balances for %d products", len(inventory))
    return inventory


def treasury_balance(context: RuntimeContext) -> Decimal:
    """Return the cached treasury cash balance."""

    return context.store.treasury_balance


def calculate_profit_summary(context: RuntimeContext) -> Dict[str, Decimal]:
    """Produce revenue, cost of goods sold, expense, and profit totals.

    Revenue is net of sale returns and the cost of goods sold comes from the
    cost snapshots on each sale line, so later cost edits do not rewrite past
    margins. Only completed transactions count.

    Returns:
        dict[str, Decimal]: ``total_revenue``, ``total_returns``,
            ``net_revenue``, ``cost_of_goods_sold``, ``gross_profit``,
            ``total_expenses``, and ``net_profit``.
    """
    total_revenue = ZERO
    total_returns = ZERO
    cost_of_goods_sold = ZERO
    total_expenses = ZERO
    for transaction in context.store.list_transactions():
        if not replay.is_effective(transaction):
            continue
        kind = transaction.transaction_type
        if kind == TransactionType.SALE.value:
            total_revenue += transaction.amount
            cost_of_goods_sold += sum((item.cost_total for item in transaction.items), ZERO)
        elif kind == TransactionType.RETURN.value and transaction.category == TransactionType.SALE.value:
            total_returns += transaction.amount
            cost_of_goods_sold -= sum((item.cost_total for item in transaction.items), ZERO)
        elif kind == TransactionType.EXPENSE.value:
            total_expenses += transaction.amount

    net_revenue = total_revenue - total_returns
    gross_profit = net_revenue - cost_of_goods_sold
    net_profit = gross_profit - total_expenses
    log.debug(
        "Calculated profit summary: revenue=%s cogs=%s expenses=%s profit=%s",
        net_revenue,
        cost_of_goods_sold,
        total_expenses,
        net_profit,
    )
    return {
        "total_revenue": total_revenue,
        "total_returns": total_returns,
        "net_revenue": net_revenue,
        "cost_of_goods_sold": cost_of_goods_sold,
        "gross_profit": gross_profit,
        "total_expenses": total_expenses,
        "net_profit": net_profit,
    }


def calculate_receivables_payables(context: RuntimeContext) -> Dict[str, Decimal]:
    """Total what customers owe the business and what the business owes suppliers."""

    receivables = sum(
        (-customer.balance for customer in context.store.list_customers() if customer.balance < ZERO),
        ZERO,
    )
    payables = sum(
        (supplier.balance for supplier in context.store.list_suppliers() if supplier.balance > ZERO),
        ZERO,
    )
    return {"receivables": receivables, "payables": payables}


def low_stock_products(context: RuntimeContext) -> List[data_manager.ProductRow]:
    """Products whose quantity is at or below their alert level."""

    return [
        product
        for product in context.store.list_products()
        if product.quantity <= product.min_stock_alert
    ]


def pending_approvals(context: RuntimeContext) -> List[data_manager.TransactionRow]:
    return approvals.pending_transactions(context.store)


def current_shift(context: RuntimeContext) -> Optional[data_manager.ShiftRow]:
    return context.store.open_shift()


__all__ = [
    "RuntimeContext",
    "BusinessRuleViolation",
    "MissingReferenceError",
    "require_positive_quantity",
    "require_nonnegative_money",
    "build_store",
    "load_runtime_context",
    "ensure_schema_version",
    "persist_context",
    "refresh_context",
    "create_backup",
    "restore_backup",
    "verify_ledger",
    "complete_sale",
    "complete_purchase",
    "reverse_transaction",
    "record_stock_adjustment",
    "record_expense",
    "approve_expense",
    "reject_expense",
    "settle_debt",
    "record_capital_movement",
    "open_shift",
    "close_shift",
    "create_quotation",
    "convert_quotation",
    "add_product",
    "update_product",
    "add_customer",
    "add_supplier",
    "add_user",
    "update_settings",
    "list_products",
    "list_transactions",
    "get_product",
    "get_transaction",
    "calculate_inventory",
    "treasury_balance",
    "calculate_profit_summary",
    "calculate_receivables_payables",
    "low_stock_products",
    "pending_approvals",
    "current_shift",
]
