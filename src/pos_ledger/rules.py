"""Balance propagation rules.

Each ``plan_*`` function validates a command against the current store and
returns a :class:`~pos_ledger.store.LedgerUpdate` carrying the new
transaction, the replacement aggregate rows, and the treasury cash delta. No
function here mutates the store; a raised exception therefore leaves every
collection exactly as it was.

Aggregate changes are derived with the same effect functions that
:mod:`pos_ledger.replay` folds over the log, so the incremental path and the
from-scratch path cannot disagree.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from . import log
from .commands import (
    CapitalCommand,
    CartLine,
    ConvertQuotationCommand,
    ExpenseCommand,
    PurchaseCommand,
    QuotationCommand,
    SaleCommand,
    SettlementCommand,
    StockAdjustmentCommand,
)
from .constants import (
    CapitalMovement,
    CustomerType,
    PartyType,
    PaymentMethod,
    QuotationStatus,
    TransactionStatus,
    TransactionType,
)
from .data_manager import (
    CustomerRow,
    LineItem,
    ProductRow,
    QuotationRow,
    SupplierRow,
    TransactionRow,
    UserRow,
)
from .errors import (
    BelowCostUnconfirmed,
    BusinessRuleViolation,
    ConsumerCannotDefer,
    CreditLimitExceeded,
    InsufficientStock,
    MissingDueDate,
    NoOpenShift,
)
from .replay import ZERO, balance_effect, cash_contribution, stock_effects
from .shifts import record_sale_against_shift
from .store import LedgerStore, LedgerUpdate

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def require_positive_quantity(quantity: Decimal) -> None:
    """Validate that a quantity is strictly positive.

    Raises:
        ValueError: If ``quantity`` is zero or negative.
    """
    if quantity <= Decimal("0"):
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be greater than zero")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is nonnegative.

    Raises:
        ValueError: If ``amount`` is less than zero.
    """
    if amount < Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def require_positive_money(amount: Decimal) -> None:
    if amount <= Decimal("0"):
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be greater than zero")


def require_discount_percent(discount: Decimal) -> None:
    if discount < Decimal("0") or discount > HUNDRED:
        log.error("Discount validation failed: %s", discount)
        raise ValueError("Discount must be between 0 and 100 percent")


def requires_approval(amount: Decimal, threshold: Decimal) -> bool:
    """Expenses strictly above ``threshold`` wait for approval."""
    return amount > threshold


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CartTotals:
    """Price breakdown of a cart.

    ``net`` is ``subtotal - discount``; ``tax`` is charged on ``net``;
    ``total`` is rounded to cents.
    """

    subtotal: Decimal
    discount: Decimal
    net: Decimal
    tax: Decimal
    total: Decimal


def price_cart(items: Iterable[LineItem], tax_rate: Decimal = ZERO) -> CartTotals:
    """Price a cart of line snapshots with a percentage ``tax_rate``."""

    subtotal = ZERO
    net = ZERO
    for item in items:
        subtotal += item.gross_total
        net += item.net_total
    tax = net * tax_rate / HUNDRED
    total = (net + tax).quantize(CENT, rounding=ROUND_HALF_UP)
    return CartTotals(subtotal=subtotal, discount=subtotal - net, net=net, tax=tax, total=total)


def build_sale_items(store: LedgerStore, lines: Sequence[CartLine]) -> Tuple[LineItem, ...]:
    """Snapshot product prices for each cart line.

    Raises:
        BusinessRuleViolation: If ``lines`` is empty.
        MissingReferenceError: If a line names an unknown product.
        ValueError: If a quantity, discount, or price override is invalid.
    """

    if not lines:
        log.warning("Rejected empty cart")
        raise BusinessRuleViolation("A cart needs at least one line")

    items: List[LineItem] = []
    for line in lines:
        product = store.get_product(line.product_id)
        require_positive_quantity(line.quantity)
        require_discount_percent(line.discount)
        if line.unit_price is not None:
            require_nonnegative_money(line.unit_price)
        items.append(
            LineItem(
                product_id=product.product_id,
                product_name=product.product_name,
                quantity=line.quantity,
                cost_price=product.cost_price,
                sell_price=product.sell_price if line.unit_price is None else line.unit_price,
                discount=line.discount,
            )
        )
    return tuple(items)


def build_purchase_items(store: LedgerStore, lines: Sequence[CartLine]) -> Tuple[LineItem, ...]:
    """Snapshot purchase lines; ``unit_price`` overrides the cost price."""

    if not lines:
        log.warning("Rejected empty purchase")
        raise BusinessRuleViolation("A purchase needs at least one line")

    items: List[LineItem] = []
    for line in lines:
        product = store.get_product(line.product_id)
        require_positive_quantity(line.quantity)
        if line.unit_price is not None:
            require_nonnegative_money(line.unit_price)
        items.append(
            LineItem(
                product_id=product.product_id,
                product_name=product.product_name,
                quantity=line.quantity,
                cost_price=product.cost_price if line.unit_price is None else line.unit_price,
                sell_price=product.sell_price,
            )
        )
    return tuple(items)


# ---------------------------------------------------------------------------
# Effect propagation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Effects:
    """Replacement rows and cash delta produced by newly effective transactions."""

    products: Tuple[ProductRow, ...] = ()
    customers: Tuple[CustomerRow, ...] = ()
    suppliers: Tuple[SupplierRow, ...] = ()
    cash_delta: Decimal = ZERO


def propagate_effects(store: LedgerStore, transactions: Iterable[TransactionRow]) -> Effects:
    """Apply stock, balance, and cash effects of ``transactions`` to copies of store rows."""

    products: Dict[str, ProductRow] = {}
    customers: Dict[str, CustomerRow] = {}
    suppliers: Dict[str, SupplierRow] = {}
    cash_delta = ZERO

    for transaction in transactions:
        cash_delta += cash_contribution(transaction)
        for product_id, delta in stock_effects(transaction).items():
            current = products.get(product_id) or store.get_product(product_id)
            products[product_id] = replace(current, quantity=current.quantity + delta)
        effect = balance_effect(transaction)
        if effect is None:
            continue
        if effect.party_type is PartyType.CUSTOMER:
            customer = customers.get(effect.party_id) or store.get_customer(effect.party_id)
            customers[effect.party_id] = replace(customer, balance=customer.balance + effect.delta)
        else:
            supplier = suppliers.get(effect.party_id) or store.get_supplier(effect.party_id)
            suppliers[effect.party_id] = replace(supplier, balance=supplier.balance + effect.delta)

    for product in products.values():
        if product.quantity < ZERO:
            log.warning("Product '%s' stock goes negative (%s)", product.product_id, product.quantity)

    return Effects(
        products=tuple(products.values()),
        customers=tuple(customers.values()),
        suppliers=tuple(suppliers.values()),
        cash_delta=cash_delta,
    )


def _current_shift_id(store: LedgerStore) -> Optional[str]:
    shift = store.open_shift()
    return shift.shift_id if shift is not None else None


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def _check_deferral(customer: CustomerRow, payment_method: PaymentMethod, due_date: Optional[object]) -> None:
    if payment_method is not PaymentMethod.DEFERRED:
        return
    if customer.customer_type == CustomerType.CONSUMER.value:
        log.warning("Rejected deferred payment for consumer customer '%s'", customer.customer_id)
        raise ConsumerCannotDefer(f"Customer '{customer.customer_id}' is a consumer and must pay now")
    if due_date is None:
        log.warning("Rejected deferred payment without due date for '%s'", customer.customer_id)
        raise MissingDueDate("Deferred payments require a due date")


def _check_stock(store: LedgerStore, items: Sequence[LineItem]) -> None:
    demand: Dict[str, Decimal] = {}
    for item in items:
        demand[item.product_id] = demand.get(item.product_id, ZERO) + item.quantity

    short = [
        product_id
        for product_id, quantity in demand.items()
        if quantity > store.get_product(product_id).quantity
    ]
    if not short:
        return
    if store.settings.prevent_negative_stock:
        log.warning("Rejected sale; insufficient stock for %s", ", ".join(short))
        raise InsufficientStock(short)
    log.warning("Sale takes stock below zero for %s", ", ".join(short))


def _check_below_cost(items: Sequence[LineItem], acknowledged: bool) -> None:
    losing = [item.product_id for item in items if item.net_unit_price < item.cost_price]
    if not losing:
        return
    if not acknowledged:
        log.warning("Rejected sale; lines below cost not acknowledged: %s", ", ".join(losing))
        raise BelowCostUnconfirmed(losing)
    log.warning("Selling below cost with acknowledgment: %s", ", ".join(losing))


def _check_credit_limit(customer: CustomerRow, amount: Decimal, acknowledged: bool) -> None:
    # A zero credit limit means the customer has no limit configured.
    if customer.credit_limit <= ZERO:
        return
    current_debt = -customer.balance if customer.balance < ZERO else ZERO
    if current_debt + amount <= customer.credit_limit:
        return
    if not acknowledged:
        log.warning(
            "Rejected deferred sale; customer '%s' would owe %s over limit %s",
            customer.customer_id,
            current_debt + amount,
            customer.credit_limit,
        )
        raise CreditLimitExceeded(
            f"Customer '{customer.customer_id}' would exceed credit limit {customer.credit_limit}"
        )
    log.warning("Customer '%s' exceeds credit limit with acknowledgment", customer.customer_id)


def plan_sale(store: LedgerStore, command: SaleCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Plan a ``SALE``: stock out, optional customer debt, shift totals, invoice number.

    Raises:
        NoOpenShift: If no shift is open.
        MissingDueDate: For deferred sales without a due date.
        ConsumerCannotDefer: For deferred sales to consumer customers.
        InsufficientStock: In strict mode when a product would go negative.
        BelowCostUnconfirmed: If a line sells below cost without acknowledgment.
        CreditLimitExceeded: If deferred debt passes the limit without acknowledgment.
        MissingReferenceError: For unknown customers or products.
    """

    customer = store.get_customer(command.customer_id)
    payment_method = PaymentMethod(command.payment_method)
    _check_deferral(customer, payment_method, command.due_date)

    shift = store.open_shift()
    if shift is None:
        log.warning("Rejected sale; no shift is open")
        raise NoOpenShift("Open a shift before selling")

    items = build_sale_items(store, command.lines)
    if not command.is_direct_sale:
        _check_stock(store, items)
    _check_below_cost(items, command.below_cost_acknowledged)

    totals = price_cart(items, store.settings.tax_rate)
    amount = totals.total if command.paid_amount is None else command.paid_amount
    require_nonnegative_money(amount)
    if payment_method is PaymentMethod.DEFERRED:
        _check_credit_limit(customer, amount, command.credit_limit_acknowledged)

    settings = store.settings
    invoice_id = command.invoice_id or str(settings.next_invoice_number)
    if store.has_transaction(invoice_id):
        log.warning("Rejected sale; invoice id '%s' already used", invoice_id)
        raise BusinessRuleViolation(f"Invoice id '{invoice_id}' already exists")

    transaction = TransactionRow(
        transaction_id=invoice_id,
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.SALE.value,
        amount=amount,
        payment_method=payment_method.value,
        status=TransactionStatus.COMPLETED.value,
        description=command.notes or f"Sale to {customer.customer_name}",
        related_id=customer.customer_id,
        due_date=command.due_date.isoformat() if command.due_date is not None else None,
        is_direct_sale=command.is_direct_sale,
        shift_id=shift.shift_id,
        user_id=actor.user_id,
        items=items,
    )
    effects = propagate_effects(store, (transaction,))
    updated_shift = record_sale_against_shift(
        shift, amount, payment_method.value, open_shift_id=_current_shift_id(store)
    )

    return LedgerUpdate(
        action="SALE",
        details=f"Invoice {invoice_id} for {customer.customer_name}: {amount} ({payment_method.value})",
        transactions=(transaction,),
        products=effects.products,
        customers=effects.customers,
        shifts=(updated_shift,),
        settings=replace(settings, next_invoice_number=settings.next_invoice_number + 1),
        cash_delta=effects.cash_delta,
    )


# ---------------------------------------------------------------------------
# Purchases, adjustments, and cash movements
# ---------------------------------------------------------------------------


def plan_purchase(
    store: LedgerStore, command: PurchaseCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Plan a ``PURCHASE``: stock in, supplier credit when deferred, cash out otherwise.

    Raises:
        MissingDueDate: For deferred purchases without a due date.
        MissingReferenceError: For unknown suppliers or products.
    """

    supplier = store.get_supplier(command.supplier_id)
    payment_method = PaymentMethod(command.payment_method)
    if payment_method is PaymentMethod.DEFERRED and command.due_date is None:
        log.warning("Rejected deferred purchase without due date from '%s'", supplier.supplier_id)
        raise MissingDueDate("Deferred purchases require a due date")

    items = build_purchase_items(store, command.lines)
    total = sum((item.cost_total for item in items), ZERO) if command.total is None else command.total
    require_nonnegative_money(total)

    transaction = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.PURCHASE),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.PURCHASE.value,
        amount=total,
        payment_method=payment_method.value,
        status=TransactionStatus.COMPLETED.value,
        description=command.notes or f"Purchase from {supplier.supplier_name}",
        related_id=supplier.supplier_id,
        due_date=command.due_date.isoformat() if command.due_date is not None else None,
        shift_id=_current_shift_id(store),
        user_id=actor.user_id,
        items=items,
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action="PURCHASE",
        details=f"{transaction.transaction_id} from {supplier.supplier_name}: {total} ({payment_method.value})",
        transactions=(transaction,),
        products=effects.products,
        suppliers=effects.suppliers,
        cash_delta=effects.cash_delta,
    )


def plan_adjustment(
    store: LedgerStore, command: StockAdjustmentCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Plan an ``ADJUSTMENT`` carrying a signed quantity; strict mode never blocks it.

    Raises:
        ValueError: If ``quantity_diff`` is zero.
    """

    product = store.get_product(command.product_id)
    if command.quantity_diff == ZERO:
        log.error("Stock adjustment for '%s' has zero difference", product.product_id)
        raise ValueError("Adjustment quantity must not be zero")

    item = LineItem(
        product_id=product.product_id,
        product_name=product.product_name,
        quantity=command.quantity_diff,
        cost_price=product.cost_price,
        sell_price=product.sell_price,
    )
    transaction = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.ADJUSTMENT),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.ADJUSTMENT.value,
        amount=abs(command.quantity_diff) * product.cost_price,
        payment_method=PaymentMethod.CASH.value,
        status=TransactionStatus.COMPLETED.value,
        description=command.reason,
        category="stock",
        shift_id=_current_shift_id(store),
        user_id=actor.user_id,
        items=(item,),
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action="ADJUSTMENT",
        details=f"{product.product_name}: {command.quantity_diff:+} ({command.reason})",
        transactions=(transaction,),
        products=effects.products,
    )


def plan_expense(store: LedgerStore, command: ExpenseCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Plan an ``EXPENSE``; amounts over the approval threshold wait as pending."""

    require_positive_money(command.amount)
    threshold = store.settings.approval_threshold
    status = TransactionStatus.PENDING if requires_approval(command.amount, threshold) else TransactionStatus.COMPLETED
    if status is TransactionStatus.PENDING:
        log.info("Expense of %s exceeds approval threshold %s; held as pending", command.amount, threshold)

    transaction = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.EXPENSE),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.EXPENSE.value,
        amount=command.amount,
        payment_method=PaymentMethod.CASH.value,
        status=status.value,
        description=command.description,
        category=command.category,
        shift_id=_current_shift_id(store),
        user_id=actor.user_id,
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action="EXPENSE",
        details=f"{transaction.transaction_id} {command.category}: {command.amount} ({status.value})",
        transactions=(transaction,),
        cash_delta=effects.cash_delta,
    )


def plan_settlement(
    store: LedgerStore, command: SettlementCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Plan a cash ``SETTLEMENT`` of customer or supplier debt."""

    require_positive_money(command.amount)
    party_type = PartyType(command.party_type)
    if party_type is PartyType.CUSTOMER:
        party_name = store.get_customer(command.party_id).customer_name
        default_notes = f"Payment received from {party_name}"
    else:
        party_name = store.get_supplier(command.party_id).supplier_name
        default_notes = f"Payment made to {party_name}"

    transaction = TransactionRow(
        transaction_id=store.next_transaction_id(TransactionType.SETTLEMENT),
        timestamp_iso=now.isoformat(),
        transaction_type=TransactionType.SETTLEMENT.value,
        amount=command.amount,
        payment_method=PaymentMethod.CASH.value,
        status=TransactionStatus.COMPLETED.value,
        description=command.notes or default_notes,
        category=party_type.value,
        related_id=command.party_id,
        shift_id=_current_shift_id(store),
        user_id=actor.user_id,
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action="SETTLEMENT",
        details=f"{party_type.value} {party_name}: {command.amount}",
        transactions=(transaction,),
        customers=effects.customers,
        suppliers=effects.suppliers,
        cash_delta=effects.cash_delta,
    )


def plan_capital(store: LedgerStore, command: CapitalCommand, *, now: datetime, actor: UserRow) -> LedgerUpdate:
    """Plan an owner deposit (``CAPITAL``) or withdrawal (``WITHDRAWAL``)."""

    require_positive_money(command.amount)
    kind = CapitalMovement(command.kind)
    transaction_type = TransactionType.CAPITAL if kind is CapitalMovement.DEPOSIT else TransactionType.WITHDRAWAL

    transaction = TransactionRow(
        transaction_id=store.next_transaction_id(transaction_type),
        timestamp_iso=now.isoformat(),
        transaction_type=transaction_type.value,
        amount=command.amount,
        payment_method=PaymentMethod.CASH.value,
        status=TransactionStatus.COMPLETED.value,
        description=command.description or f"Capital {kind.value}",
        category="capital",
        shift_id=_current_shift_id(store),
        user_id=actor.user_id,
    )
    effects = propagate_effects(store, (transaction,))
    return LedgerUpdate(
        action=transaction_type.value,
        details=f"{transaction.transaction_id}: {command.amount}",
        transactions=(transaction,),
        cash_delta=effects.cash_delta,
    )


# ---------------------------------------------------------------------------
# Quotations
# ---------------------------------------------------------------------------


def plan_quotation(
    store: LedgerStore, command: QuotationCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Snapshot a priced quote for a customer; no stock, balance, or cash moves."""

    customer = store.get_customer(command.customer_id)
    items = build_sale_items(store, command.lines)
    totals = price_cart(items, store.settings.tax_rate)
    quotation = QuotationRow(
        quotation_id=store.next_quotation_id(),
        timestamp_iso=now.isoformat(),
        customer_id=customer.customer_id,
        customer_name=customer.customer_name,
        total_amount=totals.total,
        status=QuotationStatus.PENDING.value,
        items=items,
    )
    return LedgerUpdate(
        action="QUOTATION",
        details=f"{quotation.quotation_id} for {customer.customer_name}: {totals.total}",
        quotations=(quotation,),
    )


def plan_convert_quotation(
    store: LedgerStore, command: ConvertQuotationCommand, *, now: datetime, actor: UserRow
) -> LedgerUpdate:
    """Turn a pending quotation into a sale at the quoted prices.

    Raises:
        BusinessRuleViolation: If the quotation was already converted.
    """

    quotation = store.get_quotation(command.quotation_id)
    if quotation.status != QuotationStatus.PENDING.value:
        log.warning("Rejected conversion of quotation '%s' (%s)", quotation.quotation_id, quotation.status)
        raise BusinessRuleViolation(f"Quotation '{quotation.quotation_id}' is already {quotation.status}")

    sale = SaleCommand(
        lines=tuple(
            CartLine(
                product_id=item.product_id,
                quantity=item.quantity,
                discount=item.discount,
                unit_price=item.sell_price,
            )
            for item in quotation.items
        ),
        customer_id=quotation.customer_id,
        payment_method=command.payment_method,
        paid_amount=quotation.total_amount if command.paid_amount is None else command.paid_amount,
        is_direct_sale=command.is_direct_sale,
        due_date=command.due_date,
        below_cost_acknowledged=command.below_cost_acknowledged,
        credit_limit_acknowledged=command.credit_limit_acknowledged,
        notes=f"Converted from quotation {quotation.quotation_id}",
    )
    update = plan_sale(store, sale, now=now, actor=actor)
    converted = replace(
        quotation,
        status=QuotationStatus.CONVERTED.value,
        converted_transaction_id=update.transaction.transaction_id,
    )
    return replace(
        update,
        action="CONVERT_QUOTATION",
        details=f"{quotation.quotation_id} -> {update.details}",
        quotations=(converted,),
    )
