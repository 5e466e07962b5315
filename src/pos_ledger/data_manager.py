"""Data access layer for the POS ledger.

This module provides low-level helpers that read from and write to the ledger
workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Document operations: loading every sheet into typed records and writing a
   whole :class:`LedgerDocument` back, which is the only write path. Backup
   and restore are whole-document copies built on the same two calls.
"""


from __future__ import annotations

import configparser
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import openpyxl
from openpyxl.workbook import Workbook

from . import log
from .constants import (
    DEFAULT_APPROVAL_THRESHOLD,
    DEFAULT_NEXT_INVOICE_NUMBER,
    DEFAULT_OPENING_BALANCE,
    PaymentMethod,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"

SHEET_COLUMNS: Mapping[str, Sequence[str]] = {
    SheetName.PRODUCTS.value: [
        "ProductID",
        "SKU",
        "ProductName",
        "Category",
        "Unit",
        "Quantity",
        "OpeningQuantity",
        "CostPrice",
        "SellPrice",
        "MinStockAlert",
    ],
    SheetName.CUSTOMERS.value: [
        "CustomerID",
        "CustomerName",
        "Phone",
        "CustomerType",
        "Balance",
        "OpeningBalance",
        "CreditLimit",
    ],
    SheetName.SUPPLIERS.value: [
        "SupplierID",
        "SupplierName",
        "Phone",
        "Balance",
        "OpeningBalance",
    ],
    SheetName.USERS.value: [
        "UserID",
        "Username",
        "FullName",
        "Role",
    ],
    SheetName.TRANSACTION_LOG.value: [
        "TransactionID",
        "Timestamp",
        "TransactionType",
        "Amount",
        "PaymentMethod",
        "Status",
        "Description",
        "Category",
        "RelatedID",
        "LinkedTransactionID",
        "DueDate",
        "IsDirectSale",
        "ShiftID",
        "UserID",
    ],
    SheetName.TRANSACTION_ITEMS.value: [
        "TransactionID",
        "ProductID",
        "ProductName",
        "Quantity",
        "CostPrice",
        "SellPrice",
        "Discount",
    ],
    SheetName.SHIFTS.value: [
        "ShiftID",
        "UserID",
        "UserName",
        "StartTime",
        "StartCash",
        "Status",
        "EndTime",
        "EndCash",
        "ExpectedCash",
        "TotalSales",
        *[f"Sales{method.name.title()}" for method in PaymentMethod],
    ],
    SheetName.QUOTATIONS.value: [
        "QuotationID",
        "Timestamp",
        "CustomerID",
        "CustomerName",
        "TotalAmount",
        "Status",
        "ConvertedTransactionID",
    ],
    SheetName.QUOTATION_ITEMS.value: [
        "QuotationID",
        "ProductID",
        "ProductName",
        "Quantity",
        "CostPrice",
        "SellPrice",
        "Discount",
    ],
    SheetName.ACTIVITY_LOG.value: [
        "EntryID",
        "Timestamp",
        "UserID",
        "UserName",
        "Action",
        "Details",
    ],
    SheetName.SETTINGS.value: [
        "Key",
        "Value",
    ],
}


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    company_name: str
    schema_version: str
    default_user_id: str


@dataclass(frozen=True)
class StoreSettings:
    """Business settings persisted on the ``Settings`` sheet."""

    company_name: str = ""
    company_phone: str = ""
    company_address: str = ""
    next_invoice_number: int = DEFAULT_NEXT_INVOICE_NUMBER
    opening_balance: Decimal = DEFAULT_OPENING_BALANCE
    tax_rate: Decimal = Decimal("0")
    prevent_negative_stock: bool = False
    approval_threshold: Decimal = DEFAULT_APPROVAL_THRESHOLD
    invoice_terms: str = ""


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    sku: str
    product_name: str
    category: str
    unit: str
    quantity: Decimal
    opening_quantity: Decimal
    cost_price: Decimal
    sell_price: Decimal
    min_stock_alert: Decimal


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    customer_name: str
    phone: str
    customer_type: str
    balance: Decimal
    opening_balance: Decimal
    credit_limit: Decimal


@dataclass(frozen=True)
class SupplierRow:
    """In-memory view of a row from the ``Suppliers`` sheet."""

    supplier_id: str
    supplier_name: str
    phone: str
    balance: Decimal
    opening_balance: Decimal


@dataclass(frozen=True)
class UserRow:
    user_id: str
    username: str
    full_name: str
    role: str


@dataclass(frozen=True)
class LineItem:
    """Price snapshot of one cart line taken when the document was created."""

    product_id: str
    product_name: str
    quantity: Decimal
    cost_price: Decimal
    sell_price: Decimal
    discount: Decimal = Decimal("0")

    @property
    def net_unit_price(self) -> Decimal:
        return self.sell_price * (Decimal("1") - self.discount / Decimal("100"))

    @property
    def gross_total(self) -> Decimal:
        return self.sell_price * self.quantity

    @property
    def net_total(self) -> Decimal:
        return self.net_unit_price * self.quantity

    @property
    def cost_total(self) -> Decimal:
        return self.cost_price * self.quantity


@dataclass(frozen=True)
class TransactionRow:
    """In-memory view of a ``TransactionLog`` row plus its item lines."""

    transaction_id: str
    timestamp_iso: str
    transaction_type: str
    amount: Decimal
    payment_method: str
    status: str
    description: str
    category: Optional[str] = None
    related_id: Optional[str] = None
    linked_transaction_id: Optional[str] = None
    due_date: Optional[str] = None
    is_direct_sale: bool = False
    shift_id: Optional[str] = None
    user_id: Optional[str] = None
    items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class ShiftRow:
    """In-memory view of a row from the ``Shifts`` sheet."""

    shift_id: str
    user_id: str
    user_name: str
    start_time_iso: str
    start_cash: Decimal
    status: str
    end_time_iso: Optional[str] = None
    end_cash: Optional[Decimal] = None
    expected_cash: Optional[Decimal] = None
    total_sales: Decimal = Decimal("0")
    sales_by_method: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class QuotationRow:
    quotation_id: str
    timestamp_iso: str
    customer_id: str
    customer_name: str
    total_amount: Decimal
    status: str
    converted_transaction_id: Optional[str] = None
    items: Tuple[LineItem, ...] = ()


@dataclass(frozen=True)
class ActivityLogEntry:
    entry_id: str
    timestamp_iso: str
    user_id: Optional[str]
    user_name: str
    action: str
    details: str


@dataclass
class LedgerDocument:
    """Every collection of the ledger as one persistable document."""

    settings: StoreSettings = field(default_factory=StoreSettings)
    products: List[ProductRow] = field(default_factory=list)
    customers: List[CustomerRow] = field(default_factory=list)
    suppliers: List[SupplierRow] = field(default_factory=list)
    users: List[UserRow] = field(default_factory=list)
    transactions: List[TransactionRow] = field(default_factory=list)
    shifts: List[ShiftRow] = field(default_factory=list)
    quotations: List[QuotationRow] = field(default_factory=list)
    activity_log: List[ActivityLogEntry] = field(default_factory=list)


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification. Otherwise the function walks up from the current
    working directory toward the filesystem root looking for
    ``CONFIG_FILE_NAME``; the first match that exists on disk wins.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are expanded against ``base_path`` when
    provided, or against the current working directory as a fallback.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        company_name = parser.get("System", "CompanyName")
        schema_version = parser.get("System", "SchemaVersion")
        default_user = parser.get("Defaults", "DefaultUser")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        company_name=company_name,
        schema_version=schema_version,
        default_user_id=default_user,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the ledger workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk, creating parent directories on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def load_document(workbook: Workbook) -> LedgerDocument:
    """Read every ledger sheet into a :class:`LedgerDocument`.

    Item sheets are grouped back onto their parent transaction or quotation
    in sheet order, so line ordering survives a save/load cycle.

    Raises:
        KeyError: If one of the expected sheets is missing from the workbook.
    """

    transaction_items = _group_items(_iter_sheet(workbook, SheetName.TRANSACTION_ITEMS.value))
    quotation_items = _group_items(_iter_sheet(workbook, SheetName.QUOTATION_ITEMS.value))

    document = LedgerDocument(
        settings=deserialize_settings(_iter_sheet(workbook, SheetName.SETTINGS.value)),
        products=[deserialize_product(raw) for raw in _iter_sheet(workbook, SheetName.PRODUCTS.value)],
        customers=[deserialize_customer(raw) for raw in _iter_sheet(workbook, SheetName.CUSTOMERS.value)],
        suppliers=[deserialize_supplier(raw) for raw in _iter_sheet(workbook, SheetName.SUPPLIERS.value)],
        users=[deserialize_user(raw) for raw in _iter_sheet(workbook, SheetName.USERS.value)],
        transactions=[
            deserialize_transaction(raw, items=transaction_items.get(str(raw[0]), ()))
            for raw in _iter_sheet(workbook, SheetName.TRANSACTION_LOG.value)
        ],
        shifts=[deserialize_shift(raw) for raw in _iter_sheet(workbook, SheetName.SHIFTS.value)],
        quotations=[
            deserialize_quotation(raw, items=quotation_items.get(str(raw[0]), ()))
            for raw in _iter_sheet(workbook, SheetName.QUOTATIONS.value)
        ],
        activity_log=[deserialize_activity(raw) for raw in _iter_sheet(workbook, SheetName.ACTIVITY_LOG.value)],
    )
    log.debug(
        "Loaded ledger document: %d products, %d transactions, %d shifts",
        len(document.products),
        len(document.transactions),
        len(document.shifts),
    )
    return document


def write_document(workbook: Workbook, document: LedgerDocument) -> None:
    """Replace the contents of every ledger sheet with ``document``.

    Header rows are kept; all data rows are deleted and rewritten. Sheets that
    a fresh workbook lacks are created with their headers first.
    """

    rows: Dict[str, List[list[object]]] = {
        SheetName.SETTINGS.value: serialize_settings(document.settings),
        SheetName.PRODUCTS.value: [serialize_product(row) for row in document.products],
        SheetName.CUSTOMERS.value: [serialize_customer(row) for row in document.customers],
        SheetName.SUPPLIERS.value: [serialize_supplier(row) for row in document.suppliers],
        SheetName.USERS.value: [serialize_user(row) for row in document.users],
        SheetName.TRANSACTION_LOG.value: [serialize_transaction(row) for row in document.transactions],
        SheetName.TRANSACTION_ITEMS.value: [
            serialize_line_item(row.transaction_id, item)
            for row in document.transactions
            for item in row.items
        ],
        SheetName.SHIFTS.value: [serialize_shift(row) for row in document.shifts],
        SheetName.QUOTATIONS.value: [serialize_quotation(row) for row in document.quotations],
        SheetName.QUOTATION_ITEMS.value: [
            serialize_line_item(row.quotation_id, item)
            for row in document.quotations
            for item in row.items
        ],
        SheetName.ACTIVITY_LOG.value: [serialize_activity(row) for row in document.activity_log],
    }
    for sheet_name, values in rows.items():
        _rewrite_sheet(workbook, sheet_name, values)
    log.debug("Wrote ledger document with %d transactions", len(document.transactions))


def _iter_sheet(workbook: Workbook, sheet_name: str) -> Iterable[Tuple[object, ...]]:
    """Yield non-empty data rows padded to the sheet's declared width."""

    width = len(SHEET_COLUMNS[sheet_name])
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            padded = tuple(raw[:width]) + (None,) * max(0, width - len(raw))
            yield padded


def _to_cell(value: object) -> object:
    """Convert ``value`` for an openpyxl cell without losing decimal precision.

    Excel stores numbers as binary floats. A ``Decimal`` that survives the
    float round trip is written as a number; anything longer is written as
    text, which :func:`_to_decimal` reads back exactly.
    """

    if isinstance(value, Decimal):
        as_float = float(value)
        if Decimal(repr(as_float)) == value:
            return as_float
        return str(value)
    return value


def _rewrite_sheet(workbook: Workbook, sheet_name: str, values: Iterable[Sequence[object]]) -> None:
    if sheet_name not in workbook.sheetnames:
        sheet = workbook.create_sheet(title=sheet_name)
        sheet.append(list(SHEET_COLUMNS[sheet_name]))
    else:
        sheet = workbook[sheet_name]
        if sheet.max_row > 1:
            sheet.delete_rows(2, sheet.max_row - 1)
    for row in values:
        sheet.append([_to_cell(value) for value in row])


def _group_items(raw_rows: Iterable[Sequence[object]]) -> Dict[str, Tuple[LineItem, ...]]:
    grouped: Dict[str, List[LineItem]] = {}
    for raw in raw_rows:
        grouped.setdefault(str(raw[0]), []).append(deserialize_line_item(raw))
    return {key: tuple(items) for key, items in grouped.items()}


def _to_decimal(raw: object, default: str = "0") -> Decimal:
    if raw is None or raw == "":
        return Decimal(default)
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal value: {raw!r}") from exc


def _to_optional_decimal(raw: object) -> Optional[Decimal]:
    return None if raw is None or raw == "" else _to_decimal(raw)


def _to_optional_str(raw: object) -> Optional[str]:
    return None if raw is None or raw == "" else str(raw)


def _to_bool(raw: object) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"true", "1", "yes"}
    return bool(raw)


def serialize_settings(settings: StoreSettings) -> List[list[object]]:
    """Convert settings into ``[Key, Value]`` rows."""

    return [
        ["CompanyName", settings.company_name],
        ["CompanyPhone", settings.company_phone],
        ["CompanyAddress", settings.company_address],
        ["NextInvoiceNumber", settings.next_invoice_number],
        ["OpeningBalance", settings.opening_balance],
        ["TaxRate", settings.tax_rate],
        ["PreventNegativeStock", settings.prevent_negative_stock],
        ["ApprovalThreshold", settings.approval_threshold],
        ["InvoiceTerms", settings.invoice_terms],
    ]


def deserialize_settings(raw_rows: Iterable[Sequence[object]]) -> StoreSettings:
    """Build :class:`StoreSettings` from ``[Key, Value]`` rows.

    Unknown keys are ignored and missing keys fall back to the dataclass
    defaults, which keeps older workbooks loadable.
    """

    values = {str(raw[0]): raw[1] for raw in raw_rows if raw[0] is not None}
    defaults = StoreSettings()
    return StoreSettings(
        company_name=str(values.get("CompanyName") or defaults.company_name),
        company_phone=str(values.get("CompanyPhone") or defaults.company_phone),
        company_address=str(values.get("CompanyAddress") or defaults.company_address),
        next_invoice_number=int(values.get("NextInvoiceNumber") or defaults.next_invoice_number),
        opening_balance=_to_decimal(values.get("OpeningBalance"), str(defaults.opening_balance)),
        tax_rate=_to_decimal(values.get("TaxRate"), str(defaults.tax_rate)),
        prevent_negative_stock=_to_bool(values.get("PreventNegativeStock", defaults.prevent_negative_stock)),
        approval_threshold=_to_decimal(values.get("ApprovalThreshold"), str(defaults.approval_threshold)),
        invoice_terms=str(values.get("InvoiceTerms") or defaults.invoice_terms),
    )


def serialize_product(record: ProductRow) -> list[object]:
    return [
        record.product_id,
        record.sku,
        record.product_name,
        record.category,
        record.unit,
        record.quantity,
        record.opening_quantity,
        record.cost_price,
        record.sell_price,
        record.min_stock_alert,
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Identifier and text fields are coerced to ``str`` so Excel's habit of
    turning numeric-looking ids into numbers does not leak into lookups.
    """

    (product_id, sku, name, category, unit, quantity, opening, cost, sell, min_alert) = raw_row
    return ProductRow(
        product_id=str(product_id),
        sku=str(sku) if sku is not None else str(product_id),
        product_name=str(name) if name is not None else "",
        category=str(category) if category is not None else "",
        unit=str(unit) if unit is not None else "",
        quantity=_to_decimal(quantity),
        opening_quantity=_to_decimal(opening),
        cost_price=_to_decimal(cost),
        sell_price=_to_decimal(sell),
        min_stock_alert=_to_decimal(min_alert),
    )


def serialize_customer(record: CustomerRow) -> list[object]:
    return [
        record.customer_id,
        record.customer_name,
        record.phone,
        record.customer_type,
        record.balance,
        record.opening_balance,
        record.credit_limit,
    ]


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    (customer_id, name, phone, customer_type, balance, opening, credit_limit) = raw_row
    return CustomerRow(
        customer_id=str(customer_id),
        customer_name=str(name) if name is not None else "",
        phone=str(phone) if phone is not None else "",
        customer_type=str(customer_type) if customer_type is not None else "",
        balance=_to_decimal(balance),
        opening_balance=_to_decimal(opening),
        credit_limit=_to_decimal(credit_limit),
    )


def serialize_supplier(record: SupplierRow) -> list[object]:
    return [record.supplier_id, record.supplier_name, record.phone, record.balance, record.opening_balance]


def deserialize_supplier(raw_row: Sequence[object]) -> SupplierRow:
    (supplier_id, name, phone, balance, opening) = raw_row
    return SupplierRow(
        supplier_id=str(supplier_id),
        supplier_name=str(name) if name is not None else "",
        phone=str(phone) if phone is not None else "",
        balance=_to_decimal(balance),
        opening_balance=_to_decimal(opening),
    )


def serialize_user(record: UserRow) -> list[object]:
    return [record.user_id, record.username, record.full_name, record.role]


def deserialize_user(raw_row: Sequence[object]) -> UserRow:
    (user_id, username, full_name, role) = raw_row
    return UserRow(
        user_id=str(user_id),
        username=str(username) if username is not None else "",
        full_name=str(full_name) if full_name is not None else "",
        role=str(role) if role is not None else "",
    )


def serialize_transaction(record: TransactionRow) -> list[object]:
    """Convert a transaction into the ``TransactionLog`` column order.

    Item lines are written separately by :func:`serialize_line_item`.
    """

    return [
        record.transaction_id,
        record.timestamp_iso,
        record.transaction_type,
        record.amount,
        record.payment_method,
        record.status,
        record.description,
        record.category,
        record.related_id,
        record.linked_transaction_id,
        record.due_date,
        record.is_direct_sale,
        record.shift_id,
        record.user_id,
    ]


def deserialize_transaction(raw_row: Sequence[object], *, items: Tuple[LineItem, ...] = ()) -> TransactionRow:
    """Convert a raw ``TransactionLog`` row into a typed transaction record.

    Decimal-compatible columns are normalized into :class:`~decimal.Decimal`
    instances and optional columns remain ``None`` when the sheet leaves them
    blank.
    """

    (
        transaction_id,
        timestamp_iso,
        transaction_type,
        amount,
        payment_method,
        status,
        description,
        category,
        related_id,
        linked_transaction_id,
        due_date,
        is_direct_sale,
        shift_id,
        user_id,
    ) = raw_row

    return TransactionRow(
        transaction_id=str(transaction_id),
        timestamp_iso=str(timestamp_iso) if timestamp_iso is not None else "",
        transaction_type=str(transaction_type) if transaction_type is not None else "",
        amount=_to_decimal(amount),
        payment_method=str(payment_method) if payment_method is not None else "",
        status=str(status) if status is not None else "",
        description=str(description) if description is not None else "",
        category=_to_optional_str(category),
        related_id=_to_optional_str(related_id),
        linked_transaction_id=_to_optional_str(linked_transaction_id),
        due_date=_to_optional_str(due_date),
        is_direct_sale=_to_bool(is_direct_sale),
        shift_id=_to_optional_str(shift_id),
        user_id=_to_optional_str(user_id),
        items=items,
    )


def serialize_line_item(owner_id: str, item: LineItem) -> list[object]:
    return [
        owner_id,
        item.product_id,
        item.product_name,
        item.quantity,
        item.cost_price,
        item.sell_price,
        item.discount,
    ]


def deserialize_line_item(raw_row: Sequence[object]) -> LineItem:
    (_owner_id, product_id, name, quantity, cost, sell, discount) = raw_row
    return LineItem(
        product_id=str(product_id),
        product_name=str(name) if name is not None else "",
        quantity=_to_decimal(quantity),
        cost_price=_to_decimal(cost),
        sell_price=_to_decimal(sell),
        discount=_to_decimal(discount),
    )


def serialize_shift(record: ShiftRow) -> list[object]:
    """Flatten a shift, spreading ``sales_by_method`` over one column per method."""

    return [
        record.shift_id,
        record.user_id,
        record.user_name,
        record.start_time_iso,
        record.start_cash,
        record.status,
        record.end_time_iso,
        record.end_cash,
        record.expected_cash,
        record.total_sales,
        *[record.sales_by_method.get(method.value, Decimal("0")) for method in PaymentMethod],
    ]


def deserialize_shift(raw_row: Sequence[object]) -> ShiftRow:
    (
        shift_id,
        user_id,
        user_name,
        start_time,
        start_cash,
        status,
        end_time,
        end_cash,
        expected_cash,
        total_sales,
    ) = raw_row[:10]
    by_method_raw = raw_row[10:]
    sales_by_method = {
        method.value: _to_decimal(value)
        for method, value in zip(PaymentMethod, by_method_raw)
        if value is not None and _to_decimal(value) != Decimal("0")
    }
    return ShiftRow(
        shift_id=str(shift_id),
        user_id=str(user_id) if user_id is not None else "",
        user_name=str(user_name) if user_name is not None else "",
        start_time_iso=str(start_time) if start_time is not None else "",
        start_cash=_to_decimal(start_cash),
        status=str(status) if status is not None else "",
        end_time_iso=_to_optional_str(end_time),
        end_cash=_to_optional_decimal(end_cash),
        expected_cash=_to_optional_decimal(expected_cash),
        total_sales=_to_decimal(total_sales),
        sales_by_method=sales_by_method,
    )


def serialize_quotation(record: QuotationRow) -> list[object]:
    return [
        record.quotation_id,
        record.timestamp_iso,
        record.customer_id,
        record.customer_name,
        record.total_amount,
        record.status,
        record.converted_transaction_id,
    ]


def deserialize_quotation(raw_row: Sequence[object], *, items: Tuple[LineItem, ...] = ()) -> QuotationRow:
    (quotation_id, timestamp_iso, customer_id, customer_name, total, status, converted_id) = raw_row
    return QuotationRow(
        quotation_id=str(quotation_id),
        timestamp_iso=str(timestamp_iso) if timestamp_iso is not None else "",
        customer_id=str(customer_id) if customer_id is not None else "",
        customer_name=str(customer_name) if customer_name is not None else "",
        total_amount=_to_decimal(total),
        status=str(status) if status is not None else "",
        converted_transaction_id=_to_optional_str(converted_id),
        items=items,
    )


def serialize_activity(record: ActivityLogEntry) -> list[object]:
    return [
        record.entry_id,
        record.timestamp_iso,
        record.user_id,
        record.user_name,
        record.action,
        record.details,
    ]


def deserialize_activity(raw_row: Sequence[object]) -> ActivityLogEntry:
    (entry_id, timestamp_iso, user_id, user_name, action, details) = raw_row
    return ActivityLogEntry(
        entry_id=str(entry_id),
        timestamp_iso=str(timestamp_iso) if timestamp_iso is not None else "",
        user_id=_to_optional_str(user_id),
        user_name=str(user_name) if user_name is not None else "",
        action=str(action) if action is not None else "",
        details=str(details) if details is not None else "",
    )
