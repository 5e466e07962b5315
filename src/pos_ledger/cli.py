"""Command-line entry points for the POS ledger.

All orchestration in this module is limited to argparse wiring and translating
command-line arguments into the command objects consumed by the business
layer. Keeping the CLI thin ensures the same parser configuration can be
reused by tests, scripts, or any alternative front-end that wants to expose
the package capabilities.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from . import core_logic, log
from .commands import (
    ApprovalCommand,
    CapitalCommand,
    CartLine,
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
from .constants import CapitalMovement, CustomerType, PartyType, PaymentMethod, ProductUnit, UserRole
from .errors import BusinessRuleViolation
from .shifts import shift_variance

Registrar = Callable[["argparse._SubParsersAction[argparse.ArgumentParser]"], argparse.ArgumentParser]


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed.

    ``persist`` controls whether the workbook is saved after a successful run;
    reports and the backup commands manage their own files.
    """

    name: str
    help_text: str
    register: Registrar
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int]
    persist: bool = True


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Command-line tools for the POS ledger workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands such as sales and purchases."""
    specs = {
        "add-product": register_add_product_command(subparsers),
        "add-customer": register_add_customer_command(subparsers),
        "add-supplier": register_add_supplier_command(subparsers),
        "add-user": register_add_user_command(subparsers),
        "open-shift": register_open_shift_command(subparsers),
        "close-shift": register_close_shift_command(subparsers),
        "sale": register_sale_command(subparsers),
        "purchase": register_purchase_command(subparsers),
        "return": register_return_command(subparsers),
        "adjust-stock": register_adjust_stock_command(subparsers),
        "expense": register_expense_command(subparsers),
        "approve": register_approve_command(subparsers),
        "reject": register_reject_command(subparsers),
        "settle": register_settle_command(subparsers),
        "capital": register_capital_command(subparsers),
        "quote": register_quote_command(subparsers),
        "convert-quote": register_convert_quote_command(subparsers),
        "backup": register_backup_command(subparsers),
        "restore": register_restore_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "stock": _report_spec("stock", "Display current stock levels.", run_stock_report),
        "treasury": _report_spec("treasury", "Display the treasury cash balance.", run_treasury_report),
        "profit": _report_spec("profit", "Display revenue, cost, and profit summaries.", run_profit_report),
        "balances": _report_spec("balances", "Display receivables and payables.", run_balances_report),
        "low-stock": _report_spec("low-stock", "List products at or below their alert level.", run_low_stock_report),
        "pending": _report_spec("pending", "List transactions awaiting approval.", run_pending_report),
        "log": _report_spec("log", "Display the transaction log.", run_log_report),
        "verify": _report_spec("verify", "Replay the log and check every cached balance.", run_verify),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _report_spec(
    name: str,
    help_text: str,
    execute: Callable[[core_logic.RuntimeContext, argparse.Namespace], int],
) -> CommandSpec:
    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=execute, persist=False)


def _add_user_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--user-id", default=None, help="Acting user (defaults to config DefaultUser).")


def _add_line_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--line",
        dest="lines",
        action="append",
        required=True,
        help="Cart line as PRODUCT_ID:QUANTITY[:DISCOUNT[:UNIT_PRICE]]; repeat per line.",
    )


def register_add_product_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-product``."""
    name = "add-product"
    help_text = "Register a new product in the Products sheet."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--product-name", required=True)
        parser.add_argument("--sell-price", required=True)
        parser.add_argument("--cost-price", default="0")
        parser.add_argument("--sku", default=None)
        parser.add_argument("--category", default="")
        parser.add_argument("--unit", choices=[member.value for member in ProductUnit], default=ProductUnit.PIECE.value)
        parser.add_argument("--quantity", default="0", help="Opening stock quantity.")
        parser.add_argument("--min-stock-alert", default="0")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_product)


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a new customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument("--customer-name", required=True)
        parser.add_argument("--phone", default="")
        parser.add_argument(
            "--customer-type",
            choices=[member.value for member in CustomerType],
            default=CustomerType.CONSUMER.value,
        )
        parser.add_argument("--opening-balance", default="0")
        parser.add_argument("--credit-limit", default="0")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer)


def register_add_supplier_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-supplier``."""
    name = "add-supplier"
    help_text = "Register a new supplier."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--supplier-id", required=True)
        parser.add_argument("--supplier-name", required=True)
        parser.add_argument("--phone", default="")
        parser.add_argument("--opening-balance", default="0")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_supplier)


def register_add_user_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-user``."""
    name = "add-user"
    help_text = "Register a new user account."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--new-user-id", required=True)
        parser.add_argument("--username", required=True)
        parser.add_argument("--full-name", required=True)
        parser.add_argument("--role", choices=[member.value for member in UserRole], required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_user)


def register_open_shift_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``open-shift``."""
    name = "open-shift"
    help_text = "Open a cashier shift."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--start-cash", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_open_shift)


def register_close_shift_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``close-shift``."""
    name = "close-shift"
    help_text = "Close the open shift with the counted drawer cash."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--counted-cash", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_close_shift)


def register_sale_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``sale``."""
    name = "sale"
    help_text = "Record a sale against the open shift."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_line_argument(parser)
        parser.add_argument("--customer-id", required=True)
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )
        parser.add_argument("--paid-amount", default=None)
        parser.add_argument("--invoice-id", default=None)
        parser.add_argument("--direct", action="store_true", help="Direct sale; stock is not touched.")
        parser.add_argument("--due-date", default=None, help="ISO date, required for deferred sales.")
        parser.add_argument("--accept-below-cost", action="store_true")
        parser.add_argument("--accept-credit-limit", action="store_true")
        parser.add_argument("--notes", dest="notes", default=None)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_sale)


def register_purchase_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``purchase``."""
    name = "purchase"
    help_text = "Record a purchase from a supplier."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_line_argument(parser)
        parser.add_argument("--supplier-id", required=True)
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )
        parser.add_argument("--total", default=None)
        parser.add_argument("--due-date", default=None)
        parser.add_argument("--notes", dest="notes", default=None)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_purchase)


def register_return_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``return``."""
    name = "return"
    help_text = "Return a completed sale or purchase in full."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        parser.add_argument("--notes", dest="notes", default=None)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_return)


def register_adjust_stock_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``adjust-stock``."""
    name = "adjust-stock"
    help_text = "Apply a signed stock correction."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--product-id", required=True)
        parser.add_argument("--quantity-diff", required=True)
        parser.add_argument("--reason", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_adjust_stock)


def register_expense_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``expense``."""
    name = "expense"
    help_text = "Record a cash expense."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--description", required=True)
        parser.add_argument("--category", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_expense)


def register_approve_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``approve``."""
    name = "approve"
    help_text = "Approve a pending expense."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_approve)


def register_reject_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``reject``."""
    name = "reject"
    help_text = "Reject a pending expense."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_reject)


def register_settle_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``settle``."""
    name = "settle"
    help_text = "Record a cash settlement with a customer or supplier."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--party-type", choices=[member.value for member in PartyType], required=True)
        parser.add_argument("--party-id", required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--notes", dest="notes", default="")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_settle)


def register_capital_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``capital``."""
    name = "capital"
    help_text = "Record an owner deposit or withdrawal."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--kind", choices=[member.value for member in CapitalMovement], required=True)
        parser.add_argument("--amount", required=True)
        parser.add_argument("--description", default="")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_capital)


def register_quote_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``quote``."""
    name = "quote"
    help_text = "Create a quotation for a customer."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_line_argument(parser)
        parser.add_argument("--customer-id", required=True)
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_quote)


def register_convert_quote_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``convert-quote``."""
    name = "convert-quote"
    help_text = "Convert a pending quotation into a sale."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--quotation-id", required=True)
        parser.add_argument(
            "--payment-method",
            choices=[member.value for member in PaymentMethod],
            required=True,
        )
        parser.add_argument("--paid-amount", default=None)
        parser.add_argument("--direct", action="store_true")
        parser.add_argument("--due-date", default=None)
        parser.add_argument("--accept-below-cost", action="store_true")
        parser.add_argument("--accept-credit-limit", action="store_true")
        _add_user_argument(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_convert_quote)


def register_backup_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``backup``."""
    name = "backup"
    help_text = "Write a copy of the ledger to another workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--destination", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_backup, persist=False)


def register_restore_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``restore``."""
    name = "restore"
    help_text = "Replace the ledger with a verified backup workbook."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--source", type=Path, required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_restore, persist=False)


def load_runtime_context(config_path: Optional[Path] = None) -> core_logic.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return core_logic.load_runtime_context(target)


def dispatch_command(
    context: core_logic.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


# ---------------------------------------------------------------------------
# Argument translation
# ---------------------------------------------------------------------------


def parse_cart_line(raw: str) -> CartLine:
    """Parse ``PRODUCT_ID:QUANTITY[:DISCOUNT[:UNIT_PRICE]]`` into a :class:`CartLine`."""
    parts = raw.split(":")
    if len(parts) < 2 or len(parts) > 4 or not parts[0]:
        raise ValueError(f"Invalid cart line '{raw}'; expected PRODUCT_ID:QUANTITY[:DISCOUNT[:UNIT_PRICE]]")
    discount = Decimal(parts[2]) if len(parts) > 2 and parts[2] else Decimal("0")
    unit_price = Decimal(parts[3]) if len(parts) > 3 and parts[3] else None
    return CartLine(product_id=parts[0], quantity=Decimal(parts[1]), discount=discount, unit_price=unit_price)


def _parse_lines(raw_lines: Sequence[str]) -> Tuple[CartLine, ...]:
    return tuple(parse_cart_line(raw) for raw in raw_lines)


def _optional_decimal(raw: Optional[str]) -> Optional[Decimal]:
    return Decimal(raw) if raw is not None else None


def _optional_date(raw: Optional[str]) -> Optional[date]:
    return date.fromisoformat(raw) if raw else None


def translate_add_product(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-product request."""
    return {
        "product_id": args.product_id,
        "product_name": args.product_name,
        "sell_price": Decimal(args.sell_price),
        "cost_price": Decimal(args.cost_price),
        "sku": args.sku,
        "category": args.category,
        "unit": args.unit,
        "quantity": Decimal(args.quantity),
        "min_stock_alert": Decimal(args.min_stock_alert),
        "user_id": args.user_id,
    }


def translate_add_customer(args: argparse.Namespace) -> Mapping[str, Any]:
    """Translate CLI args into an add-customer request."""
    return {
        "customer_id": args.customer_id,
        "customer_name": args.customer_name,
        "phone": args.phone,
        "customer_type": CustomerType(args.customer_type),
        "opening_balance": Decimal(args.opening_balance),
        "credit_limit": Decimal(args.credit_limit),
        "user_id": args.user_id,
    }


def translate_add_supplier(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "supplier_id": args.supplier_id,
        "supplier_name": args.supplier_name,
        "phone": args.phone,
        "opening_balance": Decimal(args.opening_balance),
        "user_id": args.user_id,
    }


def translate_add_user(args: argparse.Namespace) -> Mapping[str, Any]:
    return {
        "user_id": args.new_user_id,
        "username": args.username,
        "full_name": args.full_name,
        "role": UserRole(args.role),
        "acting_user_id": args.user_id,
    }


def translate_sale(args: argparse.Namespace) -> SaleCommand:
    """Translate CLI args into a sale command object."""
    return SaleCommand(
        lines=_parse_lines(args.lines),
        customer_id=args.customer_id,
        payment_method=PaymentMethod(args.payment_method),
        paid_amount=_optional_decimal(args.paid_amount),
        invoice_id=args.invoice_id,
        is_direct_sale=args.direct,
        due_date=_optional_date(args.due_date),
        below_cost_acknowledged=args.accept_below_cost,
        credit_limit_acknowledged=args.accept_credit_limit,
        user_id=args.user_id,
        notes=args.notes,
    )


def translate_purchase(args: argparse.Namespace) -> PurchaseCommand:
    """Translate CLI args into a purchase command object."""
    return PurchaseCommand(
        lines=_parse_lines(args.lines),
        supplier_id=args.supplier_id,
        payment_method=PaymentMethod(args.payment_method),
        total=_optional_decimal(args.total),
        due_date=_optional_date(args.due_date),
        user_id=args.user_id,
        notes=args.notes,
    )


def translate_return(args: argparse.Namespace) -> ReturnCommand:
    return ReturnCommand(original_transaction_id=args.transaction_id, user_id=args.user_id, notes=args.notes)


def translate_adjust_stock(args: argparse.Namespace) -> StockAdjustmentCommand:
    return StockAdjustmentCommand(
        product_id=args.product_id,
        quantity_diff=Decimal(args.quantity_diff),
        reason=args.reason,
        user_id=args.user_id,
    )


def translate_expense(args: argparse.Namespace) -> ExpenseCommand:
    return ExpenseCommand(
        amount=Decimal(args.amount),
        description=args.description,
        category=args.category,
        user_id=args.user_id,
    )


def translate_approval(args: argparse.Namespace) -> ApprovalCommand:
    return ApprovalCommand(transaction_id=args.transaction_id, user_id=args.user_id)


def translate_settle(args: argparse.Namespace) -> SettlementCommand:
    return SettlementCommand(
        party_type=PartyType(args.party_type),
        party_id=args.party_id,
        amount=Decimal(args.amount),
        notes=args.notes,
        user_id=args.user_id,
    )


def translate_capital(args: argparse.Namespace) -> CapitalCommand:
    return CapitalCommand(
        kind=CapitalMovement(args.kind),
        amount=Decimal(args.amount),
        description=args.description,
        user_id=args.user_id,
    )


def translate_quote(args: argparse.Namespace) -> QuotationCommand:
    return QuotationCommand(customer_id=args.customer_id, lines=_parse_lines(args.lines), user_id=args.user_id)


def translate_convert_quote(args: argparse.Namespace) -> ConvertQuotationCommand:
    return ConvertQuotationCommand(
        quotation_id=args.quotation_id,
        payment_method=PaymentMethod(args.payment_method),
        paid_amount=_optional_decimal(args.paid_amount),
        is_direct_sale=args.direct,
        due_date=_optional_date(args.due_date),
        below_cost_acknowledged=args.accept_below_cost,
        credit_limit_acknowledged=args.accept_credit_limit,
        user_id=args.user_id,
    )


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


def run_add_product(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the add-product workflow in the BLL."""
    payload = translate_add_product(args)
    core_logic.add_product(context, **payload)
    return 0


def run_add_customer(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload = translate_add_customer(args)
    core_logic.add_customer(context, **payload)
    return 0


def run_add_supplier(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload = translate_add_supplier(args)
    core_logic.add_supplier(context, **payload)
    return 0


def run_add_user(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    payload = translate_add_user(args)
    core_logic.add_user(context, **payload)
    return 0


def run_open_shift(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    shift = core_logic.open_shift(
        context, OpenShiftCommand(start_cash=Decimal(args.start_cash), user_id=args.user_id)
    )
    print(f"Opened shift {shift.shift_id}")
    return 0


def run_close_shift(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    shift = core_logic.close_shift(
        context, CloseShiftCommand(counted_cash=Decimal(args.counted_cash), user_id=args.user_id)
    )
    print(
        f"Closed shift {shift.shift_id}: expected {shift.expected_cash}, "
        f"counted {shift.end_cash}, variance {shift_variance(shift)}"
    )
    return 0


def run_sale(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the sale workflow via the BLL."""
    command = translate_sale(args)
    transaction = core_logic.complete_sale(context, command)
    print(f"Invoice {transaction.transaction_id}: {transaction.amount}")
    return 0


def run_purchase(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the purchase workflow via the BLL."""
    command = translate_purchase(args)
    transaction = core_logic.complete_purchase(context, command)
    print(f"Purchase {transaction.transaction_id}: {transaction.amount}")
    return 0


def run_return(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    transaction = core_logic.reverse_transaction(context, translate_return(args))
    print(f"Return {transaction.transaction_id} for {transaction.linked_transaction_id}")
    return 0


def run_adjust_stock(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.record_stock_adjustment(context, translate_adjust_stock(args))
    return 0


def run_expense(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    transaction = core_logic.record_expense(context, translate_expense(args))
    print(f"Expense {transaction.transaction_id}: {transaction.status}")
    return 0


def run_approve(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.approve_expense(context, translate_approval(args))
    return 0


def run_reject(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.reject_expense(context, translate_approval(args))
    return 0


def run_settle(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.settle_debt(context, translate_settle(args))
    return 0


def run_capital(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.record_capital_movement(context, translate_capital(args))
    return 0


def run_quote(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    quotation = core_logic.create_quotation(context, translate_quote(args))
    print(f"Quotation {quotation.quotation_id}: {quotation.total_amount}")
    return 0


def run_convert_quote(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    transaction = core_logic.convert_quotation(context, translate_convert_quote(args))
    print(f"Invoice {transaction.transaction_id}: {transaction.amount}")
    return 0


def run_backup(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    destination = core_logic.create_backup(context, args.destination)
    print(f"Backup written to {destination}")
    return 0


def run_restore(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.restore_backup(context, args.source)
    print(f"Restored {context.settings.data_file} from {args.source}")
    return 0


def _print_rows(rows: Iterable[Sequence[object]]) -> None:
    for row in rows:
        print("\t".join("" if value is None else str(value) for value in row))


def run_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the stock reporting workflow."""
    inventory = core_logic.calculate_inventory(context)
    _print_rows(sorted(inventory.items()))
    return 0


def run_treasury_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    print(core_logic.treasury_balance(context))
    return 0


def run_profit_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the profit reporting workflow."""
    _print_rows(core_logic.calculate_profit_summary(context).items())
    return 0


def run_balances_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_rows(core_logic.calculate_receivables_payables(context).items())
    return 0


def run_low_stock_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_rows(
        (product.product_id, product.product_name, product.quantity, product.min_stock_alert)
        for product in core_logic.low_stock_products(context)
    )
    return 0


def run_pending_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    _print_rows(
        (transaction.transaction_id, transaction.amount, transaction.category, transaction.description)
        for transaction in core_logic.pending_approvals(context)
    )
    return 0


def run_log_report(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the transaction log reporting workflow."""
    rows: List[Sequence[object]] = [
        (
            transaction.transaction_id,
            transaction.timestamp_iso,
            transaction.transaction_type,
            transaction.amount,
            transaction.payment_method,
            transaction.status,
        )
        for transaction in core_logic.list_transactions(context)
    ]
    _print_rows(rows)
    return 0


def run_verify(context: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
    core_logic.verify_ledger(context)
    print("Ledger verified")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: core_logic.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        core_logic.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and command_table[args.command].persist:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
