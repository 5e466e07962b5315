"""Unit tests describing the CLI presentation layer contract."""

from __future__ import annotations

import argparse
import importlib
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable

import pytest

from pos_ledger import cli, constants, core_logic, data_manager
from pos_ledger.commands import CartLine, ReturnCommand, SaleCommand


WRITE_COMMANDS = {
    "add-product",
    "add-customer",
    "add-supplier",
    "add-user",
    "open-shift",
    "close-shift",
    "sale",
    "purchase",
    "return",
    "adjust-stock",
    "expense",
    "approve",
    "reject",
    "settle",
    "capital",
    "quote",
    "convert-quote",
    "backup",
    "restore",
}

READ_COMMANDS = {
    "stock",
    "treasury",
    "profit",
    "balances",
    "low-stock",
    "pending",
    "log",
    "verify",
}

# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------


def test_cli_module_imports_cleanly():
    """Module-level aliases must not evaluate argparse internals at import time."""

    module = importlib.reload(cli)
    assert module.Registrar is not None
    assert module.build_parser().prog == "ledger-cli"


def test_build_parser_sets_program_metadata():
    """build_parser should set user-facing program metadata."""

    parser = cli.build_parser()
    assert isinstance(parser, argparse.ArgumentParser)
    assert parser.prog == "ledger-cli"
    assert "ledger" in (parser.description or "")


def test_configure_subcommands_registers_every_command(cli_parser):
    """configure_subcommands should wire mutating and reporting sub-commands."""

    command_table = cli.configure_subcommands(cli_parser)
    assert set(command_table) == WRITE_COMMANDS | READ_COMMANDS
    assert _registered_choices(cli_parser) == WRITE_COMMANDS | READ_COMMANDS


def test_register_write_commands_returns_command_specs(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)
    assert set(specs) == WRITE_COMMANDS
    for spec in specs.values():
        assert isinstance(spec, cli.CommandSpec)
        assert spec.help_text


def test_register_read_commands_do_not_persist(subparsers_action):
    """Reports never trigger a workbook save."""

    specs = cli.register_read_commands(subparsers_action)
    assert set(specs) == READ_COMMANDS
    assert all(spec.persist is False for spec in specs.values())


def test_backup_and_restore_manage_their_own_files(subparsers_action):
    specs = cli.register_write_commands(subparsers_action)
    assert specs["backup"].persist is False
    assert specs["restore"].persist is False
    assert specs["sale"].persist is True


def test_register_sale_command_configures_arguments():
    """register_sale_command should define sale-specific arguments."""

    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    spec = cli.register_sale_command(subparsers)
    spec.register(subparsers)
    namespace = parser.parse_args(
        [
            "sale",
            "--line",
            "P1:2",
            "--line",
            "P2:1:10",
            "--customer-id",
            "C-BIZ",
            "--payment-method",
            constants.PaymentMethod.DEFERRED.value,
            "--due-date",
            "2026-12-31",
            "--accept-credit-limit",
        ]
    )
    assert namespace.lines == ["P1:2", "P2:1:10"]
    assert namespace.customer_id == "C-BIZ"
    assert namespace.payment_method == "Deferred"
    assert namespace.due_date == "2026-12-31"
    assert namespace.accept_credit_limit is True
    assert namespace.accept_below_cost is False
    assert namespace.direct is False


def test_register_settle_command_limits_party_type():
    parser = argparse.ArgumentParser(prog="cli")
    subparsers = parser.add_subparsers(dest="command")
    cli.register_settle_command(subparsers).register(subparsers)
    with pytest.raises(SystemExit):
        parser.parse_args(["settle", "--party-type", "employee", "--party-id", "X", "--amount", "1"])


def test_register_stock_command_takes_no_arguments(subparsers_action, cli_parser):
    cli.register_read_commands(subparsers_action)
    namespace = cli_parser.parse_args(["stock"])
    assert namespace.command == "stock"


# ---------------------------------------------------------------------------
# Runtime context helpers
# ---------------------------------------------------------------------------


def test_load_runtime_context_uses_provided_path(config_file, monkeypatch):
    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_file
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    assert cli.load_runtime_context(config_file) is sentinel_context


def test_load_runtime_context_supports_defaults(monkeypatch, tmp_path):
    """load_runtime_context should resolve config.ini from the working directory."""

    config_path = tmp_path / "config.ini"
    sentinel_context = object()

    def fake_loader(path: Path | None) -> object:
        assert path == config_path
        return sentinel_context

    monkeypatch.setattr(core_logic, "load_runtime_context", fake_loader)
    monkeypatch.chdir(tmp_path)
    assert cli.load_runtime_context() is sentinel_context


# ---------------------------------------------------------------------------
# Dispatch helpers
# ---------------------------------------------------------------------------


def test_dispatch_command_invokes_executor(context):
    called = {}

    def execute(ctx: core_logic.RuntimeContext, args: argparse.Namespace) -> int:
        called["context"] = ctx
        return 0

    spec = cli.CommandSpec("ping", "help", lambda s: s.add_parser("ping"), execute)
    assert cli.dispatch_command(context, argparse.Namespace(command="ping"), {"ping": spec}) == 0
    assert called["context"] is context


def test_dispatch_command_handles_unknown_commands(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command="unknown"), {})


def test_dispatch_command_requires_a_command(context):
    with pytest.raises(KeyError):
        cli.dispatch_command(context, argparse.Namespace(command=None), {})


def test_build_command_table_indexes_specs(command_spec_iterable):
    table = cli.build_command_table(command_spec_iterable)
    assert set(table) == {spec.name for spec in command_spec_iterable}


def test_build_command_table_detects_duplicate_commands():
    """build_command_table should guard against duplicate command names."""

    specs = [
        cli.CommandSpec("alpha", "A", lambda s: s.add_parser("alpha"), lambda c, a: 0),
        cli.CommandSpec("alpha", "Duplicate", lambda s: s.add_parser("alpha"), lambda c, a: 0),
    ]
    with pytest.raises(ValueError):
        cli.build_command_table(specs)


# ---------------------------------------------------------------------------
# Translation helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("P1:2", CartLine("P1", Decimal("2"))),
        ("P1:2:15", CartLine("P1", Decimal("2"), Decimal("15"))),
        ("P1:2::70", CartLine("P1", Decimal("2"), Decimal("0"), Decimal("70"))),
    ],
)
def test_parse_cart_line_accepts_optional_parts(raw, expected):
    assert cli.parse_cart_line(raw) == expected


@pytest.mark.parametrize("raw", ["P1", ":2", "P1:2:0:1:9"])
def test_parse_cart_line_rejects_malformed_lines(raw):
    with pytest.raises(ValueError):
        cli.parse_cart_line(raw)


def test_translate_sale_returns_sale_command():
    args = argparse.Namespace(
        lines=["P1:2"],
        customer_id="C-BIZ",
        payment_method=constants.PaymentMethod.DEFERRED.value,
        paid_amount=None,
        invoice_id=None,
        direct=False,
        due_date="2026-12-31",
        accept_below_cost=False,
        accept_credit_limit=True,
        user_id=None,
        notes="Site order",
    )
    command = cli.translate_sale(args)
    assert isinstance(command, SaleCommand)
    assert command.lines == (CartLine("P1", Decimal("2")),)
    assert command.payment_method is constants.PaymentMethod.DEFERRED
    assert command.due_date == date(2026, 12, 31)
    assert command.credit_limit_acknowledged is True
    assert command.notes == "Site order"


def test_translate_add_product_returns_payload():
    args = argparse.Namespace(
        product_id="P1",
        product_name="Cable",
        sell_price="65",
        cost_price="45",
        sku=None,
        category="cables",
        unit="meter",
        quantity="10",
        min_stock_alert="2",
        user_id=None,
    )
    payload = cli.translate_add_product(args)
    assert payload["sell_price"] == Decimal("65")
    assert payload["quantity"] == Decimal("10")
    assert payload["unit"] == "meter"


def test_translate_return_returns_return_command():
    args = argparse.Namespace(transaction_id="1001", user_id=None, notes="Faulty")
    assert cli.translate_return(args) == ReturnCommand(original_transaction_id="1001", notes="Faulty")


# ---------------------------------------------------------------------------
# Command execution helpers
# ---------------------------------------------------------------------------


def test_run_sale_invokes_bll(context, monkeypatch):
    """run_sale should delegate to the business logic layer."""

    command = SaleCommand(
        lines=(CartLine("P1", Decimal("1")),),
        customer_id="C-WALK",
        payment_method=constants.PaymentMethod.CASH,
    )
    monkeypatch.setattr(cli, "translate_sale", lambda value: command)
    called = {}

    def fake_complete(ctx: core_logic.RuntimeContext, cmd: SaleCommand) -> data_manager.TransactionRow:
        called["context"] = ctx
        called["cmd"] = cmd
        return data_manager.TransactionRow(
            transaction_id="1001",
            timestamp_iso="",
            transaction_type=constants.TransactionType.SALE.value,
            amount=Decimal("65"),
            payment_method=constants.PaymentMethod.CASH.value,
            status=constants.TransactionStatus.COMPLETED.value,
            description="",
        )

    monkeypatch.setattr(cli.core_logic, "complete_sale", fake_complete)
    assert cli.run_sale(context, argparse.Namespace()) == 0
    assert called["context"] is context
    assert called["cmd"] is command


def test_run_stock_report_prints_quantities(context, monkeypatch, capsys):
    monkeypatch.setattr(cli.core_logic, "calculate_inventory", lambda ctx: {"P1": Decimal("9")})
    assert cli.run_stock_report(context, argparse.Namespace()) == 0
    assert capsys.readouterr().out == "P1\t9\n"


def test_run_treasury_report_prints_balance(context, capsys):
    assert cli.run_treasury_report(context, argparse.Namespace()) == 0
    assert capsys.readouterr().out.strip() == str(constants.DEFAULT_OPENING_BALANCE)


# ---------------------------------------------------------------------------
# Error handling and persistence
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error, expected",
    [
        (core_logic.BusinessRuleViolation("invalid"), 2),
        (FileNotFoundError("missing"), 3),
        (ValueError("bad value"), 1),
    ],
)
def test_handle_cli_error_returns_exit_code(error: Exception, expected: int, caplog: pytest.LogCaptureFixture):
    """handle_cli_error should convert exceptions into exit codes."""

    caplog.set_level("ERROR")
    assert cli.handle_cli_error(error) == expected
    assert any(str(error) in record.getMessage() for record in caplog.records)


def test_persist_workbook_handles_read_only_workbooks(context, monkeypatch):
    """persist_workbook should translate permission errors."""

    def fake_persist(_: core_logic.RuntimeContext) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(cli.core_logic, "persist_context", fake_persist)
    with pytest.raises(RuntimeError, match="read-only"):
        cli.persist_workbook(context)


# ---------------------------------------------------------------------------
# Program entry point
# ---------------------------------------------------------------------------


def test_main_handles_bll_errors(monkeypatch, context):
    """main should surface business rule violations as non-zero exits."""

    parser = _stub_parser(command="sale")
    command_table = {"sale": cli.CommandSpec("sale", "help", lambda _: parser, lambda *_: 0)}

    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: context)

    def fake_dispatch(*_: object) -> int:
        raise core_logic.BusinessRuleViolation("invalid")

    monkeypatch.setattr(cli, "dispatch_command", fake_dispatch)
    monkeypatch.setattr(cli, "persist_workbook", lambda _: (_ for _ in ()).throw(AssertionError("should not persist")))

    assert cli.main(["sale"]) == 2


def test_main_skips_persist_for_reports(monkeypatch, context):
    parser = _stub_parser(command="profit")
    command_table = {
        "profit": cli.CommandSpec("profit", "help", lambda _: parser, lambda *_: 0, persist=False)
    }
    monkeypatch.setattr(cli, "build_parser", lambda: parser)
    monkeypatch.setattr(cli, "configure_subcommands", lambda _: command_table)
    monkeypatch.setattr(cli, "load_runtime_context", lambda path=None: context)
    monkeypatch.setattr(cli, "persist_workbook", lambda _: (_ for _ in ()).throw(AssertionError("should not persist")))

    assert cli.main(["profit"]) == 0


def test_main_runs_a_sale_end_to_end(config_file, capsys):
    """A full session through main persists each step to the workbook."""

    config = ["--config", str(config_file)]
    steps = [
        ["add-product", "--product-id", "P1", "--product-name", "Cable", "--sell-price", "65",
         "--cost-price", "45", "--quantity", "10"],
        ["add-customer", "--customer-id", "C-WALK", "--customer-name", "Walk-in"],
        ["open-shift", "--start-cash", "500"],
        ["sale", "--line", "P1:1", "--customer-id", "C-WALK", "--payment-method", "Cash"],
    ]
    for step in steps:
        assert cli.main([*config, *step]) == 0

    capsys.readouterr()
    assert cli.main([*config, "treasury"]) == 0
    assert Decimal(capsys.readouterr().out.strip()) == Decimal("50065")

    context = core_logic.load_runtime_context(config_file)
    assert context.store.get_product("P1").quantity == Decimal("9")
    assert cli.main([*config, "verify"]) == 0


def test_main_reports_business_rule_exit_code(config_file):
    """Selling without an open shift exits with code 2 and saves nothing."""

    config = ["--config", str(config_file)]
    assert cli.main([*config, "add-product", "--product-id", "P1", "--product-name", "Cable",
                     "--sell-price", "65", "--quantity", "1"]) == 0
    assert cli.main([*config, "add-customer", "--customer-id", "C-WALK", "--customer-name", "Walk-in"]) == 0

    exit_code = cli.main([*config, "sale", "--line", "P1:1", "--customer-id", "C-WALK", "--payment-method", "Cash"])

    assert exit_code == 2
    context = core_logic.load_runtime_context(config_file)
    assert context.store.list_transactions() == []


def test_main_reports_missing_config(tmp_path):
    assert cli.main(["--config", str(tmp_path / "absent.ini"), "stock"]) == 3


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stub_parser(command: str) -> argparse.ArgumentParser:
    """Create a stub parser that always returns the supplied command."""

    class _Stub(argparse.ArgumentParser):
        def parse_args(self, args: Iterable[str] | None = None, namespace: argparse.Namespace | None = None):  # type: ignore[override]
            return argparse.Namespace(command=command, config=None)

    return _Stub(prog="test")


def _registered_choices(parser: argparse.ArgumentParser) -> set[str]:
    """Return the set of registered sub-command names for assertion helpers."""

    actions = getattr(parser, "_subparsers", None)
    if not actions:
        return set()
    group_actions = actions._group_actions  # type: ignore[attr-defined]
    if not group_actions:
        return set()
    return set(group_actions[0].choices)  # type: ignore[index]
