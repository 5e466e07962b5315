"""Shared pytest fixtures and utilities for POS ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from pos_ledger import cli, constants, core_logic, data_manager  # noqa: E402
from pos_ledger.commands import OpenShiftCommand  # noqa: E402
from pos_ledger.setup_excel import create_master_workbook  # noqa: E402
from pos_ledger.store import LedgerStore  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
DEFAULT_USER_ID = "U-ADMIN"
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "CompanyName = {company_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Defaults]\n"
    "DefaultUser = {default_user_id}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    default_user_id: str
    schema_version: str
    company_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(
        *,
        subdir: str | None = None,
        default_user_id: str = DEFAULT_USER_ID,
        filename: str = "ledger.xlsx",
        store_settings: data_manager.StoreSettings | None = None,
    ) -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(
            workbook_path,
            default_user_id=default_user_id,
            company_name="Test Store",
            store_settings=store_settings,
            overwrite=True,
        )
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh master workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        company_name: str = "Test Store",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        default_user_id: str = DEFAULT_USER_ID,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        workbook_path = workbook_factory(subdir=bundle_dir_name, default_user_id=default_user_id)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                company_name=company_name,
                schema_version=schema_version,
                default_user_id=default_user_id,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            default_user_id=default_user_id,
            schema_version=schema_version,
            company_name=company_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="ledger-cli", description="POS ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for in-memory contexts."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "ledger.xlsx",
        company_name="Test Store",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        default_user_id=DEFAULT_USER_ID,
    )


@pytest.fixture
def workbook() -> Mock:
    """Return a mock workbook; in-memory tests never persist."""

    return Mock(name="workbook")


@pytest.fixture
def store_settings() -> data_manager.StoreSettings:
    return data_manager.StoreSettings(company_name="Test Store")


@pytest.fixture
def context(
    settings: data_manager.ConfigSettings,
    workbook: Mock,
    store_settings: data_manager.StoreSettings,
) -> core_logic.RuntimeContext:
    """Assemble a runtime context around an empty store with one admin user."""

    document = data_manager.LedgerDocument(
        settings=store_settings,
        users=[
            data_manager.UserRow(
                user_id=DEFAULT_USER_ID,
                username="admin",
                full_name="Administrator",
                role=constants.UserRole.ADMIN.value,
            )
        ],
    )
    return core_logic.RuntimeContext(settings=settings, workbook=workbook, store=LedgerStore(document))


def seed_catalog(context: core_logic.RuntimeContext) -> None:
    """Register the products and parties most scenarios rely on."""

    core_logic.add_product(
        context,
        product_id="P1",
        product_name="Cable 2m",
        cost_price=Decimal("45"),
        sell_price=Decimal("65"),
        quantity=Decimal("10"),
        min_stock_alert=Decimal("2"),
    )
    core_logic.add_product(
        context,
        product_id="P2",
        product_name="Switch",
        cost_price=Decimal("100"),
        sell_price=Decimal("150"),
        quantity=Decimal("5"),
    )
    core_logic.add_customer(
        context,
        customer_id="C-WALK",
        customer_name="Walk-in",
        customer_type=constants.CustomerType.CONSUMER,
    )
    core_logic.add_customer(
        context,
        customer_id="C-BIZ",
        customer_name="Acme Contracting",
        customer_type=constants.CustomerType.BUSINESS,
        credit_limit=Decimal("500"),
    )
    core_logic.add_supplier(context, supplier_id="SUP-1", supplier_name="Wholesale Co")


@pytest.fixture
def seeded_context(context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    """In-memory context with catalog data and no open shift."""

    seed_catalog(context)
    return context


@pytest.fixture
def shift_context(seeded_context: core_logic.RuntimeContext) -> core_logic.RuntimeContext:
    """In-memory context with catalog data and an open shift."""

    core_logic.open_shift(seeded_context, OpenShiftCommand(start_cash=Decimal("500")))
    return seeded_context


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply
