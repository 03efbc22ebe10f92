"""Shared pytest fixtures for condobooks tests."""

import os
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest

from condobooks.database.factories import create_sqlite_database
from condobooks.domain.audit import AuditService
from condobooks.domain.balance import BalanceService
from condobooks.domain.batch_import import BatchImportService
from condobooks.domain.entities import Actor, NewTransaction, TransactionType
from condobooks.domain.lpg import LpgService
from condobooks.domain.owner import OwnerService
from condobooks.domain.patterns import PatternService
from condobooks.domain.payments import PaymentService
from condobooks.domain.tag import TagService
from condobooks.domain.transaction import TransactionService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def admin():
    return Actor(user_id="admin@example.com", email="admin@example.com", is_admin=True)


@pytest.fixture
def viewer():
    return Actor(user_id="viewer@example.com", email="viewer@example.com", is_admin=False)


@pytest.fixture
def owner_service(temp_db, admin):
    return OwnerService(temp_db, admin)


@pytest.fixture
def tag_service(temp_db, admin):
    return TagService(temp_db, admin)


@pytest.fixture
def transaction_service(temp_db, admin):
    return TransactionService(temp_db, admin)


@pytest.fixture
def pattern_service(temp_db, admin):
    return PatternService(temp_db, admin, chunk_size=2)


@pytest.fixture
def import_service(temp_db, admin):
    return BatchImportService(temp_db, admin)


@pytest.fixture
def lpg_service(temp_db, admin):
    return LpgService(temp_db, admin)


@pytest.fixture
def payment_service(temp_db):
    return PaymentService(temp_db)


@pytest.fixture
def balance_service(temp_db, admin):
    return BalanceService(temp_db, admin)


@pytest.fixture
def audit_service(temp_db, admin):
    return AuditService(temp_db, admin)


@pytest.fixture
def sample_owners(owner_service):
    """Three owners keyed by apartment."""
    return {
        apt: owner_service.create_owner(name=name, apartment_id=apt)
        for apt, name in [("1A", "Luis Garcia"), ("2B", "Marta Diaz"), ("3B", "Ana Perez")]
    }


@pytest.fixture
def make_transaction(temp_db):
    """Insert a transaction directly through the storage layer."""

    def _make(
        amount="100",
        type=TransactionType.MONEY_IN,
        date=datetime(2024, 3, 1),
        description="TRANSFER",
        owner_id=None,
        serial=None,
        tag_ids=(),
    ):
        txn_id = temp_db.create_transaction(
            NewTransaction(
                type=type,
                amount=Decimal(amount),
                date=date,
                description=description,
                bank_description=description,
                owner_id=owner_id,
                serial=serial,
                tag_ids=tuple(tag_ids),
            )
        )
        return temp_db.get_transaction(txn_id)

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def statement_bytes(fixtures_dir):
    return (fixtures_dir / "popular_statement.csv").read_bytes()
