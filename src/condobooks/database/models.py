"""SQLAlchemy models for condobooks database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Owner(Base):
    """Apartment owner model."""

    __tablename__ = "owners"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    apartment_id = Column(String, unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    patterns = relationship(
        "OwnerPattern", back_populates="owner", cascade="all, delete-orphan", order_by="OwnerPattern.id"
    )
    transactions = relationship("Transaction", back_populates="owner")
    refill_entries = relationship("LpgRefillEntry", back_populates="owner", cascade="all, delete-orphan")


class OwnerPattern(Base):
    """Owner recognition pattern model."""

    __tablename__ = "owner_patterns"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False)
    pattern = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    owner = relationship("Owner", back_populates="patterns")


class Tag(Base):
    """Transaction tag model with an optional parent."""

    __tablename__ = "transaction_tags"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    color = Column(String, nullable=True)
    parent_id = Column(Integer, ForeignKey("transaction_tags.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    parent = relationship("Tag", remote_side=[id], backref="children")
    patterns = relationship(
        "TagPattern", back_populates="tag", cascade="all, delete-orphan", order_by="TagPattern.id"
    )
    transaction_links = relationship("TransactionTag", back_populates="tag", cascade="all, delete-orphan")
    refills = relationship("LpgRefill", back_populates="tag")


class TagPattern(Base):
    """Tag recognition pattern model."""

    __tablename__ = "tag_patterns"

    id = Column(Integer, primary_key=True)
    tag_id = Column(Integer, ForeignKey("transaction_tags.id", ondelete="CASCADE"), nullable=False)
    pattern = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    tag = relationship("Tag", back_populates="patterns")


class TransactionBatch(Base):
    """Imported statement file model."""

    __tablename__ = "transaction_batches"

    id = Column(Integer, primary_key=True)
    filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=False)
    account_number = Column(String, nullable=True)
    processed_at = Column(DateTime, default=_utcnow, nullable=False)
    total_transactions = Column(Integer, nullable=False)
    new_transactions = Column(Integer, nullable=False)
    duplicated_transactions = Column(Integer, nullable=False)

    transactions = relationship("Transaction", back_populates="batch", cascade="all, delete-orphan")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    type = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    description = Column(String, nullable=True)
    bank_description = Column(String, nullable=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="SET NULL"), nullable=True)
    reference = Column(String, nullable=True)
    serial = Column(String, nullable=True)
    category = Column(String, nullable=True)
    batch_id = Column(Integer, ForeignKey("transaction_batches.id"), nullable=True)
    is_duplicate = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    owner = relationship("Owner", back_populates="transactions")
    batch = relationship("TransactionBatch", back_populates="transactions")
    tag_links = relationship("TransactionTag", back_populates="transaction", cascade="all, delete-orphan")
    attachments = relationship("Attachment", back_populates="transaction", cascade="all, delete-orphan")


class TransactionTag(Base):
    """Transaction to tag link model."""

    __tablename__ = "transaction_to_tags"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    tag_id = Column(Integer, ForeignKey("transaction_tags.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("transaction_id", "tag_id", name="uq_transaction_tag"),)

    transaction = relationship("Transaction", back_populates="tag_links")
    tag = relationship("Tag", back_populates="transaction_links")


class LpgRefill(Base):
    """Shared LPG tank refill model."""

    __tablename__ = "lpg_refills"

    id = Column(Integer, primary_key=True)
    bill_amount = Column(Numeric(14, 6), nullable=False)
    gallons_refilled = Column(Numeric(14, 6), nullable=False)
    refill_date = Column(DateTime, nullable=False)
    efficiency_percentage = Column(Numeric(10, 6), default=0, nullable=False)
    tag_id = Column(Integer, ForeignKey("transaction_tags.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    tag = relationship("Tag", back_populates="refills")
    entries = relationship(
        "LpgRefillEntry", back_populates="refill", cascade="all, delete-orphan", order_by="LpgRefillEntry.id"
    )
    attachments = relationship("Attachment", back_populates="refill", cascade="all, delete-orphan")


class LpgRefillEntry(Base):
    """One owner's metered share of a refill."""

    __tablename__ = "lpg_refill_entries"

    id = Column(Integer, primary_key=True)
    refill_id = Column(Integer, ForeignKey("lpg_refills.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False)
    previous_reading = Column(Numeric(14, 6), nullable=False)
    current_reading = Column(Numeric(14, 6), nullable=False)
    consumption = Column(Numeric(14, 6), nullable=False)
    percentage = Column(Numeric(18, 10), nullable=False)
    subtotal = Column(Numeric(18, 10), nullable=False)
    total_amount = Column(Numeric(18, 10), nullable=False)

    __table_args__ = (UniqueConstraint("refill_id", "owner_id", name="uq_refill_owner"),)

    refill = relationship("LpgRefill", back_populates="entries")
    owner = relationship("Owner", back_populates="refill_entries")
    attachments = relationship("Attachment", back_populates="refill_entry", cascade="all, delete-orphan")


class KVStore(Base):
    """Untyped string key/value settings."""

    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class AuditLog(Base):
    """Append-only audit trail model."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    event_type = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=True)
    user_id = Column(String, nullable=True)
    user_email = Column(String, nullable=True)
    details = Column(Text, nullable=True)
    is_system_event = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)


class Attachment(Base):
    """Attachment metadata; the file itself lives in the blob store."""

    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=True)
    refill_id = Column(Integer, ForeignKey("lpg_refills.id", ondelete="CASCADE"), nullable=True)
    refill_entry_id = Column(Integer, ForeignKey("lpg_refill_entries.id", ondelete="CASCADE"), nullable=True)
    filename = Column(String, nullable=False)
    storage_key = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    transaction = relationship("Transaction", back_populates="attachments")
    refill = relationship("LpgRefill", back_populates="attachments")
    refill_entry = relationship("LpgRefillEntry", back_populates="attachments")


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Only SQLite needs foreign key enforcement switched on per connection.
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
