"""Tests for attachments and the local blob store."""

from datetime import datetime
from decimal import Decimal

import pytest

from condobooks.domain.attachments import AttachmentService, LocalBlobStore, guess_mime_type, storage_key
from condobooks.domain.entities import AttachmentKind, MeterReading
from condobooks.domain.errors import AuthorizationError, NotFoundError, ValidationError


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs", signing_key="secret", ttl=60)


@pytest.fixture
def attachment_service(temp_db, blob_store, admin):
    return AttachmentService(temp_db, blob_store, admin)


def test_signed_url_round_trip(blob_store):
    blob_store.put("transaction/1/abc-receipt.pdf", b"%PDF", "application/pdf")

    url = blob_store.presigned_url("transaction/1/abc-receipt.pdf", now=1000)

    assert url.startswith("file://")
    path = blob_store.verify(url, now=1030)
    assert path is not None
    assert path.read_bytes() == b"%PDF"


def test_signed_url_expires(blob_store):
    url = blob_store.presigned_url("transaction/1/abc-receipt.pdf", ttl=10, now=1000)
    assert blob_store.verify(url, now=1011) is None


def test_tampered_url_is_rejected(blob_store):
    url = blob_store.presigned_url("transaction/1/abc-receipt.pdf", now=1000)
    assert blob_store.verify(url.replace("transaction%2F1", "transaction%2F2"), now=1001) is None
    assert blob_store.verify("file:///tmp/x", now=1001) is None


def test_keys_cannot_escape_root(blob_store):
    with pytest.raises(ValueError):
        blob_store.path_for("../outside.txt")


def test_store_rejects_non_positive_ttl(tmp_path):
    with pytest.raises(ValueError):
        LocalBlobStore(tmp_path, signing_key="secret", ttl=0)


def test_storage_key_and_mime_type():
    key = storage_key(AttachmentKind.REFILL, 7, "recibo gas (marzo).pdf")
    assert key.startswith("refill/7/")
    assert key.endswith("-recibo_gas__marzo_.pdf")
    assert guess_mime_type("scan.png") == "image/png"
    assert guess_mime_type("notes") == "application/octet-stream"


def test_upload_list_and_delete(attachment_service, blob_store, make_transaction):
    txn = make_transaction()

    attachment = attachment_service.upload_attachment(txn.id, b"receipt", filename="receipt.pdf")

    assert attachment.kind is AttachmentKind.TRANSACTION
    assert attachment.size == 7
    assert attachment.mime_type == "application/pdf"
    assert blob_store.path_for(attachment.storage_key).read_bytes() == b"receipt"
    assert [a.id for a in attachment_service.list_attachments(AttachmentKind.TRANSACTION, txn.id)] == [
        attachment.id
    ]
    assert blob_store.verify(attachment_service.get_presigned_url(attachment.id)) is not None

    attachment_service.delete_attachment(attachment.id)

    assert not blob_store.path_for(attachment.storage_key).exists()
    assert attachment_service.list_attachments(AttachmentKind.TRANSACTION, txn.id) == []
    with pytest.raises(NotFoundError):
        attachment_service.require_attachment(attachment.id)


def test_upload_from_path(attachment_service, make_transaction, tmp_path):
    txn = make_transaction()
    source = tmp_path / "voucher.txt"
    source.write_text("paid")

    attachment = attachment_service.upload_attachment(txn.id, source)

    assert attachment.filename == "voucher.txt"
    assert attachment.size == 4


def test_upload_to_refill_entry(attachment_service, lpg_service, sample_owners):
    refill = lpg_service.create_refill(
        Decimal("100"), Decimal("5"), datetime(2024, 3, 1), Decimal("0"),
        [MeterReading(sample_owners["1A"].id, Decimal("3"))],
    )
    entry = refill.entries[0]

    attachment = attachment_service.upload_attachment(
        entry.id, b"meter photo", filename="meter.jpg", entity_kind=AttachmentKind.REFILL_ENTRY
    )

    assert attachment.entity_id == entry.id
    assert attachment_service.list_attachments(AttachmentKind.REFILL_ENTRY, entry.id)[0].id == attachment.id


def test_upload_rejections(attachment_service, make_transaction, tmp_path):
    txn = make_transaction()
    with pytest.raises(ValidationError):
        attachment_service.upload_attachment(txn.id, b"", filename="empty.pdf")
    with pytest.raises(ValidationError):
        attachment_service.upload_attachment(txn.id, b"data")
    with pytest.raises(ValidationError):
        attachment_service.upload_attachment(txn.id, tmp_path / "missing.pdf")
    with pytest.raises(NotFoundError):
        attachment_service.upload_attachment(999, b"data", filename="x.pdf")
    with pytest.raises(NotFoundError):
        attachment_service.upload_attachment(999, b"data", filename="x.pdf", entity_kind=AttachmentKind.REFILL)


def test_failed_insert_removes_blob(attachment_service, blob_store, make_transaction, temp_db, monkeypatch):
    txn = make_transaction()

    def broken(**kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(temp_db, "create_attachment", broken)

    with pytest.raises(RuntimeError):
        attachment_service.upload_attachment(txn.id, b"receipt", filename="receipt.pdf")
    assert not any(p.is_file() for p in blob_store.root.rglob("*"))


def test_upload_requires_admin(temp_db, blob_store, viewer, make_transaction):
    txn = make_transaction()
    with pytest.raises(AuthorizationError):
        AttachmentService(temp_db, blob_store, viewer).upload_attachment(txn.id, b"x", filename="x.pdf")
