"""Supporting documents for transactions and LPG refills.

File contents live in a blob store; the database only keeps metadata and
the storage key. Download links are short-lived signed URLs.
"""

import hashlib
import hmac
import mimetypes
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
from urllib.parse import parse_qs, urlencode, urlsplit

from condobooks.database.base import Database
from condobooks.domain.access import require_admin
from condobooks.domain.audit import AuditService
from condobooks.domain.entities import Actor, Attachment, AttachmentKind, AuditEntityType
from condobooks.domain.errors import (
    NotFoundError,
    ValidationError,
    attachment_not_found,
    refill_not_found,
    transaction_not_found,
)
from condobooks.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_URL_TTL = 3600


class BlobStore(ABC):
    """Abstract object storage for attachment contents."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store ``data`` under ``key``, replacing any previous object."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object. Missing objects are ignored."""
        pass

    @abstractmethod
    def presigned_url(self, key: str, ttl: Optional[int] = None) -> str:
        """Return a time-limited URL for reading the object."""
        pass


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory on disk.

    URLs are ``file://`` URLs carrying an ``expires`` timestamp and an HMAC
    signature over the key and expiry.
    """

    def __init__(self, root: Union[str, Path], signing_key: str, ttl: int = DEFAULT_URL_TTL):
        """Initialize the store.

        Args:
            root: Directory that holds the objects (created on demand)
            signing_key: Secret used to sign URLs
            ttl: Default URL lifetime in seconds
        """
        if ttl <= 0:
            raise ValueError("URL lifetime must be positive")
        self.root = Path(root).expanduser().resolve()
        self.signing_key = signing_key.encode("utf-8")
        self.ttl = ttl

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        path.unlink(missing_ok=True)

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self.signing_key, message, hashlib.sha256).hexdigest()

    def presigned_url(self, key: str, ttl: Optional[int] = None, now: Optional[float] = None) -> str:
        """Signed ``file://`` URL valid for ``ttl`` seconds (default: the store's TTL)."""
        now = time.time() if now is None else now
        expires = int(now) + (ttl or self.ttl)
        query = urlencode({"key": key, "expires": expires, "signature": self._signature(key, expires)})
        return f"{self.path_for(key).as_uri()}?{query}"

    def verify(self, url: str, now: Optional[float] = None) -> Optional[Path]:
        """Check a URL made by :meth:`presigned_url`.

        Returns:
            The object's path if the signature is valid and not expired, else None
        """
        params = parse_qs(urlsplit(url).query)
        try:
            key = params["key"][0]
            expires = int(params["expires"][0])
            signature = params["signature"][0]
        except (KeyError, IndexError, ValueError):
            return None
        now = time.time() if now is None else now
        if expires < now:
            return None
        if not hmac.compare_digest(signature, self._signature(key, expires)):
            return None
        return self.path_for(key)


def storage_key(kind: AttachmentKind, entity_id: int, filename: str) -> str:
    """Unique key ``<kind>/<entity id>/<random>-<sanitized filename>``."""
    safe = re.sub(r"[^a-zA-Z0-9.-]", "_", filename) or "file"
    return f"{kind.value}/{entity_id}/{uuid.uuid4().hex}-{safe}"


def guess_mime_type(filename: str) -> str:
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or DEFAULT_MIME_TYPE


class AttachmentService:
    """Service for uploading, linking and removing attachments."""

    def __init__(
        self,
        db: Database,
        blob_store: BlobStore,
        actor: Optional[Actor] = None,
        audit: Optional[AuditService] = None,
    ):
        """Initialize attachment service.

        Args:
            db: Database instance
            blob_store: Where file contents are stored
            actor: Acting identity for mutating operations
            audit: Audit service (defaults to one bound to ``actor``)
        """
        self.db = db
        self.blob_store = blob_store
        self.actor = actor
        self.audit = audit or AuditService(db, actor)

    def _require_entity(self, kind: AttachmentKind, entity_id: int) -> None:
        if kind is AttachmentKind.TRANSACTION:
            if self.db.get_transaction(entity_id) is None:
                raise NotFoundError(transaction_not_found(entity_id))
        elif kind is AttachmentKind.REFILL:
            if self.db.get_refill(entity_id) is None:
                raise NotFoundError(refill_not_found(entity_id))
        else:
            entry_ids = {e.id for r in self.db.list_refills() for e in r.entries}
            if entity_id not in entry_ids:
                raise NotFoundError(f"Refill entry {entity_id} not found")

    def upload_attachment(
        self,
        entity_id: int,
        content: Union[bytes, str, Path],
        filename: Optional[str] = None,
        entity_kind: AttachmentKind = AttachmentKind.TRANSACTION,
    ) -> Attachment:
        """Store a file and link it to a transaction, refill or refill entry.

        Args:
            entity_id: ID of the entity the file belongs to
            content: Raw bytes, or a path to read them from
            filename: Display name (defaults to the path's name)
            entity_kind: Which kind of entity ``entity_id`` refers to

        Returns:
            The created attachment

        Raises:
            AuthorizationError: If the actor is not an admin
            ValidationError: If the file is empty or has no name
            NotFoundError: If the entity doesn't exist
        """
        require_admin(self.actor, "upload attachments")
        entity_kind = AttachmentKind(entity_kind)
        if isinstance(content, (str, Path)):
            path = Path(content).expanduser()
            try:
                data = path.read_bytes()
            except OSError as e:
                raise ValidationError(f"Cannot read {path}: {e}") from e
            filename = filename or path.name
        else:
            data = bytes(content)
        if not filename:
            raise ValidationError("Attachment filename is required")
        if not data:
            raise ValidationError("Attachment is empty")
        self._require_entity(entity_kind, entity_id)

        key = storage_key(entity_kind, entity_id, filename)
        mime_type = guess_mime_type(filename)
        self.blob_store.put(key, data, mime_type)
        try:
            attachment_id = self.db.create_attachment(
                kind=entity_kind,
                entity_id=entity_id,
                filename=filename,
                storage_key=key,
                size=len(data),
                mime_type=mime_type,
            )
        except Exception:
            self.blob_store.delete(key)
            raise

        attachment = self.require_attachment(attachment_id)
        self.audit.log_create(AuditEntityType.ATTACHMENT, attachment_id, attachment)
        return attachment

    def require_attachment(self, attachment_id: int) -> Attachment:
        """Get attachment by ID or raise NotFoundError."""
        attachment = self.db.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError(attachment_not_found(attachment_id))
        return attachment

    def get_presigned_url(self, attachment_id: int, ttl: Optional[int] = None) -> str:
        """Time-limited download URL for an attachment.

        Raises:
            NotFoundError: If attachment doesn't exist
        """
        attachment = self.require_attachment(attachment_id)
        return self.blob_store.presigned_url(attachment.storage_key, ttl)

    def list_attachments(self, entity_kind: AttachmentKind, entity_id: int) -> list[Attachment]:
        return self.db.list_attachments(AttachmentKind(entity_kind), entity_id)

    def delete_attachment(self, attachment_id: int) -> None:
        """Remove an attachment's metadata and its stored object.

        Raises:
            AuthorizationError: If the actor is not an admin
            NotFoundError: If attachment doesn't exist
        """
        require_admin(self.actor, "delete attachments")
        attachment = self.require_attachment(attachment_id)
        self.db.delete_attachment(attachment_id)
        try:
            self.blob_store.delete(attachment.storage_key)
        except OSError:
            logger.warning("Could not remove stored object %s", attachment.storage_key, exc_info=True)
        self.audit.log_delete(AuditEntityType.ATTACHMENT, attachment_id, attachment)
