"""Ownership-scoped search, rename, delete, content edit and share links."""

import logging
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import Document, DocumentCRUD
from .errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ServiceUnavailableError,
    UpstreamError,
    ValidationError,
)
from .storage import S3Storage

logger = logging.getLogger(__name__)


class DocumentService:
    """Query/mutation surface over a user's documents."""

    def __init__(self, storage: Optional[S3Storage] = None, share_link_expiration: int = 3600):
        self.storage = storage
        self.share_link_expiration = share_link_expiration

    def search(self, db: Session, owner_id: int, query: Optional[str] = None) -> List[Document]:
        """Caller's documents, most recent first, optionally filtered by substring."""
        return DocumentCRUD.search(db, owner_id, query or None)

    def _get_owned(self, db: Session, owner_id: int, document_id: int, action: str) -> Document:
        document = DocumentCRUD.get_by_id(db, document_id)
        if not document:
            logger.info(f"Document {document_id} not found ({action})")
            raise NotFoundError("PDF not found.")
        if document.owner_id != owner_id:
            logger.warning(
                "ownership_denied",
                extra={"event": "ownership_denied", "action": action,
                       "document_id": document_id, "caller_id": owner_id}
            )
            raise AuthorizationError(f"Unauthorized to {action} this PDF.")
        return document

    def rename(self, db: Session, owner_id: int, document_id: int, new_filename: Optional[str]) -> Document:
        new_filename = (new_filename or "").strip()
        if not new_filename:
            raise ValidationError("New filename is required")

        document = self._get_owned(db, owner_id, document_id, "rename")

        if new_filename == document.filename:
            return document

        existing = DocumentCRUD.get_by_owner_and_filename(db, owner_id, new_filename)
        if existing is not None:
            raise ConflictError("A file with this filename already exists.")

        try:
            document = DocumentCRUD.update_fields(db, document, filename=new_filename)
        except IntegrityError:
            db.rollback()
            raise ConflictError("A file with this filename already exists.")

        logger.info(f"Renamed document {document_id} for user {owner_id}")
        return document

    def delete(self, db: Session, owner_id: int, document_id: int) -> int:
        document = self._get_owned(db, owner_id, document_id, "delete")
        storage_key = document.storage_key

        deleted = DocumentCRUD.delete_by_id(db, document_id, owner_id)
        if deleted != 1:
            logger.info(f"No documents matched delete of {document_id}")
            raise NotFoundError("No documents matched the query.")

        if storage_key and self.storage is not None:
            try:
                self.storage.delete_file(storage_key)
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Failed to delete S3 object {storage_key}: {e}")

        logger.info(f"Deleted document {document_id} for user {owner_id}")
        return deleted

    def update_content(self, db: Session, document_id: int, content: str,
                       caller_id: Optional[int] = None, enforce_owner: bool = False) -> Document:
        """Replace a document's content.

        Ownership is only checked when ``enforce_owner`` is set.
        """
        if content is None:
            raise ValidationError("Content is required")

        if enforce_owner:
            document = self._get_owned(db, caller_id, document_id, "update")
        else:
            document = DocumentCRUD.get_by_id(db, document_id)
            if not document:
                raise NotFoundError("PDF not found.")

        return DocumentCRUD.update_fields(db, document, content=content)

    def share_link(self, db: Session, owner_id: int, document_id: int,
                   expires_in: Optional[int] = None) -> dict:
        """Presigned URL to the archived original."""
        if self.storage is None:
            raise ServiceUnavailableError("Object storage is not configured")

        document = self._get_owned(db, owner_id, document_id, "share")
        if not document.storage_key:
            raise NotFoundError("No stored original for this PDF.")

        expiration = expires_in or self.share_link_expiration
        try:
            url = self.storage.get_presigned_url(document.storage_key, expiration=expiration)
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError("Failed to create share link") from e

        return {"id": document.id, "url": url, "expires_in": expiration}
