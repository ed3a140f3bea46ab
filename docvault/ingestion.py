"""Ingestion pipeline: uploaded file → extracted text → Document row."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import UploadConfig
from .database import Document, DocumentCRUD
from .errors import (
    ConflictError,
    InternalError,
    PayloadTooLargeError,
    UpstreamError,
    ValidationError,
)
from .extraction import TextExtractor, detect_document_kind
from .storage import S3Storage

logger = logging.getLogger(__name__)

DUPLICATE_FILENAME_MESSAGE = "A file with this filename already exists."


@dataclass
class UploadedFile:
    """An upload as received from the client."""
    filename: str
    content_type: Optional[str]
    data: bytes


class IngestionService:
    """Turns an uploaded file into a searchable Document owned by the caller."""

    def __init__(self, extractor: TextExtractor, upload_config: UploadConfig,
                 storage: Optional[S3Storage] = None):
        self.extractor = extractor
        self.config = upload_config
        self.storage = storage

    async def ingest(self, db: Session, owner_id: int, upload: Optional[UploadedFile]) -> Document:
        if upload is None or not upload.filename:
            raise ValidationError("No file uploaded.")

        kind = detect_document_kind(upload.content_type, self.config.allowed_types)

        if len(upload.data) > self.config.max_file_size:
            raise PayloadTooLargeError(
                f"File too large. Maximum size: {self.config.max_file_size / (1024*1024):.1f}MB"
            )

        # Cheap check before any extraction work
        if DocumentCRUD.get_by_owner_and_filename(db, owner_id, upload.filename):
            raise ConflictError(DUPLICATE_FILENAME_MESSAGE)

        start_time = time.time()
        loop = asyncio.get_running_loop()
        content = await loop.run_in_executor(
            None, self.extractor.extract, upload.data, kind, upload.filename
        )

        storage_key = None
        if self.storage is not None:
            storage_key = await loop.run_in_executor(None, self._archive_original, owner_id, upload)

        try:
            document = DocumentCRUD.create(
                db,
                owner_id=owner_id,
                filename=upload.filename,
                content=content,
                title=self.config.default_title,
                content_type=upload.content_type,
                storage_key=storage_key,
            )
        except IntegrityError:
            # Lost the race against a concurrent upload of the same filename
            db.rollback()
            self._discard_original(storage_key)
            raise ConflictError(DUPLICATE_FILENAME_MESSAGE)
        except SQLAlchemyError as e:
            db.rollback()
            self._discard_original(storage_key)
            logger.error(f"Failed to persist document {upload.filename}: {e}")
            raise InternalError("Failed to save document")

        logger.info(
            "document_ingested",
            extra={
                "event": "document_ingested",
                "document_id": document.id,
                "owner_id": owner_id,
                "kind": kind,
                "bytes": len(upload.data),
                "chars": len(content),
                "duration_ms": int((time.time() - start_time) * 1000),
            }
        )
        return document

    def _archive_original(self, owner_id: int, upload: UploadedFile) -> str:
        key = S3Storage.document_key(owner_id, upload.filename)
        try:
            return self.storage.upload_file(
                key, upload.data, upload.content_type, owner_id, upload.filename
            )
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError("Failed to store original file") from e

    def _discard_original(self, storage_key: Optional[str]):
        if not storage_key or self.storage is None:
            return
        try:
            self.storage.delete_file(storage_key)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Could not remove archived original {storage_key}: {e}")
