"""Document endpoints: upload, search, rename, delete, content edit, share.

Every route except PUT /update/{id} requires a bearer token and only touches
the caller's own documents. PUT /update/{id} is open unless
``auth.protect_content_updates`` is enabled.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..auth import TokenService, get_current_user_id, get_token_service, security
from ..config import DocVaultConfig
from ..database import get_db
from ..dependencies import get_config, get_document_service, get_ingestion_service
from ..documents import DocumentService
from ..errors import AuthenticationError
from ..ingestion import IngestionService, UploadedFile
from ..models import (
    DocumentResponse,
    MessageResponse,
    RenameRequest,
    ShareResponse,
    UpdateContentRequest,
    UploadResponse,
)


router = APIRouter(tags=["Documents"])


async def get_update_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    tokens: TokenService = Depends(get_token_service),
    config: DocVaultConfig = Depends(get_config),
) -> Optional[int]:
    """Caller id for PUT /update/{id}; None while content updates are unprotected."""
    if not config.auth.protect_content_updates:
        return None
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access denied: no token provided")
    return tokens.get_user_id(credentials.credentials)


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: Optional[UploadFile] = File(default=None, description="PDF or DOCX file"),
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ingestion: IngestionService = Depends(get_ingestion_service),
):
    """
    Upload a PDF or DOCX file.

    The text is extracted and stored as a new document owned by the caller.
    Filenames are unique per user.
    """
    upload = None
    if file is not None:
        upload = UploadedFile(
            filename=file.filename or "",
            content_type=file.content_type,
            data=await file.read(),
        )

    document = await ingestion.ingest(db, caller_id, upload)
    return UploadResponse(message="PDF uploaded and indexed!", id=document.id)


@router.get("/search", response_model=List[DocumentResponse])
async def search_documents(
    query: Optional[str] = Query(default=None, description="Case-insensitive substring of filename or content"),
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """List the caller's documents, most recent first, optionally filtered."""
    return documents.search(db, caller_id, query)


@router.delete("/delete/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: int,
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """Permanently delete one of the caller's documents."""
    await run_in_threadpool(documents.delete, db, caller_id, document_id)
    return MessageResponse(message="PDF deleted successfully!")


@router.put("/update/{document_id}", response_model=DocumentResponse)
async def update_document_content(
    document_id: int,
    request: UpdateContentRequest,
    caller_id: Optional[int] = Depends(get_update_caller),
    config: DocVaultConfig = Depends(get_config),
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """Replace a document's text and return the updated record."""
    return documents.update_content(
        db,
        document_id,
        request.content,
        caller_id=caller_id,
        enforce_owner=config.auth.protect_content_updates,
    )


@router.put("/rename/{document_id}", response_model=MessageResponse)
async def rename_document(
    document_id: int,
    request: RenameRequest,
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """Change the filename of one of the caller's documents."""
    documents.rename(db, caller_id, document_id, request.new_filename)
    return MessageResponse(message="PDF renamed successfully!")


@router.get("/share/{document_id}", response_model=ShareResponse)
async def share_document(
    document_id: int,
    expires_in: Optional[int] = Query(default=None, ge=60, le=604800, description="Link lifetime in seconds"),
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """Presigned download link for the original upload."""
    return await run_in_threadpool(documents.share_link, db, caller_id, document_id, expires_in)
