"""FastAPI dependencies resolving the collaborators built by ``create_app``."""

from fastapi import Request

from .chat import ChatService
from .config import DocVaultConfig
from .documents import DocumentService
from .ingestion import IngestionService


def get_config(request: Request) -> DocVaultConfig:
    return request.app.state.config


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion


def get_document_service(request: Request) -> DocumentService:
    return request.app.state.documents


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat
