"""Pydantic Models for DocVault API

Defines request/response models for API endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import datetime


# ============================================================================
# AUTH MODELS
# ============================================================================

class RegisterRequest(BaseModel):
    """Request model for user registration."""
    username: str = Field(..., description="Unique username", max_length=150)
    password: str = Field(..., description="Password")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "alice",
                "password": "StrongPass123"
            }
        }


class LoginRequest(BaseModel):
    """Request model for login."""
    username: str = Field(..., description="Username")
    password: str = Field(..., description="Password")


class UserInfo(BaseModel):
    """Minimal user info returned on login."""
    id: int
    username: str


class LoginResponse(BaseModel):
    """Response model for successful login."""
    message: str
    token: str = Field(..., description="Bearer token, valid for a fixed period")
    user: UserInfo


# ============================================================================
# DOCUMENT MODELS
# ============================================================================

class DocumentResponse(BaseModel):
    """A stored document."""
    id: int
    title: Optional[str] = None
    content: str
    filename: str
    owner_id: int
    uploaded_at: datetime
    content_type: Optional[str] = None

    class Config:
        from_attributes = True


class UploadResponse(BaseModel):
    """Response model for uploads."""
    message: str
    id: int = Field(..., description="ID of the new document")


class RenameRequest(BaseModel):
    """Request model for renaming a document."""
    new_filename: Optional[str] = Field(default=None, alias="newFilename", description="New filename")

    class Config:
        populate_by_name = True
        json_schema_extra = {"example": {"newFilename": "quarterly-report.pdf"}}


class UpdateContentRequest(BaseModel):
    """Request model for replacing a document's text."""
    content: Optional[str] = Field(default=None, description="Replacement text")


class ShareResponse(BaseModel):
    """Presigned link to the archived original."""
    id: int
    url: str
    expires_in: int = Field(..., description="Link lifetime in seconds")


# ============================================================================
# CHAT MODELS
# ============================================================================

class ChatRequest(BaseModel):
    """Request model for /chat-with-pdf."""
    question: Optional[str] = Field(default=None, description="Question about your documents")

    class Config:
        json_schema_extra = {"example": {"question": "What is the total on the March invoice?"}}


class ChatResponse(BaseModel):
    """Response model for /chat-with-pdf."""
    reply: str


# ============================================================================
# COMMON MODELS
# ============================================================================

class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""
    status: str = Field(..., description="System status (healthy/unhealthy)")
    database: bool = Field(..., description="Whether the document store answers")
    llm_configured: bool
    storage_configured: bool


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[Any] = Field(default=None, description="Additional error details")
