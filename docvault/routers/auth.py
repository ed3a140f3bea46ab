"""Registration and login endpoints."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..auth import TokenService, authenticate_user, get_token_service, register_user
from ..database import get_db
from ..models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Create an account.

    No token is returned; log in afterwards.
    """
    register_user(db, request.username, request.password)
    return MessageResponse(message="User registered successfully")


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange username and password for a bearer token."""
    return authenticate_user(db, tokens, request.username, request.password)
