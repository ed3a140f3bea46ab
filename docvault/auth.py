"""Authentication Module for DocVault

Provides password hashing, JWT issuing/verification, the register/login
services and the FastAPI dependency that guards every protected route.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import User, UserCRUD
from .errors import (
    AuthenticationError,
    ConflictError,
    InvalidTokenError,
    TokenExpiredError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

# Security scheme for FastAPI
security = HTTPBearer(auto_error=False)


# ============================================================================
# PASSWORD UTILITIES
# ============================================================================

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# JWT UTILITIES
# ============================================================================

class TokenService:
    """Issues and verifies signed, time-limited access tokens."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 300):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def create_access_token(self, user_id: int, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT carrying the user id."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=self.expire_minutes))

        to_encode = {
            "sub": str(user_id),
            "id": user_id,
            "type": "access",
            "exp": expire,
            "iat": now,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a JWT token.

        Raises:
            TokenExpiredError: the signature is valid but ``exp`` has passed
            InvalidTokenError: anything else wrong with the token
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredError()
        except JWTError as e:
            logger.debug(f"Token decode error: {e}")
            raise InvalidTokenError()

    def get_user_id(self, token: str) -> int:
        """Verify ``token`` and return the embedded user id."""
        payload = self.decode_token(token)

        if payload.get("type") != "access":
            raise InvalidTokenError()

        user_id = payload.get("id", payload.get("sub"))
        try:
            return int(user_id)
        except (TypeError, ValueError):
            raise InvalidTokenError()


# ============================================================================
# REGISTER / LOGIN
# ============================================================================

def register_user(db: Session, username: str, password: str) -> User:
    """Store a new user with a hashed password. No token is issued."""
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    if UserCRUD.get_by_username(db, username):
        raise ConflictError("Username already exists")

    try:
        user = UserCRUD.create(db, username=username, password_hash=hash_password(password))
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username already exists")

    logger.info("user_registered", extra={"event": "user_registered", "user_id": user.id})
    return user


def authenticate_user(db: Session, tokens: TokenService, username: str, password: str) -> Dict[str, Any]:
    """Check credentials and issue an access token."""
    user = UserCRUD.get_by_username(db, (username or "").strip())
    if not user:
        raise AuthenticationError("Authentication failed. User not found.")

    if not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Authentication failed. Wrong password.")

    token = tokens.create_access_token(user.id)
    logger.info("login_succeeded", extra={"event": "login_succeeded", "user_id": user.id})
    return {
        "message": "Authentication successful",
        "token": token,
        "user": {"id": user.id, "username": user.username},
    }


# ============================================================================
# AUTHENTICATION DEPENDENCIES
# ============================================================================

def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    tokens: TokenService = Depends(get_token_service),
) -> int:
    """
    FastAPI dependency returning the caller's user id.

    Raises:
        AuthenticationError: no bearer token (401)
        TokenExpiredError / InvalidTokenError: bad token (403)
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access denied: no token provided")

    return tokens.get_user_id(credentials.credentials)
