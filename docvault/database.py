"""Database Models and Setup for DocVault

SQLAlchemy models for users and documents.
Uses SQLite for development, can be switched to PostgreSQL for production.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List

from fastapi import Request
from sqlalchemy import (
    create_engine, event, func, Column, Integer, String, DateTime, ForeignKey, Text,
    UniqueConstraint, text
)
from sqlalchemy.orm import sessionmaker, relationship, Session, declarative_base
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp (stored without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


# ============================================================================
# DATABASE MODELS
# ============================================================================

class User(Base):
    """User account model."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(DateTime, default=utcnow)

    documents = relationship("Document", back_populates="owner")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Document(Base):
    """Uploaded document with its extracted text.

    A (owner_id, filename) pair is unique.
    """
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("owner_id", "filename", name="uq_documents_owner_filename"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    title = Column(String(500), default="Untitled PDF")
    content = Column(Text, nullable=False, default="")
    filename = Column(String(500), nullable=False)
    content_type = Column(String(255), nullable=True)

    # Object storage key of the archived original (S3)
    storage_key = Column(String(1000), nullable=True)

    uploaded_at = Column(DateTime, default=utcnow, index=True)

    owner = relationship("User", back_populates="documents")

    def __repr__(self):
        return f"<Document(id={self.id}, filename={self.filename})>"


# ============================================================================
# DATABASE UTILITIES
# ============================================================================

def _register_sqlite_functions(dbapi_conn, connection_record):
    dbapi_conn.create_function("casefold", 1, _casefold, deterministic=True)


class Database:
    """Engine and session factory, built once at startup."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            # SQLite lower() only folds ASCII
            event.listen(self.engine, "connect", _register_sqlite_functions)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def init_db(self):
        """Create tables."""
        logger.info(f"Initializing database: {self.engine.url.render_as_string(hide_password=True)}")
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created successfully")

    def session(self) -> Session:
        """Get a database session (caller closes it)."""
        return self.SessionLocal()

    def ping(self) -> bool:
        """Return True when the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def dispose(self):
        self.engine.dispose()


def get_db(request: Request) -> Session:
    """Get database session (dependency for FastAPI)."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


# ============================================================================
# CRUD OPERATIONS
# ============================================================================

class UserCRUD:
    """CRUD operations for User model."""

    @staticmethod
    def create(db: Session, username: str, password_hash: str) -> User:
        """Create a new user."""
        user = User(username=username, password_hash=password_hash)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[User]:
        """Get user by username."""
        return db.query(User).filter(User.username == username).first()


class DocumentCRUD:
    """CRUD operations for Document model."""

    @staticmethod
    def create(db: Session, owner_id: int, filename: str, content: str, **fields) -> Document:
        """Create a new document record."""
        document = Document(
            owner_id=owner_id,
            filename=filename,
            content=content,
            **fields
        )
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def get_by_id(db: Session, document_id: int) -> Optional[Document]:
        """Get document by ID."""
        return db.query(Document).filter(Document.id == document_id).first()

    @staticmethod
    def get_by_owner_and_filename(db: Session, owner_id: int, filename: str) -> Optional[Document]:
        """Get an owner's document by filename."""
        return db.query(Document).filter(
            Document.owner_id == owner_id,
            Document.filename == filename
        ).first()

    @staticmethod
    def list_for_owner(db: Session, owner_id: int) -> List[Document]:
        """All documents for an owner, most recent first."""
        return DocumentCRUD.search(db, owner_id)

    @staticmethod
    def search(db: Session, owner_id: int, query: Optional[str] = None) -> List[Document]:
        """Owner's documents whose filename or content contains ``query``.

        Matching is a case-insensitive literal substring match; without a
        query every document of the owner is returned.
        """
        q = db.query(Document).filter(Document.owner_id == owner_id)
        if query and db.get_bind().dialect.name == "sqlite":
            folded = query.casefold()
            q = q.filter(
                func.casefold(Document.filename, type_=String).contains(folded, autoescape=True)
                | func.casefold(Document.content, type_=Text).contains(folded, autoescape=True)
            )
        elif query:
            pattern = f"%{_escape_like(query)}%"
            q = q.filter(
                Document.filename.ilike(pattern, escape="\\")
                | Document.content.ilike(pattern, escape="\\")
            )
        return q.order_by(Document.uploaded_at.desc(), Document.id.desc()).all()

    @staticmethod
    def update_fields(db: Session, document: Document, **fields) -> Document:
        """Update columns on a document in place."""
        for key, value in fields.items():
            setattr(document, key, value)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def delete_by_id(db: Session, document_id: int, owner_id: int) -> int:
        """Delete an owner's document. Returns the number of rows removed."""
        deleted = db.query(Document).filter(
            Document.id == document_id,
            Document.owner_id == owner_id
        ).delete(synchronize_session=False)
        db.commit()
        return deleted
