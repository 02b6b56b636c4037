"""
Database configuration, session management, and SQLAlchemy ORM models.

Provides:
- Database engine and session factory built from Settings
- SQLAlchemy ORM models for users, credentials, repositories, reviews and usage
- FastAPI dependency for database sessions
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from fastapi import Request
from sqlalchemy import (
    create_engine,
    BigInteger,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SQLEnum,
    event,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session, relationship
from sqlalchemy.pool import StaticPool

from coderevu.config import Settings

# Base class for all ORM models
Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Database Engine & Session Configuration
# ============================================================================


class Database:
    """
    Owns the engine and session factory for one configured database.

    Built once at application startup from Settings and shared by the API,
    the review dispatcher and the workflow worker.
    """

    def __init__(self, database_url: str):
        is_sqlite = "sqlite" in database_url
        engine_kwargs = {}
        if is_sqlite:
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            # In-memory databases live inside a single connection
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool
        elif "postgres" in database_url:
            # Connection pooling for production
            engine_kwargs["pool_size"] = 10
            engine_kwargs["max_overflow"] = 20

        self.url = database_url
        self.engine = create_engine(database_url, **engine_kwargs)

        # Enable foreign key constraints for SQLite
        if is_sqlite:

            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        # Session factory for creating database sessions
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url)

    def init_db(self) -> None:
        """
        Initialize the database by creating all tables.

        Should be called once on application startup or during setup.
        """
        # Job tables are declared beside the runtime that owns them
        import coderevu.jobs.queue  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()


# ============================================================================
# Enums for ORM Models
# ============================================================================


class ReviewStatus(str, Enum):
    """Status of an AI review."""

    PENDING = "pending"  # Queued, not yet generated
    COMPLETED = "completed"  # Comment posted and saved
    FAILED = "failed"  # Could not be queued or generated


class SubscriptionTier(str, Enum):
    """Billing tier of a user."""

    FREE = "FREE"
    PRO = "PRO"


class SubscriptionStatus(str, Enum):
    """Billing status reported by the payment provider."""

    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


# ============================================================================
# ORM Models
# ============================================================================


class User(Base):
    """An application user and their subscription state."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True, index=True)

    subscription_tier = Column(
        SQLEnum(SubscriptionTier), default=SubscriptionTier.FREE, nullable=False
    )
    subscription_status = Column(SQLEnum(SubscriptionStatus), nullable=True)
    polar_customer_id = Column(String(255), nullable=True)
    polar_subscription_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")
    repositories = relationship(
        "Repository", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, tier={self.subscription_tier})>"


class Account(Base):
    """
    Linked OAuth account of a user.

    The GitHub account's access token is the credential used for every
    GitHub API call made on the user's behalf.
    """

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_id = Column(String(50), nullable=False, index=True)
    access_token = Column(Text, nullable=True)

    user = relationship("User", back_populates="accounts")

    def __repr__(self) -> str:
        return f"<Account(user_id={self.user_id}, provider={self.provider_id})>"


class Repository(Base):
    """
    A GitHub repository connected by a user.

    github_id is GitHub's 64-bit repository id.
    """

    __tablename__ = "repositories"

    id = Column(String(36), primary_key=True, default=_new_id)
    github_id = Column(BigInteger, nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    owner = Column(String(255), nullable=False)
    full_name = Column(String(512), nullable=False, index=True)
    url = Column(String(512), nullable=False)

    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime, default=_utcnow, nullable=False)

    user = relationship("User", back_populates="repositories")
    reviews = relationship(
        "Review", back_populates="repository", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Repository(id={self.id}, full_name={self.full_name})>"


class Review(Base):
    """
    An AI review of a GitHub pull request.

    Rows are only ever inserted: every successful or failed attempt adds a
    new record, so a PR reviewed twice has two rows.
    """

    __tablename__ = "reviews"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    repository_id = Column(
        String(36),
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # GitHub PR number
    pr_number = Column(Integer, nullable=False, index=True)
    pr_title = Column(String(512), nullable=False)
    pr_url = Column(String(512), nullable=False)

    # Markdown review, or the error message for failed reviews
    review = Column(Text, nullable=False)

    status = Column(
        SQLEnum(ReviewStatus), default=ReviewStatus.PENDING, nullable=False, index=True
    )

    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)

    repository = relationship("Repository", back_populates="reviews")

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, pr_number={self.pr_number}, status={self.status})>"


class UserUsage(Base):
    """Per-user usage counters consulted by the subscription limits."""

    __tablename__ = "user_usage"

    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    repository_count = Column(Integer, default=0, nullable=False)

    review_count_rows = relationship(
        "RepositoryReviewCount", cascade="all, delete-orphan"
    )

    @property
    def review_counts(self) -> dict:
        """Mapping of repository id to reviews generated for it."""
        return {row.repository_id: row.count for row in self.review_count_rows}

    def __repr__(self) -> str:
        return f"<UserUsage(user_id={self.user_id}, repos={self.repository_count})>"


class RepositoryReviewCount(Base):
    """Number of reviews generated for one repository of one user."""

    __tablename__ = "repository_review_counts"
    __table_args__ = (UniqueConstraint("user_id", "repository_id"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(
        String(36), ForeignKey("user_usage.user_id", ondelete="CASCADE"), nullable=False
    )
    # Not a foreign key: counts outlive disconnected repositories
    repository_id = Column(String(36), nullable=False)
    count = Column(Integer, default=0, nullable=False)


# ============================================================================
# FastAPI Dependency
# ============================================================================


def get_db(request: Request) -> Session:
    """
    FastAPI dependency that provides a database session.

    Yields a new database session from the application's Database and
    ensures it's closed after use.

    Yields:
        Session: A SQLAlchemy database session
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
