"""
database.py — SamvidhanAI
SQLAlchemy models and session factory.

Users, lawyers and admins are separate tables. A user's consultations and chat
history are append-only child rows; history order is the autoincrement id.
"""

from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from settings import Settings


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo on round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(Settings.DATABASE_URL, **_engine_kwargs(Settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_premium = Column(Boolean, default=False, nullable=False)
    premium_expiry = Column(DateTime)
    consent_given = Column(Boolean, default=False, nullable=False)
    consent_date = Column(DateTime)
    account_status = Column(String(32), default="active", nullable=False)
    deletion_requested = Column(Boolean, default=False, nullable=False)
    deletion_request_date = Column(DateTime)
    ads_removed = Column(Boolean, default=False, nullable=False)
    language = Column(String(8), default="en", nullable=False)
    problem_description = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime)

    consultations = relationship(
        "Consultation", back_populates="user", cascade="all, delete-orphan",
        order_by="Consultation.id",
    )
    history = relationship(
        "HistoryEntry", back_populates="user", cascade="all, delete-orphan",
        order_by="HistoryEntry.id",
    )
    payments = relationship("Payment", cascade="all, delete-orphan")
    threads = relationship("ChatThread", back_populates="user", cascade="all, delete-orphan")


class Lawyer(Base):
    __tablename__ = "lawyers"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    bar_council_number = Column(String(64), unique=True, nullable=False)
    aadhaar_number = Column(String(16), unique=True, nullable=False)
    specialization = Column(JSON, default=list, nullable=False)
    experience = Column(Integer)
    court_jurisdiction = Column(String(200))
    address = Column(Text)
    bio = Column(Text)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)
    account_status = Column(String(32), default="pending", nullable=False)
    deletion_requested = Column(Boolean, default=False, nullable=False)
    deletion_request_date = Column(DateTime)
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login = Column(DateTime)

    threads = relationship("ChatThread", back_populates="lawyer", cascade="all, delete-orphan")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), default="superadmin", nullable=False)
    last_login = Column(DateTime)


class VerificationRecord(Base):
    """Short-lived OTP challenge, looked up by its random token."""

    __tablename__ = "verification_records"

    id = Column(Integer, primary_key=True)
    token = Column(String(64), unique=True, index=True, nullable=False)
    purpose = Column(String(32), nullable=False)        # signup | password_reset | password_change
    subject_kind = Column(String(16), nullable=False)   # user | lawyer
    subject_id = Column(Integer, nullable=False, index=True)
    email_code = Column(String(6), nullable=False)
    phone_code = Column(String(6))
    expires_at = Column(DateTime, nullable=False)
    consumed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Consultations & history
# ---------------------------------------------------------------------------


class Consultation(Base):
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    query = Column(Text, nullable=False)
    mode = Column(String(8), nullable=False)
    ai_response = Column(Text, nullable=False)
    citations = Column(JSON, default=list, nullable=False)
    disclaimer = Column(Text)
    is_premium = Column(Boolean, default=False, nullable=False)
    visual_data = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="consultations")


class HistoryEntry(Base):
    __tablename__ = "history_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    query = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    mode = Column(String(8), nullable=False)
    citations = Column(JSON, default=list, nullable=False)
    is_premium = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="history")


# ---------------------------------------------------------------------------
# User <-> lawyer messaging
# ---------------------------------------------------------------------------


class ChatThread(Base):
    __tablename__ = "chat_threads"
    __table_args__ = (UniqueConstraint("user_id", "lawyer_id", name="uq_thread_pair"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyers.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="threads")
    lawyer = relationship("Lawyer", back_populates="threads")
    messages = relationship(
        "ChatMessage", back_populates="thread", cascade="all, delete-orphan",
        order_by="ChatMessage.id",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True)
    thread_id = Column(Integer, ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False, index=True)
    sender = Column(String(8), nullable=False)  # user | lawyer
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    thread = relationship("ChatThread", back_populates="messages")


# ---------------------------------------------------------------------------
# Monetisation
# ---------------------------------------------------------------------------


class Ad(Base):
    __tablename__ = "ads"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(500))
    link = Column(String(500))
    advertiser = Column(String(200))
    is_active = Column(Boolean, default=True, nullable=False)
    impressions = Column(Integer, default=0, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(16), nullable=False)  # premium | ads_removal
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    status = Column(String(16), default="pending", nullable=False)
    transaction_id = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
