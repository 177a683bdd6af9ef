import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class CreatorStatus(str, enum.Enum):
    pending = "pending"     # submitted, awaiting fraud check / admin
    active = "active"       # approved and public
    rejected = "rejected"
    merged = "merged"       # superseded by another creator (admin merge)


class ReviewStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class TransactionType(str, enum.Enum):
    creator_bonus = "creator_bonus"
    review_reward = "review_reward"
    payout = "payout"
    adjustment = "adjustment"
    correction = "correction"


class TransactionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    paid = "paid"


class SubmissionKind(str, enum.Enum):
    creator = "creator"
    review = "review"


class AppLog(Base):
    __tablename__ = "app_logs"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    level = Column(String(16), nullable=False, index=True)
    logger = Column(String(128), nullable=True, index=True)
    service = Column(String(32), nullable=True, index=True)   # api / worker
    message = Column(Text, nullable=True)

    request_id = Column(String(64), nullable=True, index=True)
    task_id = Column(String(64), nullable=True, index=True)

    event = Column(String(128), nullable=True, index=True)
    data = Column(JSONType, nullable=True)


class Setting(Base):
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(512), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    username: Mapped[str] = mapped_column(String(120), nullable=False)

    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # 0-100
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    pending_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    available_balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Creator(Base):
    __tablename__ = "creators"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    slug: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)

    status: Mapped[CreatorStatus] = mapped_column(
        Enum(CreatorStatus, name="creator_status"), default=CreatorStatus.pending, nullable=False, index=True
    )
    added_by_user_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)
    merged_into_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    links: Mapped[list["PlatformLink"]] = relationship("PlatformLink", back_populates="creator")


class PlatformLink(Base):
    __tablename__ = "platform_links"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.id"), nullable=False, index=True)
    creator: Mapped["Creator"] = relationship("Creator", back_populates="links")

    platform: Mapped[str] = mapped_column(String(32), nullable=False, index=True)  # onlyfans / fansly / ...
    username: Mapped[str] = mapped_column(String(120), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.id"), nullable=False, index=True)
    creator: Mapped["Creator"] = relationship("Creator")

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5
    platform: Mapped[str] = mapped_column(String(32), nullable=True)
    pros: Mapped[list] = mapped_column(JSONType, nullable=True)
    cons: Mapped[list] = mapped_column(JSONType, nullable=True)

    status: Mapped[ReviewStatus] = mapped_column(
        Enum(ReviewStatus, name="review_status"), default=ReviewStatus.pending, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class WalletTransaction(Base):
    """Reward ledger. One pending row is written alongside each submission."""
    __tablename__ = "wallet_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type"), nullable=False
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, name="transaction_status"), default=TransactionStatus.pending, nullable=False
    )

    reference_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)
    reference_type: Mapped[str] = mapped_column(String(32), nullable=True)  # "review" / "creator"
    description: Mapped[str] = mapped_column(Text, nullable=True)

    processed_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class FraudCheck(Base):
    """Audit row per evaluation; written in the same transaction as its side effects."""
    __tablename__ = "fraud_checks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_kind: Mapped[SubmissionKind] = mapped_column(
        Enum(SubmissionKind, name="submission_kind"), nullable=False
    )
    submission_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    flags: Mapped[list] = mapped_column(JSONType, nullable=True)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)  # approved / rejected / manual_review / blocked / passed

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
