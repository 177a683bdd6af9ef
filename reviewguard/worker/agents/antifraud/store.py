"""Storage collaborator for the anti-fraud checks.

Every read the evaluators need is one method here, so the rules never touch
SQLAlchemy directly and tests can swap in a different store. Reads that fail
raise DependencyError (the session is rolled back first so it stays usable);
evaluators decide which default to substitute.

Writes are atomic SQL expressions (clamped increments, floored balance moves)
so concurrent evaluations for the same user never lose an update. Nothing is
committed here: the caller owns the transaction boundary.
"""

from __future__ import annotations

import functools
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

import structlog
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from reviewguard.shared.db_models import (
    Creator, CreatorStatus, FraudCheck, PlatformLink, Profile, Review, ReviewStatus, Setting,
    SubmissionKind, TransactionStatus, TransactionType, WalletTransaction, utcnow,
)
from reviewguard.shared.errors import DependencyError, ValidationError
from reviewguard.worker.agents.antifraud.verdict import FraudVerdict, ReviewSubmission, UserRiskProfile

log = structlog.get_logger(__name__)

MAX_RISK_SCORE = 100


class AntifraudStore(Protocol):
    def find_creators_excluding_status(self, status: CreatorStatus) -> list[dict]: ...
    def find_platform_links_by_exact_url(self, url: str, exclude_status: CreatorStatus) -> list[dict]: ...
    def find_platform_links_by_platform(self, platform: str, exclude_status: CreatorStatus) -> list[dict]: ...
    def get_user_profile(self, user_id: str) -> Optional[UserRiskProfile]: ...
    def update_user_risk_score(self, user_id: str, new_score: int) -> None: ...
    def increment_user_risk_score(self, user_id: str, delta: int) -> Optional[int]: ...
    def count_rejected_creators_by_user(self, user_id: str) -> int: ...
    def count_creators_by_user_since(self, user_id: str, since: datetime) -> int: ...
    def count_approved_reviews_by_user(self, user_id: str) -> int: ...
    def count_reviews_by_user_since(self, user_id: str, since: datetime) -> int: ...
    def count_approved_reviews_for_creator_by_user(self, user_id: str, creator_id: str, exclude_review_id: str) -> int: ...
    def get_recent_approved_review_contents(self, user_id: str, limit: int, exclude_review_id: Optional[str] = None) -> list[str]: ...
    def set_submission_status(self, kind: SubmissionKind, submission_id: str, status: str) -> int: ...
    def set_ledger_entry_status(self, reference_id: str, reference_type: str, transaction_type: TransactionType, status: TransactionStatus) -> Optional[Decimal]: ...
    def has_ledger_entry(self, reference_id: str, reference_type: str, transaction_type: TransactionType) -> bool: ...
    def adjust_user_balances(self, user_id: str, pending_delta: Decimal, available_delta: Decimal) -> int: ...
    def get_review(self, review_id: str) -> Optional[ReviewSubmission]: ...
    def get_creator(self, creator_id: str) -> Optional[dict]: ...
    def get_setting(self, key: str) -> Optional[str]: ...
    def record_fraud_check(self, kind: SubmissionKind, submission_id: Optional[str], user_id: str, verdict: FraudVerdict, outcome: str) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


def _lookup(fn):
    """Turn driver errors on reads into DependencyError."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DependencyError(fn.__name__, e) from e

    return wrapper


class SqlAntifraudStore:
    def __init__(self, db: Session):
        self.db = db

    # ---- creators / links ----

    @_lookup
    def find_creators_excluding_status(self, status: CreatorStatus) -> list[dict]:
        rows = (
            self.db.query(Creator.id, Creator.name, Creator.slug, Creator.status)
            .filter(Creator.status != status)
            .all()
        )
        return [{"id": r.id, "name": r.name, "slug": r.slug, "status": r.status.value} for r in rows]

    @_lookup
    def find_platform_links_by_exact_url(self, url: str, exclude_status: CreatorStatus) -> list[dict]:
        rows = (
            self.db.query(PlatformLink.id, PlatformLink.url, PlatformLink.creator_id)
            .join(Creator, Creator.id == PlatformLink.creator_id)
            .filter(PlatformLink.url == url)
            .filter(Creator.status != exclude_status)
            .all()
        )
        return [{"id": r.id, "url": r.url, "creator_id": r.creator_id} for r in rows]

    @_lookup
    def find_platform_links_by_platform(self, platform: str, exclude_status: CreatorStatus) -> list[dict]:
        rows = (
            self.db.query(PlatformLink.username, PlatformLink.creator_id)
            .join(Creator, Creator.id == PlatformLink.creator_id)
            .filter(PlatformLink.platform == platform)
            .filter(Creator.status != exclude_status)
            .all()
        )
        return [{"username": r.username, "creator_id": r.creator_id} for r in rows]

    @_lookup
    def count_rejected_creators_by_user(self, user_id: str) -> int:
        return (
            self.db.query(func.count(Creator.id))
            .filter(Creator.added_by_user_id == user_id)
            .filter(Creator.status == CreatorStatus.rejected)
            .scalar()
        ) or 0

    @_lookup
    def count_creators_by_user_since(self, user_id: str, since: datetime) -> int:
        return (
            self.db.query(func.count(Creator.id))
            .filter(Creator.added_by_user_id == user_id)
            .filter(Creator.created_at >= since)
            .scalar()
        ) or 0

    @_lookup
    def get_creator(self, creator_id: str) -> Optional[dict]:
        c = self.db.get(Creator, creator_id)
        if not c:
            return None
        return {
            "id": c.id,
            "name": c.name,
            "slug": c.slug,
            "status": c.status.value,
            "added_by_user_id": c.added_by_user_id,
        }

    # ---- profiles ----

    @_lookup
    def get_user_profile(self, user_id: str) -> Optional[UserRiskProfile]:
        p = self.db.query(Profile).filter(Profile.user_id == user_id).first()
        if not p:
            return None
        return UserRiskProfile(
            user_id=p.user_id,
            risk_score=p.risk_score or 0,
            is_banned=bool(p.is_banned),
            pending_balance=Decimal(p.pending_balance or 0),
            available_balance=Decimal(p.available_balance or 0),
        )

    def update_user_risk_score(self, user_id: str, new_score: int) -> None:
        if new_score < 0 or new_score > MAX_RISK_SCORE:
            raise ValidationError(f"risk_score out of range: {new_score}")
        # never lower a stored score
        self.db.query(Profile).filter(Profile.user_id == user_id).filter(Profile.risk_score < new_score).update(
            {Profile.risk_score: new_score, Profile.updated_at: utcnow()},
            synchronize_session=False,
        )

    def increment_user_risk_score(self, user_id: str, delta: int) -> Optional[int]:
        if delta <= 0:
            return None
        bumped = Profile.risk_score + delta
        updated = self.db.query(Profile).filter(Profile.user_id == user_id).update(
            {
                Profile.risk_score: case((bumped > MAX_RISK_SCORE, MAX_RISK_SCORE), else_=bumped),
                Profile.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
        if not updated:
            return None
        return self.db.query(Profile.risk_score).filter(Profile.user_id == user_id).scalar()

    def adjust_user_balances(self, user_id: str, pending_delta: Decimal, available_delta: Decimal) -> int:
        pending = Profile.pending_balance + Decimal(pending_delta)
        available = Profile.available_balance + Decimal(available_delta)
        return self.db.query(Profile).filter(Profile.user_id == user_id).update(
            {
                Profile.pending_balance: case((pending < 0, 0), else_=pending),
                Profile.available_balance: case((available < 0, 0), else_=available),
                Profile.updated_at: utcnow(),
            },
            synchronize_session=False,
        )

    # ---- reviews ----

    @_lookup
    def get_review(self, review_id: str) -> Optional[ReviewSubmission]:
        r = self.db.get(Review, review_id)
        if not r:
            return None
        return ReviewSubmission(
            id=r.id,
            user_id=r.user_id,
            creator_id=r.creator_id,
            title=r.title or "",
            content=r.content or "",
            rating=int(r.rating),
            pros=list(r.pros or []),
            cons=list(r.cons or []),
            platform=r.platform,
            status=r.status.value,
            created_at=r.created_at,
        )

    @_lookup
    def count_approved_reviews_by_user(self, user_id: str) -> int:
        return (
            self.db.query(func.count(Review.id))
            .filter(Review.user_id == user_id)
            .filter(Review.status == ReviewStatus.approved)
            .scalar()
        ) or 0

    @_lookup
    def count_reviews_by_user_since(self, user_id: str, since: datetime) -> int:
        return (
            self.db.query(func.count(Review.id))
            .filter(Review.user_id == user_id)
            .filter(Review.created_at >= since)
            .scalar()
        ) or 0

    @_lookup
    def count_approved_reviews_for_creator_by_user(self, user_id: str, creator_id: str, exclude_review_id: str) -> int:
        return (
            self.db.query(func.count(Review.id))
            .filter(Review.user_id == user_id)
            .filter(Review.creator_id == creator_id)
            .filter(Review.status == ReviewStatus.approved)
            .filter(Review.id != exclude_review_id)
            .scalar()
        ) or 0

    @_lookup
    def get_recent_approved_review_contents(
        self, user_id: str, limit: int, exclude_review_id: Optional[str] = None
    ) -> list[str]:
        q = (
            self.db.query(Review.content)
            .filter(Review.user_id == user_id)
            .filter(Review.status == ReviewStatus.approved)
        )
        if exclude_review_id:
            q = q.filter(Review.id != exclude_review_id)
        rows = q.order_by(Review.created_at.desc()).limit(limit).all()
        return [r.content or "" for r in rows]

    @_lookup
    def list_pending(self, kind: SubmissionKind, limit: int = 100) -> list[dict]:
        model = Review if kind == SubmissionKind.review else Creator
        rows = (
            self.db.query(model)
            .filter(model.status == (ReviewStatus.pending if kind == SubmissionKind.review else CreatorStatus.pending))
            .order_by(model.created_at.asc())
            .limit(limit)
            .all()
        )
        out = []
        for row in rows:
            last = (
                self.db.query(FraudCheck)
                .filter(FraudCheck.submission_kind == kind)
                .filter(FraudCheck.submission_id == row.id)
                .order_by(FraudCheck.id.desc())
                .first()
            )
            out.append({
                "id": row.id,
                "label": row.title if kind == SubmissionKind.review else row.name,
                "user_id": row.user_id if kind == SubmissionKind.review else row.added_by_user_id,
                "created_at": row.created_at.isoformat() if row.created_at else None,
                "risk_score": last.risk_score if last else None,
                "flags": (last.flags or []) if last else [],
            })
        return out

    # ---- status / ledger ----

    def set_submission_status(self, kind: SubmissionKind, submission_id: str, status: str) -> int:
        if kind == SubmissionKind.review:
            model, value = Review, ReviewStatus(status)
        else:
            model, value = Creator, CreatorStatus(status)
        return self.db.query(model).filter(model.id == submission_id).update(
            {model.status: value, model.updated_at: utcnow()},
            synchronize_session=False,
        )

    def set_ledger_entry_status(
        self,
        reference_id: str,
        reference_type: str,
        transaction_type: TransactionType,
        status: TransactionStatus,
    ) -> Optional[Decimal]:
        """Move pending ledger rows to `status`.

        Returns the summed amount of the rows this call moved, or None when no
        pending row was left (already decided, or never written). Each row is
        moved with its own conditional update, so a concurrent settlement of the
        same row is counted by exactly one caller.
        """
        pending = (
            self.db.query(WalletTransaction.id, WalletTransaction.amount)
            .filter(WalletTransaction.reference_id == reference_id)
            .filter(WalletTransaction.reference_type == reference_type)
            .filter(WalletTransaction.transaction_type == transaction_type)
            .filter(WalletTransaction.status == TransactionStatus.pending)
            .all()
        )
        moved = None
        for row in pending:
            updated = (
                self.db.query(WalletTransaction)
                .filter(WalletTransaction.id == row.id)
                .filter(WalletTransaction.status == TransactionStatus.pending)
                .update(
                    {WalletTransaction.status: status, WalletTransaction.processed_at: utcnow()},
                    synchronize_session=False,
                )
            )
            if updated:
                moved = (moved or Decimal("0")) + Decimal(row.amount)
        return moved

    def has_ledger_entry(self, reference_id: str, reference_type: str, transaction_type: TransactionType) -> bool:
        return (
            self.db.query(WalletTransaction.id)
            .filter(WalletTransaction.reference_id == reference_id)
            .filter(WalletTransaction.reference_type == reference_type)
            .filter(WalletTransaction.transaction_type == transaction_type)
            .first()
        ) is not None

    # ---- misc ----

    @_lookup
    def get_setting(self, key: str) -> Optional[str]:
        row = self.db.get(Setting, key)
        return row.value if row else None

    def record_fraud_check(
        self,
        kind: SubmissionKind,
        submission_id: Optional[str],
        user_id: str,
        verdict: FraudVerdict,
        outcome: str,
    ) -> None:
        self.db.add(
            FraudCheck(
                submission_kind=kind,
                submission_id=submission_id,
                user_id=user_id,
                risk_score=verdict.risk_score,
                flags=list(verdict.flags),
                outcome=outcome,
            )
        )

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
