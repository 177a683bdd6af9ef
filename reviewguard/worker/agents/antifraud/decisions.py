"""Admin manual decisions on submissions held for review."""

from __future__ import annotations

import structlog

from reviewguard.shared.db_models import CreatorStatus, ReviewStatus, SubmissionKind
from reviewguard.shared.errors import NotFound, ValidationError
from reviewguard.shared.logging_setup import bind_submission_context
from reviewguard.worker.agents.antifraud import ledger
from reviewguard.worker.agents.antifraud.store import AntifraudStore

log = structlog.get_logger(__name__)


def decide_review(store: AntifraudStore, review_id: str, approve: bool, decided_by: str = "admin") -> dict:
    bind_submission_context(review_id=review_id)
    review = store.get_review(review_id)
    if review is None:
        raise NotFound("Review not found")
    if review.status != ReviewStatus.pending.value:
        raise ValidationError(f"review is already {review.status}")

    try:
        moved = ledger.apply_review_outcome(store, review.id, review.user_id, approve, ledger.review_reward(store))
        store.commit()
    except Exception:
        store.rollback()
        raise

    status = ReviewStatus.approved if approve else ReviewStatus.rejected
    log.info("review_decided", status=status.value, decided_by=decided_by, reward_moved=moved)
    return {"id": review_id, "kind": SubmissionKind.review.value, "status": status.value, "reward_moved": moved}


def decide_creator(store: AntifraudStore, creator_id: str, approve: bool, decided_by: str = "admin") -> dict:
    bind_submission_context(creator_id=creator_id)
    creator = store.get_creator(creator_id)
    if creator is None:
        raise NotFound("Creator not found")
    if creator["status"] != CreatorStatus.pending.value:
        raise ValidationError(f"creator is already {creator['status']}")

    try:
        moved = ledger.apply_creator_outcome(
            store, creator_id, creator.get("added_by_user_id"), approve, ledger.creator_bonus(store)
        )
        store.commit()
    except Exception:
        store.rollback()
        raise

    status = CreatorStatus.active if approve else CreatorStatus.rejected
    log.info("creator_decided", status=status.value, decided_by=decided_by, reward_moved=moved)
    return {"id": creator_id, "kind": SubmissionKind.creator.value, "status": status.value, "reward_moved": moved}
