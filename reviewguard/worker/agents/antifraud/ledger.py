"""Risk score and wallet side effects of a fraud decision.

Money only moves when the pending ledger row actually transitions, so applying
the same decision twice (admin re-run, task retry) is a no-op for balances.
None of these functions commit.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

from reviewguard.shared.db_models import (
    CreatorStatus, ReviewStatus, SubmissionKind, TransactionStatus, TransactionType,
)
from reviewguard.shared.errors import DependencyError
from reviewguard.shared.settings import settings
from reviewguard.worker.agents.antifraud.store import AntifraudStore

log = structlog.get_logger(__name__)

REVIEW_REWARD_KEY = "review_reward"
CREATOR_BONUS_KEY = "creator_bonus"


def bump_risk_score(store: AntifraudStore, user_id: str, score: int, divisor: int) -> Optional[int]:
    """Add score // divisor to the user's risk score (clamped at 100). Returns the new value."""
    delta = score // divisor
    if delta <= 0:
        return None
    new_score = store.increment_user_risk_score(user_id, delta)
    if new_score is None:
        log.info("risk_score_skipped_no_profile", user_id=user_id, delta=delta)
    else:
        log.info("risk_score_bumped", user_id=user_id, delta=delta, risk_score=new_score)
    return new_score


def reward_amount(store: AntifraudStore, key: str, default: Decimal) -> Decimal:
    try:
        raw = store.get_setting(key)
    except DependencyError as e:
        log.warning("reward_setting_lookup_failed", key=key, error=str(e))
        return default
    if raw is None:
        return default
    try:
        return Decimal(str(raw).strip().strip('"'))
    except InvalidOperation:
        log.warning("reward_setting_invalid", key=key, value=raw)
        return default


def review_reward(store: AntifraudStore) -> Decimal:
    return reward_amount(store, REVIEW_REWARD_KEY, settings.review_reward_default)


def creator_bonus(store: AntifraudStore) -> Decimal:
    return reward_amount(store, CREATOR_BONUS_KEY, settings.creator_bonus_default)


def _settle_reward(
    store: AntifraudStore,
    *,
    user_id: str,
    reference_id: str,
    reference_type: str,
    transaction_type: TransactionType,
    approved: bool,
    fallback_amount: Decimal,
) -> bool:
    """Move the pending ledger row and the balances by the row's own amount.

    `fallback_amount` only applies when no ledger row was ever written for the
    reference (older submissions); a row that is already decided moves nothing.
    """
    moved = store.set_ledger_entry_status(
        reference_id,
        reference_type,
        transaction_type,
        TransactionStatus.approved if approved else TransactionStatus.rejected,
    )
    if moved is None:
        if store.has_ledger_entry(reference_id, reference_type, transaction_type):
            log.info("ledger_entry_already_settled", reference_id=reference_id, reference_type=reference_type)
            return False
        log.warning(
            "ledger_entry_missing_using_setting",
            reference_id=reference_id,
            reference_type=reference_type,
            amount=fallback_amount,
        )
        moved = fallback_amount

    if approved:
        store.adjust_user_balances(user_id, -moved, moved)
    else:
        store.adjust_user_balances(user_id, -moved, Decimal("0"))
    log.info(
        "reward_settled",
        user_id=user_id,
        reference_id=reference_id,
        approved=approved,
        amount=moved,
    )
    return True


def apply_review_outcome(store: AntifraudStore, review_id: str, user_id: str, approved: bool, fallback_amount: Decimal) -> bool:
    """Approve or reject a review and its reward. Returns True if balances changed."""
    store.set_submission_status(
        SubmissionKind.review,
        review_id,
        (ReviewStatus.approved if approved else ReviewStatus.rejected).value,
    )
    return _settle_reward(
        store,
        user_id=user_id,
        reference_id=review_id,
        reference_type="review",
        transaction_type=TransactionType.review_reward,
        approved=approved,
        fallback_amount=fallback_amount,
    )


def apply_creator_outcome(store: AntifraudStore, creator_id: str, user_id: Optional[str], approved: bool, fallback_amount: Decimal) -> bool:
    store.set_submission_status(
        SubmissionKind.creator,
        creator_id,
        (CreatorStatus.active if approved else CreatorStatus.rejected).value,
    )
    if not user_id:
        return False
    return _settle_reward(
        store,
        user_id=user_id,
        reference_id=creator_id,
        reference_type="creator",
        transaction_type=TransactionType.creator_bonus,
        approved=approved,
        fallback_amount=fallback_amount,
    )
