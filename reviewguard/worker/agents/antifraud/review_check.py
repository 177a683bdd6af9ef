"""Review submission fraud check + auto decision.

score_review() is pure: it takes the review and the facts loaded about its
author and returns a verdict. evaluate_review_submission() loads the facts,
scores, and applies the outcome in one transaction:

- score < 15, author has 2+ approved reviews, author risk < 10 -> auto approve
- score >= 30                                                  -> auto reject
- anything else                                                -> stays pending (manual queue)

Approve/reject also settle the pending review reward in the wallet ledger.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, ContextManager, Optional

import structlog

from reviewguard.shared.db_models import ReviewStatus, SubmissionKind, utcnow
from reviewguard.shared.errors import DependencyError, Forbidden, NotFound, ValidationError
from reviewguard.shared.logging_setup import bind_submission_context
from reviewguard.worker.agents.antifraud import ledger
from reviewguard.worker.agents.antifraud.creator_check import risk_history_hits
from reviewguard.worker.agents.antifraud.patterns import (
    CONTENT_FAMILIES, MAX_RATING, MIN_RATING, SENTIMENT_MISMATCH, evaluate_families,
)
from reviewguard.worker.agents.antifraud.store import AntifraudStore
from reviewguard.worker.agents.antifraud.verdict import FraudVerdict, ReviewSubmission, UserRiskProfile

log = structlog.get_logger(__name__)

PASS_BELOW = 30
AUTO_APPROVE_BELOW = 15
AUTO_APPROVE_MIN_APPROVED = 2
AUTO_APPROVE_MAX_USER_RISK = 10
RISK_BUMP_AT = 30
RISK_BUMP_DIVISOR = 5
VELOCITY_WINDOW = timedelta(hours=24)
FINGERPRINT_SAMPLE = 10

Hits = list[tuple[int, str]]


@dataclass
class ReviewFacts:
    profile: UserRiskProfile
    approved_count: int = 0
    recent_count: int = 0            # other reviews by the author in the velocity window
    creator_review_count: int = 0    # other approved reviews by the author for this creator
    prior_contents: list[str] = field(default_factory=list)


# ---- individual rules ----

def duplicate_creator_hits(creator_review_count: int) -> Hits:
    return [(50, "creator_already_reviewed")] if creator_review_count > 0 else []


def content_length_hits(content: str) -> Hits:
    length = len(content or "")
    if length < 30:
        return [(20, "too_short")]
    if length < 50:
        return [(10, "short")]
    return []


def title_length_hits(title: str) -> Hits:
    return [(15, "title_too_short")] if len(title or "") < 5 else []


def velocity_hits(recent_count: int) -> Hits:
    if recent_count >= 10:
        return [(60, "extreme_velocity")]
    if recent_count >= 5:
        return [(40, "too_many_recent_reviews")]
    if recent_count >= 3:
        return [(15, "frequent_reviews")]
    return []


def new_user_extreme_rating_hits(approved_count: int, rating: int) -> Hits:
    if approved_count == 0 and rating in (MAX_RATING, MIN_RATING):
        return [(10, "new_user_extreme_rating")]
    return []


def generic_list_hits(pros: list[str], cons: list[str], rating: int) -> Hits:
    hits: Hits = []
    pros = pros or []
    cons = cons or []
    if len(pros) >= 3 and not cons and rating == MAX_RATING:
        if sum(1 for p in pros if len(p or "") < 10) >= 2:
            hits.append((15, "generic_pros"))
    if len(cons) >= 3 and not pros and rating == MIN_RATING:
        if sum(1 for c in cons if len(c or "") < 10) >= 2:
            hits.append((15, "generic_cons"))
    return hits


def unnatural_language_hits(content: str) -> Hits:
    words = (content or "").split()
    if not words:
        return []
    avg_word_length = len("".join(words)) / len(words)
    return [(10, "unnatural_language")] if avg_word_length > 12 else []


def length_fingerprint_hits(content: str, approved_count: int, prior_contents: list[str]) -> Hits:
    # template reuse: this review is about as long as everything else the author wrote
    if approved_count < 3 or not prior_contents:
        return []
    average = sum(len(c or "") for c in prior_contents) / len(prior_contents)
    if abs(len(content or "") - average) < 10:
        return [(20, "suspiciously_similar_length")]
    return []


# ---- scoring ----

def decide(verdict: FraudVerdict, facts: ReviewFacts) -> FraudVerdict:
    score = verdict.risk_score
    verdict.passed = score < PASS_BELOW
    verdict.auto_approve = (
        verdict.passed
        and score < AUTO_APPROVE_BELOW
        and facts.approved_count >= AUTO_APPROVE_MIN_APPROVED
        and facts.profile.risk_score < AUTO_APPROVE_MAX_USER_RISK
        and not facts.profile.is_banned
    )
    verdict.auto_reject = not verdict.passed
    verdict.should_block = verdict.auto_reject
    verdict.needs_manual_review = verdict.passed and not verdict.auto_approve
    return verdict


def score_review(review: ReviewSubmission, facts: ReviewFacts) -> FraudVerdict:
    verdict = FraudVerdict()

    if facts.profile.is_banned:
        verdict.add(100, "banned_user")
        return decide(verdict, facts)

    rules: Hits = []
    rules += duplicate_creator_hits(facts.creator_review_count)
    rules += risk_history_hits(facts.profile.risk_score)
    rules += content_length_hits(review.content)
    rules += title_length_hits(review.title)
    rules += evaluate_families(CONTENT_FAMILIES, review.title, review.content, review.rating)
    rules += velocity_hits(facts.recent_count)
    rules += new_user_extreme_rating_hits(facts.approved_count, review.rating)
    rules += generic_list_hits(review.pros, review.cons, review.rating)
    rules += unnatural_language_hits(review.content)
    rules += length_fingerprint_hits(review.content, facts.approved_count, facts.prior_contents)
    rules += evaluate_families((SENTIMENT_MISMATCH,), review.title, review.content, review.rating)

    for points, flag in rules:
        verdict.add(points, flag)
    return decide(verdict, facts)


# ---- orchestration ----

def _lookup(fn: Callable, default, operation: str, review_id: str):
    try:
        return fn()
    except DependencyError as e:
        log.warning("lookup_failed", operation=operation, review_id=review_id, error=str(e))
        return default


def load_facts(store: AntifraudStore, review: ReviewSubmission, now: datetime) -> ReviewFacts:
    user_id = review.user_id
    profile = _lookup(lambda: store.get_user_profile(user_id), None, "get_user_profile", review.id)
    facts = ReviewFacts(profile=profile or UserRiskProfile.missing(user_id))
    if facts.profile.is_banned:
        return facts

    since = now - VELOCITY_WINDOW
    recent = _lookup(lambda: store.count_reviews_by_user_since(user_id, since), 0, "count_reviews_by_user_since", review.id)
    if review.created_at is None or review.created_at >= since:
        recent = max(0, recent - 1)

    facts.recent_count = recent
    facts.approved_count = _lookup(
        lambda: store.count_approved_reviews_by_user(user_id), 0, "count_approved_reviews_by_user", review.id
    )
    facts.creator_review_count = _lookup(
        lambda: store.count_approved_reviews_for_creator_by_user(user_id, review.creator_id, review.id),
        0, "count_approved_reviews_for_creator_by_user", review.id,
    )
    facts.prior_contents = _lookup(
        lambda: store.get_recent_approved_review_contents(user_id, FINGERPRINT_SAMPLE, review.id),
        [], "get_recent_approved_review_contents", review.id,
    )
    return facts


def apply_verdict(
    store: AntifraudStore, review: ReviewSubmission, verdict: FraudVerdict, fallback_amount: Decimal
) -> FraudVerdict:
    """Risk bump + status/ledger transition + audit row. Does not commit."""
    if verdict.risk_score >= RISK_BUMP_AT:
        ledger.bump_risk_score(store, review.user_id, verdict.risk_score, RISK_BUMP_DIVISOR)

    if review.status != ReviewStatus.pending.value:
        # already decided; conditional updates below would be no-ops anyway
        verdict.status = review.status
        outcome = "already_" + review.status
    elif verdict.auto_approve:
        ledger.apply_review_outcome(store, review.id, review.user_id, True, fallback_amount)
        verdict.status = ReviewStatus.approved.value
        outcome = "approved"
    elif verdict.auto_reject:
        ledger.apply_review_outcome(store, review.id, review.user_id, False, fallback_amount)
        verdict.status = ReviewStatus.rejected.value
        outcome = "rejected"
    else:
        verdict.status = ReviewStatus.pending.value
        outcome = "manual_review"

    store.record_fraud_check(SubmissionKind.review, review.id, review.user_id, verdict, outcome)
    return verdict


def evaluate_review_submission(
    store: AntifraudStore,
    review_id: str,
    *,
    acting_user_id: Optional[str] = None,
    reward_amount: Optional[Decimal] = None,
    now: Optional[datetime] = None,
    lock: Optional[Callable[[str], ContextManager]] = None,
) -> FraudVerdict:
    if not review_id:
        raise ValidationError("review_id is required")

    review = store.get_review(review_id)
    if review is None:
        raise NotFound("Review not found")
    if acting_user_id is not None and acting_user_id != review.user_id:
        raise Forbidden("review belongs to another user")

    now = now or utcnow()
    lock = lock or (lambda _user_id: contextlib.nullcontext())
    bind_submission_context(review_id=review_id, user_id=review.user_id)
    log.info("review_check_started")

    with lock(review.user_id):
        facts = load_facts(store, review, now)
        verdict = score_review(review, facts)
        # the ledger row carries the amount; the setting only covers reviews without one
        fallback = reward_amount if reward_amount is not None else ledger.review_reward(store)

        try:
            apply_verdict(store, review, verdict, fallback)
            store.commit()
        except Exception:
            store.rollback()
            log.exception("review_check_side_effects_failed")
            raise

    log.info(
        "review_check_finished",
        risk_score=verdict.risk_score,
        flags=verdict.flags,
        auto_approve=verdict.auto_approve,
        auto_reject=verdict.auto_reject,
        status=verdict.status,
    )
    return verdict
