"""Creator submission fraud check.

Scores a proposed creator (display name + platform links) against what is
already in the catalogue and against the submitter's history:

- near-duplicate names (levenshtein similarity over normalized names)
- duplicate links (same URL, or same normalized username on the same platform)
- submitter risk score / ban, rejected submissions, submissions in the last hour

The check only reports. It never changes creator status or the wallet; the
single side effect is bumping the submitter's risk score on risky submissions.

Score bands:
- < 50   passed
- 50-79  needs manual review
- >= 80  should block
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import structlog

from reviewguard.shared.db_models import CreatorStatus, SubmissionKind, utcnow
from reviewguard.shared.errors import DependencyError, Forbidden, ValidationError
from reviewguard.shared.logging_setup import bind_submission_context
from reviewguard.worker.agents.antifraud import ledger
from reviewguard.worker.agents.antifraud.similarity import normalize, similarity
from reviewguard.worker.agents.antifraud.store import AntifraudStore
from reviewguard.worker.agents.antifraud.verdict import (
    CreatorSubmission, FraudVerdict, SimilarityMatch, UserRiskProfile,
)

log = structlog.get_logger(__name__)

SIMILARITY_THRESHOLD = 0.80
PASS_BELOW = 50
BLOCK_AT = 80
RISK_BUMP_AT = 40
RISK_BUMP_DIVISOR = 10
VELOCITY_WINDOW = timedelta(hours=1)

Hits = list[tuple[int, str]]


def validate_submission(submission: CreatorSubmission) -> None:
    if not (submission.creator_name or "").strip():
        raise ValidationError("creator_name is required")
    if not submission.user_id:
        raise ValidationError("user_id is required")
    if not submission.platform_links:
        raise ValidationError("platform_links is required")
    for link in submission.platform_links:
        if not (link.platform and link.username and link.url):
            raise ValidationError("each platform link needs platform, username and url")


def name_hits(candidate_name: str, existing: list[dict], exclude_id: Optional[str] = None) -> tuple[Hits, list[SimilarityMatch]]:
    hits: Hits = []
    matches: list[SimilarityMatch] = []
    if not normalize(candidate_name):
        return hits, matches
    for creator in existing:
        if exclude_id and creator.get("id") == exclude_id:
            continue
        score = similarity(candidate_name, creator.get("name"))
        if score < SIMILARITY_THRESHOLD:
            continue
        matches.append(
            SimilarityMatch(
                candidate_id=creator.get("id"),
                candidate_name=creator.get("name"),
                candidate_slug=creator.get("slug"),
                similarity_score=score,
            )
        )
        if score >= 0.95:
            hits.append((50, "near_identical_name"))
        elif score >= 0.85:
            hits.append((30, "very_similar_name"))
        else:
            hits.append((15, "similar_name"))
    return hits, matches


def profile_hits(profile: UserRiskProfile) -> Hits:
    if profile.is_banned:
        return [(100, "banned_user")]
    return risk_history_hits(profile.risk_score)


def risk_history_hits(risk_score: int) -> Hits:
    if risk_score > 50:
        return [(30, "high_risk_user")]
    if risk_score > 25:
        return [(15, "medium_risk_user")]
    return []


def rejection_hits(rejected_count: int) -> Hits:
    if rejected_count >= 3:
        return [(25, "many_rejected_creators")]
    return []


def velocity_hits(recent_count: int) -> Hits:
    if recent_count >= 5:
        return [(40, "too_many_recent_creators")]
    if recent_count >= 3:
        return [(25, "suspicious_activity")]
    return []


def decide(verdict: FraudVerdict) -> FraudVerdict:
    score = verdict.risk_score
    verdict.passed = score < PASS_BELOW
    verdict.should_block = score >= BLOCK_AT
    verdict.needs_manual_review = PASS_BELOW <= score < BLOCK_AT
    verdict.auto_approve = False
    return verdict


def _lookup(fn, default, operation: str, **ctx):
    try:
        return fn()
    except DependencyError as e:
        log.warning("lookup_failed", operation=operation, error=str(e), **ctx)
        return default


def _link_hits(store: AntifraudStore, submission: CreatorSubmission, verdict: FraudVerdict) -> None:
    by_platform: dict[str, list[dict]] = {}
    for link in submission.platform_links:
        url_dupes = _lookup(
            lambda: store.find_platform_links_by_exact_url(link.url, CreatorStatus.rejected),
            [], "find_platform_links_by_exact_url",
        )
        url_dupes = [d for d in url_dupes if d.get("creator_id") != submission.creator_id]
        if url_dupes:
            verdict.duplicate_links.append(f"URL: {link.url}")
            verdict.add(60, "duplicate_url")

        wanted = normalize(link.username)
        if not wanted:
            # nothing comparable left after normalization (emoji, non-latin script)
            continue

        if link.platform not in by_platform:
            by_platform[link.platform] = _lookup(
                lambda: store.find_platform_links_by_platform(link.platform, CreatorStatus.rejected),
                [], "find_platform_links_by_platform",
            )
        for existing in by_platform[link.platform]:
            if existing.get("creator_id") == submission.creator_id:
                continue
            if normalize(existing.get("username")) == wanted:
                verdict.duplicate_links.append(f"{link.platform}: @{link.username}")
                verdict.add(50, "duplicate_normalized_username")
                break


def evaluate_creator_submission(
    store: AntifraudStore,
    submission: CreatorSubmission,
    *,
    acting_user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> FraudVerdict:
    validate_submission(submission)
    if acting_user_id is not None and acting_user_id != submission.user_id:
        raise Forbidden("user_id mismatch")

    now = now or utcnow()
    user_id = submission.user_id
    bind_submission_context(creator_id=submission.creator_id, user_id=user_id)
    log.info("creator_check_started", creator_name=submission.creator_name, links=len(submission.platform_links))

    verdict = FraudVerdict()

    existing = _lookup(
        lambda: store.find_creators_excluding_status(CreatorStatus.rejected), [], "find_creators_excluding_status"
    )
    hits, matches = name_hits(submission.creator_name, existing, exclude_id=submission.creator_id)
    verdict.similar_creators = matches
    for points, flag in hits:
        verdict.add(points, flag)

    _link_hits(store, submission, verdict)

    profile = _lookup(lambda: store.get_user_profile(user_id), None, "get_user_profile", user_id=user_id)
    profile = profile or UserRiskProfile.missing(user_id)
    for points, flag in profile_hits(profile):
        verdict.add(points, flag)

    rejected = _lookup(lambda: store.count_rejected_creators_by_user(user_id), 0, "count_rejected_creators_by_user")
    for points, flag in rejection_hits(rejected):
        verdict.add(points, flag)

    recent = _lookup(
        lambda: store.count_creators_by_user_since(user_id, now - VELOCITY_WINDOW), 0, "count_creators_by_user_since"
    )
    if submission.creator_id:
        # the submission's own row is inside the window
        recent = max(0, recent - 1)
    for points, flag in velocity_hits(recent):
        verdict.add(points, flag)

    decide(verdict)

    try:
        if verdict.risk_score >= RISK_BUMP_AT:
            ledger.bump_risk_score(store, user_id, verdict.risk_score, RISK_BUMP_DIVISOR)
        store.record_fraud_check(SubmissionKind.creator, submission.creator_id, user_id, verdict, _outcome(verdict))
        store.commit()
    except Exception:
        store.rollback()
        log.exception("creator_check_side_effects_failed")
        raise

    log.info(
        "creator_check_finished",
        risk_score=verdict.risk_score,
        passed=verdict.passed,
        should_block=verdict.should_block,
        flags=verdict.flags,
    )
    return verdict


def _outcome(verdict: FraudVerdict) -> str:
    if verdict.should_block:
        return "blocked"
    if verdict.needs_manual_review:
        return "manual_review"
    return "passed"
