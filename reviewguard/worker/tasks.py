import time
from datetime import timedelta

import structlog
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import select
from structlog.contextvars import bind_contextvars, clear_contextvars

from reviewguard.shared.db import SessionLocal
from reviewguard.shared.db_models import FraudCheck, Review, ReviewStatus, SubmissionKind, utcnow
from reviewguard.shared.errors import Forbidden, NotFound, ValidationError
from reviewguard.shared.logging_setup import bind_submission_context
from reviewguard.shared.settings import settings
from reviewguard.worker.agents.antifraud import (
    CreatorSubmission, SqlAntifraudStore, evaluate_creator_submission, evaluate_review_submission,
    manual_review_fallback,
)
from reviewguard.worker.agents.guardrails import UserLockTimeout, user_lock
from reviewguard.worker.celery_app import celery

log = structlog.get_logger(__name__)

SWEEP_GRACE = timedelta(minutes=5)


@celery.task(name="tasks.review_antifraud", soft_time_limit=settings.evaluation_soft_time_limit)
def review_antifraud(review_id: str):
    clear_contextvars()
    task_id = getattr(review_antifraud.request, "id", None)
    bind_contextvars(task="review_antifraud", task_id=task_id)
    bind_submission_context(review_id=review_id)

    start = time.time()
    log.info("task_started")

    db = SessionLocal()
    try:
        verdict = evaluate_review_submission(SqlAntifraudStore(db), review_id, lock=user_lock)
        log.info(
            "task_finished",
            duration_ms=int((time.time() - start) * 1000),
            risk_score=verdict.risk_score,
            status=verdict.status,
        )
        return {"ok": True, "result": verdict.to_dict()}

    except NotFound:
        log.error("review_not_found")
        return {"ok": False, "error": "review_not_found"}

    except (SoftTimeLimitExceeded, UserLockTimeout) as e:
        log.warning("task_timed_out", duration_ms=int((time.time() - start) * 1000), error=type(e).__name__)
        return {"ok": False, "error": "timeout", "result": manual_review_fallback("evaluation_timeout").to_dict()}

    except Exception as e:
        log.exception("task_failed", duration_ms=int((time.time() - start) * 1000), error=str(e))
        raise

    finally:
        db.close()


@celery.task(name="tasks.creator_antifraud", soft_time_limit=settings.evaluation_soft_time_limit)
def creator_antifraud(payload: dict):
    clear_contextvars()
    task_id = getattr(creator_antifraud.request, "id", None)
    bind_contextvars(task="creator_antifraud", task_id=task_id)
    bind_submission_context(creator_id=(payload or {}).get("creator_id"), user_id=(payload or {}).get("user_id"))

    start = time.time()
    log.info("task_started")

    db = SessionLocal()
    try:
        submission = CreatorSubmission.from_dict(payload or {})
        verdict = evaluate_creator_submission(SqlAntifraudStore(db), submission)
        log.info(
            "task_finished",
            duration_ms=int((time.time() - start) * 1000),
            risk_score=verdict.risk_score,
            passed=verdict.passed,
        )
        return {"ok": True, "result": verdict.to_dict()}

    except (ValidationError, Forbidden) as e:
        log.error("invalid_submission", error=e.message)
        return {"ok": False, "error": e.message}

    except SoftTimeLimitExceeded:
        log.warning("task_timed_out", duration_ms=int((time.time() - start) * 1000))
        return {"ok": False, "error": "timeout", "result": manual_review_fallback("evaluation_timeout").to_dict()}

    except Exception as e:
        log.exception("task_failed", duration_ms=int((time.time() - start) * 1000), error=str(e))
        raise

    finally:
        db.close()


@celery.task(name="tasks.antifraud_sweep")
def antifraud_sweep(limit: int = 100):
    """Queue a check for pending reviews that never got one (lost events, worker downtime)."""
    clear_contextvars()
    task_id = getattr(antifraud_sweep.request, "id", None)
    bind_contextvars(task="antifraud_sweep", task_id=task_id)
    log.info("task_started", limit=limit)

    db = SessionLocal()
    try:
        checked = (
            select(FraudCheck.submission_id)
            .where(FraudCheck.submission_kind == SubmissionKind.review)
            .where(FraudCheck.submission_id.isnot(None))
        )
        rows = (
            db.query(Review.id)
            .filter(Review.status == ReviewStatus.pending)
            .filter(Review.created_at <= utcnow() - SWEEP_GRACE)
            .filter(Review.id.notin_(checked))
            .order_by(Review.created_at.asc())
            .limit(limit)
            .all()
        )
        for (review_id,) in rows:
            review_antifraud.delay(review_id)

        log.info("task_finished", queued=len(rows))
        return {"ok": True, "queued": len(rows)}

    except Exception as e:
        log.exception("task_failed", error=str(e))
        raise
    finally:
        db.close()
