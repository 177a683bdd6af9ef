import os
import logging
from typing import Optional

import structlog
from fastapi import FastAPI, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from reviewguard.shared.db import get_db, init_db
from reviewguard.shared.db_models import SubmissionKind
from reviewguard.shared.errors import AntifraudError, Unauthorized, ValidationError
from reviewguard.shared.settings import settings
from reviewguard.shared.logging_setup import bind_submission_context
from reviewguard.api.auth import verify_token
from reviewguard.worker.agents.antifraud import (
    CreatorSubmission,
    PlatformLinkInput,
    SqlAntifraudStore,
    evaluate_creator_submission,
    evaluate_review_submission,
    manual_review_fallback,
)
from reviewguard.worker.agents.antifraud.decisions import decide_creator, decide_review
from reviewguard.worker.agents.guardrails import UserLockTimeout, user_lock

### Init app

app = FastAPI(title="Reviewguard Anti-Fraud", version="0.1.0")

### Logging middleware wire-in ###

from reviewguard.api.middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)

from reviewguard.api.middleware.access_log import AccessLogMiddleware
app.add_middleware(AccessLogMiddleware)

### Logging init ###

from reviewguard.shared.logging_setup import configure_structured_logging
from reviewguard.shared.db_log_handler import DBLogHandler

SERVICE_NAME = os.getenv("SERVICE_NAME", "api")

configure_structured_logging(SERVICE_NAME)

# Attach DB handler to root logger for admin visibility
if settings.db_log_enabled:
    db_handler = DBLogHandler()
    db_handler.setLevel(settings.db_log_level.upper())
    logging.getLogger().addHandler(db_handler)

log = structlog.get_logger(__name__)
log.info("api_startup", service=SERVICE_NAME)

###

init_db()


@app.exception_handler(AntifraudError)
async def antifraud_error_handler(request: Request, exc: AntifraudError):
    if exc.status_code >= 500:
        log.error("request_failed", error=exc.message, error_type=type(exc).__name__)
    else:
        log.info("request_rejected", error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


# ---- request bodies ----

class PlatformLinkIn(BaseModel):
    platform: str = ""
    username: str = ""
    url: str = ""


class CreatorCheckIn(BaseModel):
    creator_name: str = ""
    platform_links: list[PlatformLinkIn] = Field(default_factory=list)
    user_id: str = ""
    creator_id: Optional[str] = None


class ReviewCheckIn(BaseModel):
    review_id: str = ""


# ---- auth ----

def current_user_id(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthorized("missing bearer token")
    payload = verify_token(authorization.split(" ", 1)[1].strip())
    if not payload or not payload.get("sub"):
        raise Unauthorized("invalid or expired token")
    return payload["sub"]


def require_admin(x_admin_token: str | None = Header(default=None)) -> str:
    if x_admin_token and x_admin_token == settings.admin_token:
        return "header_admin"
    raise Unauthorized("Unauthorized")


def get_store(db: Session = Depends(get_db)) -> SqlAntifraudStore:
    return SqlAntifraudStore(db)


def _ok(result) -> dict:
    return {"success": True, "result": result}


@app.get("/health")
def health():
    return {"ok": True}


# ---- evaluation ----

@app.post("/antifraud/creator")
def check_creator(
    body: CreatorCheckIn,
    user_id: str = Depends(current_user_id),
    store: SqlAntifraudStore = Depends(get_store),
):
    submission = CreatorSubmission(
        creator_name=body.creator_name,
        platform_links=[PlatformLinkInput(**link.model_dump()) for link in body.platform_links],
        user_id=body.user_id,
        creator_id=body.creator_id,
    )
    verdict = evaluate_creator_submission(store, submission, acting_user_id=user_id)
    return _ok(verdict.to_dict())


@app.post("/antifraud/review")
def check_review(
    body: ReviewCheckIn,
    user_id: str = Depends(current_user_id),
    store: SqlAntifraudStore = Depends(get_store),
):
    bind_submission_context(review_id=body.review_id, user_id=user_id)
    try:
        verdict = evaluate_review_submission(store, body.review_id, acting_user_id=user_id, lock=user_lock)
    except UserLockTimeout:
        log.warning("review_check_lock_timeout")
        verdict = manual_review_fallback("evaluation_timeout")
    return _ok(verdict.to_dict())


# ---- admin ----

@app.get("/admin/queue")
def admin_queue(
    kind: Optional[str] = None,
    limit: int = 100,
    _admin: str = Depends(require_admin),
    store: SqlAntifraudStore = Depends(get_store),
):
    if kind is not None and kind not in {k.value for k in SubmissionKind}:
        raise ValidationError("kind must be 'review' or 'creator'")
    limit = max(1, min(limit, 500))

    kinds = [SubmissionKind(kind)] if kind else list(SubmissionKind)
    return _ok({k.value + "s": store.list_pending(k, limit) for k in kinds})


@app.post("/admin/reviews/{review_id}/reevaluate")
def admin_reevaluate_review(
    review_id: str,
    admin: str = Depends(require_admin),
    store: SqlAntifraudStore = Depends(get_store),
):
    bind_submission_context(review_id=review_id)
    log.info("review_reevaluate_requested", admin=admin)
    try:
        verdict = evaluate_review_submission(store, review_id, lock=user_lock)
    except UserLockTimeout:
        verdict = manual_review_fallback("evaluation_timeout")
    return _ok(verdict.to_dict())


@app.post("/admin/reviews/{review_id}/approve")
def admin_approve_review(review_id: str, admin: str = Depends(require_admin), store: SqlAntifraudStore = Depends(get_store)):
    return _ok(decide_review(store, review_id, approve=True, decided_by=admin))


@app.post("/admin/reviews/{review_id}/reject")
def admin_reject_review(review_id: str, admin: str = Depends(require_admin), store: SqlAntifraudStore = Depends(get_store)):
    return _ok(decide_review(store, review_id, approve=False, decided_by=admin))


@app.post("/admin/creators/{creator_id}/approve")
def admin_approve_creator(creator_id: str, admin: str = Depends(require_admin), store: SqlAntifraudStore = Depends(get_store)):
    return _ok(decide_creator(store, creator_id, approve=True, decided_by=admin))


@app.post("/admin/creators/{creator_id}/reject")
def admin_reject_creator(creator_id: str, admin: str = Depends(require_admin), store: SqlAntifraudStore = Depends(get_store)):
    return _ok(decide_creator(store, creator_id, approve=False, decided_by=admin))
