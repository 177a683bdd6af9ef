from datetime import timedelta

import pytest
from celery.exceptions import SoftTimeLimitExceeded

from reviewguard.shared.db_models import FraudCheck, ReviewStatus, SubmissionKind
from reviewguard.worker import beat, tasks
from reviewguard.worker.agents.guardrails import UserLockTimeout
from reviewguard.worker.celery_app import celery

from factories import make_creator, make_profile, make_review


@pytest.fixture
def task_db(monkeypatch, session_factory):
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)
    return session_factory


def test_review_task_returns_verdict(task_db, db):
    make_profile(db, "u1")
    rv = make_review(db, "u1", make_creator(db, "Alessia Rose"))

    out = tasks.review_antifraud(rv.id)

    assert out["ok"] is True
    assert out["result"]["status"] == "pending"
    assert db.query(FraudCheck).count() == 1


def test_review_task_unknown_review(task_db):
    assert tasks.review_antifraud("missing") == {"ok": False, "error": "review_not_found"}


@pytest.mark.parametrize("exc", [SoftTimeLimitExceeded(), UserLockTimeout("u1")])
def test_review_task_timeout_falls_back_to_manual_review(task_db, monkeypatch, exc):
    def slow(*args, **kwargs):
        raise exc

    monkeypatch.setattr(tasks, "evaluate_review_submission", slow)

    out = tasks.review_antifraud("r1")

    assert out["ok"] is False
    assert out["error"] == "timeout"
    assert out["result"]["needs_manual_review"] is True
    assert out["result"]["auto_approve"] is False
    assert out["result"]["flags"] == ["evaluation_timeout"]


def test_review_task_reraises_unexpected_errors(task_db, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(tasks, "evaluate_review_submission", broken)
    with pytest.raises(RuntimeError):
        tasks.review_antifraud("r1")


def test_creator_task(task_db, db):
    make_creator(db, "Alessia Rose")
    payload = {
        "creator_name": "Alessia Rose",
        "user_id": "u1",
        "platform_links": [{"platform": "onlyfans", "username": "ar", "url": "https://onlyfans.com/ar"}],
    }

    out = tasks.creator_antifraud(payload)

    assert out["ok"] is True
    assert out["result"]["flags"] == ["near_identical_name"]
    check = db.query(FraudCheck).one()
    assert check.submission_kind == SubmissionKind.creator


def test_creator_task_invalid_payload(task_db):
    assert tasks.creator_antifraud({"creator_name": "x"}) == {"ok": False, "error": "user_id is required"}


def test_sweep_queues_unchecked_pending_reviews(task_db, db, monkeypatch):
    queued = []
    monkeypatch.setattr(tasks.review_antifraud, "delay", lambda review_id: queued.append(review_id))

    creator = make_creator(db, "Alessia Rose")
    stale = make_review(db, "u1", creator, age=timedelta(hours=1))
    make_review(db, "u1", creator, age=timedelta(minutes=1))
    make_review(db, "u1", creator, status=ReviewStatus.approved, age=timedelta(hours=1))
    checked = make_review(db, "u1", creator, age=timedelta(hours=2))
    db.add(FraudCheck(
        submission_kind=SubmissionKind.review, submission_id=checked.id, user_id="u1",
        risk_score=0, flags=[], outcome="manual_review",
    ))
    db.commit()

    out = tasks.antifraud_sweep()

    assert out == {"ok": True, "queued": 1}
    assert queued == [stale.id]


def test_tasks_are_registered_and_routed():
    for name in ("tasks.review_antifraud", "tasks.creator_antifraud", "tasks.antifraud_sweep"):
        assert name in celery.tasks
    assert beat.celery.conf.beat_schedule["antifraud-sweep"]["task"] in celery.tasks
