import logging
from decimal import Decimal

from structlog.contextvars import clear_contextvars, get_contextvars

from reviewguard.shared.db_log_handler import DBLogHandler
from reviewguard.shared.db_models import AppLog
from reviewguard.shared.logging_setup import _redact, _render_money, bind_submission_context


def _record(msg):
    return logging.LogRecord("reviewguard.test", logging.WARNING, __file__, 1, msg, None, None)


def test_db_handler_stores_structlog_event(session_factory, db):
    handler = DBLogHandler(session_factory=session_factory)
    handler.emit(_record({
        "event": "review_check_finished",
        "service": "worker",
        "task_id": "t-1",
        "flags": ("spam_pattern",),
        "risk_score": 25,
    }))

    row = db.query(AppLog).one()
    assert row.event == "review_check_finished"
    assert row.service == "worker"
    assert row.task_id == "t-1"
    assert row.level == "WARNING"
    assert row.data == {"service": "worker", "task_id": "t-1", "flags": ["spam_pattern"], "risk_score": 25}


def test_db_handler_failure_does_not_raise(monkeypatch):
    class BrokenSession:
        def add(self, row):
            raise RuntimeError("db down")

        def rollback(self):
            pass

        def close(self):
            pass

    handler = DBLogHandler(session_factory=BrokenSession)
    errors = []
    monkeypatch.setattr(handler, "handleError", lambda record: errors.append(record))

    handler.emit(_record({"event": "x"}))
    assert len(errors) == 1


def test_redaction():
    out = _redact({
        "authorization": "Bearer abc.def",
        "nested": {"admin_token": "secret", "note": "sent Bearer abc.def along"},
        "review_id": "r1",
    })
    assert out["authorization"] == "[REDACTED]"
    assert out["nested"]["admin_token"] == "[REDACTED]"
    assert out["nested"]["note"] == "sent Bearer [REDACTED] along"
    assert out["review_id"] == "r1"


def test_money_is_rendered_as_exact_strings():
    out = _render_money(None, "info", {"event": "reward_settled", "amount": Decimal("0.20"), "approved": True})
    assert out == {"event": "reward_settled", "amount": "0.20", "approved": True}


def test_submission_context_skips_empty_ids():
    clear_contextvars()
    try:
        bind_submission_context(review_id="r1", creator_id=None, user_id="")
        assert get_contextvars() == {"review_id": "r1"}

        bind_submission_context(user_id="u1")
        assert get_contextvars() == {"review_id": "r1", "user_id": "u1"}
    finally:
        clear_contextvars()
