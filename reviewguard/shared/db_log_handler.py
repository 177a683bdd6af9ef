import logging

from sqlalchemy.orm import sessionmaker

from reviewguard.shared.db_models import AppLog


class DBLogHandler(logging.Handler):
    """
    Stores log events into the app_logs table.
    Meant for admin visibility of fraud decisions, not high-volume tracing.
    """

    def __init__(self, session_factory: sessionmaker | None = None, level: int | str = logging.NOTSET):
        super().__init__(level)
        if session_factory is None:
            from reviewguard.shared.db import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory

    def emit(self, record: logging.LogRecord) -> None:
        # structlog hands the event dict over as record.msg
        payload = record.msg if isinstance(record.msg, dict) else {}
        db = None
        try:
            db = self.session_factory()
            db.add(
                AppLog(
                    level=record.levelname,
                    logger=record.name,
                    service=payload.get("service") or getattr(record, "service", None),
                    message=self.format(record) if not payload else None,
                    request_id=payload.get("request_id") or getattr(record, "request_id", None),
                    task_id=payload.get("task_id") or getattr(record, "task_id", None),
                    event=payload.get("event") or getattr(record, "event", None),
                    data={k: _jsonable(v) for k, v in payload.items() if k != "event"} or None,
                )
            )
            db.commit()
        except Exception:
            # a failed log write must never fail an evaluation
            if db is not None:
                db.rollback()
            self.handleError(record)
        finally:
            if db is not None:
                db.close()


def _jsonable(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
