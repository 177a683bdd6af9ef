"""JSON logging for the api and worker processes.

Every event carries `service` plus whatever submission the current request or
task is working on (`review_id`, `creator_id`, `user_id`), so one grep over a
review id shows its whole evaluation across api and worker. Money amounts are
rendered as plain decimal strings and credentials never reach the output.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from structlog.contextvars import bind_contextvars, merge_contextvars

from reviewguard.shared.settings import settings

SENSITIVE_KEYS = {
    "password", "secret", "token", "admin_token", "x-admin-token",
    "authorization", "cookie", "set-cookie", "payment_details",
}

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-\._~\+\/:]+=*")


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS:
                out[k] = "[REDACTED]"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, (list, tuple)):
        return [_redact(x) for x in obj]
    if isinstance(obj, str):
        return _BEARER_RE.sub(r"\1[REDACTED]", obj)
    return obj


def _redact_processor(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    return _redact(event_dict)


def _render_money(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # JSONRenderer cannot encode Decimal; keep the exact value, not a float
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def bind_submission_context(
    review_id: Optional[str] = None,
    creator_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    """Bind the ids of the submission being evaluated. Empty ids are skipped."""
    ids = {"review_id": review_id, "creator_id": creator_id, "user_id": user_id}
    bind_contextvars(**{k: v for k, v in ids.items() if v})


def _shared_processors() -> list:
    return [
        merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _render_money,
        _redact_processor,
    ]


def configure_structured_logging(service_name: str, level_name: str | None = None) -> None:
    level_name = (level_name or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=_shared_processors(),
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # celery and uvicorn log through stdlib; the engine echo is too chatty for evaluations
    for name in ("uvicorn.access", "uvicorn.error", "celery"):
        logging.getLogger(name).setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=_shared_processors() + [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    bind_contextvars(service=service_name)
