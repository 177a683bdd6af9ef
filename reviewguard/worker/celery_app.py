import logging
import os

import structlog
from celery import Celery

from reviewguard.shared.db_log_handler import DBLogHandler
from reviewguard.shared.logging_setup import configure_structured_logging
from reviewguard.shared.settings import settings

### Logging setup ###

SERVICE_NAME = os.getenv("SERVICE_NAME", "worker")

configure_structured_logging(SERVICE_NAME)

if settings.db_log_enabled:
    db_handler = DBLogHandler()
    db_handler.setLevel(settings.db_log_level.upper())
    logging.getLogger().addHandler(db_handler)

log = structlog.get_logger(__name__)
log.info("worker_startup", service=SERVICE_NAME)

###

celery = Celery(
    "reviewguard_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["reviewguard.worker.tasks"],
)

celery.conf.update(
    task_routes={
        "tasks.*_antifraud": {"queue": "antifraud"},
        "tasks.antifraud_*": {"queue": "antifraud"},
    },
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery.conf.update(
    task_default_queue="celery",
    task_track_started=True,
    timezone="UTC",
)
