from celery import Celery
from celery.schedules import crontab

from reviewguard.shared.settings import settings

celery = Celery("reviewguard_beat", broker=settings.redis_url)
celery.conf.timezone = "UTC"

celery.conf.beat_schedule = {
    "antifraud-sweep": {
        "task": "tasks.antifraud_sweep",
        "schedule": crontab(minute="*/10"),
        "args": (100,),
    },
}
