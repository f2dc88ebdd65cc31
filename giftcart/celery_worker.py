# giftcart/celery_worker.py
from celery import Celery

from giftcart.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    ORDER_TTL_SECONDS,
)

celery_app = Celery(
    "giftcart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "giftcart.tasks.expire",
    "giftcart.services.notification_service",
)

# porzucone zamowienia sprawdzamy czesciej niz wynosi TTL
celery_app.conf.beat_schedule = {
    "expire-stale-orders": {
        "task": "giftcart.tasks.expire.expire_stale_orders_task",
        "schedule": float(max(60, ORDER_TTL_SECONDS // 24)),
    },
}

celery_app.conf.timezone = "UTC"

# w testach / dev bez brokera taski wykonuja sie synchronicznie
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_eager_propagates = CELERY_TASK_ALWAYS_EAGER
