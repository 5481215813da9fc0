# shoplist/celery_worker.py
from celery import Celery

from shoplist.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, COUNT_RECONCILE_INTERVAL_SECONDS

celery_app = Celery(
    "shoplist",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks have to be imported explicitly for the worker to register them
celery_app.conf.imports = (
    "shoplist.tasks.reconcile",
)

celery_app.conf.beat_schedule = {
    "reconcile-cart-counts": {
        "task": "shoplist.tasks.reconcile.reconcile_cart_counts_task",
        "schedule": COUNT_RECONCILE_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
