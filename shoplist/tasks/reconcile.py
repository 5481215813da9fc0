# shoplist/tasks/reconcile.py
from shoplist.celery_worker import celery_app
from shoplist.data.database import SessionLocal
from shoplist.repos.cart_repo import CartRepo
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)


@celery_app.task(name="shoplist.tasks.reconcile.reconcile_cart_counts_task")
def reconcile_cart_counts_task():
    """Brings every user's quota counter back in line with the stored carts."""
    logger.info("Cart counter reconciliation started")

    db = SessionLocal()
    try:
        fixed = CartRepo(db).reconcile_cart_counts()
        logger.info(f"Cart counter reconciliation fixed {fixed} users")
        return {"fixed": fixed}
    finally:
        db.close()
