# shoplist/repos/cart_repo.py
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone, tzinfo
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from shoplist.data.models.cart import CartModel
from shoplist.data.models.user import UserModel
from shoplist.domain.exceptions import CartLimitError
from shoplist.domain.schemas import CartUpdate, NewCart, ShoppingCart, ShoppingItem
from shoplist.repos.user_repo import UserRepo
from shoplist.utils.settings import ARCHIVE_SWEEP_WORKERS
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

ACTIVE = "active"
ARCHIVED = "archived"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dump_items(items: Iterable[ShoppingItem]) -> list:
    return [i.model_dump(mode="json") for i in items]


def _to_cart(model: CartModel) -> ShoppingCart:
    return ShoppingCart.model_validate(model)


class CartRepo:
    """
    Carts of a single user plus the per-user quota counter.

    The one-active-cart-per-day rule is not a database constraint: callers
    create a cart and then run archive_other_active() to sweep the rest.
    """

    def __init__(
        self,
        db: Session,
        session_factory: Optional[sessionmaker] = None,
        sweep_workers: int = ARCHIVE_SWEEP_WORKERS,
    ):
        self.db = db
        self.users = UserRepo(db)
        self.session_factory = session_factory or sessionmaker(
            bind=db.get_bind(), autoflush=False, expire_on_commit=False
        )
        self.sweep_workers = max(1, sweep_workers)

    def _user_carts(self, user_id: str):
        return select(CartModel).where(CartModel.user_id == user_id)

    def _get_model(self, user_id: str, cart_id: str) -> CartModel | None:
        stmt = self._user_carts(user_id).where(CartModel.id == cart_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def _count_carts(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(CartModel).where(CartModel.user_id == user_id)
        return self.db.execute(stmt).scalar_one()

    # =====================================================
    # QUERIES
    # =====================================================
    def list_carts(self, user_id: str) -> List[ShoppingCart]:
        stmt = self._user_carts(user_id).order_by(CartModel.updated_at.desc())
        return [_to_cart(c) for c in self.db.execute(stmt).scalars().all()]

    def list_active(self, user_id: str) -> List[ShoppingCart]:
        """Active carts, newest update first. A failed query reads as no carts."""
        stmt = (
            self._user_carts(user_id)
            .where(CartModel.status == ACTIVE)
            .order_by(CartModel.updated_at.desc())
        )
        try:
            carts = [_to_cart(c) for c in self.db.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Listing active carts for user {user_id} failed: {e}")
            return []

        logger.debug(f"User {user_id} has {len(carts)} active carts")
        return carts

    def get_todays_active(self, user_id: str, tz: Optional[tzinfo] = None) -> ShoppingCart | None:
        """
        The most recently updated active cart created today.

        "Today" is the calendar date in ``tz`` (system local time when None);
        created_at is converted to the same zone before comparing.
        """
        today = datetime.now(tz).date()
        for cart in self.list_active(user_id):
            if cart.created_at.astimezone(tz).date() == today:
                return cart
        return None

    def get_cart(self, user_id: str, cart_id: str) -> ShoppingCart | None:
        cart = self._get_model(user_id, cart_id)
        if cart is None:
            return None
        return _to_cart(cart)

    def get_cart_count(self, user_id: str) -> int:
        user = self.users.get_user(user_id)
        if user is not None and user.cart_count is not None:
            return user.cart_count
        return self._count_carts(user_id)

    # =====================================================
    # COMMANDS
    # =====================================================
    def sync_cart_count_if_missing(self, user_id: str) -> None:
        """Initializes the quota counter from a full count. Failures are only logged."""
        try:
            user = self.users.get_user(user_id)
            if user is not None and user.cart_count is not None:
                return

            count = self._count_carts(user_id)
            if user is None:
                user = UserModel(id=user_id)
                self.db.add(user)
            user.cart_count = count
            self.db.commit()
            logger.info(f"Initialized cart counter for user {user_id} at {count}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Could not initialize cart counter for user {user_id}: {e}")

    def create_cart(self, user_id: str, data: NewCart, max_carts: int) -> ShoppingCart:
        """
        Inserts an active cart and bumps the quota counter in one transaction.

        Raises CartLimitError (nothing written) when the counter already
        reached max_carts.
        """
        self.sync_cart_count_if_missing(user_id)

        try:
            user = self.users.get_user(user_id, for_update=True)
            cart_count = user.cart_count if user is not None and user.cart_count is not None else 0

            if cart_count >= max_carts:
                raise CartLimitError(max_carts)

            cart = CartModel(
                user_id=user_id,
                name=data.name,
                items=_dump_items(data.items),
                currency=data.currency,
                status=ACTIVE,
            )
            self.db.add(cart)

            if user is None:
                self.db.add(UserModel(id=user_id, cart_count=1))
            else:
                user.cart_count = func.coalesce(UserModel.cart_count, 0) + 1

            self.db.flush()
            created = _to_cart(cart)
            self.db.commit()
        except CartLimitError:
            self.db.rollback()
            logger.info(f"User {user_id} reached the cart limit of {max_carts}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created cart {created.id} for user {user_id}")
        return created

    def update_cart(self, user_id: str, cart_id: str, changes: CartUpdate) -> ShoppingCart | None:
        """Writes only the supplied fields and refreshes updated_at. None when the cart is gone."""
        values = {"updated_at": _utcnow()}
        if changes.name is not None:
            values["name"] = changes.name
        if changes.items is not None:
            values["items"] = _dump_items(changes.items)
        if changes.currency is not None:
            values["currency"] = changes.currency

        try:
            cart = self._get_model(user_id, cart_id)
            if cart is None:
                return None
            for key, value in values.items():
                setattr(cart, key, value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return _to_cart(cart)

    def rename_cart(self, user_id: str, cart_id: str, name: str) -> ShoppingCart | None:
        return self.update_cart(user_id, cart_id, CartUpdate(name=name))

    def archive_cart(self, user_id: str, cart_id: str) -> ShoppingCart | None:
        try:
            cart = self._get_model(user_id, cart_id)
            if cart is None:
                return None
            cart.status = ARCHIVED
            cart.updated_at = _utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Archived cart {cart_id} of user {user_id}")
        return _to_cart(cart)

    def delete_cart(self, user_id: str, cart_id: str) -> bool:
        """
        Deletes the cart and decrements the counter (floored at 0) together.
        Returns False without touching anything when the cart does not exist.
        """
        try:
            cart = self._get_model(user_id, cart_id)
            if cart is None:
                return False

            self.db.delete(cart)
            user = self.users.get_or_add_user(user_id)
            if user.cart_count is None:
                self.db.flush()
                user.cart_count = self._count_carts(user_id)
            else:
                user.cart_count = max(0, user.cart_count - 1)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted cart {cart_id} of user {user_id}")
        return True

    def archive_other_active(self, user_id: str, keep_cart_id: Optional[str] = None) -> None:
        """
        Best-effort sweep: archives every active cart except keep_cart_id.

        Each cart is archived on its own session in parallel; a failure is
        logged and does not undo the others. Nothing is reported back.
        """
        stmt = select(CartModel.id).where(
            CartModel.user_id == user_id,
            CartModel.status == ACTIVE,
        )
        try:
            cart_ids = [cid for cid in self.db.execute(stmt).scalars().all() if cid != keep_cart_id]
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Archive sweep for user {user_id} could not list carts: {e}")
            return

        if not cart_ids:
            return

        logger.info(f"Archiving {len(cart_ids)} other active carts of user {user_id}")

        workers = min(self.sweep_workers, len(cart_ids))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._archive_one, user_id, cid): cid for cid in cart_ids}
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    logger.warning(f"Failed to archive cart {futures[future]}: {e}")

        # rows changed on other sessions
        self.db.expire_all()

    def _archive_one(self, user_id: str, cart_id: str) -> None:
        with self.session_factory() as session:
            session.execute(
                update(CartModel)
                .where(
                    CartModel.id == cart_id,
                    CartModel.user_id == user_id,
                    CartModel.status == ACTIVE,
                )
                .values(status=ARCHIVED, updated_at=_utcnow())
            )
            session.commit()

    def reconcile_cart_counts(self) -> int:
        """Rewrites every quota counter that disagrees with the carts table. Returns the number fixed."""
        rows = self.db.execute(
            select(CartModel.user_id, func.count(CartModel.id)).group_by(CartModel.user_id)
        ).all()
        counts = {user_id: count for user_id, count in rows}

        fixed = 0
        try:
            for user in self.db.execute(select(UserModel)).scalars().all():
                expected = counts.pop(user.id, 0)
                if user.cart_count != expected:
                    logger.info(f"Cart counter of user {user.id}: {user.cart_count} -> {expected}")
                    user.cart_count = expected
                    fixed += 1

            # carts whose owner never got a counter row
            for user_id, expected in counts.items():
                self.db.add(UserModel(id=user_id, cart_count=expected))
                fixed += 1

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return fixed
