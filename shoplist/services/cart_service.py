import random
import re
from datetime import tzinfo
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shoplist.domain.exceptions import CartLimitError, InvalidOperationError
from shoplist.domain.schemas import CartsOverview, CartUpdate, NewCart, ShoppingCart
from shoplist.repos.cart_repo import ACTIVE, CartRepo
from shoplist.utils.settings import MAX_CARTS
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

CART_NAME_PREFIX = "My Cart #"
_NAME_SUFFIX = re.compile(r"#(\d{1,3})$")


def generate_unique_cart_name(existing_names: Iterable[str], rng=random) -> str:
    """
    Lowest free "My Cart #NNN" in 1..999. When every number is taken a random
    one is returned, so the name may collide.
    """
    used = set()
    for name in existing_names:
        match = _NAME_SUFFIX.search(name or "")
        if match:
            used.add(int(match.group(1)))

    for i in range(1, 1000):
        if i not in used:
            return f"{CART_NAME_PREFIX}{i:03d}"
    return f"{CART_NAME_PREFIX}{rng.randint(1, 999):03d}"


def average_cart_total(carts: Iterable[ShoppingCart]) -> Decimal:
    """Mean total over carts that hold at least one item."""
    totals = [c.total for c in carts if c.items]
    if not totals:
        return Decimal("0")
    return sum(totals, Decimal("0")) / len(totals)


class CartService:
    """
    Use cases for the cart domain.
    queries (list, get, today, overview) only read
    commands (create, update, archive, delete, start new) change state
    """

    def __init__(self, db: Session, max_carts: int = MAX_CARTS, repo: Optional[CartRepo] = None):
        self.repo = repo or CartRepo(db)
        self.max_carts = max_carts

    #queries
    def list_carts(self, user_id: str) -> List[ShoppingCart]:
        return self.repo.list_carts(user_id)

    def list_active(self, user_id: str) -> List[ShoppingCart]:
        return self.repo.list_active(user_id)

    def get_cart(self, user_id: str, cart_id: str) -> ShoppingCart | None:
        return self.repo.get_cart(user_id, cart_id)

    def get_todays_cart(self, user_id: str, tz: Optional[tzinfo] = None) -> ShoppingCart | None:
        cart = self.repo.get_todays_active(user_id, tz)
        if cart is not None:
            # keep today's cart the single active one
            self.repo.archive_other_active(user_id, cart.id)
        return cart

    def overview(self, user_id: str) -> CartsOverview:
        carts = self.repo.list_carts(user_id)
        return CartsOverview(
            cart_count=len(carts),
            max_carts=self.max_carts,
            average_total=average_cart_total(carts),
        )

    #commands
    def create_cart(self, user_id: str, data: NewCart) -> ShoppingCart:
        if not data.name.strip():
            names = [c.name for c in self.repo.list_carts(user_id)]
            data = data.model_copy(update={"name": generate_unique_cart_name(names)})

        created = self.repo.create_cart(user_id, data, self.max_carts)
        self.repo.archive_other_active(user_id, created.id)
        return created

    def update_cart(self, user_id: str, cart_id: str, changes: CartUpdate) -> ShoppingCart | None:
        return self.repo.update_cart(user_id, cart_id, changes)

    def archive_cart(self, user_id: str, cart_id: str) -> ShoppingCart | None:
        return self.repo.archive_cart(user_id, cart_id)

    def sweep(self, user_id: str, keep_cart_id: Optional[str] = None) -> None:
        self.repo.archive_other_active(user_id, keep_cart_id)

    def delete_cart(self, user_id: str, cart_id: str) -> bool:
        cart = self.repo.get_cart(user_id, cart_id)
        if cart is None:
            return False

        if cart.status == ACTIVE:
            raise InvalidOperationError(
                "Active carts cannot be deleted, archive the cart first",
                operation="delete",
                state=ACTIVE,
            )

        return self.repo.delete_cart(user_id, cart_id)

    def start_new_cart(
        self,
        user_id: str,
        currency: Optional[str] = None,
        current_cart_id: Optional[str] = None,
    ) -> ShoppingCart:
        """Archives the current cart and opens an empty one with a generated name."""
        if self.repo.get_cart_count(user_id) >= self.max_carts:
            raise CartLimitError(self.max_carts)

        if current_cart_id:
            try:
                self.repo.archive_cart(user_id, current_cart_id)
            except SQLAlchemyError as e:
                logger.warning(f"Could not archive cart {current_cart_id} before starting a new one: {e}")

        created = self.create_cart(user_id, NewCart(currency=currency))
        logger.info(f"User {user_id} started cart {created.id}")
        return created
