# shoplist/client/cart_view.py
"""
Client-side state of today's shopping list.

reduce() is a pure transform: (state, action) -> (new state, commands).
CartViewController runs the commands against the cart service or the local
store and puts the previous item back when persisting fails.
"""
from dataclasses import dataclass, field, replace
from datetime import tzinfo
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from shoplist.client.local_store import LocalStore
from shoplist.domain.exceptions import CartLimitError, InvalidOperationError, ValidationError
from shoplist.domain.schemas import CartUpdate, NewCart, ShoppingCart, ShoppingItem
from shoplist.services.cart_service import CartService
from shoplist.utils.settings import DEFAULT_CURRENCY
from shoplist.utils.logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "price", "quantity")


@dataclass(frozen=True)
class ItemSummary:
    item_count: int
    total_quantity: int
    total_amount: Decimal


def summarize_items(items) -> ItemSummary:
    items = list(items)
    return ItemSummary(
        item_count=len(items),
        total_quantity=sum(i.quantity for i in items),
        total_amount=sum((i.total for i in items), Decimal("0")),
    )


def validate_item_input(name, price, quantity) -> Tuple[str, Decimal, int]:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Please enter a product name.", field="name")

    try:
        amount = Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise ValidationError("Please enter a valid positive price.", field="price")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Please enter a valid positive price.", field="price")

    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be at least 1.", field="quantity")

    return name, amount, quantity


# =====================================================
# STATE, ACTIONS, COMMANDS
# =====================================================
@dataclass(frozen=True)
class CartViewState:
    items: Tuple[ShoppingItem, ...] = ()
    cart_id: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    user_id: Optional[str] = None
    plan: int = 0

    @property
    def is_remote(self) -> bool:
        """Paid, signed-in users keep their list in the cart store."""
        return self.plan >= 1 and self.user_id is not None


@dataclass(frozen=True)
class AddItem:
    item: ShoppingItem


@dataclass(frozen=True)
class UpdateItem:
    item_id: str
    changes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DeleteItem:
    item_id: str


@dataclass(frozen=True)
class ClearItems:
    pass


@dataclass(frozen=True)
class CartLoaded:
    cart_id: Optional[str]
    items: Tuple[ShoppingItem, ...] = ()


Action = Union[AddItem, UpdateItem, DeleteItem, ClearItems, CartLoaded]


@dataclass(frozen=True)
class CreateCart:
    items: Tuple[ShoppingItem, ...]
    currency: str


@dataclass(frozen=True)
class PersistItems:
    cart_id: str
    items: Tuple[ShoppingItem, ...]
    currency: str


@dataclass(frozen=True)
class SaveLocal:
    items: Tuple[ShoppingItem, ...]


Command = Union[CreateCart, PersistItems, SaveLocal]


def _persist(state: CartViewState, allow_create: bool = False) -> List[Command]:
    if state.is_remote and state.cart_id is not None:
        return [PersistItems(state.cart_id, state.items, state.currency)]
    if state.is_remote and allow_create:
        return [CreateCart(state.items, state.currency)]
    return [SaveLocal(state.items)]


def reduce(state: CartViewState, action: Action) -> Tuple[CartViewState, List[Command]]:
    if isinstance(action, AddItem):
        new_state = replace(state, items=(action.item,) + state.items)
        return new_state, _persist(new_state, allow_create=True)

    if isinstance(action, UpdateItem):
        if not any(i.id == action.item_id for i in state.items):
            return state, []
        items = tuple(
            i.with_changes(**action.changes) if i.id == action.item_id else i
            for i in state.items
        )
        new_state = replace(state, items=items)
        return new_state, _persist(new_state)

    if isinstance(action, DeleteItem):
        if not any(i.id == action.item_id for i in state.items):
            return state, []
        new_state = replace(state, items=tuple(i for i in state.items if i.id != action.item_id))
        return new_state, _persist(new_state)

    if isinstance(action, ClearItems):
        new_state = replace(state, items=())
        return new_state, _persist(new_state)

    if isinstance(action, CartLoaded):
        return replace(state, cart_id=action.cart_id, items=tuple(action.items)), []

    raise TypeError(f"Unknown action: {action!r}")


# =====================================================
# CONTROLLER
# =====================================================
class CartViewController:
    """
    Applies list edits locally first, then persists the whole item list.
    A failed write restores the captured item and re-raises.
    """

    def __init__(
        self,
        carts: CartService,
        local_store: LocalStore,
        state: Optional[CartViewState] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.carts = carts
        self.local_store = local_store
        self.state = state or CartViewState()
        self.tz = tz
        self.cancelled = False

    def close(self) -> None:
        """Results of calls still in flight are dropped after this."""
        self.cancelled = True

    @property
    def summary(self) -> ItemSummary:
        return summarize_items(self.state.items)

    def set_user(self, user_id: Optional[str], plan: int, currency: Optional[str] = None) -> None:
        self.state = replace(
            self.state,
            user_id=user_id,
            plan=plan,
            currency=currency or self.state.currency,
        )

    def load(self) -> CartViewState:
        if not self.state.is_remote:
            self._apply(CartLoaded(None, tuple(self.local_store.load_items())))
            return self.state

        try:
            cart = self.carts.get_todays_cart(self.state.user_id, self.tz)
        except SQLAlchemyError as e:
            logger.warning(f"Loading today's cart failed, falling back to local list: {e}")
            items = self.local_store.load_items()
            if not self.cancelled:
                self._apply(CartLoaded(None, tuple(items)))
            return self.state

        if self.cancelled:
            return self.state

        if cart is not None:
            self._apply(CartLoaded(cart.id, tuple(cart.items)))
        else:
            # nothing for today until the first item is added
            self._apply(CartLoaded(None, ()))
        return self.state

    def add_item(self, name, price, quantity: int = 1) -> ShoppingItem:
        name, amount, quantity = validate_item_input(name, price, quantity)
        item = ShoppingItem(name=name, price=amount, quantity=quantity)

        try:
            self._apply(AddItem(item))
        except CartLimitError:
            self._drop(item.id)
            raise
        except SQLAlchemyError as e:
            if self.state.is_remote and self.state.cart_id is None:
                logger.warning(f"Creating a cart failed, keeping the list locally: {e}")
                self.local_store.save_items(self.state.items)
            else:
                self._drop(item.id)
                raise
        return item

    def update_item(self, item_id: str, **changes) -> ShoppingItem | None:
        original = self._find(item_id)
        if original is None:
            return None

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))}", field=sorted(unknown)[0])

        name, price, quantity = validate_item_input(
            changes.get("name", original.name),
            changes.get("price", original.price),
            changes.get("quantity", original.quantity),
        )
        valid = {"name": name, "price": price, "quantity": quantity}

        try:
            self._apply(UpdateItem(item_id, {k: valid[k] for k in changes}))
        except Exception:
            self._restore(original)
            raise
        return self._find(item_id)

    def delete_item(self, item_id: str) -> ShoppingItem | None:
        index = next((n for n, i in enumerate(self.state.items) if i.id == item_id), None)
        if index is None:
            return None
        original = self.state.items[index]

        try:
            self._apply(DeleteItem(item_id))
        except Exception:
            items = list(self.state.items)
            items.insert(min(index, len(items)), original)
            self.state = replace(self.state, items=tuple(items))
            raise
        return original

    def clear_all(self) -> None:
        previous = self.state.items
        try:
            self._apply(ClearItems())
        except Exception:
            self.state = replace(self.state, items=previous)
            raise

    def start_new_cart(self) -> ShoppingCart:
        if not self.state.is_remote:
            raise InvalidOperationError(
                "Sign in and upgrade to Pro to manage multiple carts.",
                operation="start_new_cart",
            )

        created = self.carts.start_new_cart(self.state.user_id, self.state.currency, self.state.cart_id)
        if not self.cancelled:
            self._apply(CartLoaded(created.id, tuple(created.items)))
        return created

    #internals
    def _apply(self, action: Action) -> None:
        self.state, commands = reduce(self.state, action)
        for command in commands:
            self._execute(command)

    def _execute(self, command: Command) -> None:
        if isinstance(command, SaveLocal):
            self.local_store.save_items(command.items)

        elif isinstance(command, PersistItems):
            updated = self.carts.update_cart(
                self.state.user_id,
                command.cart_id,
                CartUpdate(items=list(command.items), currency=command.currency),
            )
            if updated is None:
                logger.warning(f"Cart {command.cart_id} no longer exists, changes not stored")

        elif isinstance(command, CreateCart):
            created = self.carts.create_cart(
                self.state.user_id,
                NewCart(items=list(command.items), currency=command.currency),
            )
            self.state = replace(self.state, cart_id=created.id)

    def _find(self, item_id: str) -> ShoppingItem | None:
        return next((i for i in self.state.items if i.id == item_id), None)

    def _drop(self, item_id: str) -> None:
        self.state = replace(self.state, items=tuple(i for i in self.state.items if i.id != item_id))

    def _restore(self, original: ShoppingItem) -> None:
        self.state = replace(
            self.state,
            items=tuple(original if i.id == original.id else i for i in self.state.items),
        )
