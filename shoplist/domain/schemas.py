# shoplist/domain/schemas.py
import random
import string
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

CartStatus = Literal["active", "archived"]
Theme = Literal["light", "dark", "system"]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_id() -> str:
    """Millisecond timestamp followed by a random base-36 suffix."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{int(time.time() * 1000)}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShoppingItem(BaseModel):
    """Single position on a shopping list. Edits go through with_changes()."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    @property
    def total(self) -> Decimal:
        return self.price * self.quantity

    def with_changes(self, **changes) -> "ShoppingItem":
        data = self.model_dump()
        data.pop("total", None)
        data.update(changes)
        return ShoppingItem.model_validate(data)


class ShoppingCart(BaseModel):
    """Persisted cart as returned by the repository."""

    id: str
    name: str
    items: List[ShoppingItem] = Field(default_factory=list)
    currency: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user_id: str
    status: CartStatus = "active"

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # sqlite hands back naive values
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def total(self) -> Decimal:
        return sum((i.total for i in self.items), Decimal("0"))


class NewCart(BaseModel):
    """Schema for creating a cart. A blank name gets a generated one."""

    name: str = Field("", max_length=200)
    items: List[ShoppingItem] = Field(default_factory=list)
    currency: Optional[str] = Field(None, min_length=3, max_length=8)


class CartUpdate(BaseModel):
    """Partial cart update; only the fields that are set get written."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    items: Optional[List[ShoppingItem]] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=8)


class SweepIn(BaseModel):
    keep_cart_id: Optional[str] = None


class StartCartIn(BaseModel):
    currency: Optional[str] = Field(None, min_length=3, max_length=8)
    current_cart_id: Optional[str] = None


class CartsOverview(BaseModel):
    cart_count: int
    max_carts: int
    average_total: Decimal


class PlanIn(BaseModel):
    plan: int = Field(0, ge=0)


class PlanOut(BaseModel):
    plan: int


class LocationOut(BaseModel):
    country_code: Optional[str] = Field(None, alias="countryCode")
    currency: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class AppSettings(BaseModel):
    """Settings kept in local storage for guests."""

    currency: str = "USD"
    theme: Theme = "system"
