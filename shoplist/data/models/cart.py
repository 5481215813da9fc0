#shoplist/data/models/cart.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, JSON, Index

from shoplist.data.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)

    name = Column(String(200), nullable=False, default="")
    items = Column(JSON, nullable=False, default=list)
    currency = Column(String(8), nullable=True)

    status = Column(String(16), nullable=False, default="active")  # active, archived
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("ix_carts_user_status_updated", "user_id", "status", "updated_at"),)
