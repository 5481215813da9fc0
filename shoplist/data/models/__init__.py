#import all models so SQLAlchemy registers them on Base.metadata

from shoplist.data.models.user import UserModel
from shoplist.data.models.cart import CartModel

__all__ = ["UserModel", "CartModel"]
