from sqlalchemy.orm import Session
from shoplist.data.models.user import UserModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str, for_update: bool = False) -> UserModel | None:
        if for_update:
            return self.db.get(UserModel, user_id, with_for_update=True, populate_existing=True)
        return self.db.get(UserModel, user_id)

    def get_or_add_user(self, user_id: str) -> UserModel:
        """Returns the user row, adding a pending one to the session when absent (no commit)."""
        user = self.get_user(user_id, for_update=True)
        if user is None:
            user = UserModel(id=user_id, cart_count=None)
            self.db.add(user)
        return user
