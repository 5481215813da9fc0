from sqlalchemy import Column, Integer, String
from shoplist.data.database import Base

class UserModel(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True)
    # NULL until the quota counter is first initialized
    cart_count = Column(Integer, nullable=True)
