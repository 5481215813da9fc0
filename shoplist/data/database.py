# shoplist/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shoplist.utils.settings import DATABASE_URL


def _connect_args(url: str) -> dict:
    # sqlite connections are shared with the archive sweep threads
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # registers every model on Base.metadata
    import shoplist.data.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
