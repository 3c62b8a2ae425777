from contextlib import contextmanager
from typing import Generator, Iterator
from sqlalchemy.orm import Session
from linwheel.db.base import SessionLocal, engine, Base
from linwheel.db import models  # noqa: F401  (registers tables on Base)
from linwheel.db.migrate import migrate

def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    migrate(engine)

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work that runs outside a request (background tasks, cron jobs)."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
