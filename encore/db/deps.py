from collections.abc import Generator

from .session import SessionLocalBackend


def get_backend_db() -> Generator:
    db = SessionLocalBackend()
    try:
        yield db
    finally:
        db.close()
