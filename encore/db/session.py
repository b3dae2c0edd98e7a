from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from encore.config import load_emulator_settings


EMULATOR_SETTINGS = load_emulator_settings()


def _build_engine(db_url: str):
    if db_url.startswith("sqlite") and ":memory:" in db_url:
        # in-memory sqlite lives on a single shared connection
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    return create_engine(db_url, pool_pre_ping=True, future=True)


engine_backend = _build_engine(EMULATOR_SETTINGS.db_url)

SessionLocalBackend = sessionmaker(
    bind=engine_backend,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)
