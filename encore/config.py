from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from encore.services.errors import ConfigurationError


_TRUTHY = {"1", "true", "yes", "on"}


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class BackendConfig:
    api_url: str
    anon_key: str

    def __post_init__(self):
        if not self.api_url:
            raise ConfigurationError("Backend API URL is empty")
        if not self.anon_key:
            raise ConfigurationError("Backend anonymous key is empty")
        object.__setattr__(self, "api_url", self.api_url.rstrip("/"))


@dataclass(frozen=True)
class EncoreSettings:
    backend: BackendConfig
    reject_overlapping_bookings: bool = False


def load_settings(dotenv_path: str | None = None) -> EncoreSettings:
    load_dotenv(dotenv_path)
    backend = BackendConfig(
        api_url=_require_env("ENCORE_API_URL"),
        anon_key=_require_env("ENCORE_ANON_KEY"),
    )
    return EncoreSettings(
        backend=backend,
        reject_overlapping_bookings=_env_flag("ENCORE_REJECT_OVERLAPPING_BOOKINGS"),
    )


@dataclass(frozen=True)
class BackendEmulatorSettings:
    db_url: str
    anon_key: str
    require_confirmation: bool = False
    seed_sample_data: bool = True


def load_emulator_settings() -> BackendEmulatorSettings:
    load_dotenv()
    return BackendEmulatorSettings(
        db_url=(os.environ.get("ENCORE_BACKEND_DB_URL") or "sqlite+pysqlite:///:memory:").strip(),
        anon_key=(os.environ.get("ENCORE_BACKEND_ANON_KEY") or "encore-local-anon-key").strip(),
        require_confirmation=_env_flag("ENCORE_BACKEND_REQUIRE_CONFIRMATION"),
        seed_sample_data=_env_flag("ENCORE_BACKEND_SEED", default=True),
    )
