"""Service configuration read from environment variables.

Development gets working fallbacks; with ``ENVIRONMENT=production`` any
fallback credential or well-known secret is refused.

- ``MARKETPLACE_DATABASE_URL`` (or ``DATABASE_URL``): SQLAlchemy URL
- ``REDIS_URL``: event stream server, empty disables events
- ``EVENT_STREAM``: Redis stream name
- ``APP_HOST`` / ``APP_PORT``: bind address
- ``SECRET_KEY``: JWT signing key, checked here and used by ``core.security``
- ``MARKETPLACE_CONCEAL_FORBIDDEN``: answer 404 instead of 403 for hidden containers
- ``MARKETPLACE_MAX_BULK_IMPORT``: largest accepted bulk import
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

_DEV_DATABASE_URL = "postgresql://marketplace:marketplace-dev@db_marketplace:5432/marketplacedb"
_DEV_REDIS_URL = "redis://redis:6379/0"

DEFAULT_EVENT_STREAM = "marketplace-events"
DEFAULT_MAX_BULK_IMPORT = 50

_WEAK_PASSWORDS = frozenset({"password", "123456", "admin", "root", "test", "marketplace-dev"})
_WEAK_SECRET_KEYS = frozenset({"secret", "changeme", "default", "dev-secret-change-me"})
_MIN_SECRET_KEY_LENGTH = 32


@dataclass(frozen=True)
class DatabaseConfig:
    url: str


@dataclass(frozen=True)
class RedisConfig:
    url: str
    stream: str


@dataclass(frozen=True)
class AccessConfig:
    conceal_forbidden: bool = False
    max_bulk_import: int = DEFAULT_MAX_BULK_IMPORT


@dataclass(frozen=True)
class ServiceConfig:
    name: str
    host: str
    port: int
    database: DatabaseConfig
    redis: RedisConfig
    access: AccessConfig


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "development")).lower() in ("production", "prod")


def _refuse_in_production(message: str) -> None:
    """Raise in production, warn everywhere else."""
    if is_production():
        raise ValueError(message)
    warnings.warn(message, UserWarning, stacklevel=3)


def _lookup_database_url(service_name: str) -> str:
    service_env = f"{service_name.upper()}_DATABASE_URL"
    db_url = os.getenv(service_env) or os.getenv("DATABASE_URL")
    if db_url:
        return db_url
    _refuse_in_production(f"Using the default database URL; set {service_env} or DATABASE_URL.")
    return _DEV_DATABASE_URL


def _password_from_url(db_url: str) -> Optional[str]:
    if "://" not in db_url:
        return None
    return urlsplit(db_url).password


def _lookup_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _lookup_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.")
    if value < 1:
        raise ValueError(f"{name} must be a positive integer.")
    return value


def _check_secret_key(secret_key: Optional[str]) -> None:
    if not secret_key:
        return
    if secret_key in _WEAK_SECRET_KEYS:
        _refuse_in_production("SECRET_KEY is a well-known default; generate one with: openssl rand -hex 64")
    elif len(secret_key) < _MIN_SECRET_KEY_LENGTH:
        warnings.warn(
            f"SECRET_KEY has {len(secret_key)} characters; use at least {_MIN_SECRET_KEY_LENGTH}.",
            UserWarning,
            stacklevel=2,
        )


def load_service_config(service_name: str = "marketplace") -> ServiceConfig:
    """Raises ValueError on malformed numbers and, in production, on insecure values."""
    name = service_name.lower()

    db_url = _lookup_database_url(name)
    password = _password_from_url(db_url)
    if password is not None and password.lower() in _WEAK_PASSWORDS:
        _refuse_in_production(f"Insecure password detected in DATABASE_URL for {name}.")

    _check_secret_key(os.getenv("SECRET_KEY"))

    return ServiceConfig(
        name=name,
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=_lookup_positive_int("APP_PORT", 8000),
        database=DatabaseConfig(url=db_url),
        redis=RedisConfig(
            url=os.getenv("REDIS_URL", _DEV_REDIS_URL),
            stream=os.getenv("EVENT_STREAM", DEFAULT_EVENT_STREAM),
        ),
        access=AccessConfig(
            conceal_forbidden=_lookup_bool("MARKETPLACE_CONCEAL_FORBIDDEN"),
            max_bulk_import=_lookup_positive_int("MARKETPLACE_MAX_BULK_IMPORT", DEFAULT_MAX_BULK_IMPORT),
        ),
    )
