from dataclasses import dataclass, field
import os
import secrets


def _as_bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _auth_secret() -> str:
    # Without AUTH_SECRET tokens are only valid for this process.
    return os.getenv("AUTH_SECRET", "").strip() or secrets.token_hex(32)


@dataclass(frozen=True)
class Settings:
    store_backend: str = os.getenv("STORE_BACKEND", "postgres").lower()
    db_host: str = os.getenv("DB_HOST", "")
    db_port: int = int(os.getenv("DB_PORT", "5432"))
    db_name: str = os.getenv("DB_NAME", "")
    db_user: str = os.getenv("DB_USER", "")
    db_password: str = os.getenv("DB_PASSWORD", "")
    auto_migrate: bool = _as_bool(os.getenv("AUTO_MIGRATE", "false"))
    cors_allow_origins: list[str] = field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ALLOW_ORIGINS", "*"))
    )
    cors_allow_methods: list[str] = field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ALLOW_METHODS", "*"))
    )
    cors_allow_headers: list[str] = field(
        default_factory=lambda: _split_csv(os.getenv("CORS_ALLOW_HEADERS", "*"))
    )
    expose_errors: bool = _as_bool(os.getenv("EXPOSE_ERRORS", "true"))
    auth_secret: str = field(default_factory=_auth_secret)
    session_ttl_minutes: int = int(os.getenv("SESSION_TTL_MINUTES", "720"))
    registration_success_url: str = os.getenv("REGISTRATION_SUCCESS_URL", "/success")


settings = Settings()


def auth_secret_configured() -> bool:
    return bool(os.getenv("AUTH_SECRET", "").strip())


def db_configured() -> bool:
    return all([settings.db_host, settings.db_name, settings.db_user, settings.db_password])


def store_configured() -> bool:
    if settings.store_backend == "memory":
        return True
    return db_configured()
