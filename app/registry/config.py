import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    admin_username: str
    admin_password: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///stakeholders.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        admin_username=_getenv("ADMIN_USERNAME", "admin"),
        admin_password=_getenv("ADMIN_PASSWORD", "change-me"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "ADMIN_USERNAME": s.admin_username,
        "ADMIN_PASSWORD": s.admin_password,
        # session cookie: 24h, refreshed on activity
        "PERMANENT_SESSION_LIFETIME": timedelta(hours=24),
        "SESSION_REFRESH_EACH_REQUEST": True,
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # JSON imports can carry a whole province (5MB)
        "MAX_CONTENT_LENGTH": 5 * 1024 * 1024,
    }
