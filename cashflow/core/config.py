"""Environment driven configuration for the cash-flow planner."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_FALSE_VALUES = {"0", "false", "False", "no"}


@dataclass(slots=True)
class DatabaseSettings:
    """Connection details for the transactional database."""

    driver: str
    host: str
    port: int
    user: str
    password: str
    name: str
    url: str | None = None

    @property
    def sqlalchemy_url(self) -> str:
        """Build a SQLAlchemy compatible URL unless one was given verbatim."""

        if self.url:
            return self.url
        if self.password:
            credentials = f"{self.user}:{self.password}"
        else:
            credentials = self.user
        return f"{self.driver}://{credentials}@{self.host}:{self.port}/{self.name}"

    @property
    def masked_url(self) -> str:
        if self.url:
            return f"{self.url.split('://', 1)[0]}://***"
        pwd = "***" if self.password else ""
        return f"{self.driver}://{self.user}:{pwd}@{self.host}:{self.port}/{self.name}"


@dataclass(slots=True)
class AuthSettings:
    """JWT and cookie settings."""

    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    cookie_name: str = "access_token"
    min_password_length: int = 8


@dataclass(slots=True)
class ImportSettings:
    """Knobs for CSV ingestion."""

    batch_size: int = 1000
    default_base_currency: str = "PLN"
    default_timezone: str = "Europe/Warsaw"
    csv_delimiter: str = ";"
    error_preview_limit: int = 10
    status_error_limit: int = 100


@dataclass(slots=True)
class ExportSettings:
    """Knobs for the Excel export."""

    page_size: int = 1000


@dataclass(slots=True)
class LoggingSettings:
    level: str = "INFO"
    log_dir: str | None = "logs"


@dataclass(slots=True)
class Settings:
    """Top-level application configuration container."""

    database: DatabaseSettings
    auth: AuthSettings
    imports: ImportSettings
    export: ExportSettings
    logging: LoggingSettings
    sqlalchemy_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration values from environment variables."""

        def _get_env(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _get_int(name: str, default: int) -> int:
            raw = _get_env(name, str(default))
            try:
                value = int(raw)
            except ValueError as exc:
                raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
            return value

        db = DatabaseSettings(
            driver=_get_env("DB_DRIVER", "postgresql+psycopg"),
            host=_get_env("DB_HOST", "127.0.0.1"),
            port=int(_get_env("DB_PORT", "5432")),
            user=_get_env("DB_USER", "cashflow"),
            password=_get_env("DB_PASSWORD", "cashflow"),
            name=_get_env("DB_NAME", "cashflow"),
            url=os.getenv("DATABASE_URL") or None,
        )
        auth = AuthSettings(
            secret_key=_get_env("JWT_SECRET_KEY", "change-me"),
            algorithm=_get_env("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_get_int("JWT_EXPIRE_MINUTES", 120),
            cookie_name=_get_env("AUTH_COOKIE", "access_token"),
        )
        imports = ImportSettings(
            batch_size=_get_int("IMPORT_BATCH_SIZE", 1000),
            default_base_currency=_get_env("DEFAULT_BASE_CURRENCY", "PLN").upper(),
            default_timezone=_get_env("DEFAULT_TIMEZONE", "Europe/Warsaw"),
            csv_delimiter=_get_env("CSV_DELIMITER", ";"),
        )
        export = ExportSettings(page_size=_get_int("EXPORT_PAGE_SIZE", 1000))
        log_dir = _get_env("LOG_DIR", "logs")
        logging_settings = LoggingSettings(
            level=_get_env("LOG_LEVEL", "INFO"),
            log_dir=log_dir or None,
        )
        return cls(
            database=db,
            auth=auth,
            imports=imports,
            export=export,
            logging=logging_settings,
            sqlalchemy_echo=_get_env("SQLALCHEMY_ECHO", "0") not in _FALSE_VALUES,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""

    settings = Settings.from_env()

    # Import locally to avoid circular dependencies during module import time.
    from .logger import get_logger

    logger = get_logger(__name__)
    logger.debug(
        "Settings initialised",
        extra={
            "sqlalchemy_echo": settings.sqlalchemy_echo,
            "database": settings.database.masked_url,
            "import_batch_size": settings.imports.batch_size,
            "export_page_size": settings.export.page_size,
            "token_ttl": settings.auth.access_token_expire_minutes,
        },
    )
    return settings
