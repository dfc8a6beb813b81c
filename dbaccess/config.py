"""Connection settings loaded from the environment."""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 5432
DEFAULT_CHARSET = "UTF8"


@dataclass(frozen=True)
class DatabaseConfig:
    """Immutable settings for a single database session.

    ``dsn`` wins over the individual fields when set, matching how the
    DATABASE_URL variable is used everywhere else.
    """

    database: Optional[str] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    charset: str = DEFAULT_CHARSET
    dsn: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Build settings from DATABASE_URL or the DB_* variables."""
        dsn = os.environ.get("DATABASE_URL")
        database = os.environ.get("DB_NAME")
        if not dsn and not database:
            raise ValueError("DATABASE_URL or DB_NAME must be set")

        port = os.environ.get("DB_PORT", str(DEFAULT_PORT))
        try:
            port = int(port)
        except ValueError:
            raise ValueError(f"DB_PORT must be an integer, got {port!r}") from None

        return cls(
            database=database,
            host=os.environ.get("DB_HOST", DEFAULT_HOST),
            port=port,
            user=os.environ.get("DB_USER"),
            password=os.environ.get("DB_PASSWORD"),
            charset=os.environ.get("DB_CHARSET", DEFAULT_CHARSET),
            dsn=dsn or None,
        )

    def connect_args(self) -> tuple[tuple, dict]:
        """Positional and keyword arguments for psycopg2.connect()."""
        if self.dsn:
            return (self.dsn,), {}
        kwargs = {"host": self.host, "port": self.port, "dbname": self.database}
        if self.user:
            kwargs["user"] = self.user
        if self.password:
            kwargs["password"] = self.password
        return (), kwargs

    def describe(self) -> str:
        """Loggable target without credentials."""
        if self.dsn:
            return "DATABASE_URL"
        return f"{self.host}:{self.port}/{self.database}"
