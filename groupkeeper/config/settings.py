"""
Main settings object.
"""

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import URL

from groupkeeper.core.uuid import UUID

from .managers import AsyncSessionManager, SyncSessionManager


class Settings(BaseSettings):
    database_type: Literal["sqlite", "postgres"] = "sqlite"
    database_user: str | None = None
    database_password: str | None = None
    database_port: int | None = None
    database_host: str | None = None
    database_db: str = "groupkeeper.db"

    database_echo: bool = False

    # 'memory' keeps everything in the process and is lost on restart; it is
    # meant for development and tests.
    storage_backend: Literal["sql", "memory"] = "sql"
    create_tables: bool = False
    # Account ids the memory backend starts out knowing; accounts are
    # otherwise written by the accounts service.
    memory_accounts: list[UUID] = []

    key_pair_type: str = "Ed25519"
    key_password: SecretStr = SecretStr("CHANGEME")
    # Either the PEM content itself or a file holding it.
    private_key: SecretStr | None = None
    private_key_filename: Path | None = None

    token_expiry: timedelta = timedelta(hours=24)

    # Seconds allowed for a single unit of work, including waiting on the
    # group lock. None disables the deadline.
    request_timeout: float | None = 10.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="GROUPKEEPER_", env_file=".env")

    def signing_key(self) -> bytes:
        """
        The encrypted PEM private key used to sign identity tokens.

        Raises
        ------
        ValueError
            If neither `private_key` nor `private_key_filename` is configured.
        """
        if self.private_key is not None:
            return self.private_key.get_secret_value().encode("utf-8")

        if self.private_key_filename is not None:
            with open(self.private_key_filename, "rb") as handle:
                return handle.read()

        raise ValueError(
            "No signing key configured; set GROUPKEEPER_PRIVATE_KEY or "
            "GROUPKEEPER_PRIVATE_KEY_FILENAME"
        )

    @property
    def sync_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite"
            case "postgres":
                return "postgresql+psycopg"
            case _:
                raise ValueError

    @property
    def async_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite+aiosqlite"
            case "postgres":
                return "postgresql+asyncpg"
            case _:
                raise ValueError

    @property
    def sync_uri(self) -> URL:
        return URL.create(
            drivername=self.sync_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def sync_manager(self) -> SyncSessionManager:
        return SyncSessionManager(connection_url=self.sync_uri, echo=self.database_echo)

    @property
    def async_uri(self) -> URL:
        return URL.create(
            drivername=self.async_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def async_manager(self) -> AsyncSessionManager:
        return AsyncSessionManager(
            connection_url=self.async_uri,
            echo=self.database_echo,
            lock_timeout=self.request_timeout,
        )
