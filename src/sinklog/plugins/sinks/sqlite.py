from __future__ import annotations

import logging
from typing import Any

import aiosqlite
from pydantic import BaseModel, ConfigDict, Field

from ...core.errors import StorageStartupError, StorageWriteError
from ...core.events import LogRecord

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS logs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    prefix      VARCHAR(256) NULL,
    level       CHAR(256)    NOT NULL,
    description VARCHAR(256) NOT NULL,
    is_exported INT          NULL,
    created_at  DATETIME     NULL DEFAULT CURRENT_TIMESTAMP
)
"""

INSERT_SQL = (
    "INSERT INTO logs (prefix, level, description, created_at) VALUES (?, ?, ?, ?)"
)

# Fails when the table is missing or lacks one of the insert columns
_PREPARE_CHECK_SQL = "SELECT prefix, level, description, created_at FROM logs LIMIT 0"


class SqliteStorageConfig(BaseModel):
    """Configuration for the SQLite storage gateway."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    path: str = Field(default="sinklog.db", description="SQLite database file")
    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds to wait on a locked database before failing",
    )
    create_table: bool = Field(
        default=True,
        description=(
            "Create the logs table at startup when missing. Set to False when the "
            "schema is provisioned elsewhere"
        ),
    )


def _parse_config(
    config: SqliteStorageConfig | dict[str, Any] | None, **kwargs: Any
) -> SqliteStorageConfig:
    if isinstance(config, SqliteStorageConfig):
        return config.model_copy(update=kwargs) if kwargs else config
    data = dict(config or {})
    data.update(kwargs)
    return SqliteStorageConfig(**data)


class SqliteStorage:
    """SQLite gateway holding one connection for the lifetime of a runtime."""

    name = "sqlite"

    _logger = logging.getLogger("sinklog.sinks.sqlite")

    def __init__(
        self, config: SqliteStorageConfig | dict[str, Any] | None = None, **kwargs: Any
    ) -> None:
        self._config = _parse_config(config, **kwargs)
        # aiosqlite.Connection once started
        self._conn: Any = None

    @property
    def config(self) -> SqliteStorageConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def start(self) -> None:
        if self._conn is not None:
            return
        path = self._config.path
        try:
            conn = await aiosqlite.connect(path, timeout=self._config.timeout_seconds)
        except Exception as exc:
            raise StorageStartupError(
                f"can't open database: {exc}", location=path
            ) from exc

        try:
            await conn.execute("SELECT 1")
        except Exception as exc:
            await conn.close()
            raise StorageStartupError(f"ping error: {exc}", location=path) from exc

        if self._config.create_table:
            try:
                await conn.execute(CREATE_TABLE_SQL)
                await conn.commit()
            except Exception as exc:
                await conn.close()
                raise StorageStartupError(
                    f"can not create logs table: {exc}", location=path
                ) from exc

        try:
            await conn.execute(_PREPARE_CHECK_SQL)
        except Exception as exc:
            await conn.close()
            raise StorageStartupError(
                f"can not prepare insert statement: {exc}", location=path
            ) from exc

        self._conn = conn
        self._logger.debug("opened %s", path)

    async def insert(self, record: LogRecord) -> None:
        if self._conn is None:
            raise StorageWriteError("storage is not open", sink_name=self.name)
        try:
            await self._conn.execute(INSERT_SQL, record.to_row())
        except aiosqlite.Error as exc:
            raise StorageWriteError(
                f"log insert failed: {exc}", sink_name=self.name, cause=exc
            ) from exc

    async def commit(self) -> None:
        if self._conn is None:
            return
        await self._conn.commit()

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        await conn.close()
        self._logger.debug("closed %s", self._config.path)


__all__ = ["CREATE_TABLE_SQL", "INSERT_SQL", "SqliteStorage", "SqliteStorageConfig"]
