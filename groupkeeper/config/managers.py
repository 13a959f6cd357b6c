"""
Database session management.
"""

from sqlalchemy import Engine, event, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine

from groupkeeper.database.meta import ALL_TABLES

# SQLite needs a finite busy timeout; used when requests have no deadline.
SQLITE_UNBOUNDED_WAIT = 3600.0


def serialize_sqlite_writers(engine: Engine) -> None:
    """
    pysqlite (and aiosqlite on top of it) defer BEGIN until the first write,
    which lets two transactions read the same state and then race to write.
    Take the database write lock when the transaction begins instead, so that
    SQLite transactions are serialized the way a row lock would serialize them
    on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SyncSessionManager:
    """
    A manager for synchronous sessions, used by setup scripts. Expected usage:

    manager = SyncSessionManager(conn_url)
    manager.create_all()

    with manager.session() as conn:
        conn.add(Account(...))
        conn.commit()
    """

    connection_url: str
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: str, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)
        if self.engine.dialect.name == "sqlite":
            serialize_sqlite_writers(self.engine)
        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn, tables=[t.__table__ for t in ALL_TABLES])


class AsyncSessionManager:
    """
    A manager for asynchronous sessions. Expected usage:

    manager = AsyncSessionManager(conn_url)

    async with manager.session() as conn:
        async with conn.begin():
            group = await conn.get(Group, group_id)
    """

    connection_url: str
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(
        self, connection_url: str, echo: bool = False, lock_timeout: float | None = None
    ):
        self.connection_url = connection_url

        connect_args = {}
        if make_url(connection_url).get_backend_name() == "sqlite":
            # Seconds a writer queues on the database lock; outlasts the unit
            # of work deadline.
            connect_args["timeout"] = (
                SQLITE_UNBOUNDED_WAIT if lock_timeout is None else lock_timeout + 1.0
            )

        self.engine = create_async_engine(
            self.connection_url, echo=echo, connect_args=connect_args
        )
        if self.engine.dialect.name == "sqlite":
            serialize_sqlite_writers(self.engine.sync_engine)
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(
                SQLModel.metadata.create_all, tables=[t.__table__ for t in ALL_TABLES]
            )

    async def dispose(self):
        await self.engine.dispose()
