"""
FastAPI app
"""

from importlib.metadata import version

from fastapi import FastAPI

from groupkeeper.storage.sql import SqlStorage

from .dependencies import SETTINGS, configure_logging, get_storage, logger
from .errors import add_exception_handlers
from .groups import group_app
from .invites import invite_app


async def lifespan(app: FastAPI):
    settings = SETTINGS()
    configure_logging(settings)

    storage = get_storage()
    log = logger().bind(storage_backend=settings.storage_backend)

    if isinstance(storage, SqlStorage) and settings.create_tables:
        await storage.manager.create_all()
        await log.ainfo("api.startup.tables_created")

    await log.ainfo("api.startup")

    yield

    if isinstance(storage, SqlStorage):
        await storage.manager.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="groupkeeper API",
    summary="Groups, their members and roles, and invites to join them.",
    version=version("groupkeeper"),
)

app = add_exception_handlers(app)

app.include_router(group_app, prefix="/groups")
app.include_router(invite_app, prefix="/invites")
