"""
Dependencies used by the API.
"""

import logging
from functools import lru_cache
from typing import Annotated

import structlog
from fastapi import Depends, Query, Request
from pydantic import ValidationError
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from groupkeeper.config.settings import Settings
from groupkeeper.core.account import AccountData
from groupkeeper.core.errors import InvalidArgument
from groupkeeper.core.pagination import DEFAULT_PAGE_SIZE, Pagination
from groupkeeper.core.uuid import UUID
from groupkeeper.service import guard
from groupkeeper.service.tokens import TokenService
from groupkeeper.service.transactions import unit_of_work
from groupkeeper.storage.base import Storage, UnitOfWork
from groupkeeper.storage.memory import MemoryStorage
from groupkeeper.storage.sql import SqlStorage


@lru_cache
def SETTINGS():
    return Settings()


def configure_logging(settings: Settings) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        )
    )


@lru_cache
def get_storage() -> Storage:
    settings = SETTINGS()

    match settings.storage_backend:
        case "memory":
            return MemoryStorage(
                accounts=[
                    AccountData(account_id=account_id, email="", name=str(account_id))
                    for account_id in settings.memory_accounts
                ]
            )
        case "sql":
            return SqlStorage(settings.async_manager())


@lru_cache
def get_token_service() -> TokenService:
    return TokenService.from_settings(SETTINGS())


def logger():
    return get_logger()


SettingsDependency = Annotated[Settings, Depends(SETTINGS)]
StorageDependency = Annotated[Storage, Depends(get_storage)]
TokenServiceDependency = Annotated[TokenService, Depends(get_token_service)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]


async def get_unit_of_work(storage: StorageDependency, settings: SettingsDependency):
    async with unit_of_work(storage, timeout=settings.request_timeout) as conn:
        yield conn


async def authenticated_account(
    request: Request, tokens: TokenServiceDependency, log: LoggerDependency
) -> UUID:
    return await guard.authenticate(request.headers, tokens=tokens, log=log)


def pagination(
    offset: Annotated[int, Query()] = 0,
    limit: Annotated[int, Query()] = DEFAULT_PAGE_SIZE,
) -> Pagination:
    try:
        return Pagination(offset=offset, limit=limit)
    except ValidationError as e:
        raise InvalidArgument(
            "; ".join(f"{err['loc'][0]}: {err['msg']}" for err in e.errors())
        )


# Function scope: the unit of work commits before the response is sent.
UnitOfWorkDependency = Annotated[
    UnitOfWork, Depends(get_unit_of_work, scope="function")
]
AccountDependency = Annotated[UUID, Depends(authenticated_account)]
PaginationDependency = Annotated[Pagination, Depends(pagination)]
