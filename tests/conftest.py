"""
Shared fixtures. Storage-backed tests run once against the in-memory backend
and once against a SQLite file.
"""

import pytest
import pytest_asyncio
import structlog

from groupkeeper.config.settings import Settings
from groupkeeper.core.account import AccountData
from groupkeeper.core.cryptography import generate_key_pair
from groupkeeper.core.uuid import uuid7
from groupkeeper.database.account import Account
from groupkeeper.service.tokens import TokenService
from groupkeeper.storage.memory import MemoryStorage
from groupkeeper.storage.sql import SqlStorage

KEY_PASSWORD = "test-password"


@pytest.fixture(scope="session")
def private_key() -> bytes:
    _, private = generate_key_pair(key_pair_type="Ed25519", key_password=KEY_PASSWORD)
    return private


@pytest.fixture(scope="session")
def token_service(private_key) -> TokenService:
    return TokenService(private_key=private_key, key_password=KEY_PASSWORD)


@pytest.fixture(scope="session")
def logger():
    return structlog.get_logger()


@pytest.fixture
def accounts() -> dict[str, AccountData]:
    return {
        name: AccountData(
            account_id=uuid7(), email=f"{name}@example.org", name=name.title()
        )
        for name in ("alice", "bob", "carol", "dave")
    }


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def storage(request, tmp_path, accounts):
    if request.param == "memory":
        yield MemoryStorage(accounts=accounts.values())
        return

    settings = Settings(
        database_type="sqlite", database_db=str(tmp_path / "groupkeeper.db")
    )
    manager = settings.async_manager()
    await manager.create_all()

    async with manager.session() as conn:
        async with conn.begin():
            conn.add_all([Account(**a.model_dump()) for a in accounts.values()])

    yield SqlStorage(manager)

    await manager.dispose()
