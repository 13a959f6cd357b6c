"""
Fixtures for the service layer tests.
"""

import pytest

from groupkeeper.service.transactions import unit_of_work


@pytest.fixture
def call(storage, logger):
    """
    Run one service operation in its own unit of work, the way a request
    would.
    """

    async def run(operation, **kwargs):
        async with unit_of_work(storage) as conn:
            return await operation(conn=conn, log=logger, **kwargs)

    return run


@pytest.fixture
def ids(accounts):
    return {name: account.account_id for name, account in accounts.items()}
