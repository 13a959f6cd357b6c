"""
Account ORM. Rows are written by the accounts service; this service only
reads them.
"""

from sqlmodel import Field, SQLModel

from groupkeeper.core.account import AccountData
from groupkeeper.core.uuid import UUID, uuid7


class Account(SQLModel, table=True):
    account_id: UUID = Field(primary_key=True, default_factory=uuid7)

    email: str = Field(unique=True)
    name: str

    def to_core(self) -> AccountData:
        return AccountData(account_id=self.account_id, email=self.email, name=self.name)
