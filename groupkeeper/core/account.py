"""
Accounts are owned by another service; this one only reads them.
"""

from pydantic import BaseModel

from groupkeeper.core.uuid import UUID


class AccountData(BaseModel):
    account_id: UUID
    email: str
    name: str
