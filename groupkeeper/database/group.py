"""
Group ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from groupkeeper.core.group import GroupData
from groupkeeper.core.uuid import UUID, uuid7

from .timestamps import ensure_utc


class Group(SQLModel, table=True):
    group_id: UUID = Field(primary_key=True, default_factory=uuid7)

    name: str
    description: str = Field(default="")
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> GroupData:
        """
        Convert this Group ORM object to a GroupData core object.
        """
        return GroupData(
            group_id=self.group_id,
            name=self.name,
            description=self.description,
            created_at=ensure_utc(self.created_at),
        )
