"""
Member ORM. One row per (group, account) pair.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from groupkeeper.core.member import MemberData
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID, uuid7

from .timestamps import ensure_utc


class Member(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("group_id", "account_id"),)

    member_id: UUID = Field(primary_key=True, default_factory=uuid7)

    group_id: UUID = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    account_id: UUID = Field(index=True)
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> MemberData:
        return MemberData(
            member_id=self.member_id,
            group_id=self.group_id,
            account_id=self.account_id,
            role=self.role,
            created_at=ensure_utc(self.created_at),
        )
