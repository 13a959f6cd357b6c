"""
Invite ORM. Rows only exist while the invite is pending.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from groupkeeper.core.invite import InviteData
from groupkeeper.core.uuid import UUID, uuid7

from .timestamps import ensure_utc


class Invite(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("sender_account_id", "recipient_account_id", "group_id"),
    )

    invite_id: UUID = Field(primary_key=True, default_factory=uuid7)

    group_id: UUID = Field(foreign_key="group.group_id", ondelete="CASCADE", index=True)
    sender_account_id: UUID = Field(index=True)
    recipient_account_id: UUID = Field(index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))

    def to_core(self) -> InviteData:
        return InviteData(
            invite_id=self.invite_id,
            group_id=self.group_id,
            sender_account_id=self.sender_account_id,
            recipient_account_id=self.recipient_account_id,
            created_at=ensure_utc(self.created_at),
        )
