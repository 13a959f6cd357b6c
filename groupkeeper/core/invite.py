"""
Core invite data models. An invite that exists is pending; accepting or
denying it deletes it.
"""

from datetime import datetime

from pydantic import BaseModel

from groupkeeper.core.uuid import UUID


class InviteData(BaseModel):
    invite_id: UUID
    group_id: UUID
    sender_account_id: UUID
    recipient_account_id: UUID
    created_at: datetime


class InviteFilter(BaseModel):
    """
    Any combination of fields may be set; unset fields do not filter.
    """

    sender_account_id: UUID | None = None
    recipient_account_id: UUID | None = None
    group_id: UUID | None = None

    def matches(self, invite: InviteData) -> bool:
        return all(
            expected is None or getattr(invite, field) == expected
            for field, expected in self
        )
