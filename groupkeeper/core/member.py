"""
Core member data models.
"""

from datetime import datetime

from pydantic import BaseModel

from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID


class MemberData(BaseModel):
    member_id: UUID
    group_id: UUID
    account_id: UUID
    role: Role
    created_at: datetime

    @property
    def creation_order(self) -> tuple[datetime, UUID]:
        """
        Sort key for members; ties on the timestamp are broken by the
        (time-ordered) member id.
        """
        return (self.created_at, self.member_id)
