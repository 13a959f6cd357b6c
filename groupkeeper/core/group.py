"""
Core group data models.
"""

from datetime import datetime

from pydantic import BaseModel

from groupkeeper.core.uuid import UUID


class GroupData(BaseModel):
    group_id: UUID
    name: str
    description: str
    created_at: datetime
