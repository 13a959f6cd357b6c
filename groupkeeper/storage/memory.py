"""
In-memory storage backend, used for tests and development.

Transactions are serialized by a single lock; each one works on a private copy
of the state which replaces the shared state only when the transaction exits
without an exception.
"""

import asyncio
import copy
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from groupkeeper.core.account import AccountData
from groupkeeper.core.group import GroupData
from groupkeeper.core.invite import InviteData, InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID, uuid7

from .base import (
    AccountRepository,
    DuplicateKey,
    EntityNotFound,
    GroupRepository,
    InviteRepository,
    MemberRepository,
    Storage,
    UnitOfWork,
)


@dataclass
class MemoryState:
    accounts: dict[UUID, AccountData] = field(default_factory=dict)
    groups: dict[UUID, GroupData] = field(default_factory=dict)
    members: dict[UUID, MemberData] = field(default_factory=dict)
    invites: dict[UUID, InviteData] = field(default_factory=dict)


class MemoryAccountRepository(AccountRepository):
    def __init__(self, state: MemoryState):
        self.state = state

    async def get(self, account_id: UUID) -> AccountData:
        try:
            return self.state.accounts[account_id]
        except KeyError:
            raise EntityNotFound(f"Account {account_id} not found")


class MemoryGroupRepository(GroupRepository):
    def __init__(self, state: MemoryState):
        self.state = state

    async def create(
        self, name: str, description: str, created_at: datetime
    ) -> GroupData:
        group = GroupData(
            group_id=uuid7(), name=name, description=description, created_at=created_at
        )
        self.state.groups[group.group_id] = group
        return group

    async def get(self, group_id: UUID) -> GroupData:
        try:
            return self.state.groups[group_id]
        except KeyError:
            raise EntityNotFound(f"Group {group_id} not found")

    async def update(
        self, group_id: UUID, name: str | None, description: str | None
    ) -> GroupData:
        group = await self.get(group_id)
        changes = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        group = group.model_copy(update=changes)
        self.state.groups[group_id] = group
        return group

    async def delete(self, group_id: UUID) -> None:
        if self.state.groups.pop(group_id, None) is None:
            raise EntityNotFound(f"Group {group_id} not found")

    async def list(
        self, group_ids: list[UUID] | None, pagination: Pagination
    ) -> list[GroupData]:
        groups = sorted(
            (
                g
                for g in self.state.groups.values()
                if group_ids is None or g.group_id in group_ids
            ),
            key=lambda g: (g.created_at, g.group_id),
        )
        return pagination.apply(groups)


class MemoryMemberRepository(MemberRepository):
    def __init__(self, state: MemoryState):
        self.state = state

    def _find(self, group_id: UUID, account_id: UUID) -> MemberData | None:
        for member in self.state.members.values():
            if member.group_id == group_id and member.account_id == account_id:
                return member
        return None

    async def create(
        self, group_id: UUID, account_id: UUID, role: Role, created_at: datetime
    ) -> MemberData:
        if self._find(group_id, account_id) is not None:
            raise DuplicateKey(f"Account {account_id} is already in group {group_id}")

        member = MemberData(
            member_id=uuid7(),
            group_id=group_id,
            account_id=account_id,
            role=role,
            created_at=created_at,
        )
        self.state.members[member.member_id] = member
        return member

    async def get(self, group_id: UUID, account_id: UUID) -> MemberData:
        member = self._find(group_id, account_id)
        if member is None:
            raise EntityNotFound(f"Account {account_id} not in group {group_id}")
        return member

    async def update(self, group_id: UUID, account_id: UUID, role: Role) -> MemberData:
        member = (await self.get(group_id, account_id)).model_copy(
            update={"role": role}
        )
        self.state.members[member.member_id] = member
        return member

    async def delete(self, group_id: UUID, account_id: UUID) -> None:
        member = await self.get(group_id, account_id)
        del self.state.members[member.member_id]

    async def delete_many(self, group_id: UUID) -> int:
        doomed = [m.member_id for m in self.state.members.values() if m.group_id == group_id]
        for member_id in doomed:
            del self.state.members[member_id]
        return len(doomed)

    async def list(
        self,
        group_id: UUID | None = None,
        account_id: UUID | None = None,
        pagination: Pagination | None = None,
    ) -> list[MemberData]:
        members = sorted(
            (
                m
                for m in self.state.members.values()
                if (group_id is None or m.group_id == group_id)
                and (account_id is None or m.account_id == account_id)
            ),
            key=lambda m: m.creation_order,
        )
        return members if pagination is None else pagination.apply(members)


class MemoryInviteRepository(InviteRepository):
    def __init__(self, state: MemoryState):
        self.state = state

    async def create(
        self,
        group_id: UUID,
        sender_account_id: UUID,
        recipient_account_id: UUID,
        created_at: datetime,
    ) -> InviteData:
        duplicate = InviteFilter(
            group_id=group_id,
            sender_account_id=sender_account_id,
            recipient_account_id=recipient_account_id,
        )
        if any(duplicate.matches(i) for i in self.state.invites.values()):
            raise DuplicateKey("Invite already pending")

        invite = InviteData(
            invite_id=uuid7(),
            group_id=group_id,
            sender_account_id=sender_account_id,
            recipient_account_id=recipient_account_id,
            created_at=created_at,
        )
        self.state.invites[invite.invite_id] = invite
        return invite

    async def get(self, invite_id: UUID) -> InviteData:
        try:
            return self.state.invites[invite_id]
        except KeyError:
            raise EntityNotFound(f"Invite {invite_id} not found")

    async def delete(self, invite_id: UUID) -> None:
        if self.state.invites.pop(invite_id, None) is None:
            raise EntityNotFound(f"Invite {invite_id} not found")

    async def delete_many(self, filter: InviteFilter) -> int:
        doomed = [i.invite_id for i in self.state.invites.values() if filter.matches(i)]
        for invite_id in doomed:
            del self.state.invites[invite_id]
        return len(doomed)

    async def list(
        self, filter: InviteFilter, pagination: Pagination | None = None
    ) -> list[InviteData]:
        invites = sorted(
            (i for i in self.state.invites.values() if filter.matches(i)),
            key=lambda i: (i.created_at, i.invite_id),
        )
        return invites if pagination is None else pagination.apply(invites)


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, state: MemoryState):
        self.accounts = MemoryAccountRepository(state)
        self.groups = MemoryGroupRepository(state)
        self.members = MemoryMemberRepository(state)
        self.invites = MemoryInviteRepository(state)

    async def lock_group(self, group_id: UUID) -> None:
        # The whole store is already held exclusively by this transaction.
        return


class MemoryStorage(Storage):
    state: MemoryState

    def __init__(self, accounts: Iterable[AccountData] = ()):
        self.state = MemoryState(accounts={a.account_id: a for a in accounts})
        self._lock: asyncio.Lock | None = None

    @property
    def lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryUnitOfWork]:
        async with self.lock:
            staged = copy.deepcopy(self.state)
            yield MemoryUnitOfWork(staged)
            self.state = staged
