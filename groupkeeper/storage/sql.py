"""
SQL storage backend, on top of SQLModel and SQLAlchemy async sessions.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from groupkeeper.config.managers import AsyncSessionManager
from groupkeeper.core.account import AccountData
from groupkeeper.core.group import GroupData
from groupkeeper.core.invite import InviteData, InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID
from groupkeeper.database.account import Account
from groupkeeper.database.group import Group
from groupkeeper.database.invite import Invite
from groupkeeper.database.member import Member

from .base import (
    AccountRepository,
    DuplicateKey,
    EntityNotFound,
    GroupRepository,
    InviteRepository,
    MemberRepository,
    Storage,
    StorageError,
    UnitOfWork,
)


def invite_conditions(filter: InviteFilter) -> list:
    conditions = []
    if filter.sender_account_id is not None:
        conditions.append(Invite.sender_account_id == filter.sender_account_id)
    if filter.recipient_account_id is not None:
        conditions.append(Invite.recipient_account_id == filter.recipient_account_id)
    if filter.group_id is not None:
        conditions.append(Invite.group_id == filter.group_id)
    return conditions


class SqlAccountRepository(AccountRepository):
    def __init__(self, conn: AsyncSession):
        self.conn = conn

    async def get(self, account_id: UUID) -> AccountData:
        account = await self.conn.get(Account, account_id, populate_existing=True)
        if account is None:
            raise EntityNotFound(f"Account {account_id} not found")
        return account.to_core()


class SqlGroupRepository(GroupRepository):
    def __init__(self, conn: AsyncSession):
        self.conn = conn

    async def _read(self, group_id: UUID) -> Group:
        group = await self.conn.get(Group, group_id, populate_existing=True)
        if group is None:
            raise EntityNotFound(f"Group {group_id} not found")
        return group

    async def create(
        self, name: str, description: str, created_at: datetime
    ) -> GroupData:
        group = Group(name=name, description=description, created_at=created_at)
        self.conn.add(group)
        await self.conn.flush()
        return group.to_core()

    async def get(self, group_id: UUID) -> GroupData:
        return (await self._read(group_id)).to_core()

    async def update(
        self, group_id: UUID, name: str | None, description: str | None
    ) -> GroupData:
        group = await self._read(group_id)
        if name is not None:
            group.name = name
        if description is not None:
            group.description = description
        self.conn.add(group)
        await self.conn.flush()
        return group.to_core()

    async def delete(self, group_id: UUID) -> None:
        group = await self._read(group_id)
        await self.conn.delete(group)
        await self.conn.flush()

    async def list(
        self, group_ids: list[UUID] | None, pagination: Pagination
    ) -> list[GroupData]:
        query = select(Group).order_by(Group.created_at, Group.group_id)
        if group_ids is not None:
            query = query.where(Group.group_id.in_(group_ids))
        query = query.offset(pagination.offset).limit(pagination.limit)

        groups = (await self.conn.execute(query)).scalars().all()
        return [g.to_core() for g in groups]


class SqlMemberRepository(MemberRepository):
    def __init__(self, conn: AsyncSession):
        self.conn = conn

    async def _read(self, group_id: UUID, account_id: UUID) -> Member:
        query = (
            select(Member)
            .where(Member.group_id == group_id, Member.account_id == account_id)
            .execution_options(populate_existing=True)
        )
        member = (await self.conn.execute(query)).scalar_one_or_none()
        if member is None:
            raise EntityNotFound(f"Account {account_id} not in group {group_id}")
        return member

    async def create(
        self, group_id: UUID, account_id: UUID, role: Role, created_at: datetime
    ) -> MemberData:
        member = Member(
            group_id=group_id, account_id=account_id, role=role, created_at=created_at
        )
        self.conn.add(member)
        try:
            await self.conn.flush()
        except IntegrityError:
            raise DuplicateKey(f"Account {account_id} is already in group {group_id}")
        return member.to_core()

    async def get(self, group_id: UUID, account_id: UUID) -> MemberData:
        return (await self._read(group_id, account_id)).to_core()

    async def update(self, group_id: UUID, account_id: UUID, role: Role) -> MemberData:
        member = await self._read(group_id, account_id)
        member.role = role
        self.conn.add(member)
        await self.conn.flush()
        return member.to_core()

    async def delete(self, group_id: UUID, account_id: UUID) -> None:
        member = await self._read(group_id, account_id)
        await self.conn.delete(member)
        await self.conn.flush()

    async def delete_many(self, group_id: UUID) -> int:
        result = await self.conn.execute(
            delete(Member).where(Member.group_id == group_id)
        )
        return result.rowcount

    async def list(
        self,
        group_id: UUID | None = None,
        account_id: UUID | None = None,
        pagination: Pagination | None = None,
    ) -> list[MemberData]:
        query = (
            select(Member)
            .order_by(Member.created_at, Member.member_id)
            .execution_options(populate_existing=True)
        )
        if group_id is not None:
            query = query.where(Member.group_id == group_id)
        if account_id is not None:
            query = query.where(Member.account_id == account_id)
        if pagination is not None:
            query = query.offset(pagination.offset).limit(pagination.limit)

        members = (await self.conn.execute(query)).scalars().all()
        return [m.to_core() for m in members]


class SqlInviteRepository(InviteRepository):
    def __init__(self, conn: AsyncSession):
        self.conn = conn

    async def _read(self, invite_id: UUID) -> Invite:
        invite = await self.conn.get(Invite, invite_id, populate_existing=True)
        if invite is None:
            raise EntityNotFound(f"Invite {invite_id} not found")
        return invite

    async def create(
        self,
        group_id: UUID,
        sender_account_id: UUID,
        recipient_account_id: UUID,
        created_at: datetime,
    ) -> InviteData:
        invite = Invite(
            group_id=group_id,
            sender_account_id=sender_account_id,
            recipient_account_id=recipient_account_id,
            created_at=created_at,
        )
        self.conn.add(invite)
        try:
            await self.conn.flush()
        except IntegrityError:
            raise DuplicateKey("Invite already pending")
        return invite.to_core()

    async def get(self, invite_id: UUID) -> InviteData:
        return (await self._read(invite_id)).to_core()

    async def delete(self, invite_id: UUID) -> None:
        invite = await self._read(invite_id)
        await self.conn.delete(invite)
        await self.conn.flush()

    async def delete_many(self, filter: InviteFilter) -> int:
        result = await self.conn.execute(
            delete(Invite).where(*invite_conditions(filter))
        )
        return result.rowcount

    async def list(
        self, filter: InviteFilter, pagination: Pagination | None = None
    ) -> list[InviteData]:
        query = (
            select(Invite)
            .where(*invite_conditions(filter))
            .order_by(Invite.created_at, Invite.invite_id)
        )
        if pagination is not None:
            query = query.offset(pagination.offset).limit(pagination.limit)

        invites = (await self.conn.execute(query)).scalars().all()
        return [i.to_core() for i in invites]


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, conn: AsyncSession):
        self.conn = conn
        self.accounts = SqlAccountRepository(conn)
        self.groups = SqlGroupRepository(conn)
        self.members = SqlMemberRepository(conn)
        self.invites = SqlInviteRepository(conn)

    async def lock_group(self, group_id: UUID) -> None:
        # On SQLite the transaction already holds the database write lock.
        await self.conn.execute(
            select(Group.group_id).where(Group.group_id == group_id).with_for_update()
        )


class SqlStorage(Storage):
    manager: AsyncSessionManager

    def __init__(self, manager: AsyncSessionManager):
        self.manager = manager

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlUnitOfWork]:
        try:
            async with self.manager.session() as conn:
                async with conn.begin():
                    yield SqlUnitOfWork(conn)
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
