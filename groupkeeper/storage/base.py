"""
Repository contracts shared by the storage backends.

Every repository call happens inside a unit of work obtained from
`Storage.transaction()`; nothing a unit of work writes is visible to others
until the context exits normally, and everything is discarded if it exits with
an exception (including cancellation).
"""

import abc
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from groupkeeper.core.account import AccountData
from groupkeeper.core.group import GroupData
from groupkeeper.core.invite import InviteData, InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID


class StorageError(Exception):
    """
    Unknown failure inside a storage backend.
    """


class EntityNotFound(StorageError):
    pass


class DuplicateKey(StorageError):
    pass


class AccountRepository(abc.ABC):
    @abc.abstractmethod
    async def get(self, account_id: UUID) -> AccountData:
        raise NotImplementedError


class GroupRepository(abc.ABC):
    @abc.abstractmethod
    async def create(
        self, name: str, description: str, created_at: datetime
    ) -> GroupData:
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, group_id: UUID) -> GroupData:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(
        self, group_id: UUID, name: str | None, description: str | None
    ) -> GroupData:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, group_id: UUID) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def list(
        self, group_ids: list[UUID] | None, pagination: Pagination
    ) -> list[GroupData]:
        """
        Groups ordered by creation time. `group_ids`, when given, restricts
        the result to those groups.
        """
        raise NotImplementedError


class MemberRepository(abc.ABC):
    @abc.abstractmethod
    async def create(
        self, group_id: UUID, account_id: UUID, role: Role, created_at: datetime
    ) -> MemberData:
        """
        Raises
        ------
        DuplicateKey
            If the account is already a member of the group.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, group_id: UUID, account_id: UUID) -> MemberData:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(self, group_id: UUID, account_id: UUID, role: Role) -> MemberData:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, group_id: UUID, account_id: UUID) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_many(self, group_id: UUID) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def list(
        self,
        group_id: UUID | None = None,
        account_id: UUID | None = None,
        pagination: Pagination | None = None,
    ) -> list[MemberData]:
        """
        Members in creation order, `(created_at, member_id)`. Without
        `pagination` every matching member is returned.
        """
        raise NotImplementedError


class InviteRepository(abc.ABC):
    @abc.abstractmethod
    async def create(
        self,
        group_id: UUID,
        sender_account_id: UUID,
        recipient_account_id: UUID,
        created_at: datetime,
    ) -> InviteData:
        """
        Raises
        ------
        DuplicateKey
            If the same sender already has a pending invite for the recipient
            in this group.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, invite_id: UUID) -> InviteData:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, invite_id: UUID) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_many(self, filter: InviteFilter) -> int:
        raise NotImplementedError

    @abc.abstractmethod
    async def list(
        self, filter: InviteFilter, pagination: Pagination | None = None
    ) -> list[InviteData]:
        raise NotImplementedError


class UnitOfWork(abc.ABC):
    accounts: AccountRepository
    groups: GroupRepository
    members: MemberRepository
    invites: InviteRepository

    @abc.abstractmethod
    async def lock_group(self, group_id: UUID) -> None:
        """
        Serialization point for a group's membership. Held until the unit of
        work ends; concurrent units of work locking the same group wait.
        """
        raise NotImplementedError


class Storage(abc.ABC):
    @abc.abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[UnitOfWork]:
        raise NotImplementedError
