"""
Service layer for groups and their members.

Every group with at least one member has at least one admin. Operations that
could break this read the group's membership and write their decision inside a
single unit of work that holds the group lock, so concurrent calls against the
same group are decided one after the other.
"""

from datetime import datetime, timezone

from structlog.typing import FilteringBoundLogger

from groupkeeper.core.errors import AlreadyExists, FailedPrecondition, NotFound
from groupkeeper.core.group import GroupData
from groupkeeper.core.invite import InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID
from groupkeeper.storage.base import DuplicateKey, EntityNotFound, UnitOfWork

from . import guard


class GroupNotFound(NotFound):
    pass


class MemberNotFound(NotFound):
    pass


class MemberExistsError(AlreadyExists):
    pass


class LastAdminError(FailedPrecondition):
    pass


async def read_by_id(
    group_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> GroupData:
    """
    Read a group by its ID.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    try:
        group = await conn.groups.get(group_id)
    except EntityNotFound:
        await log.ainfo("group.not_found", group_id=group_id)
        raise GroupNotFound(f"Group with id {group_id} not found")

    await log.adebug("group.found", group_id=group_id)
    return group


async def create_group(
    name: str,
    description: str,
    creator_account_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> GroupData:
    """
    Create a new group, with its creator as the only member and admin.

    Parameters
    ----------
    name: str
        The name of the group.
    description: str
        Free text describing the group.
    creator_account_id: UUID
        The account creating the group.
    """
    log = log.bind(account_id=creator_account_id)

    current_time = datetime.now(timezone.utc)

    group = await conn.groups.create(
        name=name, description=description, created_at=current_time
    )
    await conn.members.create(
        group_id=group.group_id,
        account_id=creator_account_id,
        role=Role.ADMIN,
        created_at=current_time,
    )

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def get_group(
    group_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> GroupData:
    return await read_by_id(group_id=group_id, conn=conn, log=log)


async def list_groups(
    pagination: Pagination,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
    for_account: UUID | None = None,
) -> list[GroupData]:
    """
    List groups, optionally only those `for_account` is a member of.
    """
    log = log.bind(for_account=for_account)

    group_ids = None
    if for_account is not None:
        group_ids = [m.group_id for m in await conn.members.list(account_id=for_account)]

    groups = await conn.groups.list(group_ids=group_ids, pagination=pagination)
    await log.adebug("group.listed", number_of_groups=len(groups))
    return groups


async def update_group(
    group_id: UUID,
    actor_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
    name: str | None = None,
    description: str | None = None,
) -> GroupData:
    """
    Change the name and/or description of a group. Admins only.
    """
    log = log.bind(group_id=group_id, actor_id=actor_id)

    await conn.lock_group(group_id)
    await read_by_id(group_id=group_id, conn=conn, log=log)
    await guard.require_role(
        group_id=group_id, account_id=actor_id, role=Role.ADMIN, conn=conn, log=log
    )

    group = await conn.groups.update(group_id, name=name, description=description)
    await log.ainfo("group.updated")
    return group


async def delete_group(
    group_id: UUID, actor_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> None:
    """
    Delete a group along with its members and pending invites. Admins only.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    PermissionDenied
        If `actor_id` is not an admin of the group.
    """
    log = log.bind(group_id=group_id, actor_id=actor_id)

    await conn.lock_group(group_id)
    await read_by_id(group_id=group_id, conn=conn, log=log)
    await guard.require_role(
        group_id=group_id, account_id=actor_id, role=Role.ADMIN, conn=conn, log=log
    )

    invites = await conn.invites.delete_many(InviteFilter(group_id=group_id))
    members = await conn.members.delete_many(group_id)
    await conn.groups.delete(group_id)

    await log.ainfo("group.deleted", members_removed=members, invites_removed=invites)


async def insert_member(
    group_id: UUID, account_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> MemberData:
    """
    Add `account_id` to the group as a user, without any authorization check.
    Callers are responsible for having authorized the addition and for holding
    the group lock.

    Raises
    ------
    MemberExistsError
        If the account is already a member.
    """
    try:
        member = await conn.members.create(
            group_id=group_id,
            account_id=account_id,
            role=Role.USER,
            created_at=datetime.now(timezone.utc),
        )
    except DuplicateKey:
        await log.ainfo("member.already_member", account_id=account_id)
        raise MemberExistsError(f"Account {account_id} is already a member")

    await log.ainfo("member.added", account_id=account_id)
    return member


async def add_member(
    group_id: UUID,
    account_id: UUID,
    actor_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> MemberData:
    """
    Add an account to a group. Any member of the group may add others.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    PermissionDenied
        If `actor_id` is not a member of the group.
    MemberExistsError
        If `account_id` is already a member.
    """
    log = log.bind(group_id=group_id, actor_id=actor_id)

    await conn.lock_group(group_id)
    await read_by_id(group_id=group_id, conn=conn, log=log)
    await guard.require_membership(
        group_id=group_id, account_id=actor_id, conn=conn, log=log
    )

    return await insert_member(
        group_id=group_id, account_id=account_id, conn=conn, log=log
    )


async def get_member(
    group_id: UUID, account_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> MemberData:
    """
    Raises
    ------
    MemberNotFound
        If the account is not a member of the group.
    """
    try:
        member = await conn.members.get(group_id=group_id, account_id=account_id)
    except EntityNotFound:
        await log.ainfo("member.not_found", group_id=group_id, account_id=account_id)
        raise MemberNotFound(f"Account {account_id} is not a member of {group_id}")

    await log.adebug("member.found", group_id=group_id, account_id=account_id)
    return member


async def list_members(
    group_id: UUID,
    pagination: Pagination,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> list[MemberData]:
    """
    Members of a group, in the order they joined.
    """
    log = log.bind(group_id=group_id)

    await read_by_id(group_id=group_id, conn=conn, log=log)
    members = await conn.members.list(group_id=group_id, pagination=pagination)

    await log.adebug("member.listed", number_of_members=len(members))
    return members


async def remove_member(
    group_id: UUID,
    target_account_id: UUID,
    actor_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> MemberData | None:
    """
    Remove a member from a group. Members may always remove themselves;
    removing anyone else requires the admin role.

    If the removed member was the last admin and others remain, the member
    who joined earliest (ties broken by member id) is promoted to admin in the
    same unit of work.

    Returns
    -------
    MemberData | None
        The promoted member, if a promotion took place.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    PermissionDenied
        If removing another account without being an admin.
    MemberNotFound
        If the target is not a member.
    """
    log = log.bind(
        group_id=group_id, target_account_id=target_account_id, actor_id=actor_id
    )

    await conn.lock_group(group_id)
    await read_by_id(group_id=group_id, conn=conn, log=log)

    if actor_id != target_account_id:
        await guard.require_role(
            group_id=group_id, account_id=actor_id, role=Role.ADMIN, conn=conn, log=log
        )

    target = await get_member(
        group_id=group_id, account_id=target_account_id, conn=conn, log=log
    )

    await conn.members.delete(group_id=group_id, account_id=target_account_id)
    await log.ainfo("member.removed", role=target.role.value)

    if target.role is not Role.ADMIN:
        return None

    remaining = await conn.members.list(group_id=group_id)

    if not remaining:
        await log.ainfo("group.emptied")
        return None

    if any(m.role is Role.ADMIN for m in remaining):
        return None

    successor = min(remaining, key=lambda m: m.creation_order)
    promoted = await conn.members.update(
        group_id=group_id, account_id=successor.account_id, role=Role.ADMIN
    )
    await log.ainfo("member.promoted", account_id=promoted.account_id)

    return promoted


async def update_member_role(
    group_id: UUID,
    target_account_id: UUID,
    new_role: Role,
    actor_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> MemberData:
    """
    Change the role of a member. Admins only.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    PermissionDenied
        If `actor_id` is not an admin of the group.
    MemberNotFound
        If the target is not a member.
    LastAdminError
        If the change would leave the group without an admin. The last admin
        can still leave through `remove_member`, which promotes a successor.
    """
    log = log.bind(
        group_id=group_id,
        target_account_id=target_account_id,
        actor_id=actor_id,
        new_role=new_role.value,
    )

    await conn.lock_group(group_id)
    await read_by_id(group_id=group_id, conn=conn, log=log)
    await guard.require_role(
        group_id=group_id, account_id=actor_id, role=Role.ADMIN, conn=conn, log=log
    )

    target = await get_member(
        group_id=group_id, account_id=target_account_id, conn=conn, log=log
    )

    if target.role is new_role:
        await log.adebug("member.role_unchanged")
        return target

    match new_role:
        case Role.USER:
            members = await conn.members.list(group_id=group_id)
            admins = [m for m in members if m.role is Role.ADMIN]
            if [m.account_id for m in admins] == [target_account_id]:
                await log.awarning("member.last_admin_demotion_refused")
                raise LastAdminError("Cannot demote the last admin of the group")
        case Role.ADMIN:
            pass

    member = await conn.members.update(
        group_id=group_id, account_id=target_account_id, role=new_role
    )
    await log.ainfo("member.role_updated")
    return member
