"""
Group and membership management.
"""

from fastapi import APIRouter, status
from pydantic import BaseModel

from groupkeeper.core.group import GroupData
from groupkeeper.core.member import MemberData
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID
from groupkeeper.service import membership as membership_service

from .dependencies import (
    AccountDependency,
    LoggerDependency,
    PaginationDependency,
    UnitOfWorkDependency,
)

group_app = APIRouter(tags=["Groups"])


class GroupCreationRequest(BaseModel):
    name: str
    description: str = ""


class GroupUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class MemberUpdateRequest(BaseModel):
    role: Role


class MemberRemovalResponse(BaseModel):
    promoted: MemberData | None = None


@group_app.post(
    "",
    summary="Create a new group",
    description="Create a group. The caller becomes its first member, as an admin.",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Group created."},
        401: {"description": "Missing or invalid token."},
    },
)
async def create_group(
    content: GroupCreationRequest,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> GroupData:
    return await membership_service.create_group(
        name=content.name,
        description=content.description,
        creator_account_id=account_id,
        conn=conn,
        log=log,
    )


@group_app.get(
    "",
    summary="List groups",
    description=(
        "List groups, oldest first. Pass `account_id` to only see the groups "
        "that account is a member of."
    ),
    responses={200: {"description": "A page of groups."}},
)
async def list_groups(
    caller: AccountDependency,
    page: PaginationDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
    account_id: UUID | None = None,
) -> list[GroupData]:
    log = log.bind(caller=caller)
    return await membership_service.list_groups(
        pagination=page, conn=conn, log=log, for_account=account_id
    )


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    responses={
        200: {"description": "The group."},
        404: {"description": "Group not found."},
    },
)
async def get_group(
    group_id: UUID,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> GroupData:
    log = log.bind(caller=caller)
    return await membership_service.get_group(group_id=group_id, conn=conn, log=log)


@group_app.patch(
    "/{group_id}",
    summary="Update a group",
    description="Change the name or description of a group. Requires the admin role.",
    responses={
        200: {"description": "The updated group."},
        403: {"description": "Caller is not an admin of the group."},
        404: {"description": "Group not found."},
    },
)
async def update_group(
    group_id: UUID,
    content: GroupUpdateRequest,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> GroupData:
    return await membership_service.update_group(
        group_id=group_id,
        actor_id=account_id,
        conn=conn,
        log=log,
        name=content.name,
        description=content.description,
    )


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Delete a group along with its members and pending invites. "
        "Requires the admin role."
    ),
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        204: {"description": "Group deleted."},
        403: {"description": "Caller is not an admin of the group."},
        404: {"description": "Group not found."},
    },
)
async def delete_group(
    group_id: UUID,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> None:
    await membership_service.delete_group(
        group_id=group_id, actor_id=account_id, conn=conn, log=log
    )


@group_app.get(
    "/{group_id}/members",
    summary="List the members of a group",
    description="Members are listed in the order they joined.",
    responses={
        200: {"description": "A page of members."},
        404: {"description": "Group not found."},
    },
)
async def list_members(
    group_id: UUID,
    caller: AccountDependency,
    page: PaginationDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> list[MemberData]:
    log = log.bind(caller=caller)
    return await membership_service.list_members(
        group_id=group_id, pagination=page, conn=conn, log=log
    )


@group_app.put(
    "/{group_id}/members/{account_id}",
    summary="Add a member",
    description="Add an account to a group as a user. Any member may add others.",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Member added."},
        403: {"description": "Caller is not a member of the group."},
        404: {"description": "Group not found."},
        409: {"description": "The account is already a member."},
    },
)
async def add_member(
    group_id: UUID,
    account_id: UUID,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> MemberData:
    return await membership_service.add_member(
        group_id=group_id, account_id=account_id, actor_id=caller, conn=conn, log=log
    )


@group_app.get(
    "/{group_id}/members/{account_id}",
    summary="Get a member",
    responses={
        200: {"description": "The membership."},
        404: {"description": "The account is not a member of the group."},
    },
)
async def get_member(
    group_id: UUID,
    account_id: UUID,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> MemberData:
    log = log.bind(caller=caller)
    return await membership_service.get_member(
        group_id=group_id, account_id=account_id, conn=conn, log=log
    )


@group_app.patch(
    "/{group_id}/members/{account_id}",
    summary="Change the role of a member",
    description=(
        "Requires the admin role. The last admin of a group cannot be demoted."
    ),
    responses={
        200: {"description": "The updated membership."},
        400: {"description": "The change would leave the group without an admin."},
        403: {"description": "Caller is not an admin of the group."},
        404: {"description": "Group or member not found."},
    },
)
async def update_member(
    group_id: UUID,
    account_id: UUID,
    content: MemberUpdateRequest,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> MemberData:
    return await membership_service.update_member_role(
        group_id=group_id,
        target_account_id=account_id,
        new_role=content.role,
        actor_id=caller,
        conn=conn,
        log=log,
    )


@group_app.delete(
    "/{group_id}/members/{account_id}",
    summary="Remove a member",
    description=(
        "Members may remove themselves; removing others requires the admin "
        "role. When the last admin leaves, the longest-standing remaining "
        "member is promoted and returned."
    ),
    responses={
        200: {"description": "Member removed."},
        403: {"description": "Caller may not remove this member."},
        404: {"description": "Group or member not found."},
    },
)
async def remove_member(
    group_id: UUID,
    account_id: UUID,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> MemberRemovalResponse:
    promoted = await membership_service.remove_member(
        group_id=group_id,
        target_account_id=account_id,
        actor_id=caller,
        conn=conn,
        log=log,
    )
    return MemberRemovalResponse(promoted=promoted)
