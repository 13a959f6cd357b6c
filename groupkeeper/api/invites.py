"""
Invite workflow.
"""

from fastapi import APIRouter, status
from pydantic import BaseModel

from groupkeeper.core.invite import InviteData, InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.uuid import UUID
from groupkeeper.service import invites as invite_service

from .dependencies import (
    AccountDependency,
    LoggerDependency,
    PaginationDependency,
    UnitOfWorkDependency,
)

invite_app = APIRouter(tags=["Invites"])


class InviteCreationRequest(BaseModel):
    group_id: UUID
    recipient_account_id: UUID


@invite_app.post(
    "",
    summary="Invite an account to a group",
    description="Any member of the group may send invites.",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Invite is pending."},
        403: {"description": "Caller is not a member of the group."},
        404: {"description": "Group or recipient account not found."},
        409: {"description": "Recipient is a member or already invited."},
    },
)
async def send_invite(
    content: InviteCreationRequest,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> InviteData:
    return await invite_service.send_invite(
        group_id=content.group_id,
        recipient_account_id=content.recipient_account_id,
        sender_id=account_id,
        conn=conn,
        log=log,
    )


@invite_app.get(
    "",
    summary="List pending invites",
    description="Filter by any combination of sender, recipient and group.",
    responses={200: {"description": "A page of pending invites."}},
)
async def list_invites(
    caller: AccountDependency,
    page: PaginationDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
    sender_account_id: UUID | None = None,
    recipient_account_id: UUID | None = None,
    group_id: UUID | None = None,
) -> list[InviteData]:
    log = log.bind(caller=caller)
    filter = InviteFilter(
        sender_account_id=sender_account_id,
        recipient_account_id=recipient_account_id,
        group_id=group_id,
    )
    return await invite_service.list_invites(
        filter=filter, pagination=page, conn=conn, log=log
    )


@invite_app.get(
    "/{invite_id}",
    summary="Get a pending invite",
    responses={
        200: {"description": "The invite."},
        404: {"description": "No pending invite with this id."},
    },
)
async def get_invite(
    invite_id: UUID,
    caller: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> InviteData:
    log = log.bind(caller=caller)
    return await invite_service.get_invite(invite_id=invite_id, conn=conn, log=log)


@invite_app.post(
    "/{invite_id}/accept",
    summary="Accept an invite",
    description="The recipient joins the group as a user.",
    responses={
        200: {"description": "The new membership."},
        403: {"description": "Caller is not the recipient."},
        404: {"description": "No pending invite with this id."},
        409: {"description": "Caller is already a member of the group."},
    },
)
async def accept_invite(
    invite_id: UUID,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> MemberData:
    return await invite_service.accept_invite(
        invite_id=invite_id, actor_id=account_id, conn=conn, log=log
    )


@invite_app.post(
    "/{invite_id}/deny",
    summary="Deny an invite",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        204: {"description": "Invite denied."},
        403: {"description": "Caller is not the recipient."},
        404: {"description": "No pending invite with this id."},
    },
)
async def deny_invite(
    invite_id: UUID,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> None:
    await invite_service.deny_invite(
        invite_id=invite_id, actor_id=account_id, conn=conn, log=log
    )


@invite_app.delete(
    "/{invite_id}",
    summary="Revoke an invite",
    description="Withdraw a pending invite. Requires the admin role in its group.",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        204: {"description": "Invite revoked."},
        403: {"description": "Caller is not an admin of the group."},
        404: {"description": "No pending invite with this id."},
    },
)
async def revoke_invite(
    invite_id: UUID,
    account_id: AccountDependency,
    conn: UnitOfWorkDependency,
    log: LoggerDependency,
) -> None:
    await invite_service.revoke_invite(
        invite_id=invite_id, actor_id=account_id, conn=conn, log=log
    )
