"""
Service layer for invites.

An invite is pending for as long as it exists. It ends either accepted (the
recipient becomes a member and the invite is deleted) or denied (the invite is
deleted); there is no way back to pending.
"""

from datetime import datetime, timezone

from structlog.typing import FilteringBoundLogger

from groupkeeper.core.errors import AlreadyExists, NotFound, PermissionDenied
from groupkeeper.core.invite import InviteData, InviteFilter
from groupkeeper.core.member import MemberData
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import UUID
from groupkeeper.storage.base import DuplicateKey, EntityNotFound, UnitOfWork

from . import guard
from . import membership as membership_service


class InviteNotFound(NotFound):
    pass


class AccountNotFound(NotFound):
    pass


class InviteExistsError(AlreadyExists):
    pass


async def read_by_id(
    invite_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> InviteData:
    """
    Raises
    ------
    InviteNotFound
        If there is no pending invite with this id.
    """
    try:
        invite = await conn.invites.get(invite_id)
    except EntityNotFound:
        await log.ainfo("invite.not_found", invite_id=invite_id)
        raise InviteNotFound(f"Invite {invite_id} not found")

    await log.adebug("invite.found", invite_id=invite_id)
    return invite


async def read_and_lock(
    invite_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> InviteData:
    """
    Read an invite and take its group lock. The invite is read again once the
    lock is held, since a concurrent answer may have removed it meanwhile.
    """
    invite = await read_by_id(invite_id=invite_id, conn=conn, log=log)
    await conn.lock_group(invite.group_id)
    return await read_by_id(invite_id=invite_id, conn=conn, log=log)


async def require_recipient(
    invite: InviteData, actor_id: UUID, log: FilteringBoundLogger
) -> None:
    if invite.recipient_account_id != actor_id:
        await log.awarning("invite.not_recipient")
        raise PermissionDenied("Only the recipient may answer an invite")


async def send_invite(
    group_id: UUID,
    recipient_account_id: UUID,
    sender_id: UUID,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> InviteData:
    """
    Invite an account to join a group. Any member of the group may invite.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    PermissionDenied
        If the sender is not a member of the group.
    AccountNotFound
        If the recipient account does not exist.
    MemberExistsError
        If the recipient is already a member.
    InviteExistsError
        If the sender already has a pending invite for this recipient and group.
    """
    log = log.bind(
        group_id=group_id, sender_id=sender_id, recipient_id=recipient_account_id
    )

    await conn.lock_group(group_id)
    await membership_service.read_by_id(group_id=group_id, conn=conn, log=log)
    await guard.require_membership(
        group_id=group_id, account_id=sender_id, conn=conn, log=log
    )

    try:
        await conn.accounts.get(recipient_account_id)
    except EntityNotFound:
        await log.ainfo("invite.recipient_not_found")
        raise AccountNotFound(f"Account {recipient_account_id} not found")

    try:
        await conn.members.get(group_id=group_id, account_id=recipient_account_id)
    except EntityNotFound:
        pass
    else:
        await log.ainfo("invite.recipient_already_member")
        raise membership_service.MemberExistsError(
            f"Account {recipient_account_id} is already a member"
        )

    try:
        invite = await conn.invites.create(
            group_id=group_id,
            sender_account_id=sender_id,
            recipient_account_id=recipient_account_id,
            created_at=datetime.now(timezone.utc),
        )
    except DuplicateKey:
        await log.ainfo("invite.exists")
        raise InviteExistsError("An invite for this account is already pending")

    await log.ainfo("invite.sent", invite_id=invite.invite_id)

    return invite


async def accept_invite(
    invite_id: UUID, actor_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> MemberData:
    """
    Accept an invite: the recipient joins the group as a user, and every
    pending invite for them to that group is removed. If joining fails the
    invite stays pending.

    Raises
    ------
    InviteNotFound
        If there is no pending invite with this id.
    PermissionDenied
        If `actor_id` is not the recipient.
    MemberExistsError
        If the recipient is already a member.
    """
    log = log.bind(invite_id=invite_id, actor_id=actor_id)

    invite = await read_and_lock(invite_id=invite_id, conn=conn, log=log)
    await require_recipient(invite=invite, actor_id=actor_id, log=log)

    log = log.bind(group_id=invite.group_id)

    # The invite is the authorization to join, so the membership check that
    # `add_member` applies to the actor does not apply here.
    member = await membership_service.insert_member(
        group_id=invite.group_id, account_id=actor_id, conn=conn, log=log
    )

    cleared = await conn.invites.delete_many(
        InviteFilter(group_id=invite.group_id, recipient_account_id=actor_id)
    )

    await log.ainfo("invite.accepted", invites_cleared=cleared)

    return member


async def deny_invite(
    invite_id: UUID, actor_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> None:
    """
    Deny an invite; it is deleted and nobody joins.

    Raises
    ------
    InviteNotFound
        If there is no pending invite with this id.
    PermissionDenied
        If `actor_id` is not the recipient.
    """
    log = log.bind(invite_id=invite_id, actor_id=actor_id)

    invite = await read_and_lock(invite_id=invite_id, conn=conn, log=log)
    await require_recipient(invite=invite, actor_id=actor_id, log=log)

    await conn.invites.delete(invite_id)
    await log.ainfo("invite.denied", group_id=invite.group_id)


async def revoke_invite(
    invite_id: UUID, actor_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> None:
    """
    Withdraw a pending invite. Admins of the invite's group only.

    Raises
    ------
    InviteNotFound
        If there is no pending invite with this id.
    PermissionDenied
        If `actor_id` is not an admin of the invite's group.
    """
    log = log.bind(invite_id=invite_id, actor_id=actor_id)

    invite = await read_and_lock(invite_id=invite_id, conn=conn, log=log)
    await guard.require_role(
        group_id=invite.group_id,
        account_id=actor_id,
        role=Role.ADMIN,
        conn=conn,
        log=log,
    )

    await conn.invites.delete(invite_id)
    await log.ainfo("invite.revoked", group_id=invite.group_id)


async def get_invite(
    invite_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> InviteData:
    return await read_by_id(invite_id=invite_id, conn=conn, log=log)


async def list_invites(
    filter: InviteFilter,
    pagination: Pagination,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> list[InviteData]:
    """
    Pending invites matching `filter`. Any authenticated caller may list any
    invites; callers narrow the result with the filter.
    """
    invites = await conn.invites.list(filter=filter, pagination=pagination)
    await log.adebug(
        "invite.listed",
        number_of_invites=len(invites),
        **filter.model_dump(exclude_none=True),
    )
    return invites
