"""
Authorization checks. Every mutating operation runs these before it writes
anything.
"""

from collections.abc import Mapping

from structlog.typing import FilteringBoundLogger

from groupkeeper.core.errors import PermissionDenied, Unauthenticated
from groupkeeper.core.member import MemberData
from groupkeeper.core.roles import Role, role_satisfies
from groupkeeper.core.uuid import UUID
from groupkeeper.storage.base import EntityNotFound, UnitOfWork

from .tokens import TokenService


async def authenticate(
    metadata: Mapping[str, str], tokens: TokenService, log: FilteringBoundLogger
) -> UUID:
    """
    Resolve the account making a call from its metadata.

    Raises
    ------
    Unauthenticated
        If the call does not carry a valid token.
    """
    try:
        account_id = tokens.verify_token(metadata)
    except Unauthenticated:
        await log.ainfo("auth.unauthenticated")
        raise

    await log.adebug("auth.authenticated", account_id=account_id)

    return account_id


async def require_membership(
    group_id: UUID, account_id: UUID, conn: UnitOfWork, log: FilteringBoundLogger
) -> MemberData:
    """
    Raises
    ------
    PermissionDenied
        If `account_id` is not a member of `group_id`.
    """
    try:
        return await conn.members.get(group_id=group_id, account_id=account_id)
    except EntityNotFound:
        await log.awarning(
            "auth.not_member", group_id=group_id, account_id=account_id
        )
        raise PermissionDenied(f"Account is not a member of group {group_id}")


async def require_role(
    group_id: UUID,
    account_id: UUID,
    role: Role,
    conn: UnitOfWork,
    log: FilteringBoundLogger,
) -> MemberData:
    """
    Raises
    ------
    PermissionDenied
        If `account_id` is not a member of `group_id`, or its role does not
        meet or exceed `role`.
    """
    member = await require_membership(
        group_id=group_id, account_id=account_id, conn=conn, log=log
    )

    if not role_satisfies(held=member.role, required=role):
        await log.awarning(
            "auth.insufficient_role",
            group_id=group_id,
            account_id=account_id,
            held=member.role.value,
            required=role.value,
        )
        raise PermissionDenied(f"Requires role {role.value} in group {group_id}")

    return member
