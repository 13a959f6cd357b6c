"""
Concurrent operations against one group are decided one after the other, so
the group never ends up without an admin.
"""

import asyncio

import pytest

from groupkeeper.core.errors import ServiceError
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.service import invites as invite_service
from groupkeeper.service import membership as membership_service


async def admin_group(call, ids, admins, users):
    creator, *others = admins
    group = await call(
        membership_service.create_group,
        name="contended",
        description="",
        creator_account_id=ids[creator],
    )
    for name in [*others, *users]:
        await call(
            membership_service.add_member,
            group_id=group.group_id,
            account_id=ids[name],
            actor_id=ids[creator],
        )
    for name in others:
        await call(
            membership_service.update_member_role,
            group_id=group.group_id,
            target_account_id=ids[name],
            new_role=Role.ADMIN,
            actor_id=ids[creator],
        )
    return group


async def roles(call, group_id) -> dict:
    members = await call(
        membership_service.list_members, group_id=group_id, pagination=Pagination()
    )
    return {m.account_id: m.role for m in members}


@pytest.mark.asyncio
async def test_admins_leaving_together(call, ids):
    group = await admin_group(call, ids, admins=["alice", "bob"], users=["carol"])

    await asyncio.gather(
        *(
            call(
                membership_service.remove_member,
                group_id=group.group_id,
                target_account_id=ids[name],
                actor_id=ids[name],
            )
            for name in ("alice", "bob")
        )
    )

    assert await roles(call, group.group_id) == {ids["carol"]: Role.ADMIN}


@pytest.mark.asyncio
async def test_admin_and_user_leaving_together(call, ids):
    group = await admin_group(call, ids, admins=["alice"], users=["bob"])

    await asyncio.gather(
        *(
            call(
                membership_service.remove_member,
                group_id=group.group_id,
                target_account_id=ids[name],
                actor_id=ids[name],
            )
            for name in ("alice", "bob")
        )
    )

    remaining = await roles(call, group.group_id)
    assert remaining == {} or set(remaining.values()) == {Role.ADMIN}


@pytest.mark.asyncio
async def test_admins_demoting_each_other(call, ids):
    group = await admin_group(call, ids, admins=["alice", "bob"], users=[])

    results = await asyncio.gather(
        call(
            membership_service.update_member_role,
            group_id=group.group_id,
            target_account_id=ids["bob"],
            new_role=Role.USER,
            actor_id=ids["alice"],
        ),
        call(
            membership_service.update_member_role,
            group_id=group.group_id,
            target_account_id=ids["alice"],
            new_role=Role.USER,
            actor_id=ids["bob"],
        ),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(failures) == 1
    assert isinstance(failures[0], ServiceError)

    assert list((await roles(call, group.group_id)).values()).count(Role.ADMIN) == 1


@pytest.mark.asyncio
async def test_accept_and_deny_race(call, ids):
    group = await admin_group(call, ids, admins=["alice"], users=[])
    invite = await call(
        invite_service.send_invite,
        group_id=group.group_id,
        recipient_account_id=ids["bob"],
        sender_id=ids["alice"],
    )

    results = await asyncio.gather(
        call(invite_service.accept_invite, invite_id=invite.invite_id, actor_id=ids["bob"]),
        call(invite_service.deny_invite, invite_id=invite.invite_id, actor_id=ids["bob"]),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(failures) == 1
    assert isinstance(failures[0], invite_service.InviteNotFound)

    with pytest.raises(invite_service.InviteNotFound):
        await call(invite_service.get_invite, invite_id=invite.invite_id)
