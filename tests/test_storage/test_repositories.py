"""
Behaviour every storage backend must share.
"""

from datetime import datetime, timedelta, timezone

import pytest

from groupkeeper.core.invite import InviteFilter
from groupkeeper.core.pagination import Pagination
from groupkeeper.core.roles import Role
from groupkeeper.core.uuid import uuid7
from groupkeeper.storage.base import DuplicateKey, EntityNotFound


def now():
    return datetime.now(timezone.utc)


@pytest.mark.asyncio
async def test_accounts(storage, accounts):
    async with storage.transaction() as conn:
        alice = await conn.accounts.get(accounts["alice"].account_id)
        assert alice == accounts["alice"]

        with pytest.raises(EntityNotFound):
            await conn.accounts.get(uuid7())


@pytest.mark.asyncio
async def test_group_lifecycle(storage):
    async with storage.transaction() as conn:
        group = await conn.groups.create(
            name="telescopes", description="All of them", created_at=now()
        )

    async with storage.transaction() as conn:
        assert await conn.groups.get(group.group_id) == group

        updated = await conn.groups.update(
            group.group_id, name="mirrors", description=None
        )
        assert updated.name == "mirrors"
        assert updated.description == "All of them"

    async with storage.transaction() as conn:
        assert (await conn.groups.get(group.group_id)).name == "mirrors"
        await conn.groups.delete(group.group_id)

    async with storage.transaction() as conn:
        with pytest.raises(EntityNotFound):
            await conn.groups.get(group.group_id)
        with pytest.raises(EntityNotFound):
            await conn.groups.delete(group.group_id)
        with pytest.raises(EntityNotFound):
            await conn.groups.update(group.group_id, name="x", description=None)


@pytest.mark.asyncio
async def test_group_list_order_and_pages(storage):
    start = now()

    async with storage.transaction() as conn:
        created = [
            await conn.groups.create(
                name=f"group-{i}", description="", created_at=start + timedelta(seconds=i)
            )
            for i in range(5)
        ]

    async with storage.transaction() as conn:
        everything = await conn.groups.list(group_ids=None, pagination=Pagination())
        assert [g.group_id for g in everything] == [g.group_id for g in created]

        page = await conn.groups.list(
            group_ids=None, pagination=Pagination(offset=1, limit=2)
        )
        assert [g.name for g in page] == ["group-1", "group-2"]

        chosen = await conn.groups.list(
            group_ids=[created[4].group_id, created[0].group_id],
            pagination=Pagination(),
        )
        assert [g.name for g in chosen] == ["group-0", "group-4"]

        assert await conn.groups.list(group_ids=[], pagination=Pagination()) == []


@pytest.mark.asyncio
async def test_members(storage, accounts):
    alice = accounts["alice"].account_id
    bob = accounts["bob"].account_id
    start = now()

    async with storage.transaction() as conn:
        group = await conn.groups.create(name="g", description="", created_at=start)
        await conn.members.create(
            group_id=group.group_id, account_id=alice, role=Role.ADMIN, created_at=start
        )
        await conn.members.create(
            group_id=group.group_id,
            account_id=bob,
            role=Role.USER,
            created_at=start + timedelta(seconds=1),
        )

    async with storage.transaction() as conn:
        members = await conn.members.list(group_id=group.group_id)
        assert [m.account_id for m in members] == [alice, bob]
        assert [m.role for m in members] == [Role.ADMIN, Role.USER]

        promoted = await conn.members.update(
            group_id=group.group_id, account_id=bob, role=Role.ADMIN
        )
        assert promoted.role is Role.ADMIN

    async with storage.transaction() as conn:
        bob_member = await conn.members.get(group_id=group.group_id, account_id=bob)
        assert bob_member.role is Role.ADMIN

        by_account = await conn.members.list(account_id=alice)
        assert [m.group_id for m in by_account] == [group.group_id]

        page = await conn.members.list(
            group_id=group.group_id, pagination=Pagination(offset=1, limit=1)
        )
        assert [m.account_id for m in page] == [bob]

        await conn.members.delete(group_id=group.group_id, account_id=bob)

        with pytest.raises(EntityNotFound):
            await conn.members.get(group_id=group.group_id, account_id=bob)
        with pytest.raises(EntityNotFound):
            await conn.members.delete(group_id=group.group_id, account_id=bob)

        assert await conn.members.delete_many(group.group_id) == 1
        assert await conn.members.list(group_id=group.group_id) == []


@pytest.mark.asyncio
async def test_duplicate_member(storage, accounts):
    alice = accounts["alice"].account_id

    async with storage.transaction() as conn:
        group = await conn.groups.create(name="g", description="", created_at=now())
        await conn.members.create(
            group_id=group.group_id, account_id=alice, role=Role.ADMIN, created_at=now()
        )

    with pytest.raises(DuplicateKey):
        async with storage.transaction() as conn:
            await conn.members.create(
                group_id=group.group_id,
                account_id=alice,
                role=Role.USER,
                created_at=now(),
            )

    async with storage.transaction() as conn:
        members = await conn.members.list(group_id=group.group_id)
        assert [(m.account_id, m.role) for m in members] == [(alice, Role.ADMIN)]


@pytest.mark.asyncio
async def test_invites(storage, accounts):
    alice = accounts["alice"].account_id
    bob = accounts["bob"].account_id
    carol = accounts["carol"].account_id

    async with storage.transaction() as conn:
        group = await conn.groups.create(name="g", description="", created_at=now())
        other = await conn.groups.create(name="h", description="", created_at=now())

        to_bob = await conn.invites.create(
            group_id=group.group_id,
            sender_account_id=alice,
            recipient_account_id=bob,
            created_at=now(),
        )
        await conn.invites.create(
            group_id=group.group_id,
            sender_account_id=carol,
            recipient_account_id=bob,
            created_at=now(),
        )
        await conn.invites.create(
            group_id=other.group_id,
            sender_account_id=alice,
            recipient_account_id=bob,
            created_at=now(),
        )
        await conn.invites.create(
            group_id=group.group_id,
            sender_account_id=alice,
            recipient_account_id=carol,
            created_at=now(),
        )

    async with storage.transaction() as conn:
        assert await conn.invites.get(to_bob.invite_id) == to_bob

        from_alice = await conn.invites.list(InviteFilter(sender_account_id=alice))
        assert len(from_alice) == 3

        for_bob_here = await conn.invites.list(
            InviteFilter(recipient_account_id=bob, group_id=group.group_id)
        )
        assert {i.sender_account_id for i in for_bob_here} == {alice, carol}

        exact = await conn.invites.list(
            InviteFilter(
                sender_account_id=alice,
                recipient_account_id=bob,
                group_id=group.group_id,
            )
        )
        assert [i.invite_id for i in exact] == [to_bob.invite_id]

        assert len(await conn.invites.list(InviteFilter())) == 4
        assert (
            len(await conn.invites.list(InviteFilter(), Pagination(offset=3, limit=5)))
            == 1
        )

        cleared = await conn.invites.delete_many(
            InviteFilter(recipient_account_id=bob, group_id=group.group_id)
        )
        assert cleared == 2

    async with storage.transaction() as conn:
        with pytest.raises(EntityNotFound):
            await conn.invites.get(to_bob.invite_id)
        with pytest.raises(EntityNotFound):
            await conn.invites.delete(to_bob.invite_id)

        remaining = await conn.invites.list(InviteFilter())
        assert {i.group_id for i in remaining} == {group.group_id, other.group_id}


@pytest.mark.asyncio
async def test_duplicate_invite(storage, accounts):
    alice = accounts["alice"].account_id
    bob = accounts["bob"].account_id

    async with storage.transaction() as conn:
        group = await conn.groups.create(name="g", description="", created_at=now())
        await conn.invites.create(
            group_id=group.group_id,
            sender_account_id=alice,
            recipient_account_id=bob,
            created_at=now(),
        )

    with pytest.raises(DuplicateKey):
        async with storage.transaction() as conn:
            await conn.invites.create(
                group_id=group.group_id,
                sender_account_id=alice,
                recipient_account_id=bob,
                created_at=now(),
            )


@pytest.mark.asyncio
async def test_failed_transaction_writes_nothing(storage):
    with pytest.raises(RuntimeError):
        async with storage.transaction() as conn:
            group = await conn.groups.create(name="g", description="", created_at=now())
            raise RuntimeError("abandon")

    async with storage.transaction() as conn:
        with pytest.raises(EntityNotFound):
            await conn.groups.get(group.group_id)
        assert await conn.groups.list(group_ids=None, pagination=Pagination()) == []
