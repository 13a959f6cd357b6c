"""
Drives the HTTP surface end to end over both storage backends.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from groupkeeper.api.app import app
from groupkeeper.api.dependencies import get_storage, get_token_service
from groupkeeper.core.uuid import uuid7


@pytest_asyncio.fixture
async def client(storage, token_service):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_token_service] = lambda: token_service

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth(accounts, token_service):
    return {
        name: {
            "Authorization": f"Bearer {token_service.issue_token(account.account_id)}"
        }
        for name, account in accounts.items()
    }


@pytest.mark.asyncio
async def test_requires_token(client):
    response = await client.get("/groups")
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}
    assert response.headers["WWW-Authenticate"] == "Bearer"

    response = await client.get(
        "/groups", headers={"Authorization": "Bearer garbage"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_group_flow(client, auth, accounts):
    bob_id = str(accounts["bob"].account_id)
    carol_id = str(accounts["carol"].account_id)

    response = await client.post(
        "/groups",
        json={"name": "cryostat", "description": "Cold things"},
        headers=auth["alice"],
    )
    assert response.status_code == 201
    group = response.json()
    group_id = group["group_id"]

    response = await client.get(f"/groups/{group_id}", headers=auth["bob"])
    assert response.status_code == 200
    assert response.json() == group

    response = await client.put(
        f"/groups/{group_id}/members/{bob_id}", headers=auth["alice"]
    )
    assert response.status_code == 201
    assert response.json()["role"] == "user"

    response = await client.put(
        f"/groups/{group_id}/members/{bob_id}", headers=auth["alice"]
    )
    assert response.status_code == 409

    response = await client.put(
        f"/groups/{group_id}/members/{carol_id}", headers=auth["dave"]
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/groups/{group_id}", json={"name": "fridge"}, headers=auth["bob"]
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/groups/{group_id}", json={"name": "fridge"}, headers=auth["alice"]
    )
    assert response.status_code == 200
    assert response.json()["name"] == "fridge"
    assert response.json()["description"] == "Cold things"

    response = await client.get(
        "/groups", params={"account_id": bob_id}, headers=auth["bob"]
    )
    assert [g["group_id"] for g in response.json()] == [group_id]

    response = await client.get(f"/groups/{group_id}/members", headers=auth["dave"])
    assert response.status_code == 200
    assert [m["account_id"] for m in response.json()] == [
        str(accounts["alice"].account_id),
        bob_id,
    ]

    response = await client.get(
        f"/groups/{group_id}/members/{bob_id}", headers=auth["carol"]
    )
    assert response.status_code == 200

    response = await client.get(
        f"/groups/{group_id}/members/{carol_id}", headers=auth["carol"]
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_roles_and_removal(client, auth, accounts):
    alice_id = str(accounts["alice"].account_id)
    bob_id = str(accounts["bob"].account_id)

    group_id = (
        await client.post("/groups", json={"name": "g"}, headers=auth["alice"])
    ).json()["group_id"]
    await client.put(f"/groups/{group_id}/members/{bob_id}", headers=auth["alice"])

    response = await client.patch(
        f"/groups/{group_id}/members/{alice_id}",
        json={"role": "user"},
        headers=auth["alice"],
    )
    assert response.status_code == 400

    response = await client.patch(
        f"/groups/{group_id}/members/{bob_id}",
        json={"role": "overlord"},
        headers=auth["alice"],
    )
    assert response.status_code == 422

    response = await client.delete(
        f"/groups/{group_id}/members/{alice_id}", headers=auth["bob"]
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/groups/{group_id}/members/{alice_id}", headers=auth["alice"]
    )
    assert response.status_code == 200
    promoted = response.json()["promoted"]
    assert promoted["account_id"] == bob_id
    assert promoted["role"] == "admin"

    response = await client.delete(f"/groups/{group_id}", headers=auth["bob"])
    assert response.status_code == 204

    response = await client.get(f"/groups/{group_id}", headers=auth["bob"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_invite_flow(client, auth, accounts):
    carol_id = str(accounts["carol"].account_id)

    group_id = (
        await client.post("/groups", json={"name": "g"}, headers=auth["alice"])
    ).json()["group_id"]

    response = await client.post(
        "/invites",
        json={"group_id": group_id, "recipient_account_id": carol_id},
        headers=auth["dave"],
    )
    assert response.status_code == 403

    response = await client.post(
        "/invites",
        json={"group_id": group_id, "recipient_account_id": str(uuid7())},
        headers=auth["alice"],
    )
    assert response.status_code == 404

    response = await client.post(
        "/invites",
        json={"group_id": group_id, "recipient_account_id": carol_id},
        headers=auth["alice"],
    )
    assert response.status_code == 201
    invite_id = response.json()["invite_id"]

    response = await client.get(
        "/invites", params={"recipient_account_id": carol_id}, headers=auth["carol"]
    )
    assert [i["invite_id"] for i in response.json()] == [invite_id]

    response = await client.post(
        f"/invites/{invite_id}/accept", headers=auth["bob"]
    )
    assert response.status_code == 403

    response = await client.post(
        f"/invites/{invite_id}/accept", headers=auth["carol"]
    )
    assert response.status_code == 200
    assert response.json()["account_id"] == carol_id

    response = await client.post(f"/invites/{invite_id}/deny", headers=auth["carol"])
    assert response.status_code == 404

    response = await client.get(f"/invites/{invite_id}", headers=auth["carol"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deny_and_revoke(client, auth, accounts):
    bob_id = str(accounts["bob"].account_id)
    carol_id = str(accounts["carol"].account_id)

    group_id = (
        await client.post("/groups", json={"name": "g"}, headers=auth["alice"])
    ).json()["group_id"]

    to_bob = (
        await client.post(
            "/invites",
            json={"group_id": group_id, "recipient_account_id": bob_id},
            headers=auth["alice"],
        )
    ).json()["invite_id"]
    to_carol = (
        await client.post(
            "/invites",
            json={"group_id": group_id, "recipient_account_id": carol_id},
            headers=auth["alice"],
        )
    ).json()["invite_id"]

    response = await client.post(f"/invites/{to_bob}/deny", headers=auth["bob"])
    assert response.status_code == 204

    response = await client.delete(f"/invites/{to_carol}", headers=auth["carol"])
    assert response.status_code == 403

    response = await client.delete(f"/invites/{to_carol}", headers=auth["alice"])
    assert response.status_code == 204

    response = await client.get(
        "/invites", params={"group_id": group_id}, headers=auth["alice"]
    )
    assert response.json() == []


@pytest.mark.asyncio
async def test_pagination_bounds(client, auth):
    for name in ("a", "b", "c"):
        await client.post("/groups", json={"name": name}, headers=auth["alice"])

    response = await client.get(
        "/groups", params={"offset": 1, "limit": 1}, headers=auth["alice"]
    )
    assert [g["name"] for g in response.json()] == ["b"]

    for params in ({"limit": 0}, {"limit": 101}, {"offset": -1}):
        response = await client.get("/groups", params=params, headers=auth["alice"])
        assert response.status_code == 400
