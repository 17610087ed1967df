import pytest

from conftest import ADMIN_AUTH, OTHER_AUTH, OTHER_ID, OWNER_AUTH, OWNER_ID, VIEWER_AUTH, VIEWER_ID
from main import app


async def _send(client, receiver_id=OTHER_ID, content="Can you review my snippet?", headers=OWNER_AUTH, **extra):
    response = await client.post(
        "/api/messages",
        json={"receiver_id": receiver_id, "content": content, **extra},
        headers=headers,
    )
    return response


@pytest.mark.asyncio
async def test_send_message_lands_in_inbox_outbox_and_notifies(api_client):
    client, _ = api_client
    sent = await _send(client, subject="Review")
    assert sent.status_code == 201
    message = sent.json()
    assert message["conversation_id"] == message["id"]

    inbox = (await client.get("/api/messages", params={"folder": "inbox"}, headers=OTHER_AUTH)).json()
    outbox = (await client.get("/api/messages", params={"folder": "outbox"}, headers=OWNER_AUTH)).json()
    assert [item["id"] for item in inbox["items"]] == [message["id"]]
    assert [item["id"] for item in outbox["items"]] == [message["id"]]

    unread = await client.get("/api/messages/unread-count", headers=OTHER_AUTH)
    assert unread.json() == {"unread_count": 1}

    notes = (await client.get("/api/notifications", headers=OTHER_AUTH)).json()["items"]
    assert notes[0]["type"] == "message"
    assert notes[0]["related_entity_id"] == message["id"]
    assert notes[0]["triggered_by_user_id"] == OWNER_ID


@pytest.mark.asyncio
async def test_send_message_validation(api_client):
    client, _ = api_client
    assert (await _send(client, receiver_id=OWNER_ID)).status_code == 400
    assert (await _send(client, receiver_id="ghost")).status_code == 404
    assert (await _send(client, content="")).status_code == 422


@pytest.mark.asyncio
async def test_reply_joins_conversation_and_conversation_view(api_client):
    client, _ = api_client
    first = (await _send(client)).json()
    reply = (
        await _send(client, receiver_id=OWNER_ID, content="Sure, send it", headers=OTHER_AUTH, parent_id=first["id"])
    ).json()
    assert reply["conversation_id"] == first["id"]

    conversation = await client.get(f"/api/messages/conversation/{OTHER_ID}", headers=OWNER_AUTH)
    assert [item["id"] for item in conversation.json()["items"]] == [first["id"], reply["id"]]

    outsider = await _send(client, receiver_id=OWNER_ID, headers=VIEWER_AUTH, parent_id=first["id"])
    assert outsider.status_code == 403


@pytest.mark.asyncio
async def test_reply_must_address_the_other_participant(api_client):
    client, _ = api_client
    first = (await _send(client)).json()

    redirected = await _send(client, receiver_id=VIEWER_ID, headers=OTHER_AUTH, parent_id=first["id"])
    assert redirected.status_code == 400
    assert redirected.json()["code"] == "validation_failed"

    follow_up = await _send(client, receiver_id=OTHER_ID, content="One more thing", parent_id=first["id"])
    assert follow_up.status_code == 201
    assert follow_up.json()["conversation_id"] == first["id"]

    inbox = (await client.get("/api/messages", params={"folder": "inbox"}, headers=VIEWER_AUTH)).json()
    assert inbox["total_count"] == 0


@pytest.mark.asyncio
async def test_mark_read_and_per_side_delete(api_client):
    client, _ = api_client
    message = (await _send(client)).json()

    sender_mark = await client.put(f"/api/messages/{message['id']}/read", headers=OWNER_AUTH)
    assert sender_mark.status_code == 400

    read = await client.put(f"/api/messages/{message['id']}/read", headers=OTHER_AUTH)
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert (await client.get("/api/messages/unread-count", headers=OTHER_AUTH)).json()["unread_count"] == 0

    outsider = await client.get(f"/api/messages/{message['id']}", headers=VIEWER_AUTH)
    assert outsider.status_code == 403

    removed = await client.delete(f"/api/messages/{message['id']}", headers=OTHER_AUTH)
    assert removed.status_code == 200
    assert (await client.get(f"/api/messages/{message['id']}", headers=OTHER_AUTH)).status_code == 404
    assert (await client.get("/api/messages", headers=OTHER_AUTH)).json()["total_count"] == 0

    still_sent = await client.get(f"/api/messages/{message['id']}", headers=OWNER_AUTH)
    assert still_sent.status_code == 200
    assert (await client.get("/api/messages", params={"folder": "outbox"}, headers=OWNER_AUTH)).json()[
        "total_count"
    ] == 1


@pytest.mark.asyncio
async def test_inbox_cache_invalidated_on_new_message(api_client):
    client, _ = api_client
    cache = app.state.message_cache

    await _send(client, content="one")
    first = await client.get("/api/messages", headers=OTHER_AUTH)
    assert first.json()["total_count"] == 1
    assert len(cache) == 1

    await _send(client, content="two")
    assert len(cache) == 0
    second = await client.get("/api/messages", headers=OTHER_AUTH)
    assert second.json()["total_count"] == 2


@pytest.mark.asyncio
async def test_notification_read_flow(api_client):
    client, _ = api_client
    for text in ("a", "b", "c"):
        await _send(client, content=text)

    listing = (await client.get("/api/notifications", headers=OTHER_AUTH)).json()
    assert listing["total_count"] == 3
    first_id = listing["items"][0]["id"]

    assert (await client.put(f"/api/notifications/{first_id}/read", headers=OWNER_AUTH)).status_code == 403
    marked = await client.put(f"/api/notifications/{first_id}/read", headers=OTHER_AUTH)
    assert marked.json()["is_read"] is True

    unread = await client.get("/api/notifications", params={"unread_only": "true"}, headers=OTHER_AUTH)
    assert unread.json()["total_count"] == 2

    all_read = await client.put("/api/notifications/read-all", headers=OTHER_AUTH)
    assert all_read.json() == {"updated_count": 2}
    assert (await client.get("/api/notifications/unread-count", headers=OTHER_AUTH)).json() == {"unread_count": 0}

    deleted = await client.delete(f"/api/notifications/{first_id}", headers=OTHER_AUTH)
    assert deleted.status_code == 200
    assert (await client.get("/api/notifications", headers=OTHER_AUTH)).json()["total_count"] == 2
    assert (await client.delete(f"/api/notifications/{first_id}", headers=OTHER_AUTH)).status_code == 404

    admin_view = await client.get("/api/notifications", headers=ADMIN_AUTH)
    assert admin_view.json()["total_count"] == 0
