import datetime as dt
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from packages.botsy.channels import ChannelService
from packages.botsy.channels.webhooks import parse_webhook
from packages.botsy.models import ChannelConnection, ChannelType, MessageDirection

from .helpers import auth_headers, build_settings, create_test_app

APP_SECRET = "fb-secret"


def _sign(body: bytes, secret: str = APP_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _messenger_payload(text="Hei, har dere åpent i dag?", page_id="page-1", sender="psid-1"):
    return {
        "object": "page",
        "entry": [
            {
                "id": page_id,
                "time": 1717243200000,
                "messaging": [
                    {
                        "sender": {"id": sender},
                        "recipient": {"id": page_id},
                        "timestamp": 1717243200000,
                        "message": {"mid": "m-1", "text": text},
                    },
                    {
                        "sender": {"id": sender},
                        "recipient": {"id": page_id},
                        "timestamp": 1717243201000,
                        "read": {"watermark": 1717243200000},
                    },
                ],
            }
        ],
    }


def _instagram_payload(account_id="ig-1"):
    return {
        "object": "instagram",
        "entry": [
            {
                "id": account_id,
                "messaging": [
                    {
                        "sender": {"id": "igsid-9"},
                        "recipient": {"id": account_id},
                        "timestamp": 1717243200000,
                        "message": {"mid": "ig-m-1", "text": "Hva koster frakt?"},
                    }
                ],
            }
        ],
    }


@pytest.fixture
def connected(session, company):
    session.add_all(
        [
            ChannelConnection(
                company_id=company,
                channel=ChannelType.MESSENGER,
                page_id="page-1",
                credentials={"page_access_token": "pt", "app_secret": APP_SECRET},
            ),
            ChannelConnection(
                company_id=company,
                channel=ChannelType.INSTAGRAM,
                page_id="page-1",
                account_id="ig-1",
                credentials={"page_access_token": "pt"},
            ),
        ]
    )
    session.commit()
    return company


def test_parse_webhook_keeps_text_messages_only():
    messages = parse_webhook(ChannelType.MESSENGER, _messenger_payload())

    assert len(messages) == 1
    message = messages[0]
    assert message.recipient_id == "page-1"
    assert message.sender_id == "psid-1"
    assert message.message_id == "m-1"
    assert message.timestamp == dt.datetime(2024, 6, 1, 12, 0, tzinfo=dt.timezone.utc)
    assert parse_webhook(ChannelType.INSTAGRAM, _messenger_payload()) == []
    assert parse_webhook(ChannelType.MESSENGER, {"object": "page", "entry": "junk"}) == []
    assert parse_webhook(ChannelType.MESSENGER, ["not", "a", "dict"]) == []


def test_instagram_messages_are_addressed_to_the_account():
    messages = parse_webhook(ChannelType.INSTAGRAM, _instagram_payload())

    assert [(m.recipient_id, m.sender_id, m.text) for m in messages] == [
        ("ig-1", "igsid-9", "Hva koster frakt?")
    ]


def test_verify_handshake_returns_challenge():
    client = TestClient(create_test_app(settings=build_settings(webhook_verify_token="hub-token")))
    params = {"hub.mode": "subscribe", "hub.verify_token": "hub-token", "hub.challenge": "12345"}

    ok = client.get("/api/webhooks/messenger", params=params)
    wrong = client.get("/api/webhooks/instagram", params={**params, "hub.verify_token": "nope"})
    unknown = client.get("/api/webhooks/sms", params=params)

    assert ok.status_code == 200
    assert ok.text == "12345"
    assert wrong.status_code == 403
    assert wrong.json() == {"success": False, "error": "Verification failed"}
    assert unknown.status_code == 404


def test_verify_handshake_fails_without_configured_token(client):
    response = client.get(
        "/api/webhooks/messenger",
        params={"hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "1"},
    )

    assert response.status_code == 403


def test_signed_messenger_delivery_is_stored(client, session, connected):
    body = json.dumps(_messenger_payload()).encode()

    response = client.post(
        "/api/webhooks/messenger", content=body, headers={"X-Hub-Signature-256": _sign(body)}
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "received": 1}
    history = ChannelService(session).get_history(connected, ChannelType.MESSENGER, "psid-1")
    assert [(m.text, m.direction, m.message_id) for m in history] == [
        ("Hei, har dere åpent i dag?", MessageDirection.INBOUND, "m-1")
    ]
    chats = client.get(
        "/api/messenger/chats", params={"companyId": connected}, headers=auth_headers("emp-1")
    ).json()
    assert len(chats["chats"]) == 1


def test_bad_or_missing_signature_is_dropped(client, session, connected):
    body = json.dumps(_messenger_payload()).encode()

    forged = client.post(
        "/api/webhooks/messenger",
        content=body,
        headers={"X-Hub-Signature-256": _sign(body, "someone-else")},
    )
    unsigned = client.post("/api/webhooks/messenger", content=body)

    assert forged.json() == {"status": "ok", "received": 0}
    assert unsigned.json() == {"status": "ok", "received": 0}
    assert ChannelService(session).get_history(connected, ChannelType.MESSENGER, "psid-1") == []


def test_instagram_delivery_without_app_secret(client, session, connected):
    body = json.dumps(_instagram_payload()).encode()

    response = client.post("/api/webhooks/instagram", content=body)

    assert response.json()["received"] == 1
    history = ChannelService(session).get_history(connected, ChannelType.INSTAGRAM, "igsid-9")
    assert [m.text for m in history] == ["Hva koster frakt?"]


def test_unknown_page_and_invalid_json_are_acknowledged(client, connected):
    body = json.dumps(_messenger_payload(page_id="page-unknown")).encode()

    unknown = client.post(
        "/api/webhooks/messenger", content=body, headers={"X-Hub-Signature-256": _sign(body)}
    )
    garbage = client.post("/api/webhooks/messenger", content=b"{not json")

    assert unknown.json() == {"status": "ok", "received": 0}
    assert garbage.status_code == 200
    assert garbage.json() == {"status": "ok", "received": 0}


def test_inactive_connection_receives_nothing(session, connected):
    connection = ChannelService(session).get_connection(connected, ChannelType.MESSENGER)
    connection.is_active = False
    session.commit()
    body = json.dumps(_messenger_payload()).encode()

    saved = ChannelService(session).receive_webhook(
        ChannelType.MESSENGER, _messenger_payload(), raw_body=body, signature=_sign(body)
    )

    assert saved == []
