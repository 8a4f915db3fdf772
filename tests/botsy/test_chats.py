import datetime as dt

from packages.botsy.channels import ChannelService
from packages.botsy.models import ChannelType, MessageDirection

from .helpers import auth_headers


def _seed_messages(session, company_id):
    service = ChannelService(session)
    base = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)
    for index in range(3):
        service.save_message(
            company_id,
            ChannelType.INSTAGRAM,
            "ig-user-1",
            direction=MessageDirection.INBOUND,
            text=f"Melding {index}",
            timestamp=base + dt.timedelta(minutes=index),
        )
    service.save_message(
        company_id,
        ChannelType.INSTAGRAM,
        "ig-user-2",
        direction=MessageDirection.OUTBOUND,
        text="Svar",
        author_id="bot",
    )
    service.save_message(
        company_id,
        ChannelType.MESSENGER,
        "fb-user",
        direction=MessageDirection.INBOUND,
        text="Hei fra Messenger",
    )


def test_history_keeps_newest_in_order(session, company):
    service = ChannelService(session)
    for index in range(5):
        service.save_message(
            company, ChannelType.MESSENGER, "u", direction=MessageDirection.INBOUND, text=str(index)
        )

    history = service.get_history(company, ChannelType.MESSENGER, "u", limit=3)

    assert [m.text for m in history] == ["2", "3", "4"]
    assert service.get_history(company, ChannelType.MESSENGER, "nobody") == []


def test_chat_list_for_channel(client, session, company):
    _seed_messages(session, company)

    response = client.get(
        "/api/instagram/chats", params={"companyId": company}, headers=auth_headers("emp-1")
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert "messages" not in data
    chats = {chat["senderId"]: chat for chat in data["chats"]}
    assert set(chats) == {"ig-user-1", "ig-user-2"}
    assert chats["ig-user-1"]["messageCount"] == 3
    assert chats["ig-user-1"]["lastMessage"]["text"] == "Melding 2"
    assert chats["ig-user-2"]["lastMessage"]["senderId"] == "bot"


def test_sender_history(client, session, company):
    _seed_messages(session, company)

    response = client.get(
        "/api/instagram/chats",
        params={"companyId": company, "senderId": "ig-user-1"},
        headers=auth_headers("owner-1"),
    )

    messages = response.json()["messages"]
    assert [m["text"] for m in messages] == ["Melding 0", "Melding 1", "Melding 2"]
    assert messages[0]["direction"] == "inbound"


def test_messenger_chats_are_separate(client, session, company):
    _seed_messages(session, company)

    response = client.get(
        "/api/messenger/chats", params={"companyId": company}, headers=auth_headers("admin-1")
    )

    assert [chat["senderId"] for chat in response.json()["chats"]] == ["fb-user"]
