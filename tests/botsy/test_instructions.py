import datetime as dt

import pytest
from sqlalchemy.exc import NoResultFound

from packages.botsy.instructions import InstructionService
from packages.botsy.models import InstructionCategory, InstructionPriority

from .helpers import auth_headers

NOW = dt.datetime(2024, 6, 1, 12, 0, tzinfo=dt.timezone.utc)


def test_active_only_respects_window(session, company):
    service = InstructionService(session)
    service.create_instruction(company, content="Alltid", created_by="owner-1")
    service.create_instruction(
        company,
        content="Sommerkampanje",
        created_by="owner-1",
        category=InstructionCategory.PROMOTION,
        starts_at=NOW - dt.timedelta(days=1),
        expires_at=NOW + dt.timedelta(days=1),
    )
    service.create_instruction(
        company,
        content="Utløpt",
        created_by="owner-1",
        expires_at=NOW - dt.timedelta(hours=1),
    )
    service.create_instruction(
        company,
        content="Fremtidig",
        created_by="owner-1",
        starts_at=NOW + dt.timedelta(days=2),
    )
    service.create_instruction(company, content="Av", created_by="owner-1", is_active=False)

    active = service.list_instructions(company, active_only=True, now=NOW)

    assert sorted(i.content for i in active) == ["Alltid", "Sommerkampanje"]
    assert len(service.list_instructions(company)) == 5


def test_create_validation(session, company):
    service = InstructionService(session)

    with pytest.raises(ValueError):
        service.create_instruction(company, content="   ", created_by="owner-1")
    with pytest.raises(ValueError):
        service.create_instruction(
            company,
            content="Feil vindu",
            created_by="owner-1",
            starts_at=NOW,
            expires_at=NOW - dt.timedelta(days=1),
        )
    with pytest.raises(LookupError):
        service.create_instruction("missing", content="Hei", created_by="owner-1")


def test_update_and_deactivate(session, company):
    service = InstructionService(session)
    instruction = service.create_instruction(company, content="Gammel", created_by="owner-1")

    updated = service.update_instruction(
        company,
        instruction.id,
        {"content": "Ny", "priority": InstructionPriority.HIGH},
        actor_id="owner-1",
    )
    assert updated.content == "Ny"
    assert updated.priority == InstructionPriority.HIGH

    with pytest.raises(ValueError):
        service.update_instruction(company, instruction.id, {"created_by": "x"}, actor_id="owner-1")
    with pytest.raises(NoResultFound):
        service.update_instruction("other", instruction.id, {"content": "x"}, actor_id="owner-1")

    service.deactivate_instruction(company, instruction.id, actor_id="owner-1")
    assert service.list_instructions(company, active_only=True) == []


def test_instruction_routes(client, company):
    headers = auth_headers("admin-1")
    created = client.post(
        "/api/instructions",
        json={
            "companyId": company,
            "instruction": {
                "content": "Vi har stengt i påsken",
                "category": "availability",
                "priority": "high",
                "expiresAt": "2099-04-01T00:00:00",
            },
        },
        headers=headers,
    )
    assert created.status_code == 201
    instruction = created.json()["instruction"]
    assert instruction["category"] == "availability"
    assert instruction["createdBy"] == "admin-1"
    assert instruction["isActive"] is True

    listed = client.get(
        "/api/instructions", params={"companyId": company, "activeOnly": "true"}, headers=headers
    ).json()
    assert [i["id"] for i in listed["instructions"]] == [instruction["id"]]

    patched = client.patch(
        "/api/instructions",
        json={
            "companyId": company,
            "instructionId": instruction["id"],
            "updates": {"priority": "low"},
        },
        headers=headers,
    )
    assert patched.json()["instruction"]["priority"] == "low"

    deleted = client.delete(
        "/api/instructions",
        params={"companyId": company, "instructionId": instruction["id"]},
        headers=headers,
    )
    assert deleted.json() == {"success": True}

    remaining = client.get(
        "/api/instructions", params={"companyId": company, "activeOnly": "true"}, headers=headers
    ).json()
    assert remaining["instructions"] == []


def test_instruction_route_errors(client, company):
    headers = auth_headers("owner-1")

    empty = client.post(
        "/api/instructions",
        json={"companyId": company, "instruction": {"content": ""}},
        headers=headers,
    )
    missing = client.patch(
        "/api/instructions",
        json={"companyId": company, "instructionId": "nope", "updates": {"content": "x"}},
        headers=headers,
    )

    assert empty.status_code == 400
    assert empty.json()["error"] == "Instruction content is required"
    assert missing.status_code == 404


def test_update_rejects_null_for_required_fields(session, company):
    service = InstructionService(session)
    instruction = service.create_instruction(
        company,
        content="Gratis frakt over 500 kr",
        created_by="owner-1",
        priority=InstructionPriority.HIGH,
        expires_at=NOW,
    )

    for field in ("content", "category", "priority", "is_active"):
        with pytest.raises(ValueError):
            service.update_instruction(company, instruction.id, {field: None}, actor_id="owner-1")
    with pytest.raises(ValueError):
        service.update_instruction(
            company, instruction.id, {"content": "Ny", "priority": None}, actor_id="owner-1"
        )

    assert instruction.content == "Gratis frakt over 500 kr"
    assert instruction.priority == InstructionPriority.HIGH
    cleared = service.update_instruction(
        company, instruction.id, {"expires_at": None}, actor_id="owner-1"
    )
    assert cleared.expires_at is None


def test_patch_with_null_category_is_a_bad_request(client, company):
    headers = auth_headers("owner-1")
    instruction_id = client.post(
        "/api/instructions",
        json={"companyId": company, "instruction": {"content": "Svar alltid på norsk"}},
        headers=headers,
    ).json()["instruction"]["id"]

    response = client.patch(
        "/api/instructions",
        json={"companyId": company, "instructionId": instruction_id, "updates": {"category": None}},
        headers=headers,
    )
    inactive = client.patch(
        "/api/instructions",
        json={"companyId": company, "instructionId": instruction_id, "updates": {"isActive": None}},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "category cannot be null"}
    assert inactive.status_code == 400
    listed = client.get("/api/instructions", params={"companyId": company}, headers=headers).json()
    assert listed["instructions"][0]["category"] == "general"
    assert listed["instructions"][0]["isActive"] is True
