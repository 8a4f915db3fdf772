import pytest

from packages.botsy.leaderboard import LeaderboardService, current_month, month_name
from packages.botsy.leaderboard.service import total_score
from packages.botsy.models import MembershipRole

from .helpers import auth_headers, seed_company


def test_month_helpers():
    assert month_name("2024-03") == "Mars"
    assert month_name("2024-12") == "Desember"
    with pytest.raises(ValueError):
        month_name("2024-13")
    assert len(current_month()) == 7


def test_score_weights_feedback():
    assert total_score(answered_customers=3, positive_feedback=2) == 13


def test_record_feedback_accumulates(session, company):
    service = LeaderboardService(session)

    service.record_feedback("emp-1", company, "answered_customer")
    service.record_feedback("emp-1", company, "answered_customer")
    perf = service.record_feedback("emp-1", company, "positive_feedback")

    assert perf.id == f"{company}_emp-1_{current_month()}"
    assert perf.answered_customers == 2
    assert perf.positive_feedback == 1
    assert perf.total_score == 7
    with pytest.raises(ValueError):
        service.record_feedback("emp-1", company, "negative_feedback")


def test_leaderboard_ranks_all_active_members(session):
    seed_company(
        session,
        members=(("anna", MembershipRole.EMPLOYEE), ("bjorn", MembershipRole.EMPLOYEE)),
    )
    service = LeaderboardService(session)
    service.record_feedback("bjorn", "c1", "positive_feedback")
    service.record_feedback("anna", "c1", "answered_customer")

    entries = service.get_leaderboard("c1", top_count=0)

    assert [(e.user_id, e.total_score, e.rank) for e in entries] == [
        ("bjorn", 5, 1),
        ("anna", 1, 2),
        ("owner-1", 0, 3),
    ]
    assert len(service.get_leaderboard("c1", top_count=2)) == 2


def test_leaderboard_route(client, session, company):
    LeaderboardService(session).record_feedback("emp-1", company, "positive_feedback")

    response = client.get(
        "/api/leaderboard", params={"companyId": company}, headers=auth_headers("emp-1")
    )

    assert response.status_code == 200
    assert response.headers["cache-control"].startswith("private")
    data = response.json()
    assert data["month"] == current_month()
    assert data["monthName"] == month_name(current_month())
    assert len(data["leaderboard"]) == 3
    assert data["leaderboard"][0]["userId"] == "emp-1"
    assert data["leaderboard"][0]["totalScore"] == 5


def test_leaderboard_include_all(client, session, company):
    LeaderboardService(session).record_feedback("admin-1", company, "answered_customer")

    data = client.get(
        "/api/leaderboard",
        params={"companyId": company, "includeAll": "true"},
        headers=auth_headers("owner-1"),
    ).json()

    assert "leaderboard" not in data
    assert [p["userId"] for p in data["performances"]] == ["admin-1"]


def test_feedback_route(client, session, company):
    response = client.post(
        "/api/leaderboard/feedback",
        json={"userId": "emp-1", "companyId": company, "type": "positive_feedback"},
        headers=auth_headers("admin-1"),
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    session.expire_all()
    assert LeaderboardService(session).get_performance("emp-1", company).positive_feedback == 1


def test_feedback_route_validation(client, company):
    missing = client.post(
        "/api/leaderboard/feedback", json={"userId": "emp-1"}, headers=auth_headers("admin-1")
    )
    bad_type = client.post(
        "/api/leaderboard/feedback",
        json={"userId": "emp-1", "companyId": company, "type": "like"},
        headers=auth_headers("admin-1"),
    )
    forbidden = client.post(
        "/api/leaderboard/feedback",
        json={"userId": "emp-1", "companyId": company, "type": "positive_feedback"},
        headers=auth_headers("stranger"),
    )

    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields"
    assert bad_type.status_code == 400
    assert forbidden.status_code == 403
