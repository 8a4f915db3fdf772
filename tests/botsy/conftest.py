"""Fixtures for the Botsy tests: in-memory app and a seeded tenant."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from packages.botsy.models import MembershipRole

from .helpers import create_test_app, seed_company


@pytest.fixture
def app():
    return create_test_app()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def session(app):
    session = app.state.database.session()
    yield session
    session.close()


@pytest.fixture
def company(session):
    seed_company(
        session,
        members=(("admin-1", MembershipRole.ADMIN), ("emp-1", MembershipRole.EMPLOYEE)),
    )
    return "c1"
