"""
Test configuration shared by the whole suite
"""

import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (uses the FastAPI app)"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests that go through the HTTP client as integration tests"""
    for item in items:
        fixtures = getattr(item, "fixturenames", ())
        if "client" in fixtures or "sync_app" in fixtures or "route" in item.name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
