import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the config overlay the ordering domain is initialized with.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(autouse=True)
def reset_collaborators():
    """Fixture to put every swappable collaborator back to its default around each test"""
    from ordering.catalogue import reset_catalogue
    from ordering.pricing.rules import reset_pricing_rules
    from ordering.promotions import reset_coupons
    from payments.gateway import reset_gateway

    reset_catalogue()
    reset_coupons()
    reset_gateway()
    reset_pricing_rules()

    yield

    reset_catalogue()
    reset_coupons()
    reset_gateway()
    reset_pricing_rules()
