# pylint: disable=missing-docstring,redefined-outer-name
import os

import pytest
from stub import Clock, StubCluster

from shardinit.admin import ClusterAdmin


def pytest_addoption(parser):
    """Add custom command-line options to pytest."""
    parser.addoption("--mongos-uri", help="MongoDB URI of the mongos router")
    parser.addoption("--runslow", action="store_true", default=False, help="run slow tests")


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_collection_modifyitems(config, items):
    """Skip tests marked "slow" unless --runslow is given."""
    if not config.getoption("--runslow"):
        skip_slow = pytest.mark.skip(reason="need --runslow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def mongos_uri(request: pytest.FixtureRequest):
    """Provide the mongos URI of a live cluster."""
    uri = request.config.getoption("--mongos-uri") or os.getenv("TEST_MONGOS_URI")
    if not uri:
        pytest.skip("need --mongos-uri or TEST_MONGOS_URI")
    return uri


@pytest.fixture
def clock(monkeypatch):
    """Run readiness polling on a fake clock."""
    fake = Clock()
    monkeypatch.setattr("shardinit.admin.time.sleep", fake.sleep)
    monkeypatch.setattr("shardinit.admin.time.monotonic", fake.monotonic)
    return fake


@pytest.fixture
def cluster(clock: Clock):
    return StubCluster(clock=clock)


@pytest.fixture
def admin(cluster: StubCluster):
    with ClusterAdmin(cluster.router_uri, connect=cluster.connect, wait_timeout=2) as adm:
        yield adm
