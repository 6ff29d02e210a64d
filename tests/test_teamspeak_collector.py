"""Tests for TeamspeakCollector against the fake ServerQuery endpoint."""

import pytest

from ts3stats.collector.teamspeak import TeamspeakCollector
from ts3stats.errors import AuthError
from ts3stats.mock.fake_query_server import FakeQueryServer


@pytest.fixture
def fake_server():
    server = FakeQueryServer()
    server.start()
    yield server
    server.shutdown()
    server.server_close()


def test_collect_returns_one_measurement_per_server(fake_server):
    collector = TeamspeakCollector.connect(fake_server.address, "serveradmin", "secret", timeout_seconds=2.0)
    try:
        measurements = collector.collect()
        assert [m.tags["port"] for m in measurements] == ["9987", "9988", "9989"]
        assert all(m.name == "teamspeak_server" for m in measurements)
        assert measurements[1].value("v_clients") == 10

        # same session, second tick
        assert len(collector.collect()) == 3
    finally:
        collector.close()


def test_collector_name_includes_address(fake_server):
    collector = TeamspeakCollector.connect(fake_server.address, "serveradmin", "secret", timeout_seconds=2.0)
    try:
        assert fake_server.address in collector.name()
    finally:
        collector.close()


def test_connect_with_bad_password(fake_server):
    with pytest.raises(AuthError):
        TeamspeakCollector.connect(fake_server.address, "serveradmin", "nope", timeout_seconds=2.0)
