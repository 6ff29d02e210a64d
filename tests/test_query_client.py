"""
Tests for QueryClient against the fake ServerQuery endpoint.

Starts the fake server in a thread on a free port and talks to it over
a real TCP connection.
"""

import socket
import threading

import pytest

from ts3stats.collector.enumerator import list_servers
from ts3stats.errors import AuthError, CommandError, QueryError, SelectionError, SessionQueryError
from ts3stats.mock.fake_query_server import FakeQueryServer, make_server_properties
from ts3stats.query.client import QueryClient, parse_address


@pytest.fixture
def fake_server():
    server = FakeQueryServer()
    server.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def client(fake_server):
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    c.login("serveradmin", "secret")
    yield c
    c.close()


def test_parse_address():
    assert parse_address("127.0.0.1") == ("127.0.0.1", 10011)
    assert parse_address("ts.example.com:10022") == ("ts.example.com", 10022)
    assert parse_address("[::1]:10011") == ("::1", 10011)
    assert parse_address("[::1]") == ("::1", 10011)
    with pytest.raises(ValueError):
        parse_address("host:abc")
    with pytest.raises(ValueError):
        parse_address(":10011")


def test_login_rejected(fake_server):
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    try:
        with pytest.raises(AuthError) as exc_info:
            c.login("serveradmin", "wrong")
        assert exc_info.value.code == 520
    finally:
        c.close()


def test_password_is_escaped(fake_server):
    fake_server.password = "p w|d/x"
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    try:
        c.login("serveradmin", "p w|d/x")
    finally:
        c.close()


def test_serverlist(client):
    items = client.execute("serverlist")
    assert [i["virtualserver_name"] for i in items] == ["Main Lobby", "Gaming Night", "Archive"]
    assert items[2]["virtualserver_status"] == "offline"


def test_whoami_tracks_selection(client):
    assert client.whoami().selected_port == 0

    client.use(2)
    who = client.whoami()
    assert who.selected_port == 9988
    assert who.selected_id == 2

    client.use_port(9987)
    assert client.whoami().selected_id == 1


def test_use_unknown_server(client):
    with pytest.raises(SelectionError) as exc_info:
        client.use(42)
    assert exc_info.value.code == 1024


def test_use_offline_server(client):
    with pytest.raises(SelectionError) as exc_info:
        client.use(3)
    assert exc_info.value.code == 1033


def test_command_error_carries_message(client, fake_server):
    fake_server.failures["serverinfo"] = (1281, "database empty result set")
    client.use(1)
    with pytest.raises(CommandError) as exc_info:
        client.execute("serverinfo")
    assert exc_info.value.code == 1281
    assert "database empty result set" in str(exc_info.value)


def test_commands_require_login(fake_server):
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    try:
        with pytest.raises(CommandError) as exc_info:
            c.execute("serverlist")
        assert exc_info.value.code == 518
    finally:
        c.close()


def test_full_scan_restores_selection(client):
    client.use(2)
    servers = list_servers(client)

    assert [s.id for s in servers] == [1, 2, 3]
    assert servers[0].average_ping == 23.5
    assert servers[1].clients_online == 12
    assert servers[2].bytes_sent_total == 0
    assert client.whoami().selected_port == 9988


def test_scan_failure_restores_selection(client, fake_server):
    fake_server.failures["use sid=2"] = (1024, "invalid serverID")
    client.use_port(9987)

    with pytest.raises(SelectionError):
        list_servers(client)
    assert client.whoami().selected_port == 9987
    assert fake_server.commands[-2] == "use port=9987"


def test_serverinfo_without_identity_keys(client, fake_server):
    fake_server.omit_identity_in_info = True
    servers = list_servers(client)
    assert [s.id for s in servers] == [1, 2, 3]


def test_escaped_names_survive_the_wire(fake_server):
    fake_server.servers = {7: make_server_properties(7, 9999, "Fun | Games / 18+")}
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    try:
        c.login("serveradmin", "secret")
        servers = list_servers(c)
        assert servers[0].name == "Fun | Games / 18+"
    finally:
        c.close()


def test_password_not_logged(fake_server, caplog):
    caplog.set_level("DEBUG", logger="ts3stats")
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    try:
        c.login("serveradmin", "secret")
    finally:
        c.close()
    assert "secret" not in caplog.text
    assert "client_login_password=***" in caplog.text


def test_connect_refused():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    with pytest.raises(QueryError):
        QueryClient.connect(f"127.0.0.1:{port}", timeout_seconds=1.0)


def test_rejects_non_query_endpoint():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)

    def serve():
        conn, _ = listener.accept()
        conn.sendall(b"HTTP/1.1 400 Bad Request\r\n\r\n")
        conn.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        with pytest.raises(QueryError):
            QueryClient.connect("127.0.0.1:%d" % listener.getsockname()[1], timeout_seconds=1.0)
    finally:
        listener.close()


def test_close_is_idempotent(fake_server):
    c = QueryClient.connect(fake_server.address, timeout_seconds=2.0)
    c.close()
    c.close()
    with pytest.raises(CommandError):
        c.execute("serverlist")


def test_garbled_whoami_port_is_session_error(client, fake_server):
    fake_server.whoami_overrides = {"virtualserver_port": "98x7"}

    with pytest.raises(SessionQueryError):
        client.whoami()


def test_garbled_whoami_aborts_scan_before_any_selection(client, fake_server):
    fake_server.whoami_overrides = {"virtualserver_port": "98x7"}

    with pytest.raises(SessionQueryError):
        list_servers(client)
    assert not any(c.startswith("use ") for c in fake_server.commands)
