"""Tests for the Telegraf socket sink against real local listeners."""

import os
import socket
import tempfile
import threading

import pytest

from ts3stats.errors import WriteError
from ts3stats.measurement import Measurement
from ts3stats.output.telegraf import TelegrafSink


def _measurement(clients: int = 3) -> Measurement:
    m = Measurement("teamspeak_server")
    m.add_tag("port", "9987")
    m.add_uint("v_clients", clients)
    return m


def _accept_lines(listener: socket.socket, received: list, done: threading.Event):
    conn, _ = listener.accept()
    with conn:
        data = b""
        while True:
            chunk = conn.recv(4096)
            if not chunk:
                break
            data += chunk
    received.extend(data.decode().splitlines())
    done.set()


def test_udp_write():
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    receiver.settimeout(2.0)
    port = receiver.getsockname()[1]

    try:
        with TelegrafSink.from_url(f"udp:127.0.0.1:{port}") as sink:
            sink.write(_measurement())
        data, _ = receiver.recvfrom(4096)
        assert data == b"teamspeak_server,port=9987 v_clients=3u\n"
    finally:
        receiver.close()


def test_tcp_write_keeps_connection_open():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    received, done = [], threading.Event()
    threading.Thread(target=_accept_lines, args=(listener, received, done), daemon=True).start()

    try:
        sink = TelegrafSink.from_url("tcp:127.0.0.1:%d" % listener.getsockname()[1])
        sink.write(_measurement(1))
        sink.write(_measurement(2))
        sink.close()

        assert done.wait(2.0)
        assert received == [
            "teamspeak_server,port=9987 v_clients=1u",
            "teamspeak_server,port=9987 v_clients=2u",
        ]
    finally:
        listener.close()


@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="unix sockets not available")
def test_unix_write():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "telegraf.sock")
        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        listener.bind(path)
        listener.listen(1)
        received, done = [], threading.Event()
        threading.Thread(target=_accept_lines, args=(listener, received, done), daemon=True).start()

        try:
            with TelegrafSink.from_url(f"unix:{path}") as sink:
                sink.write(_measurement())
            assert done.wait(2.0)
            assert received == ["teamspeak_server,port=9987 v_clients=3u"]
        finally:
            listener.close()


def test_unsupported_scheme():
    with pytest.raises(ValueError):
        TelegrafSink.from_url("http://localhost:8086")
    with pytest.raises(ValueError):
        TelegrafSink.from_url("udp:")
    with pytest.raises(ValueError):
        TelegrafSink.from_url("tcp:localhost")


def test_unreachable_unix_socket():
    with pytest.raises(WriteError):
        TelegrafSink.from_url("unix:/nonexistent/ts3stats/telegraf.sock")


def test_write_after_close():
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    try:
        sink = TelegrafSink.from_url("udp:127.0.0.1:%d" % receiver.getsockname()[1])
        sink.close()
        sink.close()
        with pytest.raises(WriteError):
            sink.write(_measurement())
    finally:
        receiver.close()
