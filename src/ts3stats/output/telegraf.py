"""
Writes measurements to a Telegraf socket_listener.

    unix:/var/run/telegraf/telegraf.sock
    tcp:127.0.0.1:8094
    udp:127.0.0.1:8094
"""

from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple

from ts3stats.errors import WriteError
from ts3stats.measurement import Measurement

log = logging.getLogger(__name__)

DEFAULT_OUTPUT = "unix:/var/run/telegraf/telegraf.sock"

SCHEMES = ("unix", "tcp", "udp")


def _split_host_port(target: str) -> Tuple[str, int]:
    host, sep, port = target.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"expected host:port, got {target!r}")
    return host.strip("[]"), int(port)


class TelegrafSink:
    """One socket to Telegraf. Stream sockets stay open between writes."""

    def __init__(self, sock: socket.socket, scheme: str, target, url: str = ""):
        self._sock: Optional[socket.socket] = sock
        self._scheme = scheme
        self._target = target
        self.url = url or f"{scheme}:{target}"

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float = 5.0) -> "TelegrafSink":
        """Open a sink. Raises ValueError for a bad URL, WriteError if unreachable."""
        scheme, sep, rest = url.partition(":")
        if not sep or scheme not in SCHEMES or not rest:
            raise ValueError(f"unsupported output {url!r}, use unix:, tcp: or udp:")

        try:
            if scheme == "unix":
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                sock.settimeout(timeout_seconds)
                target = rest
                try:
                    sock.connect(target)
                except OSError:
                    sock.close()
                    raise
            elif scheme == "tcp":
                target = _split_host_port(rest)
                sock = socket.create_connection(target, timeout=timeout_seconds)
            else:
                target = _split_host_port(rest)
                family = socket.getaddrinfo(target[0], target[1], type=socket.SOCK_DGRAM)[0][0]
                sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as e:
            raise WriteError(f"could not connect to telegraf at {url}: {e}") from e

        log.debug("Telegraf output ready: %s", url)
        return cls(sock, scheme, target, url=url)

    def write(self, measurement: Measurement):
        if self._sock is None:
            raise WriteError(f"{self.url}: sink is closed")

        payload = (measurement.to_line() + "\n").encode("utf-8")
        try:
            if self._scheme == "udp":
                self._sock.sendto(payload, self._target)
            else:
                self._sock.sendall(payload)
        except OSError as e:
            raise WriteError(f"writing {measurement.name} to {self.url} failed: {e}") from e

    def close(self):
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "TelegrafSink":
        return self

    def __exit__(self, *exc):
        self.close()
