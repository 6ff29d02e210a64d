"""
Collector for a live TeamSpeak 3 server. Logs in once, then every
collect() runs a full scan over the same ServerQuery session and maps
each virtual server to a `teamspeak_server` measurement.
"""

from __future__ import annotations

import logging
from typing import List

from ts3stats.collector.base import MetricsCollector
from ts3stats.collector.enumerator import list_servers
from ts3stats.mapper import create_measurement
from ts3stats.measurement import Measurement
from ts3stats.query.client import QueryClient
from ts3stats.server import VirtualServer

log = logging.getLogger(__name__)


class TeamspeakCollector(MetricsCollector):

    def __init__(self, client: QueryClient, address: str = "", list_options: tuple = ()):
        self._client = client
        self._address = address
        self._list_options = tuple(list_options)

    @classmethod
    def connect(
        cls,
        address: str,
        username: str,
        password: str,
        timeout_seconds: float = 10.0,
    ) -> "TeamspeakCollector":
        """Connect and authenticate. Raises QueryError / AuthError."""
        client = QueryClient.connect(address, timeout_seconds=timeout_seconds)
        try:
            client.login(username, password)
        except Exception:
            client.close()
            raise
        log.info("Logged in to %s as %s", address, username)
        return cls(client, address=address)

    def servers(self) -> List[VirtualServer]:
        return list_servers(self._client, *self._list_options)

    def collect(self) -> List[Measurement]:
        return [create_measurement(server) for server in self.servers()]

    def name(self) -> str:
        return f"TeamSpeak 3 ({self._address or 'ServerQuery'})"

    def close(self):
        self._client.close()
