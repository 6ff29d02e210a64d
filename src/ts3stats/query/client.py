"""
Minimal TeamSpeak 3 ServerQuery client.

One TCP connection, strictly request/response. Commands issued after
`use` / `use_port` act on the selected virtual server, so the selection
is session state shared by everything that talks over this connection.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type

from ts3stats.errors import (
    AuthError,
    CommandError,
    QueryError,
    SelectionError,
    SessionQueryError,
)
from ts3stats.query.codec import build_command, parse_data, parse_status

log = logging.getLogger(__name__)

DEFAULT_PORT = 10011

_REDACTED_PARAMS = ("client_login_password",)


@dataclass
class WhoAmI:
    """What the session currently is and which server it has selected.

    `selected_port` / `selected_id` are 0 when nothing is selected.
    """

    selected_port: int
    selected_id: int
    status: str = ""
    client_id: int = 0
    nickname: str = ""

    @classmethod
    def from_properties(cls, props: Dict[str, str]) -> "WhoAmI":
        return cls(
            selected_port=_to_int(props.get("virtualserver_port")),
            selected_id=_to_int(props.get("virtualserver_id")),
            status=props.get("virtualserver_status", ""),
            client_id=_to_int(props.get("client_id")),
            nickname=props.get("client_nickname", ""),
        )


def _to_int(value: Optional[str]) -> int:
    """Missing or empty means 0. Anything else must be a number (ValueError otherwise)."""
    return int(value) if value else 0


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> Tuple[str, int]:
    """Split "host[:port]" into (host, port). Bracketed IPv6 is accepted."""
    address = address.strip()
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, port = address.split(":")
    else:
        host, port = address, ""

    if not host:
        raise ValueError(f"missing host in {address!r}")
    try:
        return host, int(port) if port else default_port
    except ValueError:
        raise ValueError(f"invalid port in {address!r}") from None


class QueryClient:
    """A connected ServerQuery session."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._reader = sock.makefile("rb")
        self._closed = False
        self._read_banner()

    @classmethod
    def connect(cls, address: str, timeout_seconds: float = 10.0) -> "QueryClient":
        """Open a connection to "host[:port]". Raises QueryError if unreachable."""
        host, port = parse_address(address)
        log.debug("Connecting to ServerQuery at %s:%d", host, port)
        try:
            sock = socket.create_connection((host, port), timeout=timeout_seconds)
        except OSError as e:
            raise QueryError(f"could not connect to {host}:{port}: {e}") from e
        try:
            return cls(sock)
        except QueryError:
            sock.close()
            raise

    def _read_banner(self):
        # "TS3" followed by a free-form welcome line
        first = self._readline(QueryError)
        if first != "TS3":
            raise QueryError(f"not a TeamSpeak 3 ServerQuery endpoint (got {first!r})")
        self._readline(QueryError)

    def _readline(self, error_cls: Type[QueryError]) -> str:
        try:
            raw = self._reader.readline()
        except OSError as e:
            raise error_cls(f"read failed: {e}") from e
        if not raw:
            raise error_cls("connection closed by server")
        return raw.decode("utf-8", errors="replace").strip("\r\n")

    def _send(self, line: str, error_cls: Type[QueryError]):
        try:
            self._sock.sendall(line.encode("utf-8") + b"\n")
        except OSError as e:
            raise error_cls(f"send failed: {e}") from e

    def execute(
        self,
        command: str,
        *options: str,
        error_cls: Type[QueryError] = CommandError,
        **params,
    ) -> List[Dict[str, str]]:
        """Run one command and return its decoded items.

        Raises `error_cls` when the server answers with a non-zero error id
        or the connection fails.
        """
        if self._closed:
            raise error_cls(f"{command}: client is closed")

        line = build_command(command, *options, **params)
        log.debug("-> %s", self._redact(command, options, params))
        self._send(line, error_cls)

        data_lines: List[str] = []
        while True:
            response = self._readline(error_cls)
            status = parse_status(response)
            if status is None:
                if response.startswith("notify"):
                    continue
                data_lines.append(response)
                continue

            log.debug("<- error id=%d msg=%s", status.code, status.message)
            if not status.ok:
                message = f"{command}: {status.message}"
                if status.extra_message:
                    message += f" ({status.extra_message})"
                raise error_cls(message, code=status.code)
            break

        return parse_data(data_lines)

    @staticmethod
    def _redact(command: str, options, params) -> str:
        shown = {k: ("***" if k in _REDACTED_PARAMS else v) for k, v in params.items()}
        return build_command(command, *options, **shown)

    def login(self, username: str, password: str):
        self.execute(
            "login",
            error_cls=AuthError,
            client_login_name=username,
            client_login_password=password,
        )

    def use(self, server_id: int):
        self.execute("use", error_cls=SelectionError, sid=server_id)

    def use_port(self, port: int):
        self.execute("use", error_cls=SelectionError, port=port)

    def whoami(self) -> WhoAmI:
        items = self.execute("whoami", error_cls=SessionQueryError)
        if not items:
            raise SessionQueryError("whoami: empty response")
        try:
            return WhoAmI.from_properties(items[0])
        except ValueError as e:
            raise SessionQueryError(f"whoami: undecodable response: {e}") from e

    def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.sendall(b"quit\n")
        except OSError:
            pass  # already gone
        self._reader.close()
        self._sock.close()

    def __enter__(self) -> "QueryClient":
        return self

    def __exit__(self, *exc):
        self.close()
