"""
Fake TeamSpeak 3 ServerQuery endpoint for testing without a real server.

    python -m ts3stats.mock.fake_query_server
    ts3stats --server 127.0.0.1:10111 --output udp:127.0.0.1:8094 --once

Speaks just enough of the protocol for a scan: login, serverlist,
whoami, use, serverinfo and quit. Selection is tracked per connection,
like the real thing.
"""

from __future__ import annotations

import socketserver
import threading
from typing import Dict, List, Optional, Tuple

from ts3stats.query.codec import escape, parse_properties

OK = (0, "ok")
NOT_LOGGED_IN = (518, "not logged in")
INVALID_LOGIN = (520, "invalid loginname or password")
INVALID_SERVER_ID = (1024, "invalid serverID")
SERVER_NOT_RUNNING = (1033, "server is not running")
COMMAND_NOT_FOUND = (256, "command not found")

_LIST_KEYS = (
    "virtualserver_id",
    "virtualserver_port",
    "virtualserver_status",
    "virtualserver_clientsonline",
    "virtualserver_queryclientsonline",
    "virtualserver_maxclients",
    "virtualserver_uptime",
    "virtualserver_name",
    "virtualserver_autostart",
)


def make_server_properties(sid: int, port: int, name: str, online: bool = True, **extra) -> Dict[str, str]:
    """Property map for one virtual server, as serverinfo would return it."""
    props = {
        "virtualserver_id": str(sid),
        "virtualserver_port": str(port),
        "virtualserver_name": name,
        "virtualserver_status": "online" if online else "offline",
        "virtualserver_autostart": "1",
        "virtualserver_maxclients": "32",
    }
    if online:
        props.update({
            "virtualserver_clientsonline": "5",
            "virtualserver_queryclientsonline": "1",
            "virtualserver_reserved_slots": "2",
            "virtualserver_channelsonline": "4",
            "virtualserver_uptime": "3600",
            "connection_bytes_sent_total": "1048576",
            "connection_bytes_received_total": "524288",
            "connection_packets_sent_total": "9000",
            "connection_packets_received_total": "8000",
            "connection_bytes_sent_speech": "700000",
            "connection_bytes_received_speech": "300000",
            "connection_bytes_sent_control": "200000",
            "connection_bytes_received_control": "150000",
            "connection_bytes_sent_keepalive": "148576",
            "connection_bytes_received_keepalive": "74288",
            "connection_packets_sent_speech": "6000",
            "connection_packets_received_speech": "5000",
            "connection_packets_sent_control": "2000",
            "connection_packets_received_control": "2000",
            "connection_packets_sent_keepalive": "1000",
            "connection_packets_received_keepalive": "1000",
            "virtualserver_total_bytes_uploaded": "4096",
            "virtualserver_total_bytes_downloaded": "8192",
            "virtualserver_total_packetloss_speech": "0.0100",
            "virtualserver_total_packetloss_keepalive": "0.0200",
            "virtualserver_total_packetloss_control": "0.0000",
            "virtualserver_total_packetloss_total": "0.0125",
            "virtualserver_total_ping": "23.5000",
        })
    props.update({k: str(v) for k, v in extra.items()})
    return props


def _encode_item(props: Dict[str, str]) -> str:
    return " ".join(f"{k}={escape(v)}" for k, v in props.items())


class _QueryHandler(socketserver.StreamRequestHandler):

    def setup(self):
        super().setup()
        self.logged_in = False
        self.selected: Optional[int] = None

    def _send(self, line: str):
        self.wfile.write(line.encode("utf-8") + b"\n\r")

    def _status(self, status: Tuple[int, str]):
        self._send(f"error id={status[0]} msg={escape(status[1])}")

    def handle(self):
        self._send("TS3")
        self._send('Welcome to the TeamSpeak 3 ServerQuery interface, type "help" for a list of commands.')

        for raw in self.rfile:
            line = raw.decode("utf-8").strip()
            if not line:
                continue
            self.server.record(line)

            command, _, rest = line.partition(" ")
            if command == "quit":
                return

            forced = self.server.forced_failure(line)
            if forced:
                self._status(forced)
                continue

            handler = getattr(self, f"cmd_{command}", None)
            if handler is None:
                self._status(COMMAND_NOT_FOUND)
                continue
            if command not in ("login", "whoami") and not self.logged_in:
                self._status(NOT_LOGGED_IN)
                continue

            props = parse_properties(rest)
            status = handler(props)
            self._status(status)

    def cmd_login(self, props):
        creds = (props.get("client_login_name"), props.get("client_login_password"))
        if creds != (self.server.username, self.server.password):
            return INVALID_LOGIN
        self.logged_in = True
        return OK

    def cmd_whoami(self, props):
        current = self.server.servers.get(self.selected, {}) if self.selected else {}
        item = {
            "virtualserver_status": current.get("virtualserver_status", "unknown"),
            "virtualserver_id": current.get("virtualserver_id", "0"),
            "virtualserver_port": current.get("virtualserver_port", "0"),
            "client_id": "1",
            "client_nickname": "serveradmin",
        }
        item.update(self.server.whoami_overrides)
        self._send(_encode_item(item))
        return OK

    def cmd_serverlist(self, props):
        items = [
            {k: v for k, v in s.items() if k in _LIST_KEYS}
            for s in self.server.servers.values()
        ]
        if items:
            self._send("|".join(_encode_item(i) for i in items))
        return OK

    def cmd_use(self, props):
        if "port" in props:
            port = int(props["port"])
            if port == 0:
                self.selected = None
                return OK
            matches = [sid for sid, s in self.server.servers.items() if int(s["virtualserver_port"]) == port]
            if not matches:
                return INVALID_SERVER_ID
            sid = matches[0]
        else:
            sid = int(props.get("sid", "0"))
            if sid not in self.server.servers:
                return INVALID_SERVER_ID
        if self.server.servers[sid].get("virtualserver_status") != "online":
            return SERVER_NOT_RUNNING
        self.selected = sid
        return OK

    def cmd_serverinfo(self, props):
        if not self.selected:
            return INVALID_SERVER_ID
        info = dict(self.server.servers[self.selected])
        if self.server.omit_identity_in_info:
            info.pop("virtualserver_id", None)
        self._send(_encode_item(info))
        return OK


class FakeQueryServer(socketserver.ThreadingTCPServer):
    """ServerQuery stand-in. Bind to port 0 and read `server_address` in tests.

    `failures` maps a command-line prefix (e.g. "serverinfo", "use sid=2")
    to the (error id, message) the server should answer with instead.
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        address: Tuple[str, int] = ("127.0.0.1", 0),
        servers: Optional[List[Dict[str, str]]] = None,
        username: str = "serveradmin",
        password: str = "secret",
    ):
        super().__init__(address, _QueryHandler)
        if servers is None:
            servers = _default_servers()
        self.servers: Dict[int, Dict[str, str]] = {int(s["virtualserver_id"]): s for s in servers}
        self.username = username
        self.password = password
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.omit_identity_in_info = False
        self.whoami_overrides: Dict[str, str] = {}
        self.commands: List[str] = []
        self._lock = threading.Lock()

    @property
    def address(self) -> str:
        host, port = self.server_address[:2]
        return f"{host}:{port}"

    def record(self, line: str):
        with self._lock:
            self.commands.append(line)

    def forced_failure(self, line: str) -> Optional[Tuple[int, str]]:
        for prefix, status in self.failures.items():
            if line.startswith(prefix):
                return status
        return None

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self.serve_forever, daemon=True)
        thread.start()
        return thread


def _default_servers() -> List[Dict[str, str]]:
    return [
        make_server_properties(1, 9987, "Main Lobby"),
        make_server_properties(2, 9988, "Gaming Night", virtualserver_clientsonline=12,
                               virtualserver_queryclientsonline=2, virtualserver_total_ping="41.2500"),
        make_server_properties(3, 9989, "Archive", online=False),
    ]


def run_fake_server(host: str = "127.0.0.1", port: int = 10111):
    server = FakeQueryServer((host, port))
    print(f"Fake ServerQuery running at {host}:{port} (serveradmin / secret)")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
