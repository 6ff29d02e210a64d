"""
Virtual server records as reported by ServerQuery.

`serverlist` only fills the identity and capacity fields; `serverinfo`
(which requires the server to be selected) fills everything. Anything
the server didn't send stays at its zero value.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict


@dataclass
class VirtualServer:
    """One virtual server instance hosted by the queried process."""

    # Identity
    id: int = 0
    port: int = 0
    name: str = ""
    status: str = ""
    autostart: bool = False

    # Capacity
    clients_online: int = 0
    query_clients_online: int = 0
    max_clients: int = 0
    reserved_slots: int = 0
    channels_online: int = 0
    uptime: int = 0

    # Traffic totals
    bytes_sent_total: int = 0
    bytes_received_total: int = 0
    packets_sent_total: int = 0
    packets_received_total: int = 0

    # Traffic by packet class
    speech_bytes_sent: int = 0
    speech_bytes_received: int = 0
    control_bytes_sent: int = 0
    control_bytes_received: int = 0
    keepalive_bytes_sent: int = 0
    keepalive_bytes_received: int = 0
    speech_packets_sent: int = 0
    speech_packets_received: int = 0
    control_packets_sent: int = 0
    control_packets_received: int = 0
    keepalive_packets_sent: int = 0
    keepalive_packets_received: int = 0

    # File transfer (signed on the server side)
    total_bytes_uploaded: int = 0
    total_bytes_downloaded: int = 0

    # Quality (ratios 0.0 - 1.0, ping in ms)
    packet_loss_speech: float = 0.0
    packet_loss_keepalive: float = 0.0
    packet_loss_control: float = 0.0
    packet_loss_total: float = 0.0
    average_ping: float = 0.0

    @property
    def online(self) -> bool:
        return self.status == "online"

    @classmethod
    def from_properties(cls, props: Dict[str, str]) -> "VirtualServer":
        """Decode a ServerQuery property map. Raises ValueError on malformed numbers."""
        values = {}
        for f in fields(cls):
            key = PROPERTY_KEYS[f.name]
            raw = props.get(key)
            if raw is None or raw == "":
                continue
            if f.type in ("int", int):
                values[f.name] = int(raw)
            elif f.type in ("float", float):
                values[f.name] = float(raw)
            elif f.type in ("bool", bool):
                values[f.name] = raw not in ("0", "false")
            else:
                values[f.name] = raw
        return cls(**values)


# Dataclass field -> ServerQuery property name
PROPERTY_KEYS = {
    "id": "virtualserver_id",
    "port": "virtualserver_port",
    "name": "virtualserver_name",
    "status": "virtualserver_status",
    "autostart": "virtualserver_autostart",
    "clients_online": "virtualserver_clientsonline",
    "query_clients_online": "virtualserver_queryclientsonline",
    "max_clients": "virtualserver_maxclients",
    "reserved_slots": "virtualserver_reserved_slots",
    "channels_online": "virtualserver_channelsonline",
    "uptime": "virtualserver_uptime",
    "bytes_sent_total": "connection_bytes_sent_total",
    "bytes_received_total": "connection_bytes_received_total",
    "packets_sent_total": "connection_packets_sent_total",
    "packets_received_total": "connection_packets_received_total",
    "speech_bytes_sent": "connection_bytes_sent_speech",
    "speech_bytes_received": "connection_bytes_received_speech",
    "control_bytes_sent": "connection_bytes_sent_control",
    "control_bytes_received": "connection_bytes_received_control",
    "keepalive_bytes_sent": "connection_bytes_sent_keepalive",
    "keepalive_bytes_received": "connection_bytes_received_keepalive",
    "speech_packets_sent": "connection_packets_sent_speech",
    "speech_packets_received": "connection_packets_received_speech",
    "control_packets_sent": "connection_packets_sent_control",
    "control_packets_received": "connection_packets_received_control",
    "keepalive_packets_sent": "connection_packets_sent_keepalive",
    "keepalive_packets_received": "connection_packets_received_keepalive",
    "total_bytes_uploaded": "virtualserver_total_bytes_uploaded",
    "total_bytes_downloaded": "virtualserver_total_bytes_downloaded",
    "packet_loss_speech": "virtualserver_total_packetloss_speech",
    "packet_loss_keepalive": "virtualserver_total_packetloss_keepalive",
    "packet_loss_control": "virtualserver_total_packetloss_control",
    "packet_loss_total": "virtualserver_total_packetloss_total",
    "average_ping": "virtualserver_total_ping",
}
