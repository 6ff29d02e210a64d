"""
Maps a VirtualServer onto the `teamspeak_server` measurement.

Field names and widths are what existing dashboards query, so treat
them as fixed. Works for offline records too: their extended fields are
simply zero.
"""

from __future__ import annotations

from ts3stats.measurement import Measurement
from ts3stats.server import VirtualServer

MEASUREMENT_NAME = "teamspeak_server"

_UINT64_MAX = (1 << 64) - 1
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _uint(value: int) -> int:
    """Clamp into the uint64 range; negative counters read as 0."""
    return min(max(0, value), _UINT64_MAX)


def _int64(value: int) -> int:
    return min(max(_INT64_MIN, value), _INT64_MAX)


def voice_clients(server: VirtualServer) -> int:
    """Clients that are not query connections. Never negative."""
    return max(0, server.clients_online - server.query_clients_online)


def create_measurement(server: VirtualServer) -> Measurement:
    m = Measurement(MEASUREMENT_NAME)
    m.add_tag("port", str(server.port))
    m.add_tag("id", str(server.id))
    m.add_tag("name", server.name)

    # uint16 on the wire; out-of-range values wrap
    m.add_uint("port", server.port & 0xFFFF, bits=16)
    m.add_uint("id", server.id & 0xFFFF, bits=16)

    m.add_bool("online", server.online)
    m.add_uint("v_clients", _uint(voice_clients(server)))
    m.add_uint("q_clients", _uint(server.query_clients_online))
    m.add_uint("m_clients", _uint(server.max_clients))
    m.add_bool("autostart", server.autostart)
    m.add_uint("bytes_out", _uint(server.bytes_sent_total))
    m.add_uint("bytes_in", _uint(server.bytes_received_total))
    m.add_uint("channels", _uint(server.channels_online))
    m.add_uint("reserved_slots", _uint(server.reserved_slots))
    m.add_uint("uptime", _uint(server.uptime))
    m.add_uint("packets_in", _uint(server.packets_received_total))
    m.add_uint("packets_out", _uint(server.packets_sent_total))
    m.add_int("ft_bytes_in_total", _int64(server.total_bytes_uploaded))
    m.add_int("ft_bytes_out_total", _int64(server.total_bytes_downloaded))
    m.add_float("pl_control", server.packet_loss_control)
    m.add_float("pl_speech", server.packet_loss_speech)
    m.add_float("pl_keepalive", server.packet_loss_keepalive)
    m.add_float("pl_total", server.packet_loss_total)

    m.add_uint("bytes_out_speech", _uint(server.speech_bytes_sent))
    m.add_uint("bytes_in_speech", _uint(server.speech_bytes_received))
    m.add_uint("bytes_out_control", _uint(server.control_bytes_sent))
    m.add_uint("bytes_in_control", _uint(server.control_bytes_received))
    m.add_uint("bytes_out_keepalive", _uint(server.keepalive_bytes_sent))
    m.add_uint("bytes_in_keepalive", _uint(server.keepalive_bytes_received))

    m.add_uint("packets_out_speech", _uint(server.speech_packets_sent))
    m.add_uint("packets_in_speech", _uint(server.speech_packets_received))
    m.add_uint("packets_out_control", _uint(server.control_packets_sent))
    m.add_uint("packets_in_control", _uint(server.control_packets_received))
    # keepalive packet fields put the direction last
    m.add_uint("packets_keepalive_out", _uint(server.keepalive_packets_sent))
    m.add_uint("packets_keepalive_in", _uint(server.keepalive_packets_received))

    m.add_float("avg_ping", server.average_ping, bits=32)
    return m
