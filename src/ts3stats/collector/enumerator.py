"""
Walks every virtual server on a ServerQuery session.

`serverinfo` only reports on the selected server, so the scan has to
re-select each online instance in turn. The session's selection is
shared with whoever uses the connection next, so it is captured before
the first `use` and put back afterwards on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from ts3stats.errors import CommandError, RestorationError, SelectionError
from ts3stats.server import VirtualServer

log = logging.getLogger(__name__)


def _decode(command: str, props: Dict[str, str]) -> VirtualServer:
    try:
        return VirtualServer.from_properties(props)
    except ValueError as e:
        raise CommandError(f"{command}: undecodable response: {e}") from e


@contextmanager
def preserved_selection(client) -> Iterator[int]:
    """Capture the selected port, run the body, then select that port again.

    Raises SessionQueryError (from whoami) before the body runs if the
    selection can't be read. If restoring fails, RestorationError is
    raised with any error the body raised kept on `.primary`.
    """
    port = client.whoami().selected_port
    log.debug("Selection before scan: port %d", port)

    primary: Optional[BaseException] = None
    try:
        yield port
    except BaseException as e:
        primary = e
        raise
    finally:
        try:
            client.use_port(port)
        except SelectionError as e:
            if primary is not None:
                log.error("Restoring selection failed after %r: %s", primary, e)
            raise RestorationError(port, e, primary=primary) from e


def list_servers(client, *options: str) -> List[VirtualServer]:
    """Return every virtual server, with extended stats for the online ones.

    Output order follows `serverlist`. Offline servers come back with
    only the fields `serverlist` reports. Any failing command fails the
    whole call; there is no partial result.
    """
    listed = [(props, _decode("serverlist", props)) for props in client.execute("serverlist", *options)]

    servers: List[VirtualServer] = []
    with preserved_selection(client):
        for props, server in listed:
            if not server.online:
                servers.append(server)
                continue

            client.use(server.id)
            info = client.execute("serverinfo")
            if not info:
                raise CommandError(f"serverinfo: empty response for server {server.id}")
            # serverinfo may leave out identity keys that serverlist had
            servers.append(_decode("serverinfo", {**props, **info[0]}))

    log.debug("Scanned %d virtual servers", len(servers))
    return servers
