"""
Error taxonomy for the collector.

Every failure that can end a scan has its own type so the poll loop
can report it precisely. Nothing in the core retries.
"""

from __future__ import annotations

from typing import Optional


class CollectorError(Exception):
    """Base class for everything the collector raises on purpose."""


class QueryError(CollectorError):
    """A ServerQuery command failed, either on the wire or with a non-zero error id.

    `code` is the server's error id, or None when the transport failed
    before the server could answer.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (error id {self.code})"


class AuthError(QueryError):
    """Login rejected."""


class SessionQueryError(QueryError):
    """whoami failed, so the current selection is unknown."""


class SelectionError(QueryError):
    """use / use port was rejected or the target server vanished."""


class CommandError(QueryError):
    """A data command (serverlist, serverinfo) failed or could not be decoded."""


class RestorationError(CollectorError):
    """Re-selecting the original server after a scan failed.

    If another error was already propagating when restoration ran, it is
    kept on `primary` so both failures stay visible.
    """

    def __init__(self, port: int, cause: Exception, primary: Optional[BaseException] = None):
        self.port = port
        self.cause = cause
        self.primary = primary
        message = f"could not restore selection to port {port}: {cause}"
        if primary is not None:
            message += f" (while handling: {primary!r})"
        super().__init__(message)


class WriteError(CollectorError):
    """The metrics sink rejected a measurement or could not be reached."""
