"""
TeamSpeak 3 ServerQuery text codec. No external deps.

A response is zero or more data lines followed by a status line:

    virtualserver_id=1 virtualserver_port=9987|virtualserver_id=2 ...
    error id=0 msg=ok

Items are separated by `|`, properties by spaces, and values use
backslash escapes for anything that would break that framing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

# Order matters: the backslash must be escaped first and unescaped last.
_ESCAPES = [
    ("\\", "\\\\"),
    ("/", "\\/"),
    (" ", "\\s"),
    ("|", "\\p"),
    ("\a", "\\a"),
    ("\b", "\\b"),
    ("\f", "\\f"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\v", "\\v"),
]

_UNESCAPES = {escaped[1]: raw for raw, escaped in _ESCAPES}


@dataclass
class QueryStatus:
    """The trailing `error id=.. msg=..` line of every response."""

    code: int
    message: str
    extra_message: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0


def escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape(value: str) -> str:
    # Single pass so that "\\s" decodes to "\s" and not to "\ ".
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            out.append(_UNESCAPES.get(value[i + 1], value[i + 1]))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return escape(str(value))


def build_command(name: str, *options: str, **params) -> str:
    """Render a command line, e.g. build_command("use", sid=1) -> "use sid=1".

    Options are passed through verbatim; a leading dash is added if missing.
    Parameters with a None value are skipped.
    """
    parts = [name]
    for key, value in params.items():
        if value is None:
            continue
        parts.append(f"{key}={_format_value(value)}")
    for option in options:
        parts.append(option if option.startswith("-") else f"-{option}")
    return " ".join(parts)


def parse_properties(item: str) -> Dict[str, str]:
    """Decode one `key=value key2=value2` item. Bare keys map to ""."""
    props: Dict[str, str] = {}
    for token in item.split(" "):
        if not token:
            continue
        key, sep, value = token.partition("=")
        props[key] = unescape(value) if sep else ""
    return props


def parse_data(lines: List[str]) -> List[Dict[str, str]]:
    """Decode the data lines of a response into one dict per item."""
    items: List[Dict[str, str]] = []
    for line in lines:
        line = line.strip("\r\n")
        if not line:
            continue
        for raw_item in line.split("|"):
            items.append(parse_properties(raw_item))
    return items


def parse_status(line: str) -> Optional[QueryStatus]:
    """Returns the status if `line` is an `error ...` line, otherwise None."""
    line = line.strip("\r\n")
    if not line.startswith("error "):
        return None

    props = parse_properties(line[len("error "):])
    try:
        code = int(props.get("id", ""))
    except ValueError:
        return None

    return QueryStatus(
        code=code,
        message=props.get("msg", ""),
        extra_message=props.get("extra_msg", ""),
    )
