"""
Typed measurements and their InfluxDB line protocol encoding.

Telegraf's socket listener takes line protocol, where the field type is
carried by the literal itself: `1u` unsigned, `1i` signed, `1.5` float,
`true` bool, `"text"` string. Widths are only checked here so that a
value the dashboards expect as, say, uint16 can't silently grow.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

FieldValue = Union[int, float, bool, str]


@dataclass(frozen=True)
class Field:
    value: FieldValue
    kind: str   # "uint", "int", "float", "bool", "string"
    bits: int = 0

    def encode(self) -> str:
        if self.kind == "uint":
            return f"{self.value}u"
        if self.kind == "int":
            return f"{self.value}i"
        if self.kind == "float":
            return repr(float(self.value))
        if self.kind == "bool":
            return "true" if self.value else "false"
        text = _flatten(str(self.value)).replace("\\", "\\\\").replace('"', '\\"')
        return f'"{text}"'


def _flatten(value: str) -> str:
    # line protocol has no escape for line breaks
    return value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _escape_key(value: str) -> str:
    return _flatten(value).replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


def _escape_name(value: str) -> str:
    return _flatten(value).replace("\\", "\\\\").replace(",", "\\,").replace(" ", "\\ ")


@dataclass
class Measurement:
    """A named set of string tags plus typed fields, written as one line."""

    name: str
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, Field] = field(default_factory=dict)
    timestamp_ns: Optional[int] = None

    def add_tag(self, key: str, value: str):
        self.tags[key] = str(value)

    def add_uint(self, key: str, value: int, bits: int = 64):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{key}: expected an integer, got {value!r}")
        if not 0 <= value < (1 << bits):
            raise ValueError(f"{key}: {value} does not fit in uint{bits}")
        self.fields[key] = Field(value, "uint", bits)

    def add_int(self, key: str, value: int, bits: int = 64):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{key}: expected an integer, got {value!r}")
        limit = 1 << (bits - 1)
        if not -limit <= value < limit:
            raise ValueError(f"{key}: {value} does not fit in int{bits}")
        self.fields[key] = Field(value, "int", bits)

    def add_float(self, key: str, value: float, bits: int = 64):
        value = float(value)
        if bits == 32:
            # Round-trip through single precision
            value = struct.unpack("f", struct.pack("f", value))[0]
        self.fields[key] = Field(value, "float", bits)

    def add_bool(self, key: str, value: bool):
        self.fields[key] = Field(bool(value), "bool")

    def add_string(self, key: str, value: str):
        self.fields[key] = Field(str(value), "string")

    def value(self, key: str) -> FieldValue:
        return self.fields[key].value

    def to_line(self) -> str:
        """Encode as one line of line protocol (no trailing newline)."""
        if not self.fields:
            raise ValueError(f"measurement {self.name!r} has no fields")

        head = _escape_name(self.name)
        for key in sorted(self.tags):
            value = self.tags[key]
            if value == "":
                continue  # empty tag values are not representable
            head += f",{_escape_key(key)}={_escape_key(value)}"

        body = ",".join(f"{_escape_key(k)}={f.encode()}" for k, f in self.fields.items())
        line = f"{head} {body}"
        if self.timestamp_ns is not None:
            line += f" {self.timestamp_ns}"
        return line
