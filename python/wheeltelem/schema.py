"""Record layouts and per-version decode tables."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class SchemaVersion(IntEnum):
    """Recorder firmware revision that wrote a log set."""

    V1 = 1
    V2 = 2


class Source(Enum):
    DATA = "data"
    TEMP = "temp"


class FieldType(IntEnum):
    U8 = 0
    U16 = 1
    U32 = 2
    I8 = 3
    I16 = 4
    I32 = 5


# struct format chars indexed by FieldType (little-endian base)
_TYPE_FMT = {
    FieldType.U8: "B",
    FieldType.U16: "H",
    FieldType.U32: "I",
    FieldType.I8: "b",
    FieldType.I16: "h",
    FieldType.I32: "i",
}

TIMESTAMP = "timestamp"
WHEELS = ("fl", "fr", "rl", "rr")


@dataclass(frozen=True)
class FieldDef:
    name: str
    offset: int
    type: FieldType
    scale: float = 1.0
    bias: float = 0.0

    @property
    def size(self) -> int:
        return struct.calcsize(_TYPE_FMT[self.type])


@dataclass(frozen=True)
class RecordLayout:
    """Fixed-width record: knows how to decode raw bytes into engineering units."""

    name: str
    size: int
    fields: tuple[FieldDef, ...] = field(default_factory=tuple)

    def __post_init__(self):
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"{self.name}: duplicate field names")
        if TIMESTAMP not in names:
            raise ValueError(f"{self.name}: missing {TIMESTAMP} field")
        for f in self.fields:
            if f.offset < 0 or f.offset + f.size > self.size:
                raise ValueError(
                    f"{self.name}: field {f.name} at {f.offset}+{f.size} "
                    f"exceeds record size {self.size}")

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def decode(self, record: bytes) -> dict[str, Any]:
        """Decode one record into a dict of field name -> value.

        The timestamp stays an integer; every other field is scaled.
        """
        if len(record) != self.size:
            raise ValueError(
                f"{self.name}: expected {self.size} bytes, got {len(record)}")

        result: dict[str, Any] = {}
        for f in self.fields:
            raw = struct.unpack_from("<" + _TYPE_FMT[f.type], record, f.offset)[0]
            if f.name == TIMESTAMP:
                result[f.name] = raw
            else:
                result[f.name] = raw * f.scale + f.bias
        return result

    def encode(self, values: dict[str, Any]) -> bytes:
        """Pack engineering values into one record (inverse of decode).

        Fields missing from *values* are written as raw zero.
        """
        buf = bytearray(self.size)
        for f in self.fields:
            if f.name not in values:
                continue
            if f.name == TIMESTAMP:
                raw = int(values[f.name])
            else:
                raw = round((values[f.name] - f.bias) / f.scale)
            struct.pack_into("<" + _TYPE_FMT[f.type], buf, f.offset, raw)
        return bytes(buf)


def _packed(name: str, specs: list[tuple[str, FieldType, float, float]]) -> RecordLayout:
    """Build a layout with fields laid out back to back in *specs* order."""
    fields: list[FieldDef] = []
    pos = 0
    for fname, ftype, scale, bias in specs:
        fdef = FieldDef(fname, pos, ftype, scale, bias)
        fields.append(fdef)
        pos += fdef.size
    return RecordLayout(name, pos, tuple(fields))


def _wheels(quantity: str, ftype: FieldType, scale: float,
            bias: float = 0.0) -> list[tuple[str, FieldType, float, float]]:
    return [(f"{quantity}_{w}", ftype, scale, bias) for w in WHEELS]


_TS = [(TIMESTAMP, FieldType.U32, 1.0, 0.0)]

_DATA_V1 = (
    _TS
    + _wheels("power", FieldType.I16, 0.01)
    + _wheels("velocity", FieldType.I16, 1.0)
    + _wheels("torque_set", FieldType.I16, 0.01)
)

_TEMP_V1 = (
    _TS
    + _wheels("temp", FieldType.I16, 0.1)
    + _wheels("room_temp", FieldType.I16, 0.1)
    + [("ams_temp_max", FieldType.I16, 0.1, 0.0)]
)

LAYOUTS: dict[tuple[SchemaVersion, Source], RecordLayout] = {
    (SchemaVersion.V1, Source.DATA): _packed("data_v1", _DATA_V1),
    (SchemaVersion.V2, Source.DATA): _packed(
        "data_v2", _DATA_V1 + _wheels("torque_real", FieldType.I16, 0.01)),
    (SchemaVersion.V1, Source.TEMP): _packed("temp_v1", _TEMP_V1),
    (SchemaVersion.V2, Source.TEMP): _packed("temp_v2", (
        _TS
        + _wheels("temp", FieldType.I16, 0.1)
        + _wheels("room_temp", FieldType.I16, 0.1)
        + _wheels("heatsink_temp", FieldType.I16, 0.1)
        + [("ams_temp_max", FieldType.U8, 0.5, -40.0),
           ("water_temp_converter", FieldType.I16, 0.1, 0.0),
           ("water_temp_motor", FieldType.I16, 0.1, 0.0)]
    )),
}


def layout_for(version: SchemaVersion | int, source: Source) -> RecordLayout:
    """Look up the record layout for one schema version and log source."""
    try:
        return LAYOUTS[(SchemaVersion(version), source)]
    except (KeyError, ValueError):
        raise ValueError(
            f"no {source.value} layout for schema version {version!r}") from None
