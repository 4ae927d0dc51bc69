"""Fixed-width record decoding into time-ordered entry logs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import BinaryIO, Generic, Iterator, TypeVar

from .schema import Source, SchemaVersion, layout_for

logger = logging.getLogger(__name__)


class LogError(Exception):
    """A log segment could not be turned into entries.  Fatal for a session."""

    def __init__(self, path: str | Path | None, reason: str):
        self.path = str(path) if path is not None else None
        self.reason = reason
        where = self.path if self.path is not None else "<stream>"
        super().__init__(f"{where}: {reason}")


class LogReadError(LogError):
    """Segment file or directory could not be read."""


class DecodeError(LogError):
    """Truncated or malformed record."""


@dataclass(frozen=True)
class TelemetryEntry:
    timestamp: int
    power_fl: float | None = None
    power_fr: float | None = None
    power_rl: float | None = None
    power_rr: float | None = None
    velocity_fl: float | None = None
    velocity_fr: float | None = None
    velocity_rl: float | None = None
    velocity_rr: float | None = None
    torque_set_fl: float | None = None
    torque_set_fr: float | None = None
    torque_set_rl: float | None = None
    torque_set_rr: float | None = None
    torque_real_fl: float | None = None
    torque_real_fr: float | None = None
    torque_real_rl: float | None = None
    torque_real_rr: float | None = None


@dataclass(frozen=True)
class TemperatureEntry:
    timestamp: int
    temp_fl: float | None = None
    temp_fr: float | None = None
    temp_rl: float | None = None
    temp_rr: float | None = None
    room_temp_fl: float | None = None
    room_temp_fr: float | None = None
    room_temp_rl: float | None = None
    room_temp_rr: float | None = None
    heatsink_temp_fl: float | None = None
    heatsink_temp_fr: float | None = None
    heatsink_temp_rl: float | None = None
    heatsink_temp_rr: float | None = None
    ams_temp_max: float | None = None
    water_temp_converter: float | None = None
    water_temp_motor: float | None = None


E = TypeVar("E", TelemetryEntry, TemperatureEntry)


class EntryLog(Generic[E]):
    """Append-only, time-ordered sequence of decoded entries."""

    source: Source
    entry_type: type

    def __init__(self) -> None:
        self._entries: list[E] = []
        self._frozen = False

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[E]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> E:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self)} entries)"

    @property
    def last_timestamp(self) -> int | None:
        return self._entries[-1].timestamp if self._entries else None

    def time_range(self) -> tuple[int, int] | None:
        if not self._entries:
            return None
        return self._entries[0].timestamp, self._entries[-1].timestamp

    def read_extend(self, stream: BinaryIO, version: SchemaVersion,
                    path: str | Path | None = None) -> int:
        """Decode *stream* and append its entries.  Returns the entry count."""
        return decode_append(stream, version, self, path)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Refuse further appends.  Called once a session owns the log."""
        self._frozen = True

    def _commit(self, entries: list[E]) -> None:
        self._entries.extend(entries)


class TelemetryLog(EntryLog[TelemetryEntry]):
    source = Source.DATA
    entry_type = TelemetryEntry


class TemperatureLog(EntryLog[TemperatureEntry]):
    source = Source.TEMP
    entry_type = TemperatureEntry


def _check_layout(entry_type: type, names: tuple[str, ...]) -> None:
    known = {f.name for f in fields(entry_type)}
    unknown = [n for n in names if n not in known]
    if unknown:
        raise ValueError(
            f"{entry_type.__name__} has no fields {', '.join(unknown)}")


def decode_append(stream: BinaryIO, version: SchemaVersion, log: EntryLog,
                  path: str | Path | None = None) -> int:
    """Read fixed-size records from *stream* until EOF and append them to *log*.

    Entries are staged and only committed once the whole stream decoded,
    so on DecodeError the log is left exactly as it was.
    """
    if log.frozen:
        raise RuntimeError(f"{type(log).__name__} is frozen")
    layout = layout_for(version, log.source)
    _check_layout(log.entry_type, layout.field_names)

    staged: list = []
    last_ts = log.last_timestamp
    index = 0

    while True:
        record = stream.read(layout.size)
        if not record:
            break
        if len(record) < layout.size:
            raise DecodeError(
                path,
                f"truncated record {index}: {len(record)} of "
                f"{layout.size} bytes ({layout.name})")

        values = layout.decode(record)
        ts = values["timestamp"]
        if last_ts is not None and ts < last_ts:
            where = "; segments overlap in time" if index == 0 else ""
            raise DecodeError(
                path,
                f"record {index}: timestamp {ts} precedes previous "
                f"timestamp {last_ts}{where}")

        staged.append(log.entry_type(**values))
        last_ts = ts
        index += 1

    log._commit(staged)
    logger.debug("%s: decoded %d %s records",
                 path if path is not None else "<stream>", index, layout.name)
    return index
