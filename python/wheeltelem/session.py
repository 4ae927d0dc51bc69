"""Log directory discovery and session assembly.

Directory layout::

    <dir>/0.bin, 1.bin, 2.bin, ...   telemetry segments, merged by index
    <dir>/temperature.bin            optional temperature segment

A Session is built in one call and never modified afterwards; opening
again produces a new Session.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from .channels import (
    CHANNELS, SCALAR_QUANTITIES, ChannelSeries, WheelBundle,
    project_over_time, project_wheels, wheel_accessors,
    ams_temp_max, water_temp_converter, water_temp_motor,
)
from .decoder import EntryLog, LogReadError, TelemetryLog, TemperatureLog
from .formula import EvalError, evaluate
from .schema import SchemaVersion

logger = logging.getLogger(__name__)

LOG_EXTENSION = "bin"
TEMPERATURE_NAME = "temperature"


@dataclass
class Files:
    """Resolved file set: ordered telemetry segments plus optional temperature."""

    data: list[Path] = field(default_factory=list)
    temp: Path | None = None

    def to_dict(self) -> dict:
        return {
            "data": [str(p) for p in self.data],
            "temp": str(self.temp) if self.temp is not None else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Files:
        temp = d.get("temp")
        return cls([Path(p) for p in d.get("data", [])],
                   Path(temp) if temp else None)


def _segment_index(stem: str) -> int | None:
    digits = stem[1:] if stem.startswith("+") else stem
    if digits.isascii() and digits.isdigit():
        return int(digits)
    return None


def find_files(directory: str | Path, extension: str = LOG_EXTENSION) -> Files:
    """Collect log segments in *directory*.

    Telemetry segments are ordered by integer index, so ``2.bin`` comes
    before ``10.bin``.  Entries are visited in sorted name order; if more
    than one temperature segment matches, the last one wins.
    """
    directory = Path(directory)
    try:
        names = sorted(os.listdir(directory))
    except OSError as e:
        raise LogReadError(directory, e.strerror or str(e)) from e

    files = Files()
    indexed: list[tuple[int, str, Path]] = []
    for name in names:
        path = directory / name
        if not path.is_file():
            continue
        stem, dot, ext = name.rpartition(".")
        if not dot or ext != extension:
            continue

        if stem == TEMPERATURE_NAME:
            if files.temp is not None:
                logger.warning("multiple temperature segments in %s, "
                               "using %s over %s", directory, name, files.temp.name)
            files.temp = path
        elif (n := _segment_index(stem)) is not None:
            indexed.append((n, name, path))

    indexed.sort()
    files.data = [p for _, _, p in indexed]
    return files


@dataclass(frozen=True)
class CustomFormula:
    """User-defined channel: a display name and formula text."""

    name: str
    expr: str

    def to_dict(self) -> dict:
        return {"name": self.name, "expr": self.expr}

    @classmethod
    def from_dict(cls, d: dict) -> CustomFormula:
        return cls(d["name"], d["expr"])


@dataclass(frozen=True)
class CustomChannel:
    """Evaluated custom formula: exactly one of series or error is set."""

    name: str
    expr: str
    series: ChannelSeries | None = None
    error: EvalError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def evaluate(cls, formula: CustomFormula, data: EntryLog,
                 temp: EntryLog) -> CustomChannel:
        try:
            series = evaluate(formula.expr, data, temp)
        except EvalError as e:
            logger.warning("custom channel %r failed: %s", formula.name, e)
            return cls(formula.name, formula.expr, error=e)
        return cls(formula.name, formula.expr, series=series)


@dataclass(frozen=True, eq=False)
class Session:
    """Everything derived from one open: raw logs, channel series, custom channels."""

    version: SchemaVersion
    files: Files
    raw_data: TelemetryLog
    raw_temp: TemperatureLog
    power: WheelBundle[ChannelSeries]
    velocity: WheelBundle[ChannelSeries]
    torque_set: WheelBundle[ChannelSeries]
    torque_real: WheelBundle[ChannelSeries]
    temp: WheelBundle[ChannelSeries]
    room_temp: WheelBundle[ChannelSeries]
    heatsink_temp: WheelBundle[ChannelSeries]
    ams_temp_max: ChannelSeries
    water_temp_converter: ChannelSeries
    water_temp_motor: ChannelSeries
    custom: tuple[CustomChannel, ...] = ()

    def channel(self, name: str) -> ChannelSeries:
        """Built-in series by registry name, e.g. ``"power_fl"``."""
        if name not in CHANNELS:
            raise KeyError(name)
        if name in SCALAR_QUANTITIES:
            return getattr(self, name)
        quantity, _, wheel = name.rpartition("_")
        return getattr(getattr(self, quantity), wheel)

    def with_custom(self, formulas: Iterable[CustomFormula]) -> Session:
        """New session sharing these logs, with custom channels re-evaluated."""
        custom = _evaluate_custom(formulas, self.raw_data, self.raw_temp)
        return dataclasses.replace(self, custom=custom)


def _open_segment(log: EntryLog, path: Path, version: SchemaVersion) -> None:
    try:
        f = open(path, "rb")
    except OSError as e:
        raise LogReadError(path, e.strerror or str(e)) from e
    with f:
        try:
            log.read_extend(f, version, path)
        except OSError as e:
            raise LogReadError(path, e.strerror or str(e)) from e


def _evaluate_custom(formulas: Iterable[CustomFormula], data: TelemetryLog,
                     temp: TemperatureLog) -> tuple[CustomChannel, ...]:
    return tuple(CustomChannel.evaluate(f, data, temp) for f in formulas)


def open_files(files: Files, version: SchemaVersion,
               custom: Sequence[CustomFormula] = ()) -> Session:
    """Decode *files* and derive every channel.

    Raises LogReadError or DecodeError for the first segment that fails;
    segments after it are not opened.  Formula failures are recorded on
    the corresponding CustomChannel instead.
    """
    version = SchemaVersion(version)

    data = TelemetryLog()
    for p in files.data:
        _open_segment(data, Path(p), version)

    temp = TemperatureLog()
    if files.temp is not None:
        _open_segment(temp, Path(files.temp), version)

    data.freeze()
    temp.freeze()

    logger.info("opened %d telemetry segments (%d entries), %d temperature entries",
                len(files.data), len(data), len(temp))

    return Session(
        version=version,
        files=files,
        raw_data=data,
        raw_temp=temp,
        power=project_wheels(data, wheel_accessors("power")),
        velocity=project_wheels(data, wheel_accessors("velocity")),
        torque_set=project_wheels(data, wheel_accessors("torque_set")),
        torque_real=project_wheels(data, wheel_accessors("torque_real")),
        temp=project_wheels(temp, wheel_accessors("temp")),
        room_temp=project_wheels(temp, wheel_accessors("room_temp")),
        heatsink_temp=project_wheels(temp, wheel_accessors("heatsink_temp")),
        ams_temp_max=project_over_time(temp, ams_temp_max),
        water_temp_converter=project_over_time(temp, water_temp_converter),
        water_temp_motor=project_over_time(temp, water_temp_motor),
        custom=_evaluate_custom(custom, data, temp),
    )
