"""Channel accessors, the channel registry and time-series projection.

Every physical channel is one accessor: a pure function from an entry to
its value in engineering units, or None when the active schema version
does not record that channel.  ``project_over_time`` turns any accessor
into a ChannelSeries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Iterator, NamedTuple, TypeVar

import numpy as np

from .schema import Source, WHEELS

T = TypeVar("T")
U = TypeVar("U")

Accessor = Callable[[Any], "float | None"]


@dataclass(frozen=True)
class WheelBundle(Generic[T]):
    """One value per wheel position."""

    fl: T
    fr: T
    rl: T
    rr: T

    def __iter__(self) -> Iterator[T]:
        return iter((self.fl, self.fr, self.rl, self.rr))

    def items(self) -> list[tuple[str, T]]:
        return list(zip(WHEELS, self))

    def map(self, fn: Callable[[T], U]) -> WheelBundle[U]:
        return WheelBundle(fn(self.fl), fn(self.fr), fn(self.rl), fn(self.rr))


@dataclass(frozen=True, eq=False)
class ChannelSeries:
    """Time-series data for one channel."""

    timestamps: np.ndarray  # int64, milliseconds
    values: np.ndarray  # float64

    def __post_init__(self):
        self.timestamps.flags.writeable = False
        self.values.flags.writeable = False

    @classmethod
    def empty(cls) -> ChannelSeries:
        return cls(np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64))

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, float]]) -> ChannelSeries:
        ts: list[int] = []
        vals: list[float] = []
        for t, v in pairs:
            ts.append(t)
            vals.append(v)
        return cls(np.asarray(ts, dtype=np.int64),
                   np.asarray(vals, dtype=np.float64))

    def __len__(self) -> int:
        return len(self.timestamps)

    def __iter__(self) -> Iterator[tuple[int, float]]:
        return zip(self.timestamps.tolist(), self.values.tolist())

    def time_range(self) -> tuple[int, int] | None:
        if len(self.timestamps) == 0:
            return None
        return int(self.timestamps[0]), int(self.timestamps[-1])

    def slice(self, t0: int | None = None, t1: int | None = None) -> ChannelSeries:
        """Samples with t0 <= timestamp <= t1 (either bound optional)."""
        lo = 0 if t0 is None else int(np.searchsorted(self.timestamps, t0, side="left"))
        hi = len(self.timestamps) if t1 is None else int(
            np.searchsorted(self.timestamps, t1, side="right"))
        return ChannelSeries(self.timestamps[lo:hi], self.values[lo:hi])


def project_over_time(log: Iterable[Any], accessor: Accessor) -> ChannelSeries:
    """Apply *accessor* to each entry in order, keeping defined values only."""
    return ChannelSeries.from_pairs(
        (entry.timestamp, value)
        for entry in log
        if (value := accessor(entry)) is not None
    )


def project_wheels(log: Iterable[Any],
                   accessors: WheelBundle[Accessor]) -> WheelBundle[ChannelSeries]:
    return accessors.map(lambda acc: project_over_time(log, acc))


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

def _field(name: str) -> Accessor:
    def accessor(entry: Any) -> float | None:
        return getattr(entry, name)
    accessor.__name__ = accessor.__qualname__ = name
    return accessor


# Telemetry (primary log)
power_fl = _field("power_fl")
power_fr = _field("power_fr")
power_rl = _field("power_rl")
power_rr = _field("power_rr")
velocity_fl = _field("velocity_fl")
velocity_fr = _field("velocity_fr")
velocity_rl = _field("velocity_rl")
velocity_rr = _field("velocity_rr")
torque_set_fl = _field("torque_set_fl")
torque_set_fr = _field("torque_set_fr")
torque_set_rl = _field("torque_set_rl")
torque_set_rr = _field("torque_set_rr")
torque_real_fl = _field("torque_real_fl")
torque_real_fr = _field("torque_real_fr")
torque_real_rl = _field("torque_real_rl")
torque_real_rr = _field("torque_real_rr")

# Temperature log
temp_fl = _field("temp_fl")
temp_fr = _field("temp_fr")
temp_rl = _field("temp_rl")
temp_rr = _field("temp_rr")
room_temp_fl = _field("room_temp_fl")
room_temp_fr = _field("room_temp_fr")
room_temp_rl = _field("room_temp_rl")
room_temp_rr = _field("room_temp_rr")
heatsink_temp_fl = _field("heatsink_temp_fl")
heatsink_temp_fr = _field("heatsink_temp_fr")
heatsink_temp_rl = _field("heatsink_temp_rl")
heatsink_temp_rr = _field("heatsink_temp_rr")
ams_temp_max = _field("ams_temp_max")
water_temp_converter = _field("water_temp_converter")
water_temp_motor = _field("water_temp_motor")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class Channel(NamedTuple):
    name: str
    source: Source
    accessor: Accessor
    unit: str


# quantity -> (source, unit)
WHEEL_QUANTITIES: dict[str, tuple[Source, str]] = {
    "power": (Source.DATA, "kW"),
    "velocity": (Source.DATA, "rpm"),
    "torque_set": (Source.DATA, "Nm"),
    "torque_real": (Source.DATA, "Nm"),
    "temp": (Source.TEMP, "degC"),
    "room_temp": (Source.TEMP, "degC"),
    "heatsink_temp": (Source.TEMP, "degC"),
}

SCALAR_QUANTITIES: dict[str, tuple[Source, str]] = {
    "ams_temp_max": (Source.TEMP, "degC"),
    "water_temp_converter": (Source.TEMP, "degC"),
    "water_temp_motor": (Source.TEMP, "degC"),
}


def wheel_accessors(quantity: str) -> WheelBundle[Accessor]:
    """The four accessors of a per-wheel quantity, e.g. ``"power"``."""
    return WheelBundle(*(CHANNELS[f"{quantity}_{w}"].accessor for w in WHEELS))


def _build_registry() -> dict[str, Channel]:
    module = globals()
    registry: dict[str, Channel] = {}
    for quantity, (source, unit) in WHEEL_QUANTITIES.items():
        for w in WHEELS:
            name = f"{quantity}_{w}"
            registry[name] = Channel(name, source, module[name], unit)
    for name, (source, unit) in SCALAR_QUANTITIES.items():
        registry[name] = Channel(name, source, module[name], unit)
    return registry


CHANNELS: dict[str, Channel] = _build_registry()
