"""Read-only channel access for rendering surfaces.

Plot widgets never touch Session internals directly; they enumerate
channels and query series through a Provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .channels import CHANNELS, ChannelSeries
from .session import Session


@dataclass
class ChannelInfo:
    """Flat descriptor for a single plottable channel."""

    name: str
    source: str  # "data", "temp" or "custom"
    unit: str
    expr: str | None = None  # custom channels only


class Provider(ABC):
    """Abstract data source for plotting."""

    @abstractmethod
    def channels(self) -> list[ChannelInfo]:
        """Enumerate available channels."""

    @abstractmethod
    def query(self, name: str, t0: int | None = None,
              t1: int | None = None) -> ChannelSeries:
        """Return the series for one channel, optionally clipped to [t0, t1]."""

    def time_range(self) -> tuple[int, int] | None:
        """Return (earliest_ms, latest_ms) over all channels, or None."""
        lo: int | None = None
        hi: int | None = None
        for ch in self.channels():
            rng = self.query(ch.name).time_range()
            if rng is None:
                continue
            lo = rng[0] if lo is None else min(lo, rng[0])
            hi = rng[1] if hi is None else max(hi, rng[1])
        if lo is None or hi is None:
            return None
        return lo, hi

    def sample_counts(self) -> dict[str, int]:
        """Return {channel_name: n_samples} for all channels."""
        return {ch.name: len(self.query(ch.name)) for ch in self.channels()}

    def close(self) -> None:
        """Release resources."""


class SessionProvider(Provider):
    """Provider over one assembled Session.

    Built-in channels come first, in registry order, followed by custom
    channels that evaluated successfully.  A custom channel that shares a
    name with a built-in one is not listed.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._custom = {
            c.name: c for c in session.custom
            if c.ok and c.name not in CHANNELS
        }

    @property
    def session(self) -> Session:
        return self._session

    def channels(self) -> list[ChannelInfo]:
        infos = [ChannelInfo(ch.name, ch.source.value, ch.unit)
                 for ch in CHANNELS.values()]
        infos.extend(ChannelInfo(c.name, "custom", "", c.expr)
                     for c in self._custom.values())
        return infos

    def query(self, name: str, t0: int | None = None,
              t1: int | None = None) -> ChannelSeries:
        if name in CHANNELS:
            series = self._session.channel(name)
        elif name in self._custom:
            series = self._custom[name].series
        else:
            raise KeyError(f"no channel named {name!r}")
        return series.slice(t0, t1)
