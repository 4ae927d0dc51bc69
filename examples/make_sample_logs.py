#!/usr/bin/env python3
"""Generate a synthetic log directory for trying out the tools.

Writes <dir>/0.bin .. <dir>/N.bin (telemetry at 100 Hz, split into
segments) and <dir>/temperature.bin (1 Hz).

Usage:
    python examples/make_sample_logs.py /tmp/run1 --version 2

Then:
    wheeltelem info /tmp/run1
    wheeltelem eval /tmp/run1 "power_fl + power_fr + power_rl + power_rr"
"""

import argparse
import math
import random
from pathlib import Path

from wheeltelem.schema import SchemaVersion, Source, WHEELS, layout_for


def data_values(t: float) -> dict:
    """One telemetry sample at time t (seconds)."""
    values = {"timestamp": int(t * 1000)}
    throttle = max(0.0, math.sin(2 * math.pi * t / 8.0))
    for i, w in enumerate(WHEELS):
        front = w.startswith("f")
        torque = (40.0 if front else 60.0) * throttle + random.gauss(0, 0.5)
        rpm = 3000 + 2500 * math.sin(2 * math.pi * t / 20.0) + 10 * i
        values[f"torque_set_{w}"] = torque
        values[f"torque_real_{w}"] = torque * 0.97
        values[f"velocity_{w}"] = round(rpm)
        values[f"power_{w}"] = torque * rpm * 2 * math.pi / 60 / 1000
    return values


def temp_values(t: float) -> dict:
    """One temperature sample at time t (seconds)."""
    values = {"timestamp": int(t * 1000)}
    for w in WHEELS:
        values[f"temp_{w}"] = 30.0 + t * 0.05 + random.gauss(0, 0.2)
        values[f"room_temp_{w}"] = 24.0 + random.gauss(0, 0.1)
        values[f"heatsink_temp_{w}"] = 28.0 + t * 0.03
    values["ams_temp_max"] = 25.0 + t * 0.02
    values["water_temp_converter"] = 35.0 + t * 0.04
    values["water_temp_motor"] = 38.0 + t * 0.045
    return values


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("dir")
    parser.add_argument("--version", type=int, default=2, choices=[1, 2])
    parser.add_argument("--seconds", type=float, default=60.0)
    parser.add_argument("--segments", type=int, default=3)
    args = parser.parse_args()

    out = Path(args.dir)
    out.mkdir(parents=True, exist_ok=True)
    version = SchemaVersion(args.version)
    data_layout = layout_for(version, Source.DATA)
    temp_layout = layout_for(version, Source.TEMP)

    n = int(args.seconds * 100)
    per_segment = math.ceil(n / args.segments)
    for seg in range(args.segments):
        samples = range(seg * per_segment, min(n, (seg + 1) * per_segment))
        with open(out / f"{seg}.bin", "wb") as f:
            for i in samples:
                f.write(data_layout.encode(data_values(i / 100)))

    with open(out / "temperature.bin", "wb") as f:
        for s in range(int(args.seconds)):
            f.write(temp_layout.encode(temp_values(float(s))))

    print(f"Wrote {args.segments} segments ({n} samples) and "
          f"{int(args.seconds)} temperature samples to {out}")


if __name__ == "__main__":
    main()
