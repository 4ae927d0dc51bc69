"""wheeltelem command-line tool."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import fields

from .channels import CHANNELS, ChannelSeries
from .decoder import LogError
from .formula import EvalError, evaluate
from .schema import SchemaVersion
from .session import LOG_EXTENSION, CustomFormula, Session, find_files, open_files


def _format_entry(entry) -> str:
    ts_s = entry.timestamp / 1000
    fields_str = ", ".join(
        f"{f.name}={getattr(entry, f.name):g}"
        for f in fields(entry)
        if f.name != "timestamp" and getattr(entry, f.name) is not None
    )
    return f"[{ts_s:12.3f}] {fields_str}"


def _format_duration(ms: int) -> str:
    """Format a millisecond duration as a human-readable string."""
    if ms < 1_000:
        return f"{ms}ms"
    s = ms / 1_000
    if s < 60:
        return f"{s:.2f}s"
    if s < 3600:
        return f"{s / 60:.1f}m"
    return f"{s / 3600:.1f}h"


def _format_range(series: ChannelSeries) -> str:
    if len(series) == 0:
        return "-"
    return f"{series.values.min():10.2f} .. {series.values.max():10.2f}"


def _load_formulas(path: str | None) -> list[CustomFormula]:
    if path is None:
        return []
    try:
        with open(path, encoding="utf-8") as f:
            return [CustomFormula.from_dict(d) for d in json.load(f)]
    except (OSError, ValueError, KeyError, TypeError) as e:
        sys.exit(f"Error: bad formulas file {path}: {e}")


def _open(args: argparse.Namespace) -> Session:
    files = find_files(args.dir, extension=args.ext)
    return open_files(files, args.version, _load_formulas(args.formulas))


def cmd_info(args: argparse.Namespace) -> None:
    """Print summary info about a log directory."""
    session = _open(args)

    print(f"Directory:  {args.dir}")
    print(f"Version:    {session.version.name}")
    print(f"Segments:   {len(session.files.data)}")
    print(f"Temp file:  {session.files.temp or '(none)'}")
    print(f"Entries:    {len(session.raw_data):,} telemetry, "
          f"{len(session.raw_temp):,} temperature")

    rng = session.raw_data.time_range()
    if rng is not None:
        print(f"Time range: {rng[0] / 1000:.3f}s - {rng[1] / 1000:.3f}s")
        print(f"Duration:   {_format_duration(rng[1] - rng[0])}")
    else:
        print("Time range: (empty)")

    print(f"\nChannels ({len(CHANNELS)}):")
    print(f"  {'Name':<22s}  {'Src':<4s}  {'Samples':>8s}  {'Range':>24s}  Unit")
    for ch in CHANNELS.values():
        series = session.channel(ch.name)
        print(f"  {ch.name:<22s}  {ch.source.value:<4s}  {len(series):8,}  "
              f"{_format_range(series):>24s}  {ch.unit}")

    if session.custom:
        print(f"\nCustom ({len(session.custom)}):")
        for c in session.custom:
            if c.ok:
                print(f"  {c.name:<22s}  {len(c.series):8,}  {c.expr}")
            else:
                print(f"  {c.name:<22s}  error: {c.error}")


def cmd_dump(args: argparse.Namespace) -> None:
    """Dump decoded entries to stdout."""
    session = _open(args)
    log = session.raw_temp if args.temp else session.raw_data
    for entry in log:
        print(_format_entry(entry))


def cmd_channels(args: argparse.Namespace) -> None:
    """List channel names usable in formulas."""
    for ch in CHANNELS.values():
        print(f"{ch.name:<22s} {ch.source.value:<4s} {ch.unit}")


def cmd_eval(args: argparse.Namespace) -> int:
    """Evaluate formulas against a log directory."""
    session = _open(args)
    status = 0
    for expr in args.formula:
        try:
            series = evaluate(expr, session.raw_data, session.raw_temp)
        except EvalError as e:
            print(f"{expr}: error: {e.reason}", file=sys.stderr)
            status = 1
            continue
        print(f"# {expr} ({len(series)} samples)")
        for ts, value in series:
            print(f"{ts / 1000:.3f}\t{value:g}")
    return status


def _add_open_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("dir", help="Directory holding <n>.bin and temperature.bin")
    p.add_argument("--version", type=int, default=int(SchemaVersion.V2),
                   choices=[int(v) for v in SchemaVersion],
                   help="Recorder schema version")
    p.add_argument("--ext", default=LOG_EXTENSION, help="Segment file extension")
    p.add_argument("--formulas", metavar="JSON",
                   help='Custom channels: [{"name": ..., "expr": ...}, ...]')


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="wheeltelem",
                                     description="wheel telemetry log tool")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    sub = parser.add_subparsers(dest="command")

    # info
    p_info = sub.add_parser("info", help="Show summary info about a log directory")
    _add_open_args(p_info)

    # dump
    p_dump = sub.add_parser("dump", help="Dump decoded entries")
    _add_open_args(p_dump)
    p_dump.add_argument("--temp", action="store_true",
                        help="Dump the temperature log instead")

    # channels
    sub.add_parser("channels", help="List known channel names")

    # eval
    p_eval = sub.add_parser("eval", help="Evaluate formulas")
    _add_open_args(p_eval)
    p_eval.add_argument("formula", nargs="+", help="e.g. 'power_fl + power_fr'")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING - 10 * min(args.verbose, 2),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "info":
            cmd_info(args)
        elif args.command == "dump":
            cmd_dump(args)
        elif args.command == "channels":
            cmd_channels(args)
        elif args.command == "eval":
            return cmd_eval(args)
        else:
            parser.print_help()
    except LogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
