"""Test segment discovery and session assembly on real directories.

Run from the repo root:
    python3 tests/test_session.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

import io
import tempfile
from pathlib import Path

import numpy as np

from wheeltelem.decoder import DecodeError, LogError, LogReadError
from wheeltelem.formula import FormulaSyntaxError, UnknownChannelError
from wheeltelem.schema import SchemaVersion, Source, layout_for
from wheeltelem.session import (
    CustomFormula, Files, Session, find_files, open_files,
)


def data_record(version, ts, **values):
    return layout_for(version, Source.DATA).encode({"timestamp": ts, **values})


def temp_record(version, ts, **values):
    return layout_for(version, Source.TEMP).encode({"timestamp": ts, **values})


def write_data_segment(path, version, timestamps):
    path.write_bytes(b"".join(
        data_record(version, ts, power_fl=ts / 1000, power_fr=1.25,
                    velocity_rl=ts % 100, torque_real_rr=-0.5)
        for ts in timestamps
    ))


def write_temp_segment(path, version, timestamps):
    path.write_bytes(b"".join(
        temp_record(version, ts, temp_fl=30.0, room_temp_rr=21.5,
                    heatsink_temp_fr=40.0, ams_temp_max=35.0,
                    water_temp_converter=45.5, water_temp_motor=50.0)
        for ts in timestamps
    ))


def make_session_dir(root, version=SchemaVersion.V2, temp=True):
    """Segments 0, 1, 2 of 10 records each, optionally a temperature file."""
    root = Path(root)
    for i in range(3):
        write_data_segment(root / f"{i}.bin", version, range(i * 1000, (i + 1) * 1000, 100))
    if temp:
        write_temp_segment(root / "temperature.bin", version, range(50, 3000, 500))
    return root


def test_find_files_numeric_order():
    print("test_find_files_numeric_order...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        for name in ("2.bin", "10.bin", "1.bin", "temperature.bin",
                     "notes.txt", "3.txt", "x.bin", "-1.bin", "4.bin.bak",
                     "+7.bin", "+.bin", "++8.bin"):
            (root / name).write_bytes(b"")
        (root / "5.bin").mkdir()

        files = find_files(root)
        assert [p.name for p in files.data] == ["1.bin", "2.bin", "+7.bin", "10.bin"]
        assert files.temp == root / "temperature.bin"

    print(" OK")


def test_find_files_no_temperature():
    print("test_find_files_no_temperature...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        (root / "0.bin").write_bytes(b"")
        (root / "007.bin").write_bytes(b"")
        (root / "3.bin").write_bytes(b"")

        files = find_files(root)
        assert [p.name for p in files.data] == ["0.bin", "3.bin", "007.bin"]
        assert files.temp is None

        other = find_files(root, extension="dat")
        assert other.data == [] and other.temp is None

    print(" OK")


def test_find_files_unreadable_dir():
    print("test_find_files_unreadable_dir...", end="")

    with tempfile.TemporaryDirectory() as d:
        missing = Path(d) / "nope"
        try:
            find_files(missing)
        except LogReadError as e:
            assert e.path == str(missing)
        else:
            raise AssertionError("missing directory accepted")

    print(" OK")


def test_open_session():
    print("test_open_session...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        session = open_files(find_files(root), SchemaVersion.V2)

        assert isinstance(session, Session)
        assert session.version == SchemaVersion.V2
        assert len(session.raw_data) == 30
        assert len(session.raw_temp) == 6

        ts = session.power.fl.timestamps
        assert len(ts) == 30
        assert np.all(np.diff(ts) >= 0)
        np.testing.assert_allclose(session.power.fr.values, np.full(30, 1.25))
        np.testing.assert_allclose(session.torque_real.rr.values, np.full(30, -0.5))
        assert len(session.velocity.rl) == 30

        np.testing.assert_array_equal(session.temp.fl.timestamps,
                                      [50, 550, 1050, 1550, 2050, 2550])
        np.testing.assert_allclose(session.room_temp.rr.values, np.full(6, 21.5))
        np.testing.assert_allclose(session.heatsink_temp.fr.values, np.full(6, 40.0))
        np.testing.assert_allclose(session.ams_temp_max.values, np.full(6, 35.0))
        np.testing.assert_allclose(session.water_temp_converter.values, np.full(6, 45.5))
        np.testing.assert_allclose(session.water_temp_motor.values, np.full(6, 50.0))

        assert session.channel("power_fl") is session.power.fl
        assert session.channel("torque_set_rr") is session.torque_set.rr
        assert session.channel("water_temp_motor") is session.water_temp_motor
        try:
            session.channel("power")
        except KeyError:
            pass
        else:
            raise AssertionError("non-channel name accepted")

    print(" OK")


def test_v1_session_has_empty_v2_channels():
    print("test_v1_session_has_empty_v2_channels...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d, SchemaVersion.V1)
        session = open_files(find_files(root), SchemaVersion.V1)

        assert len(session.raw_data) == 30
        assert len(session.power.fl) == 30
        for series in session.torque_real:
            assert len(series) == 0
        for series in session.heatsink_temp:
            assert len(series) == 0
        assert len(session.water_temp_motor) == 0
        assert len(session.ams_temp_max) == 6

    print(" OK")


def test_missing_temperature_gives_empty_log():
    print("test_missing_temperature_gives_empty_log...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d, temp=False)
        session = open_files(find_files(root), SchemaVersion.V2)

        assert session.raw_temp is not None
        assert len(session.raw_temp) == 0
        for bundle in (session.temp, session.room_temp, session.heatsink_temp):
            for series in bundle:
                assert len(series) == 0
        assert len(session.ams_temp_max) == 0
        assert len(session.power.fl) == 30

    print(" OK")


def test_truncated_segment_aborts():
    """A truncated segment 0 fails the open and segment 1 is never opened."""
    print("test_truncated_segment_aborts...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        seg0 = root / "0.bin"
        write_data_segment(seg0, SchemaVersion.V2, [0, 100, 200])
        with open(seg0, "ab") as f:
            f.write(b"\x00" * 10)

        # 1.bin does not exist: opening it would raise LogReadError instead
        files = Files([seg0, root / "1.bin"], None)
        try:
            open_files(files, SchemaVersion.V2)
        except DecodeError as e:
            assert isinstance(e, LogError)
            assert e.path == str(seg0)
            assert "truncated" in e.reason
        else:
            raise AssertionError("truncated segment accepted")

    print(" OK")


def test_truncated_temperature_aborts():
    print("test_truncated_temperature_aborts...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        with open(root / "temperature.bin", "ab") as f:
            f.write(b"\x01")
        try:
            open_files(find_files(root), SchemaVersion.V2)
        except DecodeError as e:
            assert e.path == str(root / "temperature.bin")
        else:
            raise AssertionError("truncated temperature segment accepted")

    print(" OK")


def test_unreadable_segment():
    print("test_unreadable_segment...", end="")

    with tempfile.TemporaryDirectory() as d:
        missing = Path(d) / "0.bin"
        try:
            open_files(Files([missing]), SchemaVersion.V1)
        except LogReadError as e:
            assert e.path == str(missing)
        else:
            raise AssertionError("missing segment accepted")

    print(" OK")


def test_out_of_order_segments_rejected():
    """Segments whose times overlap the previous segment are malformed."""
    print("test_out_of_order_segments_rejected...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        write_data_segment(root / "0.bin", SchemaVersion.V2, [500, 600])
        write_data_segment(root / "1.bin", SchemaVersion.V2, [100, 200])
        try:
            open_files(find_files(root), SchemaVersion.V2)
        except DecodeError as e:
            assert e.path == str(root / "1.bin")
            assert "overlap" in e.reason
        else:
            raise AssertionError("overlapping segments accepted")

    print(" OK")


def test_custom_channels_fail_independently():
    """One bad formula does not affect the other or the session."""
    print("test_custom_channels_fail_independently...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        custom = [
            CustomFormula("bad", "power_fl + power_zz"),
            CustomFormula("total_front", "power_fl + power_fr"),
        ]
        session = open_files(find_files(root), SchemaVersion.V2, custom)

        assert len(session.custom) == 2
        bad, good = session.custom
        assert not bad.ok
        assert bad.series is None
        assert isinstance(bad.error, UnknownChannelError)
        assert bad.error.formula == "power_fl + power_zz"
        assert bad.error.name == "power_zz"

        assert good.ok
        assert good.error is None
        assert len(good.series) == 30
        np.testing.assert_allclose(
            good.series.values,
            session.power.fl.values + session.power.fr.values)

    print(" OK")


def test_deeply_nested_formula_fails_alone():
    """A formula too deep to evaluate is an error for that channel only."""
    print("test_deeply_nested_formula_fails_alone...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        custom = [
            CustomFormula("parens", "(" * 2000 + "1" + ")" * 2000),
            CustomFormula("negs", "-" * 2000 + "power_fl"),
            CustomFormula("chain", " + ".join(["power_fl"] * 2000)),
            CustomFormula("ok", "power_fl + power_fr"),
        ]
        session = open_files(find_files(root), SchemaVersion.V2, custom)

        parens, negs, chain, ok = session.custom
        for c in (parens, negs, chain):
            assert not c.ok
            assert isinstance(c.error, FormulaSyntaxError)
            assert "nested too deeply" in c.error.reason
        assert ok.ok
        assert len(ok.series) == 30

    print(" OK")


def test_session_is_read_only():
    print("test_session_is_read_only...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        session = open_files(find_files(root), SchemaVersion.V2,
                             [CustomFormula("c", "power_fl * 2")])
        updated = session.with_custom([])

        for arr in (session.power.fl.values, session.power.fl.timestamps,
                    session.custom[0].series.values,
                    session.power.fl.slice(100, 500).values):
            try:
                arr[0] = 999
            except ValueError:
                pass
            else:
                raise AssertionError("series array is writable")
        assert updated.power.fl.values[0] == 0.0

        before = len(session.raw_data)
        try:
            session.raw_data.read_extend(
                io.BytesIO(data_record(SchemaVersion.V2, 5000)), SchemaVersion.V2)
        except RuntimeError:
            pass
        else:
            raise AssertionError("session log extended")
        assert len(session.raw_data) == before
        assert session.raw_temp.frozen

    print(" OK")


def test_with_custom_replaces_session():
    print("test_with_custom_replaces_session...", end="")

    with tempfile.TemporaryDirectory() as d:
        root = make_session_dir(d)
        session = open_files(find_files(root), SchemaVersion.V2)
        assert session.custom == ()

        updated = session.with_custom([CustomFormula("motor_x2", "water_temp_motor * 2")])
        assert updated is not session
        assert session.custom == ()
        assert updated.raw_data is session.raw_data
        assert len(updated.custom) == 1
        np.testing.assert_allclose(updated.custom[0].series.values, np.full(6, 100.0))

    print(" OK")


def test_empty_directory():
    print("test_empty_directory...", end="")

    with tempfile.TemporaryDirectory() as d:
        session = open_files(find_files(d), SchemaVersion.V1,
                             [CustomFormula("c", "power_fl")])
        assert len(session.raw_data) == 0
        assert len(session.power.fl) == 0
        assert session.custom[0].ok
        assert len(session.custom[0].series) == 0

    print(" OK")


if __name__ == "__main__":
    print("wheeltelem session tests")
    print("========================\n")

    test_find_files_numeric_order()
    test_find_files_no_temperature()
    test_find_files_unreadable_dir()
    test_open_session()
    test_v1_session_has_empty_v2_channels()
    test_missing_temperature_gives_empty_log()
    test_truncated_segment_aborts()
    test_truncated_temperature_aborts()
    test_unreadable_segment()
    test_out_of_order_segments_rejected()
    test_custom_channels_fail_independently()
    test_deeply_nested_formula_fails_alone()
    test_session_is_read_only()
    test_with_custom_replaces_session()
    test_empty_directory()

    print("\nAll tests passed.")
