"""wheeltelem - Wheel telemetry log decoder and derived channels."""

from .schema import SchemaVersion, Source, FieldType, FieldDef, RecordLayout, layout_for
from .decoder import (
    TelemetryEntry, TemperatureEntry, TelemetryLog, TemperatureLog,
    LogError, LogReadError, DecodeError, decode_append,
)
from .channels import CHANNELS, Channel, ChannelSeries, WheelBundle, project_over_time
from .formula import (
    EvalError, FormulaSyntaxError, UnknownChannelError, MixedSourcesError,
    FormulaZeroDivisionError, parse, evaluate,
)
from .session import Files, CustomFormula, CustomChannel, Session, find_files, open_files
from .workbench import Workbench

__all__ = [
    "SchemaVersion", "Source", "FieldType", "FieldDef", "RecordLayout", "layout_for",
    "TelemetryEntry", "TemperatureEntry", "TelemetryLog", "TemperatureLog",
    "LogError", "LogReadError", "DecodeError", "decode_append",
    "CHANNELS", "Channel", "ChannelSeries", "WheelBundle", "project_over_time",
    "EvalError", "FormulaSyntaxError", "UnknownChannelError", "MixedSourcesError",
    "FormulaZeroDivisionError", "parse", "evaluate",
    "Files", "CustomFormula", "CustomChannel", "Session", "find_files", "open_files",
    "Workbench",
]
