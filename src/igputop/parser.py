"""Parser for xpumcli dump telemetry lines."""

import math
import re

from igputop.errors import FieldParseError, MalformedRecordError
from igputop.models import ParsedStats

DELIMITER = ","
FIELD_COUNT = 6

# Column layout of `xpumcli dump --modules 1,2,5,18`.
# 0 = timestamp, 1 = device id (not consumed)
POWER_INDEX = 2
FREQUENCY_INDEX = 3
MEMORY_UTILIZATION_INDEX = 4
MEMORY_USED_INDEX = 5

# Plain ASCII decimal with optional exponent. float() alone also takes
# "1_000", non-ASCII digits, "inf" and "nan".
_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _parse_field(fields: list[str], index: int, name: str) -> float:
    raw = fields[index]
    if not _NUMBER.fullmatch(raw):
        raise FieldParseError(name, raw)
    value = float(raw)
    if not math.isfinite(value):
        raise FieldParseError(name, raw)
    return value


def parse_stats_line(line: str) -> ParsedStats:
    """
    Parse one comma-separated telemetry line.

    Args:
        line: Raw line as emitted by the helper, with or without a line terminator.

    Returns:
        A complete ParsedStats.

    Raises:
        MalformedRecordError: If the line does not have exactly six fields.
        FieldParseError: If one of the consumed fields is not a number.
    """
    line = line.rstrip("\r\n")
    fields = line.split(DELIMITER)
    if len(fields) != FIELD_COUNT:
        raise MalformedRecordError(line, FIELD_COUNT, len(fields))

    fields = [f.strip() for f in fields]

    power = _parse_field(fields, POWER_INDEX, "power")
    frequency = _parse_field(fields, FREQUENCY_INDEX, "frequency")
    memory_utilization = _parse_field(fields, MEMORY_UTILIZATION_INDEX, "memory_utilization")
    memory_used = _parse_field(fields, MEMORY_USED_INDEX, "memory_used")

    return ParsedStats(
        frequency=frequency,
        power=power,
        memory_used=memory_used,
        memory_utilization=memory_utilization,
    )
