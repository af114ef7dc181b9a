"""
Parse raw installed-apps lines into DeviceRecord objects.

A single RecordParser drains the line queue fed by every file ingestor,
so the parsed/failed counters and the error-rate verdict cover the
whole run, not one file.
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError
from core.exceptions import CoordinateError, EmptyFieldError, FieldCountError, ParseError
from schemas.device_apps import DeviceRecord, UINT32_MAX

logger = logging.getLogger(__name__)

# Marks the end of input on both queues
END_OF_INPUT = object()

FIELD_COUNT = 5


# Base-10 syntax only: no underscores, no surrounding blanks, ASCII digits
INT_RE = re.compile(r"[+-]?[0-9]+")
FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:inf|infinity)|nan",
    re.IGNORECASE
)

INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1


def parse_int(token: str) -> int:
    """Parse a signed 64-bit decimal integer"""
    if not INT_RE.fullmatch(token):
        raise ValueError(f"invalid integer: {token!r}")
    value = int(token)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueError(f"integer out of range: {token!r}")
    return value


def parse_float(token: str) -> float:
    """Parse a decimal float; overflow to infinity is an error"""
    if not FLOAT_RE.fullmatch(token):
        raise ValueError(f"invalid float: {token!r}")
    value = float(token)
    if math.isinf(value) and "inf" not in token.lower():
        raise ValueError(f"float out of range: {token!r}")
    return value


def parse_apps(raw_apps: str) -> list:
    """
    Parse comma-separated app ids.

    Tokens that are not integers are skipped. Integers outside uint32
    wrap around to 32 bits.
    """
    apps = []
    for token in raw_apps.split(","):
        try:
            app_id = parse_int(token)
        except ValueError:
            continue
        apps.append(app_id & UINT32_MAX)
    return apps


def parse_line(line: str) -> DeviceRecord:
    """
    Parse one tab-separated line.

    Format: devType, devId, lat, lon, app1,app2,...

    Raises:
        FieldCountError: Line does not have exactly five fields
        EmptyFieldError: Device type or device id is empty
        CoordinateError: lat or lon is not a float
    """
    parts = line.rstrip("\r\n").split("\t")
    if len(parts) != FIELD_COUNT:
        raise FieldCountError(
            f"Expected {FIELD_COUNT} fields, got {len(parts)}",
            context={"line": line[:100]}
        )

    dev_type, dev_id, raw_lat, raw_lon, raw_apps = parts
    if not dev_type:
        raise EmptyFieldError("Device type is empty", context={"line": line[:100]})
    if not dev_id:
        raise EmptyFieldError("Device id is empty", context={"dev_type": dev_type})

    try:
        lat = parse_float(raw_lat)
        lon = parse_float(raw_lon)
    except ValueError as e:
        raise CoordinateError(
            "Invalid coordinates",
            context={"dev_type": dev_type, "dev_id": dev_id, "lat": raw_lat, "lon": raw_lon},
            original_exception=e
        )

    try:
        return DeviceRecord(
            dev_type=dev_type,
            dev_id=dev_id,
            lat=lat,
            lon=lon,
            apps=parse_apps(raw_apps)
        )
    except ValidationError as e:
        raise ParseError(
            "Record failed validation",
            context={"dev_type": dev_type, "dev_id": dev_id},
            original_exception=e
        )


@dataclass
class RunStats:
    """Per-run line counters, owned by the parser"""

    parsed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.parsed + self.failed

    @property
    def error_rate(self) -> Optional[float]:
        """failed / (failed + parsed), or None if no lines were seen"""
        if self.total == 0:
            return None
        return self.failed / self.total


class RecordParser:
    """
    Consume raw lines and produce DeviceRecords.

    Responsibilities:
    - Parse each line, dropping the ones that fail
    - Count parsed and failed lines
    - Log the error-rate verdict once input ends
    - Release every writer worker with an end-of-input marker
    """

    def __init__(
        self,
        lines: asyncio.Queue,
        records: asyncio.Queue,
        worker_count: int,
        error_rate_threshold: float = 0.01
    ):
        self.lines = lines
        self.records = records
        self.worker_count = worker_count
        self.error_rate_threshold = error_rate_threshold
        self.stats = RunStats()

    async def run(self) -> RunStats:
        """
        Drain the line queue until END_OF_INPUT.

        Returns:
            The final RunStats of this run
        """
        while True:
            line = await self.lines.get()
            if line is END_OF_INPUT:
                break

            try:
                record = parse_line(line)
            except ParseError as e:
                self.stats.failed += 1
                logger.error(f"Failed to parse line: {e}")
                continue

            self.stats.parsed += 1
            await self.records.put(record)

        self.log_verdict()

        for _ in range(self.worker_count):
            await self.records.put(END_OF_INPUT)

        return self.stats

    def log_verdict(self) -> bool:
        """
        Log whether the run's error rate is acceptable.

        The verdict is informational: records already queued or written
        are not affected by it.

        Returns:
            True if the error rate is below the threshold
        """
        error_rate = self.stats.error_rate
        if error_rate is None:
            logger.warning("No lines were processed, error rate is undefined")
            return False

        if error_rate < self.error_rate_threshold:
            logger.info(
                f"Acceptable error rate ({error_rate:.6f}). Successful load: "
                f"parsed={self.stats.parsed}, failed={self.stats.failed}"
            )
            return True

        logger.error(
            f"High error rate ({error_rate:.6f} >= {self.error_rate_threshold}). Failed load: "
            f"parsed={self.stats.parsed}, failed={self.stats.failed}"
        )
        return False
