"""
Unit tests for line parsing and the error-rate verdict
"""

import asyncio
import logging
import pytest

from core.exceptions import CoordinateError, EmptyFieldError, FieldCountError
from ingestion.parser import END_OF_INPUT, RecordParser, RunStats, parse_apps, parse_line


class TestParseLine:
    """Test parsing of a single line"""

    def test_parse_valid_line(self):
        """Fields map one to one onto the record"""
        record = parse_line("idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43,567,3,7,23\n")

        assert record.dev_type == "idfa"
        assert record.dev_id == "1rfw452y52g2gq4g"
        assert record.lat == 55.55
        assert record.lon == 42.42
        assert record.apps == (1423, 43, 567, 3, 7, 23)
        assert record.store_key == "idfa:1rfw452y52g2gq4g"

    def test_bad_app_tokens_are_skipped(self):
        """Unparseable app ids are dropped, order is kept"""
        record = parse_line("gaid\tabc\t1.0\t2.0\t1,x,3")
        assert record.apps == (1, 3)

    def test_duplicate_apps_are_kept(self):
        record = parse_line("gaid\tabc\t1.0\t2.0\t5,5,1")
        assert record.apps == (5, 5, 1)

    def test_empty_apps_field(self):
        record = parse_line("gaid\tabc\t1.0\t2.0\t")
        assert record.apps == ()

    @pytest.mark.parametrize("line", [
        "idfa\tabc\t1.0\t2.0",
        "idfa\tabc\t1.0\t2.0\t1,2\textra",
        "",
        "\n",
    ])
    def test_wrong_field_count(self, line):
        with pytest.raises(FieldCountError):
            parse_line(line)

    def test_empty_dev_type(self):
        with pytest.raises(EmptyFieldError):
            parse_line("\tabc\t1.0\t2.0\t1,2")

    def test_empty_dev_id(self):
        with pytest.raises(EmptyFieldError):
            parse_line("idfa\t\t1.0\t2.0\t1,2")

    @pytest.mark.parametrize("lat,lon", [("x", "2.0"), ("1.0", ""), ("", "")])
    def test_invalid_coordinates(self, lat, lon):
        """No default is substituted for bad coordinates"""
        with pytest.raises(CoordinateError):
            parse_line(f"idfa\tabc\t{lat}\t{lon}\t1,2")

    @pytest.mark.parametrize("lat", ["1_0", " 1.5", "1.5 ", "١٢", "0x1A", "1e400", "--1"])
    def test_non_decimal_coordinates(self, lat):
        """Only plain ASCII base-10 floats are coordinates"""
        with pytest.raises(CoordinateError):
            parse_line(f"idfa\tabc\t{lat}\t2.0\t1,2")

    @pytest.mark.parametrize("raw,expected", [
        ("-1.5", -1.5),
        ("+.5", 0.5),
        ("3.", 3.0),
        ("1e3", 1000.0),
        ("-Inf", float("-inf")),
    ])
    def test_decimal_coordinates(self, raw, expected):
        assert parse_line(f"idfa\tabc\t{raw}\t2.0\t1").lat == expected


class TestParseApps:
    """Test app id list parsing"""

    def test_out_of_range_ids_wrap_to_uint32(self):
        assert parse_apps("1,-2,4294967296,3") == [1, 4294967294, 0, 3]
        assert parse_line("idfa\ta\t1.0\t2.0\t1,-2,4294967296,3").apps == (1, 4294967294, 0, 3)

    def test_ids_beyond_int64_are_skipped(self):
        assert parse_apps("7,9223372036854775808,8") == [7, 8]

    @pytest.mark.parametrize("token", ["1_0", " 5", "٣", "0x10", "1.0"])
    def test_non_decimal_ids_are_skipped(self, token):
        assert parse_apps(f"4,{token},6") == [4, 6]

    def test_blank_tokens(self):
        assert parse_apps(",7,,8,") == [7, 8]


class TestRunStats:
    """Test error-rate arithmetic"""

    def test_error_rate(self):
        assert RunStats(parsed=3, failed=1).error_rate == 0.25

    def test_error_rate_without_lines(self):
        assert RunStats().error_rate is None


async def _drain(parser: RecordParser, lines):
    for line in lines:
        await parser.lines.put(line)
    await parser.lines.put(END_OF_INPUT)
    return await parser.run()


class TestRecordParser:
    """Test the parser stage"""

    @pytest.mark.asyncio
    async def test_counts_and_emits_records(self):
        """Good lines go downstream, bad lines are only counted"""
        lines = asyncio.Queue()
        records = asyncio.Queue()
        parser = RecordParser(lines, records, worker_count=2)

        stats = await _drain(parser, [
            "idfa\ta\t1.0\t2.0\t1",
            "broken line",
            "gaid\tb\t1.0\t2.0\t2",
        ])

        assert stats.parsed == 2
        assert stats.failed == 1

        emitted = [records.get_nowait() for _ in range(records.qsize())]
        assert [r.store_key for r in emitted[:2]] == ["idfa:a", "gaid:b"]
        # One end marker per writer
        assert emitted[2:] == [END_OF_INPUT, END_OF_INPUT]

    @pytest.mark.asyncio
    async def test_acceptable_verdict(self, caplog):
        parser = RecordParser(asyncio.Queue(), asyncio.Queue(), worker_count=1)

        with caplog.at_level(logging.INFO):
            await _drain(parser, ["idfa\ta\t1.0\t2.0\t1"] * 10)

        assert "Acceptable error rate" in caplog.text

    @pytest.mark.asyncio
    async def test_error_rate_at_threshold_is_high(self, caplog):
        """1 failure in 100 lines is exactly 0.01 and fails the check"""
        parser = RecordParser(asyncio.Queue(), asyncio.Queue(), worker_count=1)

        with caplog.at_level(logging.INFO):
            stats = await _drain(parser, ["idfa\ta\t1.0\t2.0\t1"] * 99 + ["bad"])

        assert stats.error_rate == 0.01
        assert "High error rate" in caplog.text
        assert "Acceptable error rate" not in caplog.text

    @pytest.mark.asyncio
    async def test_no_lines(self, caplog):
        """An empty run logs a warning instead of dividing by zero"""
        records = asyncio.Queue()
        parser = RecordParser(asyncio.Queue(), records, worker_count=3)

        with caplog.at_level(logging.INFO):
            stats = await _drain(parser, [])

        assert stats.total == 0
        assert parser.log_verdict() is False
        assert "error rate is undefined" in caplog.text
        assert records.qsize() == 3
