"""
Unit tests for the command line entry point
"""

import logging
import pytest
from unittest.mock import AsyncMock, patch

from core.config import Settings
from core.exceptions import FatalIOError
from ingestion.cli import build_parser, build_settings, discover_files, main


@pytest.fixture(autouse=True)
def restore_root_logging():
    """main() reconfigures the root logger; put the previous handlers back"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def memcache_client_cls():
    with patch("ingestion.shards.aiomcache.Client") as client_cls:
        client_cls.return_value.close = AsyncMock()
        yield client_cls


class TestBuildSettings:
    """Test flag overlay on top of settings"""

    def test_defaults(self):
        settings = build_settings(build_parser().parse_args([]), base=Settings())

        assert settings.WORKERS == 4
        assert settings.RETRY == 5
        assert settings.DRY_RUN is False
        assert settings.SHARDS["idfa"] == "127.0.0.1:33013"

    def test_flags_override(self):
        args = build_parser().parse_args([
            "--workers", "8",
            "--timeout", "250",
            "--retry", "2",
            "--retry-delay", "0.5",
            "--dry-run",
            "--gaid", "10.0.0.1:11211",
            "--shard", "imei=10.0.0.2:11211",
        ])

        settings = build_settings(args, base=Settings())

        assert settings.WORKERS == 8
        assert settings.timeout_seconds == 0.25
        assert settings.RETRY == 2
        assert settings.RETRY_DELAY == 0.5
        assert settings.DRY_RUN is True
        assert settings.SHARDS["gaid"] == "10.0.0.1:11211"
        assert settings.SHARDS["imei"] == "10.0.0.2:11211"
        assert settings.SHARDS["idfa"] == "127.0.0.1:33013"

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            build_settings(build_parser().parse_args(["--workers", "0"]), base=Settings())


class TestDiscoverFiles:
    """Test input discovery"""

    def test_sorted_matches(self, tmp_path):
        for name in ("b.tsv.gz", "a.tsv.gz", ".c.tsv.gz"):
            (tmp_path / name).write_bytes(b"")

        paths = discover_files(str(tmp_path / "[!.]*.tsv.gz"))

        assert [p.rsplit("/", 1)[-1] for p in paths] == ["a.tsv.gz", "b.tsv.gz"]

    def test_no_match_is_fatal(self, tmp_path):
        with pytest.raises(FatalIOError):
            discover_files(str(tmp_path / "*.tsv.gz"))


class TestMain:
    """Test exit status"""

    def test_codec_self_check(self):
        assert main(["--test"]) == 0

    def test_no_files_exits_non_zero(self, tmp_path):
        assert main(["--pattern", str(tmp_path / "*.tsv.gz")]) == 1

    def test_dry_run(self, write_gz, sample_lines, memcache_client_cls):
        path = write_gz("a.tsv.gz", sample_lines)

        assert main(["--pattern", str(path), "--dry-run", "--workers", "2"]) == 0
        memcache_client_cls.return_value.set.assert_not_called()
        assert path.exists()

    def test_fatal_file_exits_non_zero(self, tmp_path, memcache_client_cls):
        (tmp_path / "a.tsv.gz").write_text("not gzip")

        assert main(["--pattern", str(tmp_path / "*.tsv.gz")]) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "loader.log"

        assert main(["--test", "--log", str(log_file)]) == 0
        assert "self-check passed" in log_file.read_text()
