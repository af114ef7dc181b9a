"""
Pytest configuration and fixtures
"""

import gzip
import pytest
from typing import List

from core.config import Settings
from ingestion.retry import RetryPolicy
from ingestion.shards import ShardTable
from tests.fakes import FakeShard, RecordingSleep


@pytest.fixture
def fake_shards():
    """Fake shards for the four default device types"""
    return {name: FakeShard(name) for name in ("idfa", "gaid", "adid", "dvid")}


@pytest.fixture
def shard_table(fake_shards):
    return ShardTable(fake_shards)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep):
    """Five attempts, 3s backoff, no real waiting"""
    return RetryPolicy(max_attempts=5, backoff=3.0, sleep=recording_sleep)


@pytest.fixture
def settings():
    """Settings for fast pipeline tests"""
    return Settings(WORKERS=3, QUEUE_SIZE=4, RETRY=2, RETRY_DELAY=0.0)


@pytest.fixture
def write_gz(tmp_path):
    """Factory writing lines into a gzip file under tmp_path"""

    def _write(name: str, lines: List[str], trailing_newline: bool = True):
        path = tmp_path / name
        content = "\n".join(lines)
        if trailing_newline and lines:
            content += "\n"
        with gzip.open(path, "wb") as f:
            f.write(content.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def sample_lines():
    """Valid installed-apps lines for every default device type"""
    return [
        "idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43,567,3,7,23",
        "gaid\t7rfw452y52g2gq4g\t55.55\t42.42\t7423,424",
        "adid\te7e1a50c0ec2747ca56cd9e1558c0d7c\t67.7835424444\t-22.8044005471\t7942,8519,4232,3",
        "dvid\tf4be8f5e45e8f87e3f0e9b9a94d5f4ae\t-104.68583244\t-51.24448376\t4877,7862,7181",
    ]
