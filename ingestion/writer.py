"""
Write parsed records to their memcached shard.

WriterPool runs a fixed number of worker tasks that share the record
queue, so each record is handled by exactly one worker. Failures are
absorbed per record: an unknown device type, a codec failure or an
exhausted retry budget is logged and the worker moves on.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List

from core.exceptions import CodecError, RetryableError, UnknownShardError
from ingestion import codec
from ingestion.parser import END_OF_INPUT
from ingestion.retry import RetryPolicy
from ingestion.shards import ShardTable
from schemas.device_apps import DeviceRecord

logger = logging.getLogger(__name__)


@dataclass
class WriterStats:
    """Outcome counters for the writer pool"""

    written: int = 0
    write_failed: int = 0
    unknown_shard: int = 0
    codec_failed: int = 0
    dry_run: int = 0


async def set_with_retry(shard, key: str, value: bytes, policy: RetryPolicy) -> bool:
    """
    Write value under key, retrying failed attempts.

    Args:
        shard: Client exposing `async set(key, value)`
        key: Store key
        value: Serialized payload
        policy: Attempt budget and backoff

    Returns:
        True on the first successful attempt, False once the budget is spent
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            await shard.set(key, value)
            return True
        except RetryableError as e:
            logger.warning(f"Write attempt {attempt}/{policy.max_attempts} for {key} failed: {e}")
            if not policy.should_retry(attempt):
                return False
        await policy.wait(attempt)


class WriterPool:
    """
    Fixed-size pool of workers draining the record queue.

    Each worker stops after taking one END_OF_INPUT marker from the
    queue; the parser puts one marker per worker.
    """

    def __init__(
        self,
        records: asyncio.Queue,
        shards: ShardTable,
        policy: RetryPolicy,
        workers: int = 4,
        dry_run: bool = False
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.records = records
        self.shards = shards
        self.policy = policy
        self.workers = workers
        self.dry_run = dry_run
        self.stats = WriterStats()

    async def run(self) -> WriterStats:
        """Run all workers until each has received END_OF_INPUT"""
        tasks: List[asyncio.Task] = [
            asyncio.create_task(self._worker(i), name=f"writer-{i}")
            for i in range(self.workers)
        ]
        await asyncio.gather(*tasks)

        logger.info(
            f"Writers finished: written={self.stats.written}, "
            f"failed={self.stats.write_failed}, unknown_shard={self.stats.unknown_shard}, "
            f"codec_failed={self.stats.codec_failed}, dry_run={self.stats.dry_run}"
        )
        return self.stats

    async def _worker(self, worker_id: int) -> None:
        while True:
            record = await self.records.get()
            if record is END_OF_INPUT:
                logger.debug(f"Writer {worker_id} done")
                return
            await self.process(record)

    async def process(self, record: DeviceRecord) -> bool:
        """
        Resolve, serialize and write one record.

        Returns:
            True if the record was written (or logged in dry-run mode)
        """
        try:
            shard = self.shards.resolve(record.dev_type)
        except UnknownShardError as e:
            self.stats.unknown_shard += 1
            logger.error(
                f"Dropping record {record.store_key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return False

        try:
            payload = codec.serialize(record)
        except CodecError as e:
            self.stats.codec_failed += 1
            logger.error(
                f"Dropping record {record.store_key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return False

        key = record.store_key

        if self.dry_run:
            self.stats.dry_run += 1
            logger.info(f"{key} -> lat={record.lat} lon={record.lon} apps={list(record.apps)}")
            return True

        if await set_with_retry(shard, key, payload, self.policy):
            self.stats.written += 1
            return True

        self.stats.write_failed += 1
        logger.error(f"Can't write {key} to memcached shard {record.dev_type}")
        return False
