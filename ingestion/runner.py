# ============================================================================
# File: ingestion/runner.py
# Description: Orchestrates the read -> parse -> write pipeline for one run
# ============================================================================
"""
Loader Runner - wires file ingestors, the record parser and the writer pool.

This module provides the run orchestration with:
- One ingestor task per input file, all running concurrently
- A single parser for every file (one error rate per run)
- A fixed pool of writer tasks
- Ordered shutdown: ingestors -> parser -> writers
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from core.config import Settings
from ingestion.parser import END_OF_INPUT, RecordParser, RunStats
from ingestion.reader import FileIngestor
from ingestion.retry import RetryPolicy
from ingestion.shards import ShardTable
from ingestion.writer import WriterPool, WriterStats

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """What a finished run reports"""

    files: List[Path]
    completed_files: List[Path]
    run_stats: RunStats
    writer_stats: WriterStats
    elapsed: float
    aborted_files: List[Path] = field(default_factory=list)


class LoaderRunner:
    """
    Run orchestrator.

    Responsibilities:
    - Start the parser and writer pool before any input flows
    - Stream every file concurrently into the shared line queue
    - Close the line queue once all ingestors finish
    - Wait for the writers to drain and report elapsed time
    """

    def __init__(
        self,
        settings: Settings,
        shards: ShardTable,
        policy: Optional[RetryPolicy] = None
    ):
        self.settings = settings
        self.shards = shards
        self.policy = policy or RetryPolicy(
            max_attempts=settings.RETRY,
            backoff=settings.RETRY_DELAY
        )

    async def run(self, paths: Sequence[Union[str, Path]]) -> RunSummary:
        """
        Load every file in paths.

        Args:
            paths: Input files, already discovered

        Returns:
            RunSummary with line counters, writer counters and elapsed time

        Raises:
            FatalIOError: An input file could not be opened. The run stops
                without draining the queues.
        """
        start = time.monotonic()
        settings = self.settings

        lines: asyncio.Queue = asyncio.Queue(maxsize=settings.QUEUE_SIZE)
        records: asyncio.Queue = asyncio.Queue(maxsize=settings.QUEUE_SIZE)

        parser = RecordParser(
            lines,
            records,
            worker_count=settings.WORKERS,
            error_rate_threshold=settings.ERROR_RATE_THRESHOLD
        )
        pool = WriterPool(
            records,
            self.shards,
            self.policy,
            workers=settings.WORKERS,
            dry_run=settings.DRY_RUN
        )
        ingestors = [FileIngestor(path, lines, dry_run=settings.DRY_RUN) for path in paths]

        logger.info(
            f"Starting load of {len(ingestors)} files with {settings.WORKERS} workers"
            + (" (dry run)" if settings.DRY_RUN else "")
        )

        parser_task = asyncio.create_task(parser.run(), name="record-parser")
        pool_task = asyncio.create_task(pool.run(), name="writer-pool")

        ingest_tasks = [
            asyncio.create_task(ingestor.run(), name=f"ingest-{ingestor.path.name}")
            for ingestor in ingestors
        ]

        try:
            results = await asyncio.gather(*ingest_tasks)
        except BaseException:
            for task in (*ingest_tasks, parser_task, pool_task):
                task.cancel()
            raise

        await lines.put(END_OF_INPUT)
        run_stats = await parser_task
        writer_stats = await pool_task

        await self.shards.close()

        elapsed = time.monotonic() - start
        logger.info(f"Execution time = {elapsed:.3f}s")

        return RunSummary(
            files=[ingestor.path for ingestor in ingestors],
            completed_files=[i.path for i, ok in zip(ingestors, results) if ok],
            aborted_files=[i.path for i, ok in zip(ingestors, results) if not ok],
            run_stats=run_stats,
            writer_stats=writer_stats,
            elapsed=elapsed
        )
