"""
Pipeline components for loading installed-apps logs into memcached.

Modules:
    reader: FileIngestor, streams gzip files into the line queue
    parser: RecordParser, turns lines into DeviceRecords and judges the error rate
    codec: UserApps protobuf serialization
    shards: ShardTable and the memcached client per device type
    retry: Fixed-backoff RetryPolicy
    writer: WriterPool, writes records to their shard
    runner: LoaderRunner, orchestrates one run
    cli: Command line entry point

Architecture:
    files -> FileIngestor (one per file) -> line queue -> RecordParser
          -> record queue -> WriterPool -> memcached shard

    Both queues are bounded, so a slow writer pool slows parsing, which
    slows reading. Errors below a fatal I/O failure are absorbed where
    they happen and only show up in the logs and counters.

Usage:
    from core.config import Settings
    from ingestion.runner import LoaderRunner
    from ingestion.shards import ShardTable

Example:
    settings = Settings(DRY_RUN=True)
    shards = ShardTable.from_addresses(settings.SHARDS, settings.timeout_seconds)
    summary = await LoaderRunner(settings, shards).run(["20170929000000.tsv.gz"])

    print(f"Parsed {summary.run_stats.parsed} lines")
"""

__all__ = [
    "FileIngestor",
    "RecordParser",
    "ShardTable",
    "MemcacheShard",
    "RetryPolicy",
    "WriterPool",
    "LoaderRunner",
]
