"""
Prometheus metrics for tail runs.

Registered in the global REGISTRY at import time; exposing them is up to the host.
"""

from prometheus_client import Counter, Gauge

RECORDS_EMITTED = Counter(
    "ktail_records_emitted_total",
    "Logical records pushed onto the fan-in channel",
    ["shard"],
)

RECORDS_WRITTEN = Counter(
    "ktail_records_written_total",
    "Logical records written to the sink",
)

POLLS = Counter(
    "ktail_polls_total",
    "GetRecords calls by outcome",
    ["shard", "outcome"],  # records | empty
)

SHARD_FAILURES = Counter(
    "ktail_shard_failures_total",
    "Shards that stopped on an error",
    ["shard"],
)

CHANNEL_DEPTH = Gauge(
    "ktail_channel_depth",
    "Pending records in the fan-in channel",
)
