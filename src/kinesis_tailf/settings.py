from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class TailSettings(BaseSettings):
    """Tuning knobs for a tail run, overridable through KTAIL_* env vars."""

    poll_interval: float = Field(1.0, gt=0, description="Sleep after an empty read (s)")
    flush_interval: float = Field(0.1, gt=0, description="Periodic sink flush (s)")
    max_empty_reads: int = Field(100, ge=1, description="Empty reads before a bounded shard stops")
    batch_limit: int = Field(1000, ge=1, le=10000, description="GetRecords Limit")
    channel_capacity: int = Field(1000, ge=1)
    buffer_size: int = Field(4096, ge=1, description="Sink buffer flushes itself past this size")
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    log_level: str = "INFO"

    class Config:
        env_prefix = "KTAIL_"
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> TailSettings:
    return TailSettings()
