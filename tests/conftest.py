"""
Pytest configuration and fixtures for kinesis-tailf.

Provides cross-platform event loop configuration and shared test data.
"""

import asyncio
import sys
from datetime import datetime, timezone

import pytest

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def t0():
    """Fixed arrival-time origin for fake records."""
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fast_settings():
    """Settings with intervals short enough for unit tests."""
    from kinesis_tailf import TailSettings

    return TailSettings(
        poll_interval=0.001,
        flush_interval=0.01,
        max_empty_reads=3,
        channel_capacity=16,
    )
