import asyncio
import os
import sys
from unittest.mock import MagicMock, patch

import psutil
import pytest

from coreason_judge.memory import MemorySampler


def test_sample_current_process() -> None:
    sampler = MemorySampler(os.getpid())
    assert sampler.sample()
    assert sampler.peak_kb is not None
    assert sampler.peak_kb > 0


def test_peak_is_maximum() -> None:
    process = MagicMock()
    process.memory_info.side_effect = [MagicMock(rss=4096 * 1024), MagicMock(rss=1024 * 1024)]
    with patch("coreason_judge.memory.psutil.Process", return_value=process):
        sampler = MemorySampler(1234)
        assert sampler.sample()
        assert sampler.sample()
    assert sampler.peak_kb == 4096


def test_vanished_process_stops_sampling() -> None:
    with patch("coreason_judge.memory.psutil.Process", side_effect=psutil.NoSuchProcess(999999)):
        sampler = MemorySampler(999999)
        assert not sampler.sample()
    assert sampler.peak_kb is None


def test_access_denied_stops_sampling() -> None:
    process = MagicMock()
    process.memory_info.side_effect = psutil.AccessDenied(1)
    with patch("coreason_judge.memory.psutil.Process", return_value=process):
        sampler = MemorySampler(1)
        assert not sampler.sample()
    assert sampler.peak_kb is None


@pytest.mark.asyncio
async def test_run_until_process_exits() -> None:
    process = await asyncio.create_subprocess_exec(sys.executable, "-c", "import time; time.sleep(0.3)")
    sampler = MemorySampler(process.pid, interval=0.02)
    task = asyncio.create_task(sampler.run())
    await process.wait()
    await asyncio.wait_for(task, timeout=5)
    assert sampler.peak_kb is not None
