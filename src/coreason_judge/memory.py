# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import asyncio

import psutil
from loguru import logger


class MemorySampler:
    """Best-effort peak resident memory sampling for a child process.

    Sampling stops silently as soon as the process is gone or cannot be
    inspected; ``peak_kb`` stays None if no sample was ever taken.
    """

    def __init__(self, pid: int, interval: float = 0.06):
        self.pid = pid
        self.interval = interval
        self.peak_kb: int | None = None
        self._process: psutil.Process | None = None

    def sample(self) -> bool:
        """Take one sample. Returns False once the process can no longer be sampled."""
        try:
            if self._process is None:
                self._process = psutil.Process(self.pid)
            rss_kb = self._process.memory_info().rss // 1024
        except (psutil.Error, OSError) as e:
            logger.debug(f"Memory sampling stopped for pid {self.pid}: {e}")
            return False
        if self.peak_kb is None or rss_kb > self.peak_kb:
            self.peak_kb = rss_kb
        return True

    async def run(self) -> None:
        """Sample every ``interval`` seconds until the process disappears or the task is cancelled."""
        while self.sample():
            await asyncio.sleep(self.interval)
