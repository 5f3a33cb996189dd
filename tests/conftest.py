import sys
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from coreason_judge.config import JudgeConfig


@pytest.fixture
def judge_config(tmp_path: Path) -> JudgeConfig:
    """Config whose Python toolchain is the interpreter running the tests."""
    staging = tmp_path / "staging"
    staging.mkdir()
    return JudgeConfig(
        python_bin=sys.executable,
        temp_dir=staging,
        time_limit_ms=5000,
        remote_enabled=False,
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return make
