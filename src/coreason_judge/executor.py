# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import httpx
from loguru import logger

from coreason_judge.breaker import CircuitBreaker
from coreason_judge.config import JudgeConfig
from coreason_judge.factory import RuntimeFactory
from coreason_judge.models import ExecutionFailure, ExecutionRequest, ExecutionResult, Language, ToolchainStatus
from coreason_judge.runtime import ToolchainRuntime
from coreason_judge.runtimes.piston import PistonRuntime
from coreason_judge.runtimes.process import inspect_toolchains


class Executor:
    """Routes one ExecutionRequest to the right adapter.

    ``local`` mode only uses in-host adapters, ``remote`` mode sends everything to
    the remote executor, and ``auto`` tries the local adapter first and falls back
    to the remote executor when the toolchain is missing.
    """

    def __init__(
        self,
        config: JudgeConfig | None = None,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
        runtimes: dict[Language, ToolchainRuntime] | None = None,
        remote: PistonRuntime | None = None,
    ):
        """Initializes the Executor.

        Args:
            config: Engine configuration.
            client: Optional httpx.AsyncClient for the remote executor.
            breaker: Optional circuit breaker shared by remote calls.
            runtimes: Local adapters keyed by language (built from config when omitted).
            remote: Remote adapter (built from config when omitted).
        """
        self.config = config or JudgeConfig()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.config.breaker_failure_threshold,
            reset_timeout=self.config.breaker_reset_timeout,
        )
        self.runtimes = runtimes if runtimes is not None else RuntimeFactory.get_local_runtimes(self.config)
        self.remote = remote or RuntimeFactory.get_remote_runtime(self.config, client, self.breaker)

    async def __aenter__(self) -> "Executor":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self.remote is not None:
            await self.remote.aclose()

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Executes a request once, applying the configured executor mode.

        Args:
            request: The execution request.

        Returns:
            ExecutionResult: The result of the local or remote attempt.
        """
        mode = self.config.executor_mode
        if mode == "remote":
            return await self._execute_remote(request)

        runtime = self.runtimes.get(request.language)
        if runtime is None:
            if mode == "auto" and self.remote is not None:
                logger.warning(f"No local runtime for {request.language.value}, using remote executor")
                return await self._execute_remote(request)
            return _toolchain_missing(f"No local runtime configured for {request.language.value}")

        result = await runtime.execute(request)
        if result.failure == ExecutionFailure.TOOLCHAIN_MISSING and mode == "auto" and self.remote is not None:
            logger.warning(
                f"Local {request.language.value} toolchain unavailable, falling back to remote executor",
                detail=result.stderr,
            )
            return await self._execute_remote(request)
        return result

    async def _execute_remote(self, request: ExecutionRequest) -> ExecutionResult:
        if self.remote is None:
            return ExecutionResult(stderr="Remote executor is disabled", failure=ExecutionFailure.NETWORK_ERROR)
        return await self.remote.execute(request)

    async def check_toolchains(self) -> dict[str, ToolchainStatus]:
        """Reports which configured local toolchain binaries can be launched."""
        return await inspect_toolchains(self.config)


def _toolchain_missing(message: str) -> ExecutionResult:
    logger.warning(message)
    return ExecutionResult(stderr=message, failure=ExecutionFailure.TOOLCHAIN_MISSING)
