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

from coreason_judge.breaker import CircuitBreaker
from coreason_judge.config import JudgeConfig
from coreason_judge.models import Language
from coreason_judge.runtime import ToolchainRuntime
from coreason_judge.runtimes.javascript import QuickJSRuntime
from coreason_judge.runtimes.piston import PistonRuntime
from coreason_judge.runtimes.process import SubprocessRuntime


class RuntimeFactory:
    """
    Factory to create ToolchainRuntime instances based on configuration.
    """

    @staticmethod
    def get_local_runtimes(config: JudgeConfig) -> dict[Language, ToolchainRuntime]:
        """
        Returns the in-host adapter for every language, keyed by language.
        """
        javascript = QuickJSRuntime(max_output_bytes=config.max_output_bytes)
        toolchains = SubprocessRuntime(config)
        runtimes: dict[Language, ToolchainRuntime] = {}
        for runtime in (javascript, toolchains):
            for language in runtime.languages:
                runtimes[language] = runtime
        return runtimes

    @staticmethod
    def get_remote_runtime(
        config: JudgeConfig,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> PistonRuntime | None:
        """
        Returns the remote fallback adapter, or None when remote execution is disabled.
        """
        if not config.remote_enabled:
            return None
        return PistonRuntime(
            base_url=config.piston_url,
            client=client,
            timeout=config.remote_timeout,
            compile_timeout_ms=config.remote_compile_timeout_ms,
            default_versions=config.default_versions,
            breaker=breaker,
        )
