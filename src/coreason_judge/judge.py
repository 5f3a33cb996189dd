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
import inspect
from collections.abc import Awaitable, Callable, Sequence

import anyio
import httpx
from loguru import logger

from coreason_judge.breaker import CircuitBreaker
from coreason_judge.comparison import judge_case
from coreason_judge.config import JudgeConfig
from coreason_judge.executor import Executor
from coreason_judge.models import (
    CaseOutcome,
    CaseVerdict,
    ExecutionRequest,
    ExecutionResult,
    Submission,
    SubmissionPhase,
    SubmissionStatus,
    SubmissionVerdict,
    ToolchainStatus,
)

ProgressCallback = Callable[[SubmissionPhase, int | None], Awaitable[None] | None]


def aggregate_verdict(cases: Sequence[CaseVerdict], total_tests: int, detailed: bool = True) -> SubmissionVerdict:
    """Derives the submission verdict from the ordered case verdicts.

    ``cases`` may be shorter than ``total_tests`` when judging stopped at a
    compilation error.
    """
    if total_tests < 1:
        raise ValueError("total_tests must be positive")

    outcomes = {case.outcome for case in cases}
    passed = sum(1 for case in cases if case.passed)

    if CaseOutcome.COMPILATION_ERROR in outcomes:
        status = SubmissionStatus.COMPILATION_ERROR
        passed = 0
    elif passed == total_tests:
        status = SubmissionStatus.ACCEPTED
    elif passed > 0:
        status = SubmissionStatus.PARTIAL_CORRECT
    elif CaseOutcome.TIME_LIMIT_EXCEEDED in outcomes:
        status = SubmissionStatus.TIME_LIMIT_EXCEEDED
    elif CaseOutcome.RUNTIME_ERROR in outcomes:
        status = SubmissionStatus.RUNTIME_ERROR
    else:
        status = SubmissionStatus.WRONG_ANSWER

    memory = [case.peak_memory_kb for case in cases if case.peak_memory_kb is not None]
    return SubmissionVerdict(
        status=status,
        tests_passed=passed,
        total_tests=total_tests,
        runtime_ms=sum(case.runtime_ms or 0 for case in cases),
        peak_memory_kb=max(memory) if memory else None,
        score=passed * 100 // total_tests,
        cases=list(cases) if detailed else None,
    )


class JudgeAsync:
    """Async-native Submission Orchestrator (The Core).

    Runs every test case of a submission in sequence and aggregates the result.
    Separate submissions may be judged concurrently, bounded by
    ``max_concurrent_submissions``.
    """

    def __init__(
        self,
        config: JudgeConfig | None = None,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
        executor: Executor | None = None,
    ):
        """Initializes the JudgeAsync service.

        Args:
            config: Engine configuration.
            client: Optional httpx.AsyncClient for connection pooling.
            breaker: Optional circuit breaker guarding the remote executor.
            executor: Optional pre-built executor (takes precedence over client and breaker).
        """
        self.config = config or JudgeConfig()
        self.executor = executor or Executor(self.config, client=client, breaker=breaker)
        self._slots = asyncio.Semaphore(self.config.max_concurrent_submissions)

    async def __aenter__(self) -> "JudgeAsync":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.executor.aclose()

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Executes a single request without judging it."""
        return await self.executor.execute(request)

    async def check_environment(self) -> dict[str, ToolchainStatus]:
        return await self.executor.check_toolchains()

    async def judge(
        self,
        submission: Submission,
        detailed: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> SubmissionVerdict:
        """Judges a submission against all of its test cases.

        Args:
            submission: The submission to judge.
            detailed: Include per-case verdicts ("run") or only the summary ("submit").
            on_progress: Optional callback (sync or async) receiving phase transitions.

        Returns:
            SubmissionVerdict: The aggregate verdict.

        Raises:
            ValueError: If the submission has no test cases.
        """
        total = len(submission.test_cases)
        if total == 0:
            raise ValueError("Submission has no test cases")

        mode = submission.comparison_mode or self.config.comparison_mode
        time_limit_ms = submission.time_limit_ms or self.config.time_limit_ms

        async def notify(phase: SubmissionPhase, index: int | None = None) -> None:
            logger.debug(f"Submission phase {phase.value}", case=index)
            if on_progress is None:
                return
            outcome = on_progress(phase, index)
            if inspect.isawaitable(outcome):
                await outcome

        async with self._slots:
            await notify(SubmissionPhase.PENDING)
            logger.info(
                f"Judging {submission.language.value} submission",
                total_tests=total,
                comparison_mode=mode.value,
            )
            if submission.language.compiled:
                await notify(SubmissionPhase.COMPILING, 0)

            cases: list[CaseVerdict] = []
            for index, test_case in enumerate(submission.test_cases):
                await notify(SubmissionPhase.RUNNING, index)
                request = ExecutionRequest(
                    language=submission.language,
                    source=submission.source,
                    stdin=test_case.input,
                    time_limit_ms=time_limit_ms,
                    memory_limit_kb=submission.memory_limit_kb,
                )
                result = await self.executor.execute(request)
                verdict = judge_case(result, test_case.expected_output, mode, self.config.max_error_length)
                cases.append(verdict)
                logger.debug(f"Case {index} judged {verdict.outcome.value}", runtime_ms=verdict.runtime_ms)
                if verdict.outcome == CaseOutcome.COMPILATION_ERROR:
                    logger.info(f"Compilation failed on case {index}, skipping remaining cases")
                    break

            summary = aggregate_verdict(cases, total, detailed)
            await notify(SubmissionPhase.JUDGED)
            logger.info(
                f"Submission judged {summary.status.value}",
                tests_passed=summary.tests_passed,
                total_tests=total,
                runtime_ms=summary.runtime_ms,
            )
            return summary


class Judge:
    """Sync Facade for JudgeAsync (The Facade).

    Every call runs a fresh JudgeAsync inside its own ``anyio.run`` so no
    connection pool outlives its event loop. The circuit breaker is shared
    across calls.
    """

    def __init__(
        self,
        config: JudgeConfig | None = None,
        client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        """Initializes the Judge facade.

        Args:
            config: Engine configuration.
            client: Optional httpx.AsyncClient.
            breaker: Optional circuit breaker; one is created from config when omitted.
        """
        self.config = config or JudgeConfig()
        self._client = client
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=self.config.breaker_failure_threshold,
            reset_timeout=self.config.breaker_reset_timeout,
        )

    def _session(self) -> JudgeAsync:
        return JudgeAsync(self.config, self._client, breaker=self.breaker)

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Executes a single request synchronously."""

        async def run() -> ExecutionResult:
            async with self._session() as judge:
                return await judge.execute(request)

        return anyio.run(run)

    def judge(self, submission: Submission, detailed: bool = True) -> SubmissionVerdict:
        """Judges a submission synchronously.

        Args:
            submission: The submission to judge.
            detailed: Include per-case verdicts.

        Returns:
            SubmissionVerdict: The aggregate verdict.
        """

        async def run() -> SubmissionVerdict:
            async with self._session() as judge:
                return await judge.judge(submission, detailed)

        return anyio.run(run)

    def check_environment(self) -> dict[str, ToolchainStatus]:
        async def run() -> dict[str, ToolchainStatus]:
            async with self._session() as judge:
                return await judge.check_environment()

        return anyio.run(run)
