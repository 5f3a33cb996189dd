# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import re

from coreason_judge.models import CaseOutcome, CaseVerdict, ComparisonMode, ExecutionFailure, ExecutionResult

SERVICE_UNAVAILABLE = "Runtime Error: execution service unavailable"

_WHITESPACE = re.compile(r"\s+")


def normalize_output(text: str, mode: ComparisonMode = ComparisonMode.RELAXED) -> str:
    """Normalizes program output for comparison.

    Line endings are converted to LF first. Relaxed mode then collapses every
    whitespace run to one space, trims and lowercases. Strict mode only trims.
    """
    text = text.replace("\r\n", "\n")
    if mode == ComparisonMode.RELAXED:
        return _WHITESPACE.sub(" ", text).strip().lower()
    return text.strip()


def outputs_match(actual: str, expected: str, mode: ComparisonMode = ComparisonMode.RELAXED) -> bool:
    return normalize_output(actual, mode) == normalize_output(expected, mode)


def truncate_error(text: str, limit: int = 1000) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "... (truncated)"


def judge_case(
    result: ExecutionResult,
    expected_output: str | None,
    mode: ComparisonMode = ComparisonMode.RELAXED,
    max_error_length: int = 1000,
) -> CaseVerdict:
    """Judges one execution result against the expected output.

    Args:
        result: The result of running the case.
        expected_output: Expected stdout, or None to judge on failure signals only.
        mode: Comparison policy.
        max_error_length: Truncation limit for user-facing error text.

    Returns:
        CaseVerdict: The verdict for the case. The same inputs always give the same verdict.
    """

    def verdict(outcome: CaseOutcome, error: str | None = None) -> CaseVerdict:
        return CaseVerdict(
            passed=outcome == CaseOutcome.PASSED,
            actual_output=result.stdout,
            outcome=outcome,
            error=truncate_error(error, max_error_length) if error else None,
            runtime_ms=result.runtime_ms,
            peak_memory_kb=result.peak_memory_kb,
        )

    if result.failure == ExecutionFailure.COMPILATION_ERROR:
        return verdict(CaseOutcome.COMPILATION_ERROR, result.stderr or "Compilation failed")
    if result.timed_out:
        return verdict(CaseOutcome.TIME_LIMIT_EXCEEDED, result.stderr or "Time limit exceeded")
    if result.failure is not None:
        # toolchain missing or remote executor unreachable
        return verdict(CaseOutcome.RUNTIME_ERROR, SERVICE_UNAVAILABLE)
    if result.exit_code != 0:
        return verdict(CaseOutcome.RUNTIME_ERROR, result.stderr or f"Process exited with code {result.exit_code}")

    if expected_output is None:
        if result.stderr.strip():
            return verdict(CaseOutcome.RUNTIME_ERROR, result.stderr)
        return verdict(CaseOutcome.PASSED)

    if outputs_match(result.stdout, expected_output, mode):
        return verdict(CaseOutcome.PASSED)
    return verdict(CaseOutcome.WRONG_ANSWER, result.stderr or None)
