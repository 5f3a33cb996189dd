# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import pytest
from pydantic import ValidationError

from coreason_judge.models import (
    CaseOutcome,
    ExecutionFailure,
    ExecutionRequest,
    ExecutionResult,
    Language,
    Submission,
    SubmissionStatus,
    SubmissionVerdict,
    TestCase,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("javascript", Language.JAVASCRIPT),
        ("JS", Language.JAVASCRIPT),
        ("node", Language.JAVASCRIPT),
        ("ts", Language.TYPESCRIPT),
        ("py", Language.PYTHON),
        ("Python3", Language.PYTHON),
        ("c++", Language.CPP),
        ("cpp", Language.CPP),
        ("java", Language.JAVA),
        (Language.JAVA, Language.JAVA),
    ],
)
def test_language_parse_aliases(raw: str, expected: Language) -> None:
    assert Language.parse(raw) is expected


def test_language_parse_unknown() -> None:
    with pytest.raises(ValueError, match="Unsupported language"):
        Language.parse("cobol")


def test_language_compiled() -> None:
    assert Language.JAVA.compiled
    assert Language.CPP.compiled
    assert not Language.PYTHON.compiled
    assert not Language.TYPESCRIPT.compiled


def test_execution_request_defaults() -> None:
    request = ExecutionRequest(language="py", source="print(1)")
    assert request.language == Language.PYTHON
    assert request.stdin == ""
    assert request.time_limit_ms == 3000
    assert request.memory_limit_kb is None
    assert request.version is None


def test_execution_request_camel_case_aliases() -> None:
    request = ExecutionRequest.model_validate(
        {"language": "cpp", "source": "int main(){}", "timeLimitMs": 500, "memoryLimitKb": 1024}
    )
    assert request.time_limit_ms == 500
    assert request.memory_limit_kb == 1024


def test_execution_request_rejects_bad_limits() -> None:
    with pytest.raises(ValidationError):
        ExecutionRequest(language="python", source="", time_limit_ms=0)
    with pytest.raises(ValidationError):
        ExecutionRequest(language="brainfuck", source="")


def test_execution_request_is_immutable() -> None:
    request = ExecutionRequest(language="python", source="")
    with pytest.raises(ValidationError):
        request.source = "print(2)"  # type: ignore[misc]


def test_execution_result_succeeded() -> None:
    assert ExecutionResult(exit_code=0).succeeded
    assert not ExecutionResult(exit_code=1).succeeded
    assert not ExecutionResult(exit_code=0, timed_out=True).succeeded
    assert not ExecutionResult(failure=ExecutionFailure.TOOLCHAIN_MISSING).succeeded
    assert not ExecutionResult().succeeded


def test_submission_input_contract() -> None:
    submission = Submission.model_validate(
        {
            "language": "python",
            "source": "print(input())",
            "testCases": [{"input": "1", "expectedOutput": "1"}, {"input": "2"}],
            "comparisonMode": "strict",
        }
    )
    assert submission.test_cases == [TestCase(input="1", expected_output="1"), TestCase(input="2")]
    assert submission.comparison_mode is not None
    assert submission.comparison_mode.value == "strict"


def test_submission_verdict_output_contract() -> None:
    verdict = SubmissionVerdict(status=SubmissionStatus.PARTIAL_CORRECT, tests_passed=2, total_tests=4, score=50)
    dumped = verdict.model_dump(mode="json", by_alias=True)
    assert dumped["status"] == "Partial Correct"
    assert dumped["testsPassed"] == 2
    assert dumped["totalTests"] == 4
    assert dumped["cases"] is None


def test_case_outcome_values() -> None:
    assert CaseOutcome.TIME_LIMIT_EXCEEDED.value == "time_limit_exceeded"
    assert SubmissionStatus.TIME_LIMIT_EXCEEDED.value == "Time Limit Exceeded"
