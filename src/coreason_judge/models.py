# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

"""Data models shared by the execution adapters, the output judge and the orchestrator."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Language(str, Enum):
    """Languages the judge can execute."""

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    JAVA = "java"
    CPP = "cpp"

    @classmethod
    def parse(cls, value: "str | Language") -> "Language":
        """Resolve a language identifier, accepting the common aliases.

        Raises:
            ValueError: If the identifier does not name a supported language.
        """
        if isinstance(value, Language):
            return value
        key = str(value or "").strip().lower()
        resolved = _LANGUAGE_ALIASES.get(key)
        if resolved is None:
            raise ValueError(f"Unsupported language: {value}")
        return resolved

    @property
    def compiled(self) -> bool:
        return self in (Language.JAVA, Language.CPP)


_LANGUAGE_ALIASES: dict[str, Language] = {
    "javascript": Language.JAVASCRIPT,
    "js": Language.JAVASCRIPT,
    "node": Language.JAVASCRIPT,
    "typescript": Language.TYPESCRIPT,
    "ts": Language.TYPESCRIPT,
    "python": Language.PYTHON,
    "python3": Language.PYTHON,
    "py": Language.PYTHON,
    "java": Language.JAVA,
    "cpp": Language.CPP,
    "c++": Language.CPP,
}


class ComparisonMode(str, Enum):
    STRICT = "strict"
    RELAXED = "relaxed"


class ExecutionFailure(str, Enum):
    """Ways an execution attempt can fail before producing a meaningful run."""

    TOOLCHAIN_MISSING = "toolchain_missing"
    COMPILATION_ERROR = "compilation_error"
    NETWORK_ERROR = "network_error"


class SubmissionStatus(str, Enum):
    ACCEPTED = "Accepted"
    WRONG_ANSWER = "Wrong Answer"
    RUNTIME_ERROR = "Runtime Error"
    COMPILATION_ERROR = "Compilation Error"
    TIME_LIMIT_EXCEEDED = "Time Limit Exceeded"
    PARTIAL_CORRECT = "Partial Correct"


class CaseOutcome(str, Enum):
    """Why a single test case passed or failed."""

    PASSED = "passed"
    WRONG_ANSWER = "wrong_answer"
    RUNTIME_ERROR = "runtime_error"
    COMPILATION_ERROR = "compilation_error"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"


class SubmissionPhase(str, Enum):
    PENDING = "pending"
    COMPILING = "compiling"
    RUNNING = "running"
    JUDGED = "judged"


class _WireModel(BaseModel):
    """Immutable model that accepts both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @field_validator("language", mode="before", check_fields=False)
    @classmethod
    def parse_language(cls, value: object) -> Language:
        return Language.parse(value)  # type: ignore[arg-type]


class ExecutionRequest(_WireModel):
    """One execution attempt: a program, its stdin and its limits.

    Attributes:
        language: The language of the source code.
        source: The program text.
        stdin: Data fed to the program's standard input.
        time_limit_ms: Wall-clock budget for the run.
        memory_limit_kb: Optional memory cap (enforced by the in-process evaluator only).
        version: Optional toolchain version pin for the remote executor.
    """

    language: Language
    source: str
    stdin: str = ""
    time_limit_ms: int = Field(default=3000, gt=0)
    memory_limit_kb: int | None = Field(default=None, gt=0)
    version: str | None = None


class ExecutionResult(_WireModel):
    """Represents the outcome of exactly one adapter invocation.

    Attributes:
        stdout: Standard output captured from the run (possibly partial on timeout).
        stderr: Standard error captured from the run, or a diagnostic for launch failures.
        exit_code: The exit status of the program; None when the program never ran.
        timed_out: Whether the run was forcibly terminated after exceeding its budget.
        runtime_ms: Wall-clock duration of the run step in milliseconds.
        peak_memory_kb: Maximum sampled resident memory, when sampling was possible.
        failure: Set when the attempt failed before or instead of a normal run.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False
    runtime_ms: int = 0
    peak_memory_kb: int | None = None
    failure: ExecutionFailure | None = None

    @property
    def succeeded(self) -> bool:
        """True when the program ran to completion with a zero exit status."""
        return self.failure is None and not self.timed_out and self.exit_code == 0


class TestCase(_WireModel):
    """A single input / expected output pair supplied by the problem store."""

    __test__ = False  # not a pytest class

    input: str = ""
    expected_output: str | None = None


class CaseVerdict(_WireModel):
    passed: bool
    actual_output: str
    outcome: CaseOutcome
    error: str | None = None
    runtime_ms: int | None = None
    peak_memory_kb: int | None = None


class Submission(_WireModel):
    """Input contract consumed from the submission store."""

    language: Language
    source: str
    test_cases: list[TestCase]
    comparison_mode: ComparisonMode | None = None
    time_limit_ms: int | None = Field(default=None, gt=0)
    memory_limit_kb: int | None = Field(default=None, gt=0)


class SubmissionVerdict(_WireModel):
    """Aggregate verdict for one submission.

    ``cases`` carries the ordered per-case verdicts for detailed ("run") requests
    and is None for condensed ("submit") summaries.
    """

    status: SubmissionStatus
    tests_passed: int
    total_tests: int
    runtime_ms: int = 0
    peak_memory_kb: int | None = None
    score: int = 0
    cases: list[CaseVerdict] | None = None


class ToolchainStatus(BaseModel):
    """Availability of one local toolchain binary."""

    binary: str
    ok: bool
    detail: str = ""
