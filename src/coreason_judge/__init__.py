# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

"""
coreason-judge
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .breaker import BreakerState, CircuitBreaker
from .comparison import judge_case, normalize_output, outputs_match
from .config import JudgeConfig
from .executor import Executor
from .judge import Judge, JudgeAsync, aggregate_verdict
from .models import (
    CaseOutcome,
    CaseVerdict,
    ComparisonMode,
    ExecutionFailure,
    ExecutionRequest,
    ExecutionResult,
    Language,
    Submission,
    SubmissionPhase,
    SubmissionStatus,
    SubmissionVerdict,
    TestCase,
)
from .runtime import ToolchainRuntime
from .runtimes.javascript import QuickJSRuntime
from .runtimes.piston import PistonRuntime
from .runtimes.process import SubprocessRuntime, inspect_toolchains

__all__ = [
    "BreakerState",
    "CaseOutcome",
    "CaseVerdict",
    "CircuitBreaker",
    "ComparisonMode",
    "ExecutionFailure",
    "ExecutionRequest",
    "ExecutionResult",
    "Executor",
    "Judge",
    "JudgeAsync",
    "JudgeConfig",
    "Language",
    "PistonRuntime",
    "QuickJSRuntime",
    "Submission",
    "SubmissionPhase",
    "SubmissionStatus",
    "SubmissionVerdict",
    "SubprocessRuntime",
    "TestCase",
    "ToolchainRuntime",
    "aggregate_verdict",
    "judge_case",
    "normalize_output",
    "outputs_match",
    "inspect_toolchains",
]
