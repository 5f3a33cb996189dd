# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_judge.models import ComparisonMode, Language


class JudgeConfig(BaseSettings):
    """
    Configuration for the execution and judging engine.
    """

    executor_mode: Literal["auto", "local", "remote"] = "auto"

    # Remote (Piston-compatible) executor
    remote_enabled: bool = True
    piston_url: str = "https://emkc.org/api/v2/piston"
    remote_timeout: float = 15.0
    remote_compile_timeout_ms: int = 10000
    default_versions: dict[Language, str] = {
        Language.PYTHON: "3.11.0",
        Language.JAVA: "15.0.2",
        Language.CPP: "10.2.0",
        Language.JAVASCRIPT: "18.15.0",
        Language.TYPESCRIPT: "5.0.3",
    }

    # Limits
    time_limit_ms: int = 3000
    compile_timeout_ms: int = 10000
    memory_sample_interval_ms: int = 60
    max_output_bytes: int = 10 * 1024 * 1024
    max_error_length: int = 1000

    # Local toolchains
    python_bin: str = "python3"
    javac_bin: str = "javac"
    java_bin: str = "java"
    gxx_bin: str = "g++"
    cpp_flags: list[str] = ["-std=c++17", "-O2"]
    temp_dir: Path | None = None

    comparison_mode: ComparisonMode = ComparisonMode.RELAXED

    # Remote circuit breaker
    breaker_failure_threshold: int = 3
    breaker_reset_timeout: float = 30.0

    max_concurrent_submissions: int = 4

    model_config = SettingsConfigDict(
        env_prefix="COREASON_JUDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_remote_mode(self) -> "JudgeConfig":
        if self.executor_mode == "remote" and not self.remote_enabled:
            raise ValueError("executor_mode 'remote' requires remote_enabled")
        return self

    @staticmethod
    def env_name(field_name: str) -> str:
        """Name of the environment variable that overrides ``field_name``."""
        prefix = JudgeConfig.model_config.get("env_prefix", "")
        return f"{prefix}{field_name}".upper()
