# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import TextContent

from coreason_judge.judge import JudgeAsync
from coreason_judge.models import ExecutionRequest, Submission
from coreason_judge.utils.logger import logger

# Initialize Judge Logic
judge = JudgeAsync()

# Initialize MCP Server
mcp = FastMCP("coreason-judge")


@mcp.tool()  # type: ignore[misc]
async def run_code(language: str, code: str, stdin: str = "", time_limit_ms: int | None = None) -> list[TextContent]:
    """
    Run source code once against the given stdin.
    Returns stdout, stderr, exit code and resource usage.
    """
    try:
        request = ExecutionRequest(
            language=language,
            source=code,
            stdin=stdin,
            time_limit_ms=time_limit_ms or judge.config.time_limit_ms,
        )
        result = await judge.execute(request)
    except Exception as e:
        logger.exception("run_code failed")
        return [TextContent(type="text", text=f"Error running code: {e!s}")]

    output: list[TextContent] = []
    if result.stdout:
        output.append(TextContent(type="text", text=f"STDOUT:\n{result.stdout}"))
    if result.stderr:
        output.append(TextContent(type="text", text=f"STDERR:\n{result.stderr}"))
    if result.failure is not None:
        output.append(TextContent(type="text", text=f"Failure: {result.failure.value}"))
    if result.timed_out:
        output.append(TextContent(type="text", text="Timed Out: true"))
    output.append(TextContent(type="text", text=f"Exit Code: {result.exit_code}"))
    output.append(TextContent(type="text", text=f"Runtime: {result.runtime_ms}ms"))
    if result.peak_memory_kb is not None:
        output.append(TextContent(type="text", text=f"Peak Memory: {result.peak_memory_kb}KB"))
    return output


@mcp.tool()  # type: ignore[misc]
async def submit_code(
    language: str,
    code: str,
    test_cases: list[dict[str, Any]],
    comparison_mode: str | None = None,
    detailed: bool = True,
) -> dict[str, Any]:
    """
    Judge source code against a list of test cases ({"input", "expectedOutput"}).
    Returns the submission verdict; per-case verdicts are included when detailed.
    """
    try:
        submission = Submission(
            language=language,
            source=code,
            test_cases=test_cases,
            comparison_mode=comparison_mode,
        )
        verdict = await judge.judge(submission, detailed=detailed)
    except Exception as e:
        logger.exception("submit_code failed")
        return {"error": f"Error judging submission: {e!s}"}
    return verdict.model_dump(mode="json", by_alias=True, exclude_none=True)


@mcp.tool()  # type: ignore[misc]
async def check_environment() -> dict[str, Any]:
    """
    Report which local compilers and interpreters are available.
    """
    statuses = await judge.check_environment()
    return {
        "executorMode": judge.config.executor_mode,
        "remoteEnabled": judge.config.remote_enabled,
        "toolchains": {name: status.model_dump() for name, status in statuses.items()},
    }


@mcp.tool()  # type: ignore[misc]
async def list_remote_runtimes() -> list[dict[str, Any]] | str:
    """
    List the runtimes offered by the remote execution service.
    """
    remote = judge.executor.remote
    if remote is None:
        return "Remote executor is disabled"
    try:
        return await remote.list_runtimes()
    except Exception as e:
        return f"Error listing remote runtimes: {e!s}"


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
