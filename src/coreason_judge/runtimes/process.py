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
import os
import re
import shutil
import signal
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from coreason_judge.config import JudgeConfig
from coreason_judge.memory import MemorySampler
from coreason_judge.models import ExecutionFailure, ExecutionRequest, ExecutionResult, Language, ToolchainStatus
from coreason_judge.runtime import ToolchainRuntime

_READ_CHUNK = 64 * 1024
_PIPE_GRACE_SECONDS = 1.0
_EXIT_POLL_SECONDS = 0.005
_JAVA_CLASS = re.compile(r"public\s+(?:(?:final|abstract)\s+)*class\s+([A-Za-z_$][\w$]*)")
_COMPILER_DIAGNOSTIC = re.compile(r"(?:^|\s|:)error\s*:", re.IGNORECASE)
_EXECUTABLE = "a.exe" if os.name == "nt" else "a.out"


@dataclass(frozen=True)
class ToolCommand:
    """One step of a toolchain: which binary runs and how its argv is built.

    ``setting`` names the JudgeConfig field holding the binary, or None when the
    step runs an artifact produced by the compile step.
    """

    description: str
    setting: str | None
    argv: Callable[[JudgeConfig, Path, Path], list[str]]

    def binary(self, config: JudgeConfig) -> str | None:
        return getattr(config, self.setting) if self.setting else None


@dataclass(frozen=True)
class Toolchain:
    language: Language
    source_name: Callable[[str], str]
    run: ToolCommand
    compile: ToolCommand | None = None


def java_source_name(source: str) -> str:
    """Java requires the file to be named after its public class."""
    match = _JAVA_CLASS.search(source)
    return f"{match.group(1) if match else 'Solution'}.java"


TOOLCHAINS: dict[Language, Toolchain] = {
    Language.PYTHON: Toolchain(
        language=Language.PYTHON,
        source_name=lambda _: "main.py",
        run=ToolCommand("Python interpreter", "python_bin", lambda c, wd, src: [c.python_bin, str(src)]),
    ),
    Language.JAVA: Toolchain(
        language=Language.JAVA,
        source_name=java_source_name,
        compile=ToolCommand("Java compiler", "javac_bin", lambda c, wd, src: [c.javac_bin, "-d", str(wd), str(src)]),
        run=ToolCommand("Java runtime", "java_bin", lambda c, wd, src: [c.java_bin, "-cp", str(wd), src.stem]),
    ),
    Language.CPP: Toolchain(
        language=Language.CPP,
        source_name=lambda _: "main.cpp",
        compile=ToolCommand(
            "C++ compiler",
            "gxx_bin",
            lambda c, wd, src: [c.gxx_bin, *c.cpp_flags, str(src), "-o", str(wd / _EXECUTABLE)],
        ),
        run=ToolCommand("compiled program", None, lambda c, wd, src: [str(wd / _EXECUTABLE)]),
    ),
}


@dataclass
class _ProcessOutput:
    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool
    runtime_ms: int
    peak_memory_kb: int | None


class ToolchainLaunchError(Exception):
    """A toolchain binary could not be started."""

    def __init__(self, command: ToolCommand, binary: str, cause: OSError):
        self.command = command
        self.binary = binary
        self.cause = cause
        super().__init__(str(cause))


class SubprocessRuntime(ToolchainRuntime):
    """
    Compile-and-run driver for languages with an external toolchain (Python, Java, C++).

    Every request gets its own staging directory, removed on every exit path.
    """

    languages = frozenset(TOOLCHAINS)

    def __init__(self, config: JudgeConfig | None = None):
        self.config = config or JudgeConfig()

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        self._check_language(request)
        toolchain = TOOLCHAINS[request.language]

        work_dir = Path(tempfile.mkdtemp(prefix=f"coreason-judge-{request.language.value}-", dir=self.config.temp_dir))
        logger.debug(f"Staging {request.language.value} request in {work_dir}")
        try:
            source_file = work_dir / toolchain.source_name(request.source)
            source_file.write_text(request.source, encoding="utf-8")

            if toolchain.compile is not None:
                compile_failure = await self._compile(toolchain.compile, work_dir, source_file)
                if compile_failure is not None:
                    return compile_failure

            return await self._run(toolchain.run, work_dir, source_file, request)
        finally:
            _remove_tree(work_dir)

    async def _compile(self, command: ToolCommand, work_dir: Path, source_file: Path) -> ExecutionResult | None:
        """Run the compile step. Returns a result only when the run step must not start."""
        argv = command.argv(self.config, work_dir, source_file)
        start = time.perf_counter()
        try:
            process = await _spawn(command, argv, work_dir, stdin=asyncio.subprocess.DEVNULL)
        except ToolchainLaunchError as e:
            return self._launch_failure(e, work_dir)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.config.compile_timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            logger.warning(f"{command.description} timed out after {self.config.compile_timeout_ms}ms")
            return ExecutionResult(
                stderr="Compilation timed out",
                failure=ExecutionFailure.COMPILATION_ERROR,
                runtime_ms=_elapsed_ms(start),
            )
        finally:
            if process.returncode is None:
                _kill(process)
                await process.wait()

        diagnostics = _scrub(stderr.decode("utf-8", errors="replace") or stdout.decode("utf-8", errors="replace"), work_dir)
        if process.returncode != 0 or _COMPILER_DIAGNOSTIC.search(diagnostics):
            logger.info(f"Compilation failed (exit {process.returncode}): {diagnostics[:200]}")
            return ExecutionResult(
                stderr=diagnostics or f"{command.description} exited with status {process.returncode}",
                exit_code=process.returncode,
                failure=ExecutionFailure.COMPILATION_ERROR,
                runtime_ms=_elapsed_ms(start),
            )
        return None

    async def _run(
        self, command: ToolCommand, work_dir: Path, source_file: Path, request: ExecutionRequest
    ) -> ExecutionResult:
        argv = command.argv(self.config, work_dir, source_file)
        try:
            output = await self._run_process(command, argv, work_dir, request)
        except ToolchainLaunchError as e:
            return self._launch_failure(e, work_dir)

        stderr = _scrub(output.stderr, work_dir)
        if output.timed_out and not stderr:
            stderr = "Time limit exceeded"

        logger.info(
            f"Executed {request.language.value} in {output.runtime_ms}ms",
            exit_code=output.exit_code,
            timed_out=output.timed_out,
            peak_memory_kb=output.peak_memory_kb,
        )
        return ExecutionResult(
            stdout=output.stdout,
            stderr=stderr,
            exit_code=output.exit_code,
            timed_out=output.timed_out,
            runtime_ms=output.runtime_ms,
            peak_memory_kb=output.peak_memory_kb,
        )

    async def _run_process(
        self, command: ToolCommand, argv: list[str], work_dir: Path, request: ExecutionRequest
    ) -> _ProcessOutput:
        limit = self.config.max_output_bytes
        stdout_buf = bytearray()
        stderr_buf = bytearray()

        start = time.perf_counter()
        process = await _spawn(command, argv, work_dir, stdin=asyncio.subprocess.PIPE)
        sampler = MemorySampler(process.pid, self.config.memory_sample_interval_ms / 1000)

        assert process.stdin is not None and process.stdout is not None and process.stderr is not None
        io_tasks = [
            asyncio.create_task(_feed(process.stdin, request.stdin.encode("utf-8"))),
            asyncio.create_task(_drain(process.stdout, stdout_buf, limit)),
            asyncio.create_task(_drain(process.stderr, stderr_buf, limit)),
        ]
        sampler_task = asyncio.create_task(sampler.run())

        timed_out = False
        try:
            try:
                await asyncio.wait_for(_wait_exit(process), timeout=request.time_limit_ms / 1000)
            except asyncio.TimeoutError:
                timed_out = True
                logger.warning(f"Time limit of {request.time_limit_ms}ms exceeded, killing pid {process.pid}")
            runtime_ms = _elapsed_ms(start)
            # Background children left in the session would keep the pipes open and outlive the case.
            _kill(process)
            await _wait_exit(process)
            await asyncio.wait(io_tasks, timeout=_PIPE_GRACE_SECONDS)
        finally:
            sampler_task.cancel()
            if process.returncode is None:
                _kill(process)
                await _wait_exit(process)
            for task in io_tasks:
                task.cancel()
            await asyncio.gather(sampler_task, *io_tasks, return_exceptions=True)

        return _ProcessOutput(
            stdout=stdout_buf.decode("utf-8", errors="replace"),
            stderr=stderr_buf.decode("utf-8", errors="replace"),
            exit_code=process.returncode,
            timed_out=timed_out,
            runtime_ms=runtime_ms,
            peak_memory_kb=sampler.peak_kb,
        )

    def _launch_failure(self, error: ToolchainLaunchError, work_dir: Path) -> ExecutionResult:
        command = error.command
        reason = _launch_reason(error.cause)
        if command.setting is None:
            # The compile step produced an artifact that the host cannot execute.
            message = _scrub(f"Failed to start {command.description}: {reason}", work_dir)
            logger.error(message)
            return ExecutionResult(stderr=message, failure=ExecutionFailure.TOOLCHAIN_MISSING)

        message = _scrub(
            f"Failed to start {command.description} ({error.binary}): {reason}. "
            f"Install it or set {JudgeConfig.env_name(command.setting)}.",
            work_dir,
        )
        logger.warning(message)
        return ExecutionResult(stderr=message, failure=ExecutionFailure.TOOLCHAIN_MISSING)


def _launch_reason(cause: OSError) -> str:
    if isinstance(cause, FileNotFoundError):
        return "binary not found"
    # strerror omits the filename, which may sit inside the staging directory.
    return cause.strerror or type(cause).__name__


async def _spawn(command: ToolCommand, argv: list[str], cwd: Path, stdin: int) -> asyncio.subprocess.Process:
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        raise ToolchainLaunchError(command, argv[0], e) from e


async def _feed(stream: asyncio.StreamWriter, data: bytes) -> None:
    """Write all of stdin, then close it so line readers see EOF."""
    try:
        if data:
            stream.write(data)
            await stream.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The child exited without consuming its input.
        pass
    finally:
        stream.close()


async def _drain(stream: asyncio.StreamReader, buffer: bytearray, limit: int) -> None:
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        room = limit - len(buffer)
        if room > 0:
            buffer.extend(chunk[:room])


def _kill(process: asyncio.subprocess.Process) -> None:
    """SIGKILL the process and, on POSIX, its whole session."""
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass
    except PermissionError:
        try:
            process.kill()
        except ProcessLookupError:
            pass


async def _wait_exit(process: asyncio.subprocess.Process) -> int:
    """Wait for the child itself to exit, even while descendants still hold its pipes."""
    while process.returncode is None:
        await asyncio.sleep(_EXIT_POLL_SECONDS)
    return process.returncode


def _scrub(text: str, work_dir: Path) -> str:
    """Strip staging-directory paths so internal locations never reach users."""
    for prefix in sorted({str(work_dir), str(work_dir.resolve())}, key=len, reverse=True):
        text = text.replace(prefix + os.sep, "").replace(prefix, ".")
    return text


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Failed to remove staging directory {path}: {e}")


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


_VERSION_FLAGS: dict[str, list[str]] = {
    "python_bin": ["--version"],
    "javac_bin": ["-version"],
    "java_bin": ["-version"],
    "gxx_bin": ["--version"],
}


async def inspect_toolchains(config: JudgeConfig | None = None, timeout: float = 10.0) -> dict[str, ToolchainStatus]:
    """Check that every configured toolchain binary can be launched.

    Returns:
        dict[str, ToolchainStatus]: Status keyed by config field (``python_bin``, ``gxx_bin``, ...).
    """
    config = config or JudgeConfig()
    statuses: dict[str, ToolchainStatus] = {}
    for setting, flags in _VERSION_FLAGS.items():
        binary = getattr(config, setting)
        try:
            process = await asyncio.create_subprocess_exec(
                binary, *flags, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            reason = "binary not found" if isinstance(e, FileNotFoundError) else str(e)
            statuses[setting] = ToolchainStatus(
                binary=binary, ok=False, detail=f"{reason}; set {JudgeConfig.env_name(setting)}"
            )
            continue
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            statuses[setting] = ToolchainStatus(binary=binary, ok=False, detail="version check timed out")
            continue
        text = (stdout or stderr).decode("utf-8", errors="replace").strip()
        first_line = text.splitlines()[0] if text else ""
        statuses[setting] = ToolchainStatus(binary=binary, ok=process.returncode == 0, detail=first_line)
    return statuses
