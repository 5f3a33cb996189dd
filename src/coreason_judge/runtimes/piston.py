# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judge

import math
import threading
from typing import Any

import httpx
from loguru import logger

from coreason_judge.breaker import CircuitBreaker
from coreason_judge.models import ExecutionFailure, ExecutionRequest, ExecutionResult, Language
from coreason_judge.runtime import ToolchainRuntime
from coreason_judge.runtimes.process import java_source_name

_PISTON_LANGUAGES: dict[Language, str] = {
    Language.PYTHON: "python",
    Language.JAVA: "java",
    Language.CPP: "c++",
    Language.JAVASCRIPT: "javascript",
    Language.TYPESCRIPT: "typescript",
}

_SOURCE_NAMES = {
    Language.PYTHON: "main.py",
    Language.CPP: "main.cpp",
    Language.JAVASCRIPT: "main.js",
    Language.TYPESCRIPT: "main.ts",
}

_MAX_BODY_PREVIEW = 500

# Discovered versions are shared by every runtime pointed at the same service.
_VERSION_CACHE: dict[tuple[str, Language], str] = {}
_VERSION_LOCK = threading.Lock()


class RemoteExecutorError(Exception):
    """Raised internally when the remote executor cannot produce a usable response."""


class PistonRuntime(ToolchainRuntime):
    """
    Adapter for a Piston-compatible remote execution service.

    Transport and protocol failures never raise: they come back as results with
    ``failure=NETWORK_ERROR`` so the orchestrator can judge them as runtime errors.
    """

    languages = frozenset(_PISTON_LANGUAGES)

    def __init__(
        self,
        base_url: str = "https://emkc.org/api/v2/piston",
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
        compile_timeout_ms: int = 10000,
        default_versions: dict[Language, str] | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient()
        self.timeout = timeout
        self.compile_timeout_ms = compile_timeout_ms
        self.default_versions = dict(default_versions or {})
        self.breaker = breaker

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    async def list_runtimes(self) -> list[dict[str, Any]]:
        """Returns the service's runtimes for the languages this engine supports (GET /runtimes).

        Raises:
            RemoteExecutorError: If the service is unreachable or answers with garbage.
        """
        payload = await self._request("GET", "/runtimes")
        if not isinstance(payload, list):
            raise RemoteExecutorError("Remote executor returned an invalid runtimes listing")
        wanted = set(_PISTON_LANGUAGES.values())
        return [
            entry
            for entry in payload
            if isinstance(entry, dict)
            and (entry.get("language") in wanted or wanted.intersection(entry.get("aliases") or []))
        ]

    async def resolve_version(self, request: ExecutionRequest) -> str:
        """Pinned version, then cached or configured default, then the catalogue."""
        if request.version:
            return request.version
        key = (self.base_url, request.language)
        with _VERSION_LOCK:
            cached = _VERSION_CACHE.get(key)
        if cached:
            return cached
        version = self.default_versions.get(request.language)
        if not version:
            version = _match_runtime(await self.list_runtimes(), _PISTON_LANGUAGES[request.language])
            logger.info(f"Discovered remote {request.language.value} version {version}")
        with _VERSION_LOCK:
            _VERSION_CACHE[key] = version
        return version

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        self._check_language(request)

        if self.breaker is not None and not self.breaker.allow_request():
            logger.warning("Remote executor skipped, circuit is open")
            return _network_failure("Remote executor unavailable (circuit open)")

        try:
            version = await self.resolve_version(request)
            payload = await self._request("POST", "/execute", json=self._build_payload(request, version))
            result = _parse_execution(payload)
        except RemoteExecutorError as e:
            if self.breaker is not None:
                self.breaker.record_failure()
            logger.error(f"Remote execution failed: {e}")
            return _network_failure(str(e))
        except BaseException:
            # Cancelled or unexpected: the attempt says nothing about the service.
            if self.breaker is not None:
                self.breaker.release_trial()
            raise

        if self.breaker is not None:
            self.breaker.record_success()
        logger.info(
            "Remote execution finished",
            language=request.language.value,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
        )
        return result

    def _build_payload(self, request: ExecutionRequest, version: str) -> dict[str, Any]:
        if request.language == Language.JAVA:
            name = java_source_name(request.source)
        else:
            name = _SOURCE_NAMES[request.language]
        payload: dict[str, Any] = {
            "language": _PISTON_LANGUAGES[request.language],
            "version": version,
            "files": [{"name": name, "content": request.source}],
            "stdin": request.stdin,
            "compile_timeout": self.compile_timeout_ms,
            "run_timeout": request.time_limit_ms,
        }
        if request.memory_limit_kb:
            payload["run_memory_limit"] = request.memory_limit_kb * 1024
        return payload

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteExecutorError(f"Remote executor timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise RemoteExecutorError(f"Remote executor request failed: {e}") from e

        if not response.is_success:
            raise RemoteExecutorError(
                f"Remote executor HTTP {response.status_code}: {response.text[:_MAX_BODY_PREVIEW]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise RemoteExecutorError(
                f"Remote executor HTTP {response.status_code}: invalid JSON {response.text[:_MAX_BODY_PREVIEW]!r}"
            ) from e


def _match_runtime(runtimes: list[dict[str, Any]], name: str) -> str:
    for entry in runtimes:
        if not isinstance(entry, dict):
            continue
        if entry.get("language") == name or name in (entry.get("aliases") or []):
            version = entry.get("version")
            if isinstance(version, str) and version:
                return version
    raise RemoteExecutorError(f"Remote executor has no runtime for {name}")


def _parse_execution(payload: Any) -> ExecutionResult:
    try:
        return _build_result(payload)
    except (TypeError, ValueError) as e:
        raise RemoteExecutorError(f"Remote executor returned an invalid result: {e}") from e


def _build_result(payload: Any) -> ExecutionResult:
    if not isinstance(payload, dict) or not isinstance(payload.get("run"), dict):
        raise RemoteExecutorError(f"Remote executor returned an unexpected payload: {str(payload)[:_MAX_BODY_PREVIEW]}")

    compile_stage = payload.get("compile")
    if isinstance(compile_stage, dict) and compile_stage.get("code") not in (0, None):
        code = compile_stage.get("code")
        return ExecutionResult(
            stdout=_text(compile_stage.get("stdout")),
            stderr=_text(compile_stage.get("stderr")) or _text(compile_stage.get("output")),
            exit_code=code if _is_int(code) else None,
            failure=ExecutionFailure.COMPILATION_ERROR,
        )

    run = payload["run"]
    timed_out = run.get("signal") == "SIGKILL"
    stderr = _text(run.get("stderr"))
    if timed_out and not stderr:
        stderr = "Time limit exceeded"
    exit_code = run.get("code")
    return ExecutionResult(
        stdout=_text(run.get("stdout")),
        stderr=stderr,
        exit_code=exit_code if _is_int(exit_code) else None,
        timed_out=timed_out,
        runtime_ms=_int_or_zero(run.get("wall_time")),
        peak_memory_kb=_kb_or_none(run.get("memory")),
    )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def _int_or_zero(value: Any) -> int:
    return int(value) if _is_number(value) else 0


def _kb_or_none(value: Any) -> int | None:
    return int(value) // 1024 if _is_number(value) else None


def _network_failure(message: str) -> ExecutionResult:
    return ExecutionResult(stderr=message, failure=ExecutionFailure.NETWORK_ERROR)
