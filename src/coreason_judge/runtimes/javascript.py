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
import json
import time
from collections.abc import Callable
from typing import Any

import dukpy
import quickjs
from loguru import logger

from coreason_judge.models import ExecutionFailure, ExecutionRequest, ExecutionResult, Language
from coreason_judge.runtime import ToolchainRuntime

_DEFAULT_HEAP_LIMIT = 256 * 1024 * 1024

# Everything evaluated code can reach is defined here. Output stays inside the
# engine: QuickJS refuses calls into Python while a time limit is armed, so the
# host reads the buffers through __judge_take between evaluation steps.
_PRELUDE = r"""
(() => {
  "use strict";
  const stringify = JSON.stringify;
  const join = Function.prototype.call.bind(Array.prototype.join);
  const limit = %(limit)d;
  const buffers = { out: [], err: [], outSize: 0, errSize: 0 };
  const write = (stream, text) => {
    const size = stream + "Size";
    const room = limit - buffers[size];
    if (room <= 0) return;
    const line = text.length < room ? text + "\n" : text.slice(0, room);
    const chunks = buffers[stream];
    chunks[chunks.length] = line;
    buffers[size] += line.length;
  };
  Object.defineProperty(globalThis, "__judge_take", {
    value: () => {
      const taken = stringify([join(buffers.out, ""), join(buffers.err, "")]);
      buffers.out = [];
      buffers.err = [];
      return taken;
    },
  });

  const stdin = %(stdin)s;
  const lines = stdin.split(/\r?\n/);
  let cursor = 0;
  const nextLine = () => (cursor < lines.length ? lines[cursor++] : "");
  const show = (value) => {
    if (typeof value === "function") return `[Function: ${value.name || "anonymous"}]`;
    if (value instanceof Error) return `${value.name}: ${value.message}`;
    if (value === null || typeof value !== "object") return String(value);
    try {
      const text = stringify(value);
      return text === undefined ? String(value) : text;
    } catch (e) {
      return String(value);
    }
  };
  const format = (args) => join(args.map(show), " ");

  globalThis.console = Object.freeze({
    log: (...args) => { write("out", format(args)); },
    warn: (...args) => { write("out", format(args)); },
    error: (...args) => { write("err", format(args)); },
  });
  globalThis.readLine = nextLine;
  globalThis.gets = nextLine;
  globalThis.prompt = nextLine;

  const fs = Object.freeze({ readFileSync: () => stdin });
  globalThis.require = (name) => {
    if (name === "fs") return fs;
    throw new Error("Module not allowed");
  };

  const timers = new Map();
  let nextId = 1;
  let now = 0;
  const schedule = (fn, delay, args, repeat) => {
    const id = nextId++;
    const wait = Math.max(0, Number(delay) || 0);
    timers.set(id, { fn, args, due: now + wait, order: id, every: repeat ? Math.max(1, wait) : null });
    return id;
  };
  const clear = (id) => { timers.delete(id); };
  globalThis.setTimeout = (fn, delay, ...args) => schedule(fn, delay, args, false);
  globalThis.setInterval = (fn, delay, ...args) => schedule(fn, delay, args, true);
  globalThis.clearTimeout = clear;
  globalThis.clearInterval = clear;

  // Runs the earliest pending timer on a virtual clock; false when none are left.
  globalThis.__judge_run_next_timer = () => {
    let nextKey = null;
    let next = null;
    for (const [key, timer] of timers) {
      if (next === null || timer.due < next.due || (timer.due === next.due && timer.order < next.order)) {
        nextKey = key;
        next = timer;
      }
    }
    if (next === null) return false;
    now = next.due;
    if (next.every === null) {
      timers.delete(nextKey);
    } else {
      next.due = now + next.every;
      next.order = nextId++;
    }
    if (typeof next.fn === "function") next.fn(...next.args);
    return true;
  };
})();
"""


class _EvaluationTimeout(Exception):
    pass


class QuickJSRuntime(ToolchainRuntime):
    """In-process JavaScript/TypeScript evaluator.

    Each request gets a fresh QuickJS context whose global object only exposes the
    console, line readers, timers and a ``require`` that serves ``fs.readFileSync``
    over stdin. There is no network, filesystem or process access.
    """

    languages = frozenset({Language.JAVASCRIPT, Language.TYPESCRIPT})

    def __init__(self, max_output_bytes: int = 10 * 1024 * 1024):
        self.max_output_bytes = max_output_bytes

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        self._check_language(request)

        code = request.source
        if request.language == Language.TYPESCRIPT:
            try:
                code = await asyncio.to_thread(transpile_typescript, request.source)
            except dukpy.JSRuntimeError as e:
                message = _first_line(str(e))
                logger.info(f"TypeScript transpilation failed: {message}")
                return ExecutionResult(stderr=message, failure=ExecutionFailure.COMPILATION_ERROR)

        return await asyncio.to_thread(self._evaluate, code, request)

    def _evaluate(self, code: str, request: ExecutionRequest) -> ExecutionResult:
        stdout: list[str] = []
        stderr: list[str] = []
        budget = request.time_limit_ms / 1000

        context = quickjs.Context()
        context.set_memory_limit(request.memory_limit_kb * 1024 if request.memory_limit_kb else _DEFAULT_HEAP_LIMIT)
        context.eval(_PRELUDE % {"stdin": json.dumps(request.stdin), "limit": self.max_output_bytes})

        start = time.perf_counter()
        timed_out = False
        failed = False

        def collect() -> None:
            try:
                out, err = json.loads(context.eval("__judge_take()"))
            except (quickjs.JSException, MemoryError) as e:
                logger.warning(f"Could not read JavaScript output buffers: {e}")
                return
            stdout.append(out)
            stderr.append(err)

        def run(step: Callable[[], Any]) -> Any:
            remaining = budget - (time.perf_counter() - start)
            if remaining <= 0:
                raise _EvaluationTimeout()
            context.set_time_limit(remaining)
            try:
                return step()
            finally:
                context.set_time_limit(-1)
                collect()

        try:
            run(lambda: context.eval(code))
            run(lambda: self._drain_jobs(context))
            while run(lambda: context.eval("__judge_run_next_timer()")):
                run(lambda: self._drain_jobs(context))
        except _EvaluationTimeout:
            timed_out = True
        except quickjs.JSException as e:
            if _is_interrupt(e):
                timed_out = True
            else:
                failed = True
                stderr.append(f"{_first_line(str(e))}\n")
        except MemoryError:
            failed = True
            stderr.append("InternalError: out of memory\n")

        runtime_ms = int((time.perf_counter() - start) * 1000)
        err_text = _cap("".join(stderr), self.max_output_bytes)
        if timed_out:
            logger.warning(f"JavaScript evaluation exceeded {request.time_limit_ms}ms")
            err_text = err_text or "Time limit exceeded"

        logger.info(f"Evaluated {request.language.value} in {runtime_ms}ms", timed_out=timed_out, failed=failed)
        return ExecutionResult(
            stdout=_cap("".join(stdout), self.max_output_bytes),
            stderr=err_text,
            exit_code=None if timed_out else (1 if failed else 0),
            timed_out=timed_out,
            runtime_ms=runtime_ms,
            peak_memory_kb=_heap_used_kb(context),
        )

    @staticmethod
    def _drain_jobs(context: quickjs.Context) -> None:
        while context.execute_pending_job():
            pass


def transpile_typescript(source: str) -> str:
    """Strip TypeScript syntax down to plain JavaScript. Type errors are not reported."""
    return dukpy.typescript_compile(source)


def _cap(text: str, limit: int) -> str:
    """Truncate to ``limit`` UTF-8 bytes without splitting a character."""
    data = text.encode("utf-8", errors="replace")
    if len(data) <= limit:
        return text
    return data[:limit].decode("utf-8", errors="ignore")


def _is_interrupt(error: quickjs.JSException) -> bool:
    return str(error).startswith("InternalError: interrupted")


def _first_line(text: str) -> str:
    lines = text.strip().splitlines()
    return lines[0] if lines else text


def _heap_used_kb(context: quickjs.Context) -> int | None:
    try:
        used = context.memory().get("memory_used_size")
    except (AttributeError, TypeError):
        return None
    return int(used) // 1024 if used else None
