from unittest.mock import patch

import dukpy
import pytest

from coreason_judge.models import ExecutionFailure, ExecutionRequest, Language
from coreason_judge.runtimes.javascript import QuickJSRuntime, transpile_typescript


@pytest.fixture
def runtime() -> QuickJSRuntime:
    return QuickJSRuntime()


@pytest.mark.asyncio
async def test_console_log(runtime: QuickJSRuntime) -> None:
    result = await runtime.execute(ExecutionRequest(language="js", source="console.log('hello', 42);"))
    assert result.stdout == "hello 42\n"
    assert result.stderr == ""
    assert result.exit_code == 0
    assert not result.timed_out


@pytest.mark.asyncio
async def test_console_warn_and_error(runtime: QuickJSRuntime) -> None:
    source = "console.warn('careful'); console.error('bad');"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "careful\n"
    assert result.stderr == "bad\n"
    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_echo_stdin_with_fs(runtime: QuickJSRuntime) -> None:
    source = "const data = require('fs').readFileSync(0, 'utf8'); console.log(data.trim());"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, stdin="1 2\n3 4\n"))
    assert result.stdout == "1 2\n3 4\n"


@pytest.mark.asyncio
async def test_read_line_helpers(runtime: QuickJSRuntime) -> None:
    source = "const a = Number(readLine()); const b = Number(gets()); console.log(a + b); console.log(prompt() === '');"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, stdin="2\r\n40"))
    assert result.stdout == "42\ntrue\n"


@pytest.mark.asyncio
async def test_require_other_module_is_refused(runtime: QuickJSRuntime) -> None:
    result = await runtime.execute(ExecutionRequest(language="javascript", source="require('child_process');"))
    assert result.exit_code == 1
    assert "Module not allowed" in result.stderr


@pytest.mark.asyncio
async def test_no_host_capabilities(runtime: QuickJSRuntime) -> None:
    source = "console.log(typeof process, typeof __judge_stdout, typeof std, typeof os);"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "undefined undefined undefined undefined\n"


@pytest.mark.asyncio
async def test_uncaught_exception(runtime: QuickJSRuntime) -> None:
    source = "console.log('before'); throw new Error('boom');"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "before\n"
    assert result.exit_code == 1
    assert result.failure is None
    assert "Error: boom" in result.stderr


@pytest.mark.asyncio
async def test_timers_and_promises(runtime: QuickJSRuntime) -> None:
    source = """
    setTimeout(() => console.log('late'), 50);
    setTimeout(() => console.log('early'), 10);
    Promise.resolve().then(() => console.log('micro'));
    console.log('sync');
    """
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "sync\nmicro\nearly\nlate\n"


@pytest.mark.asyncio
async def test_interval_can_be_cleared(runtime: QuickJSRuntime) -> None:
    source = """
    let ticks = 0;
    const id = setInterval(() => { ticks++; if (ticks === 3) { clearInterval(id); console.log(ticks); } }, 5);
    """
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "3\n"


@pytest.mark.asyncio
async def test_infinite_loop_times_out(runtime: QuickJSRuntime) -> None:
    source = "console.log('start'); while (true) {}"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, time_limit_ms=200))
    assert result.timed_out
    assert result.exit_code is None
    assert result.stdout == "start\n"
    assert result.stderr == "Time limit exceeded"


@pytest.mark.asyncio
async def test_endless_interval_times_out(runtime: QuickJSRuntime) -> None:
    source = "setInterval(() => { for (let i = 0; i < 1000; i++) {} }, 1);"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, time_limit_ms=200))
    assert result.timed_out


@pytest.mark.asyncio
async def test_memory_limit(runtime: QuickJSRuntime) -> None:
    source = "const parts = []; while (true) { parts.push('x'.repeat(1 << 16)); }"
    request = ExecutionRequest(language="javascript", source=source, memory_limit_kb=8 * 1024, time_limit_ms=5000)
    result = await runtime.execute(request)
    assert result.exit_code == 1
    assert not result.timed_out
    assert result.stderr


@pytest.mark.asyncio
async def test_typescript(runtime: QuickJSRuntime) -> None:
    source = """
    interface Pair { a: number; b: number }
    const p: Pair = { a: 20, b: 22 };
    const sum = (x: Pair): number => x.a + x.b;
    console.log(sum(p));
    """
    result = await runtime.execute(ExecutionRequest(language="ts", source=source))
    assert result.stdout == "42\n"
    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_typescript_transpile_failure(runtime: QuickJSRuntime) -> None:
    with patch(
        "coreason_judge.runtimes.javascript.transpile_typescript",
        side_effect=dukpy.JSRuntimeError("SyntaxError: unexpected token\n    at line 1"),
    ):
        result = await runtime.execute(ExecutionRequest(language="typescript", source="let x: = ;"))
    assert result.failure == ExecutionFailure.COMPILATION_ERROR
    assert result.stderr == "SyntaxError: unexpected token"


def test_transpile_typescript_strips_types() -> None:
    code = transpile_typescript("const n: number = 1;")
    assert ": number" not in code
    assert "n = 1" in code


@pytest.mark.asyncio
async def test_unsupported_language(runtime: QuickJSRuntime) -> None:
    with pytest.raises(ValueError):
        await runtime.execute(ExecutionRequest(language=Language.PYTHON, source="print(1)"))


@pytest.mark.asyncio
async def test_each_request_gets_a_fresh_context(runtime: QuickJSRuntime) -> None:
    await runtime.execute(ExecutionRequest(language="javascript", source="globalThis.leak = 1;"))
    result = await runtime.execute(ExecutionRequest(language="javascript", source="console.log(typeof leak);"))
    assert result.stdout == "undefined\n"


@pytest.mark.asyncio
async def test_output_is_collected_under_time_limit(runtime: QuickJSRuntime) -> None:
    # Every step runs with the engine's interrupt armed; output must still come back.
    source = """
    console.log('sync');
    console.error('warned');
    Promise.resolve().then(() => console.log('micro'));
    setTimeout(() => { console.log('timer'); throw new Error('late failure'); }, 5);
    """
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, time_limit_ms=2000))
    assert result.stdout == "sync\nmicro\ntimer\n"
    assert result.stderr.startswith("warned\n")
    assert "Error: late failure" in result.stderr
    assert result.exit_code == 1


@pytest.mark.asyncio
async def test_objects_are_printed_as_json(runtime: QuickJSRuntime) -> None:
    source = """
    console.log({ a: 1, b: [2, 'x'] }, [1, 2, 3], null, undefined, 'plain');
    const loop = {}; loop.self = loop;
    console.log(function named() {}, new Error('oops'), typeof String(loop));
    """
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert lines[0] == '{"a":1,"b":[2,"x"]} [1,2,3] null undefined plain'
    assert lines[1] == "[Function: named] Error: oops string"


@pytest.mark.asyncio
async def test_circular_object_does_not_fail(runtime: QuickJSRuntime) -> None:
    result = await runtime.execute(
        ExecutionRequest(language="javascript", source="const o = {}; o.o = o; console.log(o);")
    )
    assert result.exit_code == 0
    assert result.stdout == "[object Object]\n"


@pytest.mark.asyncio
async def test_user_overrides_do_not_break_output(runtime: QuickJSRuntime) -> None:
    source = "JSON.stringify = () => 'hijacked'; Array.prototype.join = () => ''; console.log('still here');"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source))
    assert result.stdout == "still here\n"


@pytest.mark.asyncio
async def test_stdout_is_capped() -> None:
    runtime = QuickJSRuntime(max_output_bytes=1000)
    source = "for (let i = 0; i < 10000; i++) { console.log('y'.repeat(50)); }"
    result = await runtime.execute(ExecutionRequest(language="javascript", source=source, time_limit_ms=5000))
    assert result.exit_code == 0
    assert len(result.stdout.encode("utf-8")) == 1000
    assert result.stdout.startswith("y" * 50 + "\n")


@pytest.mark.asyncio
async def test_multibyte_output_cap_keeps_whole_characters() -> None:
    runtime = QuickJSRuntime(max_output_bytes=10)
    result = await runtime.execute(ExecutionRequest(language="javascript", source="console.log('é'.repeat(20));"))
    assert result.stdout == "é" * 5
