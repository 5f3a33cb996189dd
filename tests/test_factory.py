from coreason_judge.breaker import CircuitBreaker
from coreason_judge.config import JudgeConfig
from coreason_judge.factory import RuntimeFactory
from coreason_judge.models import Language
from coreason_judge.runtimes.javascript import QuickJSRuntime
from coreason_judge.runtimes.piston import PistonRuntime
from coreason_judge.runtimes.process import SubprocessRuntime


def test_local_runtimes_cover_every_language() -> None:
    runtimes = RuntimeFactory.get_local_runtimes(JudgeConfig())
    assert set(runtimes) == set(Language)
    assert isinstance(runtimes[Language.JAVASCRIPT], QuickJSRuntime)
    assert runtimes[Language.TYPESCRIPT] is runtimes[Language.JAVASCRIPT]
    assert isinstance(runtimes[Language.PYTHON], SubprocessRuntime)
    assert runtimes[Language.JAVA] is runtimes[Language.CPP]


def test_remote_runtime_from_config() -> None:
    config = JudgeConfig(piston_url="https://piston.internal/api/v2/piston/", remote_timeout=5.0)
    breaker = CircuitBreaker()
    remote = RuntimeFactory.get_remote_runtime(config, breaker=breaker)
    assert isinstance(remote, PistonRuntime)
    assert remote.base_url == "https://piston.internal/api/v2/piston"
    assert remote.timeout == 5.0
    assert remote.breaker is breaker
    assert remote.default_versions[Language.PYTHON] == "3.11.0"


def test_remote_runtime_disabled() -> None:
    assert RuntimeFactory.get_remote_runtime(JudgeConfig(remote_enabled=False)) is None


def test_javascript_runtime_gets_output_cap() -> None:
    runtimes = RuntimeFactory.get_local_runtimes(JudgeConfig(max_output_bytes=4096))
    javascript = runtimes[Language.JAVASCRIPT]
    assert isinstance(javascript, QuickJSRuntime)
    assert javascript.max_output_bytes == 4096
