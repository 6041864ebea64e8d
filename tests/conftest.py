"""
Pytest fixtures and configuration for hvctrl tests.
"""
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest

from hvctrl.interfaces.process import ProcessResult, ProcessRunner

Response = Union[ProcessResult, Callable[[List[str]], ProcessResult]]


def ok(stdout: str = "", stderr: str = "", returncode: int = 0) -> ProcessResult:
    return ProcessResult(returncode=returncode, stdout=stdout, stderr=stderr)


class FakeRunner(ProcessRunner):
    """ProcessRunner that records commands and replays canned results.

    ``responses`` maps a substring of the joined command line to a result
    (or a callable producing one); the first matching key wins. Unmatched
    commands succeed with empty output.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None):
        self.responses = dict(responses or {})
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []

    def run(self, command, input=None, timeout=None, cwd=None, env=None):
        self.calls.append(list(command))
        self.inputs.append(input)
        line = " ".join(command)
        for key, response in self.responses.items():
            if key in line:
                return response(command) if callable(response) else response
        return ok()

    def commands(self) -> List[str]:
        return [" ".join(c) for c in self.calls]


class FakeClock:
    """Manual clock; ``sleep`` advances it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def runner():
    """A FakeRunner with no canned responses."""
    return FakeRunner()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def convergence(clock):
    """A PowerConvergence driven by the fake clock."""
    from hvctrl.convergence import PowerConvergence

    return PowerConvergence(clock=clock, sleep=clock.sleep, interval=1.0)


@pytest.fixture
def mock_session():
    """A MagicMock standing in for requests.Session."""
    session = MagicMock()
    session.request.return_value = http_response(200, "")
    return session


def http_response(status: int, body: str, encoding: str = "utf-8") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.content = body.encode(encoding)
    return response


@pytest.fixture
def integration_config():
    """Path to a real-hypervisor config; skips the test when unset."""
    path = os.environ.get("HVCTRL_TEST_CONFIG")
    if not path:
        pytest.skip("HVCTRL_TEST_CONFIG is not set")
    return Path(path)


# Markers for test categories
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "integration: Tests that drive a real hypervisor")
    config.addinivalue_line("markers", "slow: Slow tests")
