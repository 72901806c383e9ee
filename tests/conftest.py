"""Pytest configuration and fixtures for ripple tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from ripple.models import Parameter, ParseResult, Symbol
from ripple.parser import Parser, symbol_at


class FakeClock:
    """Manually advanced clock for TTL and timestamp tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubParser(Parser):
    """Parser serving canned results keyed by workspace-relative path."""

    def __init__(self, workspace_root, results: Optional[Dict[str, ParseResult]] = None):
        super().__init__(workspace_root)
        self.results: Dict[str, ParseResult] = dict(results or {})
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None

    @property
    def language(self) -> str:
        return "stub"

    def get_supported_extensions(self) -> List[str]:
        return [".stub"]

    def parse(self, file_path, content=None) -> ParseResult:
        rel = self.relative_path(file_path)
        self.calls.append(rel)
        if self.fail_with is not None:
            raise self.fail_with
        return self.results.get(rel, ParseResult(file_path=rel, language="stub"))

    def find_symbol_at_position(self, file_path, line, column, content=None):
        result = self.results.get(self.relative_path(file_path))
        return symbol_at(result.symbols, line, column) if result else None


def make_symbol(
    name: str,
    kind: str = "function",
    file_path: str = "a.py",
    start_line: int = 1,
    end_line: int = 10,
    signature: Optional[str] = None,
    params: Optional[List[str]] = None,
    optional: Optional[List[str]] = None,
    return_type: Optional[str] = None,
) -> Symbol:
    parameters = None
    if params is not None or optional is not None:
        parameters = tuple(
            [Parameter(p) for p in params or []]
            + [Parameter(p, optional=True) for p in optional or []]
        )
    return Symbol(
        name=name,
        kind=kind,
        file_path=file_path,
        start_line=start_line,
        end_line=end_line,
        signature=signature,
        parameters=parameters,
        return_type=return_type,
    )


@pytest.fixture
def symbol_factory():
    """Factory building :class:`Symbol` values with sensible defaults."""
    return make_symbol


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def workspace(temp_dir: Path, sample_project_path: Path) -> Path:
    """A writable copy of the sample project."""
    root = temp_dir / "workspace"
    shutil.copytree(sample_project_path, root)
    return root


@pytest.fixture
def stub_parser(temp_dir: Path) -> StubParser:
    return StubParser(temp_dir)


@pytest.fixture(autouse=True)
def _isolated_home(temp_dir: Path, monkeypatch):
    """Point the config file at the temp directory."""
    monkeypatch.setattr("ripple.config.BASE_DIR", temp_dir / "home")
    monkeypatch.setattr("ripple.config.CONFIG_FILE", temp_dir / "home" / "config.toml")


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing parser."""
    return '''"""Sample module for testing."""

LIMIT = 10


def hello(name: str) -> str:
    """Say hello."""
    return f"Hello, {name}!"


class Calculator:
    """Simple calculator."""

    def add(self, a: int, b: int) -> int:
        return a + b

    def multiply(self, a: int, b: int) -> int:
        result = self.add(a, 0)
        for _ in range(b - 1):
            result = self.add(result, a)
        return result


class Scientific(Calculator):
    @staticmethod
    def square(x, *args, scale=1, **kwargs):
        return hello("sq") and x * x * scale


async def fetch(url, timeout: float = 5.0):
    return url
'''
