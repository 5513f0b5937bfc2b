"""Shared test fixtures for Mart Tracker."""

import pytest

from mart_tracker.analysis_service import AnalysisError
from mart_tracker.data_store import DataStore, JSONFileStore
from mart_tracker.models import AnalysisResult
from mart_tracker.tracker import MartTracker


class FakeAnalyzer:
    """Image analyzer returning canned results or raising a canned error."""

    def __init__(self, results=None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def analyze(self, image_bytes: bytes, credential: str) -> list[AnalysisResult]:
        self.calls.append((image_bytes, credential))
        if self.error is not None:
            raise self.error
        return list(self.results)


class MemoryStore:
    """Key-value store kept in a dict."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()

    def keys(self) -> list[str]:
        return list(self.data)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def kv_store(temp_data_dir):
    """Create a JSON file store in the temporary directory."""
    return JSONFileStore(data_dir=temp_data_dir)


@pytest.fixture
def data_store(kv_store):
    """Create a DataStore with temporary storage."""
    return DataStore(kv_store)


@pytest.fixture
def analysis_results():
    """Products as an analyzer would propose them."""
    return [
        AnalysisResult(name="Milk", price=2500, unit="1L"),
        AnalysisResult(name="Eggs", price=6900, unit="10 ea"),
    ]


@pytest.fixture
def fake_analyzer(analysis_results):
    """Analyzer that always succeeds."""
    return FakeAnalyzer(results=analysis_results)


@pytest.fixture
def failing_analyzer():
    """Analyzer that always fails."""
    return FakeAnalyzer(error=AnalysisError("quota exceeded"))


@pytest.fixture
def tracker(data_store, fake_analyzer, monkeypatch):
    """Create a MartTracker with temporary storage and a fake analyzer."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return MartTracker(data_store=data_store, analyzer=fake_analyzer)


@pytest.fixture
def memory_tracker(fake_analyzer):
    """Create a MartTracker backed by an in-memory store."""
    return MartTracker(data_store=DataStore(MemoryStore()), analyzer=fake_analyzer)
