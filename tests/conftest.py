"""
Pytest configuration and fixtures for all tests.
"""
import pytest

from framebatch.core.engine import TransformEngine
from helpers import RecordingListener, RecordingWriter


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test from its own directory with no framebatch env overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FRAMEBATCH_WORK", raising=False)
    monkeypatch.delenv("FRAMEBATCH_CONFIG", raising=False)


@pytest.fixture
def temp_dir(tmp_path):
    """
    Provide a temporary directory for tests.

    This wraps pytest's built-in tmp_path fixture.
    """
    return tmp_path


@pytest.fixture
def recording_listener():
    """Listener that records every event it receives."""
    return RecordingListener()


@pytest.fixture
def recording_writer():
    return RecordingWriter()


@pytest.fixture
def engine(temp_dir, recording_listener):
    """Named engine working under the temp directory, with a recording listener."""
    engine = TransformEngine(name="test-job", work_directory=str(temp_dir / "wrk"))
    engine.add_listener(recording_listener)
    return engine

