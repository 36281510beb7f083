import pytest

from rewind import log, staging
from rewind.staging import LocalStagingStore


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Keep staged copies and event logs of each test inside its tmp_path."""
    store = LocalStagingStore(tmp_path / "staging")
    previous = staging.set_default_store(store)
    log.configure({"log_file": str(tmp_path / "logs.jsonl")})
    monkeypatch.setattr("rewind.config.GLOBAL_CONFIG_FILE", tmp_path / "global.json")
    yield store
    staging.set_default_store(previous)


@pytest.fixture
def store(isolated):
    return isolated


@pytest.fixture
def work(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


def _tree(root):
    """Map of relative path -> bytes (None for directories) below root."""
    result = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root).as_posix()
        result[rel] = None if p.is_dir() else p.read_bytes()
    return result


@pytest.fixture
def tree():
    return _tree
