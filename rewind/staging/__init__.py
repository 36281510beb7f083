from rewind.staging.base import StagedSnapshot, StagingStore
from rewind.staging.local import LocalStagingStore

_default = None


def create_staging_store(config=None):
    """Create a staging store from config.

    Config keys:
        staging_backend: "local" (default)
        staging_dir: root directory for staged copies (default: <tmp>/rewind-staging)
    """
    config = config or {}
    backend = config.get("staging_backend", "local")

    if backend == "local":
        return LocalStagingStore(config.get("staging_dir") or None)

    raise ValueError(f"Unknown staging backend: {backend!r}. Use 'local'.")


def default_store():
    """The store used by the undoable file and directory operations."""
    global _default
    if _default is None:
        from rewind.config import load_config
        _default = create_staging_store(load_config())
    return _default


def set_default_store(store):
    """Replace the store used by the undoable operations. Returns the previous one."""
    global _default
    previous, _default = _default, store
    return previous


__all__ = [
    "LocalStagingStore",
    "StagedSnapshot",
    "StagingStore",
    "create_staging_store",
    "default_store",
    "set_default_store",
]
