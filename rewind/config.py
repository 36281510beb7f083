import json
from pathlib import Path

REWINDCONFIG = ".rewindconfig"
GLOBAL_CONFIG_FILE = Path.home() / ".rewind" / "config.json"

DEFAULT_CONFIG = {
    "staging_backend": "local",
    # Optional: "staging_dir": "/tmp/my-staging"
    # Optional: "log_file": "" to disable the JSONL event log
    # Optional: "cloudwatch_log_group": "/ci/integration-tests"
}


def load_global_config():
    """Load ~/.rewind/config.json (machine-wide defaults)."""
    if GLOBAL_CONFIG_FILE.exists():
        try:
            return json.loads(GLOBAL_CONFIG_FILE.read_text())
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def find_config(start=None):
    """Walk up from start (default: cwd) to find .rewindconfig, like git finds .git."""
    current = Path(start) if start else Path.cwd()
    for parent in [current, *current.parents]:
        config_path = parent / REWINDCONFIG
        if config_path.exists():
            return config_path
    return None


def load_config(start=None):
    # Merge order: defaults → global config → project .rewindconfig
    config = {**DEFAULT_CONFIG, **load_global_config()}

    config_path = find_config(start)
    if config_path:
        try:
            raw = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ValueError(f"{config_path} must contain a JSON object")
        config.update(raw)

    return config


def init_config(path=None, staging_dir=None):
    """Create a .rewindconfig in the given directory."""
    target = Path(path) if path else Path.cwd()
    config_path = target / REWINDCONFIG
    init = {"staging_backend": DEFAULT_CONFIG["staging_backend"]}
    if staging_dir:
        init["staging_dir"] = str(staging_dir)
    config_path.write_text(json.dumps(init, indent=2))
    return config_path
