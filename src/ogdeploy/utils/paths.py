import os
from pathlib import Path

STATE_DIR_ENV = "OGDEPLOY_STATE_DIR"


def get_state_dir() -> Path:
    """Get the per-user state directory.

    Honors OGDEPLOY_STATE_DIR so tests and CI runs can isolate logs and
    cloned infrastructure from the operator's home directory.

    Returns:
        Path to the state directory (not created)
    """
    override = os.environ.get(STATE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".opengovernance"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
