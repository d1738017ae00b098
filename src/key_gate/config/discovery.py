"""Locate the TOML configuration file."""

import subprocess  # nosec B404
from pathlib import Path

import platformdirs


CONFIG_FILE_NAMES = (".key_gate.toml", "key_gate.toml")


def find_toml_config_file() -> Path | None:
    """Return the first existing config file, or None.

    Looked up in order: the working directory, the enclosing git repository
    root, then ``config.toml`` in the per-user config directory.
    """
    search_dirs = [Path.cwd()]
    git_root = find_git_root()
    if git_root is not None and git_root != Path.cwd():
        search_dirs.append(git_root)

    candidates = [d / name for d in search_dirs for name in CONFIG_FILE_NAMES]
    candidates.append(get_key_gate_config_dir() / "config.toml")

    return next((c for c in candidates if c.is_file()), None)


def find_git_root(path: Path | None = None) -> Path | None:
    """Top-level directory of the git checkout containing ``path``."""
    try:
        result = subprocess.run(  # nosec B603 B607
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path or Path.cwd(),
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    return Path(result.stdout.strip())


def get_key_gate_config_dir() -> Path:
    """Per-user config directory, e.g. ``~/.config/key_gate`` on Linux."""
    return Path(platformdirs.user_config_dir("key_gate"))
