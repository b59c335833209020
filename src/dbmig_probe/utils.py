"""Utility functions for dbmig-probe."""

import os
from pathlib import Path


def expand_path(path: str) -> Path:
    """
    Expand ~ and environment variables in a path string.

    Args:
        path: Path string to expand

    Returns:
        Expanded absolute Path
    """
    return Path(os.path.expandvars(os.path.expanduser(path))).resolve()


def ensure_dir(path: Path) -> Path:
    """
    Create directory (and parents) if it doesn't exist.

    Args:
        path: Directory path

    Returns:
        The same path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
