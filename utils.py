"""Utility functions."""
from pathlib import Path

from errors import NotFound


def resolve_under_root(root: Path, candidate: Path) -> Path:
    """Resolve a path ensuring it's under the root directory."""
    root = root.resolve()
    real = candidate.resolve()
    if root not in real.parents and real != root:
        raise NotFound("Path is outside root")
    return real
