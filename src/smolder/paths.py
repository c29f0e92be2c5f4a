"""Path management utilities for smolder."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .constants import (
    BROADCAST_DIR_NAME,
    DATA_DIR_NAME,
    DEFAULT_DB_FILE,
    OUT_DIR_NAME,
    SRC_DIR_NAME,
)


@dataclass(frozen=True)
class ProjectPaths:
    """Well-known directories of a Foundry project."""

    root: Path
    out_dir: Path
    src_dir: Path
    broadcast_dir: Path


def get_default_data_dir() -> Path:
    """
    Get default data directory (project local).

    Returns:
        Path to ./.smolder
    """
    return Path.cwd() / DATA_DIR_NAME


def get_database_path(data_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the registry database file path.

    Args:
        data_root: Custom data directory (defaults to ./.smolder)

    Returns:
        Path to smolder.db inside the data directory
    """
    if data_root is None:
        data_root = get_default_data_dir()
    else:
        data_root = Path(data_root).absolute()

    return data_root / DEFAULT_DB_FILE


def get_project_paths(project_root: Optional[Union[Path, str]] = None) -> ProjectPaths:
    """
    Get the build output, source and broadcast directories of a project.

    Args:
        project_root: Foundry project root (defaults to the current directory)
    """
    root = Path.cwd() if project_root is None else Path(project_root).absolute()
    return ProjectPaths(
        root=root,
        out_dir=root / OUT_DIR_NAME,
        src_dir=root / SRC_DIR_NAME,
        broadcast_dir=root / BROADCAST_DIR_NAME,
    )
