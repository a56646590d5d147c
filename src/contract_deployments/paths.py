"""Path management utilities for contract-deployments library."""

from pathlib import Path
from typing import Optional, Union

from .constants import ARTIFACTS_DIRNAME, CONFIG_FILENAME, DEPLOYMENTS_DIRNAME


def get_project_root() -> Path:
    """
    Get the project root, the directory deployments are run from.

    Returns:
        Current working directory
    """
    return Path.cwd()


def get_default_config_path() -> Path:
    return get_project_root() / CONFIG_FILENAME


def get_project_paths(project_root: Optional[Union[Path, str]] = None) -> tuple[Path, Path]:
    """
    Get the deployments and artifacts directories of a project.

    Args:
        project_root: Custom project directory (defaults to the current directory)

    Returns:
        Tuple of (deployments_dir, artifacts_dir)
    """
    if project_root is None:
        project_root = get_project_root()
    else:
        project_root = Path(project_root).absolute()

    return (project_root / DEPLOYMENTS_DIRNAME, project_root / ARTIFACTS_DIRNAME)


def get_record_path(deployments_dir: Path, network: str, contract_name: str) -> Path:
    """Path of a contract's deployment file: deployments/{network}/{contract}.json"""
    return deployments_dir / network / f"{contract_name}.json"
