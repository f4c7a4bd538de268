"""Path management utilities for atxia-deployments library."""

from pathlib import Path
from typing import Optional, Union


def get_default_deployments_dir() -> Path:
    """
    Get default deployment records directory.

    Returns:
        Path to ./deployments
    """
    return Path.cwd() / "deployments"


def get_default_artifacts_dir() -> Path:
    """
    Get default Hardhat artifacts directory.

    Returns:
        Path to ./artifacts
    """
    return Path.cwd() / "artifacts"


def get_record_path(
    network: str, deployments_dir: Optional[Union[Path, str]] = None
) -> Path:
    """
    Get the record file path for a network.

    Args:
        network: Network name (the record key)
        deployments_dir: Custom records directory (defaults to ./deployments)

    Returns:
        Path to <deployments_dir>/<network>.json
    """
    if deployments_dir is None:
        deployments_dir = get_default_deployments_dir()
    else:
        deployments_dir = Path(deployments_dir).absolute()

    return deployments_dir / f"{network}.json"
