"""Deployment record persistence for atxia-deployments library."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from .exceptions import RecordExistsError, RecordNotFoundError, StorageWriteError
from .paths import get_default_deployments_dir, get_record_path
from .types import DeploymentRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("address", "owner", "chainId", "transactionHash", "abi", "deployedAt")


class DeploymentRecordStore:
    """
    Reads and writes one deployment record per network.

    A record's presence is the source of truth for whether a network has
    been deployed to. Writes are last-writer-wins once overwriting is allowed.
    """

    def __init__(self, deployments_dir: Optional[Union[Path, str]] = None):
        """
        Initialize the record store.

        Args:
            deployments_dir: Directory holding <network>.json records
                             If None, uses ./deployments
        """
        if deployments_dir is None:
            deployments_dir = get_default_deployments_dir()
        self.deployments_dir = Path(deployments_dir)

    def path(self, network: str) -> Path:
        """Record file path for a network."""
        return get_record_path(network, self.deployments_dir)

    def has_network(self, network: str) -> bool:
        """
        Check if a network already has a deployment record.

        Args:
            network: Network name to check

        Returns:
            True if a record exists, False otherwise
        """
        return self.path(network).exists()

    def networks(self) -> List[str]:
        """Names of all networks with a record, sorted."""
        if not self.deployments_dir.is_dir():
            return []
        return sorted(p.stem for p in self.deployments_dir.glob("*.json"))

    def load(self, network: str) -> DeploymentRecord:
        """
        Load the record for a network.

        Raises:
            RecordNotFoundError: If the network has no (readable) record
        """
        record_path = self.path(network)
        try:
            with open(record_path) as f:
                data = json.load(f)
        except FileNotFoundError:
            raise RecordNotFoundError(
                f"No deployment record for network '{network}' at {record_path}"
            ) from None
        except (OSError, json.JSONDecodeError) as e:
            raise RecordNotFoundError(f"Unreadable deployment record {record_path}: {e}") from e

        missing = [key for key in REQUIRED_FIELDS if key not in data]
        if missing:
            raise RecordNotFoundError(
                f"Deployment record {record_path} is missing {', '.join(missing)}"
            )
        return DeploymentRecord.from_json(data)

    def ensure_writable(self, network: str, allow_overwrite: bool = False) -> None:
        """
        Refuse to proceed if a record exists and overwriting was not requested.

        Raises:
            RecordExistsError: If a record exists and ``allow_overwrite`` is False
        """
        if not allow_overwrite and self.has_network(network):
            raise RecordExistsError(
                f"Network '{network}' already has a deployment record at "
                f"{self.path(network)}; pass allow_overwrite to replace it"
            )

    def write(
        self, network: str, record: DeploymentRecord, allow_overwrite: bool = False
    ) -> Path:
        """
        Save a deployment record to disk.

        Creates the deployments directory if it doesn't exist.

        Args:
            network: Network name (the record key)
            record: Record to persist
            allow_overwrite: Replace an existing record

        Returns:
            Path the record was written to

        Raises:
            RecordExistsError: If a record exists and ``allow_overwrite`` is False
            StorageWriteError: If the record cannot be written
        """
        self.ensure_writable(network, allow_overwrite)
        record_path = self.path(network)
        try:
            record_path.parent.mkdir(parents=True, exist_ok=True)
            with open(record_path, "w") as f:
                json.dump(record.to_json(), f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            raise StorageWriteError(
                f"Failed to write deployment record {record_path}: {e}",
                transaction_hash=record.transaction_hash,
                address=record.address,
            ) from e

        logger.info("Deployment record written to %s", record_path)
        return record_path
