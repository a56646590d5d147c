"""Append-only deployment record store for contract-deployments library."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import DefectiveRecordError
from .paths import get_record_path
from .types import DeploymentRecord

logger = logging.getLogger(__name__)


def record_to_dict(record: DeploymentRecord) -> Dict[str, Any]:
    """Serialize a record using hardhat-deploy field names."""
    data: Dict[str, Any] = {
        "address": record.address,
        "transactionHash": record.tx_hash,
        "args": list(record.constructor_args),
        "receipt": {
            "blockNumber": record.confirmed_block,
            "transactionHash": record.tx_hash,
        },
    }
    if record.deployer is not None:
        data["receipt"]["from"] = record.deployer
    if record.artifact_name is not None:
        data["contractName"] = record.artifact_name
    if record.bytecode_hash is not None:
        data["bytecodeHash"] = record.bytecode_hash
    if record.timestamp is not None:
        data["timestamp"] = record.timestamp
    return data


def record_from_dict(
    data: Dict[str, Any], contract_name: str, network: Optional[str] = None
) -> DeploymentRecord:
    """
    Build a record from a hardhat-deploy style dictionary.

    Args:
        data: Deployment data
        contract_name: Deployment name (the file stem)
        network: Network the file belongs to

    Returns:
        DeploymentRecord

    Raises:
        DefectiveRecordError: If address or block number is missing
    """
    address = data.get("address")
    if not address:
        raise DefectiveRecordError(f"Missing address in deployment of '{contract_name}'")

    # Try to get block number from receipt first, fall back to top-level
    receipt = data.get("receipt") or {}
    block_number = receipt.get("blockNumber", data.get("blockNumber"))
    if block_number is None:
        raise DefectiveRecordError(
            f"Missing block number in deployment of '{contract_name}'"
        )

    return DeploymentRecord(
        contract_name=contract_name,
        address=address,
        constructor_args=tuple(data.get("args", [])),
        tx_hash=data.get("transactionHash") or receipt.get("transactionHash", ""),
        confirmed_block=int(block_number),
        network=network,
        artifact_name=data.get("contractName"),
        bytecode_hash=data.get("bytecodeHash"),
        deployer=receipt.get("from"),
        timestamp=data.get("timestamp"),
    )


def load_record_file(file_path: Path, network: Optional[str] = None) -> List[DeploymentRecord]:
    """
    Read a deployment file.

    Args:
        file_path: Path to deployments/{network}/{contract}.json
        network: Network name (defaults to the parent directory name)

    Returns:
        All records in the file, oldest first; the last one is current

    Raises:
        DefectiveRecordError: If the file is not valid JSON or a record is incomplete
    """
    if network is None:
        network = file_path.parent.name
    contract_name = file_path.stem

    try:
        with open(file_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DefectiveRecordError(f"Corrupted deployment file {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise DefectiveRecordError(f"Deployment file {file_path} must contain a JSON object")
    history = data.get("history", [])
    if not isinstance(history, list) or not all(isinstance(entry, dict) for entry in history):
        raise DefectiveRecordError(f"Malformed history in deployment file {file_path}")

    records = [record_from_dict(entry, contract_name, network) for entry in history]
    records.append(record_from_dict(data, contract_name, network))
    return records


def _write_atomic(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class DeploymentStore:
    """
    Append-only record store, partitioned by network.

    Records are keyed by (network, contract name). Appending never rewrites an
    existing record; a redeploy pushes the previous record into the file's
    history. Each network partition has its own lock, so targets on different
    networks never contend.
    """

    def __init__(self, root: Optional[Path] = None, ephemeral_networks: Iterable[str] = ()):
        """
        Initialize the store.

        Args:
            root: Deployments directory. If None, records are kept in memory only.
            ephemeral_networks: Networks whose chain is reset on every run;
                                their records are never read from or written to disk.
        """
        self._root = Path(root) if root is not None else None
        self._ephemeral = frozenset(ephemeral_networks)
        self._partitions: Dict[str, Dict[str, List[DeploymentRecord]]] = {}
        self._partition_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    @property
    def root(self) -> Optional[Path]:
        return self._root

    def _partition_lock(self, network: str) -> threading.Lock:
        with self._lock:
            if network not in self._partition_locks:
                self._partition_locks[network] = threading.Lock()
            return self._partition_locks[network]

    def _persistent(self, network: str) -> bool:
        return self._root is not None and network not in self._ephemeral

    def _load_partition(self, network: str) -> Dict[str, List[DeploymentRecord]]:
        # Caller holds the partition lock
        if network in self._partitions:
            return self._partitions[network]

        partition: Dict[str, List[DeploymentRecord]] = {}
        if self._persistent(network):
            network_dir = self._root / network
            if network_dir.is_dir():
                for record_file in sorted(network_dir.glob("*.json")):
                    partition[record_file.stem] = load_record_file(record_file, network)
            logger.debug("Loaded %d deployment(s) for %s", len(partition), network)

        with self._lock:
            self._partitions[network] = partition
        return partition

    def append(self, record: DeploymentRecord) -> None:
        """
        Append a record, superseding the current one for its contract and network.

        Raises:
            ValueError: If the record has no network or no address
        """
        if not record.network:
            raise ValueError(f"Record for '{record.contract_name}' has no network")
        if not record.address:
            raise ValueError(f"Record for '{record.contract_name}' has no address")

        with self._partition_lock(record.network):
            partition = self._load_partition(record.network)
            history = partition.get(record.contract_name, [])

            if self._persistent(record.network):
                payload = record_to_dict(record)
                payload["numDeployments"] = len(history) + 1
                if history:
                    payload["history"] = [record_to_dict(r) for r in history]
                _write_atomic(
                    get_record_path(self._root, record.network, record.contract_name),
                    payload,
                )

            partition[record.contract_name] = history + [record]

    def latest(self, network: str, contract_name: str) -> Optional[DeploymentRecord]:
        with self._partition_lock(network):
            records = self._load_partition(network).get(contract_name)
            return records[-1] if records else None

    def history(self, network: str, contract_name: str) -> List[DeploymentRecord]:
        """All records of a contract on a network, oldest first."""
        with self._partition_lock(network):
            return list(self._load_partition(network).get(contract_name, []))

    def contract_names(self, network: str) -> List[str]:
        with self._partition_lock(network):
            return sorted(self._load_partition(network).keys())

    def networks(self) -> List[str]:
        """Networks with at least one record, on disk or in memory."""
        names = set()
        if self._root is not None and self._root.is_dir():
            names.update(
                p.name
                for p in self._root.iterdir()
                if p.is_dir() and self._persistent(p.name) and any(p.glob("*.json"))
            )
        with self._lock:
            names.update(n for n, part in list(self._partitions.items()) if part)
        return sorted(names)
