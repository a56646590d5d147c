"""Contract deployment executor for contract-deployments library."""

import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence

from .artifacts import bytecode_hash, encode_constructor_args
from .chain import ChainClient
from .constants import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_MAX_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL,
)
from .exceptions import ConfirmationTimeout, DeploymentCancelled, DeploymentFailed
from .types import ContractArtifact, DeploymentRecord, DeploymentTarget

logger = logging.getLogger(__name__)


class Executor:
    """Submits contract creations and waits for their confirmations."""

    def __init__(
        self,
        chain_client: ChainClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_interval: float = DEFAULT_MAX_POLL_INTERVAL,
        backoff: float = 2.0,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the executor.

        Args:
            chain_client: Client of the target's chain
            poll_interval: First delay between confirmation polls (seconds)
            max_poll_interval: Upper bound for the growing poll delay
            backoff: Factor applied to the poll delay after each poll
            timeout: Maximum time to wait for confirmations (seconds)
            cancel_event: Set to abort an in-flight wait
            clock: Monotonic time source
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if timeout < 0:
            raise ValueError("timeout must not be negative")

        self.chain_client = chain_client
        self.poll_interval = poll_interval
        self.max_poll_interval = max(max_poll_interval, poll_interval)
        self.backoff = max(backoff, 1.0)
        self.timeout = timeout
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._clock = clock

    def wait_for_confirmations(self, tx_hash: str, required: int) -> int:
        """
        Block until a transaction has enough confirmations.

        A required count of 0 still waits for the transaction to be mined.

        Returns:
            Observed number of confirmations

        Raises:
            ConfirmationTimeout: If the timeout elapses first
            DeploymentCancelled: If the cancel event is set while waiting
        """
        needed = max(required, 1)
        deadline = self._clock() + self.timeout
        interval = self.poll_interval

        while True:
            observed = self.chain_client.get_confirmations(tx_hash)
            if observed >= needed:
                return observed

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise ConfirmationTimeout(tx_hash, observed, required)

            logger.debug(
                "%s has %d/%d confirmations, polling again in %.2fs",
                tx_hash, observed, needed, min(interval, remaining),
            )
            if self.cancel_event.wait(min(interval, remaining)):
                raise DeploymentCancelled(
                    f"Deployment aborted while waiting for {tx_hash}"
                )
            interval = min(interval * self.backoff, self.max_poll_interval)

    def deploy(
        self,
        contract_name: str,
        constructor_args: Sequence[Any],
        target: DeploymentTarget,
        artifact: ContractArtifact,
    ) -> DeploymentRecord:
        """
        Deploy a contract and wait for the target's required confirmations.

        Args:
            contract_name: Deployment name, e.g. "TokenContract"
            constructor_args: Constructor arguments, in declaration order
            target: Network to deploy to
            artifact: Compiled contract

        Returns:
            Record of the confirmed deployment

        Raises:
            ConfigError: If the arguments do not fit the constructor
            DeploymentFailed: If the transaction is rejected or reverts
            ConfirmationTimeout: If confirmations do not arrive in time
            DeploymentCancelled: If the run is aborted
        """
        if self.cancel_event.is_set():
            raise DeploymentCancelled(f"Deployment of '{contract_name}' aborted before submission")

        encoded_args = encode_constructor_args(artifact.abi, constructor_args)
        tx_hash = self.chain_client.submit_contract_creation(artifact.bytecode, encoded_args)
        logger.info(
            'deploying "%s" on %s (tx: %s)...', contract_name, target.network_name, tx_hash
        )

        self.wait_for_confirmations(tx_hash, target.required_confirmations)

        receipt = self.chain_client.get_receipt(tx_hash)
        if receipt is None:
            raise DeploymentFailed(f"Receipt for {tx_hash} disappeared (chain reorganization?)")
        if receipt.get("status") == 0:
            raise DeploymentFailed(f"Constructor of '{contract_name}' reverted in {tx_hash}")

        address = receipt.get("contractAddress")
        if not address:
            raise DeploymentFailed(f"Transaction {tx_hash} did not create a contract")

        record = DeploymentRecord(
            contract_name=contract_name,
            address=address,
            constructor_args=tuple(constructor_args),
            tx_hash=tx_hash,
            confirmed_block=receipt["blockNumber"],
            network=target.network_name,
            artifact_name=artifact.contract_name,
            bytecode_hash=bytecode_hash(artifact.bytecode),
            deployer=receipt.get("from"),
            timestamp=int(time.time()),
        )
        logger.info(
            'deployed "%s" at %s with %s gas',
            contract_name, address, receipt.get("gasUsed", "?"),
            extra={"event": "deployed", "address": address, "tx_hash": tx_hash},
        )
        return record
