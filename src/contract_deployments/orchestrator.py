"""Main API for contract-deployments library."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

from .artifacts import bytecode_hash, load_artifact
from .chain import ChainClient, JsonRpcChainClient
from .config import DeployConfig
from .exceptions import ConfigError, DeploymentError
from .executor import Executor
from .planner import should_deploy
from .store import DeploymentStore
from .types import (
    ContractArtifact,
    DeploymentOutcome,
    DeploymentState,
    DeploymentTarget,
    VerificationStatus,
)
from .verifier import Verifier

logger = logging.getLogger(__name__)


def default_chain_client_factory(target: DeploymentTarget) -> ChainClient:
    if not target.rpc_url:
        raise ConfigError(f"No RPC URL for network '{target.network_name}'")
    return JsonRpcChainClient(target.rpc_url)


class DeploymentOrchestrator:
    """Plans, deploys and verifies the configured contract across networks."""

    def __init__(
        self,
        config: DeployConfig,
        store: DeploymentStore,
        verifier: Verifier,
        artifact: Optional[ContractArtifact] = None,
        chain_client_factory: Callable[[DeploymentTarget], ChainClient] = default_chain_client_factory,
        executor_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Loaded deployment configuration
            store: Record store shared by all targets
            verifier: Explorer verifier
            artifact: Compiled contract. If None, it is loaded from
                      config.artifacts_dir on first use.
            chain_client_factory: Builds the chain client of a target
            executor_options: Extra keyword arguments for Executor
                              (poll_interval, max_poll_interval, backoff, timeout)
        """
        self.config = config
        self.store = store
        self.verifier = verifier
        self.chain_client_factory = chain_client_factory
        self.executor_options = {"timeout": config.confirmation_timeout}
        self.executor_options.update(executor_options or {})

        self._artifact = artifact
        self._artifact_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._network_locks: Dict[str, threading.Lock] = {}
        self._network_locks_lock = threading.Lock()

    @property
    def artifact(self) -> ContractArtifact:
        with self._artifact_lock:
            if self._artifact is None:
                self._artifact = load_artifact(self.config.artifacts_dir, self.config.artifact_name)
            return self._artifact

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Abort the run; in-flight confirmation waits raise DeploymentCancelled."""
        logger.warning("Cancelling deployment run")
        self._cancel_event.set()

    def _network_lock(self, network: str) -> threading.Lock:
        with self._network_locks_lock:
            if network not in self._network_locks:
                self._network_locks[network] = threading.Lock()
            return self._network_locks[network]

    @staticmethod
    def _transition(outcome: DeploymentOutcome, state: DeploymentState) -> None:
        logger.info(
            "[%s] %s -> %s", outcome.target.network_name, outcome.state.value, state.value
        )
        outcome.state = state

    def run(self, target: DeploymentTarget, verify: bool = True) -> DeploymentOutcome:
        """
        Plan, deploy and verify the configured contract on one target.

        Args:
            target: Network to deploy to
            verify: Set to False to stop after deployment

        Returns:
            DeploymentOutcome in a terminal state (DEPLOYED, SKIPPED,
            VERIFIED or VERIFICATION_FAILED)

        Raises:
            ConfigError: If configuration or constructor arguments are invalid
            DeploymentFailed: If the transaction is rejected or reverts
            ConfirmationTimeout: If confirmations do not arrive in time
            DeploymentCancelled: If the run is aborted
        """
        contract_name = self.config.contract_name
        constructor_args = list(self.config.constructor_args)
        artifact = self.artifact
        outcome = DeploymentOutcome(target=target)

        current_hash = bytecode_hash(artifact.bytecode)

        # Plan, deploy and record as one step per network
        with self._network_lock(target.network_name):
            existing = self.store.latest(target.network_name, contract_name)
            if should_deploy(target, existing, constructor_args, current_hash):
                self._transition(outcome, DeploymentState.DEPLOYING)
                executor = Executor(
                    self.chain_client_factory(target),
                    cancel_event=self._cancel_event,
                    **self.executor_options,
                )
                record = executor.deploy(contract_name, constructor_args, target, artifact)
                self.store.append(record)
                outcome.deployed = True
            else:
                record = existing
                logger.info(
                    'reusing "%s" at %s on %s', contract_name, record.address, target.network_name
                )

        outcome.record = record
        self._transition(outcome, DeploymentState.DEPLOYED)
        if target.explorer_url:
            logger.info("%s/address/%s", target.explorer_url, record.address)

        if not verify:
            return outcome

        if not self.verifier.should_verify(target):
            outcome.verification = self.verifier.verify(record, target, artifact)
            self._transition(outcome, DeploymentState.SKIPPED)
            return outcome

        self._transition(outcome, DeploymentState.VERIFYING)
        logger.info("Verifying %s on %s ...", record.address, target.network_name)
        outcome.verification = self.verifier.verify(record, target, artifact)
        if outcome.verification.status is VerificationStatus.VERIFIED:
            self._transition(outcome, DeploymentState.VERIFIED)
        else:
            self._transition(outcome, DeploymentState.VERIFICATION_FAILED)
        return outcome

    def _run_isolated(self, target: DeploymentTarget, verify: bool) -> DeploymentOutcome:
        try:
            return self.run(target, verify=verify)
        except DeploymentError as e:
            logger.error("[%s] deployment failed: %s", target.network_name, e)
            return DeploymentOutcome(target=target, state=DeploymentState.FAILED, error=e)

    def run_many(
        self,
        targets: Iterable[DeploymentTarget],
        verify: bool = True,
        max_workers: Optional[int] = None,
    ) -> List[DeploymentOutcome]:
        """
        Run independent targets concurrently.

        A failing target yields an outcome with state FAILED and its error;
        other targets are unaffected.

        Args:
            targets: Networks to deploy to; a network listed twice runs once
            verify: Set to False to stop after deployment
            max_workers: Thread pool size (defaults to one thread per target)

        Returns:
            One outcome per distinct network, in the order of first appearance
        """
        unique: Dict[str, DeploymentTarget] = {}
        for target in targets:
            if target.network_name in unique:
                logger.warning("Ignoring duplicate target %s", target.network_name)
                continue
            unique[target.network_name] = target
        targets = list(unique.values())
        if not targets:
            return []

        # Resolve the artifact once so a missing artifact fails before any transaction
        _ = self.artifact

        with ThreadPoolExecutor(max_workers=max_workers or len(targets)) as pool:
            futures = [pool.submit(self._run_isolated, target, verify) for target in targets]
            return [future.result() for future in futures]
