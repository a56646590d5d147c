"""Shared pytest fixtures for contract-deployments tests."""

import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from contract_deployments.artifacts import load_artifact
from contract_deployments.exceptions import DeploymentFailed
from contract_deployments.types import ContractArtifact, DeploymentTarget

DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class FakeChainClient:
    """In-process chain: every poll adds `blocks_per_poll` confirmations once mined."""

    def __init__(self, address: str = CONTRACT_ADDRESS, blocks_per_poll: int = 1):
        self.address = address
        self.blocks_per_poll = blocks_per_poll
        self.submit_error: Optional[str] = None
        self.receipt_status = 1
        self.mined = True
        self.submissions: List[Dict[str, Any]] = []
        self.confirmation_polls = 0
        self._confirmations: Dict[str, int] = {}

    def submit_contract_creation(self, bytecode: str, args: bytes) -> str:
        if self.submit_error is not None:
            raise DeploymentFailed(self.submit_error)
        tx_hash = f"0x{len(self.submissions) + 1:064x}"
        self.submissions.append({"bytecode": bytecode, "args": args, "tx_hash": tx_hash})
        self._confirmations[tx_hash] = 0
        return tx_hash

    def get_confirmations(self, tx_hash: str) -> int:
        self.confirmation_polls += 1
        if not self.mined:
            return 0
        self._confirmations[tx_hash] += self.blocks_per_poll
        return self._confirmations[tx_hash]

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        if not self.mined:
            return None
        return {
            "transactionHash": tx_hash,
            "contractAddress": self.address,
            "blockNumber": 100 + len(self.submissions),
            "status": self.receipt_status,
            "gasUsed": 1234567,
            "from": DEPLOYER,
        }


class FakeVerificationService:
    """Replays scripted outcomes: a string is returned, an exception is raised."""

    def __init__(self, outcomes: Optional[List[Any]] = None):
        self.outcomes = list(outcomes or ["Pass - Verified"])
        self.calls: List[Dict[str, Any]] = []

    def submit_verification(self, request, api_key, artifact=None, target=None) -> str:
        self.calls.append(
            {"request": request, "api_key": api_key, "artifact": artifact, "target": target}
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def artifacts_dir(fixtures_dir: Path) -> Path:
    """Return the path to the sample hardhat artifacts directory."""
    return fixtures_dir / "artifacts"


@pytest.fixture
def token_artifact(artifacts_dir: Path) -> ContractArtifact:
    """Load the OurToken sample artifact."""
    return load_artifact(artifacts_dir, "OurToken")


@pytest.fixture
def temp_deployments_dir(tmp_path: Path, fixtures_dir: Path) -> Path:
    """Copy the sample deployments directory into a temporary location."""
    deployments_dir = tmp_path / "deployments"
    shutil.copytree(fixtures_dir / "deployments", deployments_dir)
    return deployments_dir


@pytest.fixture
def mainnet_target() -> DeploymentTarget:
    return DeploymentTarget(
        network_name="mainnet",
        is_development=False,
        required_confirmations=1,
        rpc_url="http://mainnet-rpc.example.com",
        chain_id=1,
        explorer_api_url="https://api.etherscan.example.com/api",
        explorer_url="https://etherscan.example.com",
    )


@pytest.fixture
def hardhat_target() -> DeploymentTarget:
    return DeploymentTarget(
        network_name="hardhat",
        is_development=True,
        required_confirmations=1,
        rpc_url="http://127.0.0.1:8545",
        chain_id=31337,
    )


@pytest.fixture
def fake_chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def fake_verification_service() -> FakeVerificationService:
    return FakeVerificationService()


@pytest.fixture
def fast_executor_options() -> Dict[str, float]:
    """Executor timings that keep confirmation waits in the millisecond range."""
    return {"poll_interval": 0.001, "max_poll_interval": 0.005, "timeout": 1.0}


@pytest.fixture
def make_chain_client():
    """Factory for additional fake chains, e.g. one per network."""
    return FakeChainClient


@pytest.fixture
def make_verification_service():
    """Factory for fake explorers with scripted outcomes."""
    return FakeVerificationService
