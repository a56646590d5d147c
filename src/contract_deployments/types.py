"""Data types and dataclasses for contract-deployments library."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class DeploymentTarget:
    """A network a contract is deployed to. Resolved once from configuration."""

    network_name: str
    is_development: bool
    required_confirmations: int

    rpc_url: Optional[str] = None
    chain_id: Optional[int] = None
    explorer_api_url: Optional[str] = None
    explorer_url: Optional[str] = None  # e.g. "https://sepolia.etherscan.io"


@dataclass(frozen=True)
class DeploymentRecord:
    """A confirmed deployment of a contract on one network."""

    # Required fields
    contract_name: str  # Deployment name, e.g. "TokenContract"
    address: str
    constructor_args: Tuple[Any, ...]
    tx_hash: str
    confirmed_block: int

    # Optional fields
    network: Optional[str] = None
    artifact_name: Optional[str] = None  # e.g. "OurToken"
    bytecode_hash: Optional[str] = None
    deployer: Optional[str] = None
    timestamp: Optional[int] = None  # Unix timestamp when recorded


@dataclass(frozen=True)
class VerificationRequest:
    """What the explorer needs to match deployed bytecode with its source."""

    address: str
    constructor_args: Tuple[Any, ...]

    @classmethod
    def from_record(cls, record: DeploymentRecord) -> "VerificationRequest":
        return cls(address=record.address, constructor_args=tuple(record.constructor_args))


class VerificationStatus(Enum):
    SKIPPED = "skipped"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification attempt."""

    status: VerificationStatus
    reason: Optional[str] = None

    @classmethod
    def skipped(cls, reason: Optional[str] = None) -> "VerificationResult":
        return cls(VerificationStatus.SKIPPED, reason)

    @classmethod
    def verified(cls, reason: Optional[str] = None) -> "VerificationResult":
        return cls(VerificationStatus.VERIFIED, reason)

    @classmethod
    def failed(cls, reason: str) -> "VerificationResult":
        return cls(VerificationStatus.FAILED, reason)

    @property
    def ok(self) -> bool:
        return self.status is not VerificationStatus.FAILED


class DeploymentState(Enum):
    """
    Per-target deployment lifecycle.

    NOT_DEPLOYED -> DEPLOYING -> DEPLOYED -> SKIPPED
                                          -> VERIFYING -> VERIFIED
                                                       -> VERIFICATION_FAILED

    FAILED marks a target whose deployment raised.
    """

    NOT_DEPLOYED = "not-deployed"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    SKIPPED = "skipped"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification-failed"
    FAILED = "failed"


@dataclass
class DeploymentOutcome:
    """Result of one orchestrator run against one target."""

    target: DeploymentTarget
    state: DeploymentState = DeploymentState.NOT_DEPLOYED
    record: Optional[DeploymentRecord] = None
    verification: Optional[VerificationResult] = None
    deployed: bool = False  # False when an existing record was reused
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.state not in (DeploymentState.FAILED, DeploymentState.NOT_DEPLOYED)


@dataclass(frozen=True)
class ContractArtifact:
    """Compiled contract as produced by the hardhat compile task."""

    contract_name: str  # e.g. "OurToken"
    source_name: str  # e.g. "contracts/OurToken.sol"
    abi: List[Dict[str, Any]]
    bytecode: str

    # Resolved from build-info, needed for explorer verification
    compiler_version: Optional[str] = None  # solcLongVersion, e.g. "0.8.7+commit.e28d00a7"
    standard_json_input: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"
