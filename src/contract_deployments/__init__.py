"""
contract-deployments: plan, deploy and verify smart contracts across networks
"""

from importlib.metadata import PackageNotFoundError, version

from .config import DeployConfig, load_config
from .exceptions import (
    ArtifactNotFoundError,
    ChainClientError,
    ConfigError,
    ConfirmationTimeout,
    DefectiveRecordError,
    DeploymentCancelled,
    DeploymentError,
    DeploymentFailed,
    TransientVerificationError,
    VerificationFailed,
)
from .executor import Executor
from .orchestrator import DeploymentOrchestrator
from .planner import should_deploy
from .store import DeploymentStore
from .types import (
    ContractArtifact,
    DeploymentOutcome,
    DeploymentRecord,
    DeploymentState,
    DeploymentTarget,
    VerificationRequest,
    VerificationResult,
    VerificationStatus,
)
from .verifier import EtherscanVerificationService, Verifier

try:
    __version__ = version("contract-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DeploymentOrchestrator",
    "DeploymentStore",
    "Executor",
    "Verifier",
    "EtherscanVerificationService",
    "should_deploy",
    "load_config",
    "DeployConfig",
    "ContractArtifact",
    "DeploymentOutcome",
    "DeploymentRecord",
    "DeploymentState",
    "DeploymentTarget",
    "VerificationRequest",
    "VerificationResult",
    "VerificationStatus",
    "DeploymentError",
    "ConfigError",
    "DeploymentFailed",
    "ChainClientError",
    "ConfirmationTimeout",
    "DeploymentCancelled",
    "VerificationFailed",
    "TransientVerificationError",
    "ArtifactNotFoundError",
    "DefectiveRecordError",
]
