"""Custom exception classes for contract-deployments library."""

from typing import Optional


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class ConfigError(DeploymentError, ValueError):
    """Raised when static configuration is invalid. Fatal before any transaction."""

    pass


class DeploymentFailed(DeploymentError):
    """Raised when the contract-creation transaction is rejected or reverts."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ChainClientError(DeploymentFailed):
    """Raised when the chain RPC endpoint cannot be reached or answers garbage."""

    pass


class ConfirmationTimeout(DeploymentError, TimeoutError):
    """Raised when a transaction does not reach the required confirmations in time."""

    def __init__(self, tx_hash: str, confirmations: int, required: int):
        super().__init__(
            f"Transaction {tx_hash} reached {confirmations}/{required} confirmations "
            "before timing out"
        )
        self.tx_hash = tx_hash
        self.confirmations = confirmations
        self.required = required


class DeploymentCancelled(DeploymentError):
    """Raised when a deployment run is aborted while waiting for confirmations."""

    pass


class VerificationFailed(DeploymentError):
    """Raised by a verification service on permanent rejection."""

    def __init__(self, reason: str, response: Optional[dict] = None):
        super().__init__(reason)
        self.reason = reason
        self.response = response


class TransientVerificationError(VerificationFailed):
    """Raised by a verification service when the request is worth retrying."""

    pass


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact is not found."""

    pass


class DefectiveRecordError(DeploymentError, ValueError):
    """Raised when a stored deployment file is missing its address or block number."""

    pass
