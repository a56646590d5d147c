"""Redeploy decisions for contract-deployments library."""

import json
from typing import Any, Optional, Sequence

from .exceptions import ConfigError
from .types import DeploymentRecord, DeploymentTarget


def _normalize_args(args: Sequence[Any]) -> Any:
    # Records reloaded from disk hold JSON values (lists, not tuples)
    return json.loads(json.dumps(list(args), default=str))


def should_deploy(
    target: DeploymentTarget,
    existing_record: Optional[DeploymentRecord],
    constructor_args: Sequence[Any],
    bytecode_hash: Optional[str] = None,
) -> bool:
    """
    Decide whether a contract needs a (re)deployment on a target.

    Args:
        target: Where the contract would be deployed
        existing_record: Latest record for the same contract and network, if any
        constructor_args: Constructor arguments of the planned deployment
        bytecode_hash: Hash of the current creation bytecode, if known

    Returns:
        True if there is no usable record, the constructor arguments changed,
        or the recorded bytecode differs from the current one

    Raises:
        ConfigError: If the target's required confirmation count is negative
    """
    if target.required_confirmations < 0:
        raise ConfigError(
            f"Network '{target.network_name}' requires a negative number of "
            f"confirmations ({target.required_confirmations})"
        )

    if existing_record is None or not existing_record.address:
        return True

    if _normalize_args(existing_record.constructor_args) != _normalize_args(constructor_args):
        return True

    if (
        bytecode_hash is not None
        and existing_record.bytecode_hash is not None
        and bytecode_hash != existing_record.bytecode_hash
    ):
        return True

    return False
