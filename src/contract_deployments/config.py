"""Deployment configuration loading for contract-deployments library."""

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .constants import (
    DEFAULT_BLOCK_CONFIRMATIONS,
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_CONTRACT,
    DEVELOPMENT_CHAINS,
    EPHEMERAL_CHAINS,
    INITIAL_SUPPLY,
    NETWORK_CONFIG,
)
from .exceptions import ConfigError
from .paths import get_default_config_path, get_project_paths
from .types import DeploymentTarget

EXPLORER_API_KEY_ENV = "ETHERSCAN_API_KEY"


def rpc_url_env_var(network: str) -> str:
    """Environment variable holding a network's RPC URL, e.g. SEPOLIA_RPC_URL."""
    return f"{network.upper().replace('-', '_')}_RPC_URL"


@dataclass(frozen=True)
class DeployConfig:
    """Static deployment configuration. Loaded once, read-only afterwards."""

    development_chains: Tuple[str, ...]
    ephemeral_chains: Tuple[str, ...]
    networks: Mapping[str, Mapping[str, Any]]
    contract_name: str
    artifact_name: str
    constructor_args: Tuple[Any, ...]
    deployments_dir: Path
    artifacts_dir: Path
    explorer_api_key: Optional[str] = field(default=None, repr=False)
    confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT

    @property
    def network_names(self) -> List[str]:
        return sorted(self.networks.keys())

    def is_development(self, network: str) -> bool:
        return network in self.development_chains

    def target(self, network: str) -> DeploymentTarget:
        """
        Resolve a deployment target.

        Args:
            network: Network name, e.g. "sepolia"

        Returns:
            DeploymentTarget with development status resolved from configuration

        Raises:
            ConfigError: If the network is unknown, has an invalid confirmation
                count, or is a public network without an RPC URL
        """
        if network not in self.networks:
            raise ConfigError(
                f"Unknown network '{network}'. Configured networks: "
                + ", ".join(self.network_names)
            )

        network_config = self.networks[network]
        confirmations = network_config.get("block_confirmations", DEFAULT_BLOCK_CONFIRMATIONS)
        if not isinstance(confirmations, int) or isinstance(confirmations, bool):
            raise ConfigError(
                f"block_confirmations for '{network}' must be an integer, got {confirmations!r}"
            )
        if confirmations < 0:
            raise ConfigError(
                f"block_confirmations for '{network}' must not be negative, got {confirmations}"
            )

        is_development = self.is_development(network)
        rpc_url = network_config.get("rpc_url")
        if not rpc_url and not is_development:
            raise ConfigError(
                f"No RPC URL for network '{network}': set ${rpc_url_env_var(network)} "
                "or networks.<name>.rpc_url in the config file"
            )

        return DeploymentTarget(
            network_name=network,
            is_development=is_development,
            required_confirmations=confirmations,
            rpc_url=rpc_url,
            chain_id=network_config.get("chain_id"),
            explorer_api_url=network_config.get("explorer_api_url"),
            explorer_url=network_config.get("explorer_url"),
        )


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _expect(value: Any, expected: Union[type, Tuple[type, ...]], key: str) -> Any:
    if not isinstance(value, expected):
        raise ConfigError(f"Config key '{key}' has wrong type: {value!r}")
    return value


def load_config(
    path: Optional[Union[Path, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DeployConfig:
    """
    Load deployment configuration.

    Built-in defaults are overlaid with the JSON config file, then with
    environment variables ($ETHERSCAN_API_KEY, $<NETWORK>_RPC_URL).

    Args:
        path: Path to deploy-config.json. If None, ./deploy-config.json is
              used when it exists.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        DeployConfig

    Raises:
        ConfigError: If the file is missing, malformed or has wrong types
    """
    if environ is None:
        environ = os.environ

    data: Dict[str, Any] = {}
    if path is None:
        default_path = get_default_config_path()
        if default_path.exists():
            data = _read_config_file(default_path)
        project_root = default_path.parent
    else:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found at {config_path}")
        data = _read_config_file(config_path)
        project_root = config_path.absolute().parent

    development_chains = _expect(
        data.get("development_chains", DEVELOPMENT_CHAINS), list, "development_chains"
    )
    ephemeral_chains = _expect(
        data.get("ephemeral_chains", EPHEMERAL_CHAINS), list, "ephemeral_chains"
    )

    # Merge per-network settings over the built-in network table
    networks: Dict[str, Dict[str, Any]] = copy.deepcopy(NETWORK_CONFIG)
    for name, overrides in _expect(data.get("networks", {}), dict, "networks").items():
        _expect(overrides, dict, f"networks.{name}")
        networks.setdefault(name, {}).update(overrides)

    for name, network_config in networks.items():
        env_rpc_url = environ.get(rpc_url_env_var(name))
        if env_rpc_url:
            network_config["rpc_url"] = env_rpc_url

    contract = _expect(data.get("contract", {}), dict, "contract")
    contract_name = _expect(contract.get("name", DEFAULT_CONTRACT["name"]), str, "contract.name")
    artifact_name = _expect(
        contract.get("artifact", DEFAULT_CONTRACT["artifact"]), str, "contract.artifact"
    )
    constructor_args = _expect(contract.get("args", [INITIAL_SUPPLY]), list, "contract.args")

    default_deployments_dir, default_artifacts_dir = get_project_paths(project_root)
    deployments_dir = Path(
        _expect(data.get("deployments_dir", str(default_deployments_dir)), str, "deployments_dir")
    )
    artifacts_dir = Path(
        _expect(data.get("artifacts_dir", str(default_artifacts_dir)), str, "artifacts_dir")
    )
    if not deployments_dir.is_absolute():
        deployments_dir = project_root / deployments_dir
    if not artifacts_dir.is_absolute():
        artifacts_dir = project_root / artifacts_dir

    confirmation_timeout = _expect(
        data.get("confirmation_timeout", DEFAULT_CONFIRMATION_TIMEOUT),
        (int, float),
        "confirmation_timeout",
    )
    if confirmation_timeout <= 0:
        raise ConfigError("confirmation_timeout must be positive")

    return DeployConfig(
        development_chains=tuple(development_chains),
        ephemeral_chains=tuple(ephemeral_chains),
        networks=networks,
        contract_name=contract_name,
        artifact_name=artifact_name,
        constructor_args=tuple(constructor_args),
        deployments_dir=deployments_dir,
        artifacts_dir=artifacts_dir,
        explorer_api_key=environ.get(EXPLORER_API_KEY_ENV) or None,
        confirmation_timeout=float(confirmation_timeout),
    )
