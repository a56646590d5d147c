"""Command line interface for contract-deployments library."""

import argparse
import dataclasses
import json
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional, Sequence

from .config import load_config
from .exceptions import ArtifactNotFoundError, ConfigError, DefectiveRecordError
from .orchestrator import DeploymentOrchestrator
from .store import DeploymentStore
from .types import DeploymentOutcome, DeploymentState, VerificationStatus
from .verifier import EtherscanVerificationService, Verifier

logger = logging.getLogger("contract_deployments")

EXIT_OK = 0
EXIT_DEPLOYMENT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _parse_arg(value: str):
    # "1000000" -> 1000000, "[1, 2]" -> [1, 2], "0xabc..." stays a string
    try:
        return json.loads(value)
    except ValueError:
        return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contract-deployments",
        description="Deploy and verify the project's token contract.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", help="Path to deploy-config.json")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Deploy (or reuse) and verify the contract")
    deploy.add_argument(
        "--network",
        action="append",
        required=True,
        help="Target network; repeat to deploy to several networks concurrently",
    )
    deploy.add_argument(
        "--args",
        nargs="*",
        type=_parse_arg,
        help="Constructor arguments, overriding the configured ones",
    )
    deploy.add_argument("--no-verify", action="store_true", help="Skip explorer verification")

    status = subparsers.add_parser("status", help="Show recorded deployments")
    status.add_argument("--network", action="append", help="Network(s) to show (default: all)")

    return parser


def _report(outcome: DeploymentOutcome) -> None:
    network = outcome.target.network_name
    if outcome.state is DeploymentState.FAILED:
        logger.error("%s: FAILED (%s)", network, outcome.error)
        return

    record = outcome.record
    action = "deployed" if outcome.deployed else "reused"
    logger.info("%s: %s %s at %s", network, action, record.contract_name, record.address)
    verification = outcome.verification
    if verification is None:
        return
    if verification.status is VerificationStatus.FAILED:
        logger.warning("%s: verification failed: %s", network, verification.reason)
    else:
        logger.info("%s: verification %s", network, verification.status.value)


def _install_cancel_handler(orchestrator: DeploymentOrchestrator) -> Dict[int, Any]:
    """Route SIGINT/SIGTERM to orchestrator.cancel(); returns the previous handlers."""
    if threading.current_thread() is not threading.main_thread():
        return {}

    def handler(signum, frame):
        orchestrator.cancel()

    return {
        signum: signal.signal(signum, handler) for signum in (signal.SIGINT, signal.SIGTERM)
    }


def _restore_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def cmd_deploy(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
        if args.args is not None:
            config = dataclasses.replace(config, constructor_args=tuple(args.args))
        targets = [config.target(network) for network in args.network]
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    store = DeploymentStore(config.deployments_dir, ephemeral_networks=config.ephemeral_chains)
    verifier = Verifier(EtherscanVerificationService(), api_key=config.explorer_api_key)
    orchestrator = DeploymentOrchestrator(config, store, verifier)
    previous_handlers = _install_cancel_handler(orchestrator)

    try:
        outcomes = orchestrator.run_many(targets, verify=not args.no_verify)
    except (ConfigError, ArtifactNotFoundError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    finally:
        _restore_handlers(previous_handlers)

    for outcome in outcomes:
        _report(outcome)

    failed = [o for o in outcomes if o.state is DeploymentState.FAILED]
    if any(isinstance(o.error, ConfigError) for o in failed):
        return EXIT_CONFIG_ERROR
    if failed:
        return EXIT_DEPLOYMENT_FAILED
    return EXIT_OK


def cmd_status(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    store = DeploymentStore(config.deployments_dir, ephemeral_networks=config.ephemeral_chains)
    networks: List[str] = args.network or store.networks()
    if not networks:
        print("No deployments recorded.")
        return EXIT_OK

    for network in networks:
        try:
            names = store.contract_names(network)
        except DefectiveRecordError as e:
            logger.error("%s: %s", network, e)
            return EXIT_DEPLOYMENT_FAILED
        if not names:
            print(f"{network}: no deployments")
            continue
        for name in names:
            history = store.history(network, name)
            latest = history[-1]
            print(
                f"{network}: {name} at {latest.address} "
                f"(block {latest.confirmed_block}, tx {latest.tx_hash}, "
                f"{len(history)} deployment(s))"
            )
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "deploy":
        return cmd_deploy(args)
    return cmd_status(args)


if __name__ == "__main__":
    sys.exit(main())
