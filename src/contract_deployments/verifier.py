"""Block explorer verification for contract-deployments library."""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from .artifacts import encode_constructor_args
from .constants import VERIFY_BACKOFF, VERIFY_INITIAL_DELAY, VERIFY_MAX_ATTEMPTS
from .exceptions import ConfigError, TransientVerificationError, VerificationFailed
from .types import (
    ContractArtifact,
    DeploymentRecord,
    DeploymentTarget,
    VerificationRequest,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# Explorer answers that mean the bytecode is not indexed yet or we are throttled
_TRANSIENT_MARKERS = (
    "unable to locate contractcode",
    "does not have bytecode",
    "rate limit",
    "too many",
    "pending in queue",
)


def is_already_verified(message: Optional[str]) -> bool:
    return bool(message) and "already verified" in message.lower()


class VerificationService(Protocol):
    def submit_verification(
        self,
        request: VerificationRequest,
        api_key: str,
        artifact: Optional[ContractArtifact] = None,
        target: Optional[DeploymentTarget] = None,
    ) -> str:
        ...


class EtherscanVerificationService:
    """Etherscan-compatible source verification API client."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        poll_interval: float = 3.0,
        max_status_checks: int = 20,
        timeout: float = 30,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the service.

        Args:
            api_url: Explorer API endpoint. If None, each target's explorer_api_url is used.
            session: requests session to reuse
            poll_interval: Delay between verification status checks (seconds)
            max_status_checks: Status checks before giving up on a pending verification
            timeout: HTTP timeout (seconds)
            sleep: Sleep function, replaceable in tests
        """
        self.api_url = api_url
        self.poll_interval = poll_interval
        self.max_status_checks = max_status_checks
        self.timeout = timeout
        self._session = session or requests.Session()
        self._sleep = sleep

    def _api_url_for(self, target: Optional[DeploymentTarget]) -> str:
        api_url = self.api_url or (target.explorer_api_url if target is not None else None)
        if not api_url:
            network = target.network_name if target is not None else "?"
            raise VerificationFailed(f"No explorer API configured for network '{network}'")
        return api_url

    def _request(self, method: str, api_url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._session.request(method, api_url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransientVerificationError(f"Network error talking to explorer: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientVerificationError(
                f"Explorer returned HTTP status {response.status_code}"
            )
        if response.status_code != 200:
            raise VerificationFailed(f"Explorer returned HTTP status {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise TransientVerificationError("Explorer returned invalid JSON") from e

        if not isinstance(body, dict):
            raise VerificationFailed(f"Explorer returned an unexpected response: {body!r}")
        return body

    @staticmethod
    def _raise_for_result(body: Dict[str, Any]) -> None:
        result = str(body.get("result", ""))
        lowered = result.lower()
        if any(marker in lowered for marker in _TRANSIENT_MARKERS):
            raise TransientVerificationError(result, body)
        raise VerificationFailed(result or body.get("message", "verification rejected"), body)

    def submit_verification(
        self,
        request: VerificationRequest,
        api_key: str,
        artifact: Optional[ContractArtifact] = None,
        target: Optional[DeploymentTarget] = None,
    ) -> str:
        """
        Submit a contract for source verification and wait for the verdict.

        Args:
            request: Address and constructor arguments of the deployment
            api_key: Explorer API key
            artifact: Compiled contract with its build-info
            target: Network the contract lives on

        Returns:
            Explorer status message ("Pass - Verified" or "Already Verified")

        Raises:
            TransientVerificationError: If the explorer is not ready or unreachable
            VerificationFailed: If the explorer rejects the source
        """
        api_url = self._api_url_for(target)

        if artifact is None or artifact.standard_json_input is None or not artifact.compiler_version:
            raise VerificationFailed(
                "Build info with compiler input is required for verification; "
                "recompile the contracts"
            )

        try:
            encoded_args = encode_constructor_args(artifact.abi, request.constructor_args)
        except ConfigError as e:
            raise VerificationFailed(str(e)) from e

        body = self._request(
            "POST",
            api_url,
            data={
                "apikey": api_key,
                "module": "contract",
                "action": "verifysourcecode",
                "contractaddress": request.address,
                "sourceCode": json.dumps(artifact.standard_json_input),
                "codeformat": "solidity-standard-json-input",
                "contractname": artifact.fully_qualified_name,
                "compilerversion": f"v{artifact.compiler_version}",
                # Etherscan's parameter name is misspelled
                "constructorArguements": encoded_args.hex(),
            },
        )

        if is_already_verified(str(body.get("result", ""))):
            return "Already Verified"
        if str(body.get("status")) != "1":
            self._raise_for_result(body)

        guid = body.get("result")
        if not guid or not isinstance(guid, str):
            raise VerificationFailed("Explorer accepted the submission without a GUID", body)
        logger.debug("Verification of %s submitted, guid %s", request.address, guid)
        return self._wait_for_status(api_url, api_key, guid)

    def _wait_for_status(self, api_url: str, api_key: str, guid: str) -> str:
        result = ""
        for _ in range(self.max_status_checks):
            self._sleep(self.poll_interval)
            body = self._request(
                "GET",
                api_url,
                params={
                    "apikey": api_key,
                    "module": "contract",
                    "action": "checkverifystatus",
                    "guid": guid,
                },
            )
            result = str(body.get("result", ""))
            if is_already_verified(result):
                return result
            if str(body.get("status")) == "1":
                return result
            if "pending" not in result.lower():
                raise VerificationFailed(result, body)

        raise TransientVerificationError(f"Verification {guid} still pending: {result}")


class Verifier:
    """Publishes deployed contracts on a block explorer when policy allows."""

    def __init__(
        self,
        service: VerificationService,
        api_key: Optional[str] = None,
        max_attempts: int = VERIFY_MAX_ATTEMPTS,
        backoff: float = VERIFY_BACKOFF,
        initial_delay: float = VERIFY_INITIAL_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.api_key = api_key
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.initial_delay = initial_delay
        self._sleep = sleep

    def should_verify(self, target: DeploymentTarget) -> bool:
        """Verification runs only on public networks and with an API key."""
        return not target.is_development and bool(self.api_key)

    def verify(
        self,
        record: DeploymentRecord,
        target: DeploymentTarget,
        artifact: Optional[ContractArtifact] = None,
    ) -> VerificationResult:
        """
        Verify a deployment on the target's explorer.

        Never raises for verification problems: failures come back as
        VerificationResult.failed and leave the deployment itself intact.

        Args:
            record: Confirmed deployment
            target: Network of the deployment
            artifact: Compiled contract, passed through to the service

        Returns:
            SKIPPED on development networks or without an API key,
            VERIFIED when the explorer accepted (or already had) the source,
            FAILED otherwise
        """
        if target.is_development:
            return VerificationResult.skipped(f"{target.network_name} is a development network")
        if not self.api_key:
            return VerificationResult.skipped("no explorer API key configured")

        request = VerificationRequest.from_record(record)
        delay = self.initial_delay
        last_error: Optional[VerificationFailed] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                message = self.service.submit_verification(
                    request, self.api_key, artifact=artifact, target=target
                )
                return VerificationResult.verified(message)
            except TransientVerificationError as e:
                last_error = e
                logger.warning(
                    "Verification of %s on %s failed (attempt %d/%d): %s",
                    record.address, target.network_name, attempt, self.max_attempts, e.reason,
                )
                if attempt < self.max_attempts:
                    self._sleep(delay)
                    delay *= self.backoff
            except VerificationFailed as e:
                if is_already_verified(e.reason):
                    return VerificationResult.verified(e.reason)
                logger.warning(
                    "Verification of %s on %s rejected: %s",
                    record.address, target.network_name, e.reason,
                )
                return VerificationResult.failed(e.reason)
            except Exception as e:
                logger.warning(
                    "Verification of %s on %s crashed: %s",
                    record.address, target.network_name, e, exc_info=True,
                )
                return VerificationResult.failed(f"{type(e).__name__}: {e}")

        reason = f"gave up after {self.max_attempts} attempts: {last_error.reason if last_error else ''}"
        logger.warning("Verification of %s on %s %s", record.address, target.network_name, reason)
        return VerificationResult.failed(reason)
