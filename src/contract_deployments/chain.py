"""Chain RPC client for contract-deployments library."""

import itertools
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol

import requests

from .exceptions import ChainClientError, DeploymentFailed

logger = logging.getLogger(__name__)

# Receipt fields returned as hex quantities by eth_getTransactionReceipt
_RECEIPT_QUANTITIES = ("blockNumber", "status", "gasUsed", "cumulativeGasUsed", "transactionIndex")


class ChainClient(Protocol):
    """What the executor needs from a chain."""

    def submit_contract_creation(self, bytecode: str, args: bytes) -> str:
        ...

    def get_confirmations(self, tx_hash: str) -> int:
        ...

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        ...


class JsonRpcChainClient:
    """
    Ethereum JSON-RPC client over HTTP.

    Transactions are sent with eth_sendTransaction, so the node has to manage
    the deployer account (hardhat node, or a node with an unlocked account).
    """

    def __init__(
        self,
        rpc_url: str,
        sender: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._sender = sender
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        self._id_lock = threading.Lock()

    def _next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def call(self, method: str, params: List[Any]) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method, e.g. "eth_blockNumber"
            params: Positional parameters

        Returns:
            The "result" member of the response

        Raises:
            DeploymentFailed: If the node answers with an RPC error
            ChainClientError: If the request fails or the response is malformed
        """
        try:
            response = self._session.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "method": method, "params": params, "id": self._next_id()},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ChainClientError(f"Network error during {method}: {e}") from e

        # Check for HTTP errors
        if response.status_code != 200:
            raise ChainClientError(
                f"{method} failed with HTTP status {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ChainClientError(f"{method} returned invalid JSON") from e

        # Check for RPC errors
        if "error" in body:
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise DeploymentFailed(f"{method}: {message}")

        if "result" not in body:
            raise ChainClientError(f"{method} response has no result")
        return body["result"]

    @property
    def sender(self) -> str:
        """Deployer address, defaulting to the node's first account."""
        if self._sender is None:
            accounts = self.call("eth_accounts", [])
            if not accounts:
                raise DeploymentFailed(
                    f"Node at {self.rpc_url} manages no accounts to deploy from"
                )
            self._sender = accounts[0]
        return self._sender

    def submit_contract_creation(self, bytecode: str, args: bytes) -> str:
        """
        Send a contract-creation transaction.

        Args:
            bytecode: Creation bytecode, 0x-prefixed hex
            args: ABI-encoded constructor arguments

        Returns:
            Transaction hash

        Raises:
            DeploymentFailed: If the node rejects the transaction
        """
        data = bytecode if bytecode.startswith("0x") else f"0x{bytecode}"
        data += args.hex()
        tx_hash = self.call("eth_sendTransaction", [{"from": self.sender, "data": data}])
        logger.debug("Submitted contract creation %s from %s", tx_hash, self.sender)
        return tx_hash

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Transaction receipt with hex quantities decoded, or None while pending."""
        receipt = self.call("eth_getTransactionReceipt", [tx_hash])
        if receipt is None:
            return None

        decoded = dict(receipt)
        for key in _RECEIPT_QUANTITIES:
            value = decoded.get(key)
            if isinstance(value, str):
                decoded[key] = int(value, 16)
        return decoded

    def block_number(self) -> int:
        return int(self.call("eth_blockNumber", []), 16)

    def get_confirmations(self, tx_hash: str) -> int:
        """
        Number of blocks including and on top of the transaction's block.

        Returns:
            0 while the transaction is not mined, otherwise head - block + 1
        """
        receipt = self.get_receipt(tx_hash)
        if receipt is None or receipt.get("blockNumber") is None:
            return 0
        return max(0, self.block_number() - receipt["blockNumber"] + 1)
