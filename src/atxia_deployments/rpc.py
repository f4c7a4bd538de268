"""JSON-RPC client for the network boundary."""

import itertools
import logging
from typing import Any, Dict, List, Optional

import requests

from .constants import RPC_TIMEOUT
from .exceptions import RpcError, RpcTransportError

logger = logging.getLogger(__name__)

# Returned by nodes that do not implement eth_maxPriorityFeePerGas
METHOD_NOT_FOUND = -32601


def to_int(value: Any, field: str = "value") -> int:
    """
    Parse a JSON-RPC hex quantity.

    Raises:
        RpcError: If the value is not a hex quantity
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not value.startswith("0x"):
        raise RpcError(f"Malformed quantity for {field}: {value!r}")
    try:
        return int(value, 16)
    except ValueError as e:
        raise RpcError(f"Malformed quantity for {field}: {value!r}") from e


class JsonRpcClient:
    """Minimal Ethereum JSON-RPC 2.0 client over HTTP."""

    def __init__(self, url: str, timeout: float = RPC_TIMEOUT, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Perform a single JSON-RPC call.

        Args:
            method: RPC method name
            params: Positional parameters

        Returns:
            The "result" member of the response

        Raises:
            RpcTransportError: If the endpoint is unreachable or answers non-JSON
            RpcError: If the endpoint returns an error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }
        logger.debug("RPC %s %s", method, payload["params"])

        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RpcTransportError(f"Network error during RPC call {method}: {e}") from e

        # Check for HTTP errors
        if response.status_code != 200:
            raise RpcTransportError(
                f"RPC request {method} failed with status {response.status_code}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise RpcTransportError(f"RPC request {method} returned invalid JSON") from e

        # Check for RPC errors
        if not isinstance(result, dict):
            raise RpcTransportError(f"RPC request {method} returned unexpected payload")
        if "error" in result:
            error = result["error"] or {}
            if isinstance(error, dict):
                raise RpcError(
                    f"RPC error: {error.get('message', error)}", code=error.get("code")
                )
            raise RpcError(f"RPC error: {error}")
        if "result" not in result:
            raise RpcTransportError(f"RPC request {method} returned no result")

        return result["result"]

    # Chain state

    def chain_id(self) -> int:
        return to_int(self.request("eth_chainId"), "chainId")

    def block_number(self) -> int:
        return to_int(self.request("eth_blockNumber"), "blockNumber")

    def gas_price(self) -> int:
        return to_int(self.request("eth_gasPrice"), "gasPrice")

    def max_priority_fee(self) -> Optional[int]:
        """Suggested priority fee, or None on nodes without EIP-1559 support."""
        try:
            return to_int(self.request("eth_maxPriorityFeePerGas"), "maxPriorityFeePerGas")
        except RpcError as e:
            if isinstance(e, RpcTransportError) or e.code != METHOD_NOT_FOUND:
                raise
            return None

    def get_block(self, block: str = "latest") -> Dict[str, Any]:
        result = self.request("eth_getBlockByNumber", [block, False])
        if not isinstance(result, dict):
            raise RpcError(f"Block {block} not found")
        return result

    # Accounts

    def get_balance(self, address: str, block: str = "latest") -> int:
        return to_int(self.request("eth_getBalance", [address, block]), "balance")

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return to_int(self.request("eth_getTransactionCount", [address, block]), "nonce")

    # Transactions

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        return to_int(self.request("eth_estimateGas", [transaction]), "gas")

    def send_raw_transaction(self, raw_transaction: str) -> str:
        result = self.request("eth_sendRawTransaction", [raw_transaction])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError(f"Malformed transaction hash: {result!r}")
        return result

    def get_transaction_receipt(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.request("eth_getTransactionReceipt", [transaction_hash])

    def get_transaction(self, transaction_hash: str) -> Optional[Dict[str, Any]]:
        return self.request("eth_getTransactionByHash", [transaction_hash])

    def call(self, transaction: Dict[str, Any], block: str = "latest") -> str:
        return self.request("eth_call", [transaction, block])
