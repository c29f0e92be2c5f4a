"""JSON-RPC access to chain nodes for smolder."""

import itertools
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from .bytecode import hex_to_bytes
from .constants import RPC_TIMEOUT
from .exceptions import RpcError, TransactionRevertedError

_request_ids = itertools.count(1)


def rpc_call(rpc_url: str, method: str, params: List[Any], timeout: int = RPC_TIMEOUT) -> Any:
    """
    Make a JSON-RPC 2.0 request and return its result.

    Args:
        rpc_url: RPC endpoint URL
        method: JSON-RPC method (e.g., "eth_chainId")
        params: Positional parameters
        timeout: Seconds before the request is abandoned

    Returns:
        The ``result`` member of the response

    Raises:
        RpcError: If the endpoint is unreachable, answers with a non-200
            status or a non-JSON body, or returns a JSON-RPC error
        TransactionRevertedError: If the JSON-RPC error reports a revert
    """
    try:
        response = requests.post(
            rpc_url,
            json={
                "jsonrpc": "2.0",
                "method": method,
                "params": params,
                "id": next(_request_ids),
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise RpcError(f"Network error during {method}: {e}") from e

    if response.status_code != 200:
        raise RpcError(f"{method} failed with HTTP status {response.status_code}")

    try:
        body = response.json()
    except ValueError as e:
        raise RpcError(f"{method} returned a non-JSON response") from e

    if "error" in body:
        error = body["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        if "revert" in message.lower():
            raise TransactionRevertedError(message)
        raise RpcError(f"{method}: {message}")

    if "result" not in body:
        raise RpcError(f"{method} response has no result")
    return body["result"]


def get_chain_id(rpc_url: str) -> int:
    """Ask a node for its chain id."""
    result = rpc_call(rpc_url, "eth_chainId", [])
    try:
        return int(result, 16)
    except (TypeError, ValueError) as e:
        raise RpcError(f"Invalid chain id response: {result!r}") from e


def eth_call(rpc_url: str, to: str, data: bytes, timeout: int = RPC_TIMEOUT) -> bytes:
    """
    Execute a read-only call against the latest block.

    Returns:
        Raw return data
    """
    result = rpc_call(
        rpc_url, "eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"], timeout=timeout
    )
    try:
        return hex_to_bytes(result)
    except (TypeError, ValueError) as e:
        raise RpcError(f"Invalid eth_call response: {result!r}") from e


def get_transaction_receipt(rpc_url: str, tx_hash: str) -> Optional[Dict[str, Any]]:
    """Get a transaction receipt, None while the transaction is pending."""
    return rpc_call(rpc_url, "eth_getTransactionReceipt", [tx_hash])


class RpcClient(ABC):
    """Capability for executing read-only contract calls."""

    @abstractmethod
    def call(self, rpc_url: str, to: str, data: bytes) -> bytes:
        """Execute eth_call and return the raw result."""


class JsonRpcClient(RpcClient):
    """RpcClient that talks JSON-RPC over HTTP."""

    def __init__(self, timeout: int = RPC_TIMEOUT):
        self.timeout = timeout

    def call(self, rpc_url: str, to: str, data: bytes) -> bytes:
        return eth_call(rpc_url, to, data, timeout=self.timeout)
