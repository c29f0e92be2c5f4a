"""Contract interaction and deploy-record flows for smolder.

Signing and sending transactions stays with the caller's wallet; this
module prepares call data, executes read calls and records deployments.
Every call and prepared transaction is written to the call history.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

from .abi import (
    Abi,
    FunctionInfo,
    ParsedFunctions,
    decode_function_result,
    encode_constructor_args,
    encode_function_call,
)
from .artifacts import ArtifactLoader
from .bytecode import (
    compute_bytecode_hash,
    hex_to_bytes,
    parse_hex_block_number,
    parse_hex_quantity,
)
from .deployments import DeploymentRegistry
from .exceptions import (
    InvalidParameterError,
    NetworkNotFoundError,
    SmolderError,
    TransactionRevertedError,
    ValidationError,
)
from .rpc import JsonRpcClient, RpcClient
from .types import (
    CallHistory,
    CallHistoryId,
    CallHistoryUpdate,
    CallType,
    Deployment,
    DeploymentId,
    DeploymentView,
    NewCallHistory,
    NewContract,
    NewDeployment,
    TransactionStatus,
    WalletId,
)

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1

_DECIMAL_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class PreparedTransaction:
    """An unsigned contract call ready for a wallet to sign and send."""

    to: str
    data: bytes
    value: int
    signature: str
    history_id: CallHistoryId

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to,
            "data": "0x" + self.data.hex(),
            "value": str(self.value),
            "signature": self.signature,
            "history_id": self.history_id,
        }


def list_functions(registry: DeploymentRegistry, deployment_id: DeploymentId) -> ParsedFunctions:
    """
    Get the read and write functions of a deployed contract.

    Raises:
        DeploymentNotFoundError: If the deployment does not exist
        AbiParseError: If the stored ABI is invalid
    """
    view = registry.require_view(deployment_id)
    return Abi.parse(view.abi).functions()


def call_function(
    registry: DeploymentRegistry,
    deployment_id: DeploymentId,
    function: str,
    params: Sequence[Any],
    client: Optional[RpcClient] = None,
) -> Any:
    """
    Call a read-only function of a deployed contract.

    The call is recorded in the call history once its arguments encode;
    the decoded result or the failure is stored before returning.

    Args:
        registry: Registry holding the deployment
        deployment_id: Deployment to call
        function: Function name, or full signature for overloaded functions
        params: Arguments in generic form
        client: RPC client (defaults to JSON-RPC over HTTP)

    Returns:
        Decoded result: None, a single value or a list

    Raises:
        DeploymentNotFoundError: If the deployment does not exist
        NetworkNotFoundError: If its network is gone
        FunctionNotFoundError: If the function is not declared
        ValidationError: If the function is a write function or the
            argument count is wrong
        AbiEncodeError / AbiDecodeError: If conversion fails
        RpcError / TransactionRevertedError: If the node rejects the call
    """
    view = registry.require_view(deployment_id)
    target = _resolve(view, function)
    if not target.is_read_only:
        raise ValidationError(
            f"Function '{target.signature}' modifies state; use prepare_transaction()"
        )

    network = registry.get_network(view.network_name)
    if network is None:
        raise NetworkNotFoundError(f"Network '{view.network_name}' not found")

    data = encode_function_call(target, params)
    if client is None:
        client = JsonRpcClient()

    entry = _record(registry, view, target, params, CallType.READ)
    logger.debug("Calling %s.%s at %s", view.contract_name, target.signature, view.address)
    try:
        raw = client.call(network.rpc_url, view.address, data)
        result = decode_function_result(target, raw)
    except SmolderError as e:
        mark_transaction_failed(registry, entry.id, e)
        raise

    registry.update_call(
        entry.id,
        CallHistoryUpdate(status=TransactionStatus.SUCCESS, result=json.dumps(result)),
    )
    return result


def prepare_transaction(
    registry: DeploymentRegistry,
    deployment_id: DeploymentId,
    function: str,
    params: Sequence[Any],
    value: Optional[Union[int, str]] = None,
    wallet_id: Optional[WalletId] = None,
) -> PreparedTransaction:
    """
    Encode a state-changing call for a wallet to sign.

    The transaction is recorded in the call history without a status;
    report what happened to it with mark_transaction_sent(),
    mark_transaction_confirmed() or mark_transaction_failed().

    Args:
        value: Wei to send, as an int or decimal string
        wallet_id: Wallet that will sign, kept with the history entry

    Raises:
        ValidationError: If the function is read-only, or value is sent
            to a non-payable function
        InvalidParameterError: If value is not a valid amount
    """
    view = registry.require_view(deployment_id)
    target = _resolve(view, function)
    if target.is_read_only:
        raise ValidationError(f"Function '{target.signature}' is read-only; use call_function()")

    amount = parse_value(value)
    if amount and not target.is_payable:
        raise ValidationError(f"Cannot send value to non-payable function '{target.signature}'")

    data = encode_function_call(target, params)
    entry = _record(registry, view, target, params, CallType.WRITE, wallet_id)

    return PreparedTransaction(
        to=view.address,
        data=data,
        value=amount,
        signature=target.signature,
        history_id=entry.id,
    )


def mark_transaction_sent(
    registry: DeploymentRegistry, history_id: CallHistoryId, tx_hash: str
) -> CallHistory:
    """Record that a prepared transaction was broadcast and awaits mining."""
    return registry.update_call(
        history_id, CallHistoryUpdate(status=TransactionStatus.PENDING, tx_hash=tx_hash)
    )


def mark_transaction_confirmed(
    registry: DeploymentRegistry, history_id: CallHistoryId, receipt: Dict[str, Any]
) -> CallHistory:
    """
    Record the mined receipt of a transaction.

    Args:
        receipt: eth_getTransactionReceipt result; status "0x1" is success,
            anything else a revert

    Raises:
        ValidationError: If the receipt's numbers are not hex
    """
    status = (
        TransactionStatus.SUCCESS
        if receipt.get("status") == "0x1"
        else TransactionStatus.REVERTED
    )
    block = receipt.get("blockNumber")
    gas_used = receipt.get("gasUsed")
    gas_price = receipt.get("effectiveGasPrice")

    return registry.update_call(
        history_id,
        CallHistoryUpdate(
            status=status,
            tx_hash=receipt.get("transactionHash"),
            block_number=parse_hex_block_number(block) if block else None,
            gas_used=parse_hex_quantity(gas_used) if gas_used else None,
            gas_price=str(parse_hex_quantity(gas_price)) if gas_price else None,
        ),
    )


def mark_transaction_failed(
    registry: DeploymentRegistry, history_id: CallHistoryId, error: SmolderError
) -> CallHistory:
    """Record a call or transaction that failed; reverts are kept apart."""
    if isinstance(error, TransactionRevertedError):
        status = TransactionStatus.REVERTED
    else:
        status = TransactionStatus.FAILED
    return registry.update_call(
        history_id, CallHistoryUpdate(status=status, error_message=str(error))
    )


def build_deploy_data(
    loader: ArtifactLoader,
    artifact_name: str,
    args: Sequence[Any],
    value: Optional[Union[int, str]] = None,
) -> bytes:
    """
    Build creation data: init bytecode followed by encoded constructor args.

    Raises:
        ArtifactNotFoundError: If the artifact does not exist
        ValidationError: If the artifact has no bytecode, arguments do not
            match the constructor, or value is sent to a non-payable one
    """
    details = loader.get_details(artifact_name)
    bytecode = loader.get_bytecode(artifact_name)
    constructor = details.constructor

    if parse_value(value):
        if constructor is None:
            raise ValidationError("Cannot send value to contract without payable constructor")
        if not constructor.is_payable:
            raise ValidationError("Cannot send value to non-payable constructor")

    return hex_to_bytes(bytecode) + encode_constructor_args(constructor, args)


def record_deployment(
    registry: DeploymentRegistry,
    loader: ArtifactLoader,
    network_name: str,
    artifact_name: str,
    address: str,
    deployer: str,
    tx_hash: str,
    block_number: Optional[int] = None,
    constructor_args: Optional[Sequence[Any]] = None,
) -> Deployment:
    """
    Record a deployment made from a local artifact.

    Any failure aborts the flow and propagates.

    Raises:
        NetworkNotFoundError: If the network is not registered
        ArtifactNotFoundError: If the artifact does not exist
        StorageError: If the deployment cannot be stored
    """
    network = registry.get_network(network_name)
    if network is None:
        raise NetworkNotFoundError(f"Network '{network_name}' not found")

    details = loader.get_details(artifact_name)
    bytecode = loader.get_bytecode(artifact_name)

    contract = registry.upsert_contract(
        NewContract(
            name=artifact_name,
            source_path=details.source_path,
            abi=json.dumps(details.abi),
            bytecode_hash=compute_bytecode_hash(bytecode),
        )
    )
    deployment = registry.create(
        NewDeployment(
            contract_id=contract.id,
            network_id=network.id,
            address=address,
            deployer=deployer,
            tx_hash=tx_hash,
            block_number=block_number,
            constructor_args=json.dumps(list(constructor_args)) if constructor_args else None,
        )
    )
    logger.info(
        "Recorded %s v%d on %s at %s", artifact_name, deployment.version, network_name, address
    )
    return deployment


def parse_value(value: Optional[Union[int, str]]) -> int:
    """
    Parse a wei amount.

    Raises:
        InvalidParameterError: If the amount is not a non-negative uint256
    """
    if value is None or value == "":
        return 0

    if isinstance(value, bool):
        raise InvalidParameterError("value", "expected an integer amount")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not _DECIMAL_RE.fullmatch(text):
            raise InvalidParameterError("value", f"'{value}' is not a decimal number")
        amount = int(text, 10)
    else:
        raise InvalidParameterError("value", "expected an integer amount")

    if not 0 <= amount <= MAX_UINT256:
        raise InvalidParameterError("value", "out of range")
    return amount


def _resolve(view: DeploymentView, function: str) -> FunctionInfo:
    return Abi.parse(view.abi).resolve_function(function, view.contract_name)


def _record(
    registry: DeploymentRegistry,
    view: DeploymentView,
    target: FunctionInfo,
    params: Sequence[Any],
    call_type: CallType,
    wallet_id: Optional[WalletId] = None,
) -> CallHistory:
    return registry.record_call(
        NewCallHistory(
            deployment_id=view.id,
            function_name=target.name,
            function_signature=target.signature,
            input_params=json.dumps(list(params)),
            call_type=call_type,
            wallet_id=wallet_id,
        )
    )
