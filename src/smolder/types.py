"""Data types and dataclasses for smolder."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, NewType, Optional

# Distinct id types per entity; a NetworkId is never a ContractId
NetworkId = NewType("NetworkId", int)
ContractId = NewType("ContractId", int)
DeploymentId = NewType("DeploymentId", int)
WalletId = NewType("WalletId", int)
ChainId = NewType("ChainId", int)
CallHistoryId = NewType("CallHistoryId", int)


@dataclass(frozen=True)
class Network:
    """A chain the registry knows how to reach."""

    id: NetworkId
    name: str
    chain_id: ChainId
    rpc_url: str
    explorer_url: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Contract:
    """A contract identified by name plus init bytecode hash."""

    id: ContractId
    name: str
    source_path: str
    abi: str  # Serialized JSON ABI
    bytecode_hash: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Deployment:
    """One deployment of a contract on a network."""

    id: DeploymentId
    contract_id: ContractId
    network_id: NetworkId
    address: str
    deployer: str
    tx_hash: str
    block_number: Optional[int]
    constructor_args: Optional[str]  # Serialized JSON list
    version: int
    is_current: bool
    deployed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DeploymentView:
    """Deployment joined with its contract name, network and ABI."""

    id: DeploymentId
    contract_name: str
    network_name: str
    chain_id: ChainId
    address: str
    deployer: str
    tx_hash: str
    block_number: Optional[int]
    version: int
    is_current: bool
    deployed_at: datetime
    abi: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NewNetwork:
    """Input for creating or updating a network."""

    name: str
    chain_id: int
    rpc_url: str
    explorer_url: Optional[str] = None


@dataclass(frozen=True)
class NewContract:
    """Input for creating or refreshing a contract."""

    name: str
    source_path: str
    abi: str
    bytecode_hash: str


@dataclass(frozen=True)
class NewDeployment:
    """Input for registering a deployment."""

    contract_id: ContractId
    network_id: NetworkId
    address: str
    deployer: str
    tx_hash: str
    block_number: Optional[int] = None
    constructor_args: Optional[str] = None


@dataclass(frozen=True)
class DeploymentFilter:
    """Listing options: current rows only (default) or every version."""

    current_only: bool = True
    network: Optional[str] = None

    @classmethod
    def current(cls) -> "DeploymentFilter":
        return cls()

    @classmethod
    def all_versions(cls) -> "DeploymentFilter":
        return cls(current_only=False)

    @classmethod
    def for_network(cls, network: str, current_only: bool = True) -> "DeploymentFilter":
        return cls(current_only=current_only, network=network)


@dataclass(frozen=True)
class ParsedDeployment:
    """Deployment facts reconstructed from a broadcast file (not persisted)."""

    contract_name: str
    address: str
    deployer: str
    tx_hash: str
    block_number: Optional[int]
    constructor_args: Optional[str]
    abi: str
    bytecode_hash: str
    source_path: str


class CallType(Enum):
    READ = "read"
    WRITE = "write"


class TransactionStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class CallHistory:
    """One recorded contract call or transaction."""

    id: CallHistoryId
    deployment_id: DeploymentId
    wallet_id: Optional[WalletId]
    function_name: str
    function_signature: str
    input_params: str  # Serialized JSON list
    call_type: CallType
    result: Optional[str]  # Serialized JSON, read calls only
    tx_hash: Optional[str]
    block_number: Optional[int]
    gas_used: Optional[int]
    gas_price: Optional[str]
    status: Optional[TransactionStatus]
    error_message: Optional[str]
    created_at: datetime
    confirmed_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["call_type"] = self.call_type.value
        data["status"] = self.status.value if self.status is not None else None
        return data


@dataclass(frozen=True)
class NewCallHistory:
    """Input for recording a call before it is executed."""

    deployment_id: DeploymentId
    function_name: str
    function_signature: str
    input_params: str
    call_type: CallType
    wallet_id: Optional[WalletId] = None


@dataclass(frozen=True)
class CallHistoryUpdate:
    """Outcome of a recorded call; None fields leave the stored value alone."""

    status: TransactionStatus
    result: Optional[str] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    gas_price: Optional[str] = None
    error_message: Optional[str] = None
