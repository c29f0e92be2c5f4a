"""
smolder: registry of Foundry contract deployments with ABI-driven interaction
"""

from importlib.metadata import PackageNotFoundError, version

from .abi import Abi, ConstructorInfo, FunctionInfo, ParamInfo, ParsedFunctions, StateMutability
from .artifacts import ArtifactLoader, FileSystemArtifactLoader
from .db import Database
from .deployments import DeploymentRegistry
from .exceptions import (
    AbiDecodeError,
    AbiEncodeError,
    AbiParseError,
    ArtifactNotFoundError,
    BroadcastNotFoundError,
    ConfigurationError,
    ContractNotFoundError,
    DeploymentNotFoundError,
    FunctionNotFoundError,
    NetworkNotFoundError,
    RpcError,
    SmolderError,
    StorageError,
    TransactionRevertedError,
    ValidationError,
)
from .ingestion import ImportSummary, sync_project
from .parsers import BroadcastParser, ForgeBroadcastParser
from .types import (
    CallHistory,
    CallType,
    Contract,
    Deployment,
    DeploymentFilter,
    DeploymentView,
    Network,
    ParsedDeployment,
    TransactionStatus,
)

try:
    __version__ = version("smolder")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "DeploymentRegistry",
    "Database",
    "sync_project",
    "ImportSummary",
    "Abi",
    "ConstructorInfo",
    "FunctionInfo",
    "ParamInfo",
    "ParsedFunctions",
    "StateMutability",
    "ArtifactLoader",
    "FileSystemArtifactLoader",
    "BroadcastParser",
    "ForgeBroadcastParser",
    "Network",
    "Contract",
    "Deployment",
    "DeploymentView",
    "DeploymentFilter",
    "ParsedDeployment",
    "CallHistory",
    "CallType",
    "TransactionStatus",
    "SmolderError",
    "NetworkNotFoundError",
    "ContractNotFoundError",
    "DeploymentNotFoundError",
    "FunctionNotFoundError",
    "ArtifactNotFoundError",
    "BroadcastNotFoundError",
    "AbiParseError",
    "AbiEncodeError",
    "AbiDecodeError",
    "RpcError",
    "TransactionRevertedError",
    "ValidationError",
    "StorageError",
    "ConfigurationError",
]
