"""Custom exception classes for smolder.

Every error kind carries a stable ``code`` and the ``http_status`` a
boundary layer should map it to.
"""

from typing import Optional


class SmolderError(Exception):
    """Base exception for registry, parser and codec errors."""

    code = "INTERNAL_ERROR"
    http_status = 500

    @property
    def is_not_found(self) -> bool:
        return self.http_status == 404

    @property
    def is_validation(self) -> bool:
        return isinstance(self, (ValidationError, InvalidParameterError))

    @property
    def is_storage(self) -> bool:
        return isinstance(self, StorageError)

    def public_message(self) -> str:
        """Message that is safe to hand to an untrusted caller."""
        return str(self)


# Entity not found errors


class NotFoundError(SmolderError, LookupError):
    """Base for all "not found" kinds."""

    code = "NOT_FOUND"
    http_status = 404


class NetworkNotFoundError(NotFoundError):
    """Raised when a network is not registered or configured."""

    code = "NETWORK_NOT_FOUND"


class ContractNotFoundError(NotFoundError):
    """Raised when a contract is not in the registry."""

    code = "CONTRACT_NOT_FOUND"


class DeploymentNotFoundError(NotFoundError):
    """Raised when a deployment id or name/network pair is unknown."""

    code = "DEPLOYMENT_NOT_FOUND"


class WalletNotFoundError(NotFoundError):
    """Raised when a wallet is unknown to the key store."""

    code = "WALLET_NOT_FOUND"


class FunctionNotFoundError(NotFoundError):
    """Raised when a function is not declared in a contract ABI."""

    code = "FUNCTION_NOT_FOUND"

    def __init__(self, contract: str, function: str):
        self.contract = contract
        self.function = function
        super().__init__(f"Function '{function}' not found in contract '{contract}'")


class ArtifactNotFoundError(NotFoundError):
    """Raised when no compiled artifact exists for a contract name."""

    code = "ARTIFACT_NOT_FOUND"


# ABI errors


class AbiParseError(SmolderError, ValueError):
    """Raised when an interface description does not match the ABI schema."""

    code = "ABI_PARSE_ERROR"
    http_status = 400


class AbiEncodeError(SmolderError, ValueError):
    """Raised when arguments cannot be converted or packed."""

    code = "ABI_ENCODE_ERROR"
    http_status = 400


class AbiDecodeError(SmolderError, ValueError):
    """Raised when returned data cannot be unpacked."""

    code = "ABI_DECODE_ERROR"
    http_status = 400


# RPC / chain errors


class RpcError(SmolderError):
    """Raised when a node request fails."""

    code = "RPC_ERROR"
    http_status = 502

    def __init__(self, message: str, chain_id: Optional[int] = None):
        self.chain_id = chain_id
        if chain_id is not None:
            message = f"RPC error on chain {chain_id}: {message}"
        super().__init__(message)


class TransactionFailedError(SmolderError):
    """Raised when a transaction could not be submitted."""

    code = "TRANSACTION_FAILED"
    http_status = 502


class TransactionRevertedError(SmolderError):
    """Raised when a call or transaction reverted on chain."""

    code = "TRANSACTION_REVERTED"
    http_status = 502

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"Transaction reverted: {reason}")


# Validation errors


class ValidationError(SmolderError, ValueError):
    """Raised when a request is structurally valid but not acceptable."""

    code = "VALIDATION_ERROR"
    http_status = 400


class InvalidParameterError(SmolderError, ValueError):
    """Raised when a named parameter has an unacceptable value."""

    code = "INVALID_PARAMETER"
    http_status = 400

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid parameter '{name}': {reason}")


# Storage / IO / configuration errors


class StorageError(SmolderError):
    """Raised when the backing database fails."""

    code = "DATABASE_ERROR"

    def public_message(self) -> str:
        return "Internal storage error"


class BroadcastNotFoundError(SmolderError, FileNotFoundError):
    """Raised when a script was never broadcast for a chain."""

    code = "FILE_NOT_FOUND"
    http_status = 404


class IoError(SmolderError, OSError):
    """Raised when a file exists but cannot be read or deserialized."""

    code = "IO_ERROR"


class ConfigurationError(SmolderError):
    """Raised when project configuration is missing or unusable."""

    code = "CONFIG_ERROR"


class EnvVarNotSetError(ConfigurationError):
    """Raised when a ``${VAR}`` reference names an unset variable."""

    code = "ENV_VAR_NOT_SET"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Environment variable '{name}' not set")
