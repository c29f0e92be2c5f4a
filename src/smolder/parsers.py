"""Broadcast file parsers for smolder.

A broadcast file is forge's record of one script run on one chain:
``broadcast/<Script>.s.sol/<chainId>/run-latest.json``.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .artifacts import ArtifactLoader, FileSystemArtifactLoader
from .bytecode import compute_bytecode_hash, parse_hex_block_number
from .constants import BROADCAST_FILE_NAME, CREATE_TRANSACTION_TYPE
from .exceptions import BroadcastNotFoundError, SmolderError, ValidationError
from .paths import get_project_paths
from .types import ParsedDeployment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadcastTransaction:
    """A transaction sent by a script."""

    hash: str
    transaction_type: str
    contract_name: Optional[str]
    contract_address: Optional[str]
    arguments: Optional[List[Any]]
    sender: str
    data: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BroadcastTransaction":
        tx = data["transaction"]
        return cls(
            hash=data["hash"],
            transaction_type=data["transactionType"],
            contract_name=data.get("contractName"),
            contract_address=data.get("contractAddress"),
            arguments=data.get("arguments"),
            sender=tx["from"],
            data=tx.get("data") or tx.get("input"),
        )

    def is_create(self) -> bool:
        return self.transaction_type == CREATE_TRANSACTION_TYPE

    def has_deployment_info(self) -> bool:
        return bool(self.contract_name) and bool(self.contract_address)


@dataclass(frozen=True)
class BroadcastReceipt:
    """A mined receipt; block number is a hex string."""

    transaction_hash: str
    block_number: str
    contract_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BroadcastReceipt":
        return cls(
            transaction_hash=data["transactionHash"],
            block_number=data["blockNumber"],
            contract_address=data.get("contractAddress"),
        )


@dataclass(frozen=True)
class BroadcastOutput:
    """Transactions and receipts of one script run."""

    transactions: List[BroadcastTransaction]
    receipts: List[BroadcastReceipt]

    @classmethod
    def from_dict(cls, data: Any) -> "BroadcastOutput":
        """
        Build from the decoded JSON of a broadcast file.

        Raises:
            ValidationError: If required fields are missing or mistyped
        """
        try:
            return cls(
                transactions=[BroadcastTransaction.from_dict(t) for t in data["transactions"]],
                receipts=[BroadcastReceipt.from_dict(r) for r in data.get("receipts") or []],
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValidationError(f"Malformed broadcast output: missing or invalid {e}") from e

    def block_number_for(self, tx_hash: str) -> Optional[int]:
        """Block of the receipt matching a transaction, None if not mined."""
        for receipt in self.receipts:
            if receipt.transaction_hash == tx_hash:
                try:
                    return parse_hex_block_number(receipt.block_number)
                except ValidationError:
                    return None
        return None


@dataclass(frozen=True)
class BroadcastFile:
    """Discovered broadcast file with metadata."""

    path: Path
    chain_id: int
    script_name: str


class BroadcastParser(ABC):
    """Capability for turning deploy-tool output into deployment facts."""

    @abstractmethod
    def parse(self, script_path: str, chain_id: int) -> BroadcastOutput:
        """Parse the broadcast output for a given script and chain ID."""

    @abstractmethod
    def extract_deployments(self, broadcast: BroadcastOutput) -> List[ParsedDeployment]:
        """Extract deployment records from a broadcast output."""


class ForgeBroadcastParser(BroadcastParser):
    """Broadcast parser for forge script outputs."""

    def __init__(self, broadcast_dir: Union[Path, str], artifact_loader: ArtifactLoader):
        self.broadcast_dir = Path(broadcast_dir)
        self.artifact_loader = artifact_loader

    @classmethod
    def from_project(
        cls, project_root: Optional[Union[Path, str]] = None
    ) -> "ForgeBroadcastParser":
        paths = get_project_paths(project_root)
        return cls(paths.broadcast_dir, FileSystemArtifactLoader(paths.out_dir, paths.src_dir))

    def broadcast_path(self, script_path: str, chain_id: int) -> Path:
        # "script/Deploy.s.sol:Deploy" -> "Deploy.s.sol"
        script_file = script_path.split(":", 1)[0]
        script_name = Path(script_file).name
        if not script_name:
            raise ValidationError(f"Invalid script path: '{script_path}'")
        return self.broadcast_dir / script_name / str(chain_id) / BROADCAST_FILE_NAME

    def parse(self, script_path: str, chain_id: int) -> BroadcastOutput:
        """
        Locate and parse a script's run-latest.json for one chain.

        Args:
            script_path: Script reference, optionally with ``:ContractName``
            chain_id: Chain the script was broadcast to

        Raises:
            BroadcastNotFoundError: If the script was never broadcast there
            ValidationError: If the file is not a valid broadcast output
        """
        path = self.broadcast_path(script_path, chain_id)
        if not path.is_file():
            raise BroadcastNotFoundError(
                f"Could not find broadcast output at {path}. "
                "Make sure the script was run with --broadcast."
            )
        return load_broadcast_file(path)

    def extract_deployments(self, broadcast: BroadcastOutput) -> List[ParsedDeployment]:
        deployments, _ = self.extract_deployments_with_errors(broadcast)
        return deployments

    def extract_deployments_with_errors(
        self, broadcast: BroadcastOutput
    ) -> Tuple[List[ParsedDeployment], List[Tuple[BroadcastTransaction, SmolderError]]]:
        """
        Extract deployments, collecting per-transaction failures.

        Calls and creations without a name or address are skipped silently;
        a creation whose artifact cannot be loaded is recorded as a failure
        and does not stop the rest of the batch.

        Returns:
            Tuple of (deployments, failures)
        """
        deployments: List[ParsedDeployment] = []
        failures: List[Tuple[BroadcastTransaction, SmolderError]] = []

        for tx in broadcast.transactions:
            if not (tx.is_create() and tx.has_deployment_info()):
                continue
            try:
                deployments.append(self._extract_single_deployment(tx, broadcast))
            except SmolderError as e:
                logger.warning(
                    "Skipping %s (tx %s): %s", tx.contract_name, tx.hash, e
                )
                failures.append((tx, e))

        return deployments, failures

    def _extract_single_deployment(
        self, tx: BroadcastTransaction, broadcast: BroadcastOutput
    ) -> ParsedDeployment:
        contract_name = tx.contract_name
        artifact = self.artifact_loader.load(contract_name)

        constructor_args = None
        if tx.arguments is not None:
            constructor_args = json.dumps(tx.arguments)

        return ParsedDeployment(
            contract_name=contract_name,
            address=tx.contract_address,
            deployer=tx.sender,
            tx_hash=tx.hash,
            block_number=broadcast.block_number_for(tx.hash),
            constructor_args=constructor_args,
            abi=json.dumps(artifact.abi),
            bytecode_hash=compute_bytecode_hash(artifact.bytecode),
            source_path=f"src/{contract_name}.sol:{contract_name}",
        )


def load_broadcast_file(file_path: Union[Path, str]) -> BroadcastOutput:
    """
    Parse a broadcast file by path.

    Raises:
        BroadcastNotFoundError: If the file does not exist
        ValidationError: If the file is not a valid broadcast output
    """
    try:
        with open(file_path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise BroadcastNotFoundError(f"Broadcast file not found: {file_path}") from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"Malformed broadcast file {file_path}: {e}") from e

    return BroadcastOutput.from_dict(data)


def scan_broadcast_directory(broadcast_dir: Union[Path, str]) -> List[BroadcastFile]:
    """
    Find every ``<script>/<chainId>/run-latest.json`` under a broadcast dir.

    Chain directories that are not numeric are ignored.

    Returns:
        Broadcast files sorted by script name then chain id
    """
    broadcast_dir = Path(broadcast_dir)
    if not broadcast_dir.is_dir():
        return []

    files: List[BroadcastFile] = []
    for script_dir in broadcast_dir.iterdir():
        if not script_dir.is_dir():
            continue
        for chain_dir in script_dir.iterdir():
            if not chain_dir.is_dir() or not chain_dir.name.isdigit():
                continue
            run_latest = chain_dir / BROADCAST_FILE_NAME
            if run_latest.is_file():
                files.append(
                    BroadcastFile(
                        path=run_latest,
                        chain_id=int(chain_dir.name),
                        script_name=script_dir.name,
                    )
                )

    files.sort(key=lambda f: (f.script_name, f.chain_id))
    return files
