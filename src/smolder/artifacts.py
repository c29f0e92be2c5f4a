"""Compiled artifact loading for smolder.

Artifacts are forge build output: ``out/<Source>.sol/<Contract>.json`` with
``abi``, ``bytecode.object`` and ``deployedBytecode.object``.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .abi import Abi, ConstructorInfo
from .bytecode import is_valid_bytecode, strip_hex_prefix
from .constants import BUILD_INFO_DIR_NAME, METADATA_SUFFIX
from .exceptions import AbiParseError, ArtifactNotFoundError, IoError, ValidationError
from .paths import get_project_paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractArtifact:
    """Interface description plus init and runtime bytecode."""

    abi: List[Dict[str, Any]]
    bytecode: str
    deployed_bytecode: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractArtifact":
        """
        Build from a forge artifact JSON object.

        Raises:
            KeyError: If abi or bytecode is missing
        """
        deployed = data.get("deployedBytecode")
        return cls(
            abi=data["abi"],
            bytecode=_bytecode_object(data["bytecode"]),
            deployed_bytecode=_bytecode_object(deployed) if deployed is not None else None,
        )

    @property
    def has_bytecode(self) -> bool:
        return is_valid_bytecode(self.bytecode)


@dataclass(frozen=True)
class ArtifactInfo:
    """Summary entry produced when enumerating deployable artifacts."""

    name: str
    source_path: str
    has_constructor: bool
    has_bytecode: bool


@dataclass(frozen=True)
class ArtifactDetails:
    """Everything a deploy form needs about one artifact."""

    name: str
    source_path: str
    abi: List[Dict[str, Any]]
    constructor: Optional[ConstructorInfo]
    has_bytecode: bool


class ArtifactLoader(ABC):
    """Capability for loading contract artifacts from some source."""

    @abstractmethod
    def list(self) -> List[ArtifactInfo]:
        """List all deployable artifacts, sorted by name."""

    @abstractmethod
    def get_details(self, name: str) -> ArtifactDetails:
        """Get detailed information about a specific artifact."""

    @abstractmethod
    def get_bytecode(self, name: str) -> str:
        """Get init bytecode (no prefix) for a specific artifact."""

    @abstractmethod
    def load(self, name: str) -> ContractArtifact:
        """Load the raw contract artifact."""


class FileSystemArtifactLoader(ArtifactLoader):
    """Artifact loader that reads forge build output from disk."""

    def __init__(self, out_dir: Union[Path, str], src_dir: Union[Path, str]):
        self.out_dir = Path(out_dir)
        self.src_dir = Path(src_dir)

    @classmethod
    def from_project(
        cls, project_root: Optional[Union[Path, str]] = None
    ) -> "FileSystemArtifactLoader":
        paths = get_project_paths(project_root)
        return cls(paths.out_dir, paths.src_dir)

    def list(self) -> List[ArtifactInfo]:
        if not self.out_dir.is_dir():
            return []

        artifacts: List[ArtifactInfo] = []
        for source_dir in self.out_dir.iterdir():
            if not source_dir.is_dir():
                continue

            dir_name = source_dir.name
            # Build metadata, not contracts
            if dir_name.startswith(".") or dir_name == BUILD_INFO_DIR_NAME:
                continue
            # Library dependencies have no source under the project's src/
            if not self._source_exists(dir_name):
                continue

            for json_path in source_dir.glob("*.json"):
                contract_name = json_path.stem
                if contract_name.endswith(METADATA_SUFFIX):
                    continue

                try:
                    artifact = _read_artifact(json_path)
                except (IoError, KeyError, TypeError):
                    logger.debug("Skipping unreadable artifact %s", json_path)
                    continue

                # Interfaces and abstract contracts cannot be deployed
                if not artifact.has_bytecode:
                    continue

                artifacts.append(
                    ArtifactInfo(
                        name=contract_name,
                        source_path=dir_name,
                        has_constructor=_has_constructor_with_args(artifact),
                        has_bytecode=True,
                    )
                )

        artifacts.sort(key=lambda a: a.name)
        return artifacts

    def get_details(self, name: str) -> ArtifactDetails:
        artifact = self.load(name)
        try:
            constructor = Abi.from_value(artifact.abi).constructor()
        except AbiParseError:
            constructor = None

        return ArtifactDetails(
            name=name,
            source_path=self._find_source_path(name) or f"{name}.sol",
            abi=artifact.abi,
            constructor=constructor,
            has_bytecode=artifact.has_bytecode,
        )

    def get_bytecode(self, name: str) -> str:
        artifact = self.load(name)
        bytecode = strip_hex_prefix(artifact.bytecode)
        if not artifact.has_bytecode:
            raise ValidationError(
                f"Artifact '{name}' has no bytecode (may be an interface or abstract contract)"
            )
        return bytecode

    def load(self, name: str) -> ContractArtifact:
        """
        Load an artifact by contract name.

        Tries ``out/<name>.sol/<name>.json`` then ``out/<name>/<name>.json``.

        Raises:
            ArtifactNotFoundError: If no candidate file exists
            IoError: If the file is not a valid artifact
        """
        candidates = [
            self.out_dir / f"{name}.sol" / f"{name}.json",
            self.out_dir / name / f"{name}.json",
        ]
        for path in candidates:
            if path.is_file():
                try:
                    return _read_artifact(path)
                except (KeyError, TypeError) as e:
                    raise IoError(f"Malformed artifact {path}: missing {e}") from e

        raise ArtifactNotFoundError(
            f"Could not find artifact for contract '{name}'. Make sure `forge build` was run."
        )

    def _source_exists(self, filename: str) -> bool:
        if not self.src_dir.is_dir():
            return False
        return any(p.is_file() for p in self.src_dir.rglob(filename))

    def _find_source_path(self, name: str) -> Optional[str]:
        if not self.out_dir.is_dir():
            return None
        for source_dir in sorted(self.out_dir.iterdir()):
            if source_dir.is_dir() and (source_dir / f"{name}.json").is_file():
                return source_dir.name
        return None


def _read_artifact(path: Path) -> ContractArtifact:
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise IoError(f"Could not read artifact {path}: {e}") from e
    return ContractArtifact.from_dict(data)


def _bytecode_object(value: Any) -> str:
    # Forge nests the hex under "object"; hardhat stores the string directly
    if isinstance(value, dict):
        return value.get("object") or ""
    if isinstance(value, str):
        return value
    raise TypeError("bytecode")


def _has_constructor_with_args(artifact: ContractArtifact) -> bool:
    try:
        return Abi.from_value(artifact.abi).has_constructor_with_args()
    except AbiParseError:
        return False
