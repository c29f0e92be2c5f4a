"""Shared pytest fixtures for smolder tests."""

import json
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pytest

from smolder.abi import Abi
from smolder.artifacts import ArtifactDetails, ArtifactInfo, ArtifactLoader, ContractArtifact
from smolder.db import Database
from smolder.deployments import DeploymentRegistry
from smolder.exceptions import ArtifactNotFoundError
from smolder.types import Network, NewNetwork

DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TOKEN_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SECOND_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
TESTNET_RPC = "http://testnet-rpc.example.com"


class StubArtifactLoader(ArtifactLoader):
    """In-memory ArtifactLoader for tests that do not need a forge project."""

    def __init__(self, artifacts: Dict[str, ContractArtifact]):
        self.artifacts = artifacts

    def list(self) -> List[ArtifactInfo]:
        return [
            ArtifactInfo(
                name=name,
                source_path=f"{name}.sol",
                has_constructor=Abi.from_value(a.abi).has_constructor_with_args(),
                has_bytecode=a.has_bytecode,
            )
            for name, a in sorted(self.artifacts.items())
        ]

    def get_details(self, name: str) -> ArtifactDetails:
        artifact = self.load(name)
        return ArtifactDetails(
            name=name,
            source_path=f"{name}.sol",
            abi=artifact.abi,
            constructor=Abi.from_value(artifact.abi).constructor(),
            has_bytecode=artifact.has_bytecode,
        )

    def get_bytecode(self, name: str) -> str:
        return self.load(name).bytecode.removeprefix("0x")

    def load(self, name: str) -> ContractArtifact:
        if name not in self.artifacts:
            raise ArtifactNotFoundError(f"Could not find artifact for contract '{name}'")
        return self.artifacts[name]


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def token_artifact_json(fixtures_dir: Path) -> Dict[str, Any]:
    """Load and return the forge artifact of the Token contract."""
    with open(fixtures_dir / "Token.json") as f:
        return json.load(f)


@pytest.fixture
def token_abi(token_artifact_json: Dict[str, Any]) -> List[Dict[str, Any]]:
    return token_artifact_json["abi"]


@pytest.fixture
def abi(token_abi: List[Dict[str, Any]]) -> Abi:
    """Parsed Token ABI."""
    return Abi.from_value(token_abi)


@pytest.fixture
def broadcast_json(fixtures_dir: Path) -> Dict[str, Any]:
    """Load and return the sample run-latest.json fixture."""
    with open(fixtures_dir / "run-latest.json") as f:
        return json.load(f)


@pytest.fixture
def stub_loader(token_artifact_json: Dict[str, Any]) -> StubArtifactLoader:
    """Artifact loader that only knows the Token contract."""
    return StubArtifactLoader({"Token": ContractArtifact.from_dict(token_artifact_json)})


@pytest.fixture
def forge_project(
    tmp_path: Path, token_artifact_json: Dict[str, Any], broadcast_json: Dict[str, Any]
) -> Path:
    """
    Create a minimal Foundry project on disk.

    Layout:
        foundry.toml            testnet endpoint from ${TESTNET_RPC_URL}
        src/Token.sol
        src/interfaces/IToken.sol
        out/Token.sol/Token.json (+ Token.metadata.json)
        out/IToken.sol/IToken.json      interface, no bytecode
        out/Ownable.sol/Ownable.json    library dependency, no source
        out/build-info/abc.json
        broadcast/Deploy.s.sol/31337/run-latest.json
        broadcast/Deploy.s.sol/dry-run/run-latest.json
    """
    root = tmp_path / "project"

    (root / "src" / "interfaces").mkdir(parents=True)
    (root / "src" / "Token.sol").write_text("contract Token {}\n")
    (root / "src" / "interfaces" / "IToken.sol").write_text("interface IToken {}\n")

    out = root / "out"
    _write_json(out / "Token.sol" / "Token.json", token_artifact_json)
    _write_json(out / "Token.sol" / "Token.metadata.json", {"compiler": {"version": "0.8.24"}})
    _write_json(
        out / "IToken.sol" / "IToken.json",
        {"abi": [], "bytecode": {"object": "0x"}, "deployedBytecode": {"object": "0x"}},
    )
    _write_json(out / "Ownable.sol" / "Ownable.json", token_artifact_json)
    _write_json(out / "build-info" / "abc.json", {"id": "abc"})

    broadcast = root / "broadcast" / "Deploy.s.sol"
    _write_json(broadcast / "31337" / "run-latest.json", broadcast_json)
    _write_json(broadcast / "dry-run" / "run-latest.json", broadcast_json)

    (root / "foundry.toml").write_text(
        "[profile.default]\n"
        'src = "src"\n'
        'out = "out"\n'
        "\n"
        "[rpc_endpoints]\n"
        'testnet = "${TESTNET_RPC_URL}"\n'
        "\n"
        "[etherscan]\n"
        'testnet = { key = "abc", url = "https://testnet.example.com/api" }\n'
    )
    return root


@pytest.fixture
def database() -> Iterator[Database]:
    """In-memory registry database with the schema created."""
    db = Database("sqlite://")
    db.init_schema()
    yield db
    db.dispose()


@pytest.fixture
def registry(database: Database) -> DeploymentRegistry:
    return DeploymentRegistry(database)


@pytest.fixture
def testnet(registry: DeploymentRegistry) -> Network:
    """A registered local testnet network."""
    return registry.upsert_network(
        NewNetwork(name="testnet", chain_id=31337, rpc_url=TESTNET_RPC)
    )


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
