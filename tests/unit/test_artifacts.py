"""Unit tests for the filesystem artifact loader."""

from pathlib import Path

import pytest

from smolder.artifacts import ContractArtifact, FileSystemArtifactLoader
from smolder.exceptions import ArtifactNotFoundError, IoError, ValidationError


@pytest.fixture
def loader(forge_project: Path) -> FileSystemArtifactLoader:
    return FileSystemArtifactLoader.from_project(forge_project)


class TestContractArtifact:
    """Test reading artifact JSON objects."""

    def test_forge_layout(self, token_artifact_json):
        """Test that nested bytecode objects are unwrapped."""
        artifact = ContractArtifact.from_dict(token_artifact_json)

        assert artifact.bytecode == token_artifact_json["bytecode"]["object"]
        assert artifact.deployed_bytecode == token_artifact_json["deployedBytecode"]["object"]
        assert artifact.has_bytecode

    def test_plain_string_bytecode(self):
        """Test that bytecode stored as a plain string is accepted."""
        artifact = ContractArtifact.from_dict({"abi": [], "bytecode": "0x6080"})

        assert artifact.bytecode == "0x6080"
        assert artifact.deployed_bytecode is None

    def test_missing_abi(self):
        """Test that artifacts without abi raise KeyError."""
        with pytest.raises(KeyError):
            ContractArtifact.from_dict({"bytecode": "0x6080"})


class TestList:
    """Test enumeration of deployable artifacts."""

    def test_lists_project_contracts_only(self, loader):
        """Test that interfaces, libraries, metadata and build-info are skipped."""
        artifacts = loader.list()

        assert [a.name for a in artifacts] == ["Token"]

    def test_annotates_constructor(self, loader):
        """Test that each item records whether its constructor takes args."""
        (token,) = loader.list()

        assert token.source_path == "Token.sol"
        assert token.has_constructor
        assert token.has_bytecode

    def test_finds_sources_in_subdirectories(self, forge_project: Path, token_artifact_json, loader):
        """Test that sources nested under src/ count as project sources."""
        nested = forge_project / "src" / "tokens" / "Coin.sol"
        nested.parent.mkdir(parents=True)
        nested.write_text("contract Coin {}\n")
        out_file = forge_project / "out" / "Coin.sol" / "Coin.json"
        out_file.parent.mkdir(parents=True)
        out_file.write_text('{"abi": [], "bytecode": {"object": "0x6080"}}')

        assert [a.name for a in loader.list()] == ["Coin", "Token"]

    def test_skips_unreadable_artifacts(self, forge_project: Path, loader):
        """Test that malformed JSON files are skipped, not fatal."""
        (forge_project / "out" / "Token.sol" / "Broken.json").write_text("{ nope")
        assert [a.name for a in loader.list()] == ["Token"]

    def test_missing_out_dir(self, tmp_path: Path):
        """Test that a project that was never built lists nothing."""
        loader = FileSystemArtifactLoader(tmp_path / "out", tmp_path / "src")
        assert loader.list() == []


class TestLoad:
    """Test loading artifacts by name."""

    def test_loads_from_sol_directory(self, loader, token_artifact_json):
        """Test the out/<Name>.sol/<Name>.json location."""
        assert loader.load("Token").abi == token_artifact_json["abi"]

    def test_loads_from_plain_directory(self, tmp_path: Path):
        """Test the out/<Name>/<Name>.json fallback location."""
        path = tmp_path / "out" / "Lib" / "Lib.json"
        path.parent.mkdir(parents=True)
        path.write_text('{"abi": [], "bytecode": {"object": "0x60"}}')

        loader = FileSystemArtifactLoader(tmp_path / "out", tmp_path / "src")
        assert loader.load("Lib").bytecode == "0x60"

    def test_missing_artifact(self, loader):
        """Test that an unknown name raises ArtifactNotFoundError."""
        with pytest.raises(ArtifactNotFoundError, match="forge build"):
            loader.load("Missing")

    def test_malformed_artifact(self, forge_project: Path, loader):
        """Test that invalid JSON raises IoError."""
        (forge_project / "out" / "Token.sol" / "Token.json").write_text("{ nope")

        with pytest.raises(IoError):
            loader.load("Token")

    def test_artifact_missing_fields(self, forge_project: Path, loader):
        """Test that JSON without abi/bytecode raises IoError."""
        (forge_project / "out" / "Token.sol" / "Token.json").write_text('{"abi": []}')

        with pytest.raises(IoError, match="missing"):
            loader.load("Token")


class TestDetailsAndBytecode:
    """Test get_details() and get_bytecode()."""

    def test_get_details(self, loader):
        """Test that details carry ABI, constructor and source path."""
        details = loader.get_details("Token")

        assert details.name == "Token"
        assert details.source_path == "Token.sol"
        assert details.has_bytecode
        assert [p.type for p in details.constructor.inputs] == ["string", "uint256"]

    def test_get_bytecode_strips_prefix(self, loader, token_artifact_json):
        """Test that init bytecode is returned without prefix."""
        expected = token_artifact_json["bytecode"]["object"][2:]
        assert loader.get_bytecode("Token") == expected

    def test_get_bytecode_of_interface(self, loader):
        """Test that interfaces have no deployable bytecode."""
        with pytest.raises(ValidationError, match="interface or abstract"):
            loader.get_bytecode("IToken")
