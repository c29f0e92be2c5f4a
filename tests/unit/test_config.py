"""Unit tests for foundry.toml and environment configuration."""

from pathlib import Path

import pytest

from smolder.config import FoundryConfig, NetworkConfig, database_url_from_env, resolve_env_var
from smolder.exceptions import ConfigurationError, EnvVarNotSetError, NetworkNotFoundError


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "foundry.toml"
    path.write_text(text)
    return path


class TestResolveEnvVar:
    """Test the resolve_env_var function."""

    def test_plain_value_unchanged(self):
        """Test that values without ${} are returned as-is."""
        assert resolve_env_var("http://localhost:8545") == "http://localhost:8545"

    def test_resolves_variable(self, monkeypatch):
        """Test that ${VAR} is read from the environment."""
        monkeypatch.setenv("SEPOLIA_RPC_URL", "https://sepolia.example.com")
        assert resolve_env_var("${SEPOLIA_RPC_URL}") == "https://sepolia.example.com"

    def test_unset_variable_raises(self, monkeypatch):
        """Test that an unset variable raises EnvVarNotSetError."""
        monkeypatch.delenv("SMOLDER_TEST_UNSET", raising=False)

        with pytest.raises(EnvVarNotSetError) as exc_info:
            resolve_env_var("${SMOLDER_TEST_UNSET}")

        assert exc_info.value.name == "SMOLDER_TEST_UNSET"
        assert exc_info.value.code == "ENV_VAR_NOT_SET"

    def test_env_var_error_is_configuration_error(self, monkeypatch):
        """Test that EnvVarNotSetError can be caught as ConfigurationError."""
        monkeypatch.delenv("SMOLDER_TEST_UNSET", raising=False)

        with pytest.raises(ConfigurationError):
            resolve_env_var("${SMOLDER_TEST_UNSET}")


class TestFoundryConfig:
    """Test loading foundry.toml."""

    def test_string_and_table_endpoints(self, tmp_path: Path):
        """Test that endpoints may be URL strings or {url = ...} tables."""
        path = write_config(
            tmp_path,
            "[rpc_endpoints]\n"
            'local = "http://localhost:8545"\n'
            'mainnet = { url = "https://eth.example.com" }\n',
        )
        config = FoundryConfig.load(path)

        assert config.network_names() == ["local", "mainnet"]
        assert config.get_network("local").rpc_url == "http://localhost:8545"
        assert config.get_network("mainnet").rpc_url == "https://eth.example.com"

    def test_explorer_url_from_etherscan(self, forge_project: Path, monkeypatch):
        """Test that [etherscan] url becomes the explorer URL."""
        monkeypatch.setenv("TESTNET_RPC_URL", "http://127.0.0.1:8545")
        config = FoundryConfig.load(forge_project / "foundry.toml")

        assert config.get_network("testnet") == NetworkConfig(
            name="testnet",
            rpc_url="http://127.0.0.1:8545",
            explorer_url="https://testnet.example.com/api",
        )

    def test_unset_env_var_in_endpoint(self, forge_project: Path, monkeypatch):
        """Test that an endpoint referencing an unset variable raises."""
        monkeypatch.delenv("TESTNET_RPC_URL", raising=False)
        config = FoundryConfig.load(forge_project / "foundry.toml")

        with pytest.raises(EnvVarNotSetError):
            config.get_network("testnet")

    def test_unknown_network(self, tmp_path: Path):
        """Test that an unknown network raises NetworkNotFoundError."""
        config = FoundryConfig.load(write_config(tmp_path, "[rpc_endpoints]\n"))

        with pytest.raises(NetworkNotFoundError):
            config.get_network("mainnet")

    def test_invalid_entry(self, tmp_path: Path):
        """Test that an endpoint without a URL raises ConfigurationError."""
        config = FoundryConfig.load(write_config(tmp_path, "[rpc_endpoints]\nbad = 42\n"))

        with pytest.raises(ConfigurationError, match="Invalid rpc_endpoints entry"):
            config.get_network("bad")

    def test_no_rpc_endpoints_section(self, tmp_path: Path):
        """Test that a config without endpoints has no networks."""
        config = FoundryConfig.load(write_config(tmp_path, '[profile.default]\nsrc = "src"\n'))
        assert config.network_names() == []

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing foundry.toml raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Foundry project"):
            FoundryConfig.load(tmp_path / "foundry.toml")

    def test_invalid_toml(self, tmp_path: Path):
        """Test that invalid TOML raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            FoundryConfig.load(write_config(tmp_path, "[rpc_endpoints\n"))

    def test_default_path_is_cwd(self, tmp_path: Path, monkeypatch):
        """Test that load() without a path reads ./foundry.toml."""
        write_config(tmp_path, '[rpc_endpoints]\nlocal = "http://localhost:8545"\n')
        monkeypatch.chdir(tmp_path)

        assert FoundryConfig.load().network_names() == ["local"]


class TestDatabaseUrlFromEnv:
    """Test the database_url_from_env function."""

    def test_env_override(self, monkeypatch):
        """Test that SMOLDER_DATABASE_URL wins."""
        monkeypatch.setenv("SMOLDER_DATABASE_URL", "postgresql://localhost/smolder")
        assert database_url_from_env() == "postgresql://localhost/smolder"

    def test_default_sqlite_in_data_dir(self, tmp_path: Path, monkeypatch):
        """Test the default SQLite file under ./.smolder."""
        monkeypatch.delenv("SMOLDER_DATABASE_URL", raising=False)
        monkeypatch.chdir(tmp_path)

        assert database_url_from_env() == f"sqlite:///{Path.cwd() / '.smolder' / 'smolder.db'}"
