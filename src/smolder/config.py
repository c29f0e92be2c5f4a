"""foundry.toml and environment configuration for smolder."""

import os
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .constants import DATABASE_URL_ENV, FOUNDRY_CONFIG
from .exceptions import ConfigurationError, EnvVarNotSetError, NetworkNotFoundError
from .paths import get_database_path

_ENV_VAR_RE = re.compile(r"^\$\{([^}]+)\}$")


@dataclass(frozen=True)
class NetworkConfig:
    """An RPC endpoint declared in foundry.toml, env vars resolved."""

    name: str
    rpc_url: str
    explorer_url: Optional[str] = None


def resolve_env_var(value: str) -> str:
    """
    Resolve a ``${VAR}`` reference from the environment.

    Plain values are returned unchanged.

    Raises:
        EnvVarNotSetError: If the referenced variable is not set
    """
    match = _ENV_VAR_RE.match(value.strip())
    if not match:
        return value

    name = match.group(1)
    resolved = os.environ.get(name)
    if resolved is None:
        raise EnvVarNotSetError(name)
    return resolved


class FoundryConfig:
    """The ``[rpc_endpoints]`` and ``[etherscan]`` sections of foundry.toml."""

    def __init__(
        self,
        rpc_endpoints: Optional[Dict[str, Any]] = None,
        etherscan: Optional[Dict[str, Any]] = None,
        path: Optional[Path] = None,
    ):
        self.rpc_endpoints = rpc_endpoints or {}
        self.etherscan = etherscan or {}
        self.path = path

    @classmethod
    def load(cls, path: Optional[Union[Path, str]] = None) -> "FoundryConfig":
        """
        Load foundry.toml.

        Args:
            path: Path to foundry.toml (defaults to ./foundry.toml)

        Raises:
            ConfigurationError: If the file is missing or not valid TOML
        """
        config_path = Path(path) if path is not None else Path.cwd() / FOUNDRY_CONFIG
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"{FOUNDRY_CONFIG} not found at {config_path}. Is this a Foundry project?"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Failed to parse {config_path}: {e}") from e

        return cls(
            rpc_endpoints=data.get("rpc_endpoints"),
            etherscan=data.get("etherscan"),
            path=config_path,
        )

    def network_names(self) -> List[str]:
        return sorted(self.rpc_endpoints)

    def get_network(self, name: str) -> NetworkConfig:
        """
        Get the resolved endpoint configuration of a network.

        Raises:
            NetworkNotFoundError: If the network is not in [rpc_endpoints]
            EnvVarNotSetError: If the URL references an unset variable
            ConfigurationError: If the entry has no usable URL
        """
        if name not in self.rpc_endpoints:
            raise NetworkNotFoundError(f"Network '{name}' not found in [rpc_endpoints]")

        match self.rpc_endpoints[name]:
            case str(url):
                rpc_url = url
            case {"url": str(url)}:
                rpc_url = url
            case _:
                raise ConfigurationError(f"Invalid rpc_endpoints entry for '{name}'")

        explorer_url = None
        explorer = self.etherscan.get(name)
        if isinstance(explorer, dict) and isinstance(explorer.get("url"), str):
            explorer_url = resolve_env_var(explorer["url"])

        return NetworkConfig(
            name=name,
            rpc_url=resolve_env_var(rpc_url),
            explorer_url=explorer_url,
        )


def database_url_from_env() -> str:
    """SMOLDER_DATABASE_URL if set, else SQLite under ./.smolder."""
    url = os.environ.get(DATABASE_URL_ENV)
    if url:
        return url
    return f"sqlite:///{get_database_path()}"
