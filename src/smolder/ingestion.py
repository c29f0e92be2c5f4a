"""Broadcast import pipeline for smolder."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .config import FoundryConfig, NetworkConfig
from .constants import FOUNDRY_CONFIG
from .deployments import DeploymentRegistry
from .exceptions import (
    BroadcastNotFoundError,
    ConfigurationError,
    RpcError,
    TransactionRevertedError,
    ValidationError,
)
from .parsers import BroadcastParser, ForgeBroadcastParser, load_broadcast_file, scan_broadcast_directory
from .paths import get_project_paths
from .rpc import get_chain_id
from .types import NewNetwork

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """Outcome of one import run."""

    imported: int = 0
    skipped: int = 0  # Already tracked by tx hash
    failed_files: List[Path] = field(default_factory=list)


def resolve_networks(
    config: FoundryConfig, chain_id_lookup: Callable[[str], int]
) -> Dict[int, NetworkConfig]:
    """
    Map chain ids to the configured networks that serve them.

    Args:
        config: Loaded foundry.toml
        chain_id_lookup: Function asking an RPC URL for its chain id

    Returns:
        Dictionary mapping chain_id -> NetworkConfig

    Raises:
        ConfigurationError: If no network could be resolved
    """
    networks: Dict[int, NetworkConfig] = {}

    for name in config.network_names():
        try:
            network = config.get_network(name)
        except ConfigurationError as e:
            # Covers unset ${VAR} references
            logger.warning("Skipping network %s: %s", name, e)
            continue

        try:
            chain_id = chain_id_lookup(network.rpc_url)
        except (RpcError, TransactionRevertedError) as e:
            logger.warning("Skipping network %s: could not get chain id: %s", name, e)
            continue

        # First name (alphabetically) wins when two endpoints share a chain
        if chain_id in networks:
            logger.debug(
                "Network %s shares chain %d with %s", name, chain_id, networks[chain_id].name
            )
            continue
        networks[chain_id] = network

    if not networks:
        raise ConfigurationError("No reachable networks found in [rpc_endpoints]")
    return networks


def import_broadcasts(
    registry: DeploymentRegistry,
    parser: BroadcastParser,
    broadcast_dir: Union[Path, str],
    networks: Dict[int, NetworkConfig],
) -> ImportSummary:
    """
    Import every broadcast file under a directory into the registry.

    Re-importing is idempotent: deployments whose tx hash is already
    tracked are skipped. A file that fails to parse is recorded and the
    import continues.

    Args:
        registry: Registry to record deployments in
        parser: Parser turning broadcast output into deployments
        broadcast_dir: Path to the project's broadcast/ directory
        networks: Chain id -> network, from resolve_networks()

    Returns:
        ImportSummary with counts and the files that failed
    """
    summary = ImportSummary()

    for broadcast_file in scan_broadcast_directory(broadcast_dir):
        network_config = networks.get(broadcast_file.chain_id)
        if network_config is None:
            logger.info(
                "Skipping %s: no configured network for chain %d",
                broadcast_file.path,
                broadcast_file.chain_id,
            )
            continue

        try:
            output = load_broadcast_file(broadcast_file.path)
        except (BroadcastNotFoundError, ValidationError) as e:
            logger.warning("Failed to parse %s: %s", broadcast_file.path, e)
            summary.failed_files.append(broadcast_file.path)
            continue

        parsed_deployments = parser.extract_deployments(output)
        if not parsed_deployments:
            continue

        network = registry.upsert_network(
            NewNetwork(
                name=network_config.name,
                chain_id=broadcast_file.chain_id,
                rpc_url=network_config.rpc_url,
                explorer_url=network_config.explorer_url,
            )
        )

        for parsed in parsed_deployments:
            if registry.exists_by_tx_hash(parsed.tx_hash):
                logger.debug("Already tracked: %s (%s)", parsed.contract_name, parsed.tx_hash)
                summary.skipped += 1
                continue

            deployment = registry.record_parsed_deployment(network, parsed)
            logger.info(
                "Imported %s v%d on %s at %s",
                parsed.contract_name,
                deployment.version,
                network.name,
                deployment.address,
            )
            summary.imported += 1

    return summary


def sync_project(
    registry: DeploymentRegistry,
    project_root: Optional[Union[Path, str]] = None,
    config: Optional[FoundryConfig] = None,
    chain_id_lookup: Callable[[str], int] = get_chain_id,
) -> ImportSummary:
    """
    Import all broadcasts of a Foundry project.

    Args:
        registry: Registry to record deployments in
        project_root: Foundry project root (defaults to the current directory)
        config: Pre-loaded configuration (defaults to <root>/foundry.toml)
        chain_id_lookup: Function asking an RPC URL for its chain id

    Returns:
        ImportSummary of the run
    """
    paths = get_project_paths(project_root)
    if config is None:
        config = FoundryConfig.load(paths.root / FOUNDRY_CONFIG)

    networks = resolve_networks(config, chain_id_lookup)
    parser = ForgeBroadcastParser.from_project(paths.root)
    summary = import_broadcasts(registry, parser, paths.broadcast_dir, networks)

    logger.info(
        "Sync complete: %d imported, %d already tracked, %d files failed",
        summary.imported,
        summary.skipped,
        len(summary.failed_files),
    )
    return summary
