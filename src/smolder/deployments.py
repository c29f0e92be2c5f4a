"""Main API for smolder: the deployment registry."""

import logging
from typing import List, Optional

from sqlalchemy import Select, exists, func, select, update

from .db import (
    CallHistoryRecord,
    ContractRecord,
    Database,
    DeploymentRecord,
    NetworkRecord,
    utcnow,
)
from .exceptions import DeploymentNotFoundError, ValidationError
from .types import (
    CallHistory,
    CallHistoryId,
    CallHistoryUpdate,
    CallType,
    ChainId,
    Contract,
    ContractId,
    Deployment,
    DeploymentFilter,
    DeploymentId,
    DeploymentView,
    Network,
    NetworkId,
    NewCallHistory,
    NewContract,
    NewDeployment,
    NewNetwork,
    ParsedDeployment,
    TransactionStatus,
    WalletId,
)

logger = logging.getLogger(__name__)

_OUTCOME_FIELDS = ("result", "tx_hash", "block_number", "gas_used", "gas_price", "error_message")


class DeploymentRegistry:
    """
    Tracks networks, contracts and versioned deployments.

    For every (contract, network) pair at most one deployment is current.
    Each create() demotes the previous current row and inserts the new one
    with version = previous max + 1, in a single transaction.
    """

    def __init__(self, database: Optional[Database] = None):
        """
        Initialize the registry.

        Args:
            database: Storage to use
                      If None, opens the database named by SMOLDER_DATABASE_URL
                      or ./.smolder/smolder.db
        """
        self.database = database if database is not None else Database()

    # Networks

    def upsert_network(self, network: NewNetwork) -> Network:
        """
        Create a network or update its chain id and URLs, keyed by name.

        Returns:
            The persisted network
        """
        with self.database.session() as session:
            record = session.scalar(
                select(NetworkRecord).where(NetworkRecord.name == network.name)
            )
            if record is None:
                record = NetworkRecord(name=network.name)
                session.add(record)
            record.chain_id = network.chain_id
            record.rpc_url = network.rpc_url
            record.explorer_url = network.explorer_url
            session.flush()
            return _to_network(record)

    def get_network(self, name: str) -> Optional[Network]:
        with self.database.session() as session:
            record = session.scalar(select(NetworkRecord).where(NetworkRecord.name == name))
            return _to_network(record) if record is not None else None

    def get_network_by_id(self, network_id: NetworkId) -> Optional[Network]:
        with self.database.session() as session:
            record = session.get(NetworkRecord, network_id)
            return _to_network(record) if record is not None else None

    def get_network_by_chain_id(self, chain_id: int) -> Optional[Network]:
        with self.database.session() as session:
            record = session.scalar(
                select(NetworkRecord)
                .where(NetworkRecord.chain_id == chain_id)
                .order_by(NetworkRecord.name)
                .limit(1)
            )
            return _to_network(record) if record is not None else None

    def list_networks(self) -> List[Network]:
        with self.database.session() as session:
            records = session.scalars(select(NetworkRecord).order_by(NetworkRecord.name))
            return [_to_network(r) for r in records]

    # Contracts

    def upsert_contract(self, contract: NewContract) -> Contract:
        """
        Create a contract or refresh its source path and ABI.

        Identity is (name, bytecode_hash): the same name with different
        bytecode is a different contract.
        """
        with self.database.session() as session:
            record = session.scalar(
                select(ContractRecord).where(
                    ContractRecord.name == contract.name,
                    ContractRecord.bytecode_hash == contract.bytecode_hash,
                )
            )
            if record is None:
                record = ContractRecord(name=contract.name, bytecode_hash=contract.bytecode_hash)
                session.add(record)
            record.source_path = contract.source_path
            record.abi = contract.abi
            session.flush()
            return _to_contract(record)

    def get_contract(self, name: str) -> Optional[Contract]:
        """Get the most recently registered contract with this name."""
        with self.database.session() as session:
            record = session.scalar(
                select(ContractRecord)
                .where(ContractRecord.name == name)
                .order_by(ContractRecord.created_at.desc(), ContractRecord.id.desc())
                .limit(1)
            )
            return _to_contract(record) if record is not None else None

    def get_contract_by_id(self, contract_id: ContractId) -> Optional[Contract]:
        with self.database.session() as session:
            record = session.get(ContractRecord, contract_id)
            return _to_contract(record) if record is not None else None

    def list_contracts(self) -> List[Contract]:
        with self.database.session() as session:
            records = session.scalars(
                select(ContractRecord).order_by(ContractRecord.name, ContractRecord.id)
            )
            return [_to_contract(r) for r in records]

    # Deployments

    def create(self, deployment: NewDeployment) -> Deployment:
        """
        Register a new deployment as the current one for its pair.

        Args:
            deployment: Deployment facts; contract and network must exist

        Returns:
            The persisted deployment with its id and version

        Raises:
            StorageError: If a reference is invalid, the tx hash or address
                is already registered, or a concurrent create won the race
        """
        pair = (
            DeploymentRecord.contract_id == deployment.contract_id,
            DeploymentRecord.network_id == deployment.network_id,
        )
        with self.database.session() as session:
            # Demote first so the partial unique index never sees two current rows
            session.execute(
                update(DeploymentRecord)
                .where(*pair, DeploymentRecord.is_current.is_(True))
                .values(is_current=False)
            )
            max_version = session.scalar(select(func.max(DeploymentRecord.version)).where(*pair))

            record = DeploymentRecord(
                contract_id=deployment.contract_id,
                network_id=deployment.network_id,
                address=deployment.address,
                deployer=deployment.deployer,
                tx_hash=deployment.tx_hash,
                block_number=deployment.block_number,
                constructor_args=deployment.constructor_args,
                version=(max_version or 0) + 1,
                is_current=True,
            )
            session.add(record)
            session.flush()
            return _to_deployment(record)

    def get_current(self, contract_name: str, network_name: str) -> Optional[Deployment]:
        """
        Get the current deployment of a contract on a network.

        When several contract rows share the name (different bytecode), the
        most recently deployed current row wins.
        """
        with self.database.session() as session:
            record = session.scalar(
                select(DeploymentRecord)
                .join(ContractRecord, DeploymentRecord.contract_id == ContractRecord.id)
                .join(NetworkRecord, DeploymentRecord.network_id == NetworkRecord.id)
                .where(
                    ContractRecord.name == contract_name,
                    NetworkRecord.name == network_name,
                    DeploymentRecord.is_current.is_(True),
                )
                .order_by(DeploymentRecord.deployed_at.desc(), DeploymentRecord.id.desc())
                .limit(1)
            )
            return _to_deployment(record) if record is not None else None

    def get_by_id(self, deployment_id: DeploymentId) -> Optional[Deployment]:
        with self.database.session() as session:
            record = session.get(DeploymentRecord, deployment_id)
            return _to_deployment(record) if record is not None else None

    def get_view_by_id(self, deployment_id: DeploymentId) -> Optional[DeploymentView]:
        """Get a deployment joined with contract name, network and ABI."""
        with self.database.session() as session:
            row = session.execute(
                _view_query().where(DeploymentRecord.id == deployment_id)
            ).first()
            return _to_view(row) if row is not None else None

    def require_view(self, deployment_id: DeploymentId) -> DeploymentView:
        """
        Like get_view_by_id() but the deployment must exist.

        Raises:
            DeploymentNotFoundError: If no deployment has this id
        """
        view = self.get_view_by_id(deployment_id)
        if view is None:
            raise DeploymentNotFoundError(f"Deployment with id {deployment_id} not found")
        return view

    def list(self, filter: Optional[DeploymentFilter] = None) -> List[DeploymentView]:
        """
        List deployments.

        Args:
            filter: Current rows only (default) or all versions, optionally
                    restricted to one network

        Returns:
            Views ordered by network then contract name, and by version
            descending when all versions are listed
        """
        if filter is None:
            filter = DeploymentFilter.current()

        query = _view_query()
        if filter.network is not None:
            query = query.where(NetworkRecord.name == filter.network)

        if filter.current_only:
            query = query.where(DeploymentRecord.is_current.is_(True)).order_by(
                NetworkRecord.name, ContractRecord.name
            )
        else:
            query = query.order_by(
                NetworkRecord.name, ContractRecord.name, DeploymentRecord.version.desc()
            )

        with self.database.session() as session:
            return [_to_view(row) for row in session.execute(query)]

    def list_for_export(self, network: Optional[str] = None) -> List[DeploymentView]:
        """Current deployments, optionally for a single network."""
        if network is None:
            return self.list(DeploymentFilter.current())
        return self.list(DeploymentFilter.for_network(network))

    def exists_by_tx_hash(self, tx_hash: str) -> bool:
        with self.database.session() as session:
            return bool(
                session.scalar(select(exists().where(DeploymentRecord.tx_hash == tx_hash)))
            )

    def record_parsed_deployment(
        self, network: Network, parsed: ParsedDeployment
    ) -> Deployment:
        """
        Register a deployment reconstructed from a broadcast file.

        The contract row is upserted from the parsed ABI and bytecode hash
        before the deployment is created.
        """
        contract = self.upsert_contract(
            NewContract(
                name=parsed.contract_name,
                source_path=parsed.source_path,
                abi=parsed.abi,
                bytecode_hash=parsed.bytecode_hash,
            )
        )
        deployment = self.create(
            NewDeployment(
                contract_id=contract.id,
                network_id=network.id,
                address=parsed.address,
                deployer=parsed.deployer,
                tx_hash=parsed.tx_hash,
                block_number=parsed.block_number,
                constructor_args=parsed.constructor_args,
            )
        )
        logger.debug(
            "Recorded %s v%d on %s at %s",
            contract.name,
            deployment.version,
            network.name,
            deployment.address,
        )
        return deployment

    # Call history

    def record_call(self, entry: NewCallHistory) -> CallHistory:
        """
        Record a call before it is executed.

        Raises:
            StorageError: If the deployment does not exist
        """
        with self.database.session() as session:
            record = CallHistoryRecord(
                deployment_id=entry.deployment_id,
                wallet_id=entry.wallet_id,
                function_name=entry.function_name,
                function_signature=entry.function_signature,
                input_params=entry.input_params,
                call_type=entry.call_type.value,
            )
            session.add(record)
            session.flush()
            return _to_call_history(record)

    def update_call(self, call_id: CallHistoryId, outcome: CallHistoryUpdate) -> CallHistory:
        """
        Store the outcome of a recorded call.

        Any status other than pending also stamps confirmed_at.

        Raises:
            ValidationError: If no call has this id
        """
        with self.database.session() as session:
            record = session.get(CallHistoryRecord, call_id)
            if record is None:
                raise ValidationError(f"Call history entry {call_id} not found")

            record.status = outcome.status.value
            for field in _OUTCOME_FIELDS:
                value = getattr(outcome, field)
                if value is not None:
                    setattr(record, field, value)
            if outcome.status is not TransactionStatus.PENDING:
                record.confirmed_at = utcnow()

            session.flush()
            return _to_call_history(record)

    def get_call(self, call_id: CallHistoryId) -> Optional[CallHistory]:
        with self.database.session() as session:
            record = session.get(CallHistoryRecord, call_id)
            return _to_call_history(record) if record is not None else None

    def list_call_history(
        self, deployment_id: Optional[DeploymentId] = None, limit: Optional[int] = None
    ) -> List[CallHistory]:
        """
        List recorded calls, newest first.

        Args:
            deployment_id: Only calls made against this deployment
            limit: Maximum number of entries
        """
        query = select(CallHistoryRecord).order_by(
            CallHistoryRecord.created_at.desc(), CallHistoryRecord.id.desc()
        )
        if deployment_id is not None:
            query = query.where(CallHistoryRecord.deployment_id == deployment_id)
        if limit is not None:
            query = query.limit(limit)

        with self.database.session() as session:
            return [_to_call_history(r) for r in session.scalars(query)]


def _view_query() -> Select:
    return (
        select(
            DeploymentRecord,
            ContractRecord.name,
            NetworkRecord.name,
            NetworkRecord.chain_id,
            ContractRecord.abi,
        )
        .join(ContractRecord, DeploymentRecord.contract_id == ContractRecord.id)
        .join(NetworkRecord, DeploymentRecord.network_id == NetworkRecord.id)
    )


def _to_network(record: NetworkRecord) -> Network:
    return Network(
        id=NetworkId(record.id),
        name=record.name,
        chain_id=ChainId(record.chain_id),
        rpc_url=record.rpc_url,
        explorer_url=record.explorer_url,
        created_at=record.created_at,
    )


def _to_contract(record: ContractRecord) -> Contract:
    return Contract(
        id=ContractId(record.id),
        name=record.name,
        source_path=record.source_path,
        abi=record.abi,
        bytecode_hash=record.bytecode_hash,
        created_at=record.created_at,
    )


def _to_deployment(record: DeploymentRecord) -> Deployment:
    return Deployment(
        id=DeploymentId(record.id),
        contract_id=ContractId(record.contract_id),
        network_id=NetworkId(record.network_id),
        address=record.address,
        deployer=record.deployer,
        tx_hash=record.tx_hash,
        block_number=record.block_number,
        constructor_args=record.constructor_args,
        version=record.version,
        is_current=record.is_current,
        deployed_at=record.deployed_at,
    )


def _to_view(row) -> DeploymentView:
    record, contract_name, network_name, chain_id, abi = row
    return DeploymentView(
        id=DeploymentId(record.id),
        contract_name=contract_name,
        network_name=network_name,
        chain_id=ChainId(chain_id),
        address=record.address,
        deployer=record.deployer,
        tx_hash=record.tx_hash,
        block_number=record.block_number,
        version=record.version,
        is_current=record.is_current,
        deployed_at=record.deployed_at,
        abi=abi,
    )


def _to_call_history(record: CallHistoryRecord) -> CallHistory:
    return CallHistory(
        id=CallHistoryId(record.id),
        deployment_id=DeploymentId(record.deployment_id),
        wallet_id=WalletId(record.wallet_id) if record.wallet_id is not None else None,
        function_name=record.function_name,
        function_signature=record.function_signature,
        input_params=record.input_params,
        call_type=CallType(record.call_type),
        result=record.result,
        tx_hash=record.tx_hash,
        block_number=record.block_number,
        gas_used=record.gas_used,
        gas_price=record.gas_price,
        status=TransactionStatus(record.status) if record.status is not None else None,
        error_message=record.error_message,
        created_at=record.created_at,
        confirmed_at=record.confirmed_at,
    )
