"""
Agent8004 Contract Adapter

Chain-connection abstraction consumed by the discovery, feedback and
submission paths. Contracts are addressed by role name ("identity" or
"reputation"), never by raw address.

- ContractAdapter: async interface (call / get_logs / get_chain_id / send /
  wait_for_receipt)
- Web3ContractAdapter: EVM implementation on web3.py's AsyncWeb3
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from .exceptions import (
    ContractCallError,
    ContractFunctionNotFoundError,
    MissingContractAddressError,
    RPCError,
    TimeoutError,
    TransactionFailedError,
    UserRejectedError,
)
from .signer import Signer, is_user_rejection
from .utils import to_hex

logger = logging.getLogger("agent8004.adapter")

BlockIdentifier = Union[int, str]

IDENTITY_REGISTRY_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "ownerOf",
        "stateMutability": "view",
        "inputs": [{"name": "agentId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "tokenURI",
        "stateMutability": "view",
        "inputs": [{"name": "agentId", "type": "uint256"}],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function",
        "name": "totalAgents",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "count", "type": "uint256"}],
    },
]

REPUTATION_REGISTRY_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "getSummary",
        "stateMutability": "view",
        "inputs": [
            {"name": "agentId", "type": "uint256"},
            {"name": "clientAddresses", "type": "address[]"},
            {"name": "tag1", "type": "string"},
            {"name": "tag2", "type": "string"},
        ],
        "outputs": [
            {"name": "count", "type": "uint64"},
            {"name": "averageScore", "type": "uint8"},
        ],
    },
    {
        "type": "function",
        "name": "giveFeedback",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "agentId", "type": "uint256"},
            {"name": "score", "type": "uint8"},
            {"name": "tag1", "type": "string"},
            {"name": "tag2", "type": "string"},
            {"name": "endpoint", "type": "string"},
            {"name": "feedbackURI", "type": "string"},
            {"name": "feedbackHash", "type": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "NewFeedback",
        "anonymous": False,
        "inputs": [
            {"name": "agentId", "type": "uint256", "indexed": True},
            {"name": "clientAddress", "type": "address", "indexed": True},
            {"name": "score", "type": "uint8", "indexed": False},
            {"name": "tag1", "type": "bytes32", "indexed": True},
            {"name": "tag2", "type": "bytes32", "indexed": False},
            {"name": "fileuri", "type": "string", "indexed": False},
            {"name": "filehash", "type": "bytes32", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "FeedbackGiven",
        "anonymous": False,
        "inputs": [
            {"name": "agentId", "type": "uint256", "indexed": True},
            {"name": "rater", "type": "address", "indexed": True},
            {"name": "score", "type": "uint8", "indexed": False},
            {"name": "tag1", "type": "bytes32", "indexed": False},
            {"name": "tag2", "type": "bytes32", "indexed": False},
            {"name": "fileuri", "type": "string", "indexed": False},
        ],
    },
]


def _revert_reason(error: ContractLogicError) -> str:
    """
    Render a revert as "execution reverted: <detail>".

    Custom-error reverts (ContractCustomError) carry only the selector data,
    so the prefix is what lets the retry classifier see a revert.
    """
    detail = getattr(error, "message", None) or getattr(error, "data", None) or ""
    detail = str(detail)
    if detail.startswith("execution reverted"):
        return detail
    return f"execution reverted: {detail}" if detail else "execution reverted"


class ContractAdapter:
    """
    Contract Adapter Abstract Base Class.

    Defines the chain-connection capability used by this package.
    """

    async def call(self, contract: str, method: str, params: List[Any]) -> Any:
        """
        Call a contract read-only method.

        Args:
            contract: Contract role ("identity" or "reputation")
            method: Method name
            params: Positional arguments

        Returns:
            Decoded return value (a tuple for multiple outputs)
        """
        raise NotImplementedError

    async def get_logs(
        self,
        contract: str,
        event: str,
        argument_filters: Optional[Mapping[str, Any]] = None,
        from_block: BlockIdentifier = 0,
        to_block: BlockIdentifier = "latest",
    ) -> List[Mapping[str, Any]]:
        """
        Query decoded event logs.

        Returns:
            Entries carrying ``args``, ``event``, ``blockNumber`` and
            ``transactionHash``
        """
        raise NotImplementedError

    async def get_chain_id(self) -> int:
        raise NotImplementedError

    async def send(
        self, contract: str, method: str, params: List[Any], signer: Signer
    ) -> str:
        """
        Build, sign and broadcast a transaction.

        Returns:
            Transaction hash (0x-hex)
        """
        raise NotImplementedError

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> Mapping[str, Any]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class Web3ContractAdapter(ContractAdapter):
    """
    EVM contract adapter using web3.py's AsyncWeb3.

    Args:
        rpc_url: JSON-RPC endpoint
        identity_registry: Identity registry address
        reputation_registry: Reputation registry address
        identity_abi: Identity registry ABI
        reputation_abi: Reputation registry ABI
        request_timeout: HTTP timeout for JSON-RPC requests (seconds)

    Example:
        >>> adapter = Web3ContractAdapter(
        ...     rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        ...     identity_registry="0x7177...",
        ...     reputation_registry="0xB504...",
        ... )
        >>> owner = await adapter.call("identity", "ownerOf", [1])
    """

    def __init__(
        self,
        rpc_url: str,
        identity_registry: Optional[str],
        reputation_registry: Optional[str],
        identity_abi: Optional[List[Dict[str, Any]]] = None,
        reputation_abi: Optional[List[Dict[str, Any]]] = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.rpc_url = rpc_url
        self.identity_registry = identity_registry
        self.reputation_registry = reputation_registry
        self.identity_abi = identity_abi or IDENTITY_REGISTRY_ABI
        self.reputation_abi = reputation_abi or REPUTATION_REGISTRY_ABI
        self.request_timeout = request_timeout
        self._w3: Optional[AsyncWeb3] = None
        self._contracts: Dict[str, Any] = {}

    def _get_client(self) -> AsyncWeb3:
        """Get or create the AsyncWeb3 client."""
        if self._w3 is None:
            provider = AsyncWeb3.AsyncHTTPProvider(
                self.rpc_url,
                request_kwargs={"timeout": self.request_timeout},
            )
            self._w3 = AsyncWeb3(provider)
        return self._w3

    def _resolve_contract(self, contract: str) -> Any:
        """Resolve a role name to a web3 contract object."""
        if contract in self._contracts:
            return self._contracts[contract]

        if contract == "identity":
            address, abi = self.identity_registry, self.identity_abi
        elif contract == "reputation":
            address, abi = self.reputation_registry, self.reputation_abi
        else:
            address, abi = None, None

        if not address:
            raise MissingContractAddressError(contract)

        contract_ref = self._get_client().eth.contract(
            address=AsyncWeb3.to_checksum_address(address), abi=abi
        )
        self._contracts[contract] = contract_ref
        return contract_ref

    @staticmethod
    def _abi_entry(contract_ref: Any, kind: str, name: str) -> Dict[str, Any]:
        for item in contract_ref.abi:
            if item.get("type", "").lower() == kind and item.get("name") == name:
                return item
        raise ContractFunctionNotFoundError(str(contract_ref.address), name)

    def _pick_function(self, contract_ref: Any, method: str, params: List[Any]) -> Any:
        entry = self._abi_entry(contract_ref, "function", method)
        arity = len(entry.get("inputs", []))
        if arity != len(params):
            raise ContractFunctionNotFoundError(str(contract_ref.address), method, len(params))
        return getattr(contract_ref.functions, method)

    async def call(self, contract: str, method: str, params: List[Any]) -> Any:
        """Call contract read-only method."""
        contract_ref = self._resolve_contract(contract)
        function = self._pick_function(contract_ref, method, params)
        try:
            return await function(*params).call()
        except ContractLogicError as e:
            raise ContractCallError(contract, method, _revert_reason(e)) from e
        except Exception as e:
            raise ContractCallError(contract, method, str(e)) from e

    async def get_logs(
        self,
        contract: str,
        event: str,
        argument_filters: Optional[Mapping[str, Any]] = None,
        from_block: BlockIdentifier = 0,
        to_block: BlockIdentifier = "latest",
    ) -> List[Mapping[str, Any]]:
        contract_ref = self._resolve_contract(contract)
        self._abi_entry(contract_ref, "event", event)
        event_ref = getattr(contract_ref.events, event)
        logger.debug(
            "Querying %s.%s logs from %s to %s filters=%s",
            contract,
            event,
            from_block,
            to_block,
            argument_filters,
        )
        try:
            logs = await event_ref.get_logs(
                argument_filters=dict(argument_filters or {}),
                from_block=from_block,
                to_block=to_block,
            )
        except Exception as e:
            raise ContractCallError(contract, event, str(e)) from e
        return [dict(entry) for entry in logs]

    async def get_chain_id(self) -> int:
        try:
            return int(await self._get_client().eth.chain_id)
        except Exception as e:
            raise RPCError(str(e), rpc_url=self.rpc_url, method="eth_chainId") from e

    async def send(
        self, contract: str, method: str, params: List[Any], signer: Signer
    ) -> str:
        """
        Send contract transaction.

        Raises:
            UserRejectedError: The signer declined the request
            TransactionFailedError: The node refused the transaction
            ContractCallError: Building the transaction failed
        """
        w3 = self._get_client()
        contract_ref = self._resolve_contract(contract)
        function = self._pick_function(contract_ref, method, params)
        sender = signer.get_address()
        logger.debug(
            "Sending tx: contract=%s, method=%s, params_count=%d",
            contract,
            method,
            len(params),
        )

        try:
            nonce = await w3.eth.get_transaction_count(sender, "pending")
            chain_id = await w3.eth.chain_id
            tx = await function(*params).build_transaction(
                {"from": sender, "nonce": nonce, "chainId": chain_id}
            )
        except Exception as e:
            raise ContractCallError(contract, method, str(e)) from e

        try:
            signed = signer.sign_tx(tx)
            raw = getattr(signed, "raw_transaction", None)
            if raw is None:
                raw = signed.rawTransaction
            tx_hash = await w3.eth.send_raw_transaction(raw)
        except UserRejectedError:
            raise
        except Exception as e:
            if is_user_rejection(e):
                raise UserRejectedError(str(e)) from e
            raise TransactionFailedError(reason=str(e)) from e

        tx_id = to_hex(tx_hash)
        logger.info("Transaction sent: %s", tx_id)
        return tx_id

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> Mapping[str, Any]:
        try:
            receipt = await self._get_client().eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout
            )
        except TimeExhausted as e:
            raise TimeoutError("wait_for_receipt", timeout) from e
        return dict(receipt)

    async def close(self) -> None:
        if self._w3 is not None:
            disconnect = getattr(self._w3.provider, "disconnect", None)
            if disconnect is not None:
                await disconnect()
