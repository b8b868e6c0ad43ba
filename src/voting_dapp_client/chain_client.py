"""
Chain client for the voting and token contracts.

Reads go straight to the node through web3. Writes are built with web3 and
handed to the wallet provider as ``eth_sendTransaction`` so that the wallet
owning the connected account signs them.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from .abi import VOTING_ABI, ERC20_ABI, resolve_abi
from .config import VotingSettings
from .interfaces import IChainClient, IWalletProvider
from .types import (
    ContractName, NetworkDescriptor, TransactionResult, TransactionStatus,
    NotConnected, ProviderRpcError, ReadFailed, TimedOut, VotingClientError, WrongNetwork
)
from .utils import from_hex_chain_id, normalize_address

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """Best available human-readable reason for a failed call"""
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(error)
    return text or type(error).__name__


def build_transaction_result(receipt: Dict[str, Any]) -> TransactionResult:
    """Build TransactionResult from receipt"""
    status = TransactionStatus.CONFIRMED if receipt["status"] == 1 else TransactionStatus.FAILED
    return TransactionResult(
        transaction_hash=Web3.to_hex(receipt["transactionHash"]),
        block_number=receipt["blockNumber"],
        block_hash=Web3.to_hex(receipt["blockHash"]),
        gas_used=receipt["gasUsed"],
        status=status,
        from_address=receipt["from"],
        to_address=receipt.get("to"),
        logs=list(receipt.get("logs", [])),
    )


class TransactionHandle:
    """A broadcast transaction whose receipt can be awaited"""

    def __init__(self, tx_hash: str, w3: AsyncWeb3, default_timeout: float = 120.0,
                 poll_latency: float = 0.5):
        self.tx_hash = tx_hash
        self._w3 = w3
        self.default_timeout = default_timeout
        self.poll_latency = poll_latency

    async def wait(self, timeout: Optional[float] = None) -> TransactionResult:
        timeout = timeout or self.default_timeout
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                self.tx_hash, timeout=timeout, poll_latency=self.poll_latency
            )
        except TimeExhausted:
            raise TimedOut(self.tx_hash, timeout)
        return build_transaction_result(receipt)

    def __repr__(self) -> str:
        return f"TransactionHandle({self.tx_hash})"


class ChainClient(IChainClient):
    """Typed reads and writes against the voting and token contracts"""

    def __init__(self,
                 wallet: IWalletProvider,
                 voting_address: str,
                 token_address: str,
                 network: NetworkDescriptor,
                 w3: Optional[AsyncWeb3] = None,
                 voting_abi: Optional[List[Dict[str, Any]]] = None,
                 token_abi: Optional[List[Dict[str, Any]]] = None,
                 tx_timeout: float = 120.0,
                 poll_latency: float = 0.5):
        self.wallet = wallet
        self.network = network
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(network.rpc_url))
        self.tx_timeout = tx_timeout
        self.poll_latency = poll_latency
        self._addresses = {
            ContractName.VOTING: normalize_address(voting_address),
            ContractName.TOKEN: normalize_address(token_address),
        }
        self._abis = {
            ContractName.VOTING: voting_abi or VOTING_ABI,
            ContractName.TOKEN: token_abi or ERC20_ABI,
        }
        self._contracts: Dict[ContractName, Any] = {}
        self._account: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: VotingSettings, wallet: IWalletProvider,
                      w3: Optional[AsyncWeb3] = None) -> "ChainClient":
        return cls(
            wallet=wallet,
            voting_address=settings.voting_contract_address,
            token_address=settings.token_contract_address,
            network=settings.network_descriptor(),
            w3=w3,
            voting_abi=resolve_abi(settings.voting_artifact_path, VOTING_ABI),
            token_abi=resolve_abi(settings.token_artifact_path, ERC20_ABI),
            tx_timeout=settings.tx_timeout,
            poll_latency=settings.poll_latency,
        )

    @property
    def account(self) -> Optional[str]:
        return self._account

    def bind_account(self, account: Optional[str]) -> None:
        self._account = account

    def contract_address(self, contract: ContractName) -> str:
        return self._addresses[contract]

    async def chain_id(self) -> int:
        return from_hex_chain_id(await self.wallet.request("eth_chainId"))

    async def list_accounts(self) -> List[str]:
        return list(await self.wallet.request("eth_accounts") or [])

    async def connect(self) -> Tuple[Optional[str], bool]:
        """Move to the expected network, then ask the wallet for accounts"""
        network_ok = True
        try:
            await self.ensure_network()
        except WrongNetwork as e:
            logger.warning(f"Connecting on the wrong network: {e}")
            network_ok = False

        accounts = await self.wallet.request("eth_requestAccounts") or []
        account = accounts[0] if accounts else None
        logger.info(f"Wallet connected with account {account}")
        return account, network_ok

    async def ensure_network(self, expected_chain_id: Optional[int] = None) -> None:
        """
        Make sure the wallet targets ``expected_chain_id``.

        Tries an in-place switch first. Only when the wallet reports the
        chain as unrecognized is the network registered from the configured
        descriptor; any other switch failure is re-raised unchanged.
        """
        expected = expected_chain_id if expected_chain_id is not None else self.network.chain_id
        current = await self.chain_id()
        if current == expected:
            return

        logger.info(f"Switching wallet from chain {hex(current)} to {hex(expected)}")
        try:
            await self.wallet.request("wallet_switchEthereumChain", [{"chainId": hex(expected)}])
        except ProviderRpcError as switch_error:
            if not switch_error.is_unrecognized_chain:
                raise
            if expected != self.network.chain_id:
                raise WrongNetwork(expected, current) from switch_error
            logger.info(f"Chain {hex(expected)} unknown to wallet, registering {self.network.name}")
            try:
                await self.wallet.request("wallet_addEthereumChain", [self.network.to_wallet_params()])
            except ProviderRpcError as add_error:
                raise WrongNetwork(expected, current) from add_error

        current = await self.chain_id()
        if current != expected:
            raise WrongNetwork(expected, current)
        logger.info(f"Wallet is on chain {hex(expected)}")

    async def call(self, contract: ContractName, method: str, args: Optional[List[Any]] = None) -> Any:
        """Call a contract method (read-only)"""
        try:
            fn = self._function(contract, method, args)
            if self._account:
                return await fn.call({"from": self._account})
            return await fn.call()
        except VotingClientError:
            raise
        except Exception as e:
            logger.error(f"Error reading {contract.value}.{method}: {e}")
            raise ReadFailed(method, describe_error(e)) from e

    async def send(self, contract: ContractName, method: str,
                   args: Optional[List[Any]] = None) -> TransactionHandle:
        """Build a contract transaction and have the wallet sign and broadcast it"""
        if self._account is None:
            raise NotConnected()

        fn = self._function(contract, method, args)
        tx = await fn.build_transaction({"from": self._account})
        tx_hash = await self.wallet.request("eth_sendTransaction", [self._to_rpc_transaction(tx)])
        logger.info(f"Submitted {contract.value}.{method} as {tx_hash}")
        return TransactionHandle(tx_hash, self.w3, self.tx_timeout, self.poll_latency)

    def _contract(self, contract: ContractName) -> Any:
        instance = self._contracts.get(contract)
        if instance is None:
            instance = self.w3.eth.contract(address=self._addresses[contract], abi=self._abis[contract])
            self._contracts[contract] = instance
        return instance

    def _function(self, contract: ContractName, method: str, args: Optional[List[Any]]) -> Any:
        method_fn = getattr(self._contract(contract).functions, method)
        return method_fn(*(args or []))

    @staticmethod
    def _to_rpc_transaction(tx: Dict[str, Any]) -> Dict[str, Any]:
        rpc_tx = {}
        for name, value in tx.items():
            if isinstance(value, bool):
                rpc_tx[name] = value
            elif isinstance(value, int):
                rpc_tx[name] = hex(value)
            elif isinstance(value, (bytes, bytearray)):
                rpc_tx[name] = Web3.to_hex(value)
            else:
                rpc_tx[name] = value
        return rpc_tx
