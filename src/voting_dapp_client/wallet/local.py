"""
Software wallet backed by local private keys and a JSON-RPC node.

Answers the wallet-side EIP-1193 methods itself (accounts, chain switching,
transaction signing) and forwards every other request to the node of the
active network.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from ..events import ACCOUNTS_CHANGED, CHAIN_CHANGED
from ..types import (
    NetworkDescriptor, ProviderRpcError,
    UNAUTHORIZED, UNRECOGNIZED_CHAIN, USER_REJECTED_REQUEST
)
from ..utils import addresses_equal, from_hex_chain_id
from .base import BaseWallet

logger = logging.getLogger(__name__)

INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

_QUANTITY_FIELDS = (
    "value", "gas", "gasPrice", "maxFeePerGas", "maxPriorityFeePerGas", "nonce", "chainId", "type"
)

Web3Factory = Callable[[NetworkDescriptor], AsyncWeb3]
TransactionApprover = Callable[[Dict[str, Any]], Any]


def _default_web3(network: NetworkDescriptor) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(network.rpc_url))


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    return int(value)


class LocalKeyWallet(BaseWallet):
    """Wallet holding eth_account keys"""

    def __init__(self,
                 private_keys: List[str],
                 networks: List[NetworkDescriptor],
                 active_chain_id: Optional[int] = None,
                 authorized: bool = False,
                 selected: int = 0,
                 approve_transaction: Optional[TransactionApprover] = None,
                 web3_factory: Optional[Web3Factory] = None):
        super().__init__()
        if not networks:
            raise ValueError("At least one network is required")
        self._accounts: List[LocalAccount] = [Account.from_key(key) for key in private_keys]
        self._selected: Optional[LocalAccount] = self._accounts[selected] if self._accounts else None
        self._networks: Dict[int, NetworkDescriptor] = {n.chain_id: n for n in networks}
        self._active_chain_id = active_chain_id if active_chain_id is not None else networks[0].chain_id
        if self._active_chain_id not in self._networks:
            raise ValueError(f"Active chain {self._active_chain_id} is not a configured network")
        self._authorized = authorized
        self._approve_transaction = approve_transaction
        self._web3_factory = web3_factory or _default_web3
        self._web3_cache: Dict[int, AsyncWeb3] = {}

        self._methods = {
            "eth_chainId": self._eth_chain_id,
            "eth_accounts": self._eth_accounts,
            "eth_requestAccounts": self._eth_request_accounts,
            "wallet_switchEthereumChain": self._switch_chain,
            "wallet_addEthereumChain": self._add_chain,
            "eth_sendTransaction": self._send_transaction,
        }

    @property
    def addresses(self) -> List[str]:
        return [account.address for account in self._accounts]

    @property
    def selected_address(self) -> Optional[str]:
        return self._selected.address if self._selected else None

    @property
    def active_chain_id(self) -> int:
        return self._active_chain_id

    @property
    def networks(self) -> Dict[int, NetworkDescriptor]:
        return dict(self._networks)

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        params = params or []
        handler = self._methods.get(method)
        if handler is not None:
            return await handler(params)
        return await self._forward(method, params)

    async def select_account(self, address: str) -> None:
        """Switch the active account, as a user would in the wallet UI"""
        for account in self._accounts:
            if addresses_equal(account.address, address):
                self._selected = account
                break
        else:
            raise ValueError(f"Address {address} is not held by this wallet")
        logger.info(f"Selected wallet account {self._selected.address}")
        if self._authorized:
            await self.emit(ACCOUNTS_CHANGED, [self._selected.address])

    async def lock(self) -> None:
        """Revoke account access; listeners see an empty account list"""
        self._authorized = False
        logger.info("Wallet locked")
        await self.emit(ACCOUNTS_CHANGED, [])

    def _web3(self) -> AsyncWeb3:
        w3 = self._web3_cache.get(self._active_chain_id)
        if w3 is None:
            w3 = self._web3_factory(self._networks[self._active_chain_id])
            self._web3_cache[self._active_chain_id] = w3
        return w3

    async def _eth_chain_id(self, params: List[Any]) -> str:
        return hex(self._active_chain_id)

    async def _eth_accounts(self, params: List[Any]) -> List[str]:
        if not self._authorized or self._selected is None:
            return []
        return [self._selected.address]

    async def _eth_request_accounts(self, params: List[Any]) -> List[str]:
        if self._selected is None:
            raise ProviderRpcError(UNAUTHORIZED, "Wallet holds no accounts")
        if not self._authorized:
            self._authorized = True
            logger.info(f"Authorized wallet account {self._selected.address}")
        return [self._selected.address]

    async def _switch_chain(self, params: List[Any]) -> None:
        try:
            chain_id = from_hex_chain_id(params[0]["chainId"])
        except (IndexError, KeyError, TypeError, ValueError):
            raise ProviderRpcError(INVALID_PARAMS, "Expected [{chainId}]")
        if chain_id not in self._networks:
            raise ProviderRpcError(
                UNRECOGNIZED_CHAIN,
                f"Unrecognized chain ID {hex(chain_id)}. "
                "Try adding the chain using wallet_addEthereumChain first."
            )
        if chain_id != self._active_chain_id:
            self._active_chain_id = chain_id
            logger.info(f"Wallet switched to chain {hex(chain_id)}")
            await self.emit(CHAIN_CHANGED, hex(chain_id))
        return None

    async def _add_chain(self, params: List[Any]) -> None:
        try:
            network = NetworkDescriptor.from_wallet_params(params[0])
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise ProviderRpcError(INVALID_PARAMS, f"Invalid chain parameters: {e}")
        self._networks[network.chain_id] = network
        self._web3_cache.pop(network.chain_id, None)
        logger.info(f"Registered network {network.name} ({network.hex_chain_id})")
        return await self._switch_chain([{"chainId": network.hex_chain_id}])

    async def _send_transaction(self, params: List[Any]) -> str:
        if not params or not isinstance(params[0], dict):
            raise ProviderRpcError(INVALID_PARAMS, "Expected [transaction]")
        tx = dict(params[0])
        sender = tx.pop("from", None) or self.selected_address
        account = self._authorized_account(sender)

        for name in _QUANTITY_FIELDS:
            if name in tx and tx[name] is not None:
                tx[name] = _to_int(tx[name])
        if tx.get("to"):
            tx["to"] = to_checksum_address(tx["to"])
        tx["chainId"] = self._active_chain_id

        w3 = self._web3()
        if "nonce" not in tx:
            tx["nonce"] = await w3.eth.get_transaction_count(account.address, "pending")
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = await w3.eth.gas_price
        if "gas" not in tx:
            tx["gas"] = await w3.eth.estimate_gas({**tx, "from": account.address})

        if self._approve_transaction is not None:
            approved = self._approve_transaction(dict(tx, **{"from": account.address}))
            if inspect.isawaitable(approved):
                approved = await approved
            if not approved:
                raise ProviderRpcError(USER_REJECTED_REQUEST, "User rejected the request.")

        signed = account.sign_transaction(tx)
        tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Broadcast transaction {Web3.to_hex(tx_hash)} from {account.address}")
        return Web3.to_hex(tx_hash)

    def _authorized_account(self, address: Optional[str]) -> LocalAccount:
        if not self._authorized:
            raise ProviderRpcError(UNAUTHORIZED, "The requested account has not been authorized")
        for account in self._accounts:
            if addresses_equal(account.address, address):
                return account
        raise ProviderRpcError(UNAUTHORIZED, f"Account {address} is not held by this wallet")

    async def _forward(self, method: str, params: List[Any]) -> Any:
        response = await self._web3().provider.make_request(method, params)
        if response.get("error"):
            error = response["error"]
            if isinstance(error, dict):
                raise ProviderRpcError(error.get("code", INTERNAL_ERROR),
                                       error.get("message", "RPC error"), error.get("data"))
            raise ProviderRpcError(INTERNAL_ERROR, str(error))
        return response.get("result")
