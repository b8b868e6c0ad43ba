"""
Pytest configuration and in-memory fakes for the voting client tests
"""

import asyncio
import itertools
from typing import Any, Dict, List, Optional, Tuple

import pytest

from voting_dapp_client.interfaces import IChainClient
from voting_dapp_client.notifications import MemoryChannel, Notifier
from voting_dapp_client.types import (
    ContractName, NetworkDescriptor, TransactionResult, TransactionStatus,
    NotConnected, ProviderRpcError, ReadFailed, UNRECOGNIZED_CHAIN
)
from voting_dapp_client.wallet.base import BaseWallet

ADMIN = "0x1111111111111111111111111111111111111111"
ALICE = "0xAAAaAAaAaAAAAaaAaAaaaAaaAaaaAAaAAAAaaAaa"
BOB = "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"
VOTING_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TOKEN_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
FEE = 10 * 10 ** 18

GANACHE = NetworkDescriptor(chain_id=1337, name="Local Ganache", rpc_url="http://127.0.0.1:8545")


class FakeWallet(BaseWallet):
    """EIP-1193 wallet double with scriptable chain handling"""

    def __init__(self, chain_id: int = 1337, known_chains=(1337,), accounts=(ALICE,),
                 authorized: bool = False):
        super().__init__()
        self.chain_id = chain_id
        self.known_chains = set(known_chains)
        self.accounts = list(accounts)
        self.authorized = authorized
        self.requests: List[Tuple[str, Any]] = []
        self.errors: Dict[str, Exception] = {}

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self.requests.append((method, params))
        if method in self.errors:
            raise self.errors[method]
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_accounts":
            return list(self.accounts) if self.authorized else []
        if method == "eth_requestAccounts":
            self.authorized = True
            return list(self.accounts)
        if method == "wallet_switchEthereumChain":
            chain_id = int(params[0]["chainId"], 16)
            if chain_id not in self.known_chains:
                raise ProviderRpcError(UNRECOGNIZED_CHAIN, "Unrecognized chain ID")
            self.chain_id = chain_id
            return None
        if method == "wallet_addEthereumChain":
            chain_id = int(params[0]["chainId"], 16)
            self.known_chains.add(chain_id)
            self.chain_id = chain_id
            return None
        if method == "eth_sendTransaction":
            return "0x" + "ab" * 32
        raise ProviderRpcError(4200, f"Unsupported method {method}")

    def methods(self) -> List[str]:
        return [method for method, _ in self.requests]

    async def switch_accounts(self, accounts: List[str]) -> None:
        self.accounts = list(accounts)
        await self.emit("accountsChanged", list(accounts))


class FakeHandle:
    """Transaction handle whose confirmation applies an effect to the fake chain"""

    def __init__(self, chain: "FakeChain", tx_hash: str, effect, gate: Optional[asyncio.Event] = None):
        self.chain = chain
        self.tx_hash = tx_hash
        self._effect = effect
        self._gate = gate

    async def wait(self, timeout: Optional[float] = None) -> TransactionResult:
        if self._gate is not None:
            await self._gate.wait()
        ok = self._effect()
        return TransactionResult(
            transaction_hash=self.tx_hash,
            block_number=self.chain.next_block(),
            block_hash="0x" + "00" * 32,
            gas_used=21000,
            status=TransactionStatus.CONFIRMED if ok else TransactionStatus.FAILED,
            from_address=self.chain.account or "",
        )


class FakeChain(IChainClient):
    """In-memory voting and token contracts behind the chain client interface"""

    def __init__(self, wallet: Optional[FakeWallet] = None, admin: str = ADMIN, fee: int = FEE):
        self.wallet = wallet or FakeWallet()
        self.network = GANACHE
        self.admin = admin
        self.fee = fee
        self.proposals: List[List[Any]] = []
        self.votes: set = set()
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.winner: Tuple[int, str, int] = (0, "", 0)
        self.reads: List[Tuple[str, tuple]] = []
        self.sends: List[Tuple[str, tuple]] = []
        self.confirmed: List[str] = []
        self.read_errors: Dict[str, Exception] = {}
        self.send_errors: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self._account: Optional[str] = None
        self._blocks = itertools.count(1)
        self._hashes = itertools.count(1)

    # helpers

    def add_proposal(self, title: str, description: str, votes: int = 0) -> None:
        self.proposals.append([title, description, votes])

    def next_block(self) -> int:
        return next(self._blocks)

    def sent_methods(self) -> List[str]:
        return [method for method, _ in self.sends]

    # IChainClient

    @property
    def account(self) -> Optional[str]:
        return self._account

    def bind_account(self, account: Optional[str]) -> None:
        self._account = account

    def contract_address(self, contract: ContractName) -> str:
        return VOTING_ADDRESS if contract == ContractName.VOTING else TOKEN_ADDRESS

    async def connect(self):
        accounts = await self.wallet.request("eth_requestAccounts")
        return (accounts[0] if accounts else None), self.wallet.chain_id == self.network.chain_id

    async def list_accounts(self) -> List[str]:
        return await self.wallet.request("eth_accounts")

    async def ensure_network(self, expected_chain_id: Optional[int] = None) -> None:
        return None

    async def call(self, contract: ContractName, method: str, args: Optional[List[Any]] = None) -> Any:
        args = tuple(args or [])
        self.reads.append((method, args))
        await asyncio.sleep(0)
        if method in self.read_errors:
            raise self.read_errors[method]
        if method == "admin":
            return self.admin
        if method == "getProposals":
            return [tuple(p) for p in self.proposals]
        if method == "hasVoted":
            proposal_id, voter = args
            return (proposal_id, voter.lower()) in self.votes
        if method == "declareWinner":
            return list(self.winner)
        if method == "allowance":
            owner, spender = args
            return self.allowances.get((owner.lower(), spender.lower()), 0)
        raise ReadFailed(method, "unknown method")

    async def send(self, contract: ContractName, method: str, args: Optional[List[Any]] = None):
        if self._account is None:
            raise NotConnected()
        args = tuple(args or [])
        self.sends.append((method, args))
        if method in self.send_errors:
            raise self.send_errors[method]
        sender = self._account.lower()
        tx_hash = "0x%064x" % next(self._hashes)

        def effect() -> bool:
            if method == "approve":
                spender, amount = args
                self.allowances[(sender, spender.lower())] = amount
            elif method == "createProposal":
                key = (sender, VOTING_ADDRESS.lower())
                if self.allowances.get(key, 0) < self.fee:
                    return False
                self.allowances[key] -= self.fee
                self.add_proposal(*args)
            elif method == "vote":
                (proposal_id,) = args
                if (proposal_id, sender) in self.votes or proposal_id >= len(self.proposals):
                    return False
                self.votes.add((proposal_id, sender))
                self.proposals[proposal_id][2] += 1
            self.confirmed.append(method)
            return True

        return FakeHandle(self, tx_hash, effect, self.gates.get(method))


@pytest.fixture
def memory_channel():
    return MemoryChannel()


@pytest.fixture
def notifier(memory_channel):
    return Notifier([memory_channel])


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def chain(wallet):
    return FakeChain(wallet)
