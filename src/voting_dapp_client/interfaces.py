"""
Interfaces (protocols) for the collaborators the voting client consumes.
Using Python's Protocol for structural subtyping.
"""

from typing import Protocol, Any, Callable, List, Optional, Tuple
from abc import abstractmethod

from .types import ContractName, NetworkDescriptor, TransactionResult


class IWalletProvider(Protocol):
    """EIP-1193 style wallet provider"""

    @abstractmethod
    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send a JSON-RPC request through the wallet"""
        ...

    @abstractmethod
    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register an event handler"""
        ...

    @abstractmethod
    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        """Remove a previously registered event handler"""
        ...


class ITransactionHandle(Protocol):
    """A submitted transaction awaiting confirmation"""

    tx_hash: str

    @abstractmethod
    async def wait(self, timeout: Optional[float] = None) -> TransactionResult:
        """Wait for the transaction receipt"""
        ...


class IChainClient(Protocol):
    """Typed access to the voting and token contracts"""

    network: NetworkDescriptor

    @property
    @abstractmethod
    def account(self) -> Optional[str]:
        ...

    @abstractmethod
    def bind_account(self, account: Optional[str]) -> None:
        """Parameterize writes with the signer of ``account``"""
        ...

    @abstractmethod
    async def connect(self) -> Tuple[Optional[str], bool]:
        """Request accounts; return (account, is network correct)"""
        ...

    @abstractmethod
    async def list_accounts(self) -> List[str]:
        """Accounts already authorized, without prompting"""
        ...

    @abstractmethod
    async def ensure_network(self, expected_chain_id: Optional[int] = None) -> None:
        """Move the wallet to the expected chain or fail"""
        ...

    @abstractmethod
    async def call(self, contract: ContractName, method: str, args: Optional[List[Any]] = None) -> Any:
        """Read-only contract call"""
        ...

    @abstractmethod
    async def send(self, contract: ContractName, method: str,
                   args: Optional[List[Any]] = None) -> ITransactionHandle:
        """Mutating contract call"""
        ...

    @abstractmethod
    def contract_address(self, contract: ContractName) -> str:
        ...
