"""
Core types, enums and the error taxonomy for the voting client.
"""

from enum import Enum
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


class ContractName(Enum):
    """Remote contracts the client talks to"""
    VOTING = "voting"
    TOKEN = "token"


class OperationKey(Enum):
    """Keys identifying in-flight user operations"""
    APPROVE = "approve"
    CREATE_PROPOSAL = "create-proposal"
    VOTE = "vote"
    DECLARE_WINNER = "declare-winner"


class TransactionStatus(Enum):
    """Transaction lifecycle states"""
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class SessionPhase(Enum):
    """Phases of a voting session"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    REFRESHING = "refreshing"
    IDLE = "idle"
    PENDING = "pending"


# EIP-1193 / EIP-3085 provider error codes
USER_REJECTED_REQUEST = 4001
UNAUTHORIZED = 4100
UNSUPPORTED_METHOD = 4200
UNRECOGNIZED_CHAIN = 4902


@dataclass
class NetworkDescriptor:
    """Network metadata a wallet needs to register an unknown chain"""
    chain_id: int
    name: str
    rpc_url: str
    currency_name: str = "Ethereum"
    currency_symbol: str = "ETH"
    currency_decimals: int = 18
    explorer_url: Optional[str] = None

    @property
    def hex_chain_id(self) -> str:
        return hex(self.chain_id)

    def to_wallet_params(self) -> Dict[str, Any]:
        """Build the wallet_addEthereumChain parameter object"""
        params = {
            "chainId": self.hex_chain_id,
            "chainName": self.name,
            "rpcUrls": [self.rpc_url],
            "nativeCurrency": {
                "name": self.currency_name,
                "symbol": self.currency_symbol,
                "decimals": self.currency_decimals,
            },
        }
        if self.explorer_url:
            params["blockExplorerUrls"] = [self.explorer_url]
        return params

    @classmethod
    def from_wallet_params(cls, params: Dict[str, Any]) -> "NetworkDescriptor":
        currency = params.get("nativeCurrency") or {}
        rpc_urls = params.get("rpcUrls") or []
        explorers = params.get("blockExplorerUrls") or []
        if not rpc_urls:
            raise ValueError("rpcUrls must contain at least one URL")
        return cls(
            chain_id=int(params["chainId"], 16),
            name=params.get("chainName", ""),
            rpc_url=rpc_urls[0],
            currency_name=currency.get("name", "Ethereum"),
            currency_symbol=currency.get("symbol", "ETH"),
            currency_decimals=int(currency.get("decimals", 18)),
            explorer_url=explorers[0] if explorers else None,
        )


@dataclass
class TransactionResult:
    """Confirmed outcome of a mutating call"""
    transaction_hash: str
    block_number: int
    block_hash: str
    gas_used: int
    status: TransactionStatus
    from_address: str
    to_address: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list)


class VotingClientError(Exception):
    """Base exception for voting client operations"""
    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class NotInstalled(VotingClientError):
    """No wallet provider is available"""
    def __init__(self, message: str = "No wallet provider installed"):
        super().__init__(message, "NOT_INSTALLED")


class WrongNetwork(VotingClientError):
    """Wallet is on a different chain and could not be moved"""
    def __init__(self, expected_chain_id: int, actual_chain_id: Optional[int] = None,
                 message: Optional[str] = None):
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id
        if message is None:
            message = f"Wallet is not on chain {hex(expected_chain_id)}"
            if actual_chain_id is not None:
                message += f" (active chain {hex(actual_chain_id)})"
        super().__init__(message, "WRONG_NETWORK")


class NotConnected(VotingClientError):
    """A mutating action was attempted with no connected account"""
    def __init__(self, message: str = "No wallet account connected"):
        super().__init__(message, "NOT_CONNECTED")


class AllowanceFailed(VotingClientError):
    """Approval transaction was rejected or reverted"""
    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message, "ALLOWANCE_FAILED")


class TransactionFailed(VotingClientError):
    """A submitted mutating call reverted or was rejected by the signer"""
    def __init__(self, reason: Optional[str] = None, tx_hash: Optional[str] = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(f"Transaction failed: {reason or 'unknown reason'}", "TRANSACTION_FAILED")


class TimedOut(VotingClientError):
    """A transaction was not confirmed within the configured timeout"""
    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout}s", "TIMED_OUT")


class ReadFailed(VotingClientError):
    """A read-only contract query errored"""
    def __init__(self, method: str, reason: Optional[str] = None):
        self.method = method
        self.reason = reason
        super().__init__(f"Read {method} failed: {reason or 'unknown reason'}", "READ_FAILED")


class OperationInProgress(VotingClientError):
    """An operation under the same key is already in flight"""
    def __init__(self, key: OperationKey):
        self.key = key
        super().__init__(f"Operation '{key.value}' is already in progress", "OPERATION_IN_PROGRESS")


class AlreadyVoted(VotingClientError):
    """The current account has already voted for the proposal"""
    def __init__(self, proposal_id: int):
        self.proposal_id = proposal_id
        super().__init__(f"Already voted for proposal {proposal_id}", "ALREADY_VOTED")


class InvalidProposal(VotingClientError):
    """Proposal input was rejected before submission"""
    def __init__(self, message: str = "Please fill in both title and description"):
        super().__init__(message, "INVALID_PROPOSAL")


class ProviderRpcError(VotingClientError):
    """Error object returned by a wallet provider request"""
    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message, str(code))

    @property
    def is_user_rejection(self) -> bool:
        return self.code == USER_REJECTED_REQUEST

    @property
    def is_unrecognized_chain(self) -> bool:
        return self.code == UNRECOGNIZED_CHAIN
