"""
Voting dApp Client

Wallet connection, network enforcement, token allowance and transaction
orchestration for an on-chain voting contract.
"""

from .types import (
    ContractName,
    OperationKey,
    TransactionStatus,
    SessionPhase,
    NetworkDescriptor,
    TransactionResult,
    VotingClientError,
    NotInstalled,
    WrongNetwork,
    NotConnected,
    AllowanceFailed,
    TransactionFailed,
    TimedOut,
    ReadFailed,
    OperationInProgress,
    AlreadyVoted,
    InvalidProposal,
    ProviderRpcError
)

from .models import (
    Proposal,
    Winner,
    SessionState
)

from .config import VotingSettings, get_settings
from .notifications import Notifier, Notification, NotificationLevel
from .chain_client import ChainClient, TransactionHandle
from .lifecycle import TransactionTracker
from .allowance import AllowanceCoordinator
from .session import SessionManager
from .reconciler import ProposalReconciler
from .app import VotingDApp
from .wallet import BaseWallet, LocalKeyWallet

__all__ = [
    # Types
    "ContractName",
    "OperationKey",
    "TransactionStatus",
    "SessionPhase",
    "NetworkDescriptor",
    "TransactionResult",

    # Errors
    "VotingClientError",
    "NotInstalled",
    "WrongNetwork",
    "NotConnected",
    "AllowanceFailed",
    "TransactionFailed",
    "TimedOut",
    "ReadFailed",
    "OperationInProgress",
    "AlreadyVoted",
    "InvalidProposal",
    "ProviderRpcError",

    # Models
    "Proposal",
    "Winner",
    "SessionState",

    # Configuration & notifications
    "VotingSettings",
    "get_settings",
    "Notifier",
    "Notification",
    "NotificationLevel",

    # Components
    "ChainClient",
    "TransactionHandle",
    "TransactionTracker",
    "AllowanceCoordinator",
    "SessionManager",
    "ProposalReconciler",
    "VotingDApp",

    # Wallets
    "BaseWallet",
    "LocalKeyWallet"
]

__version__ = "1.0.0"
