"""
Voting dApp orchestration.

VotingDApp wires the chain client, allowance coordinator, transaction
tracker, session manager and reconciler around a single SessionState. It is
the error boundary: every public operation converts VotingClientError into
a user notification and reports success as a boolean.
"""

import logging
from typing import List, Optional

from .allowance import AllowanceCoordinator
from .chain_client import ChainClient
from .config import VotingSettings
from .interfaces import IChainClient, IWalletProvider
from .lifecycle import TransactionTracker
from .models import Proposal, SessionState, Winner
from .notifications import Notifier
from .reconciler import ProposalReconciler
from .session import SessionManager
from .types import (
    ContractName, OperationKey, SessionPhase,
    AlreadyVoted, InvalidProposal, NotConnected, NotInstalled, OperationInProgress, VotingClientError
)
from .utils import format_units

logger = logging.getLogger(__name__)


class VotingDApp:
    """Client-side coordinator for one wallet session"""

    def __init__(self,
                 wallet: Optional[IWalletProvider],
                 chain: Optional[IChainClient],
                 proposal_fee: int,
                 token_decimals: int = 18,
                 notifier: Optional[Notifier] = None,
                 tx_timeout: Optional[float] = None):
        self.wallet = wallet
        self.chain = chain
        self.proposal_fee = proposal_fee
        self.token_decimals = token_decimals
        self.notifier = notifier or Notifier()
        self.state = SessionState()

        self.tracker = TransactionTracker(self.notifier, timeout=tx_timeout)
        if wallet is not None and chain is not None:
            self.allowance = AllowanceCoordinator(chain, self.tracker)
            self.session = SessionManager(chain, wallet, self.state, self.notifier)
            self.reconciler = ProposalReconciler(chain, self.state)
            self.session.add_listener(self._on_account_changed)
        else:
            self.allowance = None
            self.session = None
            self.reconciler = None

        self.is_connecting = False
        self.is_loading = False
        self.is_creating = False
        self.is_voting = False
        self.is_declaring = False

    @classmethod
    def from_settings(cls, settings: VotingSettings, wallet: Optional[IWalletProvider],
                      notifier: Optional[Notifier] = None) -> "VotingDApp":
        chain = ChainClient.from_settings(settings, wallet) if wallet is not None else None
        return cls(
            wallet=wallet,
            chain=chain,
            proposal_fee=settings.proposal_fee_base_units,
            token_decimals=settings.token_decimals,
            notifier=notifier,
            tx_timeout=settings.tx_timeout,
        )

    # Views

    @property
    def is_wallet_installed(self) -> bool:
        return self.wallet is not None

    @property
    def account(self) -> Optional[str]:
        return self.state.account

    @property
    def is_admin(self) -> bool:
        return self.state.is_admin

    @property
    def proposals(self) -> List[Proposal]:
        return list(self.state.proposals)

    @property
    def winner(self) -> Optional[Winner]:
        return self.state.winner

    def has_voted(self, proposal_id: int) -> bool:
        return self.state.has_voted(proposal_id)

    def can_vote(self, proposal_id: int) -> bool:
        return (self.state.is_connected and not self.is_voting
                and not self.state.has_voted(proposal_id))

    @property
    def proposal_fee_display(self) -> str:
        return format_units(self.proposal_fee, self.token_decimals)

    # Lifecycle

    async def start(self) -> bool:
        """Subscribe to wallet events and silently reconnect if possible"""
        if not self.is_wallet_installed:
            logger.warning("No wallet provider installed")
            return False
        self.session.start()
        return await self.session.auto_connect()

    async def close(self) -> None:
        if self.session is not None:
            self.session.stop()

    async def __aenter__(self) -> "VotingDApp":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Operations

    async def connect_wallet(self) -> bool:
        if not self.is_wallet_installed:
            self.notifier.error(NotInstalled().message)
            return False
        self.is_connecting = True
        try:
            account = await self.session.connect()
            self.notifier.success(f"Connected {account}", key="connect")
            return True
        except VotingClientError as e:
            logger.error(f"Error connecting wallet: {e}")
            self.notifier.error("Failed to connect wallet", key="connect")
            return False
        finally:
            self.is_connecting = False

    async def disconnect_wallet(self) -> None:
        if self.session is None:
            return
        await self.session.disconnect()
        self.notifier.success("Wallet disconnected")

    async def fetch_proposals(self) -> bool:
        if not self._require_wallet():
            return False
        self.is_loading = True
        self.state.phase = SessionPhase.REFRESHING
        try:
            await self.reconciler.refresh()
            return True
        except VotingClientError as e:
            logger.error(f"Error fetching proposals: {e}")
            self.notifier.error("Failed to fetch proposals")
            return False
        finally:
            self.is_loading = False
            self._settle_phase()

    async def fetch_winner(self) -> Optional[Winner]:
        if not self._require_wallet():
            return None
        try:
            return await self.reconciler.refresh_winner()
        except VotingClientError as e:
            logger.error(f"Error fetching winner: {e}")
            return None

    async def create_proposal(self, title: str, description: str) -> bool:
        """Approve the proposal fee if needed, create the proposal, refresh"""
        key = OperationKey.CREATE_PROPOSAL
        if not self._require_account("Please connect wallet"):
            return False
        title, description = (title or "").strip(), (description or "").strip()
        if not title or not description:
            self.notifier.error(InvalidProposal().message, key=key.value)
            return False
        if self.is_creating:
            return self._reject_busy(key)

        self.is_creating = True
        self.state.phase = SessionPhase.PENDING
        try:
            await self.allowance.ensure_allowance(
                self.state.account,
                self.chain.contract_address(ContractName.VOTING),
                self.proposal_fee,
            )
            await self.tracker.track(
                key,
                lambda: self.chain.send(ContractName.VOTING, "createProposal", [title, description]),
                pending_message="Creating proposal...",
            )
            await self._refresh_after(key, self.reconciler.refresh)
            self.notifier.success("Proposal created successfully!", key=key.value)
            return True
        except VotingClientError as e:
            logger.error(f"Create proposal error: {e}")
            self.notifier.error("Failed to create proposal", key=key.value)
            return False
        finally:
            self.is_creating = False
            self._settle_phase()

    async def vote(self, proposal_id: int) -> bool:
        """Vote once for ``proposal_id``; already-voted proposals are refused"""
        key = OperationKey.VOTE
        if not self._require_account("Please connect your wallet"):
            return False
        if self.state.has_voted(proposal_id):
            error = AlreadyVoted(proposal_id)
            logger.warning(str(error))
            self.notifier.error("You have already voted for this proposal", key=key.value)
            return False
        if self.is_voting:
            return self._reject_busy(key)

        epoch = self.state.epoch
        self.is_voting = True
        self.state.phase = SessionPhase.PENDING
        try:
            await self.tracker.track(
                key,
                lambda: self.chain.send(ContractName.VOTING, "vote", [proposal_id]),
                pending_message="Submitting vote...",
            )
            await self._refresh_after(key, lambda: self.reconciler.confirm_vote(epoch, proposal_id))
            self.notifier.success("Vote submitted successfully!", key=key.value)
            return True
        except VotingClientError as e:
            logger.error(f"Error voting: {e}")
            self.notifier.error("Failed to submit vote", key=key.value)
            return False
        finally:
            self.is_voting = False
            self._settle_phase()

    async def declare_winner(self) -> Optional[Winner]:
        """Read the winner from the contract under the declare-winner key"""
        key = OperationKey.DECLARE_WINNER
        if not self._require_account("Please connect your wallet"):
            return None
        if self.is_declaring:
            self._reject_busy(key)
            return None
        self.is_declaring = True
        self.state.phase = SessionPhase.PENDING
        try:
            async with self.tracker.reserve(key):
                winner = await self.reconciler.refresh_winner()
            if winner is None:
                self.notifier.info("No winner declared yet", key=key.value)
            else:
                self.notifier.success("Winner fetched successfully!", key=key.value)
            return winner
        except VotingClientError as e:
            logger.error(f"Error declaring winner: {e}")
            self.notifier.error("Failed to fetch winner", key=key.value)
            return None
        finally:
            self.is_declaring = False
            self._settle_phase()

    # Internals

    async def _on_account_changed(self, account: Optional[str]) -> None:
        if account is None:
            return
        await self.fetch_proposals()
        await self.fetch_winner()

    async def _refresh_after(self, key: OperationKey, refresh) -> None:
        """Re-read proposals after a confirmed mutation; a failed read keeps the old cache"""
        try:
            await refresh()
        except VotingClientError as e:
            logger.error(f"Refresh after confirmed '{key.value}' failed: {e}")
            self.notifier.error("Failed to fetch proposals")

    def _require_wallet(self) -> bool:
        if not self.is_wallet_installed:
            self.notifier.error(NotInstalled().message)
            return False
        return True

    def _require_account(self, message: str) -> bool:
        if not self._require_wallet():
            return False
        if not self.state.is_connected:
            logger.warning(NotConnected().message)
            self.notifier.error(message)
            return False
        return True

    def _reject_busy(self, key: OperationKey) -> bool:
        error = OperationInProgress(key)
        logger.warning(str(error))
        self.notifier.error(error.message)
        return False

    def _settle_phase(self) -> None:
        if not self.state.is_connected:
            self.state.phase = SessionPhase.DISCONNECTED
        elif not (self.is_loading or self.is_creating or self.is_voting or self.is_declaring):
            self.state.phase = SessionPhase.IDLE
