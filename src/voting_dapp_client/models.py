"""
Data models for proposals, winners and the per-session state they live in.
"""

import logging
from typing import Optional, List, FrozenSet, Tuple
from dataclasses import dataclass

from .types import SessionPhase
from .utils import addresses_equal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proposal:
    """Proposal as read from the voting contract"""
    id: int
    title: str
    description: str
    vote_count: int = 0


@dataclass(frozen=True)
class Winner:
    """Winning proposal reported by the voting contract"""
    id: int
    title: str
    vote_count: int


@dataclass
class SessionState:
    """
    Client-side view of one wallet session.

    Every field derived from the connected account is replaced through the
    transition methods below. ``epoch`` increases on each account change so
    that reads started for a previous account can be recognised and dropped.
    """
    phase: SessionPhase = SessionPhase.DISCONNECTED
    account: Optional[str] = None
    is_admin: bool = False
    proposals: Tuple[Proposal, ...] = ()
    voted: FrozenSet[int] = frozenset()
    winner: Optional[Winner] = None
    epoch: int = 0

    @property
    def is_connected(self) -> bool:
        return self.account is not None

    def reset(self) -> None:
        """Hard reset to the disconnected state"""
        self.epoch += 1
        self.account = None
        self.is_admin = False
        self.proposals = ()
        self.voted = frozenset()
        self.winner = None
        self.phase = SessionPhase.DISCONNECTED

    def bind_account(self, account: str) -> bool:
        """
        Make ``account`` the current account.

        Returns False when the account is unchanged. Otherwise all derived
        state is dropped in one step before the new account becomes visible.
        """
        if self.account is not None and addresses_equal(self.account, account):
            return False
        self.epoch += 1
        self.account = account
        self.is_admin = False
        self.proposals = ()
        self.voted = frozenset()
        self.winner = None
        self.phase = SessionPhase.CONNECTED
        return True

    def set_admin(self, epoch: int, is_admin: bool) -> bool:
        if not self._is_current(epoch):
            return False
        self.is_admin = is_admin
        return True

    def apply_proposals(self, epoch: int, proposals: List[Proposal],
                        voted: Optional[FrozenSet[int]] = None) -> bool:
        """Replace the proposal cache (and optionally the voted set)"""
        if not self._is_current(epoch):
            return False
        self.proposals = tuple(proposals)
        if voted is not None:
            self.voted = frozenset(voted)
        return True

    def apply_voted(self, epoch: int, voted: FrozenSet[int]) -> bool:
        if not self._is_current(epoch):
            return False
        self.voted = frozenset(voted)
        return True

    def mark_voted(self, epoch: int, proposal_id: int) -> bool:
        """Record a vote confirmed by a transaction receipt"""
        if not self._is_current(epoch):
            return False
        self.voted = self.voted | {proposal_id}
        return True

    def apply_winner(self, epoch: int, winner: Optional[Winner]) -> bool:
        if not self._is_current(epoch):
            return False
        self.winner = winner
        return True

    def has_voted(self, proposal_id: int) -> bool:
        return proposal_id in self.voted

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        for proposal in self.proposals:
            if proposal.id == proposal_id:
                return proposal
        return None

    def _is_current(self, epoch: int) -> bool:
        if epoch != self.epoch:
            logger.warning(f"Dropping result from stale session epoch {epoch} (current {self.epoch})")
            return False
        return True
