"""
Proposal and vote state reconciliation.

Pulls the authoritative proposal list, per-account vote flags and the
declared winner from the voting contract and applies them to the session
state. Results are applied only if the account has not changed while the
reads were in flight; a failed refresh leaves the previous cache intact.
"""

import asyncio
import logging
from typing import Any, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .interfaces import IChainClient
from .models import Proposal, SessionState, Winner
from .types import ContractName, ReadFailed

logger = logging.getLogger(__name__)


def _field(entry: Any, index: int, name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry[name]
    if hasattr(entry, name):
        return getattr(entry, name)
    return entry[index]


class ProposalReconciler:
    """Keeps cached proposals, votes and winner in line with the chain"""

    def __init__(self, chain: IChainClient, state: SessionState):
        self.chain = chain
        self.state = state

    async def fetch_proposals(self) -> List[Proposal]:
        """One bulk read of every proposal, ids taken from contract order"""
        raw = await self.chain.call(ContractName.VOTING, "getProposals", [])
        try:
            return [
                Proposal(
                    id=index,
                    title=_field(entry, 0, "title"),
                    description=_field(entry, 1, "description"),
                    vote_count=int(_field(entry, 2, "voteCount")),
                )
                for index, entry in enumerate(raw or [])
            ]
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise ReadFailed("getProposals", f"malformed proposal data: {e}") from e

    async def fetch_voted_set(self, proposals: Sequence[Proposal],
                              account: Optional[str] = None) -> FrozenSet[int]:
        """
        Check hasVoted for every proposal.

        Any failing check fails the whole refresh; a partially known voted
        set is never returned.
        """
        account = account or self.state.account
        if account is None or not proposals:
            return frozenset()

        async def check(proposal: Proposal) -> Tuple[int, bool]:
            voted = await self.chain.call(ContractName.VOTING, "hasVoted", [proposal.id, account])
            return proposal.id, bool(voted)

        results = await asyncio.gather(*(check(p) for p in proposals))
        return frozenset(proposal_id for proposal_id, voted in results if voted)

    async def fetch_winner(self) -> Optional[Winner]:
        """Winner as reported by the contract, None while no title is set"""
        raw = await self.chain.call(ContractName.VOTING, "declareWinner", [])
        try:
            winner_id, title, votes = _field(raw, 0, "winnerId"), _field(raw, 1, "title"), _field(raw, 2, "voteCount")
        except (IndexError, KeyError, TypeError) as e:
            raise ReadFailed("declareWinner", f"malformed winner data: {e}") from e
        if not title or not str(title).strip():
            return None
        return Winner(id=int(winner_id), title=title, vote_count=int(votes))

    async def refresh_proposals(self) -> List[Proposal]:
        epoch = self.state.epoch
        proposals = await self.fetch_proposals()
        self.state.apply_proposals(epoch, proposals)
        logger.info(f"Loaded {len(proposals)} proposals")
        return proposals

    async def refresh_voted_set(self, proposals: Optional[Sequence[Proposal]] = None) -> FrozenSet[int]:
        epoch = self.state.epoch
        account = self.state.account
        voted = await self.fetch_voted_set(proposals if proposals is not None else self.state.proposals, account)
        self.state.apply_voted(epoch, voted)
        return voted

    async def refresh_winner(self) -> Optional[Winner]:
        epoch = self.state.epoch
        winner = await self.fetch_winner()
        self.state.apply_winner(epoch, winner)
        if winner:
            logger.info(f"Winner is proposal {winner.id} '{winner.title}' with {winner.vote_count} votes")
        return winner

    async def refresh(self) -> List[Proposal]:
        """Refresh proposals and the voted set, applying both together"""
        epoch = self.state.epoch
        account = self.state.account
        proposals = await self.fetch_proposals()
        voted = await self.fetch_voted_set(proposals, account)
        if self.state.apply_proposals(epoch, proposals, voted):
            logger.info(f"Loaded {len(proposals)} proposals, {len(voted)} voted by {account}")
        return proposals

    async def confirm_vote(self, epoch: int, proposal_id: int) -> List[Proposal]:
        """Record a confirmed vote and re-read the tallies"""
        self.state.mark_voted(epoch, proposal_id)
        return await self.refresh()
