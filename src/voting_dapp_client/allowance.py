"""
Token allowance coordination for fee-bearing calls.
"""

import logging

from .interfaces import IChainClient
from .lifecycle import TransactionTracker
from .types import ContractName, OperationKey, AllowanceFailed, ReadFailed, VotingClientError

logger = logging.getLogger(__name__)


class AllowanceCoordinator:
    """Guarantees a spender may move at least a given amount of an owner's tokens"""

    def __init__(self, chain: IChainClient, tracker: TransactionTracker):
        self.chain = chain
        self.tracker = tracker

    async def current_allowance(self, owner: str, spender: str) -> int:
        value = await self.chain.call(ContractName.TOKEN, "allowance", [owner, spender])
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ReadFailed("allowance", f"unexpected allowance value {value!r}") from e

    async def ensure_allowance(self, owner: str, spender: str, required_amount: int) -> bool:
        """
        Make sure ``spender`` may spend ``required_amount`` base units of
        ``owner``'s tokens.

        Returns without sending anything when the current allowance already
        covers the amount. Otherwise approves exactly ``required_amount`` and
        waits for the approval to be confirmed.
        """
        if isinstance(required_amount, bool) or not isinstance(required_amount, int):
            raise TypeError("required_amount must be an integer number of base units")
        if required_amount < 0:
            raise ValueError("required_amount must not be negative")

        current = await self.current_allowance(owner, spender)
        if current >= required_amount:
            logger.debug(f"Allowance {current} for {spender} covers {required_amount}")
            return True

        logger.info(f"Allowance {current} below {required_amount}, approving {spender}")
        try:
            await self.tracker.track(
                OperationKey.APPROVE,
                lambda: self.chain.send(ContractName.TOKEN, "approve", [spender, required_amount]),
                pending_message="Approving tokens...",
                success_message="Tokens approved!",
            )
        except VotingClientError as e:
            raise AllowanceFailed(f"Token approval failed: {e.message}", getattr(e, "reason", None)) from e
        return True
