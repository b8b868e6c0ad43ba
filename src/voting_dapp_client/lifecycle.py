"""
Transaction lifecycle tracking.

Every mutating call runs under an operation key and moves through
submitted -> confirmed | failed. At most one operation per key may be in
flight; a second request for a busy key is rejected with
OperationInProgress before anything is sent.
"""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, Optional, Set

from .chain_client import describe_error
from .interfaces import ITransactionHandle
from .notifications import Notifier
from .types import (
    OperationKey, TransactionResult, TransactionStatus,
    OperationInProgress, ProviderRpcError, TransactionFailed, VotingClientError
)

logger = logging.getLogger(__name__)

Submit = Callable[[], Awaitable[ITransactionHandle]]


class TransactionTracker:
    """Runs mutating calls under per-key pending markers"""

    def __init__(self, notifier: Optional[Notifier] = None, timeout: Optional[float] = None):
        self.notifier = notifier
        self.timeout = timeout
        self._pending: Set[OperationKey] = set()
        self._statuses: Dict[OperationKey, TransactionStatus] = {}

    def is_pending(self, key: OperationKey) -> bool:
        return key in self._pending

    @property
    def pending(self) -> Set[OperationKey]:
        return set(self._pending)

    def status(self, key: OperationKey) -> Optional[TransactionStatus]:
        return self._statuses.get(key)

    @asynccontextmanager
    async def reserve(self, key: OperationKey):
        """Hold the pending marker for ``key`` for the duration of the block"""
        if key in self._pending:
            logger.warning(f"Rejected duplicate '{key.value}' operation while one is in flight")
            raise OperationInProgress(key)
        self._pending.add(key)
        try:
            yield
        finally:
            self._pending.discard(key)

    async def track(self, key: OperationKey, submit: Submit,
                    pending_message: Optional[str] = None,
                    success_message: Optional[str] = None) -> TransactionResult:
        """
        Submit a transaction and wait for its receipt.

        Returns the confirmed TransactionResult. Raises TransactionFailed
        when the signer rejects the request or the call reverts, TimedOut
        when no receipt arrives in time. Nothing is retried.
        """
        async with self.reserve(key):
            tx_hash = None
            self._statuses[key] = TransactionStatus.SUBMITTED
            try:
                handle = await submit()
                tx_hash = handle.tx_hash
                if pending_message:
                    self._notify("loading", pending_message, key)
                result = await handle.wait(self.timeout)
                if result.status != TransactionStatus.CONFIRMED:
                    raise TransactionFailed("execution reverted", result.transaction_hash)
            except ProviderRpcError as e:
                self._mark_failed(key, e.message)
                raise TransactionFailed(e.message, tx_hash) from e
            except VotingClientError as e:
                self._mark_failed(key, e.message)
                raise
            except Exception as e:
                reason = describe_error(e)
                self._mark_failed(key, reason)
                raise TransactionFailed(reason, tx_hash) from e

            self._statuses[key] = TransactionStatus.CONFIRMED
            logger.info(f"Operation '{key.value}' confirmed in block {result.block_number} "
                        f"({result.transaction_hash})")
            if success_message:
                self._notify("success", success_message, key)
            return result

    def _notify(self, level: str, message: str, key: OperationKey) -> None:
        if self.notifier is not None:
            getattr(self.notifier, level)(message, key=key.value)

    def _mark_failed(self, key: OperationKey, reason: str) -> None:
        self._statuses[key] = TransactionStatus.FAILED
        logger.error(f"Operation '{key.value}' failed: {reason}")
