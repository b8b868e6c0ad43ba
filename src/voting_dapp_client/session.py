"""
Session and identity management.

Tracks the connected account, derives the admin flag from the voting
contract, and turns wallet account-change events into session transitions.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional

from .events import ACCOUNTS_CHANGED
from .interfaces import IChainClient, IWalletProvider
from .models import SessionState
from .notifications import Notifier
from .types import ContractName, SessionPhase, VotingClientError, WrongNetwork
from .utils import addresses_equal

logger = logging.getLogger(__name__)

AccountListener = Callable[[Optional[str]], Optional[Awaitable[Any]]]


class SessionManager:
    """Owns the account-derived part of a SessionState"""

    def __init__(self, chain: IChainClient, wallet: IWalletProvider, state: SessionState,
                 notifier: Optional[Notifier] = None):
        self.chain = chain
        self.wallet = wallet
        self.state = state
        self.notifier = notifier
        self._listeners: List[AccountListener] = []
        self._subscribed = False

    # Lifecycle

    def start(self) -> None:
        """Subscribe to wallet account changes"""
        if not self._subscribed:
            self.wallet.on(ACCOUNTS_CHANGED, self.on_accounts_changed)
            self._subscribed = True

    def stop(self) -> None:
        """Unsubscribe from the wallet; safe to call more than once"""
        if self._subscribed:
            self.wallet.remove_listener(ACCOUNTS_CHANGED, self.on_accounts_changed)
            self._subscribed = False

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    async def __aenter__(self) -> "SessionManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def add_listener(self, listener: AccountListener) -> None:
        """Called with the new account (or None) after every account transition"""
        self._listeners.append(listener)

    # Queries

    def current_account(self) -> Optional[str]:
        return self.state.account

    def is_admin(self) -> bool:
        return self.state.is_admin

    # Transitions

    async def on_accounts_changed(self, accounts: List[str]) -> None:
        if not accounts:
            logger.info("Wallet reported no accounts, disconnecting")
            self._disconnect()
            await self._notify_listeners(None)
            return

        account = accounts[0]
        if not self.state.bind_account(account):
            return
        self.chain.bind_account(account)
        logger.info(f"Active account is now {account}")
        await self.refresh_admin()
        await self._notify_listeners(account)

    async def refresh_admin(self) -> bool:
        """Compare the current account with the contract admin"""
        account = self.state.account
        if account is None:
            return False
        epoch = self.state.epoch
        try:
            admin_address = await self.chain.call(ContractName.VOTING, "admin", [])
        except VotingClientError as e:
            logger.error(f"Error checking admin status: {e}")
            if self.notifier:
                self.notifier.error("Failed to check admin status", key="admin-check")
            return False
        is_admin = addresses_equal(account, admin_address)
        self.state.set_admin(epoch, is_admin)
        return is_admin

    async def auto_connect(self) -> bool:
        """Reuse an already authorized account without prompting the user"""
        try:
            accounts = await self.chain.list_accounts()
        except Exception as e:
            logger.error(f"Auto-connect error: {e}")
            return False
        if not accounts:
            logger.debug("No previously authorized accounts")
            return False
        await self.on_accounts_changed(accounts)
        return self.state.is_connected

    async def connect(self) -> str:
        """Explicit connect: move to the expected network and request accounts"""
        self.start()
        self.state.phase = SessionPhase.CONNECTING
        try:
            account, network_ok = await self.chain.connect()
            if not network_ok:
                raise WrongNetwork(self.chain.network.chain_id)
            if account is None:
                raise VotingClientError("Wallet returned no accounts", "NO_ACCOUNTS")
            await self.on_accounts_changed([account])
            return account
        finally:
            if self.state.phase == SessionPhase.CONNECTING:
                self.state.phase = (SessionPhase.CONNECTED if self.state.is_connected
                                    else SessionPhase.DISCONNECTED)

    async def disconnect(self) -> None:
        self._disconnect()
        await self._notify_listeners(None)

    def _disconnect(self) -> None:
        self.state.reset()
        self.chain.bind_account(None)

    async def _notify_listeners(self, account: Optional[str]) -> None:
        for listener in list(self._listeners):
            result = listener(account)
            if inspect.isawaitable(result):
                await result
