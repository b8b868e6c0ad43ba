import asyncio

import pytest

from voting_dapp_client.app import VotingDApp
from voting_dapp_client.models import Winner
from voting_dapp_client.notifications import NotificationLevel
from voting_dapp_client.types import SessionPhase, ProviderRpcError, ReadFailed

from conftest import ALICE, BOB, FEE, VOTING_ADDRESS


class TestVotingDApp:
    """Test the user-facing voting operations end to end against fake contracts"""

    @pytest.fixture
    def app(self, wallet, chain, notifier):
        chain.add_proposal("Park", "Build a park", 2)
        chain.add_proposal("Library", "Extend the library", 0)
        return VotingDApp(wallet, chain, FEE, notifier=notifier, tx_timeout=30)

    async def connect(self, app):
        assert await app.connect_wallet() is True
        assert app.account == ALICE

    @pytest.mark.asyncio
    async def test_connect_loads_proposals(self, app, memory_channel):
        await self.connect(app)

        assert [p.title for p in app.proposals] == ["Park", "Library"]
        assert app.winner is None
        assert app.state.phase == SessionPhase.IDLE
        assert f"Connected {ALICE}" in memory_channel.messages(NotificationLevel.SUCCESS)

    @pytest.mark.asyncio
    async def test_create_proposal_approves_fee_first(self, app, chain, memory_channel):
        """Test create with no allowance: approve exactly the fee, then create"""
        await self.connect(app)

        assert await app.create_proposal("  Bridge ", "Repair the bridge") is True

        assert chain.sends == [
            ("approve", (VOTING_ADDRESS, 10 * 10 ** 18)),
            ("createProposal", ("Bridge", "Repair the bridge")),
        ]
        assert chain.confirmed == ["approve", "createProposal"]
        assert [p.title for p in app.proposals] == ["Park", "Library", "Bridge"]
        assert app.proposals[2].id == 2
        assert memory_channel.messages()[-4:] == [
            "Approving tokens...",
            "Tokens approved!",
            "Creating proposal...",
            "Proposal created successfully!",
        ]
        assert app.is_creating is False

    @pytest.mark.asyncio
    async def test_refresh_failure_after_confirmed_create(self, app, chain, memory_channel):
        """Test that a failed re-read after a confirmed create keeps the cache and still succeeds"""
        await self.connect(app)
        chain.read_errors["getProposals"] = ReadFailed("getProposals", "node unavailable")

        assert await app.create_proposal("Bridge", "Repair the bridge") is True

        assert chain.confirmed == ["approve", "createProposal"]
        assert [p.title for p in app.proposals] == ["Park", "Library"]
        assert memory_channel.messages(NotificationLevel.ERROR) == ["Failed to fetch proposals"]
        assert memory_channel.delivered[-1].message == "Proposal created successfully!"
        assert "Failed to create proposal" not in memory_channel.messages()
        assert app.is_creating is False

    @pytest.mark.asyncio
    async def test_create_proposal_with_existing_allowance(self, app, chain):
        chain.allowances[(ALICE.lower(), VOTING_ADDRESS.lower())] = FEE
        await self.connect(app)

        assert await app.create_proposal("Bridge", "Repair the bridge") is True

        assert chain.sent_methods() == ["createProposal"]

    @pytest.mark.asyncio
    async def test_rejected_approval_skips_create(self, app, chain, memory_channel):
        """Test that a rejected approval never submits the proposal"""
        chain.send_errors["approve"] = ProviderRpcError(4001, "User rejected the request.")
        await self.connect(app)

        assert await app.create_proposal("Bridge", "Repair the bridge") is False

        assert chain.sent_methods() == ["approve"]
        assert len(app.proposals) == 2
        assert memory_channel.delivered[-1].message == "Failed to create proposal"
        assert memory_channel.delivered[-1].level == NotificationLevel.ERROR
        assert app.is_creating is False
        assert app.tracker.pending == set()

    @pytest.mark.asyncio
    async def test_blank_proposal_is_rejected(self, app, chain, memory_channel):
        await self.connect(app)

        assert await app.create_proposal("Bridge", "   ") is False

        assert chain.sends == []
        assert memory_channel.delivered[-1].message == "Please fill in both title and description"

    @pytest.mark.asyncio
    async def test_create_requires_connection(self, app, chain, memory_channel):
        assert await app.create_proposal("Bridge", "Repair the bridge") is False

        assert chain.sends == []
        assert memory_channel.delivered[-1].message == "Please connect wallet"

    @pytest.mark.asyncio
    async def test_vote(self, app, chain, memory_channel):
        await self.connect(app)

        assert await app.vote(0) is True

        assert chain.sends == [("vote", (0,))]
        assert app.has_voted(0)
        assert not app.can_vote(0)
        assert app.state.get_proposal(0).vote_count == 3
        assert memory_channel.delivered[-1].message == "Vote submitted successfully!"

    @pytest.mark.asyncio
    async def test_refresh_failure_after_confirmed_vote(self, app, chain, memory_channel):
        """Test that a confirmed vote stays recorded when the follow-up read fails"""
        await self.connect(app)
        chain.read_errors["getProposals"] = ReadFailed("getProposals", "node unavailable")

        assert await app.vote(0) is True

        assert chain.confirmed == ["vote"]
        assert app.has_voted(0)
        assert not app.can_vote(0)
        assert app.state.get_proposal(0).vote_count == 2
        assert memory_channel.messages(NotificationLevel.ERROR) == ["Failed to fetch proposals"]
        assert memory_channel.delivered[-1].message == "Vote submitted successfully!"
        assert app.is_voting is False

    @pytest.mark.asyncio
    async def test_second_vote_is_refused_locally(self, app, chain, memory_channel):
        await self.connect(app)
        await app.vote(1)

        assert await app.vote(1) is False

        assert chain.sent_methods() == ["vote"]
        assert memory_channel.delivered[-1].message == "You have already voted for this proposal"

    @pytest.mark.asyncio
    async def test_already_voted_on_chain(self, app, chain, memory_channel):
        """Test that a vote recorded on chain before connecting blocks voting"""
        for title in ("C", "D", "E", "F"):
            chain.add_proposal(title, f"Proposal {title}")
        chain.votes.add((5, ALICE.lower()))
        await self.connect(app)

        assert app.has_voted(5)
        assert await app.vote(5) is False

        assert chain.sends == []
        assert memory_channel.delivered[-1].message == "You have already voted for this proposal"

    @pytest.mark.asyncio
    async def test_reverted_vote(self, app, chain, memory_channel):
        await self.connect(app)
        # Another client votes for ALICE's account first
        chain.votes.add((0, ALICE.lower()))

        assert await app.vote(0) is False

        assert memory_channel.delivered[-1].message == "Failed to submit vote"
        assert app.is_voting is False
        assert app.state.phase == SessionPhase.IDLE

    @pytest.mark.asyncio
    async def test_concurrent_votes_share_one_key(self, app, chain, memory_channel):
        """Test that a second vote while one is pending is rejected without sending"""
        await self.connect(app)
        gate = asyncio.Event()
        chain.gates["vote"] = gate

        first = asyncio.ensure_future(app.vote(0))
        for _ in range(5):
            await asyncio.sleep(0)
        assert app.is_voting

        assert await app.vote(1) is False
        assert app.is_voting
        assert memory_channel.delivered[-1].message == "Operation 'vote' is already in progress"
        gate.set()
        assert await first is True

        assert chain.sends == [("vote", (0,))]

    @pytest.mark.asyncio
    async def test_account_switch_refetches_for_new_account(self, app, wallet, chain):
        chain.votes.add((1, BOB.lower()))
        await self.connect(app)
        await app.vote(0)

        await wallet.switch_accounts([BOB])

        assert app.account == BOB
        assert chain.account == BOB
        assert app.has_voted(1)
        assert not app.has_voted(0)
        assert len(app.proposals) == 2

    @pytest.mark.asyncio
    async def test_wallet_lock_disconnects(self, app, wallet):
        await self.connect(app)

        await wallet.switch_accounts([])

        assert app.account is None
        assert app.proposals == []
        assert app.state.phase == SessionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_wallet(self, app, chain, memory_channel):
        await self.connect(app)
        await app.vote(0)

        await app.disconnect_wallet()

        assert app.account is None
        assert chain.account is None
        assert not app.has_voted(0)
        assert memory_channel.delivered[-1].message == "Wallet disconnected"

    @pytest.mark.asyncio
    async def test_declare_winner(self, app, chain, memory_channel):
        await self.connect(app)
        chain.winner = (0, "Park", 2)

        winner = await app.declare_winner()

        assert winner == Winner(id=0, title="Park", vote_count=2)
        assert app.winner == winner
        assert memory_channel.delivered[-1].message == "Winner fetched successfully!"
        assert chain.sends == []

    @pytest.mark.asyncio
    async def test_no_winner_yet(self, app, memory_channel):
        await self.connect(app)

        assert await app.declare_winner() is None

        assert memory_channel.delivered[-1].level == NotificationLevel.INFO
        assert memory_channel.delivered[-1].message == "No winner declared yet"

    @pytest.mark.asyncio
    async def test_start_auto_connects_silently(self, app, wallet):
        wallet.authorized = True

        async with app:
            assert app.account == ALICE
            assert len(app.proposals) == 2
            assert "eth_requestAccounts" not in wallet.methods()

        assert wallet.listener_count() == 0

    def test_fee_display(self, app):
        assert app.proposal_fee_display == "10"


class TestWithoutWallet:
    """Test behaviour when no wallet provider is installed"""

    @pytest.mark.asyncio
    async def test_operations_report_not_installed(self, notifier, memory_channel):
        app = VotingDApp(None, None, FEE, notifier=notifier)

        assert app.is_wallet_installed is False
        assert await app.start() is False
        assert await app.connect_wallet() is False
        assert await app.vote(0) is False
        assert memory_channel.messages(NotificationLevel.ERROR) == ["No wallet provider installed"] * 2
