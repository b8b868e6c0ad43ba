"""
votingctl: command line front end for the voting contracts.

Each command builds a VotingDApp from settings, connects the configured
wallet and runs one operation, printing notifications as they arrive.
"""

import asyncio
import logging

import click
from pydantic import ValidationError

from .app import VotingDApp
from .config import VotingSettings, get_settings
from .notifications import Notification, NotificationChannel, NotificationLevel, Notifier
from .types import ContractName, VotingClientError
from .utils import format_address, format_units
from .wallet import LocalKeyWallet

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class ClickChannel(NotificationChannel):
    """Echoes notifications to the terminal"""

    _prefixes = {
        NotificationLevel.LOADING: "...",
        NotificationLevel.SUCCESS: "OK ",
        NotificationLevel.ERROR: "ERR",
        NotificationLevel.INFO: "-- ",
    }

    def deliver(self, notification: Notification) -> None:
        click.echo(f"{self._prefixes[notification.level]} {notification.message}",
                   err=notification.level == NotificationLevel.ERROR)


def build_app(settings: VotingSettings, account_index: int = 0) -> VotingDApp:
    """Build a VotingDApp with a local key wallet from the settings"""
    notifier = Notifier([ClickChannel()])
    keys = [key.get_secret_value() for key in settings.private_keys]
    if not keys:
        return VotingDApp.from_settings(settings, None, notifier)
    if not 0 <= account_index < len(keys):
        raise click.BadParameter(f"Only {len(keys)} keys configured", param_hint="--account")
    wallet = LocalKeyWallet(keys, [settings.network_descriptor()], selected=account_index)
    return VotingDApp.from_settings(settings, wallet, notifier)


async def _connected(app: VotingDApp) -> bool:
    await app.start()
    if app.account is None:
        return await app.connect_wallet()
    return True


def _run(ctx: click.Context, operation) -> None:
    app = build_app(ctx.obj["settings"], ctx.obj["account"])

    async def runner():
        try:
            if not await _connected(app):
                return False
            return await operation(app)
        finally:
            await app.close()

    if not asyncio.run(runner()):
        ctx.exit(1)


@click.group()
@click.option("--account", "account", default=0, show_default=True,
              help="Index of the configured private key to sign with.")
@click.pass_context
def cli(ctx, account: int):
    """Vote on proposals held by the on-chain voting contract."""
    try:
        settings = get_settings()
    except ValidationError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        ctx.exit(2)
    configure_logging(settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["account"] = account


@cli.command()
@click.pass_context
def status(ctx):
    """Show the connected account and contract information."""
    async def operation(app: VotingDApp) -> bool:
        settings = ctx.obj["settings"]
        click.echo(f"Account:        {app.account} ({format_address(app.account)})")
        click.echo(f"Admin:          {'yes' if app.is_admin else 'no'}")
        click.echo(f"Voting address: {settings.voting_contract_address}")
        click.echo(f"Token address:  {settings.token_contract_address}")
        click.echo(f"Proposal fee:   {app.proposal_fee_display} tokens")
        if app.winner:
            click.echo(f"Winner:         #{app.winner.id} {app.winner.title} ({app.winner.vote_count} votes)")
        return True

    _run(ctx, operation)


@cli.command()
@click.pass_context
def proposals(ctx):
    """List proposals and whether the account has voted for them."""
    async def operation(app: VotingDApp) -> bool:
        if not app.proposals:
            click.echo("No proposals yet.")
        for proposal in app.proposals:
            marker = "x" if app.has_voted(proposal.id) else " "
            click.echo(f"[{marker}] #{proposal.id} {proposal.title} - {proposal.vote_count} votes")
            click.echo(f"      {proposal.description}")
        return True

    _run(ctx, operation)


@cli.command()
@click.argument("title")
@click.argument("description")
@click.pass_context
def create(ctx, title: str, description: str):
    """Create a proposal, paying the proposal fee."""
    async def operation(app: VotingDApp) -> bool:
        return await app.create_proposal(title, description)

    _run(ctx, operation)


@cli.command()
@click.argument("proposal_id", type=int)
@click.pass_context
def vote(ctx, proposal_id: int):
    """Vote for PROPOSAL_ID."""
    async def operation(app: VotingDApp) -> bool:
        return await app.vote(proposal_id)

    _run(ctx, operation)


@cli.command()
@click.pass_context
def winner(ctx):
    """Show the declared winner."""
    async def operation(app: VotingDApp) -> bool:
        result = await app.declare_winner()
        if result is not None:
            click.echo(f"#{result.id} {result.title} with {result.vote_count} votes")
        return True

    _run(ctx, operation)


@cli.command()
@click.pass_context
def allowance(ctx):
    """Show the token allowance granted to the voting contract."""
    async def operation(app: VotingDApp) -> bool:
        spender = app.chain.contract_address(ContractName.VOTING)
        try:
            current = await app.allowance.current_allowance(app.account, spender)
        except VotingClientError as e:
            app.notifier.error(f"Failed to read allowance: {e.message}")
            return False
        decimals = ctx.obj["settings"].token_decimals
        click.echo(f"Allowance: {format_units(current, decimals)} tokens "
                   f"(fee {app.proposal_fee_display})")
        return True

    _run(ctx, operation)
