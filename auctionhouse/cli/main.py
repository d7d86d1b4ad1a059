"""
Auction House CLI - Command Line Interface

Main entry point for all CLI commands. Commands operate on a SQLite
database; `demo` runs in memory.
"""

import logging
import time
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import click

from auctionhouse.core.config import load_config
from auctionhouse.core.errors import AuctionHouseError, AuctionIntegrityError, ConfigError
from auctionhouse.utils.logger import setup_logging


def _repository(ctx):
    """Open the SQLite repository on first use."""
    from auctionhouse.core.storage import SQLiteRepository

    if ctx.obj.get("repository") is None:
        config = ctx.obj["config"]
        config.ensure_dirs()
        ctx.obj["repository"] = SQLiteRepository(config.db_path)
    return ctx.obj["repository"]


def _find_auction(ctx, auction_id: int):
    try:
        return _repository(ctx).get_auction(auction_id)
    except KeyError:
        raise click.ClickException(f"Auction {auction_id} not found")


def _find_member(ctx, unique_id: str):
    try:
        return _repository(ctx).get_member(unique_id)
    except KeyError:
        raise click.ClickException(f"Member {unique_id} not found")


def _format_auction(auction) -> str:
    state = "closed" if auction.is_closed else "open"
    winner = f", winner={auction.winner.name}" if auction.winner else ""
    return (
        f"  #{auction.auction_id} {auction.title} [{state}] "
        f"price={auction.current_price} ends={auction.end_utc.isoformat()}"
        f" bids={len(auction.bids)}{winner}"
    )


def _echo_report(report) -> None:
    for decision in report.decisions:
        mark = "✓ accepted" if decision.accepted else "✗ declined"
        click.echo(
            f"  {mark}: auction #{decision.auction.auction_id} bid #{decision.bid.bid_id} "
            f"{decision.bid.bidder.name} {decision.bid.amount}"
        )
    for auction in report.closed:
        outcome = f"won by {auction.winner.name} at {auction.current_price}" if auction.winner else "no winner"
        click.echo(f"  🔨 closed: auction #{auction.auction_id} {auction.title} ({outcome})")
    if not report.decisions and not report.closed:
        click.echo("  Nothing to do.")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False), help="JSON config file")
@click.option("--db", "db_path", default=None, type=click.Path(dir_okay=False), help="SQLite database file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, config_path, db_path):
    """Auction House - timed auction bid resolution"""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc))

    if db_path:
        config.db_path = Path(db_path)

    level = logging.DEBUG if debug else config.level
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["repository"] = None


# =============================================================================
# Member Commands
# =============================================================================


@cli.group()
def member():
    """Member management commands"""
    pass


@member.command("add")
@click.argument("name")
@click.option("--id", "unique_id", default=None, help="Unique id (generated if omitted)")
@click.pass_context
def member_add(ctx, name, unique_id):
    """Register a member"""
    from auctionhouse.core.model import Member

    try:
        new_member = Member(name=name, unique_id=unique_id) if unique_id else Member(name=name)
        _repository(ctx).add(new_member)
    except AuctionHouseError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"✓ Member added: {new_member.name}")
    click.echo(f"  ID: {new_member.unique_id}")


@member.command("list")
@click.pass_context
def member_list(ctx):
    """List all members"""
    members = _repository(ctx).list_members()
    if not members:
        click.echo("No members found.")
        return

    for known in members:
        click.echo(f"  {known.unique_id}: {known.name}")


# =============================================================================
# Auction Commands
# =============================================================================


@cli.group()
def auction():
    """Auction commands"""
    pass


@auction.command("create")
@click.option("--title", required=True, help="Listing title")
@click.option("--seller", required=True, help="Seller member id")
@click.option("--start-price", required=True, type=Decimal, help="Start price")
@click.option("--ends-in", type=float, default=None, help="Minutes until the auction ends")
@click.option("--end", "end_text", default=None, help="End time (ISO-8601 with offset)")
@click.pass_context
def auction_create(ctx, title, seller, start_price, ends_in, end_text):
    """List a new auction starting now"""
    from auctionhouse.core.model import Auction
    from auctionhouse.utils.timeutil import parse_timestamp, utc_now

    if (ends_in is None) == (end_text is None):
        raise click.UsageError("Give exactly one of --ends-in or --end")

    start = utc_now()
    try:
        end = start + timedelta(minutes=ends_in) if end_text is None else parse_timestamp(end_text)
        new_auction = Auction(
            title=title,
            seller=_find_member(ctx, seller),
            start_price=start_price,
            start_utc=start,
            end_utc=end,
        )
        _repository(ctx).add(new_auction)
    except (AuctionHouseError, ValueError) as exc:
        raise click.ClickException(str(exc))

    click.echo(f"✓ Auction created: #{new_auction.auction_id} {new_auction.title}")
    click.echo(f"  Start price: {new_auction.start_price}")
    click.echo(f"  Ends: {new_auction.end_utc.isoformat()}")


@auction.command("list")
@click.option("--open", "only_open", is_flag=True, help="Only show open auctions")
@click.pass_context
def auction_list(ctx, only_open):
    """List auctions"""
    auctions = _repository(ctx).list_auctions()
    if only_open:
        auctions = [a for a in auctions if not a.is_closed]
    if not auctions:
        click.echo("No auctions found.")
        return

    for listed in auctions:
        click.echo(_format_auction(listed))


@auction.command("show")
@click.argument("auction_id", type=int)
@click.pass_context
def auction_show(ctx, auction_id):
    """Show one auction with its bids"""
    shown = _find_auction(ctx, auction_id)

    click.echo(_format_auction(shown))
    click.echo(f"  Seller: {shown.seller.name}")
    if shown.close_utc:
        click.echo(f"  Closed: {shown.close_utc.isoformat()}")
    click.echo("  Bids:")
    for bid in shown.bids:
        active = " *" if bid is shown.active_bid else ""
        click.echo(
            f"    #{bid.bid_id} {bid.bidder.name} {bid.amount} "
            f"{bid.received_on_utc.isoformat()} {bid.state.name}{active}"
        )


# =============================================================================
# Bid Commands
# =============================================================================


@cli.group()
def bid():
    """Bid commands"""
    pass


@bid.command("place")
@click.argument("auction_id", type=int)
@click.option("--bidder", required=True, help="Bidder member id")
@click.option("--amount", required=True, type=Decimal, help="Offered amount")
@click.pass_context
def bid_place(ctx, auction_id, bidder, amount):
    """Submit a bid; it is resolved by the next cycle"""
    from auctionhouse.core.model import Bid
    from auctionhouse.utils.timeutil import utc_now

    target = _find_auction(ctx, auction_id)
    try:
        placed = Bid(bidder=_find_member(ctx, bidder), amount=amount, received_on_utc=utc_now(), auction=target)
        _repository(ctx).add(placed)
    except AuctionHouseError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"✓ Bid #{placed.bid_id} submitted: {placed.amount} on auction #{auction_id} (pending)")


# =============================================================================
# Cycle Commands
# =============================================================================


def _auctioneer(ctx):
    from auctionhouse.core.execution import Auctioneer, LoggingListener

    return Auctioneer(_repository(ctx), listener=LoggingListener())


@cli.command("run")
@click.pass_context
def run(ctx):
    """Run one work cycle: resolve bids, close due auctions"""
    try:
        report = _auctioneer(ctx).run_cycle()
    except AuctionIntegrityError as exc:
        click.echo(f"❌ Integrity violation, nothing was committed: {exc}", err=True)
        ctx.exit(2)

    click.echo(f"Cycle at {report.now.isoformat()}")
    _echo_report(report)


@cli.command("watch")
@click.option("--interval", type=float, default=None, help="Seconds between cycles (config: cycle_interval)")
@click.option("--cycles", type=int, default=0, help="Stop after N cycles (0 = run until interrupted)")
@click.pass_context
def watch(ctx, interval, cycles):
    """Run work cycles on a fixed schedule"""
    if interval is None:
        interval = ctx.obj["config"].cycle_interval
    auctioneer = _auctioneer(ctx)

    click.echo(f"Running a cycle every {interval}s. Press Ctrl+C to stop.")
    try:
        while True:
            try:
                report = auctioneer.run_cycle()
            except AuctionIntegrityError as exc:
                click.echo(f"❌ Integrity violation, halting: {exc}", err=True)
                ctx.exit(2)
            click.echo(f"Cycle {auctioneer.cycles_run} at {report.now.isoformat()}")
            _echo_report(report)

            if cycles and auctioneer.cycles_run >= cycles:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nStopped.")

    click.echo(f"Stats: {auctioneer.stats()}")


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
def demo():
    """Run an in-memory auction from bidding to close"""
    from auctionhouse.core.execution import Auctioneer, EventRecorder
    from auctionhouse.core.model import Auction, Bid, Member
    from auctionhouse.core.storage import InMemoryRepository
    from auctionhouse.utils.timeutil import utc_now

    click.echo("=" * 60)
    click.echo("  AUCTION HOUSE - DEMO")
    click.echo("=" * 60)
    click.echo()

    now = utc_now()
    repo = InMemoryRepository()
    recorder = EventRecorder()
    auctioneer = Auctioneer(repo, listener=recorder)

    seller = repo.add(Member(name="Seller"))
    alice = repo.add(Member(name="Alice"))
    bob = repo.add(Member(name="Bob"))
    carol = repo.add(Member(name="Carol"))

    listing = repo.add(Auction(
        title="Vintage camera",
        seller=seller,
        start_price=50,
        start_utc=now - timedelta(hours=2),
        end_utc=now + timedelta(hours=1),
    ))
    click.echo(f"📦 {listing.title} listed at {listing.start_price}")

    repo.add(Bid(bidder=alice, amount=60, received_on_utc=now - timedelta(minutes=30), auction=listing))
    repo.add(Bid(bidder=bob, amount=70, received_on_utc=now - timedelta(minutes=20), auction=listing))
    click.echo("💸 Alice bids 60, Bob bids 70")
    _echo_report(auctioneer.run_cycle(now))
    click.echo(f"  Current price: {listing.current_price}")
    click.echo()

    repo.add(Bid(bidder=carol, amount=51, received_on_utc=now - timedelta(minutes=10), auction=listing))
    click.echo("💸 Carol bids 51")
    _echo_report(auctioneer.run_cycle(now))
    click.echo(f"  Current price: {listing.current_price}")
    click.echo()

    click.echo("⏰ End time passes...")
    _echo_report(auctioneer.run_cycle(listing.end_utc))
    click.echo()

    click.echo(f"📊 Events delivered: {len(recorder.events)}")
    click.echo(f"  Stats: {auctioneer.stats()}")
    click.echo()
    click.echo("✅ Demo complete!")


if __name__ == "__main__":
    cli()
