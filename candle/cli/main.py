"""
Candle CLI - Command Line Interface for the candle auction engine

Main entry point for all CLI commands.
"""

import json
import logging
from pathlib import Path

import click

from candle import __version__
from candle.cli.scenario import build_auction, load_scenario, run_step
from candle.core.config import load_settings
from candle.core.errors import AuctionError
from candle.utils.logger import setup_logging


def _load(ctx, scenario_path):
    try:
        scenario = load_scenario(Path(scenario_path))
        auction = build_auction(
            scenario,
            addresses=ctx.obj["addresses"],
            settings=ctx.obj["settings"],
        )
    except AuctionError as e:
        raise click.ClickException(str(e))
    return scenario, auction


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--addresses", is_flag=True, help="Derive hex addresses from participant names")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, addresses):
    """Candle auction engine - retroactively closed auctions"""
    try:
        settings = load_settings()
    except AuctionError as e:
        raise click.ClickException(str(e))
    setup_logging(settings, level=logging.DEBUG if debug else None)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["addresses"] = addresses


@cli.command("simulate")
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print final auction stats as JSON")
@click.pass_context
def simulate(ctx, scenario_path, as_json):
    """Replay a scenario file step by step"""
    scenario, auction = _load(ctx, scenario_path)

    failures = 0
    for step in scenario.steps:
        outcome = run_step(auction, step, addresses=ctx.obj["addresses"])
        if not outcome.ok:
            failures += 1
        click.echo(outcome.describe())

    stats = auction.stats()
    if as_json:
        click.echo(json.dumps(stats, indent=2))
        return

    click.echo("")
    click.echo(f"Steps: {len(scenario.steps)} ({failures} rejected)")
    if auction.winner_record is None:
        click.echo("Winner: not resolved")
    else:
        click.echo(f"Winner: {stats['winner'] or 'none'} "
                   f"(sample {stats['winning_sample']}, amount {stats['winning_amount']})")
    click.echo(f"Escrow: {stats['escrow_balance']} of {stats['total_deposited']} deposited")


@cli.command("timeline")
@click.argument("scenario_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def timeline(ctx, scenario_path):
    """Show the phase of every tick of the auction"""
    _, auction = _load(ctx, scenario_path)
    config = auction.config

    first = max(0, config.start_time - 1)
    for tick in range(first, auction.finalize_after + 1):
        phase = auction.get_status(tick)
        sample = auction.sample_at(tick)
        suffix = ""
        if sample is not None:
            suffix = f"  sample {sample}"
        elif tick == auction.finalize_after:
            suffix = "  finalize allowed"
        click.echo(f"{tick:>6}  {phase.name:<12}{suffix}")


if __name__ == "__main__":
    cli()
