#!/usr/bin/env python3
"""
basedex Command Line Interface

Usage:
    basedex smoke
    basedex simulate [--pools N] [--trades N] [--seed N]
    basedex report [--rule-set NAME|PATH] [--output-dir DIR] [--pools N] [--trades N] [--seed N]
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config import load_config
from ..exceptions import BaseDexException
from ..exchange import get_amount_out
from ..logger import configure_logging
from ..reports import collect_snapshot, load_rule_set, write_report
from .simulation import build_simulation

console = Console()

WEI = 10**18


def _load(config_path: Optional[str], log_level: Optional[str]):
    try:
        cfg = load_config(config_path)
    except BaseDexException as e:
        raise click.ClickException(str(e))
    configure_logging(
        log_level=log_level or cfg.logging.level,
        file_output=cfg.logging.file_output,
        log_file=Path(cfg.logging.file) if cfg.logging.file else None,
    )
    return cfg


def _simulate(cfg, pools: int, trades: int, seed: int):
    try:
        return build_simulation(pools=pools, trades=trades, seed=seed, config=cfg)
    except BaseDexException as e:
        raise click.ClickException(f"Simulation failed: {e}")


def _fmt(amount: int) -> str:
    """Common-unit amount as a decimal with 4 places."""
    return f"{amount / WEI:,.4f}"


@click.group()
@click.version_option(version="0.1.0", prog_name="basedex")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config.toml")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """basedex constant-product exchange tools."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


@cli.command("smoke")
def smoke_cmd():
    """Print the output of a 1000-unit swap into a 100000/50000 pool."""
    click.echo(get_amount_out(1000, 100000, 50000))


@cli.command("simulate")
@click.option("--pools", default=3, show_default=True, type=click.IntRange(1, 50), help="Number of pools")
@click.option("--trades", default=100, show_default=True, type=click.IntRange(0), help="Number of swaps")
@click.option("--seed", default=0, show_default=True, type=int, help="Random seed")
@click.pass_context
def simulate_cmd(ctx: click.Context, pools: int, trades: int, seed: int):
    """Run a seeded trading simulation and show the resulting pools.

    Examples:

        basedex simulate --pools 5 --trades 1000
    """
    cfg = _load(ctx.obj["config_path"], ctx.obj["log_level"])
    dex, _ = _simulate(cfg, pools, trades, seed)

    table = Table(title="Pools")
    table.add_column("Pool", style="yellow")
    table.add_column("Pair")
    table.add_column("Reserve A", justify="right")
    table.add_column("Reserve B", justify="right")
    table.add_column("Fee (bps)", justify="right")
    table.add_column("Trades", justify="right")
    table.add_column("Volume", justify="right")
    table.add_column("TVL", justify="right")
    for info in dex.get_all_pools():
        stats = dex.get_pool_stats(info.id)
        table.add_row(
            info.id,
            f"{info.token_a}/{info.token_b}",
            _fmt(info.reserve_a),
            _fmt(info.reserve_b),
            str(info.fee_bps),
            str(stats.trades),
            _fmt(stats.volume),
            _fmt(stats.tvl),
        )
    console.print(table)

    ex = dex.get_exchange_stats()
    click.echo(f"Total trades: {ex.total_trades}")
    click.echo(f"Total volume: {_fmt(ex.total_volume)}")
    click.echo(f"Total fees:   {_fmt(ex.total_fees_collected)}")
    click.echo(f"Users:        {ex.total_users}")
    click.echo(f"State root:   {dex.state_root()}")


@cli.command("report")
@click.option("--rule-set", "-r", "rule_set", default="liquidity", show_default=True,
              help="Bundled rule set (liquidity, performance), a configured name, or a TOML path")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None,
              help="Report directory (default: [reports] output_dir)")
@click.option("--pools", default=3, show_default=True, type=click.IntRange(1, 50))
@click.option("--trades", default=100, show_default=True, type=click.IntRange(0))
@click.option("--seed", default=0, show_default=True, type=int)
@click.pass_context
def report_cmd(ctx: click.Context, rule_set: str, output_dir: Optional[str], pools: int, trades: int, seed: int):
    """Simulate, evaluate a rule set and write a JSON report.

    Examples:

        basedex report --rule-set performance -o ./monitoring
    """
    cfg = _load(ctx.obj["config_path"], ctx.obj["log_level"])
    try:
        rules = load_rule_set(rule_set, cfg.reports.rule_sets)
        dex, _ = build_simulation(pools=pools, trades=trades, seed=seed, config=cfg)
        snapshot = collect_snapshot(dex)
        findings = rules.evaluate(snapshot)
        path = write_report(rules.name, snapshot, findings, output_dir or cfg.reports.output_dir)
    except BaseDexException as e:
        raise click.ClickException(str(e))

    for finding in findings.alerts:
        click.echo(click.style(f"ALERT: {finding.message}", fg="red"))
    for finding in findings.recommendations:
        click.echo(click.style(f"RECOMMENDATION: {finding.message}", fg="yellow"))
    click.echo(f"Alerts: {len(findings.alerts)}")
    click.echo(f"Recommendations: {len(findings.recommendations)}")
    click.echo(f"Report written to {path}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
