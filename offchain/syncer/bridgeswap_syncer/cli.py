"""
CLI entry point for the bridge swap syncer.
"""

import asyncio
import json
from typing import Optional

import typer
import structlog

from .claim_refund import compute_claimable_and_refundable_evm_swaps, compute_refundable_btc_chain_swaps
from .config import get_settings
from .services import Services

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ]
)

app = typer.Typer(
    name="bridgeswap-syncer",
    help="Bridge swap status reconciliation",
    add_completion=False,
)


@app.command()
def sync(user_id: str = typer.Argument(..., help="User address")) -> None:
    """
    Sync one user's swaps against LDS and on-chain data.
    """

    async def _sync() -> int:
        services = Services.from_settings(get_settings())
        try:
            return await services.syncer.sync(user_id)
        finally:
            await services.close()

    updated = asyncio.run(_sync())
    typer.echo(f"Updated {updated} swaps for {user_id.lower()}")


@app.command("claim-refund")
def claim_refund(user_id: str = typer.Argument(..., help="User address")) -> None:
    """
    Print the lockups and BTC swaps the user can claim or refund.
    """

    async def _compute() -> dict:
        services = Services.from_settings(get_settings())
        try:
            await services.syncer.sync(user_id)
            evm = await compute_claimable_and_refundable_evm_swaps(
                user_id, services.evm_indexer, services.heights, services.store
            )
            btc = await compute_refundable_btc_chain_swaps(user_id, services.store, services.btc_indexer)
            return {"evm": evm.to_api(), "btc": btc.to_api()}
        finally:
            await services.close()

    typer.echo(json.dumps(asyncio.run(_compute()), indent=2))


@app.command()
def run(
    once: bool = typer.Option(
        False,
        "--once",
        help="Run once and exit (useful for testing)",
    ),
    user: Optional[list[str]] = typer.Option(
        None,
        "--user",
        "-u",
        help="User address to sync (repeatable, added to WATCHED_USERS)",
    ),
) -> None:
    """
    Periodically sync the swaps of every watched user.
    """
    settings = get_settings()
    users = settings.watched_user_list()
    for extra in user or []:
        if extra.lower() not in users:
            users.append(extra.lower())

    if not users:
        typer.echo("Warning: No users to sync. Set WATCHED_USERS or use --user.")
        return

    async def _run() -> None:
        services = Services.from_settings(settings)
        try:
            if once:
                updated = await services.syncer.run_once(users)
                typer.echo(f"Updated {updated} swaps for {len(users)} users")
            else:
                await services.syncer.run(users, settings.sync_interval_seconds)
        finally:
            await services.close()

    if not once:
        typer.echo("Running in continuous mode. Press Ctrl+C to stop.")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        typer.echo("\nStopping syncer...")


@app.command()
def serve() -> None:
    """Run the HTTP API."""
    from .main import run as run_api
    run_api()


@app.command()
def version() -> None:
    """Show the syncer version."""
    from bridgeswap_syncer import __version__
    typer.echo(f"bridgeswap-syncer v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
