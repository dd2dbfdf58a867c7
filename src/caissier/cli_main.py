"""
Caissier CLI.

Usage:
    caissier serve [--host HOST] [--port PORT] [--config CONFIG]
    caissier confirm SIGNATURE [--order-id ID] [--amount SOL --buyer ADDR --recipient ADDR]
    caissier pending [--limit N]
"""

import asyncio
import json
import sys

import click

from caissier.config.settings import get_settings, load_config
from caissier.di.container import DIContainer


def _load(config):
    return load_config(config) if config else get_settings()


@click.group()
def cli():
    """Caissier - Solana payment confirmation."""


@cli.command()
@click.option("--host", default=None, help="Bind host (default from config)")
@click.option("--port", default=None, type=int, help="Bind port (default from config)")
@click.option("--config", "-c", default=None, help="Config file")
def serve(host, port, config):
    """Start the confirmation API server."""
    import uvicorn

    from caissier.main import create_app

    settings = _load(config)
    app = create_app(DIContainer(settings))

    click.echo(f"Starting Caissier on {host or settings.api_host}:{port or settings.api_port}")
    uvicorn.run(
        app,
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level,
    )


@cli.command()
@click.argument("signature")
@click.option("--order-id", default=None, help="Storefront order id")
@click.option("--amount", default=None, help="Expected amount in SOL")
@click.option("--buyer", default=None, help="Expected buyer address")
@click.option("--recipient", default=None, help="Expected recipient address")
@click.option("--config", "-c", default=None, help="Config file")
def confirm(signature, order_id, amount, buyer, recipient, config):
    """Confirm one payment and print its terminal status."""
    from caissier.domain.entities import TransactionRequest
    from caissier.domain.value_objects import (
        ExpectedPaymentDetails,
        PaymentReference,
    )

    expected = None
    if any(v is not None for v in (amount, buyer, recipient)):
        if not all(v is not None for v in (amount, buyer, recipient)):
            click.echo(
                "--amount, --buyer and --recipient must be given together",
                err=True,
            )
            sys.exit(2)
        try:
            expected = ExpectedPaymentDetails(
                amount=amount, buyer=buyer, recipient=recipient
            )
        except ValueError as e:
            click.echo(str(e), err=True)
            sys.exit(2)

    request = TransactionRequest(
        reference=PaymentReference.from_identifier(signature),
        expected_details=expected,
        order_id=order_id,
    )
    container = DIContainer(_load(config))

    def on_status(status):
        if status.processing:
            click.echo(f"... {status.state.value}")

    async def run():
        try:
            return await container.orchestrator.confirm(request, on_status)
        finally:
            await container.shutdown()

    result = asyncio.run(run())
    click.echo(json.dumps(result.to_dict(), indent=2))
    if not result.success:
        sys.exit(1)


@cli.command()
@click.option("--limit", default=50, show_default=True, help="Entries to show")
@click.option("--config", "-c", default=None, help="Config file")
def pending(limit, config):
    """List payments awaiting reconciliation."""
    container = DIContainer(_load(config))

    async def run():
        try:
            return await container.reconciliation_log.pending(limit=limit)
        finally:
            await container.shutdown()

    entries = asyncio.run(run())
    if not entries:
        click.echo("No pending reconciliation entries")
        return

    for entry in entries:
        click.echo(json.dumps(entry.to_dict()))


def main():
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
