"""CLI entry point for delegation-gateway.

Invoked as::

    delegation-gateway [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m delegation_gateway.cli.main

Commands
--------
serve      Run the HTTP gateway
keygen     Generate a signing key and print its did:key
inspect    Decode a delegation container (CAR file)
version    Show version information
"""
from __future__ import annotations

import datetime
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

console = Console()


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="delegation-gateway")
def cli() -> None:
    """Exchange Sign-In With Ethereum proofs for signed capability delegations"""


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from delegation_gateway import __version__

    console.print(f"[bold]delegation-gateway[/bold] v{__version__}")


# ------------------------------------------------------------------
# keygen
# ------------------------------------------------------------------


@cli.command(name="keygen")
def keygen_command() -> None:
    """Generate an Ed25519 signing key for the gateway.

    Prints the hex seed to use as DELEGATION_GATEWAY_SIGNING_KEY and the
    did:key delegations will be issued under.
    """
    from delegation_gateway.identity import Ed25519Keypair

    keypair = Ed25519Keypair.generate()
    console.print(f"  Signing key: {keypair.seed.hex()}")
    console.print(f"  Agent DID:   [bold]{keypair.did}[/bold]")


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@cli.command(name="serve")
@click.option("--host", default=None, help="Bind address (overrides DELEGATION_GATEWAY_HOST).")
@click.option("--port", type=int, default=None, help="TCP port (overrides DELEGATION_GATEWAY_PORT).")
@click.option(
    "--domain",
    default=None,
    help="Domain sign-in messages must name (overrides DELEGATION_GATEWAY_DOMAIN).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Root logging level.",
)
def serve_command(
    host: str | None,
    port: int | None,
    domain: str | None,
    log_level: str | None,
) -> None:
    """Run the delegation gateway HTTP server."""
    from delegation_gateway.config import GatewaySettings
    from delegation_gateway.server import build_gateway, run_server

    overrides = {
        key: value
        for key, value in {
            "host": host,
            "port": port,
            "domain": domain,
            "log_level": log_level,
        }.items()
        if value is not None
    }
    try:
        settings = GatewaySettings(**overrides)
    except ValidationError as exc:
        console.print(f"[red]Error:[/red] invalid configuration:\n{exc}")
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    gateway = build_gateway(settings)
    console.print(
        f"[green]delegation-gateway[/green] listening on "
        f"http://{settings.host}:{settings.port} for domain [bold]{settings.domain}[/bold]"
    )
    run_server(gateway, host=settings.host, port=settings.port)


# ------------------------------------------------------------------
# inspect
# ------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument("car_file", type=click.Path(exists=True, dir_okay=False))
def inspect_command(car_file: str) -> None:
    """Decode and verify the delegations in CAR_FILE."""
    from delegation_gateway.errors import EncodingError
    from delegation_gateway.ipld import decode, read_car

    try:
        contents = read_car(Path(car_file).read_bytes())
        delegations = [(cid, decode(contents.get(cid))) for cid in contents.roots]
    except EncodingError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        sys.exit(1)
    except KeyError as exc:
        console.print(f"[red]Error:[/red] root block missing: {exc}")
        sys.exit(1)

    table = Table(title=f"Delegations — {Path(car_file).name}", show_header=True)
    table.add_column("CID", style="cyan")
    table.add_column("Issuer")
    table.add_column("Audience")
    table.add_column("Capabilities")
    table.add_column("Expires")
    table.add_column("Signature", justify="center")

    all_valid = True
    for cid, delegation in delegations:
        valid = delegation.verify()
        all_valid = all_valid and valid
        expires = (
            datetime.datetime.fromtimestamp(delegation.expiration, tz=datetime.timezone.utc).isoformat()
            if delegation.expiration is not None
            else "never"
        )
        table.add_row(
            str(cid),
            str(delegation.issuer),
            str(delegation.audience),
            "\n".join(f"{c.can} on {c.with_}" for c in delegation.capabilities),
            expires,
            "[green]valid[/green]" if valid else "[red]INVALID[/red]",
        )

    console.print(table)
    console.print(f"\n  Roots:  {len(contents.roots)}")
    console.print(f"  Blocks: {len(contents.blocks)}")
    if not all_valid:
        sys.exit(1)


if __name__ == "__main__":
    cli()
