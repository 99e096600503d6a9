import asyncio
import json
from pathlib import Path

import typer

from callrelay.core.config import get_settings
from callrelay.core.logging import configure_logging
from callrelay.services.atz_client import AtzClient, AtzError
from callrelay.services.relay import CallRelay

app = typer.Typer(help="Operator tools for the Zadarma → ATZ relay.")


@app.command("list-users")
def list_users() -> None:
    """Print ATZ users so extensions can be mapped in ATZ_OWNER_MAP."""
    settings = get_settings()
    if not settings.atz_api_token:
        typer.echo("ATZ_API_TOKEN not set", err=True)
        raise typer.Exit(code=1)

    async def fetch():
        async with AtzClient.from_settings(settings) as client:
            return await client.list_users()

    try:
        users = asyncio.run(fetch())
    except AtzError as exc:
        typer.echo(f"Could not list ATZ users: {exc.body or exc}", err=True)
        raise typer.Exit(code=1)
    for user in users:
        typer.echo(f"{user.id} → {user.name}")


@app.command()
def replay(payload_file: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """Run a saved webhook payload through the relay, e.g. after an outage."""
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        payload = json.loads(payload_file.read_text(encoding="utf-8"))
    except ValueError as exc:
        typer.echo(f"Invalid JSON in {payload_file}: {exc}", err=True)
        raise typer.Exit(code=2)
    if not isinstance(payload, dict):
        typer.echo("Payload must be a JSON object", err=True)
        raise typer.Exit(code=2)
    outcome = asyncio.run(CallRelay(settings).handle_event(payload))
    typer.echo(outcome.value)


if __name__ == "__main__":
    app()
