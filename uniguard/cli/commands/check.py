"""Connectivity checks for plugin backends."""

import asyncio

import redis.asyncio as redis
from redis.exceptions import RedisError
import typer
from rich.console import Console
from rich.table import Table

from uniguard.core.config import settings

console = Console()
app = typer.Typer(help="Plugin backend checks.")


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


@app.command(name="all")
def check_all():
    """Check every plugin backend."""
    table = Table(title="Backend Check")
    table.add_column("Backend", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    redis_ok, redis_msg = run_async(_check_redis())
    table.add_row(
        "Redis",
        "[green]OK[/green]" if redis_ok else "[red]FAILED[/red]",
        redis_msg,
    )

    moderation_ok, moderation_msg = _check_moderation()
    table.add_row(
        "Moderation",
        "[green]OK[/green]" if moderation_ok else "[red]FAILED[/red]",
        moderation_msg,
    )

    console.print(table)

    if not (redis_ok and moderation_ok):
        raise typer.Exit(1)


@app.command(name="redis")
def redis_check():
    """Check Redis connection (distributed rate limiting)."""
    ok, msg = run_async(_check_redis())
    if ok:
        console.print(f"[green]Redis OK:[/green] {msg}")
    else:
        console.print(f"[red]Redis FAILED:[/red] {msg}")
        raise typer.Exit(1)


@app.command()
def moderation():
    """Check moderation plugin configuration."""
    ok, msg = _check_moderation()
    if ok:
        console.print(f"[green]Moderation OK:[/green] {msg}")
    else:
        console.print(f"[red]Moderation FAILED:[/red] {msg}")
        raise typer.Exit(1)


async def _check_redis() -> tuple[bool, str]:
    """Check Redis connectivity."""
    try:
        client = redis.from_url(settings.redis_url)
        try:
            await client.ping()
            info = await client.info("server")
        finally:
            await client.close()
        return True, f"Redis {info.get('redis_version', 'connected')}"
    except (RedisError, OSError) as e:
        return False, str(e)


def _check_moderation() -> tuple[bool, str]:
    if not settings.openai_api_key:
        return False, "UNIGUARD_OPENAI_API_KEY is not set"
    return True, settings.openai_moderation_url
