"""Run a prompt through the security pipeline."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from uniguard.core.options import GenerateOptions, SecurityPreset
from uniguard.exceptions import PluginError, UniGuardError
from uniguard.application.engines.rate_limiter import RateLimiter
from uniguard.application.engines.security_plugins import (
    PluginRegistry,
    SecurityPipeline,
    SecurityPipelineResult,
    register_builtin_plugins,
)

console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def scan(
    prompt: str = typer.Argument(..., help="Prompt text to check"),
    preset: SecurityPreset = typer.Option(
        SecurityPreset.MODERATE, "--preset", "-p", help="Security preset"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
    plugins: bool = typer.Option(
        False, "--plugins", help="Use the built-in plugins instead of the built-in checks"
    ),
    model: str = typer.Option("default", "--model", help="Model name"),
):
    """Check a prompt and show what would be sent to the provider."""
    options = GenerateOptions(model=model, prompt=prompt, security=preset)

    try:
        result = run_async(_run(options, user, plugins))
    except PluginError as e:
        console.print(f"[red]BLOCKED[/red] by {e.plugin_name}: {escape(e.message)}")
        raise typer.Exit(1)
    except UniGuardError as e:
        console.print(f"[red]BLOCKED:[/red] {escape(e.message)}")
        raise typer.Exit(1)

    summary = result.results.to_api_response()
    console.print("[green]ALLOWED[/green]")
    console.print(f"Modified: {summary['modified']}")
    if summary["pii_detected"]:
        console.print(f"PII: {', '.join(summary['pii_detected'])}")
    console.print(f"Prompt: {escape(result.options.get_prompt_text())}")
    console.print(f"[dim]{summary['execution_time_ms']} ms[/dim]")


async def _run(
    options: GenerateOptions, user: Optional[str], use_plugins: bool
) -> SecurityPipelineResult:
    registry = PluginRegistry()
    if use_plugins:
        await register_builtin_plugins(registry)

    try:
        pipeline = SecurityPipeline(registry, rate_limiter=RateLimiter())
        return await pipeline.execute(options, user_id=user)
    finally:
        await registry.clear()
