"""Security preset inspection."""

from rich.console import Console
from rich.table import Table

from uniguard.core.options import SecurityPreset
from uniguard.core.presets import get_preset

console = Console()


def _fmt(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "[dim]no[/dim]"
    return str(value)


def presets():
    """Show the limits of each security preset."""
    table = Table(title="Security Presets")
    table.add_column("Setting", style="cyan")
    for preset in SecurityPreset:
        table.add_column(preset.value)

    configs = [get_preset(preset) for preset in SecurityPreset]

    rows = [
        ("Max prompt length", lambda c: c.input_validation.max_prompt_length),
        ("Max messages", lambda c: c.input_validation.max_messages_length),
        ("Sanitize inputs", lambda c: c.input_validation.sanitize_inputs),
        ("Blocked patterns", lambda c: len(c.input_validation.blocked_patterns)),
        ("Requests / minute", lambda c: c.rate_limiting.max_requests_per_minute),
        ("Requests / hour", lambda c: c.rate_limiting.max_requests_per_hour),
        ("PII detection", lambda c: c.pii_detection.enabled),
        ("PII redaction", lambda c: c.pii_detection.redact),
        ("Moderation", lambda c: c.moderation.enabled),
        ("On violation", lambda c: c.moderation.on_violation),
    ]
    for label, getter in rows:
        table.add_row(label, *(_fmt(getter(config)) for config in configs))

    console.print(table)
