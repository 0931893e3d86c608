"""Command-line entry point for quiz-sheets."""

from __future__ import annotations

import json
import logging
import sys

import click

from .commands import cache as cache_cmd
from .commands import load as load_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH, is_published_sheet_url
from .core.errors import describe_error
from .core.http_client import FetchError

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """Quiz Sheets - cached loading of quiz questions from published spreadsheets."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command("load")
@click.argument("source")
@click.option("--game-type", help="Keep only rows whose game_type column matches")
@click.option("--difficulty", help="Keep rows for this difficulty (Easy/Medium/Hard/All)")
@click.option("--json", "as_json", is_flag=True, help="Print records as JSON")
@click.pass_context
def load(
    ctx: click.Context,
    source: str,
    game_type: str | None,
    difficulty: str | None,
    as_json: bool,
) -> None:
    """Load SOURCE (a configured source name or a sheet URL) and print its rows."""
    try:
        state = load_cmd.run(
            ctx.obj["config_path"],
            source,
            game_type=game_type,
            difficulty=difficulty,
        )
    except FetchError as exc:
        details = describe_error(exc)
        click.echo(f"❌ {details.title}: {details.message}", err=True)
        for hint in details.hints:
            click.echo(f"   - {hint}", err=True)
        sys.exit(1)
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Load failed: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(state.records, ensure_ascii=False, indent=2))
        return

    origin = "cache" if state.is_from_cache else "network"
    click.echo(f"✅ {len(state.records)} record(s) loaded from {origin}")
    for record in state.records:
        summary = ", ".join(f"{k}={v}" for k, v in record.items() if v)
        click.echo(f"   {summary}")


@cli.group("cache")
def cache() -> None:
    """Inspect or clear the local sheet cache."""


@cache.command("status")
@click.pass_context
def cache_status(ctx: click.Context) -> None:
    """Show cached sheets and their age."""
    try:
        info = cache_cmd.status(ctx.obj["config_path"])
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Cache status failed: {exc}", err=True)
        sys.exit(1)

    click.echo(f"🗄️  Cache file: {info['path']} (ttl {info['ttl_seconds']:.0f}s)")
    if not info['entries']:
        click.echo("   (empty)")
    for entry in info['entries']:
        age = "unreadable" if entry['age_seconds'] is None else f"{entry['age_seconds']:.0f}s old"
        flag = " [expired]" if entry['expired'] else ""
        click.echo(f"   {entry['key']}: {age}, {entry['size']} bytes{flag}")


@cache.command("clear")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Delete every cached sheet."""
    try:
        removed = cache_cmd.clear(ctx.obj["config_path"])
        click.echo(f"✅ Removed {removed} cached sheet(s)")
    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Cache clear failed: {exc}", err=True)
        sys.exit(1)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show system status and configuration."""
    try:
        config_manager = ConfigManager(ctx.obj["config_path"])
        click.echo(f"📄 Config file: {config_manager.config_path}")

        if config_manager.validate_config():
            click.echo("✅ Configuration is valid")
        else:
            click.echo("❌ Configuration validation failed")
            return

        sources = config_manager.get_enabled_sources()
        click.echo(f"📡 Enabled sources: {len(sources)}")
        for name, source_config in sources.items():
            url = source_config.get('url', '')
            marker = "" if is_published_sheet_url(url) else " (not a published CSV link)"
            click.echo(f"   {name}: {url}{marker}")

        fetch = config_manager.get_fetch_settings()
        click.echo(
            f"🔁 Fetch: {fetch['max_attempts']} attempt(s), "
            f"backoff from {fetch['base_delay']}s, timeout {fetch['timeout']}s"
        )

    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Error checking status: {exc}", err=True)


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
