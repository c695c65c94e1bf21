"""Status and init commands."""

from __future__ import annotations

from pathlib import Path

import click

from ._common import CONFIG_PATH, FATAL_ERRORS, console, engine_or_exit, fail, load_cli_config
from ..config import save_config
from ..models import DeployConfig, SourceType, StoreType
from ..removal_manifest import parse_timestamp

from rich.panel import Panel
from rich.table import Table


def register_status_commands(main: click.Group) -> None:
    """Register the status and init commands."""

    @main.command("status")
    @click.option("--config", "config_path", default=CONFIG_PATH, type=click.Path(), help="Config file.")
    @click.option("--bucket", default=None, help="Override the configured bucket.")
    def status(config_path, bucket):
        """Show pending uploads and assets marked for removal."""
        config = load_cli_config(config_path, bucket)
        engine = engine_or_exit(config)

        try:
            info = engine.status()
        except FATAL_ERRORS as exc:
            fail(exc)

        console.print()
        console.print(
            Panel(
                f"Store: [cyan]{info['store']}[/]\n"
                f"Local assets: [bold]{info['local_assets']}[/]\n"
                f"Remote assets: [bold]{info['remote_assets']}[/] "
                f"in {info['logical_names']} logical name(s)\n"
                f"Pending uploads: [bold]{len(info['pending_uploads'])}[/]\n"
                f"Marked for removal: [bold]{len(info['tombstones'])}[/]",
                title="assetdeploy",
                border_style="cyan",
            )
        )

        if info["tombstones"]:
            removed_ttl = config.retention.removed_ttl
            table = Table(title="Removal manifest")
            table.add_column("Key", style="cyan")
            table.add_column("Removed at")
            table.add_column("Eligible for deletion")
            now = engine.now()
            for key, removed_at in sorted(info["tombstones"].items()):
                try:
                    age = (now - parse_timestamp(removed_at)).total_seconds()
                except FATAL_ERRORS as exc:
                    fail(ValueError(f"Bad removal timestamp for {key}: {exc}"))
                eligible = "[green]yes[/]" if age >= removed_ttl else "[dim]no[/]"
                table.add_row(key, removed_at, eligible)
            console.print(table)

        console.print()

    @main.command("init")
    @click.option("--config", "config_path", default=CONFIG_PATH, type=click.Path(), help="Config file to write.")
    @click.option("--bucket", default=None, help="S3 bucket name.")
    @click.option("--local-path", default=None, type=click.Path(), help="Use a local directory store instead of S3.")
    @click.option("--public-dir", default="public", type=click.Path(), help="Build output directory.")
    @click.option("--manifest", "manifest_path", default=None, type=click.Path(), help="Read assets from a JSON build manifest.")
    @click.option("--prefix", default="", help="Key prefix for uploaded assets.")
    @click.option("--force", is_flag=True, help="Overwrite an existing config file.")
    def init(config_path, bucket, local_path, public_dir, manifest_path, prefix, force):
        """Write a starter deploy configuration."""
        target = Path(config_path)
        if target.exists() and not force:
            console.print(f"[yellow]{target} already exists.[/] Use --force to overwrite.")
            raise SystemExit(1)

        if not bucket and not local_path:
            console.print("[bold red]Error:[/] pass --bucket or --local-path")
            raise SystemExit(1)

        config = DeployConfig(
            store_type=StoreType.LOCAL if local_path else StoreType.S3,
            bucket=bucket,
            local_path=Path(local_path) if local_path else None,
            source=SourceType.MANIFEST if manifest_path else SourceType.DIRECTORY,
            public_dir=Path(public_dir),
            manifest_path=Path(manifest_path) if manifest_path else None,
            prefix=prefix,
        )
        save_config(config, target)
        console.print(f"  [green]Config written:[/] {target}")
