"""Deploy commands: upload, clean, deploy."""

from __future__ import annotations

import subprocess

import click

from ._common import CONFIG_PATH, FATAL_ERRORS, console, engine_or_exit, fail, load_cli_config


def _print_keys(verb: str, past: str, keys: list[str], dry_run: bool) -> None:
    label = f"Would {verb}" if dry_run else past
    if not keys:
        console.print(f"  [dim]Nothing to {verb}.[/]")
        return
    console.print(f"  [bold]{label} {len(keys)} asset(s):[/]")
    for key in keys:
        console.print(f"    [cyan]{key}[/]")


def _retention(config, version_limit, version_ttl, removed_ttl) -> dict:
    policy = config.retention
    return {
        "version_limit": policy.version_limit if version_limit is None else version_limit,
        "version_ttl": policy.version_ttl if version_ttl is None else version_ttl,
        "removed_ttl": policy.removed_ttl if removed_ttl is None else removed_ttl,
    }


def retention_options(func):
    """Shared retention flags for clean and deploy."""
    func = click.option(
        "--removed-ttl", type=float, default=None,
        help="Seconds a retired asset is kept after it is first marked removed.",
    )(func)
    func = click.option(
        "--version-ttl", type=float, default=None,
        help="Seconds an old version is always kept.",
    )(func)
    func = click.option(
        "--version-limit", type=click.IntRange(min=0), default=None,
        help="Old versions kept per asset regardless of age.",
    )(func)
    return func


def register_deploy_commands(main: click.Group) -> None:
    """Register the upload, clean and deploy commands."""

    @main.command("upload")
    @click.option("--config", "config_path", default=CONFIG_PATH, type=click.Path(), help="Config file.")
    @click.option("--bucket", default=None, help="Override the configured bucket.")
    @click.option("--dry-run", is_flag=True, help="Show what would be uploaded.")
    def upload(config_path, bucket, dry_run):
        """Upload local assets missing from the store."""
        config = load_cli_config(config_path, bucket)
        engine = engine_or_exit(config)

        console.print(f"\n  Uploading to [cyan]{engine.store.name}[/]...")
        try:
            uploaded = engine.upload(dry_run=dry_run)
        except FATAL_ERRORS as exc:
            fail(exc)
        _print_keys("upload", "Uploaded", uploaded, dry_run)
        console.print()

    @main.command("clean")
    @click.option("--config", "config_path", default=CONFIG_PATH, type=click.Path(), help="Config file.")
    @click.option("--bucket", default=None, help="Override the configured bucket.")
    @click.option("--dry-run", is_flag=True, help="Show what would be deleted.")
    @retention_options
    def clean(config_path, bucket, dry_run, version_limit, version_ttl, removed_ttl):
        """Delete old asset versions that are out of retention.

        Examples:

            assetdeploy clean --dry-run

            assetdeploy clean --version-limit 5 --removed-ttl 604800
        """
        config = load_cli_config(config_path, bucket)
        engine = engine_or_exit(config)

        console.print(f"\n  Cleaning [cyan]{engine.store.name}[/]...")
        try:
            deleted = engine.clean(
                dry_run=dry_run,
                **_retention(config, version_limit, version_ttl, removed_ttl),
            )
        except FATAL_ERRORS as exc:
            fail(exc)
        _print_keys("delete", "Deleted", deleted, dry_run)
        console.print()

    @main.command("deploy")
    @click.option("--config", "config_path", default=CONFIG_PATH, type=click.Path(), help="Config file.")
    @click.option("--bucket", default=None, help="Override the configured bucket.")
    @click.option("--dry-run", is_flag=True, help="Show what would change.")
    @click.option("--no-clean", is_flag=True, help="Upload only, skip the clean pass.")
    @click.option("--before-clean", "hook", default=None, help="Shell command to run between upload and clean.")
    @retention_options
    def deploy(config_path, bucket, dry_run, no_clean, hook, version_limit, version_ttl, removed_ttl):
        """Upload new assets, run an optional hook, then clean.

        Examples:

            assetdeploy deploy

            assetdeploy deploy --before-clean "systemctl reload app"
        """
        config = load_cli_config(config_path, bucket)
        engine = engine_or_exit(config)

        def run_hook():
            if hook and not dry_run:
                console.print(f"  Running hook: [dim]{hook}[/]")
                subprocess.run(hook, shell=True, check=True)

        console.print(f"\n  Deploying to [cyan]{engine.store.name}[/]...")
        try:
            result = engine.deploy(
                clean=not no_clean,
                before_clean=run_hook,
                dry_run=dry_run,
                **_retention(config, version_limit, version_ttl, removed_ttl),
            )
        except subprocess.CalledProcessError as exc:
            fail(exc)
        except FATAL_ERRORS as exc:
            fail(exc)

        _print_keys("upload", "Uploaded", result["uploaded"], dry_run)
        if not no_clean:
            _print_keys("delete", "Deleted", result["deleted"], dry_run)
        console.print()
