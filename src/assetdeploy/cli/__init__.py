"""
assetdeploy CLI -- upload, clean and deploy fingerprinted assets.

The main Click group is defined here and every command module
registers itself via its register function.

Entry point: assetdeploy.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="assetdeploy")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose):
    """assetdeploy -- fingerprinted static asset sync.

    Upload new builds. Keep rollback targets. Retire the rest safely.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .deploy_cmd import register_deploy_commands  # noqa: E402
from .status import register_status_commands  # noqa: E402

register_deploy_commands(main)
register_status_commands(main)
