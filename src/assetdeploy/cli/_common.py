"""Shared utilities for all CLI command modules.

Provides the Rich console instance, config/engine loading and the
fatal-error exit path used by every command.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from .. import CONFIG_PATH
from ..config import build_engine, load_config
from ..engine import AssetSyncEngine
from ..errors import AssetDeployError
from ..models import DeployConfig

from rich.console import Console
from rich.markup import escape

console = Console()
logger = logging.getLogger("assetdeploy.cli")

FATAL_ERRORS = (AssetDeployError, ClientError, BotoCoreError, ValueError, OSError)


def load_cli_config(config_path: str, bucket: Optional[str] = None) -> DeployConfig:
    """Load config and apply command-line overrides, exiting on a bad file."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except AssetDeployError as exc:
        fail(exc)
    if bucket:
        config.bucket = bucket
    return config


def engine_or_exit(config: DeployConfig) -> AssetSyncEngine:
    """Build the engine, exiting with status 1 on incomplete config."""
    try:
        return build_engine(config)
    except ValueError as exc:
        fail(exc)


def fail(exc: BaseException) -> None:
    """Report a fatal error and exit non-zero."""
    logger.debug("Fatal error", exc_info=exc)
    console.print(f"[bold red]Error:[/] {escape(str(exc))}")
    sys.exit(1)
