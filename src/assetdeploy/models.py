"""
Deploy data models -- configuration for stores, sources and retention.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class StoreType(str, Enum):
    """Supported object store backends."""

    S3 = "s3"
    LOCAL = "local"


class SourceType(str, Enum):
    """Where the local asset inventory comes from."""

    DIRECTORY = "directory"
    MANIFEST = "manifest"


class RetentionPolicy(BaseModel):
    """How many old versions to keep, and for how long.

    TTLs are in seconds.
    """

    version_limit: int = Field(default=2, ge=0)
    version_ttl: float = Field(default=3600, ge=0)
    removed_ttl: float = Field(default=172800, ge=0)


class DeployConfig(BaseModel):
    """Complete deploy configuration."""

    # Store
    store_type: StoreType = StoreType.S3
    bucket: Optional[str] = None
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    local_path: Optional[Path] = None

    # Local asset source
    source: SourceType = SourceType.DIRECTORY
    public_dir: Path = Path("public")
    manifest_path: Optional[Path] = None
    prefix: str = ""

    retention: RetentionPolicy = Field(default_factory=RetentionPolicy)
    upload_options: dict[str, Any] = Field(default_factory=dict)
    fingerprint_pattern: Optional[str] = None

    @field_validator("prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return value.strip("/")
