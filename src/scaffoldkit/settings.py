"""Engine configuration."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "SCAFFOLDKIT_"


class EngineSettings(BaseModel):
    """Settings shared by every invocation in a process."""

    catalog_dir: Path | None = Field(
        default=None,
        description="Directory holding declarative generators",
    )
    log_level: str = Field(default="WARNING", description="Root log level")
    archive_root: str = Field(
        default="project",
        description="Top-level folder name inside generated archives",
    )
    temp_dir: Path | None = Field(
        default=None,
        description="Parent for private extraction directories",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate level is a standard logging level name."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        """Build settings from ``SCAFFOLDKIT_*`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for field_name in cls.model_fields:
            value = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
            if value:
                values[field_name] = value
        if "catalog_dir" not in values and environ.get(f"{ENV_PREFIX}CATALOG"):
            values["catalog_dir"] = environ[f"{ENV_PREFIX}CATALOG"]
        return cls.model_validate(values)
