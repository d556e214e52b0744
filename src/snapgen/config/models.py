"""Configuration models describing snapgen settings."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SnapgenBaseModel(BaseModel):
    """Shared configuration for snapgen Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class ScanSettings(SnapgenBaseModel):
    """Options controlling what is scanned and where the snapshot lands.

    Attributes:
        path: Root directory to scan.
        out: Destination SQLite database; a timestamped name is used when unset.
        exclude: Glob patterns excluded from the scan, relative to ``path``.
        name: Free-form label stored in the snapshot manifest.
        batch_size: Number of entry records written per transaction.
        chunk_size_kb: Read size used while hashing file content.
    """

    path: str = "."
    out: Optional[str] = None
    exclude: List[str] = Field(default_factory=list)
    name: str = ""
    batch_size: int = Field(default=200, gt=0)
    chunk_size_kb: int = Field(default=1024, gt=0)


class OutputSettings(SnapgenBaseModel):
    """Console output and side-artifact switches.

    Attributes:
        quiet: Suppress progress and summary output.
        sign: Write a ``.sig`` file holding the content signature.
        checksum: Write a ``.sha256`` checksum of the database file.
    """

    quiet: bool = False
    sign: bool = False
    checksum: bool = False


class LoggingSettings(SnapgenBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file; rotated once it reaches ``max_size_mb``.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = Field(default=10, gt=0)
    backup_count: int = Field(default=3, ge=0)

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"unknown logging level {value!r}")
        return normalized


class SnapgenConfig(SnapgenBaseModel):
    """Top-level configuration struct for snapgen.

    Attributes:
        scan: Scan target and persistence settings.
        output: Console and artifact settings.
        logging: Logging configuration.
    """

    scan: ScanSettings = Field(default_factory=ScanSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "SnapgenBaseModel",
    "ScanSettings",
    "OutputSettings",
    "LoggingSettings",
    "SnapgenConfig",
]
