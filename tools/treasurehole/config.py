"""Configuration and environment settings for the archiver."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

MAX_REF_LEVELS = 10


def default_output_dir(token: str, now: datetime | None = None) -> Path:
    """``<YYYYmmdd-HHMM>-<token>`` under the current directory."""
    now = now or datetime.now()
    return Path.cwd() / f"{now:%Y%m%d-%H%M}-{token}"


@dataclass(frozen=True)
class HoleConfig:
    """Hole API endpoints.  ``batch_size`` caps in-flight requests."""
    api_base: str = "https://tapi.thuhole.com"
    image_base: str = "https://i.thuhole.com"
    timeout: float = 30.0
    batch_size: int = 10

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

    @classmethod
    def from_env(cls) -> HoleConfig:
        return cls(
            api_base=os.getenv("HOLE_API_BASE", "https://tapi.thuhole.com").rstrip("/"),
            image_base=os.getenv("HOLE_IMAGE_BASE", "https://i.thuhole.com").rstrip("/"),
            timeout=float(os.getenv("HOLE_TIMEOUT", "30")),
            batch_size=int(os.getenv("HOLE_BATCH_SIZE", "10")),
        )


@dataclass(frozen=True)
class ArchiveConfig:
    token: str
    output_dir: Path
    ref_levels: int = 2
    proxy: str | None = None
    overwrite: bool = False
    zip_archive: bool = False
    hole: HoleConfig = field(default_factory=HoleConfig.from_env)

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("token must not be empty")
        if not 0 <= self.ref_levels <= MAX_REF_LEVELS:
            raise ValueError(f"ref_levels must be between 0 and {MAX_REF_LEVELS}, got {self.ref_levels}")

