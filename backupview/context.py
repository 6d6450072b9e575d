"""Application context: service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backupview.config import Config
    from backupview.core.pipeline import BackupPipeline


@dataclass
class AppContext:
    """Central service container handed to the CLI commands."""

    config: Config
    pipeline: BackupPipeline
