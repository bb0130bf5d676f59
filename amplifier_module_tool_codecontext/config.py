"""Module configuration."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

DEFAULT_STATE_DIR = ".codecontext"
DEFAULT_LIMIT = 10


@dataclass
class StoreConfig:
    """Settings shared by every tool mounted from this module."""

    project_path: Path = field(default_factory=lambda: Path(os.getcwd()))
    state_dir: str = DEFAULT_STATE_DIR
    default_limit: int = DEFAULT_LIMIT

    @classmethod
    def from_dict(cls, config: Optional[dict[str, Any]] = None) -> "StoreConfig":
        """Build from a mount config dict. Unknown keys are ignored."""
        config = config or {}

        project_path = config.get("project_path")
        if project_path:
            project_path = Path(project_path).expanduser().resolve()
        else:
            project_path = Path(os.getcwd())

        default_limit = int(config.get("default_limit", DEFAULT_LIMIT))
        if default_limit < 1:
            default_limit = DEFAULT_LIMIT

        return cls(
            project_path=project_path,
            state_dir=config.get("state_dir") or DEFAULT_STATE_DIR,
            default_limit=default_limit,
        )

    def resolve_project(self, override: Optional[str] = None) -> Path:
        """Project path for a single call, honoring a per-call override."""
        if override:
            return Path(override).expanduser().resolve()
        return self.project_path
