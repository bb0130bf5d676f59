"""
CodeContext Memory Tool Module for Amplifier.

Gives AI agents a per-project, local-first memory: remembered decisions
and notes plus the results of project scans, stored in SQLite under the
project's hidden .codecontext directory and searched with ranked
full-text lookup.

Tools provided:
- init_project: Create a project's memory store
- remember: Store a memory
- recall: Search memories, ranked by match, recency and type
- ingest_scan: Store files, patterns and metrics from a project scan
- project_status: Show store statistics and recent activity
- export_memory: Export everything as JSON or Markdown
- clear_memory: Delete all memory for a project
"""

import logging

from amplifier_core import ModuleCoordinator

from .config import StoreConfig
from .errors import (
    AlreadyInitialized,
    BatchIngestError,
    CodeContextError,
    InvalidMemory,
    InvalidRecord,
    NotFound,
    StorageError,
    StoreUnavailable,
)
from .store import CodeContextStore, open_store
from .tools import (
    InitProjectTool,
    RememberTool,
    RecallTool,
    IngestScanTool,
    ProjectStatusTool,
    ExportMemoryTool,
    ClearMemoryTool,
)

__version__ = "0.1.0"
__all__ = [
    "mount",
    "CodeContextStore",
    "open_store",
    "StoreConfig",
    "CodeContextError",
    "StoreUnavailable",
    "AlreadyInitialized",
    "InvalidMemory",
    "InvalidRecord",
    "StorageError",
    "BatchIngestError",
    "NotFound",
]

logger = logging.getLogger(__name__)


async def mount(coordinator: ModuleCoordinator, config: dict | None = None):
    """
    Mount the CodeContext memory tool module.

    Args:
        coordinator: Amplifier coordinator instance
        config: Configuration dictionary with optional keys:
            - project_path: Default project root (default: current directory)
            - state_dir: Hidden state directory name (default: .codecontext)
            - default_limit: Default number of recall results (default: 10)

    Returns:
        Cleanup function
    """
    store_config = StoreConfig.from_dict(config)

    tools = [
        InitProjectTool(store_config),
        RememberTool(store_config),
        RecallTool(store_config),
        IngestScanTool(store_config),
        ProjectStatusTool(store_config),
        ExportMemoryTool(store_config),
        ClearMemoryTool(store_config),
    ]

    for tool in tools:
        await coordinator.mount("tools", tool, name=tool.name)
        logger.debug(f"Mounted memory tool: {tool.name}")

    # Hooks can open project stores with the same settings
    coordinator.set_capability("codecontext.config", store_config)
    logger.debug("Exposed codecontext config via capabilities")

    logger.info(
        f"CodeContext memory module mounted with {len(tools)} tools "
        f"(project: {store_config.project_path})"
    )

    async def cleanup():
        logger.info("CodeContext memory module cleanup complete")

    return cleanup
