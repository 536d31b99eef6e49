"""Azure DevOps pull request tools package.

Provides pull request tools over the Azure DevOps REST API: listing,
reading, creating, updating, commenting, and unified diffs.

Requires:
- AZURE_DEVOPS_ORG_URL (or AZURE_DEVOPS_ORG): Organization URL or name
- AZURE_DEVOPS_PAT: Personal Access Token

Optional:
- AZURE_DEVOPS_PROJECT / AZURE_DEVOPS_REPOSITORY: Defaults for tool calls
"""

from __future__ import annotations

from ado_core import __version__

MODULE_NAME = "azure_devops"
MODULE_VERSION = __version__

from logging_config import get_logger

from ._client import AzureDevOpsClient, get_client, is_configured, set_client
from .diff import DiffSynthesizer, generate_unified_diff
from .iterations import (
    AzureDevOpsPullRequestSource,
    ChangeEntry,
    Iteration,
    PullRequestRefs,
    PullRequestSource,
    locate_file_change,
    paths_match,
)
from .pull_requests import TOOLS

logger = get_logger("ado")

SYSTEM_PROMPT = """
## Azure DevOps Pull Requests
You can work with pull requests in Azure DevOps repositories.

- `ado_list_pull_requests` / `ado_get_pull_request` - View PRs (with linked work items)
- `ado_create_pull_request` / `ado_update_pull_request` - Manage PRs
- `ado_create_pull_request_comment` - Comment on a PR, optionally on a file and line
- `ado_get_pull_request_diff` - Get the unified diff of a PR, one file or one iteration

`project` and `repository` may be omitted when defaults are configured.
""".strip()


# --- Lifecycle Hooks ---


async def initialize() -> None:
    """Initialize Azure DevOps module."""
    config = get_client().config
    if is_configured():
        logger.info(f"Azure DevOps configured for {config.base_url} (v{MODULE_VERSION})")
        if config.default_project:
            logger.info(f"Default project: {config.default_project}")
        if config.default_repository:
            logger.info(f"Default repository: {config.default_repository}")
    else:
        logger.warning("Not configured - AZURE_DEVOPS_ORG_URL and/or AZURE_DEVOPS_PAT not set, tools will be disabled")
        global TOOLS
        TOOLS = []


async def cleanup() -> None:
    """Cleanup on module unload."""
    set_client(None)


__all__ = [
    "MODULE_NAME",
    "MODULE_VERSION",
    "SYSTEM_PROMPT",
    "TOOLS",
    "initialize",
    "cleanup",
    "AzureDevOpsClient",
    "AzureDevOpsPullRequestSource",
    "ChangeEntry",
    "DiffSynthesizer",
    "Iteration",
    "PullRequestRefs",
    "PullRequestSource",
    "generate_unified_diff",
    "get_client",
    "locate_file_change",
    "paths_match",
    "set_client",
]
