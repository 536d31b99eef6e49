"""ADO Core - Shared infrastructure for the Azure DevOps pull request tools.

This package provides the components shared by every tool module:
- Configuration loaded from the environment
- The Azure DevOps error taxonomy

Usage:
    from ado_core import get_config, AzureDevOpsError

    config = get_config()
    if not config.is_configured():
        ...
"""

from pathlib import Path

# Read version from VERSION file
_VERSION_FILE = Path(__file__).parent.parent / "VERSION"
__version__ = _VERSION_FILE.read_text().strip() if _VERSION_FILE.exists() else "0.0.0"


def get_version() -> str:
    """Get the current package version."""
    return __version__

from ado_core.config import AzureDevOpsConfig, get_config
from ado_core.errors import (
    AzureDevOpsError,
    FileNotInPullRequest,
    MissingBranchReference,
    MissingIterationData,
    NotConfiguredError,
    TransportFailure,
)

__all__ = [
    # Version
    "__version__",
    "get_version",
    # Configuration
    "AzureDevOpsConfig",
    "get_config",
    # Errors
    "AzureDevOpsError",
    "FileNotInPullRequest",
    "MissingBranchReference",
    "MissingIterationData",
    "NotConfiguredError",
    "TransportFailure",
]
