"""Centralized configuration for the Azure DevOps tools.

Loads environment variables and provides a unified configuration interface.
The config object is handed to the HTTP client at construction and lives for
the whole process.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from typing import ClassVar

from dotenv import load_dotenv

DEFAULT_API_VERSION = "7.1"


@dataclass
class AzureDevOpsConfig:
    """Configuration for the Azure DevOps connection."""

    # Connection
    org_url: str = ""
    pat: str = ""

    # Defaults used when a tool call omits project/repository
    default_project: str = ""
    default_repository: str = ""

    # HTTP
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0

    # Singleton instance
    _instance: ClassVar["AzureDevOpsConfig | None"] = None

    @classmethod
    def get_instance(cls) -> "AzureDevOpsConfig":
        """Get the singleton configuration instance."""
        if cls._instance is None:
            cls._instance = cls._load_from_env()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached instance. Useful for testing."""
        cls._instance = None

    @classmethod
    def _load_from_env(cls) -> "AzureDevOpsConfig":
        """Load configuration from environment variables."""
        load_dotenv()

        return cls(
            org_url=os.getenv("AZURE_DEVOPS_ORG_URL") or os.getenv("AZURE_DEVOPS_ORG", ""),
            pat=os.getenv("AZURE_DEVOPS_PAT", ""),
            default_project=os.getenv("AZURE_DEVOPS_PROJECT", ""),
            default_repository=os.getenv("AZURE_DEVOPS_REPOSITORY", ""),
            api_version=os.getenv("AZURE_DEVOPS_API_VERSION", DEFAULT_API_VERSION),
            timeout=float(os.getenv("AZURE_DEVOPS_TIMEOUT", "30")),
        )

    def is_configured(self) -> bool:
        """Check if Azure DevOps is configured."""
        return bool(self.org_url and self.pat)

    @property
    def base_url(self) -> str:
        """Organization URL. A bare organization name maps to dev.azure.com."""
        org = self.org_url
        if org.startswith("http"):
            return org.rstrip("/")
        return f"https://dev.azure.com/{org}"

    def auth_header(self) -> str:
        """Basic auth header value for the personal access token."""
        token = base64.b64encode(f":{self.pat}".encode()).decode()
        return f"Basic {token}"


def get_config() -> AzureDevOpsConfig:
    """Get the current configuration."""
    return AzureDevOpsConfig.get_instance()
