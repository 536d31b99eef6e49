"""Errors raised by the Azure DevOps tools.

Everything derives from ValueError so tool handlers can report any of them
the same way they report bad arguments.
"""

from __future__ import annotations


class AzureDevOpsError(ValueError):
    """Base class for Azure DevOps failures."""


class NotConfiguredError(AzureDevOpsError):
    """Organization URL or personal access token is missing."""

    def __init__(self) -> None:
        super().__init__(
            "Azure DevOps not configured (AZURE_DEVOPS_ORG_URL and AZURE_DEVOPS_PAT required)"
        )


class TransportFailure(AzureDevOpsError):
    """The REST call returned an error status or never completed."""

    def __init__(self, status_code: int | None, message: str, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        status = status_code if status_code is not None else "no response"
        super().__init__(f"Azure DevOps API error ({status}): {message}")


class MissingBranchReference(AzureDevOpsError):
    """A pull request is missing its source or target branch."""


class MissingIterationData(AzureDevOpsError):
    """Iteration metadata for a pull request is absent."""


class FileNotInPullRequest(AzureDevOpsError):
    """A path could not be found in any iteration of a pull request."""
