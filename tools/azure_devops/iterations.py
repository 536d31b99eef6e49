"""Pull request iterations and their change entries.

An iteration is one snapshot of a pull request's proposed changes; each
push adds another. This module holds read-only projections of the API's
iteration and change responses, the PullRequestSource interface the diff
synthesizer reads through, and the path matching used to find a file among
an iteration's changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ado_core.errors import FileNotInPullRequest, MissingIterationData
from logging_config import get_logger

from ._client import AzureDevOpsClient

logger = get_logger("ado")

BRANCH_PREFIX = "refs/heads/"


def strip_branch_prefix(ref_name: str | None) -> str:
    """Turn refs/heads/feature/x into feature/x."""
    if not ref_name:
        return ""
    return ref_name.replace(BRANCH_PREFIX, "", 1) if ref_name.startswith(BRANCH_PREFIX) else ref_name


@dataclass(frozen=True)
class PullRequestRefs:
    """Source and target refs of a pull request."""

    source_ref_name: str | None
    target_ref_name: str | None

    @property
    def source_branch(self) -> str:
        return strip_branch_prefix(self.source_ref_name)

    @property
    def target_branch(self) -> str:
        return strip_branch_prefix(self.target_ref_name)


@dataclass(frozen=True)
class Iteration:
    """One numbered snapshot of a pull request."""

    id: int


@dataclass(frozen=True)
class ChangeEntry:
    """One file's change within an iteration."""

    path: str
    change_type: str
    object_id: str | None = None
    original_object_id: str | None = None
    commit_id: str | None = None
    change_tracking_id: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ChangeEntry:
        item = data.get("item") or {}
        return cls(
            path=item.get("path", ""),
            change_type=str(data.get("changeType", "")),
            object_id=item.get("objectId"),
            original_object_id=item.get("originalObjectId"),
            commit_id=item.get("commitId"),
            change_tracking_id=data.get("changeTrackingId"),
        )

    @property
    def kind(self) -> str | None:
        """Classify as "add", "delete" or "edit".

        The API reports combined kinds such as "edit, rename". Returns None
        for kinds that carry no content change (a pure rename, for one).
        """
        kinds = {part.strip().lower() for part in self.change_type.split(",")}
        for kind in ("add", "delete", "edit"):
            if kind in kinds:
                return kind
        return None


class PullRequestSource(ABC):
    """Read access to one repository's pull requests.

    Implementations must not mutate remote state.
    """

    @abstractmethod
    async def get_pull_request_refs(self, pull_request_id: int) -> PullRequestRefs:
        """Get the source and target refs of a pull request."""

    @abstractmethod
    async def list_iterations(self, pull_request_id: int) -> list[Iteration]:
        """List iterations in the order the server returns them (ascending)."""

    @abstractmethod
    async def list_changes(
        self,
        pull_request_id: int,
        iteration_id: int,
        path_filter: str | None = None,
    ) -> list[ChangeEntry]:
        """List the change entries of one iteration."""

    @abstractmethod
    async def fetch_file_content(self, path: str, version: str) -> str:
        """Get file text at a branch. Returns "" on any failure, never raises."""


class AzureDevOpsPullRequestSource(PullRequestSource):
    """PullRequestSource backed by the Azure DevOps REST API."""

    def __init__(self, client: AzureDevOpsClient, project: str, repository: str) -> None:
        self.client = client
        self.project = project
        self.repository = repository

    @property
    def _repo_endpoint(self) -> str:
        return f"{self.project}/_apis/git/repositories/{self.repository}"

    async def get_pull_request_refs(self, pull_request_id: int) -> PullRequestRefs:
        result = await self.client.request(
            "GET", f"{self._repo_endpoint}/pullrequests/{pull_request_id}"
        )
        return PullRequestRefs(
            source_ref_name=result.get("sourceRefName"),
            target_ref_name=result.get("targetRefName"),
        )

    async def list_iterations(self, pull_request_id: int) -> list[Iteration]:
        result = await self.client.request(
            "GET", f"{self._repo_endpoint}/pullRequests/{pull_request_id}/iterations"
        )
        if not isinstance(result, dict) or not isinstance(result.get("value"), list):
            raise MissingIterationData(
                f"Iteration data missing for pull request {pull_request_id}"
            )
        return [Iteration(id=int(it["id"])) for it in result["value"]]

    async def list_changes(
        self,
        pull_request_id: int,
        iteration_id: int,
        path_filter: str | None = None,
    ) -> list[ChangeEntry]:
        params = {}
        if path_filter:
            params["path"] = path_filter
        result = await self.client.request(
            "GET",
            f"{self._repo_endpoint}/pullRequests/{pull_request_id}/iterations/{iteration_id}/changes",
            params=params,
        )
        entries = result.get("changeEntries") if isinstance(result, dict) else None
        return [ChangeEntry.from_api(entry) for entry in entries or []]

    async def fetch_file_content(self, path: str, version: str) -> str:
        return await self.client.get_file_content(self.project, self.repository, path, version)


# =============================================================================
# Path matching
# =============================================================================


def path_variants(path: str) -> list[str]:
    """Forms of a path worth trying: as given, without and with a leading
    slash, and lower-cased."""
    stripped = path.lstrip("/")
    variants = [path, stripped, f"/{stripped}", path.lower(), stripped.lower()]
    # Preserve order, drop repeats
    return list(dict.fromkeys(variants))


def paths_match(requested: str, candidate: str) -> bool:
    """Whether a change entry's path refers to the requested file."""
    candidate_lower = candidate.lower()
    return any(candidate_lower == variant.lower() for variant in path_variants(requested))


async def locate_file_change(
    source: PullRequestSource,
    pull_request_id: int,
    file_path: str,
) -> tuple[int, ChangeEntry]:
    """Find the first iteration whose changes include file_path.

    Returns:
        (iteration_id, change entry)

    Raises:
        MissingIterationData: If the pull request has no iterations
        FileNotInPullRequest: If no iteration touches the file
    """
    iterations = await source.list_iterations(pull_request_id)
    if not iterations:
        raise MissingIterationData("No iterations found for pull request")

    normalized = file_path.lstrip("/")
    for iteration in iterations:
        changes = await source.list_changes(pull_request_id, iteration.id)
        for change in changes:
            if paths_match(normalized, change.path):
                logger.debug(
                    f"Matched {change.path} in iteration {iteration.id}",
                    extra={"pr_id": pull_request_id, "iteration_id": iteration.id},
                )
                return iteration.id, change

    raise FileNotInPullRequest(f"File {normalized} not found in any iteration")
