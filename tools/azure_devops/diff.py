"""Unified diffs for pull requests.

Azure DevOps does not serve a patch for a pull request, so one is built here:
for each change entry of an iteration, the file is fetched from the target
branch (before) and the source branch (after) and diffed line by line.

Each file block carries a git-style header:

    diff --git a/src/app.py b/src/app.py
    index 1a2b3c4..1a2b3c4 100644
    --- a/src/app.py
    +++ b/src/app.py
    @@ -1,3 +1,3 @@
    ...

The index line of an edit repeats the same object id on both sides since the
changes endpoint exposes a single id per entry.
"""

from __future__ import annotations

import difflib

from ado_core.errors import MissingBranchReference
from logging_config import get_logger

from .iterations import ChangeEntry, PullRequestSource

logger = get_logger("ado.diff")

NO_CHANGES_MESSAGE = "No changes found in this pull request."

MISSING_CONTENT = "<Unable to retrieve file content>"
MISSING_OLD_CONTENT = "<Unable to retrieve old content>"
MISSING_NEW_CONTENT = "<Unable to retrieve new content>"

CONTEXT_LINES = 3
FILE_MODE = "100644"
NULL_OBJECT_ID = "0000000"
DEV_NULL = "/dev/null"
NO_NEWLINE_MARKER = "\\ No newline at end of file"


def _split_lines(content: str) -> list[str]:
    """Split on LF only, keeping terminators. CRLF and CR are normalized first."""
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    if not normalized:
        return []
    lines = [line + "\n" for line in normalized.split("\n")]
    lines[-1] = lines[-1][:-1]
    if not lines[-1]:
        lines.pop()
    return lines


def _terminate(line: str) -> str:
    if line.endswith("\n"):
        return line
    return f"{line}\n{NO_NEWLINE_MARKER}\n"


def generate_unified_diff(
    old_path: str,
    new_path: str,
    old_content: str,
    new_content: str,
    object_id: str | None = None,
    is_new_file: bool = False,
    is_deleted_file: bool = False,
) -> str:
    """Render one file's change as a git-style unified diff.

    Args:
        old_path: "a"-prefixed path
        new_path: "b"-prefixed path
        old_content: Content before the change ("" for an added file)
        new_content: Content after the change ("" for a deleted file)
        object_id: Blob id used on the index line
        is_new_file: Emit new-file mode and a /dev/null old side
        is_deleted_file: Emit deleted-file mode and a /dev/null new side

    Returns:
        The diff block ending in a newline, or "" when the contents do not differ
    """
    body = list(
        difflib.unified_diff(
            _split_lines(old_content),
            _split_lines(new_content),
            fromfile=DEV_NULL if is_new_file else old_path,
            tofile=DEV_NULL if is_deleted_file else new_path,
            n=CONTEXT_LINES,
        )
    )
    if not body:
        return ""

    header = [f"diff --git {old_path} {new_path}"]
    if is_new_file:
        header.append(f"new file mode {FILE_MODE}")
        header.append(f"index {NULL_OBJECT_ID}..{object_id or 'new'}")
    elif is_deleted_file:
        header.append(f"deleted file mode {FILE_MODE}")
        header.append(f"index {object_id or 'old'}..{NULL_OBJECT_ID}")
    elif object_id:
        header.append(f"index {object_id}..{object_id} {FILE_MODE}")

    return "\n".join(header) + "\n" + "".join(_terminate(line) for line in body)


class DiffSynthesizer:
    """Builds the diff report for a pull request.

    All I/O goes through the injected PullRequestSource and runs strictly one
    call after another. Nothing is cached between calls, so the same inputs
    against unchanged remote state give byte-identical output.

    Usage:
        synthesizer = DiffSynthesizer(AzureDevOpsPullRequestSource(client, project, repo))
        report = await synthesizer.compute_diff(42)
    """

    def __init__(self, source: PullRequestSource) -> None:
        self.source = source

    async def compute_diff(
        self,
        pull_request_id: int,
        file_path: str | None = None,
        iteration_id: int | None = None,
    ) -> str:
        """Compute the diff report for a pull request.

        Args:
            pull_request_id: Pull request ID
            file_path: Restrict the report to this file
            iteration_id: Iteration to diff; defaults to the latest

        Returns:
            Per-file diff blocks separated by blank lines, or NO_CHANGES_MESSAGE

        Raises:
            MissingBranchReference: If the source or target ref is missing
            MissingIterationData: If iteration metadata is malformed
            TransportFailure: If any API call other than a content fetch fails
        """
        refs = await self.source.get_pull_request_refs(pull_request_id)
        if not refs.source_ref_name:
            raise MissingBranchReference("Source branch reference is missing in pull request data")
        if not refs.target_ref_name:
            raise MissingBranchReference("Target branch reference is missing in pull request data")

        source_branch = refs.source_branch
        target_branch = refs.target_branch
        if not source_branch:
            raise MissingBranchReference("Invalid source branch name extracted from sourceRefName")
        if not target_branch:
            raise MissingBranchReference("Invalid target branch name extracted from targetRefName")

        if iteration_id is None:
            iteration_id = await self._latest_iteration(pull_request_id)

        changes = await self.source.list_changes(pull_request_id, iteration_id, file_path)
        logger.info(
            f"Diffing {len(changes)} change(s) from {source_branch} into {target_branch}",
            extra={"pr_id": pull_request_id, "iteration_id": iteration_id},
        )
        if not changes:
            return NO_CHANGES_MESSAGE

        blocks = []
        for change in changes:
            block = await self._diff_change(change, source_branch, target_branch)
            if block:
                blocks.append(block)

        return "\n".join(blocks)

    async def _latest_iteration(self, pull_request_id: int) -> int:
        iterations = await self.source.list_iterations(pull_request_id)
        if not iterations:
            # Iteration metadata may not be populated yet
            return 1
        return iterations[-1].id

    async def _diff_change(self, change: ChangeEntry, source_branch: str, target_branch: str) -> str:
        old_path = f"a{change.path}"
        new_path = f"b{change.path}"
        kind = change.kind

        if kind == "add":
            new_content = await self.source.fetch_file_content(change.path, source_branch)
            return generate_unified_diff(
                old_path,
                new_path,
                "",
                new_content or MISSING_CONTENT,
                change.object_id,
                is_new_file=True,
            )

        if kind == "delete":
            old_content = await self.source.fetch_file_content(change.path, target_branch)
            return generate_unified_diff(
                old_path,
                new_path,
                old_content or MISSING_CONTENT,
                "",
                change.object_id,
                is_deleted_file=True,
            )

        if kind == "edit":
            old_content = await self.source.fetch_file_content(change.path, target_branch)
            new_content = await self.source.fetch_file_content(change.path, source_branch)
            return generate_unified_diff(
                old_path,
                new_path,
                old_content or MISSING_OLD_CONTENT,
                new_content or MISSING_NEW_CONTENT,
                change.object_id or "unknown",
            )

        logger.debug(f"Skipping {change.change_type} change", extra={"path": change.path})
        return ""
