"""Azure DevOps pull request tools.

Tools for listing, reading, creating and updating pull requests, commenting
on them (optionally anchored to a file and line), and reading their diffs.
"""

from __future__ import annotations

import json
from typing import Any

from ado_core.errors import AzureDevOpsError
from logging_config import get_logger

from .._base import ToolContext, ToolDef
from ._client import AzureDevOpsClient, get_client
from .diff import DiffSynthesizer
from .iterations import (
    AzureDevOpsPullRequestSource,
    ChangeEntry,
    locate_file_change,
    strip_branch_prefix,
)

logger = get_logger("ado")

PR_STATUSES = ["active", "completed", "abandoned"]
THREAD_STATUSES = ["active", "fixed", "pending", "wontfix", "closed"]


def _resolve_repo(args: dict[str, Any]) -> tuple[str, str]:
    """Project and repository from the arguments, else the configured defaults."""
    config = get_client().config
    project = args.get("project") or config.default_project
    repo = args.get("repository") or config.default_repository
    return project, repo


def _repo_endpoint(project: str, repo: str) -> str:
    return f"{project}/_apis/git/repositories/{repo}"


def _branch_ref(branch: str) -> str:
    return branch if branch.startswith("refs/") else f"refs/heads/{branch}"


def _work_item_refs(work_item_ids: list[int]) -> list[dict[str, str]]:
    base_url = get_client().config.base_url
    return [
        {"id": str(wi_id), "url": f"{base_url}/_apis/wit/workItems/{wi_id}"}
        for wi_id in work_item_ids
    ]


# =============================================================================
# Handler Functions
# =============================================================================


async def list_pull_requests(args: dict[str, Any], ctx: ToolContext) -> str:
    """List pull requests in a repository."""
    project, repo = _resolve_repo(args)
    if not project or not repo:
        return "Error: project and repository are required"

    params = {}
    if args.get("status"):
        if args["status"] not in PR_STATUSES:
            return f"Error: status must be one of {', '.join(PR_STATUSES)}"
        params["searchCriteria.status"] = args["status"]
    if args.get("top"):
        params["$top"] = args["top"]

    try:
        result = await get_client().request(
            "GET", f"{_repo_endpoint(project, repo)}/pullrequests", params=params
        )
        prs = [
            {
                "pullRequestId": pr["pullRequestId"],
                "title": pr.get("title"),
                "status": pr.get("status"),
                "createdBy": pr.get("createdBy", {}).get("displayName"),
                "sourceRefName": strip_branch_prefix(pr.get("sourceRefName")),
                "targetRefName": strip_branch_prefix(pr.get("targetRefName")),
                "isDraft": pr.get("isDraft", False),
            }
            for pr in result.get("value", [])
        ]
        logger.info(f"Found {len(prs)} pull requests in {project}/{repo}")
        return json.dumps(prs, indent=2)
    except Exception as e:
        logger.error(f"Error listing pull requests: {e}")
        return f"Error: {e}"


async def get_pull_request(args: dict[str, Any], ctx: ToolContext) -> str:
    """Get details of a pull request, including its linked work items."""
    project, repo = _resolve_repo(args)
    pr_id = args.get("pullRequestId")
    if not all([project, repo, pr_id]):
        return "Error: project, repository, and pullRequestId are required"

    client = get_client()
    try:
        result = await client.request("GET", f"{_repo_endpoint(project, repo)}/pullrequests/{pr_id}")
        linked_work_items = await _linked_work_items(client, result, pr_id)
        return json.dumps({**result, "linkedWorkItems": linked_work_items}, indent=2)
    except Exception as e:
        logger.error(f"Error getting pull request: {e}", extra={"pr_id": pr_id})
        return f"Error: {e}"


async def _linked_work_items(
    client: AzureDevOpsClient, pull_request: dict[str, Any], pr_id: Any
) -> list[dict[str, Any]]:
    """Work items behind the pull request's `_links.workItems` href, or [] if unavailable."""
    href = pull_request.get("_links", {}).get("workItems", {}).get("href")
    if not href:
        return []
    try:
        work_items = await client.request_url("GET", href)
        return [
            {"id": int(item["id"]), "url": item.get("url")}
            for item in work_items.get("value", [])
        ]
    except (AzureDevOpsError, AttributeError, KeyError, TypeError) as e:
        logger.warning(f"Could not fetch linked work items: {e}", extra={"pr_id": pr_id})
        return []


async def create_pull_request(args: dict[str, Any], ctx: ToolContext) -> str:
    """Create a new pull request."""
    project, repo = _resolve_repo(args)
    title = args.get("title", "")
    source = args.get("sourceBranch", "")
    target = args.get("targetBranch", "")

    if not all([project, repo, title, source, target]):
        return "Error: project, repository, title, sourceBranch, and targetBranch are required"

    data: dict[str, Any] = {
        "sourceRefName": _branch_ref(source),
        "targetRefName": _branch_ref(target),
        "title": title,
    }
    if args.get("description"):
        data["description"] = args["description"]
    if args.get("reviewers"):
        data["reviewers"] = [{"id": reviewer} for reviewer in args["reviewers"]]
    if args.get("workItemIds"):
        data["workItemRefs"] = _work_item_refs(args["workItemIds"])
    if args.get("isDraft") is not None:
        data["isDraft"] = args["isDraft"]

    try:
        result = await get_client().request(
            "POST", f"{_repo_endpoint(project, repo)}/pullrequests", json_data=data
        )
        logger.info(f"Created pull request {result['pullRequestId']}")
        return json.dumps(
            {
                "created": True,
                "pullRequestId": result["pullRequestId"],
                "url": result.get("url"),
            },
            indent=2,
        )
    except Exception as e:
        logger.error(f"Error creating pull request: {e}")
        return f"Error: {e}"


async def update_pull_request(args: dict[str, Any], ctx: ToolContext) -> str:
    """Update a pull request."""
    project, repo = _resolve_repo(args)
    pr_id = args.get("pullRequestId")
    if not all([project, repo, pr_id]):
        return "Error: project, repository, and pullRequestId are required"

    data: dict[str, Any] = {}
    if args.get("title") is not None:
        data["title"] = args["title"]
    if args.get("description") is not None:
        data["description"] = args["description"]
    if args.get("status") is not None:
        if args["status"] not in PR_STATUSES:
            return f"Error: status must be one of {', '.join(PR_STATUSES)}"
        data["status"] = args["status"]
    if args.get("workItemIds") is not None:
        # Replaces the existing links
        data["workItemRefs"] = _work_item_refs(args["workItemIds"])
    if args.get("isDraft") is not None:
        data["isDraft"] = args["isDraft"]

    if not data:
        return "No fields provided to update."

    try:
        result = await get_client().request(
            "PATCH", f"{_repo_endpoint(project, repo)}/pullrequests/{pr_id}", json_data=data
        )
        return json.dumps(
            {
                "updated": True,
                "pullRequestId": result.get("pullRequestId", pr_id),
                "status": result.get("status"),
            },
            indent=2,
        )
    except Exception as e:
        logger.error(f"Error updating pull request: {e}", extra={"pr_id": pr_id})
        return f"Error: {e}"


async def create_pull_request_comment(args: dict[str, Any], ctx: ToolContext) -> str:
    """Comment on a pull request.

    Replies to an existing thread when threadId is given. Otherwise starts a
    new thread, anchored to filePath/lineNumber when a file is given.
    """
    project, repo = _resolve_repo(args)
    pr_id = args.get("pullRequestId")
    content = args.get("content", "")
    if not all([project, repo, pr_id, content]):
        return "Error: project, repository, pullRequestId, and content are required"

    status = args.get("status") or "active"
    if status not in THREAD_STATUSES:
        return f"Error: status must be one of {', '.join(THREAD_STATUSES)}"

    client = get_client()
    threads_endpoint = f"{_repo_endpoint(project, repo)}/pullRequests/{pr_id}/threads"

    try:
        if args.get("threadId"):
            result = await client.request(
                "POST",
                f"{threads_endpoint}/{args['threadId']}/comments",
                json_data={"content": content, "parentCommentId": 0, "commentType": 1},
            )
            return json.dumps(
                {"created": True, "threadId": args["threadId"], "commentId": result.get("id")},
                indent=2,
            )

        thread: dict[str, Any] = {
            "comments": [{"parentCommentId": 0, "content": content, "commentType": 1}],
            "status": status,
        }

        if args.get("filePath"):
            source = AzureDevOpsPullRequestSource(client, project, repo)
            iteration_id, change = await locate_file_change(source, pr_id, args["filePath"])
            thread.update(_file_thread_context(change, iteration_id, args.get("lineNumber") or 1))

        result = await client.request("POST", threads_endpoint, json_data=thread)
        return json.dumps({"created": True, "threadId": result.get("id")}, indent=2)
    except Exception as e:
        logger.error(f"Error creating pull request comment: {e}", extra={"pr_id": pr_id})
        return f"Error: {e}"


def _file_thread_context(change: ChangeEntry, iteration_id: int, line: int) -> dict[str, Any]:
    """Thread fields that pin a comment to a line of a file in an iteration."""
    return {
        "threadContext": {
            "filePath": change.path,
            "rightFileStart": {"line": line, "offset": 1},
            "rightFileEnd": {"line": line, "offset": 1},
        },
        "properties": {
            "Microsoft.TeamFoundation.Discussion.SourceCommitId": {
                "$type": "System.String",
                "$value": change.commit_id,
            },
            "Microsoft.TeamFoundation.Discussion.TargetCommitId": {
                "$type": "System.String",
                "$value": change.commit_id,
            },
            "Microsoft.TeamFoundation.Discussion.Iteration": {
                "$type": "System.String",
                "$value": str(iteration_id),
            },
        },
        "pullRequestThreadContext": {
            "iterationContext": {
                "firstComparingIteration": iteration_id,
                "secondComparingIteration": iteration_id,
            },
            "changeTrackingId": change.change_tracking_id,
        },
    }


async def get_pull_request_diff(args: dict[str, Any], ctx: ToolContext) -> str:
    """Get the unified diff of a pull request."""
    project, repo = _resolve_repo(args)
    pr_id = args.get("pullRequestId")
    if not all([project, repo, pr_id]):
        return "Error: project, repository, and pullRequestId are required"

    try:
        source = AzureDevOpsPullRequestSource(get_client(), project, repo)
        return await DiffSynthesizer(source).compute_diff(
            int(pr_id),
            file_path=args.get("filePath") or None,
            iteration_id=int(args["iterationId"]) if args.get("iterationId") else None,
        )
    except Exception as e:
        logger.error(f"Error getting pull request diff: {e}", extra={"pr_id": pr_id})
        return f"Error: {e}"


# =============================================================================
# Tool Definitions
# =============================================================================

_REPO_PROPERTIES = {
    "project": {"type": "string", "description": "Project name or ID (defaults to AZURE_DEVOPS_PROJECT)"},
    "repository": {"type": "string", "description": "Repository name or ID (defaults to AZURE_DEVOPS_REPOSITORY)"},
}

TOOLS = [
    ToolDef(
        name="ado_list_pull_requests",
        description="List pull requests in a repository.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "status": {"type": "string", "enum": PR_STATUSES, "description": "Filter by PR status"},
                "top": {"type": "integer", "description": "Max results"},
            },
            "required": [],
        },
        handler=list_pull_requests,
    ),
    ToolDef(
        name="ado_get_pull_request",
        description="Get details of a specific pull request, including linked work items.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "pullRequestId": {"type": "integer", "description": "ID of the pull request"},
            },
            "required": ["pullRequestId"],
        },
        handler=get_pull_request,
    ),
    ToolDef(
        name="ado_create_pull_request",
        description="Create a new pull request.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "title": {"type": "string", "description": "Title of the pull request"},
                "description": {"type": "string", "description": "Description of the pull request"},
                "sourceBranch": {"type": "string", "description": "Source branch name"},
                "targetBranch": {"type": "string", "description": "Target branch name"},
                "reviewers": {"type": "array", "items": {"type": "string"}, "description": "Reviewer IDs"},
                "workItemIds": {"type": "array", "items": {"type": "integer"}, "description": "Work item IDs to link"},
                "isDraft": {"type": "boolean", "description": "Create as draft"},
            },
            "required": ["title", "sourceBranch", "targetBranch"],
        },
        handler=create_pull_request,
    ),
    ToolDef(
        name="ado_update_pull_request",
        description="Update an existing pull request.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "pullRequestId": {"type": "integer", "description": "ID of the pull request to update"},
                "title": {"type": "string", "description": "New title"},
                "description": {"type": "string", "description": "New description"},
                "status": {"type": "string", "enum": PR_STATUSES, "description": "New status"},
                "workItemIds": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Work item IDs to link (replaces existing links)",
                },
                "isDraft": {"type": "boolean", "description": "Draft flag"},
            },
            "required": ["pullRequestId"],
        },
        handler=update_pull_request,
    ),
    ToolDef(
        name="ado_create_pull_request_comment",
        description="Add a comment to a pull request, optionally on a specific file and line.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "pullRequestId": {"type": "integer", "description": "ID of the pull request"},
                "content": {"type": "string", "description": "Comment content"},
                "threadId": {"type": "integer", "description": "Thread ID to reply to (optional)"},
                "filePath": {"type": "string", "description": "File path for file-specific comments (optional)"},
                "lineNumber": {"type": "integer", "description": "Line number for line-specific comments (optional)"},
                "status": {"type": "string", "enum": THREAD_STATUSES, "description": "Thread status (optional)"},
            },
            "required": ["pullRequestId", "content"],
        },
        handler=create_pull_request_comment,
    ),
    ToolDef(
        name="ado_get_pull_request_diff",
        description="Get the unified diff for a pull request.",
        parameters={
            "type": "object",
            "properties": {
                **_REPO_PROPERTIES,
                "pullRequestId": {"type": "integer", "description": "ID of the pull request"},
                "filePath": {"type": "string", "description": "Specific file path to get diff for (optional)"},
                "iterationId": {"type": "integer", "description": "Specific iteration to get diff for (optional)"},
            },
            "required": ["pullRequestId"],
        },
        handler=get_pull_request_diff,
    ),
]
