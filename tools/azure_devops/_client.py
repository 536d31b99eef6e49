"""Azure DevOps API client and shared utilities.

This module contains the HTTP client, authentication, and file-content
fetching shared by all Azure DevOps tool modules.
"""

from __future__ import annotations

from typing import Any

import httpx

from ado_core.config import AzureDevOpsConfig
from ado_core.errors import NotConfiguredError, TransportFailure
from logging_config import get_logger

logger = get_logger("ado.http")


class AzureDevOpsClient:
    """Authenticated access to the Azure DevOps REST API.

    A new httpx.AsyncClient is opened per request. Requests are made once;
    failures surface as TransportFailure and are never retried.

    Usage:
        client = AzureDevOpsClient(AzureDevOpsConfig.get_instance())
        pr = await client.request("GET", f"{project}/_apis/git/pullrequests/{pr_id}")
    """

    def __init__(
        self,
        config: AzureDevOpsConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings (organization URL, PAT, defaults)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.config = config
        self._transport = transport

    def _get_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Get headers for Azure DevOps API requests."""
        headers = {
            "Authorization": self.config.auth_header(),
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_data: dict | list | None = None,
        headers: dict[str, str] | None = None,
        api_version: str | None = None,
        expect_json: bool = True,
    ) -> Any:
        """Make an Azure DevOps API request against the organization URL.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH)
            endpoint: Path relative to the organization, e.g. "{project}/_apis/git/..."
            params: Query parameters
            json_data: JSON body data
            headers: Extra headers merged over the defaults
            api_version: Override for the configured api-version
            expect_json: Treat a non-JSON success body as a failure

        Returns:
            Parsed JSON for JSON responses, raw text otherwise (only when
            expect_json is False), or a success dict for empty responses

        Raises:
            NotConfiguredError: If the organization URL or PAT is missing
            TransportFailure: On an error status, a failed request, or an
                unexpected non-JSON body
        """
        if not self.config.is_configured():
            raise NotConfiguredError()

        url = f"{self.config.base_url}/{endpoint.lstrip('/')}"
        return await self.request_url(
            method,
            url,
            params=params,
            json_data=json_data,
            headers=headers,
            api_version=api_version,
            expect_json=expect_json,
        )

    async def request_url(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json_data: dict | list | None = None,
        headers: dict[str, str] | None = None,
        api_version: str | None = None,
        expect_json: bool = True,
    ) -> Any:
        """Make a request to an absolute URL, such as a `_links` href.

        Query parameters already in the URL are kept; `params` are merged
        over them. api-version is added only when neither carries one.
        """
        if not self.config.is_configured():
            raise NotConfiguredError()

        full_url = httpx.URL(url)
        if params:
            full_url = full_url.copy_merge_params(params)
        if "api-version" not in full_url.params:
            full_url = full_url.copy_set_param("api-version", api_version or self.config.api_version)

        logger.debug(f"{method} {full_url}")

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                # No params= here: httpx would replace the URL's query with it
                response = await client.request(
                    method,
                    full_url,
                    headers=self._get_headers(headers),
                    json=json_data,
                    timeout=self.config.timeout,
                )
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportFailure(None, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            error_msg = response.text
            try:
                error_data = response.json()
                if isinstance(error_data, dict):
                    error_msg = error_data.get("message", response.text)
            except ValueError:
                pass
            logger.error(f"{method} {url} returned {response.status_code}")
            raise TransportFailure(response.status_code, error_msg, body=response.text)

        if response.status_code == 204 or not response.content:
            return {"success": True}

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError as e:
                raise TransportFailure(
                    response.status_code,
                    f"Response indicated JSON but failed to parse: {response.text[:100]}...",
                    body=response.text,
                ) from e

        if expect_json:
            # e.g. the HTML sign-in page served for a rejected PAT
            logger.error(f"{method} {url} returned non-JSON content ({content_type or 'no content type'})")
            raise TransportFailure(
                response.status_code,
                f"Expected a JSON response but got {content_type or 'no content type'}",
                body=response.text,
            )

        return response.text

    async def get_file_content(
        self,
        project: str,
        repository: str,
        path: str,
        version: str,
    ) -> str:
        """Get the raw content of a file at a branch.

        Args:
            project: Project name or ID
            repository: Repository name or ID
            path: File path within the repository
            version: Branch name (without refs/heads/)

        Returns:
            File content, or an empty string if it could not be retrieved
        """
        try:
            result = await self.request(
                "GET",
                f"{project}/_apis/git/repositories/{repository}/items",
                params={
                    "path": path,
                    "versionDescriptor.version": version,
                    "versionDescriptor.versionType": "branch",
                    "download": "true",
                },
                headers={"Accept": "application/octet-stream"},
                expect_json=False,
            )
        except Exception as e:
            logger.warning(f"Could not fetch {path}@{version}: {e}", extra={"path": path})
            return ""

        if isinstance(result, dict):
            content = result.get("content")
            return content if isinstance(content, str) else ""

        if isinstance(result, str):
            # Placeholder-style error markers come back as text
            if result.startswith("<") and result.endswith(">"):
                logger.warning(f"Got error marker for {path}@{version}: {result}", extra={"path": path})
                return ""
            return result

        return ""


# Default client shared by the tool handlers
_client: AzureDevOpsClient | None = None


def get_client() -> AzureDevOpsClient:
    """Get the shared client, creating it from the environment on first use."""
    global _client
    if _client is None:
        _client = AzureDevOpsClient(AzureDevOpsConfig.get_instance())
    return _client


def set_client(client: AzureDevOpsClient | None) -> None:
    """Replace the shared client. Pass None to rebuild from config on next use."""
    global _client
    _client = client


def is_configured() -> bool:
    """Check if Azure DevOps is configured."""
    return get_client().config.is_configured()
