"""Tests for AzureDevOpsClient request handling and file-content fetching."""

import base64

import httpx
import pytest

from ado_core.config import AzureDevOpsConfig
from ado_core.errors import NotConfiguredError, TransportFailure
from tests.conftest import REPO_PATH
from tools.azure_devops._client import AzureDevOpsClient, get_client, set_client


class TestRequest:
    @pytest.mark.asyncio
    async def test_sends_auth_and_api_version(self, make_client, router):
        router.add("GET", "/contoso/_apis/projects", httpx.Response(200, json={"value": []}))

        result = await make_client(router).request("GET", "/_apis/projects")

        assert result == {"value": []}
        request = router.requests[0]
        expected = base64.b64encode(b":secret-pat").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.url.params["api-version"] == "7.1"

    @pytest.mark.asyncio
    async def test_api_version_override(self, make_client, router):
        router.add("GET", "/contoso/_apis/projects", httpx.Response(200, json={}))

        await make_client(router).request("GET", "_apis/projects", api_version="7.1-preview.1")

        assert router.requests[0].url.params["api-version"] == "7.1-preview.1"

    @pytest.mark.asyncio
    async def test_returns_raw_text_for_non_json(self, make_client, router):
        router.add(
            "GET",
            "/contoso/file",
            httpx.Response(200, content=b"line 1\nline 2\n", headers={"content-type": "text/plain"}),
        )

        result = await make_client(router).request("GET", "file", expect_json=False)

        assert result == "line 1\nline 2\n"

    @pytest.mark.asyncio
    async def test_html_body_from_json_endpoint_is_a_failure(self, make_client, router):
        router.add(
            "GET",
            "/contoso/Proj/_apis/git/pullrequests/5",
            httpx.Response(200, text="<html>sign in</html>", headers={"content-type": "text/html"}),
        )

        with pytest.raises(TransportFailure) as exc_info:
            await make_client(router).request("GET", "Proj/_apis/git/pullrequests/5")

        assert exc_info.value.status_code == 200
        assert "Expected a JSON response but got text/html" in str(exc_info.value)
        assert exc_info.value.body == "<html>sign in</html>"

    @pytest.mark.asyncio
    async def test_no_content_is_success(self, make_client, router):
        router.add("DELETE", "/contoso/thing", httpx.Response(204))

        assert await make_client(router).request("DELETE", "thing") == {"success": True}

    @pytest.mark.asyncio
    async def test_error_status_uses_api_message(self, make_client, router):
        router.add(
            "GET",
            "/contoso/missing",
            httpx.Response(404, json={"message": "TF401180: The requested pull request was not found."}),
        )

        with pytest.raises(TransportFailure) as exc_info:
            await make_client(router).request("GET", "missing")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == (
            "Azure DevOps API error (404): TF401180: The requested pull request was not found."
        )

    @pytest.mark.asyncio
    async def test_error_status_with_text_body(self, make_client, router):
        router.add("GET", "/contoso/broken", httpx.Response(500, text="Internal failure"))

        with pytest.raises(TransportFailure, match=r"\(500\): Internal failure"):
            await make_client(router).request("GET", "broken")

    @pytest.mark.asyncio
    async def test_connection_error_becomes_transport_failure(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportFailure) as exc_info:
            await make_client(handler).request("GET", "anything")

        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = AzureDevOpsClient(AzureDevOpsConfig())

        with pytest.raises(NotConfiguredError):
            await client.request("GET", "_apis/projects")

    @pytest.mark.asyncio
    async def test_request_url_keeps_existing_api_version(self, make_client, router):
        router.add("GET", "/contoso/_apis/wit/workItems", httpx.Response(200, json={"value": []}))

        await make_client(router).request_url(
            "GET", "https://dev.azure.com/contoso/_apis/wit/workItems?api-version=5.0"
        )

        assert router.requests[0].url.params.get_list("api-version") == ["5.0"]

    @pytest.mark.asyncio
    async def test_request_url_merges_params_into_existing_query(self, make_client, router):
        router.add("GET", "/contoso/_apis/wit/workItems", httpx.Response(200, json={"value": []}))

        await make_client(router).request_url(
            "GET",
            "https://dev.azure.com/contoso/_apis/wit/workItems?ids=1,2",
            params={"$expand": "relations"},
        )

        params = router.requests[0].url.params
        assert params["ids"] == "1,2"
        assert params["$expand"] == "relations"
        assert params["api-version"] == "7.1"


class TestGetFileContent:
    @pytest.mark.asyncio
    async def test_returns_text(self, make_client, router):
        router.add(
            "GET",
            f"{REPO_PATH}/items",
            httpx.Response(200, content=b"body\n", headers={"content-type": "application/octet-stream"}),
        )

        content = await make_client(router).get_file_content("Proj", "Repo", "/a.txt", "main")

        assert content == "body\n"
        assert router.requests[0].headers["Accept"] == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_returns_content_field_of_json(self, make_client, router):
        router.add("GET", f"{REPO_PATH}/items", httpx.Response(200, json={"content": "from json\n"}))

        content = await make_client(router).get_file_content("Proj", "Repo", "/a.txt", "main")

        assert content == "from json\n"

    @pytest.mark.asyncio
    async def test_failure_returns_empty_string(self, make_client, router):
        router.add("GET", f"{REPO_PATH}/items", httpx.Response(404, json={"message": "not found"}))

        assert await make_client(router).get_file_content("Proj", "Repo", "/a.txt", "main") == ""

    @pytest.mark.asyncio
    async def test_error_marker_returns_empty_string(self, make_client, router):
        router.add(
            "GET",
            f"{REPO_PATH}/items",
            httpx.Response(200, content=b"<error>", headers={"content-type": "text/plain"}),
        )

        assert await make_client(router).get_file_content("Proj", "Repo", "/a.txt", "main") == ""

    @pytest.mark.asyncio
    async def test_unconfigured_returns_empty_string(self):
        client = AzureDevOpsClient(AzureDevOpsConfig())

        assert await client.get_file_content("Proj", "Repo", "/a.txt", "main") == ""


class TestSharedClient:
    def test_get_client_builds_from_environment(self, monkeypatch):
        monkeypatch.setenv("AZURE_DEVOPS_ORG_URL", "https://dev.azure.com/fabrikam")
        monkeypatch.setenv("AZURE_DEVOPS_PAT", "pat")

        client = get_client()

        assert client.config.base_url == "https://dev.azure.com/fabrikam"
        assert get_client() is client

    def test_set_client_replaces_shared_client(self, config):
        client = AzureDevOpsClient(config)

        set_client(client)

        assert get_client() is client
