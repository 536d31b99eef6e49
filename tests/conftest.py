import json

import httpx
import pytest

from ado_core.config import AzureDevOpsConfig
from tools.azure_devops._client import AzureDevOpsClient, set_client
from tools.azure_devops.iterations import Iteration, PullRequestRefs, PullRequestSource

ORG_URL = "https://dev.azure.com/contoso"
REPO_PATH = "/contoso/Proj/_apis/git/repositories/Repo"


class FakePullRequestSource(PullRequestSource):
    """In-memory pull request: iterations, change entries and file contents."""

    def __init__(self, refs=None, iterations=None, changes=None, files=None):
        self.refs = refs or PullRequestRefs("refs/heads/feature", "refs/heads/main")
        self.iterations = iterations if iterations is not None else [Iteration(1)]
        self.changes = changes or {}  # iteration id -> [ChangeEntry]
        self.files = files or {}  # (path, branch) -> content
        self.calls = []

    async def get_pull_request_refs(self, pull_request_id):
        self.calls.append(("refs", pull_request_id))
        return self.refs

    async def list_iterations(self, pull_request_id):
        self.calls.append(("iterations", pull_request_id))
        return list(self.iterations)

    async def list_changes(self, pull_request_id, iteration_id, path_filter=None):
        self.calls.append(("changes", pull_request_id, iteration_id, path_filter))
        entries = self.changes.get(iteration_id, [])
        if path_filter:
            entries = [c for c in entries if c.path == path_filter]
        return list(entries)

    async def fetch_file_content(self, path, version):
        self.calls.append(("content", path, version))
        return self.files.get((path, version), "")


@pytest.fixture
def config():
    return AzureDevOpsConfig(
        org_url=ORG_URL,
        pat="secret-pat",
        default_project="Proj",
        default_repository="Repo",
    )


@pytest.fixture
def make_client(config):
    """Build a client whose HTTP traffic goes to handler(request) -> httpx.Response."""

    def _make(handler):
        return AzureDevOpsClient(config, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def install_client(make_client):
    """Install a mocked client as the shared client used by tool handlers."""

    def _install(handler):
        client = make_client(handler)
        set_client(client)
        return client

    return _install


@pytest.fixture(autouse=True)
def reset_shared_state():
    yield
    set_client(None)
    AzureDevOpsConfig.reset()


class Router:
    """Maps (method, path) to canned responses and records requests."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, response):
        self.routes[(method, path)] = response

    def __call__(self, request):
        self.requests.append(request)
        key = (request.method, request.url.path)
        response = self.routes.get(key)
        if response is None:
            return httpx.Response(404, json={"message": f"No route for {key}"})
        if callable(response):
            return response(request)
        return response

    def bodies(self, method, path):
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == path
        ]


@pytest.fixture
def router():
    return Router()
