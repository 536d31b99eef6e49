"""Tests for AzureDevOpsConfig environment loading."""

import base64

import pytest

from ado_core.config import AzureDevOpsConfig, get_config

ENV_VARS = [
    "AZURE_DEVOPS_ORG_URL",
    "AZURE_DEVOPS_ORG",
    "AZURE_DEVOPS_PAT",
    "AZURE_DEVOPS_PROJECT",
    "AZURE_DEVOPS_REPOSITORY",
    "AZURE_DEVOPS_API_VERSION",
    "AZURE_DEVOPS_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_when_unset(clean_env):
    config = AzureDevOpsConfig._load_from_env()

    assert config.org_url == ""
    assert config.api_version == "7.1"
    assert config.timeout == 30.0
    assert not config.is_configured()


def test_loads_all_settings(clean_env):
    clean_env.setenv("AZURE_DEVOPS_ORG_URL", "https://dev.azure.com/contoso/")
    clean_env.setenv("AZURE_DEVOPS_PAT", "pat")
    clean_env.setenv("AZURE_DEVOPS_PROJECT", "Proj")
    clean_env.setenv("AZURE_DEVOPS_REPOSITORY", "Repo")
    clean_env.setenv("AZURE_DEVOPS_API_VERSION", "7.0")
    clean_env.setenv("AZURE_DEVOPS_TIMEOUT", "5")

    config = AzureDevOpsConfig._load_from_env()

    assert config.is_configured()
    assert config.base_url == "https://dev.azure.com/contoso"
    assert config.default_project == "Proj"
    assert config.default_repository == "Repo"
    assert config.api_version == "7.0"
    assert config.timeout == 5.0


def test_org_name_falls_back_to_dev_azure_com(clean_env):
    clean_env.setenv("AZURE_DEVOPS_ORG", "fabrikam")

    config = AzureDevOpsConfig._load_from_env()

    assert config.base_url == "https://dev.azure.com/fabrikam"


def test_org_url_takes_precedence_over_org_name(clean_env):
    clean_env.setenv("AZURE_DEVOPS_ORG", "fabrikam")
    clean_env.setenv("AZURE_DEVOPS_ORG_URL", "https://contoso.visualstudio.com")

    assert AzureDevOpsConfig._load_from_env().base_url == "https://contoso.visualstudio.com"


def test_auth_header_uses_empty_user():
    config = AzureDevOpsConfig(org_url="contoso", pat="abc")

    assert config.auth_header() == "Basic " + base64.b64encode(b":abc").decode()


def test_get_instance_is_cached_until_reset(clean_env):
    clean_env.setenv("AZURE_DEVOPS_PAT", "first")
    first = get_config()
    clean_env.setenv("AZURE_DEVOPS_PAT", "second")

    assert get_config() is first

    AzureDevOpsConfig.reset()

    assert get_config().pat == "second"
