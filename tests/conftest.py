"""Shared fixtures for api-cli tests."""

import os

import pytest
import yaml
from click.testing import CliRunner
from requests.structures import CaseInsensitiveDict

from api_cli.executor import RequestResult
from api_cli.models import CollectionModel, EnvironmentModel, RequestModel
from api_cli.store import CollectionStore


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def base_dir(tmp_path, monkeypatch):
    """Point the collections directory at a temp location."""
    base = tmp_path / "collections"
    base.mkdir()
    monkeypatch.setenv("API_CLI_BASE_DIRECTORY", str(base))
    return base


@pytest.fixture
def store(base_dir):
    return CollectionStore(base_dir)


@pytest.fixture(autouse=True)
def isolate_ambient_vars(monkeypatch):
    """Keep API_CLI_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("API_CLI_"):
            monkeypatch.delenv(name)


def write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


def kv(*entries):
    """Build a key-value list payload: kv(("a", "1"), ("b", "2", False))."""
    out = []
    for entry in entries:
        item = {"key": entry[0], "value": entry[1]}
        if len(entry) > 2:
            item["enabled"] = entry[2]
        out.append(item)
    return out


def make_collection(**data):
    return CollectionModel.model_validate(data)


def make_environment(**data):
    return EnvironmentModel.model_validate(data)


def make_request(method="GET", url="https://api.example.com/", pre_request=None, **http):
    data = {"http": {"method": method, "url": url, **http}}
    if pre_request is not None:
        data["vars"] = {"pre-request": pre_request}
    return RequestModel.model_validate(data)


def make_request_result(
    status_code=200,
    reason="OK",
    content=b"",
    headers=None,
    elapsed=0.042,
    error=None,
):
    """Factory for RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.reason = reason
    r.headers = CaseInsensitiveDict(headers or {})
    r.content = content
    r.elapsed = elapsed
    r.error = error
    return r
