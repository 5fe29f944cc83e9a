"""api-cli core - variable scopes and request building."""

import logging
import os
import re
from http import HTTPMethod
from pathlib import Path

import click
import requests
from dotenv import dotenv_values
from requests.structures import CaseInsensitiveDict

from api_cli.errors import ConfigurationError, IoError
from api_cli.models import CollectionModel, EnvironmentModel, RequestModel
from api_cli.templating import render

logger = logging.getLogger(__name__)

APP_NAME = "api-cli"
VERSION = "0.1.3"
VAR_PREFIX = "API_CLI_VAR_"
BASE_DIRECTORY_ENV = "API_CLI_BASE_DIRECTORY"

# RFC 9110 token characters.
HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def resolve_base_directory(cli_override: str | None = None) -> Path:
    """Find the directory holding all collections.

    Resolution order:
      1. --base-dir CLI flag
      2. $API_CLI_BASE_DIRECTORY
      3. <app dir>/collections (e.g. ~/.config/api-cli/collections)
    """
    if cli_override:
        return Path(cli_override)
    env_value = os.environ.get(BASE_DIRECTORY_ENV)
    if env_value:
        return Path(env_value)
    return Path(click.get_app_dir(APP_NAME)) / "collections"


# ── Variables ────────────────────────────────────────────────────────────


def load_env(env_file: str | Path | None = None) -> dict[str, str]:
    """Return os.environ, with values from an optional .env file on top."""
    env = dict(os.environ)
    if env_file:
        path = Path(env_file)
        if not path.exists():
            raise IoError(FileNotFoundError(f"No such file: {path}"), path)
        dotenv_vars = dotenv_values(str(path))
        env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    return env


def ambient_variables(env: dict[str, str]) -> dict[str, str]:
    """Pick API_CLI_VAR_* entries from env, prefix stripped."""
    return {
        k[len(VAR_PREFIX) :]: v
        for k, v in env.items()
        if k.startswith(VAR_PREFIX) and len(k) > len(VAR_PREFIX)
    }


def resolve_scope(
    collection: CollectionModel,
    request: RequestModel,
    environment: EnvironmentModel | None = None,
    ambient: dict[str, str] | None = None,
    overrides: dict[str, str] | None = None,
) -> dict[str, str]:
    """Merge all variable sources into one flat scope.

    Precedence, lowest to highest:
      1. ambient (API_CLI_VAR_*) variables
      2. collection vars
      3. environment vars
      4. request pre-request vars
      5. overrides
    Each layer replaces same-named keys of the layers below it.
    """
    layers = [
        ambient or {},
        collection.vars.as_map(),
        environment.vars.as_map() if environment else {},
        request.vars.pre_request.as_map(),
        overrides or {},
    ]
    scope: dict[str, str] = {}
    for layer in layers:
        scope.update(layer)
    logger.debug("Request variables: %s", sorted(scope))
    return scope


# ── Request building ─────────────────────────────────────────────────────


def _render_headers(
    collection: CollectionModel,
    request: RequestModel,
    scope: dict[str, str],
) -> CaseInsensitiveDict:
    # Collection headers first so that request headers of the same name win.
    headers = CaseInsensitiveDict()
    for pair in collection.headers.items() + request.http.headers.items():
        headers[render(pair.key, scope)] = render(pair.value, scope)
    return headers


def _check_headers(headers: CaseInsensitiveDict) -> None:
    for name, value in headers.items():
        if not HEADER_NAME_RE.fullmatch(name):
            raise ConfigurationError(f"Invalid header name: {name!r}")
        if any(c in value for c in "\r\n\0"):
            raise ConfigurationError(f"Invalid value for header {name!r}: {value!r}")
        try:
            value.encode("latin-1")
        except UnicodeEncodeError as e:
            raise ConfigurationError(f"Invalid value for header {name!r}: {e}") from e


def build_request(
    collection: CollectionModel,
    request: RequestModel,
    scope: dict[str, str],
) -> requests.PreparedRequest:
    """Build one ready-to-send request from definitions and a resolved scope.

    Raises TemplateRenderError for undefined variables and
    ConfigurationError for anything that cannot form a valid request.
    """
    http = request.http

    try:
        method = HTTPMethod(http.method)
    except ValueError as e:
        raise ConfigurationError(f"Invalid HTTP method: {http.method!r}") from e

    url = render(http.url, scope)
    headers = _render_headers(collection, request, scope)

    # Request auth replaces collection auth entirely.
    auth = http.auth if http.auth is not None else collection.auth
    if auth is not None:
        headers.update(auth.headers(scope))

    kwargs = {}
    if http.body is not None:
        content_type, kwargs = http.body.encode(scope)
        if http.body.force_content_type:
            headers["Content-Type"] = content_type
        else:
            headers.setdefault("Content-Type", content_type)

    _check_headers(headers)

    req = requests.Request(
        method=method.value,
        url=url,
        headers=headers,
        # Query values are sent as written, without rendering.
        params=http.params.query.as_tuples(),
        **kwargs,
    )
    try:
        return req.prepare()
    except requests.exceptions.InvalidHeader as e:
        raise ConfigurationError(f"Invalid header: {e}") from e
    except (
        requests.exceptions.MissingSchema,
        requests.exceptions.InvalidSchema,
        requests.exceptions.InvalidURL,
    ) as e:
        raise ConfigurationError(f"Invalid URL {url!r}: {e}") from e
    except requests.exceptions.InvalidJSONError as e:
        raise ConfigurationError(f"Invalid JSON body: {e}") from e
