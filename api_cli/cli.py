"""api-cli CLI - run stored HTTP requests from the terminal."""

import functools
import logging
import os
import subprocess
import sys

import click
from click.shell_completion import get_completion_class
from rich.console import Console

from api_cli.core import (
    APP_NAME,
    VERSION,
    ambient_variables,
    build_request,
    load_env,
    resolve_base_directory,
    resolve_scope,
)
from api_cli.errors import ApiCliError, IoError, NetworkError
from api_cli.executor import execute_request
from api_cli.filters import parse_json_path
from api_cli.formatter import format_response
from api_cli.store import CollectionStore

LOG_LEVEL_ENV = "API_CLI_LOG"
COMPLETE_VAR = "_API_CLI_COMPLETE"

TOOL_HELP = """\
api-cli - Command line API client.

Stores reusable requests as YAML files grouped in collections and runs
them with variable substitution.

\b
QUICK START
───────────
  api-cli collection create GitHub -e
  api-cli environment create GitHub prod -e
  api-cli request create GitHub User:GetUser -e
  api-cli run GitHub User:GetUser -e prod
  api-cli run GitHub User:GetUser -j '$.login' --no-headers

\b
FILES
─────
  <base>/<collection>/collection.yaml            headers, auth, vars
  <base>/<collection>/environments/<env>.yaml    vars
  <base>/<collection>/<folder>/<request>.yaml    id "folder:request"

  Base directory resolution:
    1. --base-dir flag
    2. $API_CLI_BASE_DIRECTORY
    3. the api-cli app directory + /collections

\b
VARIABLES
─────────
  {{name}} placeholders are rendered in the URL, header names and
  values, auth fields and request bodies. An undefined name is an error.

\b
  Precedence (highest first):
  1. --var key=value               (run command)
  2. vars.pre-request              (request file)
  3. vars                          (environment file, with -e)
  4. vars                          (collection file)
  5. $API_CLI_VAR_<name>           (process environment / --env-file)

\b
LOGGING
───────
  API_CLI_LOG=debug|info|warning|error  (default: warning, on stderr)
"""


def _configure_logging() -> None:
    level = os.environ.get(LOG_LEVEL_ENV, "warning").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _reports_errors(f):
    """Turn ApiCliError into 'ERROR: ...' on stderr and exit status 1."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ApiCliError as e:
            click.echo(f"ERROR: {e}", err=True)
            sys.exit(1)

    return wrapper


def _parse_vars(var: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    variables = {}
    for v_str in var:
        if "=" not in v_str:
            raise click.BadParameter(f"expected KEY=VALUE, got {v_str!r}", param_hint="--var")
        k, val = v_str.split("=", 1)
        variables[k.strip()] = val
    return variables


@click.group(help=TOOL_HELP, context_settings={"max_content_width": 88})
@click.option(
    "--base-dir",
    default=None,
    help="Collections directory. Default: $API_CLI_BASE_DIRECTORY or the app directory.",
)
@click.version_option(VERSION, prog_name=APP_NAME)
@click.pass_context
def main(ctx, base_dir):
    """Command line API client."""
    _configure_logging()
    ctx.obj = CollectionStore(resolve_base_directory(base_dir))


# ── run ──────────────────────────────────────────────────────────────────


@main.command("run")
@click.argument("collection")
@click.argument("request_id", metavar="REQUEST")
@click.option("-e", "--environment", default=None, help="Select an environment for the request.")
@click.option(
    "-j",
    "--json-path",
    default=None,
    help="Apply a JSONPath filter to a JSON response body, e.g. '$.items[0].id'.",
)
@click.option("--no-headers", is_flag=True, default=False, help="Disable display of the headers.")
@click.option(
    "--headers-only",
    is_flag=True,
    default=False,
    help="Display only the headers of the response.",
)
@click.option(
    "--var",
    multiple=True,
    help="Override variable as key=value. Wins over every other source. Repeatable.",
)
@click.option(
    "--env-file",
    default=None,
    help="Dotenv file whose API_CLI_VAR_* entries are added to the process environment.",
)
@click.pass_obj
@_reports_errors
def run_cmd(
    store,
    collection,
    request_id,
    environment,
    json_path,
    no_headers,
    headers_only,
    var,
    env_file,
):
    """Execute a request."""
    if no_headers and headers_only:
        raise click.UsageError("--no-headers and --headers-only are mutually exclusive.")
    overrides = _parse_vars(var)
    if json_path:
        parse_json_path(json_path)

    collection_model = store.load_collection(collection)
    request_model = store.load_request(collection, request_id)
    environment_model = store.load_environment(collection, environment) if environment else None

    scope = resolve_scope(
        collection_model,
        request_model,
        environment=environment_model,
        ambient=ambient_variables(load_env(env_file)),
        overrides=overrides,
    )
    prepared = build_request(collection_model, request_model, scope)

    result = execute_request(prepared)
    if result.error:
        raise NetworkError(result.error)

    console = Console()
    console.print(
        format_response(
            result,
            console,
            json_path=json_path,
            show_headers=not no_headers,
            show_body=not headers_only,
        ),
    )


# ── collection ───────────────────────────────────────────────────────────


@main.group()
def collection():
    """Manage collections."""


@collection.command("create")
@click.argument("name")
@click.option("-e", "--edit", is_flag=True, default=False, help="Edit after creating.")
@click.pass_obj
@_reports_errors
def collection_create(store, name, edit):
    """Create a new collection."""
    path = store.create_collection(name)
    if edit:
        click.edit(filename=str(path))


@collection.command("edit")
@click.argument("name")
@click.pass_obj
@_reports_errors
def collection_edit(store, name):
    """Edit a collection."""
    path = store.collection_path(name)
    if not path.exists():
        store.load_collection(name)
    click.edit(filename=str(path))


@collection.command("list")
@click.pass_obj
@_reports_errors
def collection_list(store):
    """List available collections."""
    for name in store.list_collections():
        click.echo(name)


# ── environment ──────────────────────────────────────────────────────────


@main.group()
def environment():
    """Manage environments."""


@environment.command("create")
@click.argument("collection_name", metavar="COLLECTION")
@click.argument("name")
@click.option("-e", "--edit", is_flag=True, default=False, help="Edit after creating.")
@click.pass_obj
@_reports_errors
def environment_create(store, collection_name, name, edit):
    """Create a new environment."""
    path = store.create_environment(collection_name, name)
    if edit:
        click.edit(filename=str(path))


@environment.command("edit")
@click.argument("collection_name", metavar="COLLECTION")
@click.argument("name")
@click.pass_obj
@_reports_errors
def environment_edit(store, collection_name, name):
    """Edit an environment."""
    path = store.environment_path(collection_name, name)
    if not path.exists():
        store.load_environment(collection_name, name)
    click.edit(filename=str(path))


@environment.command("list")
@click.argument("collection_name", metavar="COLLECTION")
@click.pass_obj
@_reports_errors
def environment_list(store, collection_name):
    """List available environments."""
    for name in store.list_environments(collection_name):
        click.echo(name)


# ── request ──────────────────────────────────────────────────────────────


@main.group()
def request():
    """Manage requests."""


@request.command("create")
@click.argument("collection_name", metavar="COLLECTION")
@click.argument("name")
@click.option("-e", "--edit", is_flag=True, default=False, help="Edit after creating.")
@click.pass_obj
@_reports_errors
def request_create(store, collection_name, name, edit):
    """Create a new request."""
    path = store.create_request(collection_name, name)
    if edit:
        click.edit(filename=str(path))


@request.command("edit")
@click.argument("collection_name", metavar="COLLECTION")
@click.argument("name")
@click.pass_obj
@_reports_errors
def request_edit(store, collection_name, name):
    """Edit a request."""
    path = store.request_path(collection_name, name)
    if not path.exists():
        store.load_request(collection_name, name)
    click.edit(filename=str(path))


@request.command("list")
@click.argument("collection_name", metavar="COLLECTION")
@click.pass_obj
@_reports_errors
def request_list(store, collection_name):
    """List available requests."""
    for name in store.list_requests(collection_name):
        click.echo(name)


# ── misc ─────────────────────────────────────────────────────────────────


@main.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]))
@click.pass_context
def completion(ctx, shell):
    """Generate shell completion."""
    comp_cls = get_completion_class(shell)
    comp = comp_cls(ctx.find_root().command, {}, APP_NAME, COMPLETE_VAR)
    click.echo(comp.source())


@main.command("cd")
@click.pass_obj
@_reports_errors
def cd_cmd(store):
    """Launch a shell in the collections directory."""
    shell = os.environ.get("SHELL", "sh")
    env = {**os.environ, "API_CLI_SUBSHELL": "1"}
    try:
        store.base_dir.mkdir(parents=True, exist_ok=True)
        completed = subprocess.run([shell], cwd=store.base_dir, env=env, check=False)
    except OSError as e:
        raise IoError(e, store.base_dir) from e
    if completed.returncode != 0:
        raise ApiCliError(f"Shell exited with status {completed.returncode}")


if __name__ == "__main__":
    main()
