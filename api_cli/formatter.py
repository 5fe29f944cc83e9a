"""api-cli formatter - terminal report for a response.

The report is a borderless-header table with one row per section:
Status, Latency, Headers (optional) and Body (optional). Colors are
cosmetic; rich drops them when the output is not a color terminal.
"""

import json
from typing import Any

from rich import box
from rich.console import Console, RenderableType
from rich.json import JSON
from rich.table import Table
from rich.text import Text

from api_cli.executor import RequestResult
from api_cli.filters import find_all

# Room taken by the label column ("Headers" is the longest) and borders.
ROW_LABEL_WIDTH = 16
# Same, plus the borders of the nested headers table.
HEADERS_TABLE_OVERHEAD = 21
# Narrowest header value column worth showing.
MIN_HEADER_VALUE_WIDTH = 16
TOO_NARROW = "Terminal too narrow"

STATUS_STYLES = {1: "blue", 2: "green", 3: "cyan", 4: "yellow", 5: "red"}


def _table() -> Table:
    table = Table(box=box.SQUARE, show_header=False, show_lines=True)
    table.add_column(no_wrap=True)
    table.add_column(overflow="fold")
    return table


def _wrap(text: Text, width: int, console: Console) -> Text:
    """Hard-wrap text to width, folding words longer than a line."""
    lines = text.wrap(console, max(width, 1), overflow="fold")
    return Text("\n").join(lines)


def format_status(status_code: int, reason: str = "") -> Text:
    style = STATUS_STYLES.get(status_code // 100, "")
    return Text(f"{status_code} {reason}".strip(), style=style)


def format_duration(seconds: float) -> str:
    """Human duration with the largest unit below the value, e.g. 245.31ms."""
    for factor, unit in ((1, "s"), (1e3, "ms"), (1e6, "µs")):
        if seconds * factor >= 1:
            break
    else:
        factor, unit = 1e9, "ns"
    value = f"{seconds * factor:.3f}".rstrip("0").rstrip(".")
    return f"{value}{unit}"


def format_latency(seconds: float) -> Text:
    if seconds < 1:
        style = "green"
    elif seconds <= 5:
        style = "yellow"
    else:
        style = "red"
    return Text(format_duration(seconds), style=style)


def format_headers(headers: dict[str, str], console: Console) -> RenderableType | None:
    """Two-column name/value table sized to the console, or None if no headers."""
    if not headers:
        return None

    longest = max(len(name) for name in headers)
    if console.width < HEADERS_TABLE_OVERHEAD + MIN_HEADER_VALUE_WIDTH + longest:
        return Text(TOO_NARROW, style="red")

    value_width = console.width - HEADERS_TABLE_OVERHEAD - longest
    table = _table()
    for name, value in headers.items():
        table.add_row(name, _wrap(Text(value), value_width, console))
    return table


def _highlight(value: Any) -> Text:
    return JSON.from_data(value, indent=2).text


def format_body(
    content: bytes,
    console: Console,
    json_path: str | None = None,
) -> Text | None:
    """Render a response body.

    - JSON: pretty-printed and highlighted; with json_path, only the matched
      nodes, one after the other, or null when nothing matches
    - other UTF-8 text, including JSON nested too deeply to parse: as is
    - anything else: None (no Body row)
    """
    width = console.width - ROW_LABEL_WIDTH

    try:
        document = json.loads(content)
        if json_path:
            nodes = find_all(document, json_path) or [None]
            rendered = Text("\n").join(_highlight(node) for node in nodes)
        else:
            rendered = _highlight(document)
    except (ValueError, RecursionError):
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            return None
        return _wrap(Text(text), width, console)

    return _wrap(rendered, width, console)


def build_rows(
    result: RequestResult,
    console: Console,
    json_path: str | None = None,
    show_headers: bool = True,
    show_body: bool = True,
) -> list[tuple[str, RenderableType]]:
    rows: list[tuple[str, RenderableType]] = [
        ("Status", format_status(result.status_code, result.reason)),
        ("Latency", format_latency(result.elapsed)),
    ]
    if show_headers:
        headers = format_headers(result.headers, console)
        if headers is not None:
            rows.append(("Headers", headers))
    if show_body:
        body = format_body(result.content, console, json_path)
        if body is not None:
            rows.append(("Body", body))
    return rows


def format_response(
    result: RequestResult,
    console: Console,
    json_path: str | None = None,
    show_headers: bool = True,
    show_body: bool = True,
) -> Table:
    """Build the full report table for printing with console.print()."""
    table = _table()
    for label, renderable in build_rows(result, console, json_path, show_headers, show_body):
        table.add_row(label, renderable)
    return table
