#!/usr/bin/env python3
"""
Command-line interface for retrieve.

Usage:
    retrieve https://cataas.com/cat -o cat.png
    retrieve https://api.example.com/items -X POST --json '{"name": "x"}' -o out.json
"""

import json
import sys
from typing import Dict, Optional, Tuple

import click
import httpx
from rich.console import Console

from . import __version__
from .errors import RetrieveError
from .core.request import new
from .logger import setup_logging


def print_error(msg: str):
    """Print error message."""
    Console(stderr=True).print(f"[red]Error:[/red] {msg}")


def print_success(msg: str):
    """Print success message."""
    Console().print(f"[green]{msg}[/green]")


def _split_pairs(values: Tuple[str, ...], sep: str, what: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in values:
        key, found, value = item.partition(sep)
        if not found or not key.strip():
            raise click.BadParameter(f"expected KEY{sep}VALUE, got {item!r}", param_hint=what)
        pairs[key.strip()] = value.strip() if sep == ":" else value
    return pairs


@click.command()
@click.version_option(version=__version__, prog_name="retrieve")
@click.argument("url")
@click.option("-X", "--method", default="GET", show_default=True, help="HTTP method")
@click.option("-H", "--header", "headers", multiple=True, help="Header as 'Key: Value' (repeatable)")
@click.option("-q", "--query", "query", multiple=True, help="Query parameter as key=value (repeatable)")
@click.option("-d", "--data", help="Raw request body")
@click.option("--json", "json_body", help="JSON request body (sent with Content-Type: application/json)")
@click.option("-o", "--output", type=click.Path(), help="Output file or existing directory")
@click.option("-t", "--timeout", type=float, help="Request timeout in seconds")
@click.option("--ignore-status", is_flag=True, help="Save the body even for 4xx/5xx responses")
@click.option("--log-level", default=None, help="silent, error, warn, info or debug")
def cli(
    url: str,
    method: str,
    headers: Tuple[str, ...],
    query: Tuple[str, ...],
    data: Optional[str],
    json_body: Optional[str],
    output: Optional[str],
    timeout: Optional[float],
    ignore_status: bool,
    log_level: Optional[str],
):
    """Download URL and save the response body.

    Examples:

        retrieve https://cataas.com/cat -o cat.png

        retrieve https://example.com/report -q year=2024 -o ./downloads
    """
    setup_logging(log_level)

    if data is not None and json_body is not None:
        raise click.UsageError("--data and --json are mutually exclusive")

    builder = (
        new(url)
        .set_method(method)
        .set_headers(_split_pairs(headers, ":", "--header"))
    )
    if query:
        builder.set_query_params(_split_pairs(query, "=", "--query"))
    if data is not None:
        builder.set_text(data)
    if json_body is not None:
        try:
            builder.set_json(json.loads(json_body))
        except json.JSONDecodeError as e:
            raise click.BadParameter(str(e), param_hint="--json")
    if output:
        builder.set_output(output)
    if timeout is not None:
        builder.set_timeout(timeout)
    if ignore_status:
        builder.ignore_status_code()

    try:
        path = builder.exec()
    except (RetrieveError, httpx.HTTPError, OSError) as e:
        print_error(f"failed to download file: {e}")
        sys.exit(1)

    print_success(f"Saved {path}")


def main():
    """Main entry point."""
    return cli()


if __name__ == "__main__":
    main()
