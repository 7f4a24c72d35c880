"""``waypoint routes`` and ``waypoint match`` commands."""

import argparse
import sys

from waypoint.app import App
from waypoint.cli._resolve import resolve_app
from waypoint.routing.route import Matched, MethodNotAllowed


def _load(import_string: str) -> App:
    try:
        return resolve_app(import_string)
    except (ImportError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


def _handler_name(handler: object) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", repr(handler))


def run_routes(args: argparse.Namespace) -> None:
    """Print METHOD, PATTERN, NAME, and HANDLER for every route."""
    app = _load(args.app)
    routes = app.routes
    if not routes:
        print("No routes registered.")
        return

    rows = [
        (route.method, route.pattern, route.name or "-", _handler_name(route.handler))
        for route in routes
    ]
    header = ("METHOD", "PATTERN", "NAME", "HANDLER")
    widths = [max(len(row[i]) for row in (header, *rows)) for i in range(3)]
    fmt = f"{{:<{widths[0]}}}  {{:<{widths[1]}}}  {{:<{widths[2]}}}  {{}}"
    print(fmt.format(*header))
    print("-" * min(sum(widths) + 6 + max(len(r[3]) for r in rows), 80))
    for row in rows:
        print(fmt.format(*row))


def run_match(args: argparse.Namespace) -> None:
    """Print the outcome of matching one method and path.

    Exits 1 for 404 and 405 so the command is usable in scripts.
    """
    app = _load(args.app)
    result = app.match(args.method, args.path)
    if isinstance(result, Matched):
        print(f"{result.route.method} {result.route.pattern} -> {_handler_name(result.route.handler)}")
        for name, value in result.params.items():
            print(f"  {name} = {value}")
        return
    if isinstance(result, MethodNotAllowed):
        print(f"405 Method Not Allowed (Allow: {result.allow_header})")
    else:
        print("404 Not Found")
    raise SystemExit(1)
