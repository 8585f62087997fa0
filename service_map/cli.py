#!/usr/bin/env python3
"""Service map CLI - offline validation, conversion, layout and the API server."""

import argparse
import json
import sys
from pathlib import Path

from .errors import ServiceMapError
from .exporters import to_schema_export, to_mermaid, to_mermaid_markdown
from .importers import import_service_schema, import_schema_export, parse_json
from .layout import compute_layout
from .schema import validate_service_schema
from .settings import settings


def _json_out(data, code=0):
    print(json.dumps(data, ensure_ascii=False))
    sys.exit(code)


def _read(path):
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e}"}, 1)


def _write(path, text):
    if not path or path == "-":
        print(text)
        return
    Path(path).write_text(text, encoding="utf-8")


def _load(args):
    """Import the input file in the format given by --format."""
    text = _read(args.file)
    try:
        if args.format == "service-schema":
            return import_service_schema(text)
        return import_schema_export(text)
    except ServiceMapError as e:
        _json_out({"status": "error", "error": str(e)}, 1)


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    try:
        data = parse_json(_read(args.file))
    except ServiceMapError as e:
        _json_out({"status": "error", "error": str(e)}, 1)
    errors = validate_service_schema(data)
    _json_out({
        "status": "ok" if not errors else "invalid",
        "valid": not errors,
        "errors": [e.to_dict() for e in errors],
    }, 0 if not errors else 1)


def cmd_convert(args):
    nodes, edges = _load(args)
    _write(args.output, to_schema_export(nodes, edges))


def cmd_mermaid(args):
    nodes, edges = _load(args)
    text = to_mermaid_markdown(nodes, edges) if args.markdown else to_mermaid(nodes, edges)
    _write(args.output, text)


def cmd_layout(args):
    nodes, edges = _load(args)
    _write(args.output, to_schema_export(compute_layout(nodes, edges), edges))


def cmd_serve(args):
    import uvicorn
    uvicorn.run("service_map.backend.main:app", host=args.host, port=args.port)


def _add_input_args(p, default_format):
    p.add_argument("file", help="Input JSON file, or - for stdin")
    p.add_argument("--format", choices=["service-schema", "schema-export"], default=default_format)
    p.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")


def build_parser():
    parser = argparse.ArgumentParser(prog="service-map", description="Service dependency map tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Validate a service-schema document")
    p.add_argument("file", help="Input JSON file, or - for stdin")

    p = sub.add_parser("convert", help="Import a document and write it as schema export")
    _add_input_args(p, "service-schema")

    p = sub.add_parser("mermaid", help="Render a document as a Mermaid flowchart")
    _add_input_args(p, "schema-export")
    p.add_argument("--markdown", action="store_true", help="Wrap in a fenced mermaid block")

    p = sub.add_parser("layout", help="Re-run auto layout and write schema export")
    _add_input_args(p, "schema-export")

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=settings.api_host)
    p.add_argument("--port", type=int, default=settings.api_port)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "validate": cmd_validate,
        "convert": cmd_convert,
        "mermaid": cmd_mermaid,
        "layout": cmd_layout,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
