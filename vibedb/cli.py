"""Command-line interface for VibeDB — headless access to the schema engine.

Reference: DESIGN.md — CLI.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from vibedb.constants import APP_NAME, APP_VERSION, DEFAULT_NAMING_CONVENTION, LAYOUT_ITERATIONS
from vibedb.core.ddl_parser import import_ddl
from vibedb.core.diff_engine import diff_schemas, summarize_changes
from vibedb.core.layout_engine import LayoutConfig, run_force_layout
from vibedb.core.relationship_resolver import infer_foreign_keys
from vibedb.core.schema_audit import NAMING_PATTERNS, audit_schema
from vibedb.export import EXPORT_FORMATS, JsonExporter, SchemaReportExporter, render_schema
from vibedb.models.schema import Schema

logger = logging.getLogger(__name__)


def load_schema(path: str) -> Schema:
    """Read a ``.sql`` DDL script or a ``.json`` schema document.

    Raises:
        ValueError: Unsupported file extension or malformed JSON.
        OSError: File cannot be read.
    """
    source = Path(path)
    suffix = source.suffix.lower()
    if suffix == ".json":
        return JsonExporter().import_schema(str(source))
    if suffix == ".sql":
        schema, result = import_ddl(Schema(), source.read_text(encoding="utf-8"))
        if result.skipped_count:
            logger.warning(
                "%s: skipped %d statement(s)/fragment(s)", source.name, result.skipped_count,
            )
        return schema
    raise ValueError(f"Unsupported input file (expected .sql or .json): {path}")


def _write(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"Written: {output}", file=sys.stderr)
    else:
        sys.stdout.write(text)


def cmd_export(args) -> int:
    schema = load_schema(args.input)
    if args.format == "pdf":
        if not args.output:
            print("Error: PDF export needs --output", file=sys.stderr)
            return 2
        SchemaReportExporter().generate_report(
            schema, args.output, title=Path(args.input).stem,
        )
        print(f"Written: {args.output}", file=sys.stderr)
        return 0
    _write(render_schema(schema, args.format), args.output)
    return 0


def cmd_layout(args) -> int:
    schema = load_schema(args.input)
    config = LayoutConfig(iterations=args.iterations, synchronous=args.synchronous)
    _write(JsonExporter().render(run_force_layout(schema, config)), args.output)
    return 0


def cmd_infer(args) -> int:
    result = infer_foreign_keys(load_schema(args.input))
    print(f"Inferred {result.count} relationship(s)", file=sys.stderr)
    _write(JsonExporter().render(result.schema), args.output)
    return 0


def cmd_diff(args) -> int:
    changes = diff_schemas(load_schema(args.base), load_schema(args.current))
    for change in changes:
        marker = " (breaking)" if change.breaking else ""
        print(f"[{change.type.value}] {change.target}: {change.details}{marker}")
    summary = summarize_changes(changes)
    print(
        ", ".join(f"{key}={value}" for key, value in summary.items()),
        file=sys.stderr,
    )
    return 1 if args.fail_on_breaking and summary["breaking"] else 0


def cmd_audit(args) -> int:
    report = audit_schema(load_schema(args.input), args.convention)
    for issue in report.issues:
        print(f"{issue.severity.value.upper():8} {issue.kind:7} {issue.message}")
    if report.is_clean:
        print("No issues found.")
    return 1 if report.error_count else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibedb",
        description=f"{APP_NAME} - schema import, layout, export and review",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vibedb export schema.sql --format prisma        # DDL -> Prisma schema
  vibedb export design.json --format pdf -o r.pdf # PDF data dictionary
  vibedb infer schema.sql -o linked.json          # Magic-link *_id columns
  vibedb diff old.json new.json                   # Structural changes
  vibedb audit design.json --convention camelCase
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {APP_VERSION}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("export", help="Render a schema in another format")
    p.add_argument("input", help="Schema file (.sql or .json)")
    p.add_argument(
        "-f", "--format", default="sql", choices=EXPORT_FORMATS + ["pdf"],
        help="Output format (default: sql)",
    )
    p.add_argument("-o", "--output", help="Output file (default: stdout)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("layout", help="Run the force-directed auto-layout")
    p.add_argument("input", help="Schema file (.sql or .json)")
    p.add_argument("-o", "--output", help="Output JSON document (default: stdout)")
    p.add_argument(
        "--iterations", type=int, default=LAYOUT_ITERATIONS,
        help=f"Simulation iterations (default: {LAYOUT_ITERATIONS})",
    )
    p.add_argument(
        "--synchronous", action="store_true",
        help="Order-independent update (all tables move together)",
    )
    p.set_defaults(func=cmd_layout)

    p = sub.add_parser("infer", help="Infer foreign keys from *_id column names")
    p.add_argument("input", help="Schema file (.sql or .json)")
    p.add_argument("-o", "--output", help="Output JSON document (default: stdout)")
    p.set_defaults(func=cmd_infer)

    p = sub.add_parser("diff", help="Compare two schema snapshots")
    p.add_argument("base", help="Baseline schema (.sql or .json)")
    p.add_argument("current", help="Current schema (.sql or .json)")
    p.add_argument(
        "--fail-on-breaking", action="store_true",
        help="Exit with status 1 when a breaking change is found",
    )
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("audit", help="Naming lint and foreign-key audit")
    p.add_argument("input", help="Schema file (.sql or .json)")
    p.add_argument(
        "--convention", default=DEFAULT_NAMING_CONVENTION, choices=sorted(NAMING_PATTERNS),
        help=f"Naming convention (default: {DEFAULT_NAMING_CONVENTION})",
    )
    p.set_defaults(func=cmd_audit)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
