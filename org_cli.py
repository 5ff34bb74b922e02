from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from config_loader import OrgReaderConfig, load_config_or_default
from helper import format_event, print_error, print_event_gray
from org_clock import format_duration, get_total_clock_time
from org_modify import get_all_headlines, get_tables, iter_headlines, query
from org_parser import iter_org_events
from org_reader import parse_file, read_with_includes, safe_input_path
from org_serialize import serialize
from org_tables import table_to_csv, table_to_json

PROG = "org_cli"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="org_cli.py",
        description="Inspect and round-trip Org files.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yml (default: built-in settings)",
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Optional root directory: input file must be within this directory.",
    )
    parser.add_argument(
        "--no-includes",
        action="store_true",
        help="Do not expand #+INCLUDE directives.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("headlines", help="Print the outline.")
    p.add_argument("input")

    p = sub.add_parser("query", help="Print headlines matching all given filters.")
    p.add_argument("input")
    p.add_argument("--todo", action="append", help="TODO keyword (repeatable: any of)")
    p.add_argument("--todo-type", choices=["todo", "done"])
    p.add_argument("--tag", action="append", help="Required tag (repeatable)")
    p.add_argument("--any-tag", action="append", help="Any of these tags (repeatable)")
    p.add_argument("--level", type=int)
    p.add_argument("--min-level", type=int)
    p.add_argument("--max-level", type=int)
    p.add_argument("--contains", help="Case-insensitive title substring")
    p.add_argument("--property", help="KEY or KEY=VALUE")

    p = sub.add_parser("tables", help="Print every table as JSON or CSV.")
    p.add_argument("input")
    fmt = p.add_mutually_exclusive_group()
    fmt.add_argument("--csv", action="store_true")
    fmt.add_argument("--json", action="store_true")
    p.add_argument("--no-header", action="store_true", help="JSON rows as lists")

    p = sub.add_parser("clock", help="Print clocked time per headline.")
    p.add_argument("input")
    p.add_argument("--direct", action="store_true", help="Do not include children")

    p = sub.add_parser("serialize", help="Parse and print the file back.")
    p.add_argument("input")

    p = sub.add_parser("events", help="Trace line classifier events.")
    p.add_argument("input")

    p = sub.add_parser("expand", help="Print the file with #+INCLUDE expanded.")
    p.add_argument("input")

    return parser


def _headline_label(headline) -> str:
    parts = []
    if headline.todo_keyword:
        parts.append(headline.todo_keyword)
    if headline.priority:
        parts.append(f"[#{headline.priority}]")
    parts.append(headline.raw_value)
    if headline.tags:
        parts.append(":" + ":".join(headline.tags) + ":")
    return "  " * (headline.level - 1) + "* " + " ".join(parts)


def _query_fields(args: argparse.Namespace) -> dict:
    fields: dict = {}
    if args.todo:
        fields["todo_keyword"] = args.todo
    if args.todo_type:
        fields["todo_type"] = args.todo_type
    if args.tag:
        fields["tags"] = args.tag
    if args.any_tag:
        fields["any_tag"] = args.any_tag
    if args.level is not None:
        fields["level"] = args.level
    if args.min_level is not None:
        fields["min_level"] = args.min_level
    if args.max_level is not None:
        fields["max_level"] = args.max_level
    if args.contains:
        fields["title_contains"] = args.contains
    if args.property:
        key, sep, value = args.property.partition("=")
        if sep:
            fields["property"] = (key, value)
        else:
            fields["has_property"] = key
    return fields


def run_command(args: argparse.Namespace, input_path: Path, cfg: OrgReaderConfig) -> None:
    expand = not args.no_includes

    if args.command == "events":
        lines = read_with_includes(input_path, cfg) if expand else input_path.read_text(encoding="utf-8").splitlines()
        for lineno, event in iter_org_events(lines, cfg):
            print_event_gray(f"{lineno:5d} {format_event(event)}")
        return

    if args.command == "expand":
        for line in read_with_includes(input_path, cfg):
            print(line)
        return

    doc = parse_file(input_path, cfg, expand_includes=expand)

    if args.command == "headlines":
        for headline in get_all_headlines(doc):
            print(_headline_label(headline))

    elif args.command == "query":
        for headline in query(doc, **_query_fields(args)):
            print(_headline_label(headline))

    elif args.command == "tables":
        for i, table in enumerate(get_tables(doc)):
            if i:
                print()
            if args.csv:
                print(table_to_csv(table))
            else:
                print(json.dumps(table_to_json(table, use_header=not args.no_header), indent=2, ensure_ascii=False))

    elif args.command == "clock":
        for headline, _, _ in iter_headlines(doc):
            minutes = get_total_clock_time(headline, recursive=not args.direct)
            if minutes:
                print(f"{format_duration(minutes):>7}  {_headline_label(headline).strip()}")

    elif args.command == "serialize":
        sys.stdout.write(serialize(doc))


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        cfg = load_config_or_default(Path(args.config) if args.config else None)
    except Exception as e:
        print_error(PROG, f"Failed to load config: {e}")
        return 2

    root_dir: Path | None = None
    if args.root:
        try:
            root_dir = Path(args.root).expanduser().resolve(strict=True)
        except Exception as e:
            print_error(PROG, f"Invalid --root: {e}")
            return 2

    try:
        input_path = safe_input_path(args.input, root=root_dir)
    except Exception as e:
        print_error(PROG, f"Invalid input path: {e}")
        return 2

    try:
        run_command(args, input_path, cfg)
    except Exception as e:
        print_error(PROG, f"Error while reading: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
