#!/usr/bin/env python3
from __future__ import annotations
from pathlib import Path
from typing import Any, Optional

from dataclasses import dataclass, field

from flask import Flask, abort, jsonify, request

from config_loader import OrgReaderConfig, load_config_or_default
from org_clock import format_duration, get_clock_entries, get_running_clock, get_total_clock_time
from org_elements import Document, Headline, Timestamp
from org_modify import get_effective_properties, get_tables, iter_headlines, query
from org_reader import parse_file
from org_tables import table_to_json

BASE_DIR = Path.cwd()
CONFIG_PATH = BASE_DIR / "config.yml"
ORG_DIR = BASE_DIR / "org"


@dataclass
class FileTreeNode:
    dirs: dict[str, "FileTreeNode"] = field(default_factory=dict)
    files: list[str] = field(default_factory=list)

    def to_json(self) -> dict:
        return {
            "dirs": {name: node.to_json() for name, node in sorted(self.dirs.items())},
            "files": sorted(self.files),
        }


def _insert_path(root: FileTreeNode, rel_parts: tuple[str, ...]) -> None:
    node = root
    for part in rel_parts[:-1]:
        node = node.dirs.setdefault(part, FileTreeNode())
    node.files.append(rel_parts[-1])


def list_org_files(org_dir: Path) -> list[Path]:
    if not org_dir.exists():
        return []
    out = []
    for p in sorted(org_dir.glob("**/*.org")):
        # skip hidden dirs
        if any(seg.startswith(".") for seg in p.relative_to(org_dir).parts):
            continue
        out.append(p.relative_to(org_dir))
    return out


def build_org_tree(org_dir: Path) -> FileTreeNode:
    root = FileTreeNode()
    for rel in list_org_files(org_dir):
        _insert_path(root, rel.parts)
    return root


# ---------------- JSON views -------------------------------------------------

def _timestamp_json(ts: Optional[Timestamp]) -> Optional[str]:
    return ts.raw_value if ts is not None else None


def headline_json(headline: Headline) -> dict[str, Any]:
    planning = headline.planning
    return {
        "level": headline.level,
        "title": headline.raw_value,
        "todo_keyword": headline.todo_keyword,
        "todo_type": headline.todo_type,
        "priority": headline.priority,
        "tags": list(headline.tags),
        "properties": dict(headline.properties_drawer or {}),
        "scheduled": _timestamp_json(planning.scheduled) if planning else None,
        "deadline": _timestamp_json(planning.deadline) if planning else None,
        "closed": _timestamp_json(planning.closed) if planning else None,
        "children": len(headline.children),
    }


def element_json(element) -> dict[str, Any]:
    if element.type == "headline":
        return headline_json(element)
    if element.type == "src-block":
        return {
            "type": "src-block",
            "language": element.language,
            "parameters": dict(element.parameters),
            "value": element.value,
        }
    if element.type == "table":
        return {"type": "table", "rows": table_to_json(element, use_header=False)}
    if element.type == "paragraph":
        return {"type": "paragraph", "value": element.value}
    return {"type": element.type}


def _query_args(args) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if args.get("type"):
        fields["type"] = args["type"]
    if args.getlist("todo"):
        fields["todo_keyword"] = args.getlist("todo")
    if args.get("todo_type"):
        fields["todo_type"] = args["todo_type"]
    if args.get("has_todo") is not None:
        fields["has_todo"] = args["has_todo"].lower() in ("1", "true", "yes")
    if args.getlist("tag"):
        fields["tags"] = args.getlist("tag")
    if args.getlist("any_tag"):
        fields["any_tag"] = args.getlist("any_tag")
    for key in ("level", "min_level", "max_level"):
        value = args.get(key, type=int)
        if value is not None:
            fields[key] = value
    if args.get("contains"):
        fields["title_contains"] = args["contains"]
    if args.get("property"):
        key, sep, value = args["property"].partition("=")
        if sep:
            fields["property"] = (key, value)
        else:
            fields["has_property"] = key
    if args.get("language"):
        fields["language"] = args["language"]
    return fields


# ---------------- App --------------------------------------------------------

def create_app(org_dir: Path = ORG_DIR, cfg: Optional[OrgReaderConfig] = None) -> Flask:
    """
    Read-only JSON API over the .org files below `org_dir`.
    """
    org_dir = Path(org_dir).resolve()
    if cfg is None:
        cfg = load_config_or_default(CONFIG_PATH)

    app = Flask(__name__)
    app.config["ORG_DIR"] = org_dir

    def load_doc(filename: str) -> Document:
        org_path = (org_dir / filename).resolve()
        try:
            org_path.relative_to(org_dir)
        except ValueError:
            abort(404)

        if not org_path.is_file() or org_path.suffix.lower() != ".org":
            abort(404)

        return parse_file(org_path, cfg)

    @app.route("/api/files")
    def files():
        return jsonify(
            {
                "files": [rel.as_posix() for rel in list_org_files(org_dir)],
                "tree": build_org_tree(org_dir).to_json(),
            }
        )

    @app.route("/api/doc/<path:filename>/summary")
    def document(filename: str):
        doc = load_doc(filename)
        return jsonify(
            {
                "keywords": doc.keywords,
                "properties": doc.properties,
                "todo_keywords": doc.todo_keywords,
                "done_keywords": doc.done_keywords,
                "headlines": sum(1 for _ in iter_headlines(doc)),
            }
        )

    @app.route("/api/doc/<path:filename>/headlines")
    def headlines(filename: str):
        doc = load_doc(filename)
        out = []
        for headline, _, _ in iter_headlines(doc):
            item = headline_json(headline)
            item["effective_properties"] = get_effective_properties(doc, headline)
            out.append(item)
        return jsonify(out)

    @app.route("/api/doc/<path:filename>/query")
    def query_doc(filename: str):
        doc = load_doc(filename)
        return jsonify([element_json(node) for node in query(doc, **_query_args(request.args))])

    @app.route("/api/doc/<path:filename>/tables")
    def tables(filename: str):
        doc = load_doc(filename)
        use_header = request.args.get("header", "1").lower() not in ("0", "false", "no")
        return jsonify([table_to_json(table, use_header=use_header) for table in get_tables(doc)])

    @app.route("/api/doc/<path:filename>/clock")
    def clock(filename: str):
        doc = load_doc(filename)
        out = []
        for headline, _, _ in iter_headlines(doc):
            total = get_total_clock_time(headline, recursive=True)
            if not total and not get_clock_entries(headline):
                continue
            out.append(
                {
                    "title": headline.raw_value,
                    "level": headline.level,
                    "direct_minutes": get_total_clock_time(headline, recursive=False),
                    "total_minutes": total,
                    "total": format_duration(total),
                }
            )
        running = get_running_clock(doc)
        return jsonify(
            {
                "headlines": out,
                "running": running[0].raw_value if running else None,
            }
        )

    return app


if __name__ == "__main__":
    # Run in dev mode
    create_app(ORG_DIR, load_config_or_default(CONFIG_PATH)).run(debug=False)
