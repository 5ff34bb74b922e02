#!/usr/bin/env python3
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Any

from config_loader import OrgReaderConfig, DEFAULT_CONFIG, todo_type_for
from org_clock import parse_clock_line
from org_elements import Link, Timestamp, InlineObject
from org_timestamps import TIMESTAMP_SCAN_RE, parse_timestamp


@dataclass
class OrgEvent:
    """
    A structured event emitted by the Org line classifier.

    type:
      - "preamble_kv"      #+KEY: value before any content
      - "preamble_end"
      - "heading"
      - "planning"
      - "clock"
      - "property_drawer"  emitted on :END: of a headline's :PROPERTIES:
      - "drawer"           emitted on :END: of any other drawer
      - "block_begin" / "block_end"
      - "src_begin" / "src_end"
      - "block_line"       raw line inside a verbatim block
      - "table_row" / "table_hline"
      - "tblfm"
      - "keyword"          #+KEY: value after the preamble
      - "comment"
      - "blank"
      - "text"
    """
    type: str
    data: dict[str, Any]


@dataclass
class OrgPreamble:
    """
    Parsed ORG preamble (document header keywords).

    Keys are stored upper-cased in `headers`; #+PROPERTY: lines accumulate
    into `properties` instead. Convenience accessors exist for common fields.
    """
    headers: dict[str, str] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        return self.headers.get("TITLE")

    @property
    def author(self) -> Optional[str]:
        return self.headers.get("AUTHOR")

    @property
    def date(self) -> Optional[str]:
        return self.headers.get("DATE")


@dataclass
class OrgState:
    """
    Mutable classifier state for a line-by-line Org reader.

    Tracks:
    - preamble (#+KEY: value) until first real content
    - the open block stack (most recent open block wins)
    - the open drawer and its collected lines
    - current heading level and whether we are still in its metadata zone
      (the lines directly below the heading where planning and the
      property drawer live)
    - the effective TODO keyword table
    """
    # Preamble
    preamble: OrgPreamble = field(default_factory=OrgPreamble)
    is_in_preamble: bool = True

    # Block stack (supports nesting)
    block_stack: list[str] = field(default_factory=list)
    block_verbatim_stack: list[bool] = field(default_factory=list)
    is_inside_verbatim_block: bool = False

    # Drawer state
    is_inside_drawer: bool = False
    current_drawer_name: Optional[str] = None
    current_drawer_lines: Optional[list[str]] = None
    current_drawer_indent: str = ""
    current_drawer_is_properties: bool = False

    # Heading state
    current_heading_level: Optional[int] = None
    is_in_metadata: bool = False

    # TODO keyword table (replaced by #+TODO: lines)
    todo_keywords: list[str] = field(default_factory=list)
    done_keywords: list[str] = field(default_factory=list)

    @property
    def is_inside_block(self) -> bool:
        return bool(self.block_stack)

    @property
    def current_block_name(self) -> Optional[str]:
        return self.block_stack[-1] if self.block_stack else None

    @property
    def all_todo_keywords(self) -> list[str]:
        return self.todo_keywords + [k for k in self.done_keywords if k not in self.todo_keywords]


def new_state(cfg: OrgReaderConfig = DEFAULT_CONFIG) -> OrgState:
    """Fresh classifier state seeded with the configured TODO keywords."""
    return OrgState(
        todo_keywords=list(cfg.todo_keywords),
        done_keywords=list(cfg.done_keywords),
    )


# ---------------- Line-level field parsers -----------------------------------

_TAGS_RE = re.compile(r"(?:^|[ \t]+)(:(?:[\w@#%]+:)+)[ \t]*$")
_PRIORITY_RE = re.compile(r"^\[#([A-Za-z0-9])\](?:[ \t]+|$)")
_COMMENT_TITLE_RE = re.compile(r"^COMMENT(?:[ \t]+|$)")
_PLANNING_ITEM_RE = re.compile(
    r"(SCHEDULED|DEADLINE|CLOSED):\s*"
    r"(<[^<>\n]*>(?:--<[^<>\n]*>)?|\[[^\[\]\n]*\](?:--\[[^\[\]\n]*\])?)"
)
_PROPERTY_LINE_RE = re.compile(r"^\s*:([^:\s]+):(?:[ \t]+(.*?))?[ \t]*$")
_LINK_RE = re.compile(r"\[\[([^\[\]]+)\](?:\[([^\[\]]*)\])?\]")

LINK_TYPES = {
    "http", "https", "file", "ftp", "mailto", "id", "doi", "attachment",
    "shell", "elisp", "info", "help", "news", "cite", "bibtex", "man",
}


def calculate_heading_level(asterisks: str) -> int:
    """Convert the heading marker string (e.g. '***') into a numeric level."""
    return len(asterisks)


def extract_heading_tags(trailing: str) -> list[str]:
    """
    Extract Org heading tags from the trailing part of a heading line.

    Example: 'Title :foo:bar:' -> ['foo', 'bar']

    Only a final ':a:b:' token counts; anything else yields [].
    """
    match = _TAGS_RE.search(trailing)
    if not match:
        return []
    tags: list[str] = []
    for tag in match.group(1).split(":"):
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def parse_headline(text: str, todo_keywords: list[str]) -> dict[str, Any]:
    """
    Split the text after the stars into keyword, priority, title and tags.

    Example:
        'TODO [#A] Write report :work:'
    ->  {'todo_keyword': 'TODO', 'priority': 'A', 'commented': False,
         'title': 'Write report', 'tags': ['work']}
    """
    rest = text.strip()

    tags: list[str] = []
    tag_match = _TAGS_RE.search(rest)
    if tag_match:
        tags = extract_heading_tags(rest)
        rest = rest[: tag_match.start()].rstrip()

    todo_keyword = None
    first, _, remainder = rest.partition(" ")
    if first in todo_keywords:
        todo_keyword = first
        rest = remainder.lstrip()

    priority = None
    prio_match = _PRIORITY_RE.match(rest)
    if prio_match:
        priority = prio_match.group(1)
        rest = rest[prio_match.end():]

    commented = False
    if _COMMENT_TITLE_RE.match(rest):
        commented = True
        rest = rest[len("COMMENT"):].lstrip()

    return {
        "todo_keyword": todo_keyword,
        "priority": priority,
        "commented": commented,
        "title": rest.strip(),
        "tags": tags,
    }


def parse_planning_line(line: str) -> Optional[list[tuple[str, Timestamp]]]:
    """
    Parse 'SCHEDULED: <...> DEADLINE: <...>' into (keyword, Timestamp) pairs.

    Returns None if the line holds anything besides planning items, or a
    timestamp does not parse.
    """
    items: list[tuple[str, Timestamp]] = []
    pos = 0
    stripped = line.strip()
    for match in _PLANNING_ITEM_RE.finditer(stripped):
        if stripped[pos:match.start()].strip():
            return None
        ts = parse_timestamp(match.group(2))
        if ts is None:
            return None
        items.append((match.group(1), ts))
        pos = match.end()

    if not items or stripped[pos:].strip():
        return None
    return items


def parse_property_lines(lines: list[str]) -> dict[str, str]:
    """
    Parse ':KEY: value' lines of a property drawer, keeping their order.
    Lines that are not properties are skipped.
    """
    properties: dict[str, str] = {}
    for line in lines:
        match = _PROPERTY_LINE_RE.match(line)
        if not match:
            continue
        properties[match.group(1)] = match.group(2) or ""
    return properties


def _parse_header_arguments(tokens: list[str]) -> dict[str, str]:
    """
    ':key value words :flag' -> {'key': 'value words', 'flag': ''}

    Values may contain spaces until the next ':key'.
    """
    params: dict[str, str] = {}
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith(":") and len(token) > 1:
            key = token[1:]
            i += 1
            values: list[str] = []
            while i < len(tokens) and not (tokens[i].startswith(":") and len(tokens[i]) > 1):
                values.append(tokens[i])
                i += 1
            params[key] = " ".join(values)
        else:
            # stray token: ignore
            i += 1
    return params


def parse_src_block_options(arg_string: str) -> dict[str, Any]:
    """
    Parse Org src block header arguments.

    Example:
        'python -n :results output :session foo'
    ->  {'language': 'python', 'switches': ['-n'],
         'parameters': {'results': 'output', 'session': 'foo'}}
    """
    tokens = arg_string.strip().split()
    options: dict[str, Any] = {"language": None, "switches": [], "parameters": {}}
    if not tokens:
        return options

    idx = 0
    # First token is language unless it starts with ':' or is a switch
    if not tokens[0].startswith((":", "-", "+")):
        options["language"] = tokens[0]
        idx = 1

    # Switches come before the first ':key'
    while idx < len(tokens) and not tokens[idx].startswith(":"):
        token = tokens[idx]
        if token.startswith(("-", "+")) or options["switches"]:
            if not token.startswith(("-", "+")):
                options["switches"][-1] += f" {token}"
            else:
                options["switches"].append(token)
        idx += 1

    options["parameters"] = _parse_header_arguments(tokens[idx:])
    return options


def parse_todo_keyword_line(value: str) -> tuple[list[str], list[str]]:
    """
    Parse the value of a #+TODO: line.

      'TODO NEXT | DONE CANCELLED' -> (['TODO', 'NEXT'], ['DONE', 'CANCELLED'])
      'TODO WAIT DONE'             -> (['TODO', 'WAIT'], ['DONE'])

    Fast-access keys like 'TODO(t)' or 'DONE(d!)' are stripped.
    """
    words = [re.sub(r"\(.*\)$", "", w) for w in value.split()]
    words = [w for w in words if w]
    if "|" in words:
        idx = words.index("|")
        todo = [w for w in words[:idx] if w != "|"]
        done = [w for w in words[idx + 1:] if w != "|"]
    elif words:
        todo, done = words[:-1], words[-1:]
    else:
        todo, done = [], []
    return todo, done


# ---------------- Inline element scanner -------------------------------------

def link_type_for(path: str) -> str:
    """
    Infer a link's type from its target.

      'https://x'   -> 'https'
      'file:a.org'  -> 'file'
      './a.org'     -> 'file'
      '#custom-id'  -> 'custom-id'
      'Some title'  -> 'fuzzy'
    """
    path = path.strip()
    if path.startswith(("/", "./", "../", "~")):
        return "file"
    if path.startswith("#"):
        return "custom-id"
    if path.startswith("*"):
        return "fuzzy"
    scheme, sep, _ = path.partition(":")
    if sep and scheme.lower() in LINK_TYPES:
        return scheme.lower()
    return "fuzzy"


def scan_inline_objects(text: str) -> list[InlineObject]:
    """
    Find [[links]] and timestamps in a span of text.

    The text is not modified; each object records its (begin, end) offsets
    in `span`. Timestamps inside a link are not reported separately.
    """
    objects: list[InlineObject] = []
    link_spans: list[tuple[int, int]] = []

    for match in _LINK_RE.finditer(text):
        path = match.group(1).strip()
        objects.append(
            Link(
                path=path,
                description=match.group(2) if match.group(2) else None,
                link_type=link_type_for(path),
                span=(match.start(), match.end()),
            )
        )
        link_spans.append((match.start(), match.end()))

    for match in TIMESTAMP_SCAN_RE.finditer(text):
        if any(start <= match.start() < end for start, end in link_spans):
            continue
        ts = parse_timestamp(match.group(0))
        if ts is None:
            continue
        ts.span = (match.start(), match.end())
        objects.append(ts)

    objects.sort(key=lambda obj: obj.span[0])
    return objects


# ---------------- Line handlers ----------------------------------------------

def _indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _keyword_value(line: str) -> str:
    return line.split(":", 1)[1].strip() if ":" in line else ""


def _handle_verbatim_line(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> OrgEvent:
    """
    Inside a verbatim block only the matching END line is structural.
    """
    match = cfg.block_re.match(line)
    if match and match.group(1).lower() == "end" and match.group(2).lower() == state.current_block_name:
        return _pop_block(state)
    return OrgEvent(type="block_line", data={"raw": line})


def _pop_block(state: OrgState) -> OrgEvent:
    popped_name = state.block_stack.pop()
    popped_verbatim = state.block_verbatim_stack.pop()
    state.is_inside_verbatim_block = any(state.block_verbatim_stack)

    if popped_name == "src":
        return OrgEvent(type="src_end", data={"name": "src"})
    return OrgEvent(type="block_end", data={"name": popped_name, "verbatim": popped_verbatim})


def _close_drawer(state: OrgState, *, implicit: bool = False) -> OrgEvent:
    lines = list(state.current_drawer_lines or [])
    if state.current_drawer_is_properties:
        event = OrgEvent(
            type="property_drawer",
            data={"properties": parse_property_lines(lines), "lines": lines, "implicit": implicit},
        )
    else:
        event = OrgEvent(
            type="drawer",
            data={
                "name": state.current_drawer_name or "",
                "lines": lines,
                "indent": state.current_drawer_indent,
                "implicit": implicit,
            },
        )

    # Reset state
    state.is_inside_drawer = False
    state.current_drawer_name = None
    state.current_drawer_lines = None
    state.current_drawer_indent = ""
    state.current_drawer_is_properties = False
    return event


def _handle_drawer_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    Track Org drawers of the form

      :NAME:
      ...
      :END:

    Content lines are collected and a single event is emitted when the
    closing :END: is seen: "property_drawer" for the :PROPERTIES: drawer in
    a heading's metadata zone, "drawer" for everything else.
    """
    # Already inside a drawer?
    if state.is_inside_drawer:
        if cfg.drawer_end_re.match(line):
            return _close_drawer(state)

        # Content line inside drawer
        if state.current_drawer_lines is None:
            state.current_drawer_lines = []
        state.current_drawer_lines.append(line)
        return None

    # Not inside a drawer: check for :NAME:
    m = cfg.drawer_begin_re.match(line)
    if not m or m.group(1).upper() == "END":
        return None

    # a drawer is content: later keywords must stay below it
    state.is_in_preamble = False

    name = m.group(1)
    state.is_inside_drawer = True
    state.current_drawer_name = name
    state.current_drawer_lines = []
    state.current_drawer_indent = _indent_of(line)
    state.current_drawer_is_properties = (
        name.upper() == "PROPERTIES"
        and state.is_in_metadata
        and state.current_heading_level is not None
    )
    # No event yet; will be emitted on :END:
    return None


def _record_document_keyword(key: str, value: str, state: OrgState) -> None:
    if key == "PROPERTY":
        prop_key, _, prop_value = value.partition(" ")
        if prop_key:
            state.preamble.properties[prop_key] = prop_value.strip()
    else:
        state.preamble.headers[key] = value

    if key in ("TODO", "SEQ_TODO", "TYP_TODO"):
        todo, done = parse_todo_keyword_line(value)
        if todo or done:
            state.todo_keywords = todo
            state.done_keywords = done


def _handle_preamble_if_applicable(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    Parse #+KEY: value lines at the beginning of a document.

    Preamble ends when:
      - the first heading is encountered (handled elsewhere), OR
      - we see the first non-empty line that is NOT a #+KEY: directive.
    """
    if not state.is_in_preamble:
        return None

    stripped = line.strip()
    if stripped == "":
        # blank lines are allowed inside preamble
        return None

    match = cfg.header_kv_re.match(line)
    if match and not cfg.block_re.match(line):
        key = match.group(1).strip().upper()
        value = _keyword_value(line)
        _record_document_keyword(key, value, state)
        return OrgEvent(type="preamble_kv", data={"key": key, "value": value})

    # Non-empty line, not a header keyword => preamble ends here
    state.is_in_preamble = False
    return OrgEvent(type="preamble_end", data={"reason": "first_non_header_content"})


def _handle_section_heading_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    match = cfg.section_heading_re.match(line)
    # a bare run of stars without a following space is not a heading
    if not match or match.group(2) is None:
        return None

    # Heading ends the preamble too
    if state.is_in_preamble:
        state.is_in_preamble = False

    heading_level = calculate_heading_level(match.group(1))
    fields = parse_headline(match.group(2) or "", state.all_todo_keywords)

    state.current_heading_level = heading_level
    state.is_in_metadata = True

    todo_keyword = fields["todo_keyword"]
    return OrgEvent(
        type="heading",
        data={
            "level": heading_level,
            "todo_keyword": todo_keyword,
            "todo_type": None if todo_keyword is None else todo_type_for(todo_keyword, state.done_keywords),
            "priority": fields["priority"],
            "commented": fields["commented"],
            "title": fields["title"],
            "tags": fields["tags"],
        },
    )


def _handle_planning_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    SCHEDULED/DEADLINE/CLOSED lines count only directly below a heading.
    """
    if not state.is_in_metadata or not cfg.planning_re.match(line):
        return None
    items = parse_planning_line(line)
    if items is None:
        return None
    return OrgEvent(type="planning", data={"items": items, "indent": _indent_of(line)})


def _handle_clock_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    CLOCK: lines belong to the current heading. Before the first heading
    they are plain text.
    """
    if state.current_heading_level is None or state.block_stack or not cfg.clock_re.match(line):
        return None
    entry = parse_clock_line(line)
    if entry is None:
        return None
    return OrgEvent(type="clock", data={"entry": entry, "raw": line})


def _handle_block_marker_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    Detect Org block begin/end markers and update the block stack.

    block_re has a 3rd capture group for the remainder:
      ^\\s*#\\+(begin|end)_(\\w+)\\b\\s*(.*)$

    A mismatched or orphan END marker is not structural; the caller treats
    it as text.
    """
    match = cfg.block_re.match(line)
    if not match:
        return None

    side = match.group(1).lower()  # "begin" | "end"
    block_name = match.group(2).lower()
    remainder = (match.group(3) or "").strip() if match.lastindex and match.lastindex >= 3 else ""
    upper_case = match.group(1).isupper()

    # ----------------- BEGIN -----------------
    if side == "begin":
        is_verbatim = block_name in cfg.verbatim_blocks
        state.block_stack.append(block_name)
        state.block_verbatim_stack.append(is_verbatim)
        state.is_inside_verbatim_block = any(state.block_verbatim_stack)

        if block_name == "src":
            opts = parse_src_block_options(remainder)
            return OrgEvent(
                type="src_begin",
                data={
                    "name": "src",
                    "language": opts["language"],
                    "switches": opts["switches"],
                    "parameters": opts["parameters"],
                    "indent": _indent_of(line),
                    "upper_case": upper_case,
                },
            )

        return OrgEvent(
            type="block_begin",
            data={
                "name": block_name,
                "parameters": remainder,
                "verbatim": is_verbatim,
                "indent": _indent_of(line),
                "upper_case": upper_case,
            },
        )

    # ----------------- END -----------------
    if not state.block_stack or state.block_stack[-1] != block_name:
        return None

    return _pop_block(state)


def _handle_table_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    Detect Org tables and turn each row into an event.

      | a | b | c |
      |----+----|

    We emit:

      - "table_hline" for horizontal separator lines
      - "table_row"   for data rows, with cells as a list of strings
    """
    if not cfg.table_re.match(line):
        return None

    core = line.strip()

    # Horizontal rule lines start with "|-"; "| - |" is a data cell
    if core.startswith("|-"):
        return OrgEvent(type="table_hline", data={"raw": line, "indent": _indent_of(line)})

    # Data row: split into cells
    row_inner = core[1:]
    if row_inner.endswith("|"):
        row_inner = row_inner[:-1]

    cells = [c.strip() for c in row_inner.split("|")]
    return OrgEvent(
        type="table_row",
        data={"cells": cells, "raw": line, "indent": _indent_of(line)},
    )


def _handle_keyword_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    #+KEY: value lines after the preamble. #+TBLFM: gets its own event so
    the table above can claim it.

    Before the first heading and outside blocks the keyword still belongs
    to the document: it is recorded like a preamble line and the event is
    flagged with "document".
    """
    match = cfg.header_kv_re.match(line)
    if not match:
        return None

    key = match.group(1).strip()
    value = _keyword_value(line)

    if key.lower() == "tblfm":
        parts = [p.strip() for p in value.split("::") if p.strip()]
        return OrgEvent(type="tblfm", data={"raw": value, "formulas": parts})

    document = state.current_heading_level is None and not state.block_stack
    if document:
        _record_document_keyword(key.upper(), value, state)

    return OrgEvent(
        type="keyword",
        data={"key": key, "value": value, "indent": _indent_of(line), "document": document},
    )


def _handle_comment_if_present(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> Optional[OrgEvent]:
    """
    Single-line comments: '#' followed by a space or end of line.
    """
    stripped = line.lstrip()
    if stripped == "#" or stripped.startswith("# "):
        return OrgEvent(type="comment", data={"raw": line})
    return None


# ---------------- Driver -----------------------------------------------------

def close_open_regions(state: OrgState) -> list[OrgEvent]:
    """
    Implicitly close whatever is still open (end of input, or a heading
    interrupting a drawer / non-verbatim block).
    """
    events: list[OrgEvent] = []
    if state.is_inside_drawer:
        events.append(_close_drawer(state, implicit=True))
    while state.block_stack:
        events.append(_pop_block(state))
    return events


def parse_org_line(
    line: str,
    cfg: OrgReaderConfig,
    state: OrgState,
) -> tuple[OrgState, list[OrgEvent]]:
    """
    Classify one line. Returns the (mutated) state and the events for it.
    """
    events: list[OrgEvent] = []

    # ----- Verbatim blocks are opaque ---------------------------------
    if state.is_inside_verbatim_block:
        events.append(_handle_verbatim_line(line, cfg, state))
        return state, events

    # ----- Headings close drawers and open non-verbatim blocks ---------
    heading_probe = cfg.section_heading_re.match(line)
    if heading_probe and heading_probe.group(2) is not None:
        events.extend(close_open_regions(state))
        heading_event = _handle_section_heading_if_present(line, cfg, state)
        if heading_event:
            events.append(heading_event)
            return state, events

    # ----- Drawers ----------------------------------------------------
    was_in_drawer = state.is_inside_drawer
    drawer_event = _handle_drawer_if_present(line, cfg, state)
    if drawer_event is not None:
        events.append(drawer_event)
        return state, events
    if state.is_inside_drawer:
        if not was_in_drawer and not state.current_drawer_is_properties:
            state.is_in_metadata = False
        return state, events

    # ----- Blank lines ------------------------------------------------
    if line.strip() == "":
        state.is_in_metadata = False
        events.append(OrgEvent(type="blank", data={"raw": line}))
        return state, events

    # ----- Preamble ---------------------------------------------------
    preamble_event = _handle_preamble_if_applicable(line, cfg, state)
    if preamble_event:
        events.append(preamble_event)
        if preamble_event.type == "preamble_kv":
            return state, events

    # ----- Planning / clock -------------------------------------------
    planning_event = _handle_planning_if_present(line, cfg, state)
    if planning_event:
        events.append(planning_event)
        return state, events

    clock_event = _handle_clock_if_present(line, cfg, state)
    if clock_event:
        events.append(clock_event)
        return state, events

    # Anything else ends the heading's metadata zone
    state.is_in_metadata = False

    # ----- Blocks -----------------------------------------------------
    block_event = _handle_block_marker_if_present(line, cfg, state)
    if block_event:
        events.append(block_event)
        return state, events

    # ----- Tables -----------------------------------------------------
    table_event = _handle_table_if_present(line, cfg, state)
    if table_event is not None:
        events.append(table_event)
        return state, events

    # ----- Keywords / comments ----------------------------------------
    if not cfg.block_re.match(line):
        keyword_event = _handle_keyword_if_present(line, cfg, state)
        if keyword_event:
            events.append(keyword_event)
            return state, events

    comment_event = _handle_comment_if_present(line, cfg, state)
    if comment_event is not None:
        events.append(comment_event)
        return state, events

    events.append(OrgEvent(type="text", data={"raw": line}))
    return state, events


def iter_org_events(lines, cfg: OrgReaderConfig = DEFAULT_CONFIG, state: Optional[OrgState] = None):
    """
    Classify every line of `lines` and yield (line_number, event) pairs,
    closing unterminated regions at the end.
    """
    if state is None:
        state = new_state(cfg)
    lineno = 0
    for lineno, line in enumerate(lines, start=1):
        state, events = parse_org_line(line, cfg, state)
        for event in events:
            yield lineno, event
    for event in close_open_regions(state):
        yield lineno, event
