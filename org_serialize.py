#!/usr/bin/env python3
"""
org_serialize.py

Turn a Document (possibly mutated) back into Org text.

Layout of one headline:

  ** TODO [#A] Title :tag1:tag2:
  SCHEDULED: <2024-03-15 Fri>          planning
  :PROPERTIES:                         property drawer
  :KEY: value
  :END:
  CLOCK: [...]--[...] =>  1:30         clock log
  body elements ...
  *** children ...

If the source had the property drawer above the planning line, that order
is kept.
"""
from __future__ import annotations

from org_clock import format_clock_line
from org_elements import ClockEntry, Document, Element, Headline, Keyword, Planning, Table


def _fence(word: str, name: str, upper_case: bool) -> str:
    text = f"#+{word}_{name}"
    return text.upper() if upper_case else text.lower()


# ---------------- Pieces -----------------------------------------------------

def serialize_headline_line(headline: Headline) -> str:
    parts = []
    if headline.todo_keyword:
        parts.append(headline.todo_keyword)
    if headline.priority:
        parts.append(f"[#{headline.priority}]")
    if headline.commented:
        parts.append("COMMENT")
    if headline.raw_value:
        parts.append(headline.raw_value)
    if headline.tags:
        parts.append(":" + ":".join(headline.tags) + ":")
    return "*" * headline.level + " " + " ".join(parts)


def serialize_planning(planning: Planning) -> str:
    """'SCHEDULED: <...> DEADLINE: <...>' in the remembered keyword order."""
    items = " ".join(f"{keyword}: {ts.raw_value}" for keyword, ts in planning.items())
    return f"{planning.indent}{items}"


def serialize_properties(properties: dict[str, str]) -> list[str]:
    lines = [":PROPERTIES:"]
    for key, value in properties.items():
        lines.append(f":{key}: {value}" if value != "" else f":{key}:")
    lines.append(":END:")
    return lines


def serialize_clock(entry: ClockEntry) -> str:
    return format_clock_line(entry)


def serialize_table(table: Table) -> list[str]:
    """
    Column-aligned table lines:

      | name  | age |
      |-------+-----|
      | Alice | 30  |
    """
    data_rows = table.data_rows
    ncols = max((len(r.cells) for r in data_rows), default=0)
    if not table.rows:
        return []
    if ncols == 0:
        ncols = 1

    widths = [0] * ncols
    for row in data_rows:
        for i, cell in enumerate(row.cells):
            widths[i] = max(widths[i], len(cell))

    lines = []
    for row in table.rows:
        if row.is_rule:
            lines.append(table.indent + "|" + "+".join("-" * (w + 2) for w in widths) + "|")
            continue
        cells = list(row.cells) + [""] * (ncols - len(row.cells))
        padded = [cell.ljust(widths[i]) for i, cell in enumerate(cells)]
        lines.append(table.indent + "| " + " | ".join(padded) + " |")

    if table.formulas:
        lines.append(f"{table.indent}#+TBLFM: " + "::".join(table.formulas))
    return lines


def _element_lines(element: Element) -> list[str]:
    kind = element.type

    if kind == "paragraph":
        return list(element.lines)

    if kind == "src-block":
        header = element.indent + _fence("begin", "src", element.upper_case)
        if element.language:
            header += f" {element.language}"
        for switch in element.switches:
            header += f" {switch}"
        for key, value in element.parameters.items():
            header += f" :{key} {value}" if value != "" else f" :{key}"
        return [header, *element.value.splitlines(), element.indent + _fence("end", "src", element.upper_case)]

    if kind == "block":
        header = element.indent + _fence("begin", element.block_type, element.upper_case)
        if element.parameters:
            header += f" {element.parameters}"
        footer = element.indent + _fence("end", element.block_type, element.upper_case)
        if element.is_verbatim:
            return [header, *element.value.splitlines(), footer]
        inner: list[str] = []
        for child in element.children:
            inner.extend(_element_lines(child))
            inner.extend([""] * child.post_blank)
        return [header, *inner, footer]

    if kind == "table":
        return serialize_table(element)

    if kind == "drawer":
        return [f"{element.indent}:{element.name}:", *element.lines, f"{element.indent}:END:"]

    if kind == "keyword":
        return [f"{element.indent}#+{element.key}: {element.value}".rstrip()]

    if kind == "comment":
        return list(element.lines)

    raise ValueError(f"Unknown element type: {kind!r}")


def serialize_element(element: Element) -> str:
    """Text of one body element, without trailing blank lines."""
    return "\n".join(_element_lines(element))


# ---------------- Tree -------------------------------------------------------

def _headline_lines(headline: Headline, out: list[str]) -> None:
    out.append(serialize_headline_line(headline))

    planning = []
    if headline.planning is not None and not headline.planning.is_empty:
        planning = [serialize_planning(headline.planning)]
    drawer = []
    if headline.properties_drawer is not None:
        drawer = serialize_properties(headline.properties_drawer)

    if headline.drawer_first:
        out.extend(drawer + planning)
    else:
        out.extend(planning + drawer)

    out.extend(serialize_clock(entry) for entry in headline.clock)
    out.extend([""] * headline.post_blank)

    for element in headline.body:
        out.extend(_element_lines(element))
        out.extend([""] * element.post_blank)

    for child in headline.children:
        _headline_lines(child, out)


def _finish(lines: list[str]) -> str:
    while lines and lines[-1].strip() == "":
        lines.pop()
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def serialize_headline(headline: Headline) -> str:
    """Text of `headline` and its whole subtree."""
    lines: list[str] = []
    _headline_lines(headline, lines)
    return _finish(lines)


def _placed_keywords(doc: Document) -> dict[tuple[str, str], Keyword]:
    """
    Keyword lines kept in the document body (after a comment, a drawer or
    text) stand for the matching doc.keywords / doc.properties entries.
    Maps (KEY, "") or ("PROPERTY", name) to the last such line.
    """
    placed: dict[tuple[str, str], Keyword] = {}
    for element in doc.body:
        if element.type != "keyword":
            continue
        key = element.key.upper()
        if key == "PROPERTY":
            name = element.value.partition(" ")[0]
            if name:
                placed[(key, name)] = element
        else:
            placed[(key, "")] = element
    return placed


def _placed_values(doc: Document, placed: dict[tuple[str, str], Keyword]):
    # the last line of each key carries the current document value
    for (key, name), element in placed.items():
        if key == "PROPERTY":
            if name in doc.properties:
                yield f"{name} {doc.properties[name]}", element
        elif key in doc.keywords:
            yield doc.keywords[key], element


def serialize(doc: Document) -> str:
    """
    Regenerate Org text from `doc`. The result ends with exactly one
    newline; an empty document gives ''.
    """
    placed = _placed_keywords(doc)
    lines: list[str] = []
    for key, value in doc.keywords.items():
        if (key, "") not in placed:
            lines.append(f"#+{key}: {value}".rstrip())
    for key, value in doc.properties.items():
        if ("PROPERTY", key) not in placed:
            lines.append(f"#+PROPERTY: {key} {value}".rstrip())
    lines.extend([""] * doc.post_blank)

    current = {id(element): value for value, element in _placed_values(doc, placed)}
    for element in doc.body:
        if id(element) in current:
            lines.append(f"{element.indent}#+{element.key}: {current[id(element)]}".rstrip())
        else:
            lines.extend(_element_lines(element))
        lines.extend([""] * element.post_blank)

    for headline in doc.children:
        _headline_lines(headline, lines)

    return _finish(lines)
