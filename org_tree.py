#!/usr/bin/env python3
"""
org_tree.py

Build a Document tree from the line events of org_parser.

Headlines are nested by comparing star counts: each new heading pops every
open headline whose level is >= its own and becomes a child of whatever
remains on top of the stack (or of the Document). Everything else attaches
to the innermost open container in encounter order.
"""
from __future__ import annotations

from typing import Optional, Union

from config_loader import OrgReaderConfig, DEFAULT_CONFIG
from org_elements import (
    Block,
    Comment,
    Document,
    Drawer,
    Element,
    Headline,
    Keyword,
    Paragraph,
    Planning,
    SrcBlock,
    Table,
    TableRow,
)
from org_parser import OrgEvent, iter_org_events, new_state, scan_inline_objects


class _TreeBuilder:
    def __init__(self, cfg: OrgReaderConfig):
        self.cfg = cfg
        self.doc = Document()
        self.headline_stack: list[Headline] = []
        # element lists that receive new body elements; innermost last
        self.containers: list[list[Element]] = [self.doc.body]
        # open blocks, parallel to the classifier's block stack
        self.open_blocks: list[Union[Block, SrcBlock]] = []
        self.verbatim_lines: Optional[list[str]] = None

        self.paragraph: Optional[Paragraph] = None
        self.table: Optional[Table] = None
        self.comment: Optional[Comment] = None

    # ------ Helpers ----------------------------------------------------

    @property
    def current(self) -> Optional[Headline]:
        return self.headline_stack[-1] if self.headline_stack else None

    def _append(self, element: Element) -> None:
        self.containers[-1].append(element)

    def _close_paragraph(self) -> None:
        if self.paragraph is not None:
            self.paragraph.objects = scan_inline_objects(self.paragraph.value)
            self.paragraph = None

    def _close_open_elements(self, keep: str = "") -> None:
        if keep != "paragraph":
            self._close_paragraph()
        if keep != "table":
            self.table = None
        if keep != "comment":
            self.comment = None

    def _add_blank(self) -> None:
        container = self.containers[-1]
        if container:
            container[-1].post_blank += 1
        elif len(self.containers) > 1:
            # blank line opening a block body: nothing to attach it to
            return
        elif self.current is not None:
            self.current.post_blank += 1
        else:
            self.doc.post_blank += 1

    # ------ Event dispatch ---------------------------------------------

    def feed(self, event: OrgEvent) -> None:
        handler = getattr(self, f"_on_{event.type}", None)
        if handler is None:
            return
        handler(event.data)

    def _on_preamble_kv(self, data: dict) -> None:
        self._record_keyword(data["key"], data["value"])

    def _record_keyword(self, key: str, value: str) -> None:
        if key == "PROPERTY":
            prop_key, _, prop_value = value.partition(" ")
            if prop_key:
                self.doc.properties[prop_key] = prop_value.strip()
            return
        self.doc.keywords[key] = value

    def _on_heading(self, data: dict) -> None:
        self._close_open_elements()
        self.open_blocks = []
        self.verbatim_lines = None

        headline = Headline(
            level=data["level"],
            raw_value=data["title"],
            todo_keyword=data["todo_keyword"],
            todo_type=data["todo_type"],
            priority=data["priority"],
            tags=list(data["tags"]),
            commented=data["commented"],
            title_objects=scan_inline_objects(data["title"]),
        )

        while self.headline_stack and self.headline_stack[-1].level >= headline.level:
            self.headline_stack.pop()
        parent = self.current if self.current is not None else self.doc
        parent.children.append(headline)
        self.headline_stack.append(headline)
        self.containers = [headline.body]

    def _on_planning(self, data: dict) -> None:
        headline = self.current
        if headline.planning is None:
            headline.planning = Planning(indent=data["indent"])
            headline.drawer_first = headline.properties_drawer is not None
        for keyword, timestamp in data["items"]:
            headline.planning.set(keyword, timestamp)

    def _on_property_drawer(self, data: dict) -> None:
        headline = self.current
        if headline.properties_drawer is None:
            headline.properties_drawer = {}
        headline.properties_drawer.update(data["properties"])

    def _on_clock(self, data: dict) -> None:
        self._close_open_elements()
        self.current.clock.append(data["entry"])

    def _on_drawer(self, data: dict) -> None:
        self._close_open_elements()
        self._append(Drawer(name=data["name"], lines=list(data["lines"]), indent=data["indent"]))

    def _on_src_begin(self, data: dict) -> None:
        self._close_open_elements()
        block = SrcBlock(
            language=data["language"],
            switches=list(data["switches"]),
            parameters=dict(data["parameters"]),
            indent=data["indent"],
            upper_case=data["upper_case"],
        )
        self._append(block)
        self.open_blocks.append(block)
        self.verbatim_lines = []

    def _on_block_begin(self, data: dict) -> None:
        self._close_open_elements()
        block = Block(
            block_type=data["name"],
            parameters=data["parameters"],
            indent=data["indent"],
            upper_case=data["upper_case"],
        )
        self._append(block)
        self.open_blocks.append(block)
        if data["verbatim"]:
            block.value = ""
            self.verbatim_lines = []
        else:
            self.containers.append(block.children)

    def _on_block_line(self, data: dict) -> None:
        if self.verbatim_lines is not None:
            self.verbatim_lines.append(data["raw"])

    def _finish_block(self) -> None:
        self._close_open_elements()
        if not self.open_blocks:
            return
        block = self.open_blocks.pop()
        if block.type == "src-block" or block.value is not None:
            block.value = "".join(line + "\n" for line in self.verbatim_lines or [])
            self.verbatim_lines = None
        elif len(self.containers) > 1:
            self.containers.pop()

    def _on_src_end(self, data: dict) -> None:
        self._finish_block()

    def _on_block_end(self, data: dict) -> None:
        self._finish_block()

    def _on_table_row(self, data: dict) -> None:
        self._add_table_row(TableRow(cells=list(data["cells"])), data["indent"])

    def _on_table_hline(self, data: dict) -> None:
        self._add_table_row(TableRow(row_type="rule"), data["indent"])

    def _add_table_row(self, row: TableRow, indent: str) -> None:
        self._close_open_elements(keep="table")
        if self.table is None:
            self.table = Table(indent=indent)
            self._append(self.table)
        self.table.rows.append(row)

    def _on_tblfm(self, data: dict) -> None:
        if self.table is not None:
            self.table.formulas.extend(data["formulas"])
            self.table = None
            return
        self._close_open_elements()
        self._append(Keyword(key="TBLFM", value=data["raw"]))

    def _on_keyword(self, data: dict) -> None:
        self._close_open_elements()
        self._append(Keyword(key=data["key"], value=data["value"], indent=data["indent"]))
        if data.get("document"):
            self._record_keyword(data["key"].upper(), data["value"])

    def _on_comment(self, data: dict) -> None:
        self._close_open_elements(keep="comment")
        if self.comment is None:
            self.comment = Comment()
            self._append(self.comment)
        self.comment.lines.append(data["raw"])

    def _on_blank(self, data: dict) -> None:
        self._close_open_elements()
        self._add_blank()

    def _on_text(self, data: dict) -> None:
        self._close_open_elements(keep="paragraph")
        if self.paragraph is None:
            self.paragraph = Paragraph()
            self._append(self.paragraph)
        self.paragraph.lines.append(data["raw"])

    def finish(self, todo_keywords: list[str], done_keywords: list[str]) -> Document:
        self._close_open_elements()
        self.doc.todo_keywords = list(todo_keywords)
        self.doc.done_keywords = list(done_keywords)
        return self.doc


def parse(text: str, cfg: OrgReaderConfig = DEFAULT_CONFIG) -> Document:
    """
    Parse Org text into a Document.

    Never raises on malformed markup: unknown or broken constructs end up
    as paragraph text.
    """
    state = new_state(cfg)
    builder = _TreeBuilder(cfg)
    for _, event in iter_org_events(text.splitlines(), cfg, state):
        builder.feed(event)
    return builder.finish(state.todo_keywords, state.done_keywords)
