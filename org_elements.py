#!/usr/bin/env python3
"""
org_elements.py

Typed node classes for a parsed Org document.

Every node carries a fixed `type` discriminator so that traversal code can
dispatch on it:

  - "document"   Document
  - "headline"   Headline
  - "paragraph"  Paragraph
  - "src-block"  SrcBlock
  - "block"      Block (quote, example, center, ...)
  - "table"      Table  (rows: "table-row")
  - "drawer"     Drawer (LOGBOOK and other non-property drawers)
  - "keyword"    Keyword (#+KEY: lines after the preamble)
  - "comment"    Comment
  - "planning"   Planning
  - "clock"      ClockEntry
  - "timestamp"  Timestamp
  - "link"       Link
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union


# ---------------- Inline objects ---------------------------------------------

@dataclass
class Timestamp:
    """
    An Org timestamp such as <2024-03-15 Fri 14:30 +1w>.

    Months are 1-indexed. `raw_value` is always computed from the fields,
    never stored.
    """
    year_start: int
    month_start: int
    day_start: int
    hour_start: Optional[int] = None
    minute_start: Optional[int] = None
    year_end: Optional[int] = None
    month_end: Optional[int] = None
    day_end: Optional[int] = None
    hour_end: Optional[int] = None
    minute_end: Optional[int] = None
    timestamp_type: str = "active"  # "active" | "inactive"
    day_name: Optional[str] = None
    day_name_end: Optional[str] = None
    repeater_type: Optional[str] = None  # "+" | "++" | ".+"
    repeater_value: Optional[int] = None
    repeater_unit: Optional[str] = None  # h d w m y
    warning_type: Optional[str] = None  # "-" | "--"
    warning_value: Optional[int] = None
    warning_unit: Optional[str] = None
    # (begin, end) offsets inside the text the scanner read it from
    span: Optional[tuple[int, int]] = field(default=None, compare=False)
    type: str = field(default="timestamp", init=False, repr=False)

    @property
    def is_active(self) -> bool:
        return self.timestamp_type == "active"

    @property
    def is_range(self) -> bool:
        return self.year_end is not None

    @property
    def has_time(self) -> bool:
        return self.hour_start is not None

    @property
    def repeater(self) -> Optional[str]:
        if self.repeater_type is None or self.repeater_value is None or self.repeater_unit is None:
            return None
        return f"{self.repeater_type}{self.repeater_value}{self.repeater_unit}"

    @property
    def warning(self) -> Optional[str]:
        if self.warning_type is None or self.warning_value is None or self.warning_unit is None:
            return None
        return f"{self.warning_type}{self.warning_value}{self.warning_unit}"

    def _same_day_range(self) -> bool:
        return (
            self.is_range
            and (self.year_end, self.month_end, self.day_end)
            == (self.year_start, self.month_start, self.day_start)
            and self.hour_start is not None
            and self.hour_end is not None
        )

    def _stamp(self, year, month, day, dow, hour, minute, *, with_cookies: bool, time_end: str = "") -> str:
        parts = [f"{year:04d}-{month:02d}-{day:02d}"]
        if dow:
            parts.append(dow)
        if hour is not None:
            parts.append(f"{hour:02d}:{(minute or 0):02d}{time_end}")
        if with_cookies:
            if self.repeater:
                parts.append(self.repeater)
            if self.warning:
                parts.append(self.warning)
        open_, close = ("<", ">") if self.is_active else ("[", "]")
        return open_ + " ".join(parts) + close

    @property
    def raw_value(self) -> str:
        if self._same_day_range():
            time_end = f"-{self.hour_end:02d}:{(self.minute_end or 0):02d}"
            return self._stamp(
                self.year_start, self.month_start, self.day_start, self.day_name,
                self.hour_start, self.minute_start,
                with_cookies=True, time_end=time_end,
            )

        start = self._stamp(
            self.year_start, self.month_start, self.day_start, self.day_name,
            self.hour_start, self.minute_start,
            with_cookies=True,
        )
        if not self.is_range:
            return start
        end = self._stamp(
            self.year_end, self.month_end, self.day_end, self.day_name_end,
            self.hour_end, self.minute_end,
            with_cookies=False,
        )
        return f"{start}--{end}"

    def __str__(self) -> str:
        return self.raw_value


@dataclass
class Link:
    """
    A bracket link: [[path]] or [[path][description]].
    """
    path: str
    description: Optional[str] = None
    link_type: str = "fuzzy"
    span: Optional[tuple[int, int]] = field(default=None, compare=False)
    type: str = field(default="link", init=False, repr=False)

    @property
    def raw_value(self) -> str:
        if self.description:
            return f"[[{self.path}][{self.description}]]"
        return f"[[{self.path}]]"

    def __str__(self) -> str:
        return self.raw_value


InlineObject = Union[Link, Timestamp]


# ---------------- Headline metadata ------------------------------------------

PLANNING_KEYWORDS = ("SCHEDULED", "DEADLINE", "CLOSED")


@dataclass
class Planning:
    """
    SCHEDULED / DEADLINE / CLOSED timestamps of one headline.

    `order` remembers the keyword order of the source line.
    """
    scheduled: Optional[Timestamp] = None
    deadline: Optional[Timestamp] = None
    closed: Optional[Timestamp] = None
    order: list[str] = field(default_factory=list)
    indent: str = ""
    type: str = field(default="planning", init=False, repr=False)

    def get(self, keyword: str) -> Optional[Timestamp]:
        return getattr(self, keyword.lower())

    def set(self, keyword: str, timestamp: Optional[Timestamp]) -> None:
        keyword = keyword.upper()
        setattr(self, keyword.lower(), timestamp)
        if timestamp is not None and keyword not in self.order:
            self.order.append(keyword)

    def items(self) -> list[tuple[str, Timestamp]]:
        """Present (keyword, timestamp) pairs in output order."""
        ordered = [k for k in self.order if k in PLANNING_KEYWORDS]
        ordered += [k for k in PLANNING_KEYWORDS if k not in ordered]
        out = []
        for keyword in ordered:
            ts = self.get(keyword)
            if ts is not None:
                out.append((keyword, ts))
        return out

    @property
    def is_empty(self) -> bool:
        return not self.items()


@dataclass
class ClockEntry:
    """
    CLOCK: [start]--[end] =>  H:MM

    `duration` is the text after '=>' (None for a running clock).
    """
    start: Timestamp
    end: Optional[Timestamp] = None
    duration: Optional[str] = None
    indent: str = ""
    type: str = field(default="clock", init=False, repr=False)

    @property
    def is_running(self) -> bool:
        return self.end is None


# ---------------- Body elements ----------------------------------------------

@dataclass
class Paragraph:
    lines: list[str] = field(default_factory=list)
    objects: list[InlineObject] = field(default_factory=list)
    post_blank: int = 0
    type: str = field(default="paragraph", init=False, repr=False)

    @property
    def value(self) -> str:
        return "\n".join(self.lines)


@dataclass
class SrcBlock:
    """
    #+BEGIN_SRC language [switches] [:key value ...]

    `value` is the unprocessed body; every body line keeps its newline.
    """
    language: Optional[str] = None
    value: str = ""
    switches: list[str] = field(default_factory=list)
    parameters: dict[str, str] = field(default_factory=dict)
    indent: str = ""
    upper_case: bool = True
    post_blank: int = 0
    type: str = field(default="src-block", init=False, repr=False)

    @property
    def lines(self) -> list[str]:
        return self.value.splitlines()


@dataclass
class Block:
    """
    Any #+BEGIN_<kind> block other than SRC.

    Verbatim kinds keep their body in `value`; the others hold parsed
    child elements.
    """
    block_type: str
    parameters: str = ""
    value: Optional[str] = None
    children: list["Element"] = field(default_factory=list)
    indent: str = ""
    upper_case: bool = True
    post_blank: int = 0
    type: str = field(default="block", init=False, repr=False)

    @property
    def is_verbatim(self) -> bool:
        return self.value is not None


@dataclass
class TableRow:
    cells: list[str] = field(default_factory=list)
    row_type: str = "standard"  # "standard" | "rule"
    type: str = field(default="table-row", init=False, repr=False)

    @property
    def is_rule(self) -> bool:
        return self.row_type == "rule"


@dataclass
class Table:
    rows: list[TableRow] = field(default_factory=list)
    formulas: list[str] = field(default_factory=list)
    indent: str = ""
    post_blank: int = 0
    type: str = field(default="table", init=False, repr=False)

    @property
    def data_rows(self) -> list[TableRow]:
        return [r for r in self.rows if not r.is_rule]

    @property
    def children(self) -> list[TableRow]:
        return self.rows


@dataclass
class Drawer:
    name: str
    lines: list[str] = field(default_factory=list)
    indent: str = ""
    post_blank: int = 0
    type: str = field(default="drawer", init=False, repr=False)


@dataclass
class Keyword:
    key: str
    value: str = ""
    indent: str = ""
    post_blank: int = 0
    type: str = field(default="keyword", init=False, repr=False)


@dataclass
class Comment:
    lines: list[str] = field(default_factory=list)
    post_blank: int = 0
    type: str = field(default="comment", init=False, repr=False)


Element = Union[Paragraph, SrcBlock, Block, Table, Drawer, Keyword, Comment]


# ---------------- Tree nodes -------------------------------------------------

@dataclass(eq=False)
class Headline:
    """
    A node of the outline tree.

    Invariants kept by the mutation helpers:
      - todo_keyword is None  <=>  todo_type is None
      - tags has no duplicates
      - every child has level == self.level + 1 after insert_headline()
    """
    level: int
    raw_value: str = ""
    todo_keyword: Optional[str] = None
    todo_type: Optional[str] = None  # "todo" | "done"
    priority: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    properties_drawer: Optional[dict[str, str]] = None
    planning: Optional[Planning] = None
    clock: list[ClockEntry] = field(default_factory=list)
    body: list[Element] = field(default_factory=list)
    children: list["Headline"] = field(default_factory=list)
    commented: bool = False
    title_objects: list[InlineObject] = field(default_factory=list)
    # True when the source put the property drawer above the planning line
    drawer_first: bool = False
    post_blank: int = 0
    type: str = field(default="headline", init=False, repr=False)

    @property
    def title(self) -> str:
        return self.raw_value

    @property
    def archived(self) -> bool:
        return "ARCHIVE" in self.tags

    def __repr__(self) -> str:
        return f"Headline(level={self.level}, raw_value={self.raw_value!r}, todo_keyword={self.todo_keyword!r})"


@dataclass(eq=False)
class Document:
    """
    Root container.

    `keywords` keeps the last value per #+KEY: seen before the first
    headline, except #+PROPERTY: lines, which accumulate into `properties`.
    Leading keyword lines live only there. Keyword lines that follow other
    content (a comment, a drawer, text) also stay in `body` as Keyword
    elements so they keep their place; the serializer writes the current
    dict value into the last such line of each key.
    """
    keywords: dict[str, str] = field(default_factory=dict)
    properties: dict[str, str] = field(default_factory=dict)
    body: list[Element] = field(default_factory=list)
    children: list[Headline] = field(default_factory=list)
    todo_keywords: list[str] = field(default_factory=list)
    done_keywords: list[str] = field(default_factory=list)
    post_blank: int = 0
    type: str = field(default="document", init=False, repr=False)

    @property
    def title(self) -> Optional[str]:
        return self.keywords.get("TITLE")

    def __repr__(self) -> str:
        return f"Document(keywords={self.keywords!r}, headlines={len(self.children)})"


Container = Union[Document, Headline]
