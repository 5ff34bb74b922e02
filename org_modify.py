#!/usr/bin/env python3
"""
org_modify.py

Walk, query and rewrite a parsed Document in place.

Traversal is pre-order and depth-first. Visitors receive
(node, parent, index_in_parent); the parent of a top-level headline is the
Document itself. Child lists are iterated by index and their length is
re-read at every step, so a visitor may rewrite the node it is handed.
Inserting or deleting siblings while walking is not supported.

Lookups that find nothing return None. Misuse (an index out of range,
inserting a node into its own subtree) is a no-op that also returns None.
"""
from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Union

from config_loader import DEFAULT_CONFIG, todo_type_for
from org_elements import (
    Block,
    Container,
    Document,
    Element,
    Headline,
    Link,
    Planning,
    SrcBlock,
    Table,
    Timestamp,
)
from org_parser import link_type_for, scan_inline_objects

HeadlineVisitor = Callable[[Headline, Container, int], Any]
ElementVisitor = Callable[[Element, Union[Container, Block], int], Any]


# ---------------- Headline traversal -----------------------------------------

def iter_headlines(root: Container) -> Iterator[tuple[Headline, Container, int]]:
    """
    Yield (headline, parent, index) for every headline below `root`,
    pre-order.
    """
    children = root.children
    i = 0
    while i < len(children):
        child = children[i]
        yield child, root, i
        yield from iter_headlines(child)
        i += 1


def map_headlines(root: Container, visitor: HeadlineVisitor) -> None:
    """Call visitor(headline, parent, index) for every headline, pre-order."""
    for headline, parent, index in iter_headlines(root):
        visitor(headline, parent, index)


def filter_headlines(root: Container, predicate: Callable[[Headline], bool]) -> list[Headline]:
    return [h for h, _, _ in iter_headlines(root) if predicate(h)]


def find_headline(root: Container, predicate: Callable[[Headline], bool]) -> Optional[Headline]:
    """First pre-order match, or None."""
    for headline, _, _ in iter_headlines(root):
        if predicate(headline):
            return headline
    return None


def get_all_headlines(root: Container) -> list[Headline]:
    return [h for h, _, _ in iter_headlines(root)]


# ---------------- Element traversal ------------------------------------------

def _iter_body(owner, elements: list[Element]):
    i = 0
    while i < len(elements):
        element = elements[i]
        yield element, owner, i
        if element.type == "block" and not element.is_verbatim:
            yield from _iter_body(element, element.children)
        i += 1


def iter_elements(root: Container):
    """
    Yield (element, parent, index) for every body element below `root` in
    document order, descending into headline bodies and non-verbatim
    blocks. `parent` is the Document, Headline or Block owning the list.
    """
    yield from _iter_body(root, root.body)
    for headline, _, _ in iter_headlines(root):
        yield from _iter_body(headline, headline.body)


def map_elements(root: Container, kind: str, visitor: Callable) -> None:
    """
    Call visitor(element, parent, index) for every element whose `type`
    is `kind` ('src-block', 'table', 'paragraph', ...). 'headline' walks
    the outline instead.
    """
    if kind == "headline":
        map_headlines(root, visitor)
        return
    for element, parent, index in iter_elements(root):
        if element.type == kind:
            visitor(element, parent, index)


def filter_elements(root: Container, kind: str) -> list:
    found: list = []
    map_elements(root, kind, lambda element, parent, index: found.append(element))
    return found


def get_src_blocks(root: Container) -> list[SrcBlock]:
    return filter_elements(root, "src-block")


def get_tables(root: Container) -> list[Table]:
    return filter_elements(root, "table")


# ---------------- Query ------------------------------------------------------

@dataclass
class QueryCriteria:
    """
    Structured query. Set fields combine with AND; `any_tag` is an OR over
    its own tags. Without `type` the query selects headlines.
    """
    type: Optional[str] = None
    todo_keyword: Union[str, list[str], None] = None
    has_todo: Optional[bool] = None
    todo_type: Optional[str] = None
    tags: Optional[list[str]] = None
    any_tag: Optional[list[str]] = None
    level: Optional[int] = None
    min_level: Optional[int] = None
    max_level: Optional[int] = None
    title_contains: Optional[str] = None
    has_property: Optional[str] = None
    property: Optional[tuple[str, str]] = None
    language: Optional[str] = None
    predicate: Optional[Callable[[Any], bool]] = None


def _matches_headline(h: Headline, c: QueryCriteria) -> bool:
    if c.todo_keyword is not None:
        wanted = [c.todo_keyword] if isinstance(c.todo_keyword, str) else list(c.todo_keyword)
        if h.todo_keyword not in wanted:
            return False

    if c.has_todo is True and h.todo_keyword is None:
        return False
    if c.has_todo is False and h.todo_keyword is not None:
        return False

    if c.todo_type is not None and h.todo_type != c.todo_type:
        return False

    if c.tags is not None and not all(tag in h.tags for tag in c.tags):
        return False
    if c.any_tag is not None and not any(tag in h.tags for tag in c.any_tag):
        return False

    if c.level is not None and h.level != c.level:
        return False
    if c.min_level is not None and h.level < c.min_level:
        return False
    if c.max_level is not None and h.level > c.max_level:
        return False

    if c.title_contains is not None and c.title_contains.lower() not in h.raw_value.lower():
        return False

    drawer = h.properties_drawer or {}
    if c.has_property is not None and c.has_property not in drawer:
        return False
    if c.property is not None:
        key, value = c.property
        if drawer.get(key) != value:
            return False

    if c.predicate is not None and not c.predicate(h):
        return False
    return True


def _matches_element(element: Element, c: QueryCriteria) -> bool:
    if c.language is not None and element.type == "src-block" and element.language != c.language:
        return False
    if c.predicate is not None and not c.predicate(element):
        return False
    return True


def query(root: Container, criteria: Optional[QueryCriteria] = None, **fields) -> list:
    """
    Select nodes below `root`.

        query(doc, todo_keyword="TODO")
        query(doc, QueryCriteria(type="src-block", language="python"))
    """
    if criteria is None:
        criteria = QueryCriteria(**fields)
    elif fields:
        criteria = dataclasses.replace(criteria, **fields)

    kind = criteria.type or "headline"
    if kind == "headline":
        return filter_headlines(root, lambda h: _matches_headline(h, criteria))
    return [el for el in filter_elements(root, kind) if _matches_element(el, criteria)]


# ---------------- Headline fields --------------------------------------------

def set_todo(headline: Headline, keyword: Optional[str], done_keywords: Optional[list[str]] = None) -> None:
    """
    Set (or with None clear) the TODO keyword. The type is 'done' for
    keywords in `done_keywords`, else 'todo'.
    """
    if done_keywords is None:
        done_keywords = DEFAULT_CONFIG.done_keywords
    if not keyword:
        headline.todo_keyword = None
        headline.todo_type = None
        return
    headline.todo_keyword = keyword
    headline.todo_type = todo_type_for(keyword, done_keywords)


def add_tag(headline: Headline, tag: str) -> None:
    if tag not in headline.tags:
        headline.tags.append(tag)


def remove_tag(headline: Headline, tag: str) -> None:
    if tag in headline.tags:
        headline.tags.remove(tag)


def set_property(headline: Headline, key: str, value: str) -> None:
    if headline.properties_drawer is None:
        headline.properties_drawer = {}
    headline.properties_drawer[key] = value


def remove_property(headline: Headline, key: str) -> None:
    # the (possibly empty) drawer stays
    if headline.properties_drawer is not None:
        headline.properties_drawer.pop(key, None)


def get_property(headline: Headline, key: str) -> Optional[str]:
    return (headline.properties_drawer or {}).get(key)


def set_priority(headline: Headline, priority: Optional[str]) -> None:
    headline.priority = priority or None


# ---------------- Planning ---------------------------------------------------

def _get_planning(headline: Headline, keyword: str) -> Optional[Timestamp]:
    if headline.planning is None:
        return None
    return headline.planning.get(keyword)


def _set_planning(headline: Headline, keyword: str, timestamp: Optional[Timestamp]) -> None:
    if timestamp is None:
        if headline.planning is None:
            return
        headline.planning.set(keyword, None)
        headline.planning.order = [k for k in headline.planning.order if k != keyword]
        if headline.planning.is_empty:
            headline.planning = None
        return

    if headline.planning is None:
        headline.planning = Planning()
    headline.planning.set(keyword, timestamp)


def get_scheduled(headline: Headline) -> Optional[Timestamp]:
    return _get_planning(headline, "SCHEDULED")


def set_scheduled(headline: Headline, timestamp: Optional[Timestamp]) -> None:
    _set_planning(headline, "SCHEDULED", timestamp)


def get_deadline(headline: Headline) -> Optional[Timestamp]:
    return _get_planning(headline, "DEADLINE")


def set_deadline(headline: Headline, timestamp: Optional[Timestamp]) -> None:
    _set_planning(headline, "DEADLINE", timestamp)


def get_closed(headline: Headline) -> Optional[Timestamp]:
    return _get_planning(headline, "CLOSED")


def set_closed(headline: Headline, timestamp: Optional[Timestamp]) -> None:
    _set_planning(headline, "CLOSED", timestamp)


# ---------------- Structure --------------------------------------------------

def _shift_levels(headline: Headline, delta: int, recursive: bool = True) -> None:
    headline.level += delta
    if recursive:
        for child in headline.children:
            _shift_levels(child, delta, recursive=True)


def promote_headline(headline: Headline, recursive: bool = True) -> None:
    """One level up, children included. Level 1 stays level 1."""
    if headline.level <= 1:
        return
    _shift_levels(headline, -1, recursive)


def demote_headline(headline: Headline, recursive: bool = True) -> None:
    _shift_levels(headline, 1, recursive)


def _children_of(target: Union[Container, list[Headline]]) -> list[Headline]:
    return target if isinstance(target, list) else target.children


def sort_headlines(
    target: Union[Container, list[Headline]],
    key: Callable[[Headline], Any],
    reverse: bool = False,
) -> list[Headline]:
    """
    Sort sibling headlines in place (stable). `target` is a Document,
    Headline or a children list.
    """
    children = _children_of(target)
    children.sort(key=key, reverse=reverse)
    return children


def move_headline(
    target: Union[Container, list[Headline]],
    from_index: int,
    to_index: int,
) -> Optional[Headline]:
    """Move one sibling to a new position. Out-of-range indexes do nothing."""
    children = _children_of(target)
    if not (0 <= from_index < len(children)) or not (0 <= to_index < len(children)):
        return None
    headline = children.pop(from_index)
    children.insert(to_index, headline)
    return headline


def create_headline(
    title: str,
    level: int = 1,
    *,
    todo_keyword: Optional[str] = None,
    todo_type: Optional[str] = None,
    priority: Optional[str] = None,
    tags: Optional[list[str]] = None,
    properties: Optional[dict[str, str]] = None,
    done_keywords: Optional[list[str]] = None,
) -> Headline:
    """Build a detached headline."""
    headline = Headline(level=max(1, level), raw_value=title, priority=priority)
    if todo_keyword:
        set_todo(headline, todo_keyword, done_keywords)
        if todo_type is not None:
            headline.todo_type = todo_type
    for tag in tags or []:
        add_tag(headline, tag)
    if properties is not None:
        headline.properties_drawer = dict(properties)
    headline.title_objects = scan_inline_objects(title)
    return headline


def _contains(ancestor: Headline, node: Container) -> bool:
    return any(h is node for h, _, _ in iter_headlines(ancestor))


def insert_headline(
    container: Container,
    headline: Headline,
    index: Optional[int] = None,
    *,
    root: Optional[Document] = None,
) -> Optional[Headline]:
    """
    Attach `headline` under `container` at `index` (default: end).

    Levels of the whole subtree are rewritten so that the headline sits at
    level 1 under a Document or container.level + 1 under a Headline.

    Returns None without changing anything when the headline already is a
    child of `container`, is the container itself, or contains it. With
    `root` given, a headline that already has a parent anywhere in `root`
    is refused too.
    """
    if headline is container:
        return None
    if any(child is headline for child in container.children):
        return None
    if _contains(headline, container):
        return None
    if root is not None and find_parent(root, headline) is not None:
        return None

    target_level = 1 if isinstance(container, Document) else container.level + 1
    _shift_levels(headline, target_level - headline.level)

    if index is None:
        container.children.append(headline)
    else:
        container.children.insert(index, headline)
    return headline


def delete_headline(root: Container, ref: Union[Headline, int]) -> Optional[Headline]:
    """
    Remove a headline and return it.

    `ref` is either a child index of `root` or a headline anywhere below
    `root` (matched by identity).
    """
    if isinstance(ref, int):
        if not 0 <= ref < len(root.children):
            return None
        return root.children.pop(ref)

    parent = find_parent(root, ref)
    if parent is None:
        return None
    for i, child in enumerate(parent.children):
        if child is ref:
            return parent.children.pop(i)
    return None


def copy_headline(headline: Headline) -> Headline:
    """Deep copy sharing no mutable state with the original."""
    return copy.deepcopy(headline)


def find_parent(root: Container, node: Headline) -> Optional[Container]:
    """The Document or Headline whose children include `node`, or None."""
    for headline, parent, _ in iter_headlines(root):
        if headline is node:
            return parent
    return None


def get_headline_path(root: Container, node: Headline) -> Optional[list[Headline]]:
    """Headlines from the top level down to `node` (inclusive), or None."""

    def search(container: Container, trail: list[Headline]) -> Optional[list[Headline]]:
        for child in container.children:
            if child is node:
                return trail + [child]
            found = search(child, trail + [child])
            if found is not None:
                return found
        return None

    return search(root, [])


# ---------------- Links -------------------------------------------------------

def create_link(path: str, description: Optional[str] = None) -> Link:
    return Link(path=path, description=description, link_type=link_type_for(path))


def _links_in(text: str) -> list[Link]:
    return [obj for obj in scan_inline_objects(text) if obj.type == "link"]


def _body_links(owner: Container) -> list[Link]:
    links = []
    for element, _, _ in _iter_body(owner, owner.body):
        if element.type == "paragraph":
            links.extend(_links_in(element.value))
        elif element.type == "table":
            for row in element.data_rows:
                for cell in row.cells:
                    links.extend(_links_in(cell))
    return links


def get_links(root: Container) -> list[Link]:
    """
    Links in headline titles, paragraphs and table cells, in document
    order. Text is rescanned, so edits made after parsing are seen.
    """
    links = []
    if isinstance(root, Headline):
        links.extend(_links_in(root.raw_value))
    links.extend(_body_links(root))
    for headline, _, _ in iter_headlines(root):
        links.extend(_links_in(headline.raw_value))
        links.extend(_body_links(headline))
    return links


def get_links_by_type(root: Container, link_type: str) -> list[Link]:
    return [link for link in get_links(root) if link.link_type == link_type]


# ---------------- Property inheritance ---------------------------------------

def get_inherited_property(doc: Document, node: Headline, key: str) -> Optional[str]:
    """
    Value of `key` for `node`: its own drawer, then the nearest ancestor
    drawer, then the document's #+PROPERTY: lines.
    """
    path = get_headline_path(doc, node) or [node]
    for headline in reversed(path):
        drawer = headline.properties_drawer or {}
        if key in drawer:
            return drawer[key]
    return doc.properties.get(key)


def get_effective_properties(doc: Document, node: Headline) -> dict[str, str]:
    """All properties visible at `node`; nearer definitions win."""
    merged = dict(doc.properties)
    for headline in get_headline_path(doc, node) or [node]:
        merged.update(headline.properties_drawer or {})
    return merged
