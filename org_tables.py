#!/usr/bin/env python3
"""
org_tables.py

Convert Org tables to and from JSON-style rows, CSV and Org text.
"""
from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Union

from org_elements import Table, TableRow
from org_serialize import serialize_table


def _rows(table: Table, include_rules: bool) -> list[TableRow]:
    return [row for row in table.rows if include_rules or not row.is_rule]


def _values(row: TableRow, trim: bool) -> list[str]:
    if row.is_rule:
        return []
    return [cell.strip() if trim else cell for cell in row.cells]


def table_to_json(
    table: Table,
    use_header: bool = True,
    trim: bool = True,
    include_rules: bool = False,
) -> Union[list[dict[str, str]], list[list[str]]]:
    """
    With use_header the first row supplies the keys:

      | name  | age |
      |-------+-----|      ->  [{'name': 'Alice', 'age': '30'}]
      | Alice | 30  |

    Otherwise every row becomes a list of cell strings. Duplicate header
    names are not renamed; the last column wins. Missing cells are ''.
    """
    rows = _rows(table, include_rules)
    if not rows:
        return []

    if not use_header:
        return [_values(row, trim) for row in rows]

    header, *body = rows
    keys = _values(header, trim)
    records = []
    for row in body:
        values = _values(row, trim)
        records.append({key: values[i] if i < len(values) else "" for i, key in enumerate(keys)})
    return records


def create_table(rows: list[list[Any]], header_separator: bool = False) -> Table:
    """
    Build a Table from rows of values. With header_separator a rule is
    placed after the first row.
    """
    table = Table()
    for i, row in enumerate(rows):
        table.rows.append(TableRow(cells=["" if value is None else str(value) for value in row]))
        if header_separator and i == 0:
            table.rows.append(TableRow(row_type="rule"))
    return table


def json_to_table(
    data: Union[list[dict[str, Any]], list[list[Any]]],
    include_header: bool = True,
    separator: bool = True,
) -> str:
    """
    Render records (or rows) as aligned Org table text.

    For a list of dicts the keys of the first record form the header row.
    """
    if not data:
        return ""

    if isinstance(data[0], dict):
        keys = list(data[0].keys())
        rows: list[list[Any]] = [keys] if include_header else []
        for record in data:
            rows.append([record.get(key, "") for key in keys])
    else:
        rows = [list(row) for row in data]

    table = create_table(rows, header_separator=include_header and separator)
    return "\n".join(serialize_table(table))


def table_to_csv(
    table: Table,
    delimiter: str = ",",
    line_ending: str = "\n",
    trim: bool = True,
) -> str:
    """
    RFC 4180 style CSV: fields holding the delimiter, a quote or a line
    break are quoted and inner quotes doubled. Rule rows are dropped and
    there is no trailing line ending. An empty table gives ''.
    """
    rows = [_values(row, trim) for row in _rows(table, include_rules=False)]
    if not rows:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        delimiter=delimiter,
        lineterminator=line_ending,
        quoting=csv.QUOTE_MINIMAL,
    )
    lines: list[str] = []
    for row in rows:
        if row == [""]:
            # csv would write a lone empty field as ""
            lines.append("")
            continue
        writer.writerow(row)
        lines.append(buffer.getvalue()[: -len(line_ending)])
        buffer.seek(0)
        buffer.truncate()
    return line_ending.join(lines)


def write_table_to_csv(path: Union[str, Path], table: Table, **options: Any) -> Path:
    """Write table_to_csv(table, **options) to `path` (UTF-8)."""
    path = Path(path)
    path.write_text(table_to_csv(table, **options), encoding="utf-8", newline="")
    return path
