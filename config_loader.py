# config_loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable
import re

try:
    import yaml  # PyYAML
except ImportError as e:
    raise SystemExit(
        "Missing dependency: PyYAML\n"
        "Install with: python -m pip install pyyaml"
    ) from e


def todo_type_for(keyword: str, done_keywords: Iterable[str]) -> str:
    """Classify a keyword as 'done' or 'todo'."""
    return "done" if keyword in done_keywords else "todo"


class OrgReaderConfig:
    """
    Immutable-ish container for Org parser configuration.

    Holds the line-anchored regexes used by the classifier, the verbatim
    block kinds and the TODO keyword table (keyword -> todo/done).
    """

    def __init__(
        self,
        *,
        verbatim_blocks: set[str],
        todo_keywords: list[str],
        done_keywords: list[str],
        skip_header_keys: set[str],
        quotes: dict[str, str],
        block_re: re.Pattern,
        header_kv_re: re.Pattern,
        include_keyword_re: re.Pattern,
        section_heading_re: re.Pattern,
        drawer_begin_re: re.Pattern,
        drawer_end_re: re.Pattern,
        planning_re: re.Pattern,
        clock_re: re.Pattern,
        table_re: re.Pattern,
    ):
        self.verbatim_blocks = verbatim_blocks
        self.todo_keywords = todo_keywords
        self.done_keywords = done_keywords
        self.skip_header_keys = skip_header_keys
        self.quotes = quotes
        self.block_re = block_re
        self.header_kv_re = header_kv_re
        self.include_keyword_re = include_keyword_re
        self.section_heading_re = section_heading_re
        self.drawer_begin_re = drawer_begin_re
        self.drawer_end_re = drawer_end_re
        self.planning_re = planning_re
        self.clock_re = clock_re
        self.table_re = table_re

    @property
    def all_todo_keywords(self) -> list[str]:
        return self.todo_keywords + [k for k in self.done_keywords if k not in self.todo_keywords]

    def todo_type_for(self, keyword: str) -> str:
        return todo_type_for(keyword, self.done_keywords)

    def replace(self, **changes: Any) -> "OrgReaderConfig":
        """Return a copy with some fields replaced."""
        fields = dict(vars(self))
        fields.update(changes)
        return OrgReaderConfig(**fields)


# ---------------- Defaults ---------------------------------------------------

DEFAULT_TODO_KEYWORDS = ["TODO", "NEXT", "WAIT", "WAITING", "HOLD", "SOMEDAY", "IN-PROGRESS"]
DEFAULT_DONE_KEYWORDS = ["DONE", "CANCELLED", "CANCELED"]

DEFAULT_CONFIG = OrgReaderConfig(
    verbatim_blocks={"src", "example", "export", "verse", "comment"},
    todo_keywords=list(DEFAULT_TODO_KEYWORDS),
    done_keywords=list(DEFAULT_DONE_KEYWORDS),
    skip_header_keys={"title", "author", "date", "options"},
    quotes={'"': '"', "'": "'"},
    block_re=re.compile(r"^\s*#\+(begin|end)_(\w+)\b\s*(.*)$", re.IGNORECASE),
    header_kv_re=re.compile(r"^\s*#\+([A-Za-z0-9_-]+)\s*:", re.IGNORECASE),
    include_keyword_re=re.compile(r"^\s*#\+include\b", re.IGNORECASE),
    section_heading_re=re.compile(r"^(\*+)(?:[ \t]+(.*?))?[ \t]*$"),
    drawer_begin_re=re.compile(r"^\s*:([A-Za-z0-9_@#%-]+):\s*$"),
    drawer_end_re=re.compile(r"^\s*:END:\s*$", re.IGNORECASE),
    planning_re=re.compile(r"^\s*(SCHEDULED|DEADLINE|CLOSED):"),
    clock_re=re.compile(r"^\s*CLOCK:\s*(.*)$"),
    table_re=re.compile(r"^\s*\|"),
)

# ---------------- Loader -----------------------------------------------------


def _as_lower_str_set(value: Any, name: str) -> set[str]:
    if value is None:
        return set()
    if not isinstance(value, list):
        raise TypeError(f"{name} must be a list of strings")
    return {str(v).lower() for v in value}


def _as_upper_str_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{name} must be a list of strings")
    out: list[str] = []
    for v in value:
        keyword = str(v).upper()
        if keyword not in out:
            out.append(keyword)
    return out


def config_from_keywords(
    cfg: OrgReaderConfig,
    todo_keywords: Iterable[str],
    done_keywords: Iterable[str],
) -> OrgReaderConfig:
    """
    Derive a config that uses a different TODO keyword table.

    Used when a document declares its own states with #+TODO: lines.
    """
    return cfg.replace(
        todo_keywords=list(todo_keywords),
        done_keywords=list(done_keywords),
    )


def load_config(path: Path) -> OrgReaderConfig:
    """
    Load YAML config and return an OrgReaderConfig instance.
    """
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise TypeError("Config root must be a mapping")

    regex = raw.get("regex", {}) or {}
    if not isinstance(regex, dict):
        raise TypeError("regex must be a mapping")

    def pattern(key: str, default: re.Pattern) -> re.Pattern:
        return re.compile(regex.get(key, default.pattern), default.flags)

    return OrgReaderConfig(
        verbatim_blocks=_as_lower_str_set(
            raw.get("verbatim_blocks", list(DEFAULT_CONFIG.verbatim_blocks)),
            "verbatim_blocks",
        ),
        todo_keywords=_as_upper_str_list(
            raw.get("todo_keywords", DEFAULT_CONFIG.todo_keywords),
            "todo_keywords",
        ),
        done_keywords=_as_upper_str_list(
            raw.get("done_keywords", DEFAULT_CONFIG.done_keywords),
            "done_keywords",
        ),
        skip_header_keys=_as_lower_str_set(
            raw.get("skip_header_keys", list(DEFAULT_CONFIG.skip_header_keys)),
            "skip_header_keys",
        ),
        quotes=dict(raw.get("quotes", DEFAULT_CONFIG.quotes)),
        block_re=pattern("block_re", DEFAULT_CONFIG.block_re),
        header_kv_re=pattern("header_kv_re", DEFAULT_CONFIG.header_kv_re),
        include_keyword_re=pattern("include_keyword", DEFAULT_CONFIG.include_keyword_re),
        section_heading_re=pattern("section_heading_re", DEFAULT_CONFIG.section_heading_re),
        drawer_begin_re=pattern("drawer_begin_re", DEFAULT_CONFIG.drawer_begin_re),
        drawer_end_re=pattern("drawer_end_re", DEFAULT_CONFIG.drawer_end_re),
        planning_re=pattern("planning_re", DEFAULT_CONFIG.planning_re),
        clock_re=pattern("clock_re", DEFAULT_CONFIG.clock_re),
        table_re=pattern("table_re", DEFAULT_CONFIG.table_re),
    )


def load_config_or_default(path: Path | None) -> OrgReaderConfig:
    """
    Load `path` when it exists, otherwise return DEFAULT_CONFIG.
    """
    if path is None or not Path(path).is_file():
        return DEFAULT_CONFIG
    return load_config(Path(path))
