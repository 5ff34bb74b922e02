from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Tuple

from config_loader import OrgReaderConfig, DEFAULT_CONFIG
from org_elements import Document
from org_parser import new_state, parse_org_line
from org_serialize import serialize
from org_tree import parse


def safe_input_path(raw: str, *, root: Path | None = None) -> Path:
    """
    Parse and validate a user-supplied path.

    Goals:
    - reject obvious malicious / malformed inputs (NUL, empty)
    - avoid directory traversal surprises when a root is given
    - resolve symlinks safely (best effort) and return an absolute path
    """
    if not raw or raw.strip() == "":
        raise ValueError("Empty input path.")

    if "\x00" in raw:
        raise ValueError("NUL byte in path is not allowed.")

    p = Path(raw).expanduser()

    # Disallow path traversal patterns (conservative).
    parts = list(p.parts)
    if any(part == ".." for part in parts):
        raise ValueError("Path traversal ('..') is not allowed.")

    # strict=False so it can still be resolved even if it doesn't exist (we check after)
    resolved = p.resolve(strict=False)

    if root is not None:
        root_resolved = root.resolve(strict=True)
        try:
            resolved.relative_to(root_resolved)
        except ValueError as e:
            raise ValueError(f"Input path must be within root: {root_resolved}") from e

    if not resolved.exists():
        raise FileNotFoundError(f"File not found: {resolved}")
    if not resolved.is_file():
        raise IsADirectoryError(f"Not a file: {resolved}")

    return resolved


def un_quote_string(string: str, cfg: OrgReaderConfig) -> str:
    """
    Remove a single matching pair of surrounding quotation marks from a string.
    """
    for open_quote, close_quote in cfg.quotes.items():
        if len(string) >= 2 and string.startswith(open_quote) and string.endswith(close_quote):
            return string[len(open_quote):-len(close_quote)].strip()
    return string


def resolve_include(line: str, path: Path, cfg: OrgReaderConfig) -> Path:
    """
    Resolve an Org-style #+INCLUDE directive to an absolute file path,
    relative to the including file.
    """
    include_path = cfg.include_keyword_re.sub("", line, count=1)
    include_path = include_path.strip().lstrip(":").strip()
    include_path = un_quote_string(include_path, cfg)
    if not include_path:
        raise ValueError(f"Empty #+INCLUDE target in {path}")
    return (path.parent / include_path).resolve()


def is_include(line: str, cfg: OrgReaderConfig) -> bool:
    """
    Determine whether a line starts an Org-style #+INCLUDE directive.
    """
    return bool(cfg.include_keyword_re.match(line))


def should_skip_header_line(line: str, cfg: OrgReaderConfig) -> bool:
    """
    Determine whether a line is a skippable Org header keyword line.
    """
    match = cfg.header_kv_re.match(line)
    return bool(match and match.group(1).lower() in cfg.skip_header_keys)


def preamble_decision(line: str, cfg: OrgReaderConfig) -> Tuple[bool, bool]:
    """
    Decide whether a line of an included file's preamble is dropped.

    Returns (skip, still_in_preamble).
    """
    if line.strip() == "" or should_skip_header_line(line, cfg):
        return True, True
    return False, False


def read_with_includes(
    path: Path,
    cfg: OrgReaderConfig = DEFAULT_CONFIG,
    *,
    is_root: bool = True,
    _seen: Optional[frozenset[Path]] = None,
) -> Iterator[str]:
    """
    Iterate over an Org file line-by-line, expanding #+INCLUDE directives.

    Does NOT expand includes inside blocks or drawers. Title/author/date
    style header lines of included files are dropped. An include cycle
    raises ValueError.
    """
    path = Path(path).resolve()
    seen = (_seen or frozenset()) | {path}
    state = new_state(cfg)
    in_preamble: bool = not is_root

    with path.open(encoding="utf-8") as f:
        for raw_line in f:
            line = raw_line.rstrip("\n").rstrip("\r")

            if in_preamble:
                skip, in_preamble = preamble_decision(line, cfg)
                if skip:
                    continue

            # Update state for this line
            state, _ = parse_org_line(line, cfg, state)

            # Expand includes only when NOT inside containers
            if is_include(line, cfg) and not state.is_inside_block and not state.is_inside_drawer:
                target = resolve_include(line, path, cfg)
                if target in seen:
                    raise ValueError(f"Include cycle: {path} includes {target}")
                yield from read_with_includes(target, cfg, is_root=False, _seen=seen)
                continue

            yield line


def parse_file(
    path: Path | str,
    cfg: OrgReaderConfig = DEFAULT_CONFIG,
    *,
    expand_includes: bool = True,
) -> Document:
    """Read and parse an Org file (UTF-8)."""
    path = Path(path)
    if expand_includes:
        text = "\n".join(read_with_includes(path, cfg))
    else:
        text = path.read_text(encoding="utf-8")
    return parse(text, cfg)


def write_file(path: Path | str, doc: Document) -> Path:
    """Serialize `doc` and write it to `path` (UTF-8)."""
    path = Path(path)
    path.write_text(serialize(doc), encoding="utf-8")
    return path
