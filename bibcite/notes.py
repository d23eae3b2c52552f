"""Markdown notes: YAML frontmatter and the collection path it declares."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from bibcite import config

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Note:
    path: Path
    text: str
    frontmatter: Dict[str, Union[str, List[str]]] = field(default_factory=dict)
    body: str = ""


def split_frontmatter(text: str) -> Tuple[str, str]:
    """Split a note into (frontmatter text, body). No frontmatter gives ("", text)."""
    if not text.startswith("---\n"):
        return "", text
    if text.startswith("---\n---\n"):
        return "", text[8:]
    try:
        end_idx = text.index("\n---\n", 3)
    except ValueError:
        return "", text
    return text[4:end_idx], text[end_idx + 5:]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_frontmatter(fm_text: str) -> Dict[str, Union[str, List[str]]]:
    """Parse simple ``key: value`` frontmatter.

    Block lists (``key:`` followed by ``  - item`` lines) become lists.
    Anything more elaborate is kept as the raw scalar text.
    """
    fields: Dict[str, Union[str, List[str]]] = {}
    current_key: Optional[str] = None

    for line in fm_text.split("\n"):
        # Top-level key: starts with a non-whitespace char and contains ":"
        if line and not line[0].isspace() and ":" in line:
            key, value = line.split(":", 1)
            current_key = key.strip()
            fields[current_key] = _unquote(value.strip())
        elif current_key is not None and line.strip().startswith("- "):
            existing = fields.get(current_key)
            items = existing if isinstance(existing, list) else []
            items.append(_unquote(line.strip()[2:].strip()))
            fields[current_key] = items

    return fields


def parse_note(text: str, path: Union[str, Path] = "") -> Note:
    text = text.replace("\r\n", "\n")
    fm_text, body = split_frontmatter(text)
    return Note(path=Path(path), text=text, frontmatter=parse_frontmatter(fm_text), body=body)


def read_note(path: Union[str, Path]) -> Note:
    path = Path(path)
    return parse_note(path.read_text(encoding="utf-8"), path)


def collection_path(note: Note, field_name: Optional[str] = None) -> Optional[str]:
    """The Zotero collection path declared in the note, or None if absent."""
    value = note.frontmatter.get(field_name or config.COLLECTION_FIELD)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()
