"""Citation markers in note text: ``[@key]`` and ``[@key1; @key2]``."""

import re
from typing import Collection, Iterable, List, Optional, Tuple

from bibcite.exporter import BibliographicItem

# A bracket group made only of @key entries, optionally separated by ";"
CITATION_GROUP_RE = re.compile(r"\[(@[a-zA-Z0-9_-]+[ ]*;?[ ]*)+\]")


def _group_keys(group: str) -> List[str]:
    """``[@a; @b]`` -> ``["a", "b"]``."""
    keys = []
    for part in group[1:-1].split(";"):
        part = part.strip()
        if part:
            keys.append(part.replace("@", "", 1))
    return keys


def extract_citation_keys(text: str, valid_keys: Collection[str]) -> List[str]:
    """Return cited keys that are in ``valid_keys``, in first-occurrence order.

    Keys missing from ``valid_keys`` are dropped silently. Text without any
    citation group yields an empty list.
    """
    seen = set()
    result = []
    for match in CITATION_GROUP_RE.finditer(text):
        for key in _group_keys(match.group(0)):
            if key in valid_keys and key not in seen:
                seen.add(key)
                result.append(key)
    return result


def citation_query(line_to_cursor: str) -> Optional[str]:
    """Return the partial key being typed inside an open ``[@`` group.

    Returns None when the cursor is not inside a citation group, or right
    after a separator (space or ";") where no key has been started.
    """
    open_idx = line_to_cursor.rfind("[")
    if open_idx == -1 or open_idx < line_to_cursor.rfind("]"):
        return None

    inside = line_to_cursor[open_idx + 1:]
    if not inside.startswith("@"):
        return None
    if line_to_cursor.endswith((" ", ";")):
        return None
    return inside[inside.rfind("@") + 1:]


def suggest_citekeys(
    query: str, items: Iterable[BibliographicItem],
) -> List[Tuple[str, str]]:
    """(citekey, title) pairs whose key starts with ``query``, one per key."""
    seen = set()
    result = []
    for item in items:
        if item.id.startswith(query) and item.id not in seen:
            seen.add(item.id)
            result.append((item.id, item.title))
    return result
