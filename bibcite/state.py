"""In-memory reference cache, one entry per open document.

Refreshes can overlap: a slow answer from Zotero for an old refresh may land
after a newer refresh has finished. Every refresh takes a generation token
first, and only the holder of the newest token for a document may store its
result.
"""

import itertools
import logging
import threading
from typing import Any, Dict, Optional, Tuple

log = logging.getLogger(__name__)


class ReferenceCache:
    """Latest result per document, written last-writer-by-generation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._entries: Dict[str, Tuple[int, Any]] = {}

    def begin(self, document: str) -> int:
        """Start a refresh for a document; returns its generation token."""
        with self._lock:
            token = next(self._generations)
            self._latest[document] = token
            return token

    def is_current(self, document: str, token: int) -> bool:
        with self._lock:
            return self._latest.get(document) == token

    def commit(self, document: str, token: int, value: Any) -> bool:
        """Store a result unless a newer refresh has started since ``token``."""
        with self._lock:
            if self._latest.get(document) != token:
                log.debug("Discarding superseded result for %s (generation %d)", document, token)
                return False
            self._entries[document] = (token, value)
            return True

    def get(self, document: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(document)
        return entry[1] if entry else None

    def generation(self, document: str) -> Optional[int]:
        """Generation of the stored entry, or None."""
        with self._lock:
            entry = self._entries.get(document)
        return entry[0] if entry else None

    def invalidate(self, document: Optional[str] = None) -> None:
        """Drop one document's entry (or all). In-flight refreshes are discarded too."""
        with self._lock:
            if document is None:
                self._entries.clear()
                self._latest.clear()
            else:
                self._entries.pop(document, None)
                self._latest.pop(document, None)

    def __contains__(self, document: str) -> bool:
        with self._lock:
            return document in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
