"""View-model for the references panel.

ReferencesSession reacts to "document changed", refresh and mode-switch
events, builds the reference set for the active note and describes what the
panel should show. Rendering is left to the caller (see main.py for the
terminal version).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bibcite import config, notes, references
from bibcite.errors import ServiceUnreachable
from bibcite.library import LibraryCache
from bibcite.references import ItemView, ReferenceSet
from bibcite.state import ReferenceCache

log = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Unable to connect to Zotero. Is Zotero running?"
EMPTY_MESSAGES = {
    "references": "No citations found in the current document.",
    "bibliography": "No bibliography entries found for the current document.",
}


@dataclass(frozen=True)
class DocumentChanged:
    """The active note changed (or was edited)."""

    path: str
    text: str
    collection_path: Optional[str] = None

    @classmethod
    def from_note(cls, note: notes.Note) -> "DocumentChanged":
        return cls(path=str(note.path), text=note.text, collection_path=notes.collection_path(note))


@dataclass(frozen=True)
class PanelEntry:
    citekey: str
    title: str
    journal: str
    year: str
    open_link: str
    annotation_count: int


@dataclass(frozen=True)
class ReferencesPanel:
    mode: str
    entries: Tuple[PanelEntry, ...] = ()
    message: str = ""
    is_error: bool = False


@dataclass(frozen=True)
class CachedReferences:
    reference_set: ReferenceSet
    views: Tuple[ItemView, ...]
    panel: ReferencesPanel


def error_message(error: Exception) -> str:
    if isinstance(error, ServiceUnreachable):
        return UNREACHABLE_MESSAGE
    return str(error) or type(error).__name__


def build_panel(reference_set: ReferenceSet, views: List[ItemView], mode: str) -> ReferencesPanel:
    """Describe the panel: an error, an empty state, or one entry per item.

    An unreachable Zotero and an empty citation list are separate states.
    """
    if reference_set.error is not None:
        return ReferencesPanel(mode=mode, message=error_message(reference_set.error), is_error=True)
    if not views:
        return ReferencesPanel(mode=mode, message=EMPTY_MESSAGES[mode])

    entries = []
    for view in views:
        item = view.item
        entries.append(PanelEntry(
            citekey=view.citekey,
            title=item.title if item else "",
            journal=item.journal if item else "",
            year=item.year if item else "",
            open_link=view.open_link,
            annotation_count=len(view.annotations),
        ))
    return ReferencesPanel(mode=mode, entries=tuple(entries))


class ReferencesSession:
    """References panel state for whichever note is active."""

    def __init__(
        self,
        mode: Optional[str] = None,
        cache: Optional[ReferenceCache] = None,
        library_cache: Optional[LibraryCache] = None,
    ) -> None:
        mode = mode or config.DEFAULT_VIEW_MODE
        if mode not in references.MODES:
            log.warning("Unknown view mode '%s', using references", mode)
            mode = "references"
        self.mode = mode
        self.cache = cache if cache is not None else ReferenceCache()
        self.library_cache = library_cache if library_cache is not None else LibraryCache()
        self.document: Optional[DocumentChanged] = None

    def on_document_changed(self, event: DocumentChanged) -> Optional[ReferencesPanel]:
        previous = self.document
        if previous is not None and previous.path != event.path:
            self.cache.invalidate(previous.path)
        self.document = event
        return self._rebuild()

    def switch_mode(self) -> Optional[ReferencesPanel]:
        self.mode = "bibliography" if self.mode == "references" else "references"
        return self._rebuild()

    def refresh(self) -> Optional[ReferencesPanel]:
        """Explicit refresh: refetch the collection tree, then rebuild the panel."""
        self.library_cache.invalidate()
        return self._rebuild()

    def _rebuild(self) -> Optional[ReferencesPanel]:
        """Rebuild the panel for the active note.

        Returns None if a newer rebuild of the same note started meanwhile;
        that rebuild owns the cache entry.
        """
        doc = self.document
        if doc is None:
            return ReferencesPanel(mode=self.mode, message=EMPTY_MESSAGES[self.mode])

        mode = self.mode
        token = self.cache.begin(doc.path)
        reference_set = references.build_reference_set(
            doc.collection_path, doc.text, cache=self.library_cache,
        )
        views = [] if reference_set.error else references.load_item_views(reference_set, mode)
        panel = build_panel(reference_set, views, mode)

        entry = CachedReferences(reference_set=reference_set, views=tuple(views), panel=panel)
        if not self.cache.commit(doc.path, token, entry):
            return None
        return panel

    def current(self) -> Optional[CachedReferences]:
        if self.document is None:
            return None
        return self.cache.get(self.document.path)

    def annotated_items(self) -> List[ItemView]:
        """Displayed items that have at least one annotation."""
        entry = self.current()
        if entry is None or entry.panel.mode != self.mode:
            if self._rebuild() is None:
                return []
            entry = self.current()
        if entry is None:
            return []
        return [view for view in entry.views if view.annotations]
