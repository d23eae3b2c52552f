"""Reconcile a note's citations with its Zotero collection.

build_reference_set() resolves the note's collection path, exports the
collection and keeps the cited keys that belong to it. It never raises:
failures land in ReferenceSet.error so callers handle a single shape.
Attachment data is fetched separately, only for the entries being shown.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bibcite import attachments, citations, config, exporter, library, notes
from bibcite.attachments import AnnotationRecord, AttachmentRecord
from bibcite.errors import BibciteError
from bibcite.exporter import BibliographicItem

log = logging.getLogger(__name__)

MODES = ("references", "bibliography")


@dataclass
class ReferenceSet:
    library: Optional[str] = None
    citations: List[str] = field(default_factory=list)
    bibliography: List[str] = field(default_factory=list)
    items_by_id: Dict[str, BibliographicItem] = field(default_factory=dict)
    error: Optional[Exception] = None

    def keys_for(self, mode: str) -> List[str]:
        """Keys shown in a view mode: cited keys, or the whole bibliography."""
        if mode == "bibliography":
            return list(self.bibliography)
        return list(self.citations)


@dataclass(frozen=True)
class ItemView:
    citekey: str
    item: Optional[BibliographicItem]
    open_link: str = ""
    annotations: Tuple[AnnotationRecord, ...] = ()
    # False when the attachment lookup failed for this item
    attachments_loaded: bool = True


def build_reference_set(
    collection_path: Optional[str],
    document_text: str,
    *,
    cache: Optional[library.LibraryCache] = None,
    ambiguity: Optional[str] = None,
    export_format: Optional[str] = None,
) -> ReferenceSet:
    """Build the citations/bibliography working set for one note.

    A note without a collection path gives an empty set with no error.
    """
    if not collection_path or not collection_path.strip():
        return ReferenceSet()
    collection_path = collection_path.strip()

    try:
        resolved = library.resolve_collection_path(
            collection_path, ambiguity=ambiguity, cache=cache,
        )
        records = exporter.export_collection(
            resolved.library_id, resolved.collection_key, export_format,
        )
        items = exporter.parse_items(records)
    except BibciteError as exc:
        log.warning("Could not load references for '%s': %s", collection_path, exc)
        return ReferenceSet(error=exc)
    except Exception as exc:
        log.exception("Unexpected error loading references for '%s'", collection_path)
        return ReferenceSet(error=exc)

    items_by_id: Dict[str, BibliographicItem] = {}
    for item in items:
        items_by_id.setdefault(item.id, item)
    bibliography = list(items_by_id)

    # Validity is relative to the exported bibliography, so this runs after export
    cited = citations.extract_citation_keys(document_text or "", items_by_id)

    log.info(
        "%s: %d citation(s), %d bibliography entries",
        collection_path, len(cited), len(bibliography),
    )
    return ReferenceSet(
        library=collection_path.split("/")[0],
        citations=cited,
        bibliography=bibliography,
        items_by_id=items_by_id,
    )


def build_reference_set_for_note(note: notes.Note, **kwargs) -> ReferenceSet:
    return build_reference_set(notes.collection_path(note), note.text, **kwargs)


def load_item_views(
    reference_set: ReferenceSet,
    mode: Optional[str] = None,
    workers: Optional[int] = None,
) -> List[ItemView]:
    """Fetch attachments for the entries shown in ``mode``, in display order.

    Lookups run on a bounded thread pool. A failed lookup is logged and
    leaves that entry without attachment data.
    """
    keys = reference_set.keys_for(mode or config.DEFAULT_VIEW_MODE)
    if not keys:
        return []

    workers = max(1, min(workers or config.ATTACHMENT_WORKERS, len(keys)))
    fetched: Dict[str, Optional[List[AttachmentRecord]]] = {}

    with ThreadPoolExecutor(max_workers=workers) as ex:
        futures = {ex.submit(attachments.fetch_attachments, key): key for key in keys}
        for fut in as_completed(futures):
            key = futures[fut]
            try:
                fetched[key] = fut.result()
            except BibciteError as exc:
                log.warning("Could not fetch attachments for %s: %s", key, exc)
                fetched[key] = None

    views = []
    for key in keys:
        records = fetched.get(key)
        views.append(ItemView(
            citekey=key,
            item=reference_set.items_by_id.get(key),
            open_link=attachments.primary_link(records or []),
            annotations=tuple(attachments.merged_annotations(records or [])),
            attachments_loaded=records is not None,
        ))
    return views
