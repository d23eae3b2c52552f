"""Attachments and annotations of a Zotero item, via ``item.attachments``."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from bibcite import zotero_rpc
from bibcite.errors import MalformedResponse

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnotationRecord:
    key: str
    kind: str
    text: str = ""
    comment: str = ""
    color: str = ""
    image_path: str = ""
    page_label: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "AnnotationRecord":
        return cls(
            key=str(raw.get("key", "")),
            kind=str(raw.get("annotationType", "")),
            text=raw.get("annotationText") or "",
            comment=raw.get("annotationComment") or "",
            color=raw.get("annotationColor") or "",
            image_path=raw.get("annotationImagePath") or "",
            page_label=str(raw.get("annotationPageLabel") or ""),
        )


@dataclass(frozen=True)
class AttachmentRecord:
    open_link: str
    path: str
    annotations: Tuple[AnnotationRecord, ...] = ()


def parse_attachments(result: Any, citekey: str = "") -> List[AttachmentRecord]:
    """Validate an ``item.attachments`` result, dropping entries with no local file."""
    if not isinstance(result, list):
        raise MalformedResponse(f"item.attachments({citekey}): expected a list")

    records = []
    for entry in result:
        if not isinstance(entry, dict):
            raise MalformedResponse(f"item.attachments({citekey}): unexpected entry {entry!r}")
        if not entry.get("path"):
            continue
        raw_annotations = entry.get("annotations") or []
        if not isinstance(raw_annotations, list):
            raise MalformedResponse(f"item.attachments({citekey}): annotations is not a list")
        records.append(AttachmentRecord(
            open_link=str(entry.get("open") or ""),
            path=str(entry["path"]),
            annotations=tuple(
                AnnotationRecord.from_raw(a) for a in raw_annotations if isinstance(a, dict)
            ),
        ))
    return records


def fetch_attachments(citekey: str) -> List[AttachmentRecord]:
    """Fetch an item's attachments that have a file on disk."""
    records = parse_attachments(zotero_rpc.call("item.attachments", [citekey]), citekey)
    log.debug("%s: %d attachment(s) with a local file", citekey, len(records))
    return records


def primary_link(records: List[AttachmentRecord]) -> str:
    """The link used to open an item: its first attachment's."""
    return records[0].open_link if records else ""


def merged_annotations(records: List[AttachmentRecord]) -> List[AnnotationRecord]:
    """All annotations across an item's attachments, first occurrence kept."""
    seen = set()
    merged = []
    for record in records:
        for annotation in record.annotations:
            if annotation.key and annotation.key in seen:
                continue
            seen.add(annotation.key)
            merged.append(annotation)
    return merged


def annotation_link(open_link: str, annotation_key: str) -> str:
    """Zotero URI that opens the attachment at a given annotation."""
    return f"{open_link}?annotation={annotation_key}"


def annotation_quote(annotation: AnnotationRecord, citekey: str, open_link: str) -> str:
    """Markdown snippet quoting a highlight with its citation and link."""
    return (
        f"{annotation.text}[@{citekey}]\n"
        f"[Link]({annotation_link(open_link, annotation.key)})\n"
    )
