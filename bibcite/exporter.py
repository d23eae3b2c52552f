"""Collection and item exports from Better BibTeX.

Collections are pulled through the file-style export URL; item sets go
through the ``item.export`` RPC method.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from bibcite import config, zotero_rpc
from bibcite.errors import ExportFailed, RpcError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BibliographicItem:
    id: str
    title: str = ""
    container_title: str = ""
    container_title_short: str = ""
    issued: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def journal(self) -> str:
        return self.container_title_short or self.container_title

    @property
    def year(self) -> str:
        """Year of issue: first date part, else the first word of a literal date."""
        parts = self.issued.get("date-parts")
        if parts:
            try:
                first = parts[0][0]
            except (IndexError, KeyError, TypeError):
                return ""
            return "" if first is None else str(first)
        literal = self.issued.get("literal")
        if literal:
            return str(literal).split(" ")[0]
        return ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "BibliographicItem":
        """Build from a CSL-JSON record, or a Better BibTeX JSON item."""
        issued = record.get("issued")
        if not isinstance(issued, dict):
            issued = {"literal": record["date"]} if record.get("date") else {}
        return cls(
            id=str(record["id"]),
            title=record.get("title") or "",
            container_title=(
                record.get("container-title")
                or record.get("publicationTitle")
                or record.get("proceedingsTitle")
                or record.get("bookTitle")
                or ""
            ),
            container_title_short=(
                record.get("container-title-short")
                or record.get("journalAbbreviation")
                or ""
            ),
            issued=issued,
            raw=record,
        )


def normalize_records(payload: Any) -> List[Dict[str, Any]]:
    """Turn an export payload into a flat list of records keyed by ``id``.

    CSL-JSON exports are a list of records that already carry ``id``.
    Better BibTeX JSON is an object with an ``items`` list; there the
    citation key becomes the ``id``.
    """
    if isinstance(payload, dict):
        items = payload.get("items")
        if not isinstance(items, list):
            raise ExportFailed("Export has no items list")
        records = []
        for item in items:
            if not isinstance(item, dict) or not item.get("citationKey"):
                raise ExportFailed(f"Export item without a citation key: {item!r}")
            records.append({**item, "id": item["citationKey"]})
        return records

    if not isinstance(payload, list):
        raise ExportFailed(f"Unexpected export payload: {type(payload).__name__}")

    records = []
    for entry in payload:
        # item.export occasionally nests one level deeper
        group = entry if isinstance(entry, list) else [entry]
        for record in group:
            if not isinstance(record, dict) or not record.get("id"):
                raise ExportFailed(f"Export record without an id: {record!r}")
            records.append(record)
    return records


def parse_items(records: Iterable[Dict[str, Any]]) -> List[BibliographicItem]:
    return [BibliographicItem.from_record(r) for r in records]


def export_collection(
    library_id: int, collection_key: str, fmt: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Export all items in a collection, in collection order."""
    fmt = fmt or config.EXPORT_FORMAT
    path = f"/better-bibtex/collection?/{library_id}/{collection_key}.{fmt}"
    resp = zotero_rpc.get(path)
    if not resp.ok:
        raise ExportFailed(
            f"Export of collection {collection_key} returned HTTP {resp.status_code}"
        )
    try:
        payload = resp.json()
    except ValueError as exc:
        raise ExportFailed(f"Export of collection {collection_key} is not valid JSON") from exc

    records = normalize_records(payload)
    log.info("Exported %d item(s) from collection %s", len(records), collection_key)
    return records


def bibliography(
    citekeys: List[str], translator: str, library_id: Optional[int] = None,
) -> str:
    """Export items with any Better BibTeX translator; returns the exported text."""
    params: List[Any] = [citekeys, translator]
    if library_id is not None:
        params.append(library_id)
    try:
        result = zotero_rpc.call("item.export", params)
    except RpcError as exc:
        raise ExportFailed(str(exc)) from exc

    # Better BibTeX answers [status, content type, body]
    if isinstance(result, list) and len(result) >= 3 and isinstance(result[2], str):
        return result[2]
    if isinstance(result, str):
        return result
    raise ExportFailed(f"item.export: unexpected result {result!r:.200}")


def export_items(
    citekeys: List[str], translator: str = "json", library_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Export specific items as JSON records."""
    if not citekeys:
        return []
    body = bibliography(citekeys, translator, library_id)
    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise ExportFailed(f"item.export with {translator} did not return JSON") from exc
    return normalize_records(payload)
