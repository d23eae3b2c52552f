"""Resolve "Library/Collection/Subcollection" paths to Better BibTeX identifiers.

Better BibTeX lists every library with its flat collection list
(``user.groups``). Collections point at their parent by key, so resolving a
path means walking that forest one name at a time.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bibcite import config, zotero_rpc
from bibcite.errors import AmbiguousName, MalformedResponse, PathNotFound

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Collection:
    key: str
    name: str
    parent_key: Optional[str] = None


@dataclass(frozen=True)
class Library:
    id: int
    name: str
    collections: Tuple[Collection, ...] = ()


@dataclass(frozen=True)
class ResolvedCollection:
    library_id: int
    collection_key: str


# -- Fetching --


def _parse_collection(raw: Any) -> Collection:
    if not isinstance(raw, dict) or not raw.get("key") or "name" not in raw:
        raise MalformedResponse(f"user.groups: unexpected collection entry {raw!r}")
    # Top-level collections report parentCollection: false
    parent = raw.get("parentCollection")
    return Collection(
        key=str(raw["key"]),
        name=str(raw["name"]),
        parent_key=str(parent) if parent else None,
    )


def parse_libraries(result: Any) -> List[Library]:
    """Validate a ``user.groups`` result and convert it to Library records."""
    if not isinstance(result, list):
        raise MalformedResponse("user.groups: expected a list of libraries")

    libraries = []
    for entry in result:
        if not isinstance(entry, dict) or "id" not in entry or "name" not in entry:
            raise MalformedResponse(f"user.groups: unexpected library entry {entry!r}")
        raw_collections = entry.get("collections") or []
        if not isinstance(raw_collections, list):
            raise MalformedResponse(f"user.groups: collections of '{entry['name']}' is not a list")
        try:
            library_id = int(entry["id"])
        except (TypeError, ValueError) as exc:
            raise MalformedResponse(f"user.groups: bad library id {entry['id']!r}") from exc
        libraries.append(Library(
            id=library_id,
            name=str(entry["name"]),
            collections=tuple(_parse_collection(c) for c in raw_collections),
        ))
    return libraries


def fetch_libraries() -> List[Library]:
    """Fetch all libraries with their collection trees."""
    return parse_libraries(zotero_rpc.call("user.groups", [True]))


class LibraryCache:
    """Reuses the library snapshot for ``ttl`` seconds.

    A ttl of 0 disables caching, so every call goes to Zotero.
    """

    def __init__(self, ttl: Optional[float] = None, clock=time.monotonic) -> None:
        self.ttl = config.LIBRARY_CACHE_TTL if ttl is None else ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._libraries: Optional[List[Library]] = None
        self._fetched_at = 0.0

    def get(self) -> List[Library]:
        with self._lock:
            if (
                self._libraries is not None
                and self.ttl > 0
                and self._clock() - self._fetched_at < self.ttl
            ):
                return self._libraries

        libraries = fetch_libraries()
        with self._lock:
            self._libraries = libraries
            self._fetched_at = self._clock()
        return libraries

    def invalidate(self) -> None:
        with self._lock:
            self._libraries = None


# -- Resolution --


def children_index(library: Library) -> Dict[Optional[str], List[Collection]]:
    """Map each parent key (None for top level) to its child collections."""
    index: Dict[Optional[str], List[Collection]] = defaultdict(list)
    for coll in library.collections:
        index[coll.parent_key].append(coll)
    return index


def _pick(matches: Sequence, path: str, segment: str, depth: int, ambiguity: str):
    if not matches:
        raise PathNotFound(path, segment, depth)
    if len(matches) > 1:
        if ambiguity == "error":
            raise AmbiguousName(path, segment, depth, len(matches))
        log.warning(
            "'%s' matches %d entries at level %d of '%s', using the first",
            segment, len(matches), depth, path,
        )
    return matches[0]


def resolve_collection_path(
    path: str,
    *,
    ambiguity: Optional[str] = None,
    libraries: Optional[List[Library]] = None,
    cache: Optional[LibraryCache] = None,
) -> ResolvedCollection:
    """Resolve ``Library/Top/Child/...`` to a library id and collection key.

    Names must match exactly at each level. When siblings share a name the
    first one wins, unless ``ambiguity`` (default config.AMBIGUOUS_NAMES) is
    "error". Raises PathNotFound at the first segment that matches nothing.
    """
    ambiguity = ambiguity or config.AMBIGUOUS_NAMES
    segments = path.strip().split("/")

    if libraries is None:
        libraries = cache.get() if cache is not None else fetch_libraries()

    library = _pick(
        [lib for lib in libraries if lib.name == segments[0]],
        path, segments[0], 0, ambiguity,
    )
    if len(segments) < 2:
        raise PathNotFound(path, "", 1, f"'{path}' names a library but no collection")

    index = children_index(library)
    current: Optional[str] = None
    for depth, segment in enumerate(segments[1:], start=1):
        matches = [c for c in index.get(current, ()) if c.name == segment]
        current = _pick(matches, path, segment, depth, ambiguity).key

    log.info("Resolved '%s' to library %d, collection %s", path, library.id, current)
    return ResolvedCollection(library_id=library.id, collection_key=current)


def collection_paths(library: Library) -> List[str]:
    """List every collection path in a library, parents before children."""
    index = children_index(library)
    paths: List[str] = []

    def walk(parent: Optional[str], prefix: str) -> None:
        for coll in index.get(parent, ()):
            full = f"{prefix}/{coll.name}"
            paths.append(full)
            walk(coll.key, full)

    walk(None, library.name)
    return paths
