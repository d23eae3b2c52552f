"""Failures raised while talking to Zotero / Better BibTeX.

Everything derives from BibciteError so the reference aggregator can turn
any of them into the ``error`` field of an empty ReferenceSet.
"""


class BibciteError(Exception):
    """Base class for all bibcite failures."""


class ServiceUnreachable(BibciteError):
    """Zotero (or the Better BibTeX endpoint) could not be reached."""


class MalformedResponse(BibciteError):
    """The service answered, but not with the shape we expected."""


class RpcError(MalformedResponse):
    """The JSON-RPC response carried an ``error`` member."""

    def __init__(self, method: str, code=None, message: str = ""):
        self.method = method
        self.code = code
        detail = f" ({code})" if code is not None else ""
        super().__init__(f"{method} failed{detail}: {message}")


class ExportFailed(MalformedResponse):
    """A collection or item export returned an error status or bad payload."""


class PathNotFound(BibciteError):
    """A collection path segment has no match at its depth."""

    def __init__(self, path: str, segment: str, depth: int, message: str = ""):
        self.path = path
        self.segment = segment
        self.depth = depth
        super().__init__(message or f"No match for '{segment}' (level {depth}) in '{path}'")


class AmbiguousName(PathNotFound):
    """More than one sibling matched a path segment and ambiguity is an error."""

    def __init__(self, path: str, segment: str, depth: int, count: int):
        self.count = count
        super().__init__(
            path, segment, depth,
            f"'{segment}' (level {depth}) matches {count} entries in '{path}'",
        )
