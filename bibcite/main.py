"""Bibcite entry point.

Reads a markdown note, resolves the Zotero collection named in its
frontmatter and prints the references it cites (or the whole bibliography).
Zotero must be running with Better BibTeX installed.
"""

import logging
import sys

log = logging.getLogger("bibcite")

_VERSION = "0.1.0"

_HELP = """\
Usage: bibcite [options] NOTE.md

  bibcite NOTE.md                  References cited in the note
  bibcite --bibliography NOTE.md   Every entry in the note's collection
  bibcite --annotations NOTE.md    Annotations of the cited references
  bibcite --bibtex NOTE.md         BibTeX for the cited references
  bibcite --csl NOTE.md            CSL-JSON for the cited references

Zotero:
  --collections                    List all collection paths
  --locate "Library/Coll/Sub"      Show library id and collection key
  --suggest "Library/Coll" QUERY   Citation keys starting with QUERY
                                   (QUERY may be a line ending in "[@partial")

Options:
  --set KEY VALUE                  Save a setting to the config .env file
  -h, --help                       Show this help
  -V, --version                    Show version

The collection path is read from the note's "zotero_collection" frontmatter
field (see COLLECTION_FIELD).
"""


def _arg_after(flag: str, count: int = 1) -> list:
    idx = sys.argv.index(flag)
    args = sys.argv[idx + 1 : idx + 1 + count]
    if len(args) < count:
        print(f"Error: {flag} needs {count} argument(s). See 'bibcite --help'.")
        sys.exit(1)
    return args


def _read_note(note_path: str):
    from bibcite import notes

    try:
        return notes.read_note(note_path)
    except OSError as exc:
        print(f"Error: cannot read {note_path}: {exc.strerror or exc}")
        sys.exit(1)


def _session_for(note_path: str, mode: str):
    from bibcite.view import DocumentChanged, ReferencesSession

    note = _read_note(note_path)
    session = ReferencesSession(mode=mode)
    panel = session.on_document_changed(DocumentChanged.from_note(note))
    return session, panel


def _print_panel(panel) -> None:
    title = "Bibliography" if panel.mode == "bibliography" else "References"
    print(f"{title}\n")
    if panel.message:
        print(f"  {panel.message}")
        return
    for entry in panel.entries:
        print(f"  @{entry.citekey}  {entry.title}")
        where = " ".join(p for p in (entry.journal, entry.year) if p)
        if where:
            print(f"      {where}")
        if entry.open_link:
            notes_suffix = f"  ({entry.annotation_count} annotations)" if entry.annotation_count else ""
            print(f"      {entry.open_link}{notes_suffix}")


def _references(note_path: str, mode: str) -> None:
    _, panel = _session_for(note_path, mode)
    _print_panel(panel)
    if panel.is_error:
        sys.exit(1)


def _annotations(note_path: str) -> None:
    from bibcite.attachments import annotation_link, annotation_quote

    session, panel = _session_for(note_path, "references")
    if panel.is_error:
        _print_panel(panel)
        sys.exit(1)

    annotated = session.annotated_items()
    if not annotated:
        print("No annotations found for this set of references.")
        return

    for view in annotated:
        title = view.item.title if view.item else ""
        print(f"Annotations of @{view.citekey}")
        print(f"{title}\n")
        for annotation in view.annotations:
            if annotation.kind == "highlight":
                # Ready to paste into the note
                quote = annotation_quote(annotation, view.citekey, view.open_link)
                for line in quote.splitlines():
                    print(f"  {line}")
            else:
                label = f"[image] {annotation.image_path}" if annotation.kind == "image" else f"[{annotation.kind}]"
                print(f"  {label}")
                print(f"  {annotation_link(view.open_link, annotation.key)}")
            if annotation.comment:
                print(f"    {annotation.comment}")
        print()


def _cited_keys(note_path: str) -> list:
    """Cited keys of a note; exits on errors or when nothing is cited."""
    from bibcite import references
    from bibcite.view import EMPTY_MESSAGES, error_message

    refs = references.build_reference_set_for_note(_read_note(note_path))
    if refs.error is not None:
        print(f"Error: {error_message(refs.error)}")
        sys.exit(1)
    if not refs.citations:
        print(EMPTY_MESSAGES["references"])
        sys.exit(0)
    return refs.citations


def _bibtex(note_path: str) -> None:
    from bibcite import exporter

    print(exporter.bibliography(_cited_keys(note_path), "Better BibTeX"))


def _csl(note_path: str) -> None:
    import json

    from bibcite import exporter

    records = exporter.export_items(_cited_keys(note_path), "Better CSL JSON")
    print(json.dumps(records, indent=2, ensure_ascii=False))


def _collections() -> None:
    from bibcite import library

    for lib in library.fetch_libraries():
        print(f"{lib.name}  (library {lib.id})")
        for path in library.collection_paths(lib):
            print(f"  {path}")


def _locate(path: str) -> None:
    from bibcite import library

    resolved = library.resolve_collection_path(path)
    print(f"library:    {resolved.library_id}")
    print(f"collection: {resolved.collection_key}")


def _suggest(path: str, text: str) -> None:
    from bibcite import citations, exporter, library

    if "[" in text:
        query = citations.citation_query(text)
        if query is None:
            print("Not inside a citation group, nothing to suggest")
            return
    else:
        query = text.lstrip("@")

    resolved = library.resolve_collection_path(path)
    items = exporter.parse_items(
        exporter.export_collection(resolved.library_id, resolved.collection_key)
    )
    matches = citations.suggest_citekeys(query, items)
    if not matches:
        print(f"No citation keys start with '{query}'")
        return
    for citekey, title in matches:
        print(f"@{citekey}  {title}")


def _set(key: str, value: str) -> None:
    from bibcite import config

    if key not in config.SETTINGS:
        print(f"Error: unknown setting {key}. Known: {', '.join(config.SETTINGS)}")
        sys.exit(1)
    config.save_to_env(key, value)
    print(f"Saved {key}={value} to {config.ENV_PATH}")


def _dispatch(default_mode: str) -> None:
    if "--set" in sys.argv:
        _set(*_arg_after("--set", 2))
    elif "--collections" in sys.argv:
        _collections()
    elif "--locate" in sys.argv:
        _locate(*_arg_after("--locate"))
    elif "--suggest" in sys.argv:
        _suggest(*_arg_after("--suggest", 2))
    elif "--bibliography" in sys.argv:
        _references(*_arg_after("--bibliography"), mode="bibliography")
    elif "--annotations" in sys.argv:
        _annotations(*_arg_after("--annotations"))
    elif "--bibtex" in sys.argv:
        _bibtex(*_arg_after("--bibtex"))
    elif "--csl" in sys.argv:
        _csl(*_arg_after("--csl"))
    else:
        args = [a for a in sys.argv[1:] if not a.startswith("-")]
        if not args:
            print(_HELP)
            sys.exit(1)
        _references(args[0], mode=default_mode)


def main():
    if "--help" in sys.argv or "-h" in sys.argv:
        print(_HELP)
        return

    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"bibcite {_VERSION}")
        return

    from bibcite import config
    from bibcite.errors import BibciteError
    from bibcite.view import error_message

    config.setup_logging()
    config.validate()

    try:
        _dispatch(config.DEFAULT_VIEW_MODE)
    except BibciteError as exc:
        print(f"Error: {error_message(exc)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
