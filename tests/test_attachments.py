"""Tests for attachment and annotation fetching."""

from unittest.mock import patch

import pytest


def _attachment(path="/tmp/paper.pdf", open_link="zotero://open-pdf/library/items/ATT1", annotations=None):
    return {"open": open_link, "path": path, "annotations": annotations or []}


HIGHLIGHT = {
    "key": "ANN1",
    "annotationType": "highlight",
    "annotationText": "An important sentence.",
    "annotationComment": "check this",
    "annotationColor": "#ffd400",
    "annotationPageLabel": 3,
}

IMAGE = {
    "key": "ANN2",
    "annotationType": "image",
    "annotationComment": "figure 2",
    "annotationImagePath": "/tmp/cache/ANN2.png",
}


class TestFetchAttachments:
    @patch("bibcite.attachments.zotero_rpc.call")
    def test_parses_records(self, mock_call):
        from bibcite.attachments import fetch_attachments

        mock_call.return_value = [_attachment(annotations=[HIGHLIGHT, IMAGE])]

        records = fetch_attachments("smith2020")

        mock_call.assert_called_once_with("item.attachments", ["smith2020"])
        assert len(records) == 1
        assert records[0].open_link == "zotero://open-pdf/library/items/ATT1"
        highlight, image = records[0].annotations
        assert highlight.kind == "highlight"
        assert highlight.text == "An important sentence."
        assert highlight.color == "#ffd400"
        assert highlight.page_label == "3"
        assert image.kind == "image"
        assert image.image_path == "/tmp/cache/ANN2.png"

    @patch("bibcite.attachments.zotero_rpc.call")
    def test_drops_entries_without_local_file(self, mock_call):
        from bibcite.attachments import fetch_attachments

        mock_call.return_value = [
            _attachment(path=False, open_link="zotero://linked-url"),
            _attachment(path="", open_link="zotero://empty"),
            _attachment(path="/tmp/b.pdf", open_link="zotero://open-pdf/library/items/B"),
        ]

        records = fetch_attachments("k")
        assert [r.open_link for r in records] == ["zotero://open-pdf/library/items/B"]

    @patch("bibcite.attachments.zotero_rpc.call")
    def test_no_attachments(self, mock_call):
        from bibcite.attachments import fetch_attachments

        mock_call.return_value = []
        assert fetch_attachments("k") == []

    @patch("bibcite.attachments.zotero_rpc.call")
    def test_malformed_result(self, mock_call):
        from bibcite.attachments import fetch_attachments
        from bibcite.errors import MalformedResponse

        mock_call.return_value = {"open": "x"}

        with pytest.raises(MalformedResponse):
            fetch_attachments("k")

    @patch("bibcite.attachments.zotero_rpc.call")
    def test_malformed_annotations(self, mock_call):
        from bibcite.attachments import fetch_attachments
        from bibcite.errors import MalformedResponse

        mock_call.return_value = [{"open": "x", "path": "/a.pdf", "annotations": "nope"}]

        with pytest.raises(MalformedResponse):
            fetch_attachments("k")


class TestHelpers:
    def _records(self):
        from bibcite.attachments import parse_attachments

        return parse_attachments([
            _attachment(open_link="zotero://first", annotations=[HIGHLIGHT]),
            _attachment(open_link="zotero://second", annotations=[IMAGE, HIGHLIGHT]),
        ])

    def test_primary_link_is_first(self):
        from bibcite.attachments import primary_link

        assert primary_link(self._records()) == "zotero://first"
        assert primary_link([]) == ""

    def test_merged_annotations_union(self):
        from bibcite.attachments import merged_annotations

        merged = merged_annotations(self._records())
        assert [a.key for a in merged] == ["ANN1", "ANN2"]

    def test_annotation_link(self):
        from bibcite.attachments import annotation_link

        assert annotation_link("zotero://open-pdf/library/items/A", "ANN1") == (
            "zotero://open-pdf/library/items/A?annotation=ANN1"
        )

    def test_annotation_quote(self):
        from bibcite.attachments import AnnotationRecord, annotation_quote

        ann = AnnotationRecord(key="ANN1", kind="highlight", text="Quoted text")
        assert annotation_quote(ann, "smith2020", "zotero://x") == (
            "Quoted text[@smith2020]\n[Link](zotero://x?annotation=ANN1)\n"
        )
