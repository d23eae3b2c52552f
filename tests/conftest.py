"""Shared fixtures: a fake Better BibTeX server behind requests.request."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests


def _response(body, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.json.return_value = body
    return resp


class FakeZotero:
    """Answers JSON-RPC and collection export requests from in-memory data.

    groups:      user.groups result
    exports:     {(library_id, collection_key): [CSL-JSON records]}
    attachments: {citekey: item.attachments result}
    """

    def __init__(self, groups, exports, attachments=None):
        self.groups = groups
        self.exports = exports
        self.attachments = attachments or {}
        self.down = False
        self.calls = []

    def __call__(self, method, url, **kwargs):
        if self.down:
            raise requests.exceptions.ConnectionError("Connection refused")

        if method == "POST":
            rpc = kwargs["json"]
            self.calls.append(rpc["method"])
            if rpc["method"] == "user.groups":
                return _response({"jsonrpc": "2.0", "result": self.groups})
            if rpc["method"] == "item.attachments":
                key = rpc["params"][0]
                return _response({"jsonrpc": "2.0", "result": self.attachments.get(key, [])})
            if rpc["method"] == "item.export":
                return _response({"jsonrpc": "2.0", "result": self._item_export(*rpc["params"][:2])})
            return _response({"jsonrpc": "2.0", "error": {"code": -32601, "message": "Method not found"}})

        self.calls.append("export")
        path = url.split("/better-bibtex/collection?/", 1)[1]
        lib_id, rest = path.split("/", 1)
        coll_key = rest.rsplit(".", 1)[0]
        records = self.exports.get((int(lib_id), coll_key))
        if records is None:
            return _response({}, status=404)
        return _response(records)

    def _item_export(self, citekeys, translator):
        by_id = {}
        for records in self.exports.values():
            for record in records:
                by_id.setdefault(record["id"], record)
        found = [by_id[k] for k in citekeys if k in by_id]
        if "JSON" in translator:
            body = json.dumps(found)
        else:
            body = "".join(
                "@article{%s,\n  title = {%s},\n}\n" % (r["id"], r["title"]) for r in found
            )
        return [200, "text/plain", body]


def sample_groups():
    return [{
        "id": 1,
        "name": "LibX",
        "collections": [
            {"key": "KA", "name": "A", "parentCollection": False},
            {"key": "KB", "name": "B", "parentCollection": "KA"},
            {"key": "KR", "name": "RealTop", "parentCollection": False},
        ],
    }]


def sample_exports():
    return {
        (1, "KB"): [
            {"id": "k1", "title": "First Paper", "container-title": "Nature",
             "issued": {"date-parts": [[2020]]}},
            {"id": "k2", "title": "Second Paper", "container-title": "Science",
             "container-title-short": "Sci", "issued": {"literal": "2019"}},
            # duplicate record for k1 must not duplicate the bibliography
            {"id": "k1", "title": "First Paper (dup)"},
        ],
        (1, "KA"): [],
    }


def sample_attachments():
    return {
        "k1": [{
            "open": "zotero://open-pdf/library/items/ATT1",
            "path": "/papers/k1.pdf",
            "annotations": [{
                "key": "ANN1",
                "annotationType": "highlight",
                "annotationText": "Key finding",
                "annotationColor": "#ffd400",
            }],
        }],
        "k2": [{"open": "zotero://linked", "path": False, "annotations": []}],
    }


@pytest.fixture()
def fake_zotero():
    fake = FakeZotero(sample_groups(), sample_exports(), sample_attachments())
    with patch("bibcite.zotero_rpc.requests.request", side_effect=fake):
        yield fake
