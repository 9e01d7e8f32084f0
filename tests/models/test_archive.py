"""Tests for the collection archive format."""

import json

import pytest

from item_collections.models.archive import ARCHIVE_VERSION, CollectionArchive
from item_collections.models.source import SourceDescriptor
from item_collections.utils.errors import PersistenceError


@pytest.fixture
def archive():
    return CollectionArchive(
        type="video",
        source=SourceDescriptor.query({"sort": "recent"}),
        ids=["a", "b"],
        estimated_total=40,
        next_offset=10,
    )


def test_blob_is_versioned(archive):
    data = json.loads(archive.to_bytes())

    assert data["format"] == "item-collection"
    assert data["version"] == ARCHIVE_VERSION
    assert data["source"]["kind"] == "query"


def test_from_bytes_restores_fields(archive):
    restored = CollectionArchive.from_bytes(archive.to_bytes())

    assert restored == archive


@pytest.mark.parametrize(
    "blob, message",
    [
        (b"{not json", "not valid JSON"),
        (b"[1, 2]", "not an item collection archive"),
        (b'{"format": "something-else", "version": 1}', "not an item collection archive"),
        (b'{"format": "item-collection", "version": 1}', "Malformed archive"),
    ],
)
def test_from_bytes_rejects_bad_blobs(blob, message):
    with pytest.raises(PersistenceError, match=message):
        CollectionArchive.from_bytes(blob)


def test_save_is_atomic(tmp_path, archive):
    path = tmp_path / "archive.json"

    archive.save(path)

    assert CollectionArchive.load(path) == archive
    assert [p.name for p in tmp_path.iterdir()] == ["archive.json"]


def test_editable_query_archive_is_malformed(archive):
    data = json.loads(archive.to_bytes())
    data["editable"] = True

    with pytest.raises(PersistenceError, match="Malformed archive"):
        CollectionArchive.from_bytes(json.dumps(data).encode("utf-8"))
