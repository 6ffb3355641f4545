"""
Tests for last-write-wins conflict resolution.
"""

import json

import pytest

from cloudsync.exceptions import CloudSyncError, ErrorCode
from cloudsync.storage import Document, MemoryDocumentStore
from cloudsync.sync import SyncDirection
from cloudsync.sync.resolution import (
    decide_direction,
    locate_remote_file,
    parse_remote_document,
    parse_timestamp_ms,
    reconcile,
)

from fakes import T0, T1, FakeProvider


class TestParseTimestamp:
    """Tests for timestamp parsing."""

    def test_zulu_suffix(self):
        assert parse_timestamp_ms("1970-01-01T00:00:01Z") == 1000

    def test_milliseconds(self):
        assert parse_timestamp_ms("1970-01-01T00:00:01.250Z") == 1250

    def test_offset(self):
        assert parse_timestamp_ms("1970-01-01T01:00:00+01:00") == 0

    def test_naive_is_utc(self):
        assert parse_timestamp_ms("1970-01-01T00:00:02") == 2000

    @pytest.mark.parametrize("value", ["yesterday", "", None])
    def test_invalid(self, value):
        with pytest.raises(CloudSyncError) as exc_info:
            parse_timestamp_ms(value)
        assert exc_info.value.code is ErrorCode.PARSE_ERROR


class TestDecideDirection:
    """Tests for the direction decision."""

    @pytest.mark.parametrize("local, remote_id, remote, expected", [
        (T1, None, None, SyncDirection.UPLOAD),
        (T1, "file-1", T0, SyncDirection.UPLOAD),
        (T0, "file-1", T1, SyncDirection.DOWNLOAD),
        (T0, "file-1", T0, SyncDirection.NONE),
    ])
    def test_direction(self, local, remote_id, remote, expected):
        local_ms = parse_timestamp_ms(local)
        remote_ms = parse_timestamp_ms(remote) if remote else 0
        assert decide_direction(local_ms, remote_id, remote_ms) is expected

    def test_missing_remote_always_uploads(self):
        assert decide_direction(0, None, 0) is SyncDirection.UPLOAD


class TestLocateRemoteFile:
    """Tests for locating the remote sync file."""

    @pytest.mark.asyncio
    async def test_cached_id_used_when_present(self):
        provider = FakeProvider()
        file_id = provider.add_file("{}", T0)

        remote = await locate_remote_file(provider, file_id)

        assert remote.file_id == file_id
        assert remote.modified_ms == parse_timestamp_ms(T0)
        assert provider.find_calls == 0

    @pytest.mark.asyncio
    async def test_stale_cached_id_falls_back_to_search(self):
        provider = FakeProvider()
        file_id = provider.add_file("{}", T1)

        remote = await locate_remote_file(provider, "deleted-id")

        assert remote.file_id == file_id
        assert provider.find_calls == 1

    @pytest.mark.asyncio
    async def test_nothing_found(self):
        provider = FakeProvider()
        remote = await locate_remote_file(provider, "deleted-id")
        assert remote.file_id is None
        assert remote.modified_ms == 0


class TestParseRemoteDocument:
    """Tests for downloaded content validation."""

    def test_valid(self):
        document = parse_remote_document(json.dumps({"lastModified": T0, "items": ["B"]}))
        assert document.payload == {"items": ["B"]}

    @pytest.mark.parametrize("content", ["not json", "[]", '{"items": []}', '{"lastModified": 5}'])
    def test_invalid(self, content):
        with pytest.raises(CloudSyncError) as exc_info:
            parse_remote_document(content)
        assert exc_info.value.code is ErrorCode.PARSE_ERROR


class TestReconcile:
    """Tests for one full reconciliation pass."""

    @pytest.mark.asyncio
    async def test_uploads_when_remote_missing(self):
        provider = FakeProvider()
        document = Document(last_modified=T1, payload={"items": ["A"]})
        documents = MemoryDocumentStore(document)

        outcome = await reconcile(provider, documents, document, None)

        assert outcome.direction is SyncDirection.UPLOAD
        assert outcome.remote_file_id in provider.files
        assert provider.uploads == [None]
        uploaded = json.loads(provider.files[outcome.remote_file_id][0])
        assert uploaded == {"lastModified": T1, "items": ["A"]}

    @pytest.mark.asyncio
    async def test_uploads_over_older_remote(self):
        provider = FakeProvider()
        file_id = provider.add_file(json.dumps({"lastModified": T0}), T0)
        document = Document(last_modified=T1, payload={"items": ["A"]})

        outcome = await reconcile(provider, MemoryDocumentStore(document), document, file_id)

        assert outcome.direction is SyncDirection.UPLOAD
        assert outcome.remote_file_id == file_id
        assert provider.uploads == [file_id]

    @pytest.mark.asyncio
    async def test_downloads_newer_remote(self):
        provider = FakeProvider()
        file_id = provider.add_file(json.dumps({"lastModified": T1, "items": ["B"]}), T1)
        document = Document(last_modified=T0, payload={"items": ["A"]})
        documents = MemoryDocumentStore(document)

        outcome = await reconcile(provider, documents, document, file_id)

        assert outcome.direction is SyncDirection.DOWNLOAD
        assert documents.document.payload == {"items": ["B"]}
        assert provider.uploads == []

    @pytest.mark.asyncio
    async def test_equal_timestamps_do_nothing(self):
        provider = FakeProvider()
        file_id = provider.add_file(json.dumps({"lastModified": T0}), T0)
        document = Document(last_modified=T0, payload={})

        outcome = await reconcile(provider, MemoryDocumentStore(document), document, file_id)

        assert outcome.direction is SyncDirection.NONE
        assert outcome.remote_file_id == file_id
        assert provider.transfer_count == 0

    @pytest.mark.asyncio
    async def test_bad_remote_content_leaves_local_untouched(self):
        provider = FakeProvider()
        file_id = provider.add_file("garbage", T1)
        document = Document(last_modified=T0, payload={"items": ["A"]})
        documents = MemoryDocumentStore(document)

        with pytest.raises(CloudSyncError) as exc_info:
            await reconcile(provider, documents, document, file_id)

        assert exc_info.value.code is ErrorCode.PARSE_ERROR
        assert documents.document is document
