"""
Last-write-wins conflict resolution.

The whole document is one unit: whichever side has the strictly newer
timestamp wins, and equal timestamps mean there is nothing to do.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..exceptions import CloudSyncError, ErrorCode
from ..storage.documents import Document, DocumentStore
from .base import StorageProvider
from .models import SyncDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteFileInfo:
    """Located remote sync file. modified_ms is 0 when there is none."""
    file_id: Optional[str]
    modified_ms: int = 0


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of one sync pass."""
    direction: SyncDirection
    remote_file_id: Optional[str]


def parse_timestamp_ms(value: str) -> int:
    """
    Convert an ISO-8601 timestamp to unix milliseconds.

    Naive timestamps are taken as UTC.

    Raises:
        CloudSyncError: PARSE_ERROR if the value is not a timestamp
    """
    try:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    except (AttributeError, ValueError) as e:
        raise CloudSyncError(
            f"Invalid timestamp: {value!r}", ErrorCode.PARSE_ERROR, False
        ) from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


async def locate_remote_file(
    provider: StorageProvider,
    cached_id: Optional[str],
) -> RemoteFileInfo:
    """
    Find the remote sync file and its modification time.

    A cached ID whose metadata is gone (deleted remotely) falls back to a
    search by name before concluding that no remote file exists.
    """
    if cached_id:
        metadata = await provider.get_file_metadata(cached_id)
        if metadata is not None:
            return RemoteFileInfo(cached_id, parse_timestamp_ms(metadata.modified_time))
        logger.info(f"Remote sync file {cached_id} no longer exists, searching again")

    file_id = await provider.find_sync_file()
    if not file_id:
        return RemoteFileInfo(None)

    metadata = await provider.get_file_metadata(file_id)
    if metadata is None:
        return RemoteFileInfo(file_id)
    return RemoteFileInfo(file_id, parse_timestamp_ms(metadata.modified_time))


def decide_direction(
    local_ms: int,
    remote_file_id: Optional[str],
    remote_ms: int,
) -> SyncDirection:
    """Pick the sync direction from the two modification times."""
    if not remote_file_id or local_ms > remote_ms:
        return SyncDirection.UPLOAD
    if remote_ms > local_ms:
        return SyncDirection.DOWNLOAD
    return SyncDirection.NONE


def parse_remote_document(content: str) -> Document:
    """Deserialize downloaded content. Raises PARSE_ERROR on bad data."""
    try:
        return Document.from_dict(json.loads(content))
    except ValueError as e:
        raise CloudSyncError(
            f"Remote sync file is not a valid document: {e}",
            ErrorCode.PARSE_ERROR,
            False,
        ) from e


async def reconcile(
    provider: StorageProvider,
    documents: DocumentStore,
    document: Document,
    cached_id: Optional[str],
) -> Reconciliation:
    """
    Run one last-write-wins pass and apply its decision.

    Args:
        provider: Connected storage provider
        documents: Local document store (written on download)
        document: Current local document
        cached_id: Remote file ID from the last sync, if any

    Returns:
        Direction taken and the (possibly new) remote file ID
    """
    local_ms = parse_timestamp_ms(document.last_modified)
    remote = await locate_remote_file(provider, cached_id)
    direction = decide_direction(local_ms, remote.file_id, remote.modified_ms)

    if direction is SyncDirection.UPLOAD:
        new_id = await provider.upload(document.to_json(), remote.file_id)
        logger.info(f"Uploaded local document (remote file {new_id})")
        return Reconciliation(direction, new_id)

    if direction is SyncDirection.DOWNLOAD:
        content = await provider.download(remote.file_id)
        documents.save(parse_remote_document(content))
        logger.info(f"Downloaded remote document {remote.file_id}")
        return Reconciliation(direction, remote.file_id)

    logger.debug("Local and remote documents are in sync")
    return Reconciliation(direction, remote.file_id)
