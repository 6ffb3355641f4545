"""
Local persistence for the sync engine.

Key-value stores hold configuration and credentials; the document store
holds the local data snapshot being synced.
"""

from .backends import (
    KeyValueStore,
    MemoryKeyValueStore,
    FileKeyValueStore,
    EncryptedFileKeyValueStore,
    build_fernet,
)
from .documents import (
    Document,
    DocumentStore,
    MemoryDocumentStore,
    JsonFileDocumentStore,
)

__all__ = [
    # Key-value
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "EncryptedFileKeyValueStore",
    "build_fernet",
    # Documents
    "Document",
    "DocumentStore",
    "MemoryDocumentStore",
    "JsonFileDocumentStore",
]
