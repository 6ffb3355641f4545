"""
Local document store.

The sync engine treats the document as one indivisible unit. Only
lastModified is ever read; the payload is carried through untouched.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LAST_MODIFIED_KEY = "lastModified"


@dataclass
class Document:
    """Local data snapshot with its modification timestamp."""
    last_modified: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.payload)
        data[LAST_MODIFIED_KEY] = self.last_modified
        return data

    def to_json(self) -> str:
        """Pretty-printed JSON as stored remotely."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        if not isinstance(data, dict):
            raise ValueError("Document must be a JSON object")
        last_modified = data.get(LAST_MODIFIED_KEY)
        if not isinstance(last_modified, str):
            raise ValueError(f"Document is missing a string '{LAST_MODIFIED_KEY}'")
        payload = {k: v for k, v in data.items() if k != LAST_MODIFIED_KEY}
        return cls(last_modified=last_modified, payload=payload)


class DocumentStore(ABC):
    """Abstract store for the single local document."""

    @abstractmethod
    def load(self) -> Optional[Document]:
        """Return the local document, or None if there is none."""
        pass

    @abstractmethod
    def save(self, document: Document) -> None:
        """Replace the local document."""
        pass


class MemoryDocumentStore(DocumentStore):
    """In-memory document store."""

    def __init__(self, document: Optional[Document] = None):
        self.document = document

    def load(self) -> Optional[Document]:
        return self.document

    def save(self, document: Document) -> None:
        self.document = document


class JsonFileDocumentStore(DocumentStore):
    """Document kept as a JSON file on disk."""

    def __init__(self, path: Path):
        """
        Initialize file document store.

        Args:
            path: JSON file holding the document
        """
        self.path = path

    def load(self) -> Optional[Document]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Document.from_dict(data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load local document {self.path}: {e}")
            return None

    def save(self, document: Document) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(document.to_json())
        os.replace(temp_path, self.path)
        logger.info(f"Saved local document to {self.path}")
