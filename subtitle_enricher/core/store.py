"""Document stores backing the word-entity cache.

WHY: The pipeline only needs get/put by (collection, key). Keeping that
contract tiny lets tests use a dict and the CLI use a directory of JSON
files, while a real deployment plugs in its own database client.

HOW: DocumentStore is a Protocol. InMemoryDocumentStore keeps nested
dicts. JsonFileDocumentStore keeps one <collection>.json file per
collection, loaded lazily and rewritten atomically (temp file + replace)
on every put.

RULES:
- get() returns a copy; callers may mutate it freely
- get() returns None for an unknown key
- Writes to one JsonFileDocumentStore are serialized by a lock
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    async def get(self, collection: str, key: str) -> dict[str, Any] | None: ...

    async def put(self, collection: str, key: str, document: dict[str, Any]) -> None: ...


class InMemoryDocumentStore:
    """Dict-backed store for tests and single-process batches."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        document = self._data.get(collection, {}).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def put(self, collection: str, key: str, document: dict[str, Any]) -> None:
        self._data.setdefault(collection, {})[key] = copy.deepcopy(document)

    def snapshot(self) -> dict[str, dict[str, dict[str, Any]]]:
        return copy.deepcopy(self._data)


class JsonFileDocumentStore:
    """One JSON file per collection under ``directory``."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _path(self, collection: str) -> Path:
        return self._directory / f"{collection}.json"

    def _load(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in self._collections:
            path = self._path(collection)
            if path.exists():
                with open(path, encoding="utf-8") as f:
                    self._collections[collection] = json.load(f)
            else:
                self._collections[collection] = {}
        return self._collections[collection]

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        async with self._lock:
            document = self._load(collection).get(key)
        return copy.deepcopy(document) if document is not None else None

    async def put(self, collection: str, key: str, document: dict[str, Any]) -> None:
        async with self._lock:
            documents = self._load(collection)
            documents[key] = copy.deepcopy(document)
            await asyncio.to_thread(self._write, collection, copy.deepcopy(documents))

    def _write(self, collection: str, documents: dict[str, dict[str, Any]]) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{collection}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(documents, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path(collection))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d documents to %s", len(documents), self._path(collection))
