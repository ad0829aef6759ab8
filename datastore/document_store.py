from __future__ import annotations

import heapq
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from errors import ConflictError, PersistenceUnavailableError
from settings import get_settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DocumentCollection(Generic[ModelT]):
    """Append-only keyed collection of pydantic documents.

    Documents are kept in memory and, when a persistence path is given,
    appended to a JSON Lines file that is replayed on construction.
    """

    def __init__(
        self,
        name: str,
        model: Type[ModelT],
        key_field: str = "id",
        persistence_path: Optional[Path] = None,
        available: bool = True,
    ) -> None:
        self.name = name
        self.model = model
        self.key_field = key_field
        self.persistence_path = persistence_path
        self._items: Dict[str, ModelT] = {}
        self._lock = Lock()
        self._available = available
        if available and persistence_path:
            self._load_from_disk()

    @property
    def available(self) -> bool:
        return self._available

    def insert(self, item: ModelT) -> ModelT:
        """Store a new document; raises ConflictError if its key exists."""
        key = str(getattr(item, self.key_field))
        with self._lock:
            self._ensure_available()
            if key in self._items:
                raise ConflictError(
                    f"Document with {self.key_field} {key!r} already exists in {self.name!r}."
                )
            self._append(item)
            self._items[key] = item.model_copy(deep=True)
        return item

    def get(self, key: str) -> Optional[ModelT]:
        with self._lock:
            self._ensure_available()
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def find(self, predicate: Optional[Callable[[ModelT], bool]] = None) -> list[ModelT]:
        """Return deep copies of the documents matching ``predicate``."""

        with self._lock:
            self._ensure_available()
            return [
                item.model_copy(deep=True)
                for item in self._items.values()
                if predicate is None or predicate(item)
            ]

    def select(
        self,
        predicate: Callable[[ModelT], bool],
        key: Callable[[ModelT], Any],
        limit: int,
    ) -> list[ModelT]:
        """Copies of the ``limit`` smallest matches by ``key``, in order.

        Only the selected documents are copied.
        """
        with self._lock:
            self._ensure_available()
            if limit <= 0:
                return []
            chosen = heapq.nsmallest(
                limit, (item for item in self._items.values() if predicate(item)), key=key
            )
            return [item.model_copy(deep=True) for item in chosen]

    def scan(self) -> list[ModelT]:
        return self.find()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _ensure_available(self) -> None:
        if not self._available:
            raise PersistenceUnavailableError(f"Collection {self.name!r} is unavailable.")

    def _append(self, item: ModelT) -> None:
        if not self.persistence_path:
            return
        line = json.dumps(item.model_dump(mode="json"), sort_keys=True)
        try:
            with self.persistence_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise PersistenceUnavailableError(
                f"Could not write to collection {self.name!r}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.error(
                "Could not load collection",
                extra={"path": str(self.persistence_path), "reason": str(exc)},
            )
            self._available = False
            return

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                item = self.model.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.warning(
                    "Skipping unreadable document on line %d",
                    line_number,
                    extra={"path": str(self.persistence_path), "reason": str(exc)},
                )
                continue
            self._items[str(getattr(item, self.key_field))] = item


class DocumentStore:
    """Named collections rooted at one directory, or memory only."""

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self.available = True
        self._collections: Dict[str, DocumentCollection] = {}
        self._lock = Lock()
        self._connected = False

    def connect(self) -> bool:
        """Open the store directory. Attempted once; failures are logged."""
        with self._lock:
            if self._connected:
                return self.available
            self._connected = True
            if self.root_path is None:
                return True
            try:
                self.root_path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.error(
                    "Document store connection failed",
                    extra={"path": str(self.root_path), "reason": str(exc)},
                )
                self.available = False
            else:
                logger.info("Document store connected", extra={"path": str(self.root_path)})
            return self.available

    def collection(
        self,
        name: str,
        model: Type[ModelT],
        key_field: str = "id",
    ) -> DocumentCollection[ModelT]:
        self.connect()
        with self._lock:
            existing = self._collections.get(name)
            if existing is not None:
                return existing
            path = self.root_path / f"{name}.jsonl" if self.root_path else None
            created = DocumentCollection(
                name=name,
                model=model,
                key_field=key_field,
                persistence_path=path,
                available=self.available,
            )
            self._collections[name] = created
            return created


@lru_cache
def build_default_store(path: Optional[str] = None) -> DocumentStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    return DocumentStore(root_path=Path(store_path) if store_path else None)
