"""
RepositoryManager

Administrative operations on the collection a matching Repository uses.

Methods:
- exists() -> bool: the physical collection exists (empty or not)
- drop(): remove the collection with every subtype stored in it
- stats() -> dict: storage statistics (size, count, storageSize, ...)
- Index helpers: ensure_index, index_exists, drop_index, drop_all_indexes, get_indexes
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Sequence

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import OperationFailure

from mongorepo.config import get_default_connection_string
from mongorepo.connection import (
    CollectionProvider,
    get_provider,
    sanitize_url,
    translate_errors,
)
from mongorepo.entities import TEntity, TId
from mongorepo.naming import bind_collection_name
from mongorepo.serialization import ID_FIELD

logger = logging.getLogger(__name__)


def _index_keys(keys: str | Sequence[str], descending: bool) -> list[tuple[str, int]]:
    if isinstance(keys, str):
        keys = [keys]
    direction = DESCENDING if descending else ASCENDING
    return [(ID_FIELD if key == "id" else key, direction) for key in keys]


def _index_name(index_keys: list[tuple[str, int]]) -> str:
    # Same convention the driver uses for unnamed indexes
    return "_".join(f"{key}_{direction}" for key, direction in index_keys)


class RepositoryManager(Generic[TEntity, TId]):
    """Manager for the collection backing one entity type.

    Constructed like Repository and always resolves to the same name.
    """

    def __init__(
        self,
        entity_type: type[TEntity],
        url: str | None = None,
        collection_name: str | None = None,
        provider: CollectionProvider | None = None,
    ):
        self.entity_type = entity_type
        self._name = bind_collection_name(entity_type, collection_name)
        self._url = url or get_default_connection_string()
        self._provider = provider or get_provider()
        self._database = self._provider.get_database(self._url)

    @property
    def name(self) -> str:
        return self._name

    @property
    def database(self) -> Database:
        return self._database

    @property
    def collection(self) -> Collection:
        return self._database[self._name]

    def exists(self) -> bool:
        with translate_errors(self._url):
            return self._name in self._database.list_collection_names()

    def drop(self) -> None:
        """Drop the collection. Dropping a missing collection is a no-op."""
        with translate_errors(self._url):
            self._database.drop_collection(self._name)
        logger.info(f"Dropped collection '{self._name}' at {sanitize_url(self._url)}")

    def stats(self) -> dict[str, Any]:
        """Collection statistics (ns, count, size, storageSize, nindexes, capped, ...).

        Read from the $collStats stage; servers without it fall back to the
        collStats command.
        """
        with translate_errors(self._url):
            try:
                results = list(
                    self.collection.aggregate([{"$collStats": {"storageStats": {}}}])
                )
            except OperationFailure as e:
                logger.debug(f"$collStats unavailable for '{self._name}': {e}")
                results = []
            if not results:
                return dict(self._database.command("collStats", self._name))

        result = results[0]
        stats = {"ns": result.get("ns", f"{self._database.name}.{self._name}")}
        stats.update(result.get("storageStats", {}))
        return stats

    def total_data_size(self) -> int:
        return int(self.stats().get("size", 0))

    def total_storage_size(self) -> int:
        return int(self.stats().get("storageSize", 0))

    def is_capped(self) -> bool:
        with translate_errors(self._url):
            return bool(self.collection.options().get("capped", False))

    def ensure_index(
        self,
        keys: str | Sequence[str],
        descending: bool = False,
        unique: bool = False,
        sparse: bool = False,
    ) -> str:
        """Create an index on ``keys`` if missing and return its name."""
        index_keys = _index_keys(keys, descending)
        with translate_errors(self._url):
            name = self.collection.create_index(
                index_keys, name=_index_name(index_keys), unique=unique, sparse=sparse
            )
        logger.debug(f"Ensured index '{name}' on '{self._name}'")
        return name

    def index_exists(self, keys: str | Sequence[str], descending: bool = False) -> bool:
        return _index_name(_index_keys(keys, descending)) in self.get_indexes()

    def drop_index(self, keys: str | Sequence[str], descending: bool = False) -> None:
        with translate_errors(self._url):
            self.collection.drop_index(_index_name(_index_keys(keys, descending)))

    def drop_all_indexes(self) -> None:
        """Drop every index except the one on _id."""
        with translate_errors(self._url):
            self.collection.drop_indexes()

    def get_indexes(self) -> dict[str, Any]:
        with translate_errors(self._url):
            return self.collection.index_information()

    def __repr__(self) -> str:
        return (
            f"RepositoryManager({self.entity_type.__name__}, "
            f"name={self._name!r}, url={sanitize_url(self._url)!r})"
        )
