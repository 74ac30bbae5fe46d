"""
Repository

Typed CRUD and query facade bound to one MongoDB collection.

Methods:
- add(entity | entities): insert, generating native ids
- update(entity | entities): replace by id, creating absent documents
- delete(entity | id | predicate): remove matches, returns the count removed
- get_by_id(id): entity or None
- exists(predicate) / count() / where(predicate) / of_type(SubType)

The collection is resolved from the entity type (mongorepo.naming) unless a
name override is given. Sibling subtypes stored in one collection are told
apart by the ``_t`` discriminator. A repository typed at a subtype only reads
and deletes documents of that subtype; count() and delete_all() act on the
whole collection.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Iterable, Iterator

from pymongo.collection import Collection

from mongorepo.config import get_default_connection_string
from mongorepo.connection import (
    CollectionProvider,
    get_provider,
    sanitize_url,
    translate_errors,
)
from mongorepo.entities import EntityIdentity, TEntity, TId
from mongorepo.exceptions import MissingIdentifierError
from mongorepo.naming import bind_collection_name, describe
from mongorepo.query import Expression, Query
from mongorepo.serialization import (
    DISCRIMINATOR_FIELD,
    ID_FIELD,
    from_document,
    store_id,
    to_document,
)

logger = logging.getLogger(__name__)


class Repository(Generic[TEntity, TId]):
    """
    Repository for one entity type.

    Construction:
        Repository(Customer)                               # default endpoint, resolved name
        Repository(Customer, url=url)                      # alternate endpoint
        Repository(Customer, url=url, collection_name=n)   # explicit endpoint and name

    Raises:
        ConfigurationError: empty collection name or no default endpoint
        StoreConnectionError: malformed endpoint
    """

    def __init__(
        self,
        entity_type: type[TEntity],
        url: str | None = None,
        collection_name: str | None = None,
        provider: CollectionProvider | None = None,
    ):
        self.entity_type = entity_type
        self._collection_name = bind_collection_name(entity_type, collection_name)
        self._url = url or get_default_connection_string()
        self._provider = provider or get_provider()
        self._collection = self._provider.get_collection(self._url, self._collection_name)
        # Subtype repositories see only their own documents
        self._scope: dict[str, Any] = (
            {}
            if describe(entity_type).collection_root is entity_type
            else {DISCRIMINATOR_FIELD: entity_type.__name__}
        )

        logger.debug(
            f"Bound Repository[{entity_type.__name__}] to "
            f"'{self._collection_name}' at {sanitize_url(self._url)}"
        )

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def url(self) -> str:
        return self._url

    def _check_type(self, entity: Any) -> None:
        if not isinstance(entity, self.entity_type):
            raise TypeError(
                f"Repository[{self.entity_type.__name__}] cannot store "
                f"{type(entity).__name__}"
            )

    def _ensure_id(self, entity: EntityIdentity) -> None:
        if entity.id is not None:
            return
        generated = type(entity).generate_id()
        if generated is None:
            raise MissingIdentifierError(
                f"{type(entity).__name__} has no native id generation; set id before insert"
            )
        entity.id = generated

    def _by_id(self, id: Any) -> dict[str, Any]:
        return {ID_FIELD: store_id(self.entity_type, id), **self._scope}

    def _prepare(self, entity: EntityIdentity) -> dict[str, Any]:
        self._check_type(entity)
        self._ensure_id(entity)
        return to_document(entity)

    def add(self, entities: TEntity | Iterable[TEntity]) -> Any:
        """Insert one entity or a batch and return it with ids populated."""
        if isinstance(entities, EntityIdentity):
            document = self._prepare(entities)
            with translate_errors(self._url, writing=True):
                self._collection.insert_one(document)
            return entities

        batch = list(entities)
        if batch:
            documents = [self._prepare(entity) for entity in batch]
            with translate_errors(self._url, writing=True):
                self._collection.insert_many(documents, ordered=True)
            logger.debug(f"Inserted {len(batch)} documents into '{self._collection_name}'")
        return entities if isinstance(entities, (list, tuple)) else batch

    def update(self, entities: TEntity | Iterable[TEntity]) -> None:
        """Replace stored documents by id, inserting those that are absent."""
        batch = [entities] if isinstance(entities, EntityIdentity) else list(entities)
        with translate_errors(self._url, writing=True):
            for entity in batch:
                document = self._prepare(entity)
                self._collection.replace_one(
                    {ID_FIELD: document[ID_FIELD]}, document, upsert=True
                )

    def delete(self, target: Any) -> int:
        """Delete by entity, id or predicate; return the number removed."""
        if isinstance(target, EntityIdentity):
            target = target.id
        elif isinstance(target, (dict, Expression)) or callable(target):
            query_filter = self.where(target).filter
            with translate_errors(self._url):
                return self._collection.delete_many(query_filter).deleted_count

        if target is None:
            return 0
        with translate_errors(self._url):
            result = self._collection.delete_one(self._by_id(target))
        return result.deleted_count

    def delete_all(self) -> int:
        """Remove every document but keep the collection."""
        with translate_errors(self._url):
            return self._collection.delete_many({}).deleted_count

    def get_by_id(self, id: TId) -> TEntity | None:
        with translate_errors(self._url):
            document = self._collection.find_one(self._by_id(id))
        if document is None:
            return None
        return from_document(document, self.entity_type)

    def exists(self, predicate: Any) -> bool:
        return self.where(predicate).exists()

    def count(self) -> int:
        with translate_errors(self._url):
            return self._collection.count_documents({})

    def query(self) -> Query[TEntity]:
        """Query over every document this repository reads."""
        return Query(self._collection, self.entity_type, filters=(self._scope,))

    def where(self, predicate: Any) -> Query[TEntity]:
        return self.query().where(predicate)

    def of_type(self, subtype: type) -> Query:
        return self.query().of_type(subtype)

    def __iter__(self) -> Iterator[TEntity]:
        return iter(self.query())

    def __repr__(self) -> str:
        return (
            f"Repository({self.entity_type.__name__}, "
            f"collection={self._collection_name!r}, url={sanitize_url(self._url)!r})"
        )
