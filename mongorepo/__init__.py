"""mongorepo: typed repositories over MongoDB collections."""

__version__ = "0.1.0"

from mongorepo.entities import Entity, EntityIdentity
from mongorepo.exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    DocumentEncodingError,
    MissingIdentifierError,
    MongoRepositoryError,
    QueryTranslationError,
    StoreConnectionError,
)
from mongorepo.manager import RepositoryManager
from mongorepo.naming import resolve_collection_name
from mongorepo.query import F, Field, Query
from mongorepo.repository import Repository

__all__ = [
    "__version__",
    # Entities
    "Entity",
    "EntityIdentity",
    # Facades
    "Repository",
    "RepositoryManager",
    "resolve_collection_name",
    # Queries
    "F",
    "Field",
    "Query",
    # Errors
    "MongoRepositoryError",
    "ConfigurationError",
    "StoreConnectionError",
    "DuplicateKeyError",
    "QueryTranslationError",
    "MissingIdentifierError",
    "DocumentEncodingError",
]
