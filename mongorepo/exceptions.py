"""Custom exceptions for the repository layer."""

from typing import Any


class MongoRepositoryError(Exception):
    """Base exception for repository errors."""

    pass


class ConfigurationError(MongoRepositoryError):
    """Empty collection name, non-entity type or missing connection setting."""

    pass


class StoreConnectionError(MongoRepositoryError):
    """Malformed or unreachable store endpoint."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class DuplicateKeyError(MongoRepositoryError):
    """Identifier collision on insert."""

    def __init__(self, message: str, key: Any = None):
        super().__init__(message)
        self.key = key


class QueryTranslationError(MongoRepositoryError):
    """Predicate that cannot be expressed as a store filter."""

    pass


class MissingIdentifierError(MongoRepositoryError, ValueError):
    """Non-native identifier left unset before insert."""

    pass


class DocumentEncodingError(MongoRepositoryError, TypeError):
    """Entity field value that cannot be stored as BSON."""

    pass
