"""
MongoDB connection management and collection access.

This module provides:
- MongoCollectionProvider: one MongoClient per endpoint, database and collection lookup
- A process-wide default provider (get_provider / set_provider)
- translate_errors(): maps driver exceptions onto mongorepo.exceptions
- sanitize_url(): hides credentials for safe logging
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Protocol

from bson.errors import InvalidDocument
from pymongo import MongoClient
from pymongo import errors as mongo_errors
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.uri_parser import parse_uri

from mongorepo.config import ClientConfig, get_settings
from mongorepo.exceptions import (
    ConfigurationError,
    DocumentEncodingError,
    DuplicateKeyError,
    QueryTranslationError,
    StoreConnectionError,
)

logger = logging.getLogger(__name__)

DUPLICATE_KEY_CODES = {11000, 11001, 12582}


class CollectionProvider(Protocol):
    """Hands out collection handles for an endpoint."""

    def get_database(self, url: str) -> Database: ...

    def get_collection(self, url: str, name: str) -> Collection: ...

    def ping(self, url: str) -> bool: ...

    def close(self) -> None: ...


@contextmanager
def translate_errors(url: str | None = None, writing: bool = False) -> Iterator[None]:
    """Re-raise driver failures as repository exceptions.

    Values BSON cannot encode become DocumentEncodingError when ``writing``
    and QueryTranslationError otherwise (they can only come from filters).
    """
    try:
        yield
    except InvalidDocument as e:
        if writing:
            raise DocumentEncodingError(f"Cannot store document: {e}") from e
        raise QueryTranslationError(f"Cannot encode filter: {e}") from e
    except mongo_errors.DuplicateKeyError as e:
        key = (e.details or {}).get("keyValue")
        raise DuplicateKeyError(f"Duplicate key: {key or e}", key=key) from e
    except mongo_errors.BulkWriteError as e:
        write_errors = (e.details or {}).get("writeErrors", [])
        duplicate = next(
            (err for err in write_errors if err.get("code") in DUPLICATE_KEY_CODES),
            None,
        )
        if duplicate is None:
            raise
        key = duplicate.get("keyValue") or {"_id": duplicate.get("op", {}).get("_id")}
        raise DuplicateKeyError(f"Duplicate key: {key}", key=key) from e
    except mongo_errors.ConnectionFailure as e:
        safe_url = sanitize_url(url) if url else None
        logger.error(f"MongoDB unreachable at {safe_url}: {e}")
        raise StoreConnectionError(f"MongoDB unreachable: {e}", url=safe_url) from e


class MongoCollectionProvider:
    """Default provider backed by pymongo.MongoClient."""

    def __init__(
        self,
        client_factory: Callable[..., Any] = MongoClient,
        client_config: ClientConfig | None = None,
        default_database: str | None = None,
    ):
        self.client_factory = client_factory
        self._client_config = client_config
        self._default_database = default_database
        self._clients: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def client_config(self) -> ClientConfig:
        return self._client_config or get_settings().client

    def _parse(self, url: str) -> dict:
        try:
            return parse_uri(url)
        except mongo_errors.ConfigurationError as e:
            # InvalidURI and SRV lookup failures both land here
            logger.error(f"Invalid MongoDB URL {sanitize_url(url)}: {e}")
            raise StoreConnectionError(f"Invalid MongoDB URL: {e}", url=sanitize_url(url)) from e

    def get_client(self, url: str) -> Any:
        """Return the client for ``url``, creating it on first use."""
        client = self._clients.get(url)
        if client is not None:
            return client

        self._parse(url)
        with self._lock:
            client = self._clients.get(url)
            if client is None:
                with translate_errors(url):
                    client = self.client_factory(url, **self.client_config.client_options())
                self._clients[url] = client
                logger.info(f"Created MongoDB client for {sanitize_url(url)}")
        return client

    def get_database(self, url: str) -> Database:
        database_name = (
            self._parse(url).get("database")
            or self._default_database
            or get_settings().mongodb_database
        )
        if not database_name:
            raise ConfigurationError(
                f"No database named in {sanitize_url(url)} and MONGODB_DATABASE is unset"
            )
        return self.get_client(url)[database_name]

    def get_collection(self, url: str, name: str) -> Collection:
        return self.get_database(url)[name]

    def ping(self, url: str) -> bool:
        """Check if the endpoint answers a ping."""
        try:
            with translate_errors(url):
                self.get_client(url).admin.command("ping")
            return True
        except StoreConnectionError:
            return False

    def close(self) -> None:
        """Close every client this provider created."""
        with self._lock:
            clients, self._clients = self._clients, {}
        for url, client in clients.items():
            client.close()
            logger.info(f"Closed MongoDB client for {sanitize_url(url)}")


# Global provider instance
_provider: Optional[CollectionProvider] = None


def get_provider() -> CollectionProvider:
    """Get the process-wide provider, creating the default one on first use."""
    global _provider
    if _provider is None:
        _provider = MongoCollectionProvider()
    return _provider


def set_provider(provider: Optional[CollectionProvider]) -> Optional[CollectionProvider]:
    """Replace the process-wide provider and return the previous one."""
    global _provider
    previous, _provider = _provider, provider
    return previous


def sanitize_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url:
        return url

    try:
        # Handle mongodb+srv:// or mongodb://
        if "://" in url:
            protocol, rest = url.split("://", 1)
            if "@" in rest:
                credentials, host = rest.split("@", 1)
                if ":" in credentials:
                    username = credentials.split(":", 1)[0]
                    return f"{protocol}://{username}:***@{host}"
        return url
    except ValueError:
        return url
