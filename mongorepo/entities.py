"""
Entity base classes.

This module provides:
- EntityIdentity: identity-only root, one ``id`` of any caller-chosen type
- Entity: abstract base whose ``id`` is the store-native ObjectId (as hex string)

Custom identifier types are declared by overriding the annotation on a direct
EntityIdentity subclass::

    class IntCustomer(EntityIdentity):
        id: int | None = None
        name: str = ""

Collection names come from the class hierarchy (see mongorepo.naming). A class
opts into an explicit collection with a nested Settings class::

    class Animal(Entity):
        class Settings:
            name = "AnimalsTest"
"""

from typing import Any, TypeVar

from bson import ObjectId
from pydantic import BaseModel


class EntityIdentity(BaseModel):
    """Identity-only root for every persisted entity."""

    id: Any = None

    @classmethod
    def generate_id(cls) -> Any:
        """Return a fresh identifier, or None when the caller must supply one."""
        return None

    @classmethod
    def to_store_id(cls, value: Any) -> Any:
        """Convert an identifier to its stored ``_id`` form."""
        return value

    @classmethod
    def from_store_id(cls, value: Any) -> Any:
        """Convert a stored ``_id`` back to the declared identifier type."""
        return value


class Entity(EntityIdentity):
    """
    Base class for entities keyed by store-native identifiers.

    Ids are generated on insert when unset, stored as ObjectId and
    exposed as their 24 character hex string.
    """

    id: str | None = None

    @classmethod
    def generate_id(cls) -> str:
        return str(ObjectId())

    @classmethod
    def to_store_id(cls, value: Any) -> Any:
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        return value

    @classmethod
    def from_store_id(cls, value: Any) -> Any:
        if isinstance(value, ObjectId):
            return str(value)
        return value


TEntity = TypeVar("TEntity", bound=EntityIdentity)
TId = TypeVar("TId")
