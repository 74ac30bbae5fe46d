"""
Entity to document mapping with a stored type discriminator.

pydantic's python-mode dump keeps values BSON cannot encode. They are
converted on the way in and restored on the way out:

- Decimal <-> Decimal128
- date -> datetime at midnight (pydantic accepts it back for date fields)
- UUID <-> Binary subtype 4
- set, frozenset, tuple -> list
- Enum -> its value, timedelta -> seconds
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from bson import Binary, Decimal128
from bson.binary import UUID_SUBTYPE

from mongorepo.entities import EntityIdentity
from mongorepo.naming import describe

logger = logging.getLogger(__name__)

ID_FIELD = "_id"
DISCRIMINATOR_FIELD = "_t"


def to_bson(value: Any) -> Any:
    """Convert a dumped python value into something BSON can store."""
    if isinstance(value, dict):
        return {key: to_bson(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_bson(item) for item in value]
    if isinstance(value, Enum):
        return to_bson(value.value)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, UUID):
        return Binary.from_uuid(value)
    if isinstance(value, timedelta):
        return value.total_seconds()
    return value


def from_bson(value: Any) -> Any:
    """Undo to_bson for the types pydantic cannot validate directly."""
    if isinstance(value, dict):
        return {key: from_bson(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_bson(item) for item in value]
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Binary) and value.subtype == UUID_SUBTYPE:
        return value.as_uuid()
    return value


def store_id(entity_type: type, value: Any) -> Any:
    """Stored ``_id`` form of an identifier."""
    return to_bson(entity_type.to_store_id(value))


def to_document(entity: EntityIdentity) -> dict[str, Any]:
    """Serialize an entity, writing ``_id`` and the ``_t`` class chain first."""
    entity_type = type(entity)
    document: dict[str, Any] = {
        ID_FIELD: store_id(entity_type, entity.id),
        DISCRIMINATOR_FIELD: list(describe(entity_type).discriminator),
    }
    document.update(to_bson(entity.model_dump(exclude={"id"})))
    return document


def _iter_subclasses(root: type) -> Iterable[type]:
    pending = [root]
    while pending:
        current = pending.pop(0)
        yield current
        pending.extend(current.__subclasses__())


def classes_named(root: type, name: str) -> list[type]:
    """Every class under ``root`` (inclusive) whose ``__name__`` is ``name``."""
    found: list[type] = []
    for candidate in _iter_subclasses(root):
        if candidate.__name__ == name and candidate not in found:
            found.append(candidate)
    return found


def document_type(entity_type: type, discriminator: Any) -> type:
    """Pick the concrete class named by a stored discriminator.

    Only ``entity_type`` and its subclasses are candidates.
    """
    if not discriminator:
        return entity_type

    tag = discriminator[-1] if isinstance(discriminator, list) else discriminator
    if tag == entity_type.__name__:
        return entity_type

    candidates = classes_named(entity_type, tag)
    if not candidates:
        logger.warning(
            f"Unknown discriminator '{tag}' for {entity_type.__name__}; "
            f"decoding as {entity_type.__name__}"
        )
        return entity_type

    if len(candidates) > 1:
        modules = ", ".join(f"{c.__module__}.{c.__qualname__}" for c in candidates)
        logger.warning(f"Discriminator '{tag}' is ambiguous ({modules}); using the first")
    return candidates[0]


def from_document(document: dict[str, Any], entity_type: type) -> EntityIdentity:
    """Rebuild the concrete entity a document was written from."""
    data = from_bson(dict(document))
    raw_id = data.pop(ID_FIELD, None)
    target = document_type(entity_type, data.pop(DISCRIMINATOR_FIELD, None))
    data["id"] = target.from_store_id(raw_id)
    return target.model_validate(data)
