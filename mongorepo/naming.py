"""
Entity type to collection name resolution.

Resolution rules:
1. A type whose only base is EntityIdentity uses its own marker, else its class name.
2. Any other type uses the marker declared on the type itself. Markers on
   intermediate ancestors are not consulted.
3. Without a marker, an Entity subclass maps to the ancestor that directly
   extends Entity, so sibling subtypes share one collection. Other types use
   their own class name.
4. An empty name is a ConfigurationError.

The marker is a nested ``Settings`` class with a ``name`` attribute.
"""

import logging
from dataclasses import dataclass
from typing import Any

from mongorepo.entities import Entity, EntityIdentity
from mongorepo.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ROOTS = (EntityIdentity, Entity)

_MISSING = object()


@dataclass(frozen=True)
class EntityDescriptor:
    """Static facts about one entity type, captured on first use."""

    entity_type: type
    # Most-derived first, excluding EntityIdentity and Entity
    ancestors: tuple[type, ...]
    # _MISSING when the type declares no marker of its own
    marker: Any

    @property
    def has_marker(self) -> bool:
        return self.marker is not _MISSING

    @property
    def extends_identity_only(self) -> bool:
        return self.entity_type.__bases__ == (EntityIdentity,)

    @property
    def is_entity(self) -> bool:
        return issubclass(self.entity_type, Entity)

    @property
    def collection_root(self) -> type:
        """Topmost class of the hierarchy sharing this type's documents."""
        if self.is_entity:
            for ancestor in self.ancestors:
                if Entity in ancestor.__bases__:
                    return ancestor
        return self.ancestors[-1]

    @property
    def discriminator(self) -> tuple[str, ...]:
        """Class names from the collection root down to this type."""
        root_index = self.ancestors.index(self.collection_root)
        return tuple(k.__name__ for k in reversed(self.ancestors[: root_index + 1]))


_descriptors: dict[type, EntityDescriptor] = {}


def _read_marker(entity_type: type) -> Any:
    settings = vars(entity_type).get("Settings")
    if settings is None:
        return _MISSING
    return getattr(settings, "name", _MISSING)


def describe(entity_type: type) -> EntityDescriptor:
    """Return the descriptor of an entity type, building it on first use."""
    descriptor = _descriptors.get(entity_type)
    if descriptor is not None:
        return descriptor

    if not isinstance(entity_type, type) or not issubclass(entity_type, EntityIdentity):
        raise ConfigurationError(f"{entity_type!r} is not an EntityIdentity subclass")

    ancestors = (entity_type,) + tuple(
        k
        for k in entity_type.__mro__[1:]
        if issubclass(k, EntityIdentity) and k not in _ROOTS
    )
    descriptor = EntityDescriptor(
        entity_type=entity_type,
        ancestors=ancestors,
        marker=_read_marker(entity_type),
    )
    _descriptors[entity_type] = descriptor
    return descriptor


def resolve_collection_name(entity_type: type) -> str:
    """Compute the physical collection name backing ``entity_type``."""
    descriptor = describe(entity_type)

    if descriptor.extends_identity_only or descriptor.has_marker:
        name = descriptor.marker if descriptor.has_marker else entity_type.__name__
    elif descriptor.is_entity:
        name = descriptor.collection_root.__name__
    else:
        name = entity_type.__name__

    if not isinstance(name, str) or not name:
        raise ConfigurationError(
            f"Collection name cannot be empty for entity {entity_type.__name__}"
        )

    logger.debug(f"Resolved {entity_type.__name__} -> collection '{name}'")
    return name


def bind_collection_name(entity_type: type, override: str | None = None) -> str:
    """Return the override when given, otherwise the resolved name."""
    if override is None:
        return resolve_collection_name(entity_type)

    describe(entity_type)
    if not isinstance(override, str) or not override:
        raise ConfigurationError("Collection name override cannot be empty")
    return override
