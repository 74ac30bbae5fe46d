"""
Predicate compiler and lazy query builder.

Predicates are written against entity fields through ``F``::

    repo.where(F.first_name == "Bob")
    repo.where(F.home_address.country == "Alaska")
    repo.where(F.last_name.endswith("C") | F.last_name.endswith("G"))

and compiled into a MongoDB filter document. A plain dict is taken as an
already-native filter. Anything else raises QueryTranslationError.

Query accumulates filter, projection, sort and paging stages and only talks
to the store when iterated or counted. Every iteration re-issues the same
find, so a Query can be iterated any number of times.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Generic, Iterator

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from mongorepo.connection import translate_errors
from mongorepo.entities import EntityIdentity, TEntity
from mongorepo.exceptions import QueryTranslationError
from mongorepo.naming import describe
from mongorepo.serialization import (
    DISCRIMINATOR_FIELD,
    ID_FIELD,
    classes_named,
    from_bson,
    from_document,
    store_id,
    to_bson,
)

logger = logging.getLogger(__name__)

_ID_OPERATORS = {"$eq", "$ne", "$lt", "$lte", "$gt", "$gte", "$in", "$nin"}


class Expression:
    """Composable predicate node."""

    def compile(self, entity_type: type) -> dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: Expression) -> Expression:
        return And(self, other)

    def __or__(self, other: Expression) -> Expression:
        return Or(self, other)

    def __invert__(self) -> Expression:
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError("Combine predicates with &, | and ~ instead of and/or/not")


class Comparison(Expression):
    def __init__(self, field: Field, operator: str, value: Any):
        self.field = field
        self.operator = operator
        self.value = value

    def compile(self, entity_type: type) -> dict[str, Any]:
        value = self.value
        if self.field.is_id and self.operator in _ID_OPERATORS:
            if self.operator in ("$in", "$nin"):
                value = [store_id(entity_type, v) for v in value]
            else:
                value = store_id(entity_type, value)
        else:
            value = to_bson(value)

        if self.operator == "$eq":
            return {self.field.path: value}
        return {self.field.path: {self.operator: value}}

    def __repr__(self) -> str:
        return f"Comparison({self.field.path!r}, {self.operator!r}, {self.value!r})"


class And(Expression):
    def __init__(self, *parts: Expression):
        self.parts = parts

    def compile(self, entity_type: type) -> dict[str, Any]:
        return {"$and": [compile_predicate(p, entity_type) for p in self.parts]}


class Or(Expression):
    def __init__(self, *parts: Expression):
        self.parts = parts

    def compile(self, entity_type: type) -> dict[str, Any]:
        return {"$or": [compile_predicate(p, entity_type) for p in self.parts]}


class Not(Expression):
    def __init__(self, inner: Expression):
        self.inner = inner

    def compile(self, entity_type: type) -> dict[str, Any]:
        return {"$nor": [compile_predicate(self.inner, entity_type)]}


class Field:
    """Reference to a (possibly nested) document field."""

    __slots__ = ("path",)

    def __init__(self, path: str):
        self.path = ID_FIELD if path == "id" else path

    @property
    def is_id(self) -> bool:
        return self.path == ID_FIELD

    def __getattr__(self, name: str) -> Field:
        if name.startswith("__"):
            raise AttributeError(name)
        return Field(f"{self.path}.{name}")

    def __eq__(self, other: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self, "$eq", other)

    def __ne__(self, other: Any) -> Comparison:  # type: ignore[override]
        return Comparison(self, "$ne", other)

    def __lt__(self, other: Any) -> Comparison:
        return Comparison(self, "$lt", other)

    def __le__(self, other: Any) -> Comparison:
        return Comparison(self, "$lte", other)

    def __gt__(self, other: Any) -> Comparison:
        return Comparison(self, "$gt", other)

    def __ge__(self, other: Any) -> Comparison:
        return Comparison(self, "$gte", other)

    __hash__ = None  # type: ignore[assignment]

    def is_in(self, values: Any) -> Comparison:
        return Comparison(self, "$in", list(values))

    def not_in(self, values: Any) -> Comparison:
        return Comparison(self, "$nin", list(values))

    def exists(self, present: bool = True) -> Comparison:
        return Comparison(self, "$exists", present)

    def startswith(self, prefix: str) -> Comparison:
        return Comparison(self, "$regex", f"^{re.escape(prefix)}")

    def endswith(self, suffix: str) -> Comparison:
        return Comparison(self, "$regex", f"{re.escape(suffix)}$")

    def contains(self, text: str) -> Comparison:
        return Comparison(self, "$regex", re.escape(text))

    def matches(self, pattern: str) -> Comparison:
        try:
            re.compile(pattern)
        except (re.error, TypeError) as e:
            raise QueryTranslationError(f"Invalid pattern for {self.path!r}: {e}") from e
        return Comparison(self, "$regex", pattern)

    def __repr__(self) -> str:
        return f"Field({self.path!r})"


class _FieldProxy:
    def __getattr__(self, name: str) -> Field:
        if name.startswith("__"):
            raise AttributeError(name)
        return Field(name)

    def __getitem__(self, path: str) -> Field:
        return Field(path)


F = _FieldProxy()


def compile_predicate(predicate: Any, entity_type: type) -> dict[str, Any]:
    """Translate a predicate into a MongoDB filter document."""
    if predicate is None:
        return {}
    if isinstance(predicate, Expression):
        return predicate.compile(entity_type)
    if isinstance(predicate, dict):
        return predicate
    if isinstance(predicate, Field):
        raise QueryTranslationError(
            f"Field {predicate.path!r} is not a predicate; compare it to a value"
        )
    raise QueryTranslationError(
        f"Cannot translate predicate of type {type(predicate).__name__}; "
        "use F expressions or a filter dict"
    )


def _field_path(field: str | Field) -> str:
    if isinstance(field, Field):
        return field.path
    return Field(field).path


class Query(Generic[TEntity]):
    """Immutable, lazily executed find request."""

    def __init__(
        self,
        collection: Collection,
        entity_type: type[TEntity],
        filters: tuple[dict[str, Any], ...] = (),
        projection: dict[str, int] | None = None,
        sort: tuple[tuple[str, int], ...] = (),
        skip: int = 0,
        limit: int = 0,
    ):
        self._collection = collection
        self.entity_type = entity_type
        self._filters = filters
        self._projection = projection
        self._sort = sort
        self._skip = skip
        self._limit = limit

    def _clone(self, **changes: Any) -> Query[TEntity]:
        state = {
            "filters": self._filters,
            "projection": self._projection,
            "sort": self._sort,
            "skip": self._skip,
            "limit": self._limit,
        }
        state.update(changes)
        return Query(self._collection, self.entity_type, **state)

    @property
    def filter(self) -> dict[str, Any]:
        """The compiled filter document of all accumulated stages."""
        filters = [f for f in self._filters if f]
        if not filters:
            return {}
        if len(filters) == 1:
            return filters[0]
        return {"$and": filters}

    def where(self, predicate: Any) -> Query[TEntity]:
        compiled = compile_predicate(predicate, self.entity_type)
        return self._clone(filters=self._filters + (compiled,))

    def of_type(self, subtype: type) -> Query:
        """Restrict to documents discriminated as ``subtype`` or a subclass of it."""
        if not isinstance(subtype, type) or not issubclass(subtype, EntityIdentity):
            raise TypeError(f"{subtype!r} is not an entity type")
        same_name = classes_named(describe(subtype).collection_root, subtype.__name__)
        if len(same_name) > 1:
            logger.warning(
                f"of_type({subtype.__qualname__}) also matches documents of "
                f"{len(same_name) - 1} other class(es) named '{subtype.__name__}'"
            )
        return self._clone(
            filters=self._filters + ({DISCRIMINATOR_FIELD: subtype.__name__},)
        )

    def select(self, *fields: str | Field) -> Query[TEntity]:
        """Project onto ``fields``; iteration then yields plain dicts."""
        return self._clone(projection={_field_path(f): 1 for f in fields})

    def order_by(self, field: str | Field, descending: bool = False) -> Query[TEntity]:
        direction = DESCENDING if descending else ASCENDING
        return self._clone(sort=self._sort + ((_field_path(field), direction),))

    def skip(self, count: int) -> Query[TEntity]:
        if count < 0:
            raise ValueError("skip must be >= 0")
        return self._clone(skip=count)

    def limit(self, count: int) -> Query[TEntity]:
        if count < 0:
            raise ValueError("limit must be >= 0")
        return self._clone(limit=count)

    def _find_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self._projection is not None:
            options["projection"] = self._projection
        if self._sort:
            options["sort"] = list(self._sort)
        if self._skip:
            options["skip"] = self._skip
        if self._limit:
            options["limit"] = self._limit
        return options

    def _decode(self, document: dict[str, Any]) -> Any:
        if self._projection is None:
            return from_document(document, self.entity_type)
        row = from_bson(dict(document))
        if ID_FIELD in row:
            row["id"] = self.entity_type.from_store_id(row.pop(ID_FIELD))
        row.pop(DISCRIMINATOR_FIELD, None)
        return row

    def __iter__(self) -> Iterator[TEntity]:
        with translate_errors():
            for document in self._collection.find(self.filter, **self._find_options()):
                yield self._decode(document)

    def count(self) -> int:
        options: dict[str, Any] = {}
        if self._skip:
            options["skip"] = self._skip
        if self._limit:
            options["limit"] = self._limit
        with translate_errors():
            return self._collection.count_documents(self.filter, **options)

    def exists(self) -> bool:
        with translate_errors():
            return self._collection.find_one(self.filter, {ID_FIELD: 1}) is not None

    def first(self) -> TEntity | None:
        return next(iter(self.limit(1)), None)

    def single(self) -> TEntity:
        """Return the only match; raise ValueError for zero or several.

        An explicit limit of 1 is respected.
        """
        results = list(self.limit(min(self._limit or 2, 2)))
        if len(results) != 1:
            raise ValueError(f"Expected exactly one result, found {len(results)}")
        return results[0]

    def to_list(self) -> list[TEntity]:
        return list(self)

    def __repr__(self) -> str:
        return f"Query({self.entity_type.__name__}, filter={self.filter!r})"
