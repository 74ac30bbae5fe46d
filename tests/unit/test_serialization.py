"""
Unit Tests: Serialization

Test cases:
- Values BSON cannot encode are converted on write and restored on read
- Entities with Decimal, date, UUID, set, tuple, Enum and timedelta fields round trip
- Unconvertible values surface as DocumentEncodingError
- Discriminator lookup stays within the requested type and warns on ambiguity
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from bson import Binary, Decimal128

from mongorepo import DocumentEncodingError, Entity, F, Repository
from mongorepo.serialization import document_type, from_bson, to_bson, to_document
from tests.entities import (
    Animal,
    Customer,
    Dog,
    Lion,
    Opaque,
    Order,
    OrderItem,
    Product,
    Schedule,
    Status,
    Unstorable,
)


def make_schedule(**overrides) -> Schedule:
    values = dict(
        day=date(2024, 1, 1),
        token=UUID("12345678-1234-5678-1234-567812345678"),
        tags={"ops", "weekly"},
        window=(8, 12),
        status=Status.PUBLISHED,
        duration=timedelta(hours=2),
        budget=Decimal("1250.75"),
    )
    values.update(overrides)
    return Schedule(**values)


def test_to_bson_conversions() -> None:
    token = uuid4()
    converted = to_bson(
        {
            "price": Decimal("5.10"),
            "day": date(2024, 1, 1),
            "at": datetime(2024, 1, 1, 12, 0),
            "token": token,
            "tags": frozenset({"a"}),
            "pair": (1, 2),
            "status": Status.DRAFT,
            "span": timedelta(seconds=90),
            "nested": [{"amount": Decimal("1")}],
        }
    )

    assert converted["price"] == Decimal128("5.10")
    assert converted["day"] == datetime(2024, 1, 1)
    assert converted["at"] == datetime(2024, 1, 1, 12, 0)
    assert converted["token"] == Binary.from_uuid(token)
    assert converted["tags"] == ["a"]
    assert converted["pair"] == [1, 2]
    assert converted["status"] == "draft"
    assert converted["span"] == 90.0
    assert converted["nested"] == [{"amount": Decimal128("1")}]


def test_from_bson_restores_decimal_and_uuid() -> None:
    token = uuid4()
    restored = from_bson({"price": Decimal128("5.10"), "ids": [Binary.from_uuid(token)]})

    assert restored == {"price": Decimal("5.10"), "ids": [token]}


def test_decimal_price_round_trip(provider) -> None:
    repo = Repository(Product)
    product = repo.add(Product(name="Palmolive Shampoo", price=Decimal("5.99")))

    stored = repo.collection.find_one({})
    assert isinstance(stored["price"], Decimal128)
    assert repo.get_by_id(product.id).price == Decimal("5.99")


def test_nested_decimals_round_trip(provider) -> None:
    repo = Repository(Customer)
    customer = Customer(
        first_name="Bob",
        orders=[Order(items=[OrderItem(product=Product(name="Soap", price=Decimal("2.50")))])],
    )

    repo.add(customer)

    assert repo.get_by_id(customer.id) == customer


def test_rich_field_types_round_trip(provider) -> None:
    repo = Repository(Schedule)
    schedule = repo.add(make_schedule())

    assert repo.get_by_id(schedule.id) == schedule

    schedule.budget = Decimal("99.99")
    schedule.tags.add("urgent")
    repo.update(schedule)

    assert repo.get_by_id(schedule.id) == schedule


def test_rich_field_types_in_filters(provider) -> None:
    repo = Repository(Schedule)
    schedule = repo.add(make_schedule())
    repo.add(make_schedule(day=date(2024, 2, 1), token=uuid4(), status=Status.DRAFT))

    assert repo.where(F.day == date(2024, 1, 1)).single() == schedule
    assert repo.where(F.token == schedule.token).count() == 1
    assert repo.where(F.status == Status.PUBLISHED).count() == 1


def test_unconvertible_value_raises_encoding_error(provider) -> None:
    repo = Repository(Unstorable)

    with pytest.raises(DocumentEncodingError):
        repo.add(Unstorable(payload=Opaque()))
    assert repo.count() == 0


def test_document_layout_for_rich_types() -> None:
    document = to_document(make_schedule(id="65a000000000000000000001"))

    assert document["_t"] == ["Schedule"]
    assert document["window"] == [8, 12]
    assert sorted(document["tags"]) == ["ops", "weekly"]
    assert document["duration"] == 7200.0


def test_document_type_is_limited_to_requested_type() -> None:
    assert document_type(Animal, ["Animal", "CatLike", "Lion"]) is Lion
    assert document_type(Dog, ["Animal", "Dog"]) is Dog
    # A sibling tag never decodes into a class outside the requested type
    assert document_type(Dog, ["Animal", "CatLike", "Lion"]) is Dog


def test_ambiguous_discriminator_is_reported(caplog) -> None:
    class Vehicle(Entity):
        pass

    def make_car() -> type:
        class Car(Vehicle):
            pass

        return Car

    first, second = make_car(), make_car()

    with caplog.at_level(logging.WARNING, logger="mongorepo.serialization"):
        resolved = document_type(Vehicle, ["Vehicle", "Car"])

    assert resolved in (first, second)
    assert "ambiguous" in caplog.text
