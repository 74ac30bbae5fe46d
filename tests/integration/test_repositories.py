"""
Integration tests against a live MongoDB server.

Run with a server available:

    MONGODB_URL=mongodb://localhost:27017/mongorepo_integration pytest -m integration
"""

import os

import pytest

from mongorepo import DuplicateKeyError, F, Repository, RepositoryManager
from mongorepo.config import ClientConfig
from mongorepo.connection import MongoCollectionProvider
from tests.entities import ClassA, ClassB, ClassC, Customer, IntCustomer

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("MONGODB_URL"), reason="MONGODB_URL not set"),
]


@pytest.fixture
def live_provider():
    provider = MongoCollectionProvider(
        client_config=ClientConfig(server_selection_timeout_ms=2000),
        default_database="mongorepo_integration",
    )
    if not provider.ping(os.environ["MONGODB_URL"]):
        provider.close()
        pytest.skip("MongoDB server is not reachable")
    yield provider
    provider.close()


@pytest.fixture
def managers(live_provider):
    created = []

    def factory(entity_type, **kwargs):
        manager = RepositoryManager(entity_type, provider=live_provider, **kwargs)
        manager.drop()
        created.append(manager)
        return manager

    yield factory
    for manager in created:
        manager.drop()


def test_customer_lifecycle(live_provider, managers) -> None:
    manager = managers(Customer)
    repo = Repository(Customer, provider=live_provider)

    customer = repo.add(Customer(first_name="Bob", last_name="Dillon"))
    assert manager.exists()
    assert repo.get_by_id(customer.id) == customer

    customer.last_name = "Nadal"
    repo.update(customer)
    assert repo.get_by_id(customer.id).last_name == "Nadal"

    assert repo.delete(customer) == 1
    assert repo.count() == 0
    assert manager.stats()["count"] == 0


def test_polymorphic_collection(live_provider, managers) -> None:
    managers(ClassA)
    repo = Repository(ClassA, provider=live_provider)

    repo.add([ClassA(prop1="a"), ClassB(prop2="b"), ClassC(prop3="c")])

    assert repo.count() == 3
    assert [type(e) for e in repo.of_type(ClassC)] == [ClassC]
    assert Repository(ClassB, provider=live_provider).of_type(ClassB).count() == 1


def test_duplicate_ids_and_indexes(live_provider, managers) -> None:
    manager = managers(IntCustomer)
    repo = Repository(IntCustomer, provider=live_provider)

    repo.add(IntCustomer(id=1, name="One"))
    with pytest.raises(DuplicateKeyError):
        repo.add(IntCustomer(id=1, name="Again"))

    manager.ensure_index("name", unique=True)
    assert manager.index_exists("name")
    assert repo.where(F.name == "One").single().id == 1
    assert manager.total_data_size() > 0
    assert not manager.is_capped()
