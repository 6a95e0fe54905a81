from datetime import date

import pytest

from dimversion import DimensionVersionManager, Dimensions, make_engine
from dimversion.events import clear_handlers
from dimversion.persistence.store import init_store


@pytest.fixture(autouse=True)
def _isolated_runtime():
    clear_handlers()
    Dimensions.reset()
    yield
    clear_handlers()
    Dimensions.reset()


@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return init_store(engine)


@pytest.fixture
def make_manager(store):
    def factory(dimension="customer", **options):
        return DimensionVersionManager(store, dimension, **options)

    return factory


@pytest.fixture
def customers(make_manager):
    return make_manager("customer")


@pytest.fixture
def jane(customers):
    """Customer 101 registered 2024-01-01 with a medium income."""
    customers.record_new_version(101, {"income": "Medium"}, date(2024, 1, 1))
    return customers


@pytest.fixture
def file_store(tmp_path):
    """A store on a SQLite file, so every thread gets a real connection of its own."""
    eng = make_engine(f"sqlite:///{tmp_path / 'dw.db'}")
    yield init_store(eng)
    eng.dispose()
