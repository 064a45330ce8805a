"""Pytest configuration and fixtures."""

import pytest

from linkflow.domain.schemas import Item, User
from linkflow.domain.state import AppStateHolder
from linkflow.main import LinkApp
from tests.fixtures import FakeBackend, FakeWidget


@pytest.fixture(name="backend")
def backend_fixture():
    """Backend double that already knows user 7."""
    return FakeBackend(users=[User(id=7, username="alice")])


@pytest.fixture(name="widget")
def widget_fixture():
    return FakeWidget()


@pytest.fixture(name="state")
def state_fixture():
    return AppStateHolder()


@pytest.fixture(name="app")
def app_fixture(backend, widget, state):
    """LinkApp wired to the fakes."""
    return LinkApp(backend, widget=widget, state=state)


@pytest.fixture(name="alice")
def alice_fixture():
    return User(id=7, username="alice")


@pytest.fixture(name="chase_item")
def chase_item_fixture():
    return Item(
        id="item-7",
        institution="Chase",
        accounts=[{"id": "acc-1", "name": "Checking", "mask": "0000", "type": "depository"}],
    )
