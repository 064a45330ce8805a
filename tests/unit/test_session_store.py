"""Unit tests for SessionStore user resolution."""

import httpx
import pytest

from linkflow.core.exceptions import (
    NoActiveUserError,
    UserResolutionError,
    ValidationError,
)
from linkflow.domain.schemas import User
from linkflow.infrastructure.backend_client import BackendClient
from linkflow.services.linking import SessionStore


@pytest.fixture
def store(backend, state):
    return SessionStore(backend, state)


class TestResolveNumericInput:
    @pytest.mark.asyncio
    async def test_existing_id_loads_user_without_creating(self, store, backend):
        user = await store.resolve_user("7")

        assert user == User(id=7, username="alice")
        assert store.active_user == user
        assert backend.calls_to("get_user") == [(7,)]
        assert backend.calls_to("create_user") == []

    @pytest.mark.asyncio
    async def test_existing_id_twice_does_not_duplicate_known_user(self, store, backend):
        await store.resolve_user("7")
        await store.resolve_user(" 7 ")

        assert [u.id for u in store.users] == [7]
        assert backend.calls_to("create_user") == []

    @pytest.mark.asyncio
    async def test_unknown_id_creates_user_with_literal_username(self, store, backend):
        user = await store.resolve_user("42")

        assert user.username == "42"
        assert user.id != 42
        assert store.active_user == user
        assert backend.calls_to("create_user") == [("42",)]

    @pytest.mark.asyncio
    async def test_lookup_failure_other_than_not_found_does_not_create(self, store, backend, state):
        backend.fail_on("get_user", "connection refused", status_code=503)

        with pytest.raises(UserResolutionError) as exc_info:
            await store.resolve_user("7")

        assert "connection refused" in exc_info.value.message
        assert backend.calls_to("create_user") == []
        assert store.active_user is None
        assert state.current.error_message == exc_info.value.message


class TestResolveNameInput:
    @pytest.mark.asyncio
    async def test_name_always_creates_new_user(self, store, backend):
        first = await store.resolve_user("bob")
        second = await store.resolve_user("bob")

        assert first.id != second.id
        assert [u.username for u in store.users] == ["bob", "bob"]
        assert store.active_user == second
        assert backend.calls_to("get_user") == []

    @pytest.mark.asyncio
    async def test_mixed_input_is_not_numeric(self, store, backend):
        await store.resolve_user("42abc")

        assert backend.calls_to("get_user") == []
        assert backend.calls_to("create_user") == [("42abc",)]

    @pytest.mark.asyncio
    async def test_create_failure_raises_resolution_error(self, store, backend):
        backend.fail_on("create_user", "user not created successfully")

        with pytest.raises(UserResolutionError) as exc_info:
            await store.resolve_user("carol")

        assert exc_info.value.message == "Failed to create user: user not created successfully"
        assert exc_info.value.details["cause"] == "user not created successfully"
        assert store.users == ()

    @pytest.mark.asyncio
    async def test_not_found_then_create_failure_raises_resolution_error(self, store, backend):
        backend.fail_on("create_user")

        with pytest.raises(UserResolutionError):
            await store.resolve_user("42")

        assert backend.calls_to("get_user") == [(42,)]

    @pytest.mark.asyncio
    async def test_blank_input_is_rejected_without_network(self, store, backend):
        with pytest.raises(ValidationError):
            await store.resolve_user("   ")

        assert backend.calls == []


class TestActiveUser:
    def test_require_active_user_without_one(self, store):
        with pytest.raises(NoActiveUserError):
            store.require_active_user()

    @pytest.mark.asyncio
    async def test_select_user_switches_active(self, store):
        alice = await store.resolve_user("7")
        bob = await store.resolve_user("bob")

        assert store.select_user(alice.id) == alice
        assert store.active_user == alice
        assert [u.id for u in store.users] == [alice.id, bob.id]

    def test_select_unknown_user(self, store):
        with pytest.raises(UserResolutionError):
            store.select_user(99)

    @pytest.mark.asyncio
    async def test_loading_flag_resets_after_operation(self, store, state):
        await store.resolve_user("dave")

        assert state.current.loading is False
        assert state.current.error_message is None


class TestResolveAgainstHttpBackend:
    @pytest.mark.asyncio
    async def test_id_the_backend_cannot_address_creates_user(self, state):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, request.url.path))
            if request.method == "GET":
                return httpx.Response(400, json={"error": "invalid user id"})
            return httpx.Response(201, json={"id": 5, "username": "99999999999999999999"})

        backend = BackendClient(base_url="http://backend.test", transport=httpx.MockTransport(handler))
        store = SessionStore(backend, state)

        user = await store.resolve_user("99999999999999999999")

        assert user == User(id=5, username="99999999999999999999")
        assert requests == [
            ("GET", "/api/users/99999999999999999999"),
            ("POST", "/api/users"),
        ]
        await backend.aclose()
