"""
Unit tests for SessionContext and LocalStateStore.
"""

import asyncio
import pytest
from pathlib import Path
from unittest.mock import MagicMock

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.auth.session import LocalStateStore, SessionContext
from timetrack.core.models import UserAccount
from timetrack.utils.errors import ErrorCodes, IdentityError


ANN = UserAccount(uid="u1", email="ann@example.com", display_name="Ann")


@pytest.fixture
def identity():
    provider = MagicMock()
    provider.verify_id_token.return_value = {"sub": "u1"}
    provider.get_user.return_value = ANN
    provider.sign_in.return_value = ANN
    provider.issue_id_token.return_value = "new-token"
    return provider


@pytest.fixture
def state_store(tmp_path):
    return LocalStateStore(tmp_path / "state" / "local_state.json")


class TestLocalStateStore:

    def test_missing_file_is_empty(self, state_store):
        assert state_store.get_user_id() is None
        assert state_store.get("anything", "default") == "default"

    def test_set_and_remove_user_id(self, state_store):
        state_store.set_user_id("u1")
        assert state_store.get_user_id() == "u1"
        assert state_store.path.exists()

        state_store.set_user_id(None)
        assert state_store.get_user_id() is None

    def test_unreadable_file_ignored(self, state_store):
        state_store.path.parent.mkdir(parents=True)
        state_store.path.write_text("{not json")

        assert state_store.get_user_id() is None
        state_store.set("theme", "dark")
        assert state_store.get("theme") == "dark"


class TestInitialize:

    @pytest.mark.asyncio
    async def test_resolves_user_from_token(self, identity, state_store):
        session = SessionContext(identity, state_store, token="cookie")

        user = await session.initialize()

        assert user is ANN
        assert session.initialized
        assert session.is_authenticated()
        assert state_store.get_user_id() == "u1"
        identity.verify_id_token.assert_called_once_with("cookie")

    @pytest.mark.asyncio
    async def test_no_token_means_no_user(self, identity):
        session = SessionContext(identity)

        assert await session.initialize() is None
        assert not session.is_authenticated()
        identity.verify_id_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_token_cleared(self, identity, state_store):
        identity.verify_id_token.side_effect = IdentityError(ErrorCodes.AUTH_INVALID_TOKEN)
        state_store.set_user_id("stale")
        session = SessionContext(identity, state_store, token="expired")

        assert await session.initialize() is None
        assert session.token is None
        assert state_store.get_user_id() is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_resolution(self, identity):
        session = SessionContext(identity, token="cookie")

        results = await asyncio.gather(session.initialize(), session.initialize(), session.initialize())

        assert results == [ANN, ANN, ANN]
        identity.verify_id_token.assert_called_once()

    @pytest.mark.asyncio
    async def test_memoized_after_completion(self, identity):
        session = SessionContext(identity, token="cookie")

        await session.initialize()
        await session.initialize()

        identity.verify_id_token.assert_called_once()

    @pytest.mark.asyncio
    async def test_failure_not_cached(self, identity):
        identity.get_user.side_effect = [RuntimeError("db offline"), ANN]
        session = SessionContext(identity, token="cookie")

        with pytest.raises(RuntimeError):
            await session.initialize()
        assert not session.initialized

        assert await session.initialize() is ANN


class TestState:

    def test_current_user_id_falls_back_to_last_known(self, identity, state_store):
        state_store.set_user_id("u-last")
        session = SessionContext(identity, state_store)

        assert session.current_user_id() == "u-last"

    @pytest.mark.asyncio
    async def test_no_fallback_after_initialization(self, identity, state_store):
        state_store.set_user_id("u-last")
        session = SessionContext(identity, state_store)

        await session.initialize()

        assert session.current_user_id() is None

    @pytest.mark.parametrize("user,expected", [
        (None, "User"),
        (UserAccount(uid="u1", email="ann@example.com", display_name="Ann"), "Ann"),
        (UserAccount(uid="u1", email="bob@example.com"), "bob"),
        (UserAccount(uid="u1"), "User"),
    ])
    def test_display_name(self, identity, user, expected):
        session = SessionContext(identity)
        session._set_user(user)

        assert session.display_name() == expected


class TestSignInOut:

    @pytest.mark.asyncio
    async def test_sign_in_issues_token_and_notifies(self, identity, state_store):
        session = SessionContext(identity, state_store)
        seen = []
        session.on_auth_change(seen.append)

        user = await session.sign_in("ann@example.com", "secret1")

        assert user is ANN
        assert session.token == "new-token"
        assert session.current_user_id() == "u1"
        assert seen == [ANN]

    @pytest.mark.asyncio
    async def test_sign_in_failure_propagates(self, identity):
        identity.sign_in.side_effect = IdentityError(ErrorCodes.AUTH_WRONG_PASSWORD)
        session = SessionContext(identity)

        with pytest.raises(IdentityError):
            await session.sign_in("ann@example.com", "nope")

        assert not session.is_authenticated()

    @pytest.mark.asyncio
    async def test_sign_out(self, identity, state_store):
        session = SessionContext(identity, state_store, token="cookie")
        await session.initialize()
        seen = []
        session.on_auth_change(seen.append)

        await session.sign_out()

        assert seen == [ANN, None]
        assert session.token is None
        assert state_store.get_user_id() is None


class TestAuthListeners:

    @pytest.mark.asyncio
    async def test_listener_fires_on_initialize(self, identity):
        session = SessionContext(identity, token="cookie")
        seen = []
        session.on_auth_change(seen.append)
        assert seen == []

        await session.initialize()

        assert seen == [ANN]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, identity):
        session = SessionContext(identity)
        seen = []
        subscription = session.on_auth_change(seen.append)

        subscription.unsubscribe()
        await session.initialize()

        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self, identity):
        session = SessionContext(identity, token="cookie")
        seen = []
        session.on_auth_change(MagicMock(side_effect=RuntimeError("bug")))
        session.on_auth_change(seen.append)

        await session.initialize()

        assert seen == [ANN]
