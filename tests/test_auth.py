"""
Tests for token lookup and the login polling manager.
"""

import asyncio

import pytest

from zephyr_agent.auth import (
    SECRET_TOKEN_ENV,
    USER_TOKEN_ENV,
    PollingManager,
    PollingTimeout,
    check_auth,
    get_token,
    has_secret_token,
)
from zephyr_agent.faults import ZeErrors, ZephyrError


# ============================================================================
# Token lookup
# ============================================================================

class TestTokens:

    def test_secret_token_wins(self, tmp_path):
        env = {SECRET_TOKEN_ENV: "secret", USER_TOKEN_ENV: "user"}
        assert get_token(env, tmp_path / "token") == "secret"
        assert has_secret_token(env) is True

    def test_user_token(self, tmp_path):
        assert get_token({USER_TOKEN_ENV: " user \n"}, tmp_path / "token") == "user"
        assert has_secret_token({SECRET_TOKEN_ENV: "  "}) is False

    def test_token_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("from-login\n", encoding="utf-8")
        assert get_token({}, token_file) == "from-login"

    def test_empty_token_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("   ", encoding="utf-8")
        assert get_token({}, token_file) is None

    def test_no_token(self, tmp_path):
        assert get_token({}, tmp_path / "missing") is None

    def test_check_auth(self, tmp_path):
        assert check_auth({USER_TOKEN_ENV: "user"}, tmp_path / "missing") == "user"

    def test_check_auth_missing(self, tmp_path):
        with pytest.raises(ZephyrError) as exc:
            check_auth({}, tmp_path / "missing")
        assert exc.value.type is ZeErrors.ERR_AUTH_ERROR
        assert USER_TOKEN_ENV in exc.value.message


# ============================================================================
# Polling
# ============================================================================

class TestPollingManager:

    @pytest.mark.asyncio
    async def test_returns_first_result(self):
        attempts = []

        async def poll():
            attempts.append(1)
            return "token" if len(attempts) == 3 else None

        polling = PollingManager()
        polling.start(poll, interval=0)
        assert await polling.wait() == "token"
        assert len(attempts) == 3
        assert polling.is_in_progress() is False

    @pytest.mark.asyncio
    async def test_errors_keep_polling(self):
        attempts = []

        async def poll():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("offline")
            return "token"

        polling = PollingManager()
        polling.start(poll, interval=0)
        assert await polling.wait() == "token"

    @pytest.mark.asyncio
    async def test_timeout(self):
        now = [0.0]

        def clock():
            return now[0]

        async def poll():
            now[0] += 1.0
            return None

        polling = PollingManager(clock=clock)
        polling.start(poll, interval=0, timeout=3)
        with pytest.raises(PollingTimeout):
            await polling.wait()

    @pytest.mark.asyncio
    async def test_single_loop(self):
        release = asyncio.Event()

        async def poll():
            await release.wait()
            return "first"

        async def other():
            return "second"

        polling = PollingManager()
        task = polling.start(poll, interval=0)
        assert polling.start(other) is task
        assert polling.is_in_progress() is True
        release.set()
        assert await polling.wait() == "first"

    @pytest.mark.asyncio
    async def test_stop(self):
        async def poll():
            return None

        polling = PollingManager()
        task = polling.start(poll, interval=10)
        await asyncio.sleep(0)
        polling.stop()
        assert polling.is_in_progress() is False
        with pytest.raises(asyncio.CancelledError):
            await task
        with pytest.raises(RuntimeError):
            await polling.wait()
