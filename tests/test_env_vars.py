"""
Tests for public environment variable rewriting.
"""

import hashlib
import logging

from zephyr_agent.env_vars import ENV_GLOBAL, EnvVarSession, rewrite_env_reads, ze_envs_hash


class TestRewriteEnvReads:

    def test_import_meta_env(self):
        session = EnvVarSession()
        out = rewrite_env_reads("fetch(import.meta.env.ZE_PUBLIC_API_URL)", session)
        assert out == f'fetch({ENV_GLOBAL}["ZE_PUBLIC_API_URL"])'
        assert session.names == {"ZE_PUBLIC_API_URL"}

    def test_process_env(self):
        session = EnvVarSession()
        out = rewrite_env_reads("const k = process.env.ZE_PUBLIC_KEY;", session)
        assert out == f'const k = {ENV_GLOBAL}["ZE_PUBLIC_KEY"];'

    def test_quoted_forms(self):
        session = EnvVarSession()
        code = "a(process.env['ZE_PUBLIC_A']); b(import.meta.env[\"ZE_PUBLIC_B\"])"
        out = rewrite_env_reads(code, session)
        assert out == f'a({ENV_GLOBAL}["ZE_PUBLIC_A"]); b({ENV_GLOBAL}["ZE_PUBLIC_B"])'
        assert session.names == {"ZE_PUBLIC_A", "ZE_PUBLIC_B"}

    def test_other_vars_untouched(self):
        session = EnvVarSession()
        code = "process.env.NODE_ENV; import.meta.env.MODE"
        assert rewrite_env_reads(code, session) == code
        assert len(session) == 0

    def test_names_accumulate_across_chunks(self):
        session = EnvVarSession()
        rewrite_env_reads("process.env.ZE_PUBLIC_A", session)
        rewrite_env_reads("process.env.ZE_PUBLIC_B; process.env.ZE_PUBLIC_A", session)
        assert session.names == {"ZE_PUBLIC_A", "ZE_PUBLIC_B"}


class TestEnvVarSession:

    def test_add_ignores_other_prefixes(self):
        session = EnvVarSession()
        session.update(["ZE_PUBLIC_A", "SECRET"])
        assert session.names == {"ZE_PUBLIC_A"}

    def test_collect(self):
        session = EnvVarSession()
        session.add("ZE_PUBLIC_A")
        env = {"ZE_PUBLIC_B": "2", "ZE_PUBLIC_A": "1", "HOME": "/root"}
        assert list(session.collect(env).items()) == [("ZE_PUBLIC_A", "1"), ("ZE_PUBLIC_B", "2")]

    def test_collect_warns_on_missing(self, caplog):
        session = EnvVarSession()
        session.add("ZE_PUBLIC_MISSING")
        with caplog.at_level(logging.WARNING, logger="zephyr_agent.env"):
            assert session.collect({}) == {}
        assert "ZE_PUBLIC_MISSING" in caplog.text

    def test_custom_prefix(self):
        session = EnvVarSession(prefix="APP_")
        session.add("APP_X")
        assert session.collect({"APP_X": "1", "ZE_PUBLIC_Y": "2"}) == {"APP_X": "1"}


class TestEnvsHash:

    def test_none_when_empty(self):
        assert ze_envs_hash("shell.web.acme", {}) is None

    def test_canonical_form(self):
        expected = hashlib.sha256(b"shell.web.acme\nZE_PUBLIC_A=1\nZE_PUBLIC_B=2").hexdigest()
        assert ze_envs_hash("shell.web.acme", {"ZE_PUBLIC_B": "2", "ZE_PUBLIC_A": "1"}) == expected

    def test_depends_on_application(self):
        envs = {"ZE_PUBLIC_A": "1"}
        assert ze_envs_hash("a.b.c", envs) != ze_envs_hash("d.e.f", envs)
