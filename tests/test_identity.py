"""
Tests for application identity helpers.
"""

import pytest

from zephyr_agent.faults import ZeErrors, ZephyrError
from zephyr_agent.identity import (
    application_uid,
    create_snapshot_id,
    normalize_part,
    parse_application_uid,
    snapshot_version,
)


class TestApplicationUid:

    def test_normalizes_each_part(self):
        uid = application_uid("My_Org!", "My-Project#123", "App Name@2024")
        assert uid == "app-name-2024.my-project-123.my-org-"

    def test_order_is_name_project_org(self):
        assert application_uid("acme", "web", "shell") == "shell.web.acme"

    def test_normalize_part(self):
        assert normalize_part("@scope/Pkg") == "-scope-pkg"
        assert normalize_part("ok-123") == "ok-123"


class TestParseApplicationUid:

    def test_three_parts(self):
        assert parse_application_uid("shell.web.acme") == ("shell", "web", "acme")

    def test_dots_in_name(self):
        assert parse_application_uid("my.app.web.acme") == ("my.app", "web", "acme")

    @pytest.mark.parametrize("uid", ["", "a.b", "a..c", "single"])
    def test_invalid(self, uid):
        with pytest.raises(ZephyrError) as exc:
            parse_application_uid(uid)
        assert exc.value.type is ZeErrors.ERR_INVALID_APP_ID


class TestSnapshotIdentity:

    def test_snapshot_id_is_deterministic(self):
        a = create_snapshot_id("shell.web.acme", "42", "jane")
        b = create_snapshot_id("shell.web.acme", "42", "jane")
        assert a == b == "jane_42.shell.web.acme"

    def test_version_uses_username_locally(self):
        assert snapshot_version("1.0.0", "42", username="jane", branch="main") == "1.0.0-jane.42"

    def test_version_uses_branch_on_ci(self):
        v = snapshot_version("1.0.0", "42", username="jane", branch="main", is_ci=True)
        assert v == "1.0.0-main.42"

    def test_version_on_ci_without_branch(self):
        v = snapshot_version("1.0.0", "42", username="jane", branch="", is_ci=True)
        assert v == "1.0.0-jane.42"
