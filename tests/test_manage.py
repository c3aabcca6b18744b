#!/usr/bin/env python3
"""End-to-end tests for the management CLI against file storage."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from gatehouse import manage


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "storage": {"backend": "file", "path": str(tmp_path / "data")},
                "notifier": {"type": "memory"},
                "events": {"path": str(tmp_path / "events.jsonl")},
            }
        )
    )
    return path


def _run(config_path, *argv):
    return manage.main(["--config", str(config_path), *argv])


def _stored_code(tmp_path, table, email):
    codes = json.loads((tmp_path / "data" / f"{table}.json").read_text())
    return codes[email]["code"]


def _signup(config_path):
    return _run(
        config_path, "signup",
        "--email", "a@x.com", "--username", "alice", "--name", "Alice",
        "--password", "pw123456",
    )


def test_no_command_prints_help(capsys):
    assert manage.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_full_account_lifecycle(tmp_path, config_path, capsys):
    assert _signup(config_path) == 0
    out = capsys.readouterr().out
    assert "Account created" in out
    assert "The code is" not in out

    assert _run(config_path, "login", "--email", "a@x.com", "--password", "pw123456") == 1
    assert "verify your email" in capsys.readouterr().err

    code = _stored_code(tmp_path, "verification_codes", "a@x.com")
    assert _run(config_path, "verify-email", "--email", "a@x.com", "--code", code) == 0

    assert _run(config_path, "login", "--email", "a@x.com", "--password", "pw123456") == 0
    assert "Welcome back, Alice!" in capsys.readouterr().out

    # the session is persisted, so a fresh invocation still sees it
    assert _run(config_path, "whoami") == 0
    out = capsys.readouterr().out
    assert "alice" in out
    assert "pw123456" not in out

    assert _run(config_path, "update-profile", "--username", "alicia", "--occupation", "Chef") == 0
    assert _run(config_path, "list-users") == 0
    assert "alicia" in capsys.readouterr().out

    assert _run(config_path, "logout") == 0
    assert _run(config_path, "whoami") == 1
    assert "Not logged in" in capsys.readouterr().out


def test_password_reset(tmp_path, config_path, capsys):
    _signup(config_path)
    assert _run(config_path, "request-reset", "--email", "a@x.com") == 0

    code = _stored_code(tmp_path, "reset_codes", "a@x.com")
    assert _run(
        config_path, "reset-password", "--email", "a@x.com", "--code", code, "--password", "newpw1"
    ) == 0
    assert "Password reset" in capsys.readouterr().out

    users = json.loads((tmp_path / "data" / "users.json").read_text())
    assert [u["password"] for u in users.values()] == ["newpw1"]


def test_delete_account(tmp_path, config_path):
    _signup(config_path)
    code = _stored_code(tmp_path, "verification_codes", "a@x.com")
    _run(config_path, "verify-email", "--email", "a@x.com", "--code", code)
    _run(config_path, "login", "--email", "a@x.com", "--password", "pw123456")

    assert _run(config_path, "delete-account", "--yes") == 0
    assert json.loads((tmp_path / "data" / "users.json").read_text()) == {}
    assert not (tmp_path / "data" / "current_user.json").exists()


def test_fallback_code_printed_when_delivery_fails(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "storage": {"backend": "file", "path": str(tmp_path / "data")},
                "notifier": {"type": "emailjs"},
                "events": {"path": None},
            }
        )
    )
    assert _signup(path) == 0

    code = _stored_code(tmp_path, "verification_codes", "a@x.com")
    assert f"The code is: {code}" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv, message",
    [
        (["send-code", "--email", "not-an-email"], "valid email"),
        (["verify-email", "--email", "a@x.com", "--code", "12ab56"], "6 digits"),
        (["login", "--email", "a@x.com", "--password", "123"], "at least 6"),
        (["send-code", "--email", "nobody@x.com"], "Email not registered"),
        (["delete-account", "--yes"], "Not authenticated"),
        (["update-profile"], "Nothing to update"),
    ],
)
def test_rejected_input(config_path, capsys, argv, message):
    assert _run(config_path, *argv) == 1
    assert message in capsys.readouterr().err


def test_resend_without_session(config_path, capsys):
    assert _run(config_path, "resend-code") == 1
    assert "Not logged in" in capsys.readouterr().out
