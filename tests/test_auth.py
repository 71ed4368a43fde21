"""Tests for authentication helpers."""

import pytest

import gmail_gatekeeper.constants as constants
from gmail_gatekeeper.auth import check_auth, get_gmail_service


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(constants, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(constants, "CREDENTIALS_PATH", tmp_path / "credentials.json")
    monkeypatch.setattr(constants, "TOKEN_PATH", tmp_path / "token.json")
    return tmp_path


def test_missing_credentials(config_dir):
    with pytest.raises(FileNotFoundError, match="Credentials file not found"):
        get_gmail_service()


def test_non_interactive_without_token(config_dir):
    (config_dir / "credentials.json").write_text("{}")
    with pytest.raises(PermissionError, match="gatekeeper auth"):
        get_gmail_service(interactive=False)


def test_check_auth_reports_reason(config_dir):
    email, reason = check_auth()
    assert email is None
    assert "Credentials file not found" in reason
