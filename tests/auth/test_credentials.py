from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from esmc.auth import credentials as creds
from esmc.core.models import Credentials


def test_save_and_load_credentials(isolated_env):
    path = creds.save_credentials(
        {"token": "t", "email": "ada@example.com", "tier": "PRO", "expiresAt": "2099-01-01T00:00:00Z"}
    )
    assert path == isolated_env["credentials_path"]

    stored = json.loads(path.read_text(encoding="utf-8"))
    iv_hex, ciphertext_hex = stored["encrypted"].split(":")
    assert len(bytes.fromhex(iv_hex)) == 16
    assert "ada@example.com" not in stored["encrypted"]
    assert ciphertext_hex

    loaded = creds.load_credentials()
    assert loaded == Credentials(
        token="t", email="ada@example.com", tier="PRO", expires_at="2099-01-01T00:00:00Z"
    )


def test_load_missing_credentials_returns_none():
    assert creds.load_credentials() is None


def test_load_with_other_machine_key_returns_none(monkeypatch):
    creds.save_credentials(Credentials(email="ada@example.com"))
    monkeypatch.setattr("esmc.auth.credentials.get_machine_id", lambda: "another-machine")
    assert creds.load_credentials() is None


def test_load_tampered_credentials_returns_none(isolated_env):
    path = isolated_env["credentials_path"]
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"encrypted": "zz:not-hex"}), encoding="utf-8")
    assert creds.load_credentials() is None

    path.write_text("not json", encoding="utf-8")
    assert creds.load_credentials() is None


def test_clear_credentials(isolated_env):
    assert creds.clear_credentials() is False
    creds.save_credentials(Credentials(email="ada@example.com"))
    assert creds.clear_credentials() is True
    assert not isolated_env["credentials_path"].exists()


def test_is_expired():
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    assert creds.is_expired(None) is False
    assert creds.is_expired(Credentials(email="a@b.c")) is False
    assert creds.is_expired(Credentials(email="a@b.c", expires_at=future)) is False
    assert creds.is_expired(Credentials(email="a@b.c", expires_at=past)) is True


def test_encrypt_uses_fresh_iv():
    key = creds.get_machine_key()
    first = creds.encrypt({"a": 1}, key)
    second = creds.encrypt({"a": 1}, key)
    assert first != second
    assert creds.decrypt(first, key) == creds.decrypt(second, key) == {"a": 1}
