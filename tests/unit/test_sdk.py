"""Tests for the SDK command surface."""

from __future__ import annotations

from unittest.mock import patch

import pytest
import requests

from esmc.auth.credentials import load_credentials, save_credentials
from esmc.core.exceptions import CommandError
from esmc.core.models import Credentials
from esmc.license.manager import read_license_file, write_license_file
from esmc.sdk import SDK


@pytest.fixture(autouse=True)
def offline():
    with patch("esmc.auth.tier_manager.requests.post", side_effect=requests.ConnectionError("offline")):
        yield


@pytest.fixture
def pro_user():
    save_credentials(Credentials(token="tok", email="ada@example.com", tier="PRO"))


def test_echo_wraps_options():
    result = SDK().echo(["a", "b"])
    assert result.status == "ok"
    assert result.data == ["a", "b"]


def test_process_and_transform():
    sdk = SDK()
    assert sdk.process(["x", "y"]) == ["x", "y"]
    assert sdk.transform(['{"a": [1, 2]}']) == {"a": [1, 2]}
    with pytest.raises(CommandError, match="Invalid JSON"):
        sdk.transform(["{nope"])
    with pytest.raises(CommandError, match="Usage"):
        sdk.transform([])


def test_hash_joins_options():
    assert SDK().hash(["abc"]) == {
        "sha256": "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    }


def test_path_helpers():
    sdk = SDK()
    assert sdk.normalize(["a/./b/../c"]) == "a/c"
    assert sdk.join(["a", "b"]) == "a/b"


def test_default_tier_is_free():
    status = SDK().tier()
    assert status.tier == "FREE"
    assert status.source == "default"


def test_access_requires_argument(pro_user):
    sdk = SDK()
    with pytest.raises(CommandError):
        sdk.access([])
    assert sdk.access(["max"]) == {"required": "MAX", "tier": "PRO", "allowed": False}
    assert sdk.access(["FREE"])["allowed"] is True


def test_features_follow_local_tier(pro_user):
    assert SDK().features()["display_name"] == "PRO"


def test_deploy_parses_wave_and_filters_by_tier():
    result = SDK().deploy(["wave=2", "alpha", "eta"])
    assert result["wave"] == 2
    assert list(result["deployed"]) == ["ALPHA"]
    assert result["deployed"]["ALPHA"].status == "deployed"
    assert result["skipped"] == ["ETA"]


def test_deploy_rejects_bad_wave():
    with pytest.raises(CommandError, match="Invalid wave"):
        SDK().deploy(["wave=two"])


def test_analyze_runs_free_components():
    result = SDK().analyze(["some", "text"])
    assert list(result) == ["PIU"]
    assert result["PIU"].confidence == 0.85


def test_validate_and_license():
    sdk = SDK()
    assert sdk.validate().valid is False
    assert sdk.license() is None
    write_license_file({"email": "ada@example.com", "userId": "u", "tier": "MAX"})
    assert sdk.validate().valid is True
    assert sdk.license().tier == "MAX"


def test_logout_clears_everything(pro_user):
    write_license_file({"email": "ada@example.com", "userId": "u", "tier": "PRO"})
    assert SDK().logout() == {"credentialsCleared": True, "licenseDeleted": True}
    assert load_credentials() is None
    assert read_license_file() is None
    assert SDK().logout() == {"credentialsCleared": False, "licenseDeleted": False}


def test_sync_license_command(pro_user):
    result = SDK().sync_license()
    assert result.success
    assert read_license_file().user_id == "MCP_ada"


def test_hardware_reports_identity():
    result = SDK().hardware()
    assert len(result["hardwareId"]) == 64
    assert result["deviceName"]
    assert result["os"]


def test_tier_status_is_resolved_once():
    sdk = SDK()
    with patch.object(sdk.tier_manager, "initialize", wraps=sdk.tier_manager.initialize) as initialize:
        first = sdk.tier()
        assert sdk.status()["tier"] is first
        sdk.features()
    assert initialize.call_count == 1
