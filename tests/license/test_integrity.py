"""Tests for package integrity verification."""

from __future__ import annotations

import json

import pytest

from esmc.config.settings import reset_settings
from esmc.license import integrity
from esmc.utils.hashing import sha256_hex


def _build_package(root, files, *, signature=None):
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    manifest = {
        "buildVersion": "3.13.0",
        "buildDate": "2025-11-05",
        "architecture": "chaos",
        "totalFiles": len(files),
        "checksums": {name: sha256_hex(content) for name, content in files.items()},
    }
    manifest_path = root / integrity.MANIFEST_RELATIVE_PATH
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    manifest_path.write_text(json.dumps(manifest), encoding="utf-8")
    (root / integrity.SIGNATURE_FILENAME).write_text(
        json.dumps({"signature": signature or integrity.sign_manifest(manifest)}),
        encoding="utf-8",
    )
    return manifest


@pytest.fixture
def package(tmp_path):
    root = tmp_path / "dist"
    root.mkdir()
    _build_package(root, {"index.js": "main", "lib/util.js": "util"})
    return root


def test_intact_package_verifies(package):
    report = integrity.verify_package(package)
    assert report.valid
    assert report.signature_valid
    assert report.verified == 2
    assert report.build_version == "3.13.0"


def test_modified_and_missing_files(package):
    (package / "index.js").write_text("patched", encoding="utf-8")
    (package / "lib" / "util.js").unlink()
    report = integrity.verify_package(package)
    assert not report.valid
    assert report.modified == ["index.js"]
    assert report.missing == ["lib/util.js"]


def test_signature_mismatch(tmp_path):
    _build_package(tmp_path, {"a.js": "a"}, signature="0" * 64)
    report = integrity.verify_package(tmp_path)
    assert not report.valid
    assert not report.signature_valid
    assert report.reason == "Signature mismatch"


def test_tampered_manifest_breaks_signature(package):
    manifest_path = package / integrity.MANIFEST_RELATIVE_PATH
    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    manifest["checksums"]["index.js"] = sha256_hex("patched")
    manifest_path.write_text(json.dumps(manifest), encoding="utf-8")
    (package / "index.js").write_text("patched", encoding="utf-8")
    assert integrity.verify_package(package).reason == "Signature mismatch"


def test_missing_manifest(tmp_path):
    report = integrity.verify_package(tmp_path)
    assert not report.valid
    assert report.reason == "Integrity manifest not found"


def test_signature_key_override(monkeypatch, tmp_path):
    manifest = _build_package(tmp_path, {"a.js": "a"})
    monkeypatch.setenv("ESMC_PACKAGE_SIGNATURE_KEY", "rotated-secret")
    reset_settings()
    assert integrity.sign_manifest(manifest) != json.loads(
        (tmp_path / integrity.SIGNATURE_FILENAME).read_text(encoding="utf-8")
    )["signature"]
    assert not integrity.verify_package(tmp_path).valid


def test_canonical_manifest_is_compact_and_ordered():
    assert integrity.canonical_manifest({"b": 1, "a": [1, 2]}) == b'{"b":1,"a":[1,2]}'


def test_verify_integrity_samples(tmp_path):
    components = tmp_path / integrity.COMPONENTS_RELATIVE_PATH
    components.mkdir(parents=True)
    (components / "x.js").write_text("x", encoding="utf-8")

    ok = integrity.verify_integrity_samples([{"file": "x.js", "hash": sha256_hex("x")}], [tmp_path])
    assert ok.success and ok.verified == 1 and ok.total == 1

    bad = integrity.verify_integrity_samples(
        [{"file": "x.js", "hash": "0" * 64}, {"file": "gone.js", "hash": "0" * 64}],
        [tmp_path],
    )
    assert not bad.success
    assert bad.failed == ["x.js", "gone.js"]

    broken = integrity.verify_integrity_samples([{"file": "x.js"}], [tmp_path])
    assert not broken.success
    assert broken.failed == ["ERROR"]


def test_revoke_license(tmp_path):
    assert integrity.revoke_license([tmp_path]) is False
    license_path = tmp_path / ".claude" / ".esmc-license.json"
    license_path.parent.mkdir()
    license_path.write_text("{}", encoding="utf-8")
    assert integrity.revoke_license([tmp_path / "elsewhere", tmp_path]) is True
    assert not license_path.exists()
