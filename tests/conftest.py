"""Shared test fixtures.

Every test runs against a throwaway home: credentials, license directory and
working directory all live under ``tmp_path``, and the machine key is fixed so
encrypted credentials are reproducible.
"""

import base64
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from esmc.auth import jwt_validator
from esmc.config.settings import reset_settings

_ENV_VARS = [
    "ESMC_VERBOSE",
    "ESMC_DEV_MODE",
    "ESMC_ENV",
    "ENVIRONMENT",
    "ESMC_HARDWARE_ID",
    "ESMC_PACKAGE_SIGNATURE_KEY",
    "ESMC_CLI_TARGET",
    "ESMC_BRAIN_DIR",
    "ESMC_LOG_LEVEL",
    "ESMC_LOG_JSON",
]


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Dict[str, Path]:
    """Point every path setting into tmp_path and reset cached state."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    workdir = tmp_path / "project"
    workdir.mkdir()
    license_dir = workdir / ".claude"
    credentials_path = tmp_path / "home" / ".esmc" / "credentials.json"

    monkeypatch.chdir(workdir)
    monkeypatch.setenv("ESMC_CREDENTIALS_PATH", str(credentials_path))
    monkeypatch.setenv("ESMC_LICENSE_DIR", str(license_dir))
    monkeypatch.setattr("esmc.auth.credentials.get_machine_id", lambda: "test-machine-id")

    reset_settings()
    jwt_validator.clear_key_cache()
    yield {"workdir": workdir, "license_dir": license_dir, "credentials_path": credentials_path}
    reset_settings()
    jwt_validator.clear_key_cache()


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _segment(obj: Dict[str, Any]) -> str:
    return _b64url(json.dumps(obj).encode("utf-8"))


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_public_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


@pytest.fixture(scope="session")
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_public_pem(ec_private_key: ec.EllipticCurvePrivateKey) -> str:
    return ec_private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


@pytest.fixture
def make_token(rsa_private_key, ec_private_key) -> Callable[..., str]:
    """Factory for signed JWTs: make_token(payload, alg="RS256", header=None)."""

    def _make(payload: Dict[str, Any], alg: str = "RS256", header: Dict[str, Any] = None) -> str:
        head = header if header is not None else {"alg": alg, "typ": "JWT"}
        signing_input = f"{_segment(head)}.{_segment(payload)}".encode("ascii")
        if alg == "ES256":
            der = ec_private_key.sign(signing_input, ec.ECDSA(hashes.SHA256()))
            r, s = decode_dss_signature(der)
            signature = r.to_bytes(32, "big") + s.to_bytes(32, "big")
        else:
            signature = rsa_private_key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())
        return f"{signing_input.decode('ascii')}.{_b64url(signature)}"

    return _make


@pytest.fixture
def valid_claims() -> Dict[str, Any]:
    now = int(time.time())
    return {
        "sub": "user-42",
        "email": "ada@example.com",
        "name": "Ada Lovelace",
        "tier": "PRO",
        "iss": "esmc-sdk.com",
        "aud": "esmc-client",
        "iat": now,
        "exp": now + 3600,
        "hardwareId": "device-123",
    }
