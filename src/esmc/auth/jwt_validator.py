"""JWT signature validation for tokens issued by the ESMC auth server.

Only asymmetric algorithms (RS256, ES256) are accepted, which rules out
``alg: none`` and HMAC tokens signed with a guessed secret. The signing key is
fetched from the server's JWKS endpoint and cached for an hour.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from ..config.constants import (
    JWKS_CACHE_TTL_SECONDS,
    JWKS_MAX_REDIRECTS,
    JWKS_TIMEOUT_SECONDS,
    JWT_ALGORITHMS,
    JWT_AUDIENCE,
    JWT_ISSUER,
)
from ..config.settings import get_settings
from ..core.exceptions import JWKSFetchError, TokenValidationError
from ..core.models import UserInfo

logger = logging.getLogger("esmc.auth.jwt")

_key_cache: Dict[str, Any] = {"pem": None, "expires_at": 0.0}


def b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def clear_key_cache() -> None:
    _key_cache["pem"] = None
    _key_cache["expires_at"] = 0.0


def jwk_to_pem(jwk: Dict[str, Any]) -> str:
    """Convert an RSA JWK (``n``/``e``) to a PEM SubjectPublicKeyInfo."""
    if not jwk.get("n") or not jwk.get("e"):
        raise JWKSFetchError("Invalid JWK: missing n or e")
    modulus = int.from_bytes(b64url_decode(jwk["n"]), "big")
    exponent = int.from_bytes(b64url_decode(jwk["e"]), "big")
    public_key = rsa.RSAPublicNumbers(exponent, modulus).public_key()
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


def fetch_public_key(*, jwks_url: Optional[str] = None) -> str:
    """Return the server signing key as PEM, using the cache while it is fresh."""
    now = time.monotonic()
    if _key_cache["pem"] and now < _key_cache["expires_at"]:
        return _key_cache["pem"]

    url = jwks_url or get_settings().jwks_url
    session = requests.Session()
    session.max_redirects = JWKS_MAX_REDIRECTS
    try:
        response = session.get(url, timeout=JWKS_TIMEOUT_SECONDS)
    except requests.Timeout as exc:
        raise JWKSFetchError(f"JWKS fetch timeout after {JWKS_TIMEOUT_SECONDS} seconds") from exc
    except requests.TooManyRedirects as exc:
        raise JWKSFetchError("Too many redirects") from exc
    except requests.RequestException as exc:
        raise JWKSFetchError(f"Failed to fetch JWKS: {exc}") from exc
    finally:
        session.close()

    if response.status_code != 200:
        raise JWKSFetchError(f"Failed to parse JWKS: endpoint returned {response.status_code}")
    try:
        jwks = response.json()
    except ValueError as exc:
        raise JWKSFetchError(f"Failed to parse JWKS: {exc}") from exc

    keys = jwks.get("keys") or []
    if not keys:
        raise JWKSFetchError("Failed to parse JWKS: no keys found in response")
    key = keys[0]
    if key.get("kty") != "RSA":
        raise JWKSFetchError(f"Failed to parse JWKS: unsupported key type {key.get('kty')}")

    pem = jwk_to_pem(key)
    _key_cache["pem"] = pem
    _key_cache["expires_at"] = now + JWKS_CACHE_TTL_SECONDS
    logger.info("Fetched JWKS signing key from %s", url)
    return pem


def _decode_segment(segment: str, label: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(b64url_decode(segment).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise TokenValidationError(f"Invalid JWT {label} encoding") from exc
    if not isinstance(decoded, dict):
        raise TokenValidationError(f"Invalid JWT {label} encoding")
    return decoded


def _verify_signature(alg: str, public_key_pem: str, signed: bytes, signature: bytes) -> None:
    try:
        key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
    except ValueError as exc:
        raise TokenValidationError(f"Signature verification failed: {exc}") from exc

    try:
        if alg == "RS256":
            if not isinstance(key, rsa.RSAPublicKey):
                raise TokenValidationError("Signature verification failed: RS256 needs an RSA key")
            key.verify(signature, signed, padding.PKCS1v15(), hashes.SHA256())
        else:
            if not isinstance(key, ec.EllipticCurvePublicKey):
                raise TokenValidationError("Signature verification failed: ES256 needs an EC key")
            if len(signature) != 64:
                raise TokenValidationError("JWT signature verification failed - token may be forged")
            r = int.from_bytes(signature[:32], "big")
            s = int.from_bytes(signature[32:], "big")
            key.verify(encode_dss_signature(r, s), signed, ec.ECDSA(hashes.SHA256()))
    except InvalidSignature as exc:
        raise TokenValidationError("JWT signature verification failed - token may be forged") from exc


def _iso(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


def verify_jwt(token: str, public_key: Optional[str] = None) -> Dict[str, Any]:
    """Verify signature and registered claims; return the payload.

    Raises:
        TokenValidationError: On any structural, signature or claim failure.
        JWKSFetchError: When no key is given and the JWKS fetch fails.
    """
    if not token or not isinstance(token, str):
        raise TokenValidationError("Invalid token format")

    parts = token.split(".")
    if len(parts) != 3:
        raise TokenValidationError("Malformed JWT token (expected 3 parts)")
    header_b64, payload_b64, signature_b64 = parts

    header = _decode_segment(header_b64, "header")
    alg = header.get("alg")
    if alg not in JWT_ALGORITHMS:
        raise TokenValidationError(
            f"Unsupported/insecure algorithm: {alg} (only RS256/ES256 allowed)"
        )
    payload = _decode_segment(payload_b64, "payload")

    if public_key is None:
        public_key = fetch_public_key()

    try:
        signature = b64url_decode(signature_b64)
    except ValueError as exc:
        raise TokenValidationError("Invalid JWT signature encoding") from exc
    _verify_signature(alg, public_key, f"{header_b64}.{payload_b64}".encode("ascii"), signature)

    now = int(time.time())
    exp = payload.get("exp")
    if exp and exp < now:
        raise TokenValidationError(f"Token expired at {_iso(exp)}")
    nbf = payload.get("nbf")
    if nbf and nbf > now:
        raise TokenValidationError(f"Token not valid until {_iso(nbf)}")
    iss = payload.get("iss")
    if iss and iss != JWT_ISSUER:
        raise TokenValidationError(f"Invalid issuer: {iss} (expected {JWT_ISSUER})")
    aud = payload.get("aud")
    if aud and aud != JWT_AUDIENCE:
        raise TokenValidationError(f"Invalid audience: {aud} (expected {JWT_AUDIENCE})")

    return payload


def extract_user_data(payload: Dict[str, Any]) -> UserInfo:
    email = payload.get("email") or "unknown@esmc-sdk.com"
    return UserInfo(
        email=email,
        user_id=payload.get("sub") or payload.get("userId"),
        tier=payload.get("tier") or "FREE",
        name=payload.get("name") or email.split("@")[0],
        exp=payload.get("exp"),
        iat=payload.get("iat"),
        issuer=payload.get("iss"),
        hardware_id=payload.get("hardwareId"),
        subscription_end_date=payload.get("subscriptionEndDate"),
    )


def verify_and_extract_user_data(token: str, public_key: Optional[str] = None) -> UserInfo:
    return extract_user_data(verify_jwt(token, public_key))


def is_dev_mode() -> bool:
    """Signature checks may be skipped only with ESMC_DEV_MODE outside production."""
    settings = get_settings()
    return settings.dev_mode_enabled and not settings.is_production


def verify_token_safe(token: str) -> Dict[str, Any]:
    if not is_dev_mode():
        return verify_jwt(token)

    logger.warning("DEV MODE: JWT signature validation disabled")
    try:
        return _decode_segment(token.split(".")[1], "payload")
    except (IndexError, AttributeError) as exc:
        raise TokenValidationError("Invalid JWT format (even in dev mode)") from exc
