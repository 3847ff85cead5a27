"""Encrypted credential storage bound to the local machine."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..config.settings import get_settings
from ..core.exceptions import CredentialsError
from ..core.models import Credentials, parse_timestamp
from ..utils.hashing import sha256_digest
from .hardware import get_machine_id

logger = logging.getLogger("esmc.auth.credentials")

_IV_SIZE = 16


def get_machine_key() -> bytes:
    """32-byte AES key derived from the machine id."""
    return sha256_digest(get_machine_id())


def encrypt(data: Dict[str, Any], key: bytes) -> str:
    """AES-256-CBC encrypt ``data`` as JSON; returns ``<iv hex>:<ciphertext hex>``."""
    iv = os.urandom(_IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    plaintext = padder.update(json.dumps(data).encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt(encrypted: str, key: bytes) -> Dict[str, Any]:
    iv_hex, _, ciphertext_hex = encrypted.partition(":")
    if not ciphertext_hex:
        raise CredentialsError("Encrypted payload is missing its IV separator")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(bytes.fromhex(iv_hex))).decryptor()
    padded = decryptor.update(bytes.fromhex(ciphertext_hex)) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    plaintext = unpadder.update(padded) + unpadder.finalize()
    return json.loads(plaintext.decode("utf-8"))


def _credentials_path(path: Optional[Path]) -> Path:
    return path if path is not None else get_settings().credentials_path


def save_credentials(
    credentials: Union[Credentials, Dict[str, Any]],
    *,
    path: Optional[Path] = None,
) -> Path:
    if isinstance(credentials, dict):
        credentials = Credentials.model_validate(credentials)
    target = _credentials_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = credentials.model_dump(mode="json", by_alias=True, exclude_none=True)
    encrypted = encrypt(payload, get_machine_key())
    target.write_text(json.dumps({"encrypted": encrypted}), encoding="utf-8")
    logger.info("Saved credentials for %s to %s", credentials.email, target)
    return target


def load_credentials(*, path: Optional[Path] = None) -> Optional[Credentials]:
    """Load and decrypt credentials; ``None`` when absent, corrupted or tampered."""
    target = _credentials_path(path)
    if not target.exists():
        return None
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
        return Credentials.model_validate(decrypt(data["encrypted"], get_machine_key()))
    except (OSError, ValueError, KeyError, TypeError, CredentialsError) as exc:
        logger.error("Credentials corrupted or tampered: %s", exc)
        return None


def clear_credentials(*, path: Optional[Path] = None) -> bool:
    target = _credentials_path(path)
    if not target.exists():
        return False
    target.unlink()
    logger.info("Cleared credentials at %s", target)
    return True


def is_expired(credentials: Optional[Credentials]) -> bool:
    """FREE tier and credentials without an expiry never expire."""
    if credentials is None or not credentials.expires_at:
        return False
    expiry = parse_timestamp(credentials.expires_at)
    if expiry is None:
        return False
    return expiry < datetime.now(timezone.utc)
