"""Plaintext license file management.

The license lives at ``{project root}/.claude/.esmc-license.json``. The project
root is the nearest ancestor holding ``.claude/memory``; failing that, the
nearest ancestor holding ``.claude``; failing that, the working directory.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests

from ..config.constants import DEFAULT_TIER, LICENSE_FILENAME, LICENSE_VERSION
from ..config.settings import get_settings
from ..core.models import (
    LicenseData,
    LicenseUser,
    LicenseValidation,
    LicenseWriteResult,
    parse_timestamp,
    utc_now_iso,
)

logger = logging.getLogger("esmc.license")

CHECKSUM_TIMEOUT_SECONDS = 10


def find_project_root(start: Optional[Path] = None) -> Path:
    current = (start or Path.cwd()).resolve()
    best_candidate: Optional[Path] = None

    for directory in [current, *current.parents]:
        claude_dir = directory / ".claude"
        if (claude_dir / "memory").is_dir():
            return directory
        if best_candidate is None and claude_dir.is_dir():
            best_candidate = directory

    if best_candidate is not None:
        (best_candidate / ".claude" / "memory").mkdir(parents=True, exist_ok=True)
        logger.info("Created .claude/memory/ under %s for first-run initialization", best_candidate)
        return best_candidate

    cwd = Path.cwd()
    memory = cwd / ".claude" / "memory"
    if not memory.is_dir():
        memory.mkdir(parents=True, exist_ok=True)
        logger.info("Created .claude/memory/ in current working directory")
    return cwd


def get_license_dir() -> Path:
    override = get_settings().license_dir
    if override is not None:
        return override
    return find_project_root() / ".claude"


def get_license_file_path() -> Path:
    return get_license_dir() / LICENSE_FILENAME


def create_license_data(user: Union[LicenseUser, Dict[str, Any]]) -> LicenseData:
    if isinstance(user, dict):
        user = LicenseUser.model_validate(user)
    now = utc_now_iso()
    return LicenseData(
        version=LICENSE_VERSION,
        email=user.email,
        user_id=user.user_id,
        display_name=user.display_name or user.email.split("@")[0],
        tier=user.tier or DEFAULT_TIER,
        subscription_status=user.subscription_status or "active",
        subscription_end_date=user.subscription_end_date,
        composite_device_id=user.composite_device_id,
        blessing=user.blessing,
        vercel_checksum=user.vercel_checksum,
        features=list(user.features),
        issued_at=now,
        last_validated=now,
    )


def write_license_file(user: Union[LicenseUser, Dict[str, Any]]) -> LicenseWriteResult:
    try:
        data = create_license_data(user)
        path = get_license_file_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(data.model_dump(mode="json", by_alias=True), indent=2),
            encoding="utf-8",
        )
    except (OSError, ValueError) as exc:
        logger.error("License file creation failed: %s", exc)
        return LicenseWriteResult(success=False, error=str(exc))

    return LicenseWriteResult(success=True, file_path=str(path), filename=path.name, tier=data.tier)


def update_license_file(user: Union[LicenseUser, Dict[str, Any]]) -> LicenseWriteResult:
    return write_license_file(user)


def read_license_file() -> Optional[LicenseData]:
    """Read the license; an expired license is returned downgraded to FREE."""
    path = get_license_file_path()
    if not path.exists():
        logger.info("No license file found - user not logged in")
        return None

    try:
        data = LicenseData.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        logger.error("License file read failed: %s", exc)
        return None

    expiry = parse_timestamp(data.subscription_end_date)
    if expiry is not None and datetime.now(timezone.utc) > expiry:
        logger.warning("License expired: %s", expiry.isoformat())
        return data.model_copy(update={"tier": DEFAULT_TIER, "subscription_status": "expired"})
    return data


def delete_license_file() -> bool:
    path = get_license_file_path()
    try:
        if path.exists():
            path.unlink()
            logger.info("License file deleted")
            return True
    except OSError as exc:
        logger.error("License file deletion failed: %s", exc)
    return False


def validate_license() -> LicenseValidation:
    data = read_license_file()
    if data is None:
        return LicenseValidation(valid=False, tier=DEFAULT_TIER, reason="No license file found")
    return LicenseValidation(
        valid=True,
        tier=data.tier,
        email=data.email,
        user_id=data.user_id,
        subscription_status=data.subscription_status,
        subscription_end_date=data.subscription_end_date,
        features=data.features,
        issued_at=data.issued_at,
        last_validated=data.last_validated,
    )


def get_license_info() -> Optional[LicenseData]:
    return read_license_file()


def verify_blessing_token(blessing: Optional[Dict[str, Any]]) -> bool:
    """Structural check of the blessing token; the signature itself is server-verified."""
    if not blessing or not blessing.get("signature"):
        logger.error("Blessing validation: missing blessing or signature")
        return False
    if not blessing.get("tier") or not blessing.get("expiresAt") or not blessing.get("compositeDeviceId"):
        logger.error("Blessing validation: missing required blessing fields")
        return False

    expiry = parse_timestamp(blessing["expiresAt"])
    if expiry is None or datetime.now(timezone.utc) > expiry:
        logger.error("Blessing validation: token expired")
        return False
    return True


def validate_vercel_checksum(email: str, tier: str, checksum: Optional[Dict[str, Any]]) -> bool:
    """Check the rotating checksum against the server; any failure is False."""
    if not checksum or not checksum.get("value") or not checksum.get("rotation"):
        logger.error("Checksum validation: missing checksum data")
        return False

    try:
        response = requests.get(
            get_settings().checksum_url,
            params={
                "email": email,
                "tier": tier,
                "rotation": checksum["rotation"],
                "checksum": checksum["value"],
            },
            timeout=CHECKSUM_TIMEOUT_SECONDS,
        )
        result = response.json()
    except requests.RequestException as exc:
        logger.error("Checksum validation network error: %s", exc)
        return False
    except ValueError as exc:
        logger.error("Checksum validation parse error: %s", exc)
        return False

    if result.get("valid"):
        logger.info("Checksum validated")
        return True
    logger.error("Checksum validation failed: %s", result.get("error"))
    return False
