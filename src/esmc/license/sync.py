"""Convert stored login credentials into a project license file."""

from __future__ import annotations

import logging

from ..auth.credentials import load_credentials
from ..config.constants import DEFAULT_TIER, MAX_DEVICES_BY_TIER, MAX_DEVICES_DEFAULT
from ..config.settings import get_settings
from ..core.exceptions import CredentialsError, LicenseError
from ..core.models import LicenseUser, LicenseWriteResult
from .manager import write_license_file

logger = logging.getLogger("esmc.license.sync")


def sync_license() -> LicenseWriteResult:
    credentials = load_credentials(path=get_settings().credentials_path)
    if credentials is None:
        raise CredentialsError("No credentials found. Run `esmc login` first to authenticate.")

    local_part = credentials.email.split("@")[0]
    tier = credentials.tier or DEFAULT_TIER
    user = LicenseUser(
        email=credentials.email,
        user_id=credentials.user_id or f"MCP_{local_part}",
        display_name=credentials.name or local_part,
        tier=tier,
        subscription_status="active",
        subscription_end_date=credentials.expires_at,
        features=[],
        max_devices=MAX_DEVICES_BY_TIER.get(tier, MAX_DEVICES_DEFAULT),
    )

    result = write_license_file(user)
    if not result.success:
        raise LicenseError(f"License sync failed: {result.error}")
    logger.info("License synced for %s (%s tier) to %s", user.email, tier, result.file_path)
    return result
