"""Result and record models for the ESMC SDK.

Wire-facing records (credentials, license files, backend payloads) use
camelCase on disk and over HTTP; Python code uses the snake_case field names.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WireModel(BaseModel):
    """Base for records persisted or exchanged in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


# -----------------------------------------------------------------------------
# Stub results
# -----------------------------------------------------------------------------


class StubResult(BaseModel):
    status: Literal["ok"] = "ok"
    timestamp: int = Field(default_factory=now_ms)
    data: Any = None


class DeploymentResult(BaseModel):
    wave: int
    status: Literal["deployed"] = "deployed"
    results: List[Any] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    confidence: float
    patterns: List[Any] = Field(default_factory=list)
    recommendations: List[Any] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: bool = True
    checks: List[Any] = Field(default_factory=list)


class SynthesisResult(BaseModel):
    synthesized: bool = True


# -----------------------------------------------------------------------------
# Auth records
# -----------------------------------------------------------------------------


class Credentials(WireModel):
    """Decrypted contents of ``~/.esmc/credentials.json``."""

    token: Optional[str] = None
    email: str
    name: Optional[str] = None
    tier: str = "FREE"
    user_id: Optional[str] = None
    expires_at: Optional[str] = None


class UserInfo(WireModel):
    email: str
    user_id: Optional[str] = None
    tier: str = "FREE"
    name: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None
    issuer: Optional[str] = None
    hardware_id: Optional[str] = None
    subscription_end_date: Optional[str] = None


class TierStatus(WireModel):
    """Outcome of ``TierManager.initialize``."""

    tier: str
    source: Literal["default", "backend", "expired", "local"]
    authenticated: bool
    message: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    expires_at: Optional[str] = None


# -----------------------------------------------------------------------------
# License records
# -----------------------------------------------------------------------------


class LicenseUser(WireModel):
    """User data handed to the license writer after authentication."""

    email: str
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    tier: str = "FREE"
    subscription_status: str = "active"
    subscription_end_date: Optional[str] = None
    composite_device_id: Optional[str] = None
    blessing: Optional[Dict[str, Any]] = None
    vercel_checksum: Optional[Dict[str, Any]] = None
    features: List[str] = Field(default_factory=list)
    max_devices: Optional[int] = None


class LicenseData(WireModel):
    """Plaintext license file stored at ``.claude/.esmc-license.json``."""

    version: str
    mode: str = "plaintext"
    email: str
    user_id: Optional[str] = None
    display_name: str
    tier: str = "FREE"
    subscription_status: str = "active"
    subscription_end_date: Optional[str] = None
    composite_device_id: Optional[str] = None
    blessing: Optional[Dict[str, Any]] = None
    vercel_checksum: Optional[Dict[str, Any]] = None
    features: List[str] = Field(default_factory=list)
    issued_at: str = Field(default_factory=utc_now_iso)
    last_validated: str = Field(default_factory=utc_now_iso)


class LicenseWriteResult(WireModel):
    success: bool
    file_path: Optional[str] = None
    filename: Optional[str] = None
    tier: Optional[str] = None
    error: Optional[str] = None


class LicenseValidation(WireModel):
    valid: bool
    tier: str
    reason: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_end_date: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    issued_at: Optional[str] = None
    last_validated: Optional[str] = None


# -----------------------------------------------------------------------------
# Integrity
# -----------------------------------------------------------------------------


class IntegrityReport(WireModel):
    valid: bool
    signature_valid: bool = False
    verified: int = 0
    modified: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    build_version: Optional[str] = None
    reason: Optional[str] = None


class SampleVerification(WireModel):
    success: bool
    failed: List[str] = Field(default_factory=list)
    verified: int = 0
    total: int = 0
    skipped: bool = False
    error: Optional[str] = None
