"""Custom exception hierarchy for the ESMC SDK."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ESMCException(Exception):
    """Base exception type for all ESMC errors."""

    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return f"{self.message} | context={self.context}"


class ConfigurationError(ESMCException):
    """Raised when configuration is missing or invalid."""


class CommandError(ESMCException):
    """Raised when a CLI command cannot be resolved or dispatched."""


# -----------------------------------------------------------------------------
# Authentication
# -----------------------------------------------------------------------------


class AuthenticationError(ESMCException):
    """Raised when the login flow fails."""


class TokenValidationError(AuthenticationError):
    """Raised when a JWT is malformed, forged, expired or mis-addressed."""


class JWKSFetchError(AuthenticationError):
    """Raised when the signing key cannot be fetched or parsed."""


class CredentialsError(ESMCException):
    """Raised when stored credentials are missing or unusable."""


# -----------------------------------------------------------------------------
# Licensing and tiers
# -----------------------------------------------------------------------------


class LicenseError(ESMCException):
    """Raised when the license file cannot be written or read."""


class TierAccessError(ESMCException):
    """Raised when the current tier does not grant a feature."""


class BrainDiscoveryError(ESMCException):
    """Raised when no brain file matches the tier checksum."""


class IntegrityError(ESMCException):
    """Raised when package integrity material is missing."""
