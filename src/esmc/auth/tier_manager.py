"""Tier resolution and feature gating.

The backend is the authority on a user's tier. When it cannot be reached the
locally stored credentials are used instead, and expired credentials are
removed so the user drops back to FREE.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional

import requests

from ..config.constants import DEFAULT_TIER, TIER_HIERARCHY, features_for
from ..config.settings import Settings, get_settings
from ..core.exceptions import BrainDiscoveryError
from ..core.models import Credentials, TierStatus
from ..utils.hashing import sha256_file
from .credentials import clear_credentials, is_expired, load_credentials
from .hardware import get_hardware_id

logger = logging.getLogger("esmc.auth.tier")

BACKEND_TIMEOUT_SECONDS = 10


class TierManager:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.current_tier = DEFAULT_TIER
        self.credentials: Optional[Credentials] = None
        self.features: Dict[str, Any] = features_for(DEFAULT_TIER)
        self.brain_path: Optional[Path] = None

    def _set_tier(self, tier: Optional[str]) -> None:
        self.current_tier = tier or DEFAULT_TIER
        self.features = features_for(self.current_tier)

    def validate_with_backend(self, token: Optional[str], hardware_id: str) -> Optional[Dict[str, Any]]:
        """Ask the backend to validate ``token``; ``None`` means fall back to local data."""
        url = f"{self.settings.api_url.rstrip('/')}/esmc/mcp/validate"
        try:
            response = requests.post(
                url,
                json={"token": token, "hardwareId": hardware_id},
                timeout=BACKEND_TIMEOUT_SECONDS,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Backend validation failed: %s", exc)
            return None

        if not response.ok or not isinstance(data, dict) or not data.get("valid"):
            return None
        user = data.get("user")
        if not isinstance(user, dict):
            logger.error("Backend validation returned a malformed user record")
            return None
        return {
            "tier": user.get("tier"),
            "email": user.get("email"),
            "name": user.get("name"),
            "expires_at": user.get("expiresAt"),
        }

    def initialize(self) -> TierStatus:
        self.credentials = load_credentials(path=self.settings.credentials_path)

        if self.credentials is None:
            self._set_tier(DEFAULT_TIER)
            return TierStatus(
                tier=DEFAULT_TIER,
                source="default",
                authenticated=False,
                message="Not logged in - using FREE tier",
            )

        backend = self.validate_with_backend(self.credentials.token, get_hardware_id())
        if backend:
            self._set_tier(backend["tier"])
            return TierStatus(
                tier=self.current_tier,
                source="backend",
                authenticated=True,
                email=backend["email"],
                name=backend["name"],
                expires_at=backend["expires_at"],
            )

        if is_expired(self.credentials):
            logger.warning("Subscription expired - cleaning up credentials")
            clear_credentials(path=self.settings.credentials_path)
            self.credentials = None
            self._set_tier(DEFAULT_TIER)
            return TierStatus(
                tier=DEFAULT_TIER,
                source="expired",
                authenticated=False,
                message="Subscription expired - reverted to FREE tier",
            )

        # Offline mode
        self._set_tier(self.credentials.tier)
        return TierStatus(
            tier=self.current_tier,
            source="local",
            authenticated=True,
            email=self.credentials.email,
            name=self.credentials.name,
            expires_at=self.credentials.expires_at,
        )

    def get_tier(self) -> str:
        return self.current_tier

    def get_features(self) -> Dict[str, Any]:
        return self.features

    def is_intelligence_enabled(self, component: str) -> bool:
        return component in self.features["intelligence"]

    def is_colonel_enabled(self, colonel: str) -> bool:
        return colonel in self.features["colonels"]

    def is_module_enabled(self, module: str) -> bool:
        return module in self.features["modules"]

    def get_available_colonels(self, required: List[str]) -> List[str]:
        return [colonel for colonel in required if self.is_colonel_enabled(colonel)]

    def get_memory_type(self) -> str:
        return self.features["memory"]

    def validate_access(self, required_tier: str) -> bool:
        """True when the current tier ranks at or above ``required_tier``.

        Unknown tiers rank below FREE, so an unknown requirement is always met
        and an unknown current tier meets nothing but unknown requirements.
        """
        def rank(tier: str) -> int:
            return TIER_HIERARCHY.index(tier) if tier in TIER_HIERARCHY else -1

        return rank(self.current_tier) >= rank(required_tier)

    def get_user_info(self) -> Optional[Dict[str, Any]]:
        if self.credentials is None:
            return None
        return {
            "email": self.credentials.email,
            "name": self.credentials.name,
            "tier": self.current_tier,
            "expiresAt": self.credentials.expires_at,
        }

    def is_max_or_vip(self) -> bool:
        return self.current_tier in {"MAX", "VIP"}

    def is_mysql_enabled(self) -> bool:
        return self.is_max_or_vip()

    def discover_brain_file(self, brain_dir: Optional[Path] = None) -> Path:
        """Find the brain module whose SHA-256 matches the current tier's checksum."""
        if self.brain_path is not None:
            return self.brain_path

        directory = brain_dir or self.settings.brain_dir
        if directory is None:
            raise BrainDiscoveryError("Brain directory is not configured (set ESMC_BRAIN_DIR)")
        target = self.settings.brain_checksum(self.current_tier)
        if not target:
            raise BrainDiscoveryError(f"No brain checksum defined for tier: {self.current_tier}")

        try:
            candidates = sorted(Path(directory).glob("*.py"))
        except OSError as exc:
            raise BrainDiscoveryError(f"Brain directory unreadable: {exc}") from exc

        logger.info("Searching %d brain files for %s tier", len(candidates), self.current_tier)
        for candidate in candidates:
            if sha256_file(candidate) == target:
                self.brain_path = candidate
                logger.info("Brain discovered: %s (%s tier)", candidate.name, self.current_tier)
                return candidate

        raise BrainDiscoveryError(
            f"Brain file not found for {self.current_tier} tier (scanned {len(candidates)} files)",
            context={"directory": str(directory)},
        )

    def load_brain(self, brain_dir: Optional[Path] = None) -> ModuleType:
        path = self.discover_brain_file(brain_dir)
        spec = importlib.util.spec_from_file_location(f"esmc_brain_{path.stem}", path)
        if spec is None or spec.loader is None:
            raise BrainDiscoveryError(f"Cannot load brain module from {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        logger.info("Brain loaded successfully (%s tier)", self.current_tier)
        return module
