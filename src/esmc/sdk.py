"""Command surface dispatched to by the CLI.

Every public method takes the list of CLI options that followed the command
name and returns a JSON-serializable value (pydantic models included).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .auth.credentials import clear_credentials
from .auth.hardware import get_device_name, get_hardware_id, get_os_info
from .auth.login import login as browser_login
from .auth.tier_manager import TierManager
from .colonels import WaveDeployer
from .config.settings import Settings, get_settings
from .core.exceptions import CommandError
from .core.models import LicenseData, LicenseValidation, StubResult, SynthesisResult, TierStatus
from .intelligence import IntelligenceMesh, IntelligenceProcessor
from .license import integrity, manager
from .license.sync import sync_license as write_synced_license
from .processors import DataProcessor, stub_response
from .utils import paths
from .utils.hashing import sha256_hex

logger = logging.getLogger("esmc.sdk")

Options = Optional[List[str]]


def _require(options: Options, count: int, usage: str) -> List[str]:
    options = options or []
    if len(options) < count:
        raise CommandError(f"Usage: esmc {usage}")
    return options


class SDK:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.tier_manager = TierManager(self.settings)
        self.processor = DataProcessor()
        self._tier_status: Optional[TierStatus] = None

    def _status(self) -> TierStatus:
        if self._tier_status is None:
            self._tier_status = self.tier_manager.initialize()
        return self._tier_status

    def _tiers(self) -> TierManager:
        self._status()
        return self.tier_manager

    # -- account ---------------------------------------------------------

    def status(self, options: Options = None) -> Dict[str, Any]:
        tiers = self._tiers()
        return {
            "tier": self._status(),
            "license": manager.validate_license(),
            "memory": tiers.get_memory_type(),
            "hardwareId": get_hardware_id()[:16],
        }

    def tier(self, options: Options = None) -> TierStatus:
        return self._status()

    def features(self, options: Options = None) -> Dict[str, Any]:
        return self._tiers().get_features()

    def access(self, options: Options = None) -> Dict[str, Any]:
        required = _require(options, 1, "access <FREE|PRO|MAX|VIP>")[0].upper()
        tiers = self._tiers()
        return {"required": required, "tier": tiers.get_tier(), "allowed": tiers.validate_access(required)}

    def login(self, options: Options = None) -> Any:
        return browser_login()

    def logout(self, options: Options = None) -> Dict[str, bool]:
        return {
            "credentialsCleared": clear_credentials(path=self.settings.credentials_path),
            "licenseDeleted": manager.delete_license_file(),
        }

    def sync_license(self, options: Options = None) -> Any:
        return write_synced_license()

    def validate(self, options: Options = None) -> LicenseValidation:
        return manager.validate_license()

    def license(self, options: Options = None) -> Optional[LicenseData]:
        return manager.get_license_info()

    def verify_package(self, options: Options = None) -> Any:
        dist_dir = Path(options[0]) if options else Path.cwd()
        return integrity.verify_package(dist_dir)

    def hardware(self, options: Options = None) -> Dict[str, str]:
        return {
            "hardwareId": get_hardware_id(),
            "deviceName": get_device_name(),
            "os": str(get_os_info()),
        }

    def brain(self, options: Options = None) -> Dict[str, str]:
        tiers = self._tiers()
        return {"tier": tiers.get_tier(), "path": str(tiers.discover_brain_file())}

    # -- colonels and intelligence ----------------------------------------

    def deploy(self, options: Options = None) -> Dict[str, Any]:
        """``deploy [wave=N] [COLONEL ...]``"""
        wave = 1
        names: List[str] = []
        for option in options or []:
            if option.startswith("wave="):
                try:
                    wave = int(option.split("=", 1)[1])
                except ValueError as exc:
                    raise CommandError(f"Invalid wave number: {option}") from exc
            else:
                names.append(option)
        return WaveDeployer(self._tiers()).deploy(names, wave)

    def analyze(self, options: Options = None) -> Dict[str, Any]:
        return IntelligenceMesh(self._tiers()).analyze(" ".join(options or []))

    def synthesize(self, options: Options = None) -> SynthesisResult:
        return IntelligenceProcessor("PIU").synthesize()

    # -- data helpers ---------------------------------------------------------

    def echo(self, options: Options = None) -> StubResult:
        return stub_response(options or [])

    def process(self, options: Options = None) -> List[Any]:
        return self.processor.process(options or [])

    def transform(self, options: Options = None) -> Any:
        raw = _require(options, 1, "transform <json>")[0]
        try:
            return self.processor.transform(json.loads(raw))
        except ValueError as exc:
            raise CommandError(f"Invalid JSON: {exc}") from exc

    def hash(self, options: Options = None) -> Dict[str, str]:
        text = " ".join(_require(options, 1, "hash <text>"))
        return {"sha256": sha256_hex(text)}

    def normalize(self, options: Options = None) -> str:
        return paths.normalize(_require(options, 1, "normalize <path>")[0])

    def join(self, options: Options = None) -> str:
        return paths.join(*_require(options, 1, "join <part> [part ...]"))

    def resolve(self, options: Options = None) -> str:
        return paths.resolve(*(options or []))
