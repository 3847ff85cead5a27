"""Colonel wave deployment.

A colonel is a named deployment step. Deployments always succeed with no
per-step results; the deployer only decides which colonels the current tier
may run.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

from ..core.models import DeploymentResult, ValidationResult

logger = logging.getLogger("esmc.colonels")

COLONELS = ["ALPHA", "BETA", "GAMMA", "DELTA", "EPSILON", "ZETA", "ETA"]


class ColonelGate(Protocol):
    def get_available_colonels(self, required: List[str]) -> List[str]: ...


class Colonel:
    def __init__(self, name: str):
        self.name = name.upper()

    def deploy(self, wave: int = 1) -> DeploymentResult:
        logger.debug("Colonel %s deploying wave %d", self.name, wave)
        return DeploymentResult(wave=wave)

    def validate(self) -> ValidationResult:
        return ValidationResult()

    def __repr__(self) -> str:
        return f"Colonel({self.name!r})"


class WaveDeployer:
    def __init__(self, gate: ColonelGate):
        self.gate = gate

    def deploy(self, requested: Optional[List[str]] = None, wave: int = 1) -> Dict[str, Any]:
        """Deploy every requested colonel the tier allows; all colonels when none are named."""
        names = [name.upper() for name in (requested or COLONELS)]
        known = [name for name in names if name in COLONELS]
        allowed = self.gate.get_available_colonels(known)
        skipped = [name for name in names if name not in allowed]
        if skipped:
            logger.info("Skipping colonels not available for this tier: %s", ", ".join(skipped))

        return {
            "wave": wave,
            "deployed": {name: Colonel(name).deploy(wave) for name in allowed},
            "skipped": skipped,
        }
