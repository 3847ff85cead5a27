"""Intelligence processors and the tier-gated mesh that runs them."""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Protocol

from ..core.models import AnalysisResult, SynthesisResult

logger = logging.getLogger("esmc.intelligence")

DEFAULT_CONFIDENCE = 0.85


class IntelligenceGate(Protocol):
    def get_features(self) -> Dict[str, Any]: ...


class IntelligenceProcessor:
    def __init__(self, component: str, confidence: float = DEFAULT_CONFIDENCE, randomize: bool = False):
        self.component = component.upper()
        self.confidence = confidence
        self.randomize = randomize

    def analyze(self, data: Any = None) -> AnalysisResult:
        confidence = random.random() if self.randomize else self.confidence
        return AnalysisResult(confidence=confidence)

    def synthesize(self) -> SynthesisResult:
        return SynthesisResult()


class IntelligenceMesh:
    def __init__(self, gate: IntelligenceGate, *, randomize: bool = False):
        self.gate = gate
        self.randomize = randomize

    def components(self) -> List[str]:
        return list(self.gate.get_features()["intelligence"])

    def analyze(self, data: Any = None) -> Dict[str, AnalysisResult]:
        components = self.components()
        logger.debug("Running %d intelligence components", len(components))
        return {
            name: IntelligenceProcessor(name, randomize=self.randomize).analyze(data)
            for name in components
        }
