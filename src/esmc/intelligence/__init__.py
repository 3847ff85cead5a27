from .processor import IntelligenceMesh, IntelligenceProcessor

__all__ = ["IntelligenceMesh", "IntelligenceProcessor"]
