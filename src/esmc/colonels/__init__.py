from .deployment import COLONELS, Colonel, WaveDeployer

__all__ = ["COLONELS", "Colonel", "WaveDeployer"]
