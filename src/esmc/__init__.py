"""ESMC SDK - command dispatcher, tier gating and license tooling."""

from typing import TYPE_CHECKING

__all__ = ["Settings", "SDK"]
__version__ = "3.8.0"

if TYPE_CHECKING:
    from .config.settings import Settings
    from .sdk import SDK


def __getattr__(name: str):
    if name == "Settings":
        from .config.settings import Settings

        return Settings
    if name == "SDK":
        from .sdk import SDK

        return SDK
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
