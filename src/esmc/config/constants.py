"""Static configuration shared across the SDK."""

from __future__ import annotations

from typing import Any, Dict, List

SERVER_NAME = "esmc-mcp-server"
SERVER_VERSION = "3.8.0"

# Login callback (the standalone CLI login uses 37846).
CALLBACK_PORT = 37847
CALLBACK_TIMEOUT_SECONDS = 5 * 60

LICENSE_FILENAME = ".esmc-license.json"
LICENSE_VERSION = "3.65.0"

JWT_ISSUER = "esmc-sdk.com"
JWT_AUDIENCE = "esmc-client"
JWT_ALGORITHMS = ("RS256", "ES256")
JWKS_CACHE_TTL_SECONDS = 60 * 60
JWKS_TIMEOUT_SECONDS = 5
JWKS_MAX_REDIRECTS = 5

TIER_HIERARCHY: List[str] = ["FREE", "PRO", "MAX", "VIP"]
DEFAULT_TIER = "FREE"

_FULL_INTELLIGENCE = ["PIU", "DKI", "UIP", "PCA", "ATLAS", "CUP", "TBI", "PFI"]
_ALL_COLONELS = ["ALPHA", "BETA", "GAMMA", "DELTA", "EPSILON", "ZETA", "ETA"]
_ALL_MODULES = [
    "ESMC_3.1",
    "ESMC_3.2",
    "ESMC_3.3",
    "ESMC_3.4",
    "ESMC_3.5",
    "ESMC_3.6",
    "ESMC_3.7",
    "ESMC_3.8",
    "ESMC_3.9",
    "ESMC_3.10",
    "ESMC_3.11",
]

TIER_FEATURES: Dict[str, Dict[str, Any]] = {
    "FREE": {
        "intelligence": ["PIU"],
        "colonels": ["ALPHA", "BETA", "GAMMA"],
        "modules": [],
        "memory": "json",
        "max_projects": 1,
        "max_hardware": 1,
        "red_teaming": False,
        "time_machine": False,
        "memory_bank": False,
        "echelon": False,
        "version": "ESMC 3.2",
        "display_name": "FREE",
    },
    "PRO": {
        "intelligence": ["PIU", "DKI", "UIP", "PCA"],
        "colonels": ["ALPHA", "BETA", "GAMMA", "DELTA", "EPSILON", "ZETA"],
        "modules": ["ESMC_3.2", "ESMC_3.3", "ESMC_3.4", "ESMC_3.5", "ESMC_3.7", "ESMC_3.8"],
        "memory": "json",
        "max_projects": 10,
        "max_hardware": 1,
        "red_teaming": False,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.7",
        "display_name": "PRO",
    },
    "MAX": {
        "intelligence": list(_FULL_INTELLIGENCE),
        "colonels": list(_ALL_COLONELS),
        "modules": list(_ALL_MODULES),
        "memory": "mysql",
        "max_projects": 999,
        "max_hardware": 1,
        "red_teaming": True,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.11",
        "display_name": "MAX",
    },
    "VIP": {
        "intelligence": list(_FULL_INTELLIGENCE),
        "colonels": list(_ALL_COLONELS),
        "modules": list(_ALL_MODULES),
        "memory": "mysql",
        "max_projects": 999,
        "max_hardware": 1,
        "red_teaming": True,
        "time_machine": True,
        "memory_bank": True,
        "echelon": True,
        "version": "ESMC 3.11",
        "display_name": "VIP",
    },
}

# Device allowance written into synced licenses.
MAX_DEVICES_BY_TIER = {"FREE": 1, "PRO": 3}
MAX_DEVICES_DEFAULT = 10


def features_for(tier: str) -> Dict[str, Any]:
    """Return the feature table for ``tier``, falling back to FREE."""
    return TIER_FEATURES.get(tier, TIER_FEATURES[DEFAULT_TIER])
