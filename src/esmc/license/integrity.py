"""Package integrity verification.

A distributed package carries an integrity manifest listing the SHA-256 of
every shipped file, and a ``.package-signature`` holding an HMAC-SHA256 of the
manifest. The login flow additionally receives random file/hash samples from
the server and revokes the license when any of them disagree.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config.constants import LICENSE_FILENAME
from ..config.settings import get_settings
from ..core.exceptions import IntegrityError
from ..core.models import IntegrityReport, SampleVerification
from ..utils.hashing import sha256_digest, sha256_file

logger = logging.getLogger("esmc.license.integrity")

MANIFEST_RELATIVE_PATH = Path(".claude") / "ESMC-Chaos" / ".integrity-manifest.json"
SIGNATURE_FILENAME = ".package-signature"
COMPONENTS_RELATIVE_PATH = Path(".claude") / "ESMC-Chaos" / "components"


def signature_key(build_version: str) -> bytes:
    passphrase = get_settings().package_signature_key or f"ESMC-{build_version}-package-signature"
    return sha256_digest(passphrase)


def canonical_manifest(manifest: Dict[str, Any]) -> bytes:
    """Compact JSON in key insertion order, matching what the build signed."""
    return json.dumps(manifest, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_manifest(manifest: Dict[str, Any]) -> str:
    key = signature_key(str(manifest.get("buildVersion", "")))
    return hmac.new(key, canonical_manifest(manifest), hashlib.sha256).hexdigest()


def _load_json(path: Path, label: str) -> Dict[str, Any]:
    if not path.exists():
        raise IntegrityError(f"{label} not found", context={"path": str(path)})
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise IntegrityError(f"{label} unreadable: {exc}", context={"path": str(path)}) from exc


def verify_package(dist_dir: Path) -> IntegrityReport:
    dist_dir = Path(dist_dir)
    try:
        manifest = _load_json(dist_dir / MANIFEST_RELATIVE_PATH, "Integrity manifest")
        signature_file = _load_json(dist_dir / SIGNATURE_FILENAME, "Package signature")
    except IntegrityError as exc:
        logger.error("%s", exc)
        return IntegrityReport(valid=False, reason=exc.message)

    build_version = manifest.get("buildVersion")
    logger.info(
        "Verifying build %s (%s), %s files expected",
        build_version,
        manifest.get("buildDate"),
        manifest.get("totalFiles"),
    )

    expected_signature = str(signature_file.get("signature", ""))
    if not hmac.compare_digest(sign_manifest(manifest), expected_signature):
        logger.error("Signature mismatch; package may be tampered")
        return IntegrityReport(
            valid=False,
            build_version=build_version,
            reason="Signature mismatch",
        )

    verified = 0
    modified: List[str] = []
    missing: List[str] = []
    for relative, expected_hash in (manifest.get("checksums") or {}).items():
        full_path = dist_dir / relative
        if not full_path.is_file():
            logger.error("Missing: %s", relative)
            missing.append(relative)
            continue
        if sha256_file(full_path) != expected_hash:
            logger.error("Modified: %s", relative)
            modified.append(relative)
        else:
            verified += 1

    valid = not modified and not missing
    logger.info("Verified %d files; package %s", verified, "intact" if valid else "compromised")
    return IntegrityReport(
        valid=valid,
        signature_valid=True,
        verified=verified,
        modified=modified,
        missing=missing,
        build_version=build_version,
        reason=None if valid else "Package integrity compromised",
    )


def _find_components_dir(roots: Iterable[Path]) -> Optional[Path]:
    for root in roots:
        candidate = Path(root) / COMPONENTS_RELATIVE_PATH
        if candidate.is_dir():
            return candidate
    return None


def verify_integrity_samples(
    samples: List[Dict[str, str]],
    roots: Iterable[Path],
) -> SampleVerification:
    """Hash the server-selected component files and compare."""
    components = _find_components_dir(roots)
    if components is None:
        logger.warning("Components directory not found - sample verification skipped")
        return SampleVerification(success=True, skipped=True, total=len(samples))

    failed: List[str] = []
    verified = 0
    try:
        for sample in samples:
            name = sample["file"]
            path = components / name
            if not path.is_file():
                logger.error("Sample file not found: %s", name)
                failed.append(name)
                continue
            local_hash = sha256_file(path)
            if local_hash != sample["hash"]:
                logger.error(
                    "Hash mismatch: %s (expected %s..., local %s...)",
                    name,
                    sample["hash"][:16],
                    local_hash[:16],
                )
                failed.append(name)
            else:
                verified += 1
    except (KeyError, TypeError, OSError) as exc:
        logger.error("Sample verification failed: %s", exc)
        return SampleVerification(success=False, failed=["ERROR"], error=str(exc), total=len(samples))

    logger.info("Verified %d/%d sample files", verified, len(samples))
    return SampleVerification(success=not failed, failed=failed, verified=verified, total=len(samples))


def revoke_license(roots: Iterable[Path]) -> bool:
    """Delete the first license file found under ``roots``."""
    for root in roots:
        path = Path(root) / ".claude" / LICENSE_FILENAME
        if path.exists():
            path.unlink()
            logger.warning("License revoked: %s", path)
            return True
    return False
