"""
Report Fingerprint

Tamper-evidence marker for report documents: SHA-256 over canonical JSON
(sort_keys=True) of the document with the fingerprint field removed.
Not a signature. No key and no signer identity are bound into it.

If the hash primitive is unavailable the fingerprint fails closed with
FingerprintUnavailableError. There is no non-cryptographic fallback.
"""

import copy
import hashlib
import hmac
import json
from typing import Any, Dict


FINGERPRINT_ALGORITHM = "sha256"


class FingerprintUnavailableError(RuntimeError):
    """Raised when the configured hash algorithm cannot be used."""


def canonical_json(payload: Dict[str, Any]) -> str:
    """Deterministic JSON encoding with stable key ordering."""
    return json.dumps(payload, sort_keys=True)


def fingerprint_payload(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a serialized report without its fingerprint."""
    payload = copy.deepcopy(document)
    payload.get("metadata", {}).pop("fingerprint", None)
    return payload


def compute_fingerprint(payload: Dict[str, Any], algorithm: str = FINGERPRINT_ALGORITHM) -> str:
    """
    Hash a report payload.

    Args:
        payload: Serialized report content, fingerprint excluded
        algorithm: hashlib algorithm name

    Returns:
        Lowercase hex digest

    Raises:
        FingerprintUnavailableError: if the algorithm is not available
    """
    try:
        digest = hashlib.new(algorithm)
    except (ValueError, TypeError) as e:
        raise FingerprintUnavailableError(
            f"Hash algorithm '{algorithm}' unavailable; report fingerprint cannot be computed"
        ) from e
    digest.update(canonical_json(payload).encode("utf-8"))
    return digest.hexdigest()


def verify_fingerprint(document: Dict[str, Any], algorithm: str = FINGERPRINT_ALGORITHM) -> bool:
    """
    Recompute the fingerprint of a serialized report and compare it to the stored one.

    Returns False when the document carries no fingerprint.
    """
    stored = (document.get("metadata") or {}).get("fingerprint")
    if not stored:
        return False
    expected = compute_fingerprint(fingerprint_payload(document), algorithm=algorithm)
    return hmac.compare_digest(expected, stored)
