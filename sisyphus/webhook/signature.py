"""Verify GitHub webhook signatures (X-Hub-Signature-256)."""

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Header value GitHub sends for body signed with secret."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, header: str | None) -> bool:
    """Constant-time check of the X-Hub-Signature-256 header.

    An empty secret disables verification.
    """
    if not secret:
        return True
    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(secret, body), header)
