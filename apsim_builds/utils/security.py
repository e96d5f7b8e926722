"""
Security utilities for the application.

Provides HMAC-SHA256 verification of github webhook deliveries.
"""
import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request, status

from apsim_builds.config import get_settings
from apsim_builds.constants import SIGNATURE_HEADER


def compute_signature(body: bytes, secret: str) -> str:
    """
    Compute the signature github sends for a webhook body.

    Args:
        body: Raw request body
        secret: Webhook secret

    Returns:
        Header value in the form sha256=<hex digest>
    """
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Verify a webhook signature in constant time.

    Args:
        body: Raw request body
        signature: Value of the X-Hub-Signature-256 header
        secret: Webhook secret

    Returns:
        True if the signature matches
    """
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())


async def verify_webhook_signature(request: Request) -> bytes:
    """
    FastAPI dependency returning the verified raw webhook body.

    Signature checks are skipped when HMAC_SECRET_KEY is not configured.

    Raises:
        HTTPException: If the signature header is missing or wrong
    """
    settings = get_settings()
    body = await request.body()

    if not settings.HMAC_SECRET_KEY:
        return body

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Request does not contain a {SIGNATURE_HEADER} header"
        )

    if not verify_signature(body, signature, settings.HMAC_SECRET_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Request signature verification failed"
        )

    return body
