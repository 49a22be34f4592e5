"""HMAC signature verification for GitHub webhook deliveries.

GitHub signs every delivery with the shared webhook secret and sends the
result in the ``X-Hub-Signature-256`` header as ``sha256=<hex digest>``.
Verification runs over the raw, unparsed request body and must happen
before any parsing of that body.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: Union[str, bytes], body: bytes) -> str:
    """Compute the GitHub-style signature header value for a body.

    Args:
        secret: The shared webhook secret.
        body: The raw request body.

    Returns:
        The signature in format ``sha256=<hex digest>``.
    """
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    digest = hmac.new(key, body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


class SignatureVerifier:
    """Validates that a webhook body was signed with the shared secret.

    Attributes:
        secret: The shared webhook secret.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("webhook secret cannot be empty")
        self.secret = secret

    def verify(self, raw_body: bytes, signature_header: Optional[str]) -> bool:
        """Check a delivery's signature header against its raw body.

        The comparison is constant-time so the response timing does not
        leak how much of the expected digest matched.

        Args:
            raw_body: The exact bytes received.
            signature_header: The ``X-Hub-Signature-256`` value, or None.

        Returns:
            True only if the header equals the expected signature.
        """
        if not signature_header:
            logger.warning("Webhook delivery has no signature header")
            return False

        expected = compute_signature(self.secret, raw_body)
        if not hmac.compare_digest(
            expected.encode("utf-8"), signature_header.encode("utf-8")
        ):
            logger.warning(
                "Webhook signature mismatch",
                extra={"body_length": len(raw_body)},
            )
            return False

        return True
