"""GitHub webhook handling for the bridge.

This module verifies and parses GitHub webhook deliveries, specifically:
- issues.opened / issues.edited - command read from the issue body
- issue_comment.created / issue_comment.edited - command read from the comment

Every delivery must pass HMAC-SHA256 signature verification against the
shared webhook secret before its body is decoded.
"""

from src.pollinate.webhook.handler import WebhookHandler, create_webhook_handler
from src.pollinate.webhook.models import HANDLED_ACTIONS, EventKind, InboundEvent
from src.pollinate.webhook.signature import SignatureVerifier, compute_signature

__all__ = [
    "EventKind",
    "HANDLED_ACTIONS",
    "InboundEvent",
    "SignatureVerifier",
    "WebhookHandler",
    "compute_signature",
    "create_webhook_handler",
]
