"""GitHub webhook handler for the bridge.

This module provides the WebhookHandler class for turning a verified
webhook delivery into an InboundEvent. Signature verification is done by
the caller (see signature.py) before the body is decoded.

GitHub Webhook Payload Structure (issue_comment event):
{
  "action": "created",
  "issue": {"number": 123, "body": "Issue body"},
  "comment": {"body": "!Pollinate add a health endpoint"},
  "repository": {
    "name": "repo-name",
    "owner": {"login": "owner-name"}
  },
  "installation": {"id": 4242}
}

For ``issues`` events the command is read from ``issue.body`` instead.
"""

import logging
from typing import Any, Dict, Optional

from src.pollinate.webhook.models import HANDLED_ACTIONS, EventKind, InboundEvent

logger = logging.getLogger(__name__)


class WebhookHandler:
    """Handler for parsing GitHub issue and comment webhook payloads.

    Returns None for anything the bridge does not act on: unknown event
    names, unhandled actions, and payloads missing the fields needed to
    reply on the issue.
    """

    def parse_event(
        self,
        event_name: Optional[str],
        payload: Any,
        raw_body: bytes = b"",
        signature_header: Optional[str] = None,
    ) -> Optional[InboundEvent]:
        """Parse a webhook payload into an InboundEvent.

        Args:
            event_name: The ``X-GitHub-Event`` header value.
            payload: The decoded JSON payload.
            raw_body: The raw body the payload was decoded from.
            signature_header: The ``X-Hub-Signature-256`` header value.

        Returns:
            InboundEvent if the delivery is actionable, None otherwise.
        """
        kind = self._parse_kind(event_name)
        if kind is None:
            logger.debug("Ignoring unsupported event: %s", event_name)
            return None

        if not isinstance(payload, dict):
            logger.warning("Invalid payload: expected dict, got %s", type(payload))
            return None

        action = payload.get("action")
        if not isinstance(action, str) or action not in HANDLED_ACTIONS[kind]:
            logger.debug(
                "Ignoring unsupported action: %s.%s",
                kind.value,
                action,
            )
            return None

        issue_data = payload.get("issue")
        if not isinstance(issue_data, dict):
            logger.warning(
                "Missing or invalid 'issue' field in payload: %s",
                type(issue_data),
            )
            return None

        issue_number = issue_data.get("number")
        if (
            isinstance(issue_number, bool)
            or not isinstance(issue_number, int)
            or issue_number <= 0
        ):
            logger.warning("Invalid issue number: %s", issue_number)
            return None

        repo_data = payload.get("repository")
        if not isinstance(repo_data, dict):
            logger.warning(
                "Missing or invalid 'repository' field in payload: %s",
                type(repo_data),
            )
            return None

        repo_name = repo_data.get("name")
        if not isinstance(repo_name, str) or not repo_name.strip():
            logger.warning("Invalid or empty repository name: %s", repo_name)
            return None

        owner = self._extract_login(repo_data.get("owner"))
        if owner is None:
            logger.warning("Missing or invalid repository owner")
            return None

        if kind == EventKind.ISSUE:
            text = self._extract_body(issue_data)
        else:
            text = self._extract_body(payload.get("comment"))

        event = InboundEvent(
            kind=kind,
            action=action,
            issue_number=issue_number,
            repo_owner=owner,
            repo_name=repo_name.strip(),
            installation_id=self._extract_installation_id(
                payload.get("installation")
            ),
            text=text,
            raw_body=raw_body,
            signature_header=signature_header,
        )

        logger.info(
            "Parsed webhook event: %s.%s for %s",
            kind.value,
            action,
            event.issue_id,
        )
        return event

    def _parse_kind(self, event_name: Optional[str]) -> Optional[EventKind]:
        if not isinstance(event_name, str):
            return None
        try:
            return EventKind(event_name)
        except ValueError:
            return None

    def _extract_body(self, data: Any) -> str:
        """Return the ``body`` of an issue or comment object.

        GitHub sends ``null`` for empty bodies.
        """
        if not isinstance(data, dict):
            return ""
        body = data.get("body")
        return body if isinstance(body, str) else ""

    def _extract_login(self, user_data: Any) -> Optional[str]:
        if not isinstance(user_data, dict):
            return None
        login = user_data.get("login")
        if not isinstance(login, str) or not login.strip():
            return None
        return login.strip()

    def _extract_installation_id(self, installation: Any) -> Optional[int]:
        """Extract the GitHub App installation ID.

        Deliveries for repositories the app is not installed on carry no
        installation object; that is reported as None, not as an error.
        """
        if not isinstance(installation, dict):
            return None
        installation_id = installation.get("id")
        if isinstance(installation_id, bool) or not isinstance(installation_id, int):
            return None
        return installation_id if installation_id > 0 else None


def create_webhook_handler() -> WebhookHandler:
    """Factory function to create a WebhookHandler instance."""
    return WebhookHandler()
