"""Pytest configuration and shared fixtures for all tests."""

import asyncio
import json
from typing import Any, Dict, Optional

import pytest

from src.pollinate.webhook.signature import compute_signature


WEBHOOK_SECRET = "test-webhook-secret"


def run_async(coro):
    return asyncio.run(coro)


def make_comment_payload(
    body: Optional[str] = "!Pollinate add health endpoint",
    action: str = "created",
    issue_number: int = 7,
    owner: str = "acme",
    repo: str = "widgets",
    installation_id: Optional[int] = 4242,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "action": action,
        "issue": {"number": issue_number, "body": "Issue description"},
        "comment": {"body": body},
        "repository": {"name": repo, "owner": {"login": owner}},
    }
    if installation_id is not None:
        payload["installation"] = {"id": installation_id}
    return payload


def make_issue_payload(
    body: Optional[str] = "!Pollinate add health endpoint",
    action: str = "opened",
    issue_number: int = 7,
    owner: str = "acme",
    repo: str = "widgets",
    installation_id: Optional[int] = 4242,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "action": action,
        "issue": {"number": issue_number, "body": body},
        "repository": {"name": repo, "owner": {"login": owner}},
    }
    if installation_id is not None:
        payload["installation"] = {"id": installation_id}
    return payload


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return compute_signature(secret, body)


def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def webhook_secret() -> str:
    return WEBHOOK_SECRET
