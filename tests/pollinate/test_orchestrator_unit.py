"""Unit tests for the PipelineOrchestrator.

Verifies the orchestration flow by mocking the generator, the GitHub
client and the event emitter, and asserting that the correct calls are
made in the correct order for each path (happy path, ignored deliveries,
and failures at each step).
"""

import asyncio
from typing import List
from unittest.mock import AsyncMock

import pytest

from conftest import (
    WEBHOOK_SECRET,
    encode,
    make_comment_payload,
    make_issue_payload,
    sign,
)
from src.pollinate.events.models import EventType
from src.pollinate.generator.models import (
    GeneratedFile,
    GenerationOptions,
    ProviderError,
)
from src.pollinate.github.client import (
    BranchConflict,
    GitHubAPIError,
    GitHubClient,
)
from src.pollinate.github.models import PullRequestResult
from src.pollinate.github.mutator import CommitError
from src.pollinate.github.pr_creator import PRCreationError
from src.pollinate.orchestrator import PipelineOrchestrator
from src.pollinate.state.models import PipelineStage
from src.pollinate.webhook.handler import create_webhook_handler
from src.pollinate.webhook.signature import SignatureVerifier


PR_URL = "https://github.com/acme/widgets/pull/11"


def run_async(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _make_files() -> List[GeneratedFile]:
    return [
        GeneratedFile(path="app.py", content="print('hi')"),
        GeneratedFile(path="README.md", content="# App"),
    ]


def _make_client(calls: List[str]) -> AsyncMock:
    """Build a GitHubClient mock that logs calls in order."""
    client = AsyncMock(spec=GitHubClient)

    async def create_comment(owner, repo, issue_number, body):
        calls.append(f"comment:{body}")
        return {"id": 1}

    async def get_branch_sha(owner, repo, branch):
        calls.append(f"get_branch_sha:{branch}")
        return "base-sha"

    async def create_ref(owner, repo, branch, sha):
        calls.append("create_ref")
        return {}

    async def get_file_sha(owner, repo, path, ref):
        return None

    async def create_or_update_file(**kwargs):
        calls.append(f"commit:{kwargs['path']}")
        return {}

    async def create_pr(owner, repo, request):
        calls.append(f"pr:{request.title}")
        return PullRequestResult(
            number=11,
            url=PR_URL,
            head_branch=request.head_branch,
            base_branch=request.base_branch,
        )

    client.create_comment.side_effect = create_comment
    client.get_branch_sha.side_effect = get_branch_sha
    client.create_ref.side_effect = create_ref
    client.get_file_sha.side_effect = get_file_sha
    client.create_or_update_file.side_effect = create_or_update_file
    client.create_pr.side_effect = create_pr
    return client


@pytest.fixture
def calls() -> List[str]:
    return []


@pytest.fixture
def deps(calls):
    """Create a dict of mocked dependencies for the orchestrator."""
    client = _make_client(calls)

    generator = AsyncMock()

    async def generate(instruction, options=None):
        calls.append(f"generate:{instruction}")
        return _make_files()

    generator.generate.side_effect = generate

    return {
        "client": client,
        "client_factory": AsyncMock(return_value=client),
        "generator": generator,
        "event_emitter": AsyncMock(),
    }


def _make_orchestrator(deps, **kwargs) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        verifier=SignatureVerifier(WEBHOOK_SECRET),
        webhook_handler=create_webhook_handler(),
        generator=deps["generator"],
        client_factory=deps["client_factory"],
        event_emitter=deps["event_emitter"],
        **kwargs,
    )


def _deliver(orchestrator, payload, event_name="issue_comment", signature=None):
    body = encode(payload)
    return run_async(
        orchestrator.handle_delivery(
            event_name=event_name,
            raw_body=body,
            signature_header=signature if signature is not None else sign(body),
            delivery_id="delivery-1",
        )
    )


def _emitted(deps, event_type: EventType):
    return [
        c.args[0]
        for c in deps["event_emitter"].emit.await_args_list
        if c.args[0].event_type == event_type
    ]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestHappyPath:
    def test_full_pipeline_order(self, deps, calls):
        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        assert outcome.status_code == 200
        assert outcome.message == "ok"
        assert outcome.stage == PipelineStage.DONE
        assert outcome.pull_request.url == PR_URL

        assert calls == [
            "comment:🤖 Generating project for: `add health endpoint`...",
            "generate:add health endpoint",
            "get_branch_sha:main",
            "create_ref",
            "commit:app.py",
            "commit:README.md",
            "pr:Auto-generated project: add health endpoint",
            f"comment:✅ PR created: {PR_URL}",
        ]

    def test_installation_client_is_requested(self, deps):
        _deliver(_make_orchestrator(deps), make_comment_payload(installation_id=99))
        deps["client_factory"].assert_awaited_once_with(99)

    def test_client_is_closed(self, deps):
        _deliver(_make_orchestrator(deps), make_comment_payload())
        deps["client"].__aexit__.assert_awaited_once()

    def test_issue_event_is_handled(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps),
            make_issue_payload(body="Intro\n!Pollinate build a cli"),
            event_name="issues",
        )

        assert outcome.status_code == 200
        assert "generate:build a cli" in calls

    def test_custom_base_branch_and_options(self, deps, calls):
        options = GenerationOptions(model="mistral")
        orchestrator = _make_orchestrator(
            deps, base_branch="develop", generation_options=options
        )

        outcome = _deliver(orchestrator, make_comment_payload())

        assert "get_branch_sha:develop" in calls
        assert outcome.pull_request.base_branch == "develop"
        deps["generator"].generate.assert_awaited_once_with(
            "add health endpoint", options
        )

    def test_completion_event(self, deps):
        _deliver(_make_orchestrator(deps), make_comment_payload())

        completions = _emitted(deps, EventType.COMPLETION)
        assert len(completions) == 1
        event = completions[0]
        assert event.run_id == "delivery-1"
        assert event.issue_id == "acme/widgets#7"
        assert event.repository == "acme/widgets"
        assert event.details["pr_url"] == PR_URL
        assert event.details["branch"].startswith("auto/")
        assert "duration_seconds" in event.details
        assert _emitted(deps, EventType.ERROR) == []

    def test_transition_events_follow_stages(self, deps):
        _deliver(_make_orchestrator(deps), make_comment_payload())

        stages = [
            e.details["to_stage"] for e in _emitted(deps, EventType.STATE_TRANSITION)
        ]
        assert stages == [
            "verified",
            "command_found",
            "generated",
            "branched",
            "committed",
            "pr_created",
            "done",
        ]

    def test_emitter_failure_does_not_break_pipeline(self, deps):
        deps["event_emitter"].emit.side_effect = RuntimeError("sink down")

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        assert outcome.status_code == 200


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


class TestGates:
    def _assert_no_side_effects(self, deps, calls):
        assert calls == []
        deps["client_factory"].assert_not_called()
        deps["generator"].generate.assert_not_called()

    def test_invalid_signature(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps),
            make_comment_payload(),
            signature="sha256=" + "0" * 64,
        )

        assert outcome.status_code == 401
        assert outcome.message == "Invalid signature"
        assert outcome.stage == PipelineStage.ABORTED
        self._assert_no_side_effects(deps, calls)
        deps["event_emitter"].emit.assert_not_called()

    def test_missing_signature(self, deps, calls):
        orchestrator = _make_orchestrator(deps)
        outcome = run_async(
            orchestrator.handle_delivery(
                "issue_comment", encode(make_comment_payload()), None
            )
        )

        assert outcome.status_code == 401
        self._assert_no_side_effects(deps, calls)

    def test_signature_over_different_body(self, deps, calls):
        signature = sign(encode(make_comment_payload(body="!Pollinate other")))
        outcome = _deliver(
            _make_orchestrator(deps), make_comment_payload(), signature=signature
        )

        assert outcome.status_code == 401
        self._assert_no_side_effects(deps, calls)

    def test_undecodable_body(self, deps, calls):
        body = b"{not json"
        outcome = run_async(
            _make_orchestrator(deps).handle_delivery(
                "issue_comment", body, sign(body)
            )
        )

        assert outcome.status_code == 400
        self._assert_no_side_effects(deps, calls)

    def test_no_command(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps), make_comment_payload(body="random text")
        )

        assert outcome.status_code == 200
        assert outcome.stage == PipelineStage.ABORTED
        self._assert_no_side_effects(deps, calls)

    def test_missing_installation(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps), make_comment_payload(installation_id=None)
        )

        assert outcome.status_code == 200
        self._assert_no_side_effects(deps, calls)

    def test_unsupported_event(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps), make_comment_payload(), event_name="push"
        )

        assert outcome.status_code == 200
        assert outcome.message == "ignored"
        self._assert_no_side_effects(deps, calls)

    def test_unhandled_action(self, deps, calls):
        outcome = _deliver(
            _make_orchestrator(deps), make_comment_payload(action="deleted")
        )

        assert outcome.status_code == 200
        self._assert_no_side_effects(deps, calls)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def _assert_failed(self, outcome, deps, calls, stage: str):
        assert outcome.status_code == 500
        assert outcome.message == "server error"
        assert outcome.stage == PipelineStage.ABORTED
        assert outcome.pull_request is None
        assert not any(c.startswith("comment:✅") for c in calls)

        errors = _emitted(deps, EventType.ERROR)
        assert len(errors) == 1
        assert errors[0].details["stage"] == stage
        assert _emitted(deps, EventType.COMPLETION) == []

    def test_token_exchange_failure(self, deps, calls):
        deps["client_factory"].side_effect = GitHubAPIError("denied", status_code=401)

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "command_found")
        assert calls == []

    def test_ack_comment_failure_stops_generation(self, deps, calls):
        deps["client"].create_comment.side_effect = GitHubAPIError(
            "GitHub API error: 403", status_code=403
        )

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "command_found")
        deps["generator"].generate.assert_not_called()

    def test_generation_failure(self, deps, calls):
        deps["generator"].generate.side_effect = ProviderError(
            "Provider API error 500: boom", status_code=500
        )

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "command_found")
        assert calls == ["comment:🤖 Generating project for: `add health endpoint`..."]
        deps["client"].create_ref.assert_not_called()
        errors = _emitted(deps, EventType.ERROR)
        assert errors[0].details["error_type"] == "ProviderError"

    def test_empty_generation_opens_no_branch(self, deps, calls):
        async def generate(instruction, options=None):
            calls.append(f"generate:{instruction}")
            return [GeneratedFile(path="generated/auto.txt", content="")]

        deps["generator"].generate.side_effect = generate

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "command_found")
        assert calls == [
            "comment:🤖 Generating project for: `add health endpoint`...",
            "generate:add health endpoint",
        ]
        deps["client"].get_branch_sha.assert_not_called()
        deps["client"].create_ref.assert_not_called()
        deps["client"].create_pr.assert_not_called()
        errors = _emitted(deps, EventType.ERROR)
        assert errors[0].details["error_type"] == "ExtractionError"

    def test_branch_conflict(self, deps, calls):
        deps["client"].create_ref.side_effect = BranchConflict(
            "auto/1", status_code=422
        )

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "generated")
        deps["client"].create_or_update_file.assert_not_called()

    def test_commit_failure_mid_pipeline(self, deps, calls):
        async def failing_put(**kwargs):
            calls.append(f"commit:{kwargs['path']}")
            if kwargs["path"] == "README.md":
                raise GitHubAPIError("GitHub API error: 409", status_code=409)
            return {}

        deps["client"].create_or_update_file.side_effect = failing_put

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "branched")
        assert calls[-2:] == ["commit:app.py", "commit:README.md"]
        deps["client"].create_pr.assert_not_called()
        errors = _emitted(deps, EventType.ERROR)
        assert errors[0].details["error_type"] == CommitError.__name__

    def test_pr_failure(self, deps, calls):
        deps["client"].create_pr.side_effect = GitHubAPIError(
            "GitHub API error: 422", status_code=422
        )

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "committed")
        errors = _emitted(deps, EventType.ERROR)
        assert errors[0].details["error_type"] == PRCreationError.__name__

    def test_completion_comment_failure(self, deps, calls):
        async def create_comment(owner, repo, issue_number, body):
            if body.startswith("✅"):
                raise GitHubAPIError("GitHub API error: 500", status_code=500)
            calls.append(f"comment:{body}")
            return {"id": 1}

        deps["client"].create_comment.side_effect = create_comment

        outcome = _deliver(_make_orchestrator(deps), make_comment_payload())

        self._assert_failed(outcome, deps, calls, "pr_created")

    def test_client_closed_after_failure(self, deps):
        deps["generator"].generate.side_effect = ProviderError("boom")

        _deliver(_make_orchestrator(deps), make_comment_payload())

        deps["client"].__aexit__.assert_awaited_once()
