"""Pipeline orchestrator connecting all stages of the bridge.

Receives a raw webhook delivery and drives it through the pipeline:
signature → event parsing → command extraction → acknowledgement comment
→ generation → branch → commits → pull request → completion comment.

The gates (signature, command, installation) run first and have no side
effects. After the gates pass, the steps run strictly in order on a single
task, each awaiting the previous one. Any exception in a step aborts the
run; it is logged, emitted as an error event and reported as a server
error. Nothing already done is undone: a failure after the
acknowledgement leaves that comment (and possibly a branch with some
commits) behind without a completion comment.
"""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.pollinate.command import Command, extract_command
from src.pollinate.events.emitter import EventEmitter
from src.pollinate.events.models import EventType, PipelineEvent
from src.pollinate.generator.client import ProjectGenerator
from src.pollinate.generator.models import (
    ExtractionError,
    GeneratedFile,
    GenerationOptions,
)
from src.pollinate.github.client import GitHubClient
from src.pollinate.github.models import BranchRef, PullRequestResult
from src.pollinate.github.mutator import RepositoryMutator
from src.pollinate.github.pr_creator import (
    PRCreator,
    build_ack_comment,
    build_completion_comment,
)
from src.pollinate.state.machine import RunStateMachine
from src.pollinate.state.models import PipelineStage
from src.pollinate.webhook.handler import WebhookHandler
from src.pollinate.webhook.models import InboundEvent
from src.pollinate.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)


InstallationClientFactory = Callable[[int], Awaitable[GitHubClient]]


class PipelineOutcome(BaseModel):
    """Result of handling one delivery, mapped to an HTTP response.

    Attributes:
        status_code: 200 handled or ignored, 400 undecodable body,
            401 bad signature, 500 pipeline failure.
        message: Short plain-text response body.
        stage: The stage the run ended in.
        pull_request: The opened pull request on success.
    """

    status_code: int
    message: str
    stage: PipelineStage
    pull_request: Optional[PullRequestResult] = None


class RunContext(BaseModel):
    """Values produced by earlier steps and consumed by later ones."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    machine: RunStateMachine
    event: InboundEvent
    command: Command
    client: GitHubClient
    files: List[GeneratedFile] = Field(default_factory=list)
    branch: Optional[BranchRef] = None
    committed: List[str] = Field(default_factory=list)
    pull_request: Optional[PullRequestResult] = None


class PipelineOrchestrator:
    """Orchestrates the delivery-to-pull-request pipeline.

    Accepts all dependencies via constructor injection. Each delivery gets
    its own state machine and its own installation-authenticated GitHub
    client, so concurrent deliveries share no mutable state.

    Attributes:
        verifier: Webhook signature verifier.
        webhook_handler: Parses verified payloads into InboundEvents.
        generator: AI project generator.
        client_factory: Builds a GitHubClient for an installation ID.
        event_emitter: Emits pipeline events for observability.
        base_branch: Branch runs fork from and pull requests target.
        generation_options: Options passed to the generator.
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        webhook_handler: WebhookHandler,
        generator: ProjectGenerator,
        client_factory: InstallationClientFactory,
        event_emitter: EventEmitter,
        base_branch: str = "main",
        generation_options: Optional[GenerationOptions] = None,
    ):
        self.verifier = verifier
        self.webhook_handler = webhook_handler
        self.generator = generator
        self.client_factory = client_factory
        self.event_emitter = event_emitter
        self.base_branch = base_branch
        self.generation_options = generation_options

    async def handle_delivery(
        self,
        event_name: Optional[str],
        raw_body: bytes,
        signature_header: Optional[str],
        delivery_id: Optional[str] = None,
    ) -> PipelineOutcome:
        """Handle one webhook delivery end to end.

        Args:
            event_name: The ``X-GitHub-Event`` header value.
            raw_body: The exact request body bytes.
            signature_header: The ``X-Hub-Signature-256`` header value.
            delivery_id: The ``X-GitHub-Delivery`` header value, if any.

        Returns:
            The outcome to report back to GitHub.
        """
        machine = RunStateMachine(delivery_id or uuid.uuid4().hex)

        if not self.verifier.verify(raw_body, signature_header):
            machine.abort("invalid_signature")
            return self._outcome(machine, 401, "Invalid signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            logger.warning(
                "Failed to decode webhook body",
                extra={"run_id": machine.run.run_id},
            )
            machine.abort("invalid_payload")
            return self._outcome(machine, 400, "Invalid payload")

        await self._transition(machine, PipelineStage.VERIFIED)

        event = self.webhook_handler.parse_event(
            event_name,
            payload,
            raw_body=raw_body,
            signature_header=signature_header,
        )
        if event is None:
            await self._abort(machine, "ignored")
            return self._outcome(machine, 200, "ignored")

        machine.bind_issue(event.issue_id, event.full_repository)

        command = extract_command(event.text)
        if command is None or event.installation_id is None:
            logger.info(
                "No command or missing installation",
                extra={
                    "issue_id": event.issue_id,
                    "has_command": command is not None,
                    "has_installation": event.installation_id is not None,
                },
            )
            await self._abort(machine, "no_command")
            return self._outcome(machine, 200, "no command or missing installation")

        await self._transition(machine, PipelineStage.COMMAND_FOUND)

        try:
            pull_request = await self._run(machine, event, command)
        except Exception as exc:
            await self._fail(machine, exc)
            return self._outcome(machine, 500, "server error")

        return self._outcome(machine, 200, "ok", pull_request)

    async def _run(
        self,
        machine: RunStateMachine,
        event: InboundEvent,
        command: Command,
    ) -> PullRequestResult:
        """Run the mutating steps in order with a per-run client."""
        client = await self.client_factory(event.installation_id)

        async with client:
            ctx = RunContext(
                machine=machine,
                event=event,
                command=command,
                client=client,
            )
            for step in (
                self._acknowledge,
                self._generate,
                self._create_branch,
                self._commit_files,
                self._open_pull_request,
                self._post_completion,
            ):
                await step(ctx)

        return ctx.pull_request

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _acknowledge(self, ctx: RunContext) -> None:
        await ctx.client.create_comment(
            ctx.event.repo_owner,
            ctx.event.repo_name,
            ctx.event.issue_number,
            build_ack_comment(ctx.command.instruction),
        )

    async def _generate(self, ctx: RunContext) -> None:
        ctx.files = await self.generator.generate(
            ctx.command.instruction, self.generation_options
        )
        if not any(f.path and f.content for f in ctx.files):
            raise ExtractionError("Provider reply yielded no file to commit")
        await self._transition(
            ctx.machine,
            PipelineStage.GENERATED,
            {"file_count": len(ctx.files)},
        )

    async def _create_branch(self, ctx: RunContext) -> None:
        mutator = RepositoryMutator(ctx.client)
        ctx.branch = await mutator.create_branch(
            ctx.event.repo_owner, ctx.event.repo_name, self.base_branch
        )
        await self._transition(
            ctx.machine,
            PipelineStage.BRANCHED,
            {"branch": ctx.branch.name, "base_sha": ctx.branch.base_sha},
        )

    async def _commit_files(self, ctx: RunContext) -> None:
        mutator = RepositoryMutator(ctx.client)
        ctx.committed = await mutator.commit_files(
            ctx.files, ctx.event.repo_owner, ctx.event.repo_name, ctx.branch
        )
        await self._transition(
            ctx.machine,
            PipelineStage.COMMITTED,
            {"committed": list(ctx.committed)},
        )

    async def _open_pull_request(self, ctx: RunContext) -> None:
        ctx.pull_request = await PRCreator(ctx.client).create_pr_for_issue(
            owner=ctx.event.repo_owner,
            repo=ctx.event.repo_name,
            issue_number=ctx.event.issue_number,
            instruction=ctx.command.instruction,
            head_branch=ctx.branch.name,
            base_branch=self.base_branch,
        )
        await self._transition(
            ctx.machine,
            PipelineStage.PR_CREATED,
            {"pr_url": ctx.pull_request.url},
        )

    async def _post_completion(self, ctx: RunContext) -> None:
        await ctx.client.create_comment(
            ctx.event.repo_owner,
            ctx.event.repo_name,
            ctx.event.issue_number,
            build_completion_comment(ctx.pull_request.url),
        )
        await self._transition(ctx.machine, PipelineStage.DONE)

        logger.info(
            "Pipeline completed",
            extra={
                "issue_id": ctx.event.issue_id,
                "pr_url": ctx.pull_request.url,
                "branch": ctx.branch.name,
            },
        )
        await self._safe_emit(
            self._event(
                ctx.machine,
                EventType.COMPLETION,
                {
                    "pr_url": ctx.pull_request.url,
                    "branch": ctx.branch.name,
                    "duration_seconds": ctx.machine.run.elapsed_seconds,
                },
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _outcome(
        self,
        machine: RunStateMachine,
        status_code: int,
        message: str,
        pull_request: Optional[PullRequestResult] = None,
    ) -> PipelineOutcome:
        return PipelineOutcome(
            status_code=status_code,
            message=message,
            stage=machine.current_stage,
            pull_request=pull_request,
        )

    async def _transition(
        self,
        machine: RunStateMachine,
        to_stage: PipelineStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Transition the run and emit a state-transition event."""
        record = machine.transition(to_stage, details)
        await self._safe_emit(
            self._event(
                machine,
                EventType.STATE_TRANSITION,
                {
                    "from_stage": record.from_stage.value,
                    "to_stage": record.to_stage.value,
                },
            )
        )

    async def _abort(self, machine: RunStateMachine, reason: str) -> None:
        """Abort a run on a normal no-op exit."""
        record = machine.abort(reason)
        await self._safe_emit(
            self._event(
                machine,
                EventType.STATE_TRANSITION,
                {
                    "from_stage": record.from_stage.value,
                    "to_stage": record.to_stage.value,
                    "reason": reason,
                },
            )
        )

    async def _fail(self, machine: RunStateMachine, exc: Exception) -> None:
        """Abort a run on a failure and emit an error event."""
        stage = machine.current_stage.value
        logger.exception(
            "Pipeline stage failed",
            extra={
                "run_id": machine.run.run_id,
                "issue_id": machine.run.issue_id,
                "stage": stage,
            },
        )

        machine.abort("error", error=f"{stage}: {exc}")

        await self._safe_emit(
            self._event(
                machine,
                EventType.ERROR,
                {
                    "stage": stage,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
        )

    def _event(
        self,
        machine: RunStateMachine,
        event_type: EventType,
        details: Dict[str, Any],
    ) -> PipelineEvent:
        return PipelineEvent(
            event_type=event_type,
            run_id=machine.run.run_id,
            issue_id=machine.run.issue_id,
            repository=machine.run.repository,
            details=details,
        )

    async def _safe_emit(self, event: PipelineEvent) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the pipeline."""
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit pipeline event",
                extra={
                    "event_type": event.event_type.value,
                    "run_id": event.run_id,
                },
            )
