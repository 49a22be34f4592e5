"""FastAPI application entry point for the Pollinate bridge.

This module provides the HTTP surface of the bridge: the GitHub webhook
endpoint, a health check and a Prometheus metrics endpoint. Settings are
loaded once at startup and the orchestrator is wired from them.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from src.pollinate.config import BridgeSettings, get_settings
from src.pollinate.events.emitter import create_bridge_emitter
from src.pollinate.events.metrics import generate_metrics_output
from src.pollinate.generator.client import ProjectGenerator
from src.pollinate.generator.models import GenerationOptions
from src.pollinate.github.auth import GitHubAppAuth
from src.pollinate.orchestrator import PipelineOrchestrator
from src.pollinate.webhook.handler import create_webhook_handler
from src.pollinate.webhook.signature import SignatureVerifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instance, initialized during lifespan startup
orchestrator: Optional[PipelineOrchestrator] = None


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: BridgeSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Bridge configuration:")
    logger.info(f"  GitHub App ID: {settings.github_app_id}")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info("  GitHub Private Key: (set)")
    logger.info(
        f"  GitHub Webhook Secret: {_redact_secret(settings.github_webhook_secret)}"
    )
    logger.info(f"  Default Base Branch: {settings.default_base_branch}")
    logger.info(f"  LLM URL: {settings.llm_url}")
    logger.info(f"  LLM API Key: {_redact_secret(settings.llm_api_key)}")
    logger.info(f"  LLM Model: {settings.llm_model}")
    logger.info(f"  LLM Temperature: {settings.llm_temperature}")
    logger.info(f"  LLM Max Tokens: {settings.llm_max_tokens}")
    logger.info(f"  HTTP Timeout Seconds: {settings.http_timeout_seconds}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def build_orchestrator(settings: BridgeSettings) -> PipelineOrchestrator:
    """Wire all pipeline dependencies into a PipelineOrchestrator.

    Args:
        settings: Validated bridge settings.

    Returns:
        Fully wired PipelineOrchestrator.
    """
    app_auth = GitHubAppAuth(
        app_id=settings.github_app_id,
        private_key=settings.github_private_key,
        base_url=settings.github_base_url,
        timeout=settings.http_timeout_seconds,
    )

    options = GenerationOptions(
        model=settings.llm_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )

    generator = ProjectGenerator(
        llm_url=settings.llm_url,
        api_key=settings.llm_api_key,
        defaults=options,
        timeout=settings.http_timeout_seconds,
    )

    return PipelineOrchestrator(
        verifier=SignatureVerifier(settings.github_webhook_secret),
        webhook_handler=create_webhook_handler(),
        generator=generator,
        client_factory=app_auth.installation_client,
        event_emitter=create_bridge_emitter(),
        base_branch=settings.default_base_branch,
        generation_options=options,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and wire the orchestrator on startup."""
    global orchestrator

    logger.info("Pollinate bridge starting up...")

    settings = get_settings()
    _log_configuration(settings)
    orchestrator = build_orchestrator(settings)

    logger.info("Pollinate bridge started successfully")

    yield

    logger.info("Pollinate bridge shutting down...")
    if orchestrator is not None:
        await orchestrator.event_emitter.close()
    logger.info("Pollinate bridge shutdown complete")


app = FastAPI(
    title="Pollinate Bridge",
    description="Turns GitHub issue commands into AI-generated pull requests",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/api/health", response_class=PlainTextResponse)
async def health():
    """Liveness check endpoint."""
    return "ok"


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)


@app.post("/api/webhook")
async def github_webhook(request: Request):
    """GitHub webhook receiver endpoint.

    The body is read raw so the signature can be checked over the exact
    bytes GitHub signed. The delivery is processed to completion before
    responding; the status code reflects the outcome.
    """
    if orchestrator is None:
        logger.error("Bridge not initialized")
        return PlainTextResponse("Bridge not initialized", status_code=503)

    raw_body = await request.body()

    outcome = await orchestrator.handle_delivery(
        event_name=request.headers.get("x-github-event"),
        raw_body=raw_body,
        signature_header=request.headers.get("x-hub-signature-256"),
        delivery_id=request.headers.get("x-github-delivery"),
    )

    return PlainTextResponse(outcome.message, status_code=outcome.status_code)


def run() -> None:
    """Run the bridge with uvicorn using configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.pollinate.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    run()
