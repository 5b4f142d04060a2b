"""Linear Relay - FastAPI Application.

Receives Linear webhooks, runs the issue flows (Slack alerts, release
documents) and the cycle retrospective generator.
"""

import hashlib
import hmac
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .alert_cache import AlertDeduper
from .change_detector import ChangeDetector
from .config import Settings, get_settings
from .events import WebhookEvent
from .flows import build_issue_flows
from .gateways import LinearGateway, SliteDocumentStore
from .models import WebhookPayload
from .notifier import SlackNotifier
from .processors import WebhookProcessor
from .retrospective import RetrospectiveGenerator
from .router import FlowRouter

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "linear-signature"
WEBHOOK_ID_HEADER = "linear-webhook-id"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def verify_linear_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify Linear webhook signature (HMAC-SHA256 hex, optional sha256= prefix)."""
    if not secret:
        return True  # Skip verification if no secret configured
    if not signature:
        return False
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    received = signature.removeprefix("sha256=")
    return hmac.compare_digest(expected, received)


def build_processor(
    settings: Settings, gateway: LinearGateway, store: SliteDocumentStore
) -> WebhookProcessor:
    """Wire flows and generators from one settings object."""
    notifier = SlackNotifier(timeout=settings.http_timeout_seconds)
    deduper = AlertDeduper(settings.alert_dedupe_ttl_seconds)

    flows = build_issue_flows(settings, gateway, store, notifier, deduper)
    return WebhookProcessor(
        settings,
        detector=ChangeDetector(gateway, settings),
        router=FlowRouter(flows),
        retrospectives=RetrospectiveGenerator(gateway, store, settings),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_processor(request: Request) -> WebhookProcessor:
    return request.app.state.processor


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the application around a single settings object."""
    settings = settings or get_settings()
    configure_logging(settings)
    gateway = LinearGateway(settings)
    store = SliteDocumentStore(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Linear Relay...")
        if not settings.linear_webhook_secret:
            logger.warning(
                "LINEAR_WEBHOOK_SECRET not configured, webhook signatures are not verified"
            )
        yield
        await gateway.aclose()
        await store.aclose()
        logger.info("Linear Relay stopped")

    app = FastAPI(
        title="Linear Relay",
        description="Linear webhooks to Slack alerts and Slite documents",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.processor = build_processor(settings, gateway, store)

    app.get("/health")(health_check)
    app.get("/api/linear-webhook/{type}")(describe_webhook)
    app.post("/api/linear-webhook/{type}")(linear_webhook)
    return app


# =============================================================================
# Endpoints
# =============================================================================


async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": _now()}


async def describe_webhook(type: str):
    """Static description, used to test connectivity."""
    return {
        "message": f"Linear webhook endpoint for type: {type}",
        "endpoint": f"/api/linear-webhook/{type}",
        "method": "POST",
        "timestamp": _now(),
    }


async def linear_webhook(
    type: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    processor: WebhookProcessor = Depends(get_processor),
):
    """Handle Linear webhook events."""
    # Read body before parsing (for signature verification)
    body = await request.body()
    webhook_id = request.headers.get(WEBHOOK_ID_HEADER, "")

    signature = request.headers.get(SIGNATURE_HEADER, "")
    if not verify_linear_signature(body, signature, settings.linear_webhook_secret):
        logger.error(f"Invalid webhook signature: type={type} webhook_id={webhook_id}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate(json.loads(body))
        event = WebhookEvent.from_payload(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Invalid JSON payload: webhook_id={webhook_id} error={e}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    except ValidationError as e:
        logger.error(f"Malformed webhook payload: webhook_id={webhook_id} error={e}")
        raise HTTPException(status_code=400, detail="Malformed webhook payload")

    try:
        result = await processor.process(event)
    except Exception:
        logger.exception(f"Error processing Linear webhook: type={type}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "timestamp": _now()},
        )

    logger.info(f"Successfully processed {type} webhook: webhook_id={webhook_id}")
    return {
        "success": result.get("success", True),
        "type": type,
        "result": result,
        "timestamp": _now(),
    }


app = create_app()
