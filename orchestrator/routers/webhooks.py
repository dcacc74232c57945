from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from orchestrator.services.runtime import Orchestrator, get_orchestrator
from orchestrator.types import WebhookAck

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["webhooks"])

SIGNATURE_HEADER = "x-orchestrator-signature"


def verify_signature(secret: Optional[str], body: bytes, signature: Optional[str]) -> None:
    """Raise `PermissionError` unless `signature` is the body's HMAC-SHA256.

    Verification is skipped when no secret is configured.
    """
    if not secret:
        return
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature or "", expected):
        raise PermissionError("Invalid signature")


@router.post("/webhook")
async def webhook_events(
    request: Request,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    signature: Optional[str] = Header(default=None, alias=SIGNATURE_HEADER),
) -> WebhookAck:
    """Receive one event from the controller (API webhook or Alarm Manager).

    - Verifies the HMAC signature when `event_source.api_webhook.secret` is set
    - Hands the raw JSON object to the rules engine
    """
    body = await request.body()

    webhook = orchestrator.config.event_source.api_webhook
    try:
        verify_signature(webhook.secret if webhook else None, body, signature)
    except PermissionError:
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload: Any = json.loads(body) if body else None
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        logger.warning("Webhook received invalid payload")
        raise HTTPException(status_code=400, detail="Invalid payload")

    event_type = payload.get("event") or payload.get("type") or payload.get("event_type") or "unknown"
    logger.info(f"Webhook received: {event_type}")
    logger.debug(f"Webhook payload: {json.dumps(payload)[:500]}")

    try:
        await orchestrator.submit_raw_event(payload)
    except Exception as e:
        logger.exception(f"Error processing webhook: {e}")
        raise HTTPException(status_code=500, detail="Processing failed")
    return WebhookAck()
