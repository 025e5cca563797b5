"""
WeCom Webhook Handler for wecomly.

Receives vendor push payloads (XML already decoded to JSON upstream),
normalizes them through the registered WeComTransport and applies the
channel's access policy.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from wecomly.pipeline.transports import TransportNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


@router.post(
    "/wecom",
    summary="Receive WeCom push message",
    responses={
        200: {"description": "Message received (or ignored by access policy)"},
        400: {"description": "Invalid webhook payload"},
        503: {"description": "WeCom channel not initialized"},
    },
)
async def receive_wecom_webhook(request: Request) -> Dict[str, Any]:
    """
    Receive an inbound WeCom message.

    1. Parse and normalize the payload via WeComTransport
    2. Drop senders rejected by the allow-list / DM policy
    3. Return the normalized messages to the caller
    """
    from wecomly.app.dependencies import get_wecom_transport

    try:
        transport = get_wecom_transport()
    except TransportNotFoundError:
        raise HTTPException(status_code=503, detail="WeCom channel not initialized") from None

    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be JSON") from None

    try:
        message = await transport.normalize_request(request, payload)
    except ValueError as e:
        logger.warning(f"[wecom] Rejected webhook payload: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from None

    if not transport.check_permission(message.peer):
        logger.info(f"[wecom] Ignoring message from {message.peer.id}: not permitted")
        return {"status": "ignored", "messages": [], "should_reply": False}

    return {
        "status": "received",
        "messages": [message.to_dict()],
        "should_reply": True,
    }
