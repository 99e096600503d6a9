import json
import logging
from typing import Any, Dict
from urllib.parse import parse_qsl

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from callrelay.core.deps import get_relay
from callrelay.schemas import WebhookAck
from callrelay.services.relay import CallRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/zadarma", tags=["zadarma"])


def _parse_body(raw: bytes, content_type: str) -> Dict[str, Any]:
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return {}
    if "json" in content_type or text.startswith("{"):
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.warning("Webhook body is not valid JSON")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return dict(parse_qsl(text, keep_blank_values=True))


async def read_payload(request: Request) -> Dict[str, Any]:
    """Event payload from the body (JSON or form), else from the query string."""
    try:
        body = _parse_body(await request.body(), request.headers.get("content-type", ""))
    except Exception:
        logger.exception("Could not read webhook body")
        body = {}
    return body or dict(request.query_params)


@router.get("", response_class=PlainTextResponse)
def validate(zd_echo: str | None = Query(default=None)) -> str:
    return zd_echo or "OK"


@router.post("", response_model=WebhookAck)
async def receive_event(
    request: Request,
    background_tasks: BackgroundTasks,
    relay: CallRelay = Depends(get_relay),
) -> WebhookAck:
    payload = await read_payload(request)
    background_tasks.add_task(relay.handle_event, payload)
    return WebhookAck(ok=True)
