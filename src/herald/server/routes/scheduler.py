"""Callback endpoints for the trigger service and the fallback sweep."""

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Request

from herald.errors import AuthorizationError
from herald.server.schemas import TriggerBody

logger = logging.getLogger(__name__)


async def require_scheduler_key(
    request: Request, authorization: str | None = Header(default=None)
) -> None:
    """Reject calls whose bearer credential does not match the configured key."""
    expected = request.app.state.server.scheduler_key
    if not expected:
        logger.error("scheduler_key_not_configured")
        raise AuthorizationError("Scheduler API key is not configured")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        token.encode(), expected.encode()
    ):
        logger.warning(
            "scheduler_auth_rejected", extra={"http.path": request.url.path}
        )
        raise AuthorizationError("Invalid scheduler credentials")


router = APIRouter(dependencies=[Depends(require_scheduler_key)])


@router.post("/process")
async def process_firing(body: TriggerBody, request: Request) -> dict[str, Any]:
    processor = request.app.state.server.processor
    result = await processor.process(body.to_payload())
    return result.to_dict()


@router.post("/activate")
async def activate_schedule(body: TriggerBody, request: Request) -> dict[str, Any]:
    processor = request.app.state.server.processor
    result = await processor.activate(body.to_payload())
    return result.to_dict()


@router.post("/sweep")
async def run_sweep(request: Request) -> dict[str, Any]:
    sweep = request.app.state.server.sweep
    result = await sweep.run()
    return result.to_dict()
