"""
Salesforce audit-log callback endpoint.

Main endpoint: POST /sfdc-audit-log
"""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Request

from ..core.gateway import IngestGateway
from ..models.audit_log import AuditLogRequest, AuditLogResponse, ErrorResponse

logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_ingest_gateway(request: Request) -> IngestGateway:
    """Dependency to get the ingest gateway from app state."""
    return request.app.state.gateway


@router.post(
    "/sfdc-audit-log",
    response_model=AuditLogResponse,
    status_code=202,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Shared secret not configured"},
    },
    summary="Queue Salesforce audit-log records",
    description="""
    Accept a batch of audit-log records and queue them for Slack.

    **Processing:**
    1. Shared secret check (500 if not configured)
    2. Token check (401 on mismatch)
    3. Records reversed to oldest-first and queued
    4. 202 response, delivery happens in the background at ~1 message/second
    """,
)
async def receive_audit_logs(
    payload: Any = Body(
        None,
        openapi_examples={
            "batch": {
                "value": {"token": "<shared secret>", "logs": [{"Action": "Login", "CreatedByUser": "bob"}]},
            },
        },
    ),
    gateway: IngestGateway = Depends(get_ingest_gateway),
) -> AuditLogResponse:
    """Queue audit records; never waits for delivery."""
    # Any JSON value is accepted; only an object carries a token and logs
    request_body = AuditLogRequest.model_validate(payload) if isinstance(payload, dict) else AuditLogRequest()

    outcome = gateway.ingest(request_body.token, request_body.logs)

    return AuditLogResponse(
        message=outcome.message,
        queued=outcome.count,
        queue_size=outcome.queue_size,
    )
