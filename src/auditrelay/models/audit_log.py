"""
Audit-log callback request and response models.

The payload is deliberately lenient: records are free-form objects and a
missing or malformed `logs` field is accepted as "nothing to do" once the
token checks out.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditLogRequest(BaseModel):
    """Body Salesforce posts to /sfdc-audit-log."""

    token: Optional[Any] = Field(
        default=None,
        description="Shared secret configured on both sides",
    )
    logs: Optional[Any] = Field(
        default=None,
        description="Audit records, newest first (Action, Section, Display, "
                    "CreatedByUser, AuditCreatedDate, DelegateUser, ...)",
    )

    model_config = ConfigDict(extra="allow")


class AuditLogResponse(BaseModel):
    """202 Accepted response."""

    message: str = Field(description="Response message")
    queued: int = Field(description="Number of records queued by this request")
    queue_size: int = Field(description="Records waiting for delivery")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
