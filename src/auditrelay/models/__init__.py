"""
Pydantic data models package.

Contains the API request and response models.
"""

from .audit_log import AuditLogRequest, AuditLogResponse, ErrorResponse

__all__ = [
    "AuditLogRequest",
    "AuditLogResponse",
    "ErrorResponse",
]
